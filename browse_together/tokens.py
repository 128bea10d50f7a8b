"""Generate a bearer token for ``BROWSER_API_TOKEN``."""

from __future__ import annotations

import argparse
import secrets
import sys
from typing import Sequence

MIN_TOKEN_BYTES = 16
MAX_TOKEN_BYTES = 128
DEFAULT_TOKEN_BYTES = 48


def generate_secure_token(length: int = DEFAULT_TOKEN_BYTES) -> str:
    """Return ``length`` random bytes as URL-safe base64 without padding."""
    if not MIN_TOKEN_BYTES <= length <= MAX_TOKEN_BYTES:
        raise ValueError(
            f"Token length must be a number between {MIN_TOKEN_BYTES} and {MAX_TOKEN_BYTES}"
        )
    return secrets.token_urlsafe(length)


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="browse-together-token",
        description="Generate a security token for the browser proxy API.",
    )
    parser.add_argument(
        "-l",
        "--length",
        type=int,
        default=DEFAULT_TOKEN_BYTES,
        help=f"token length in bytes ({MIN_TOKEN_BYTES}-{MAX_TOKEN_BYTES}, default: {DEFAULT_TOKEN_BYTES})",
    )
    args = parser.parse_args(argv)

    try:
        token = generate_secure_token(args.length)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Generated token ({args.length * 8} bits):\n")
    print(f"{token}\n")
    print("Keep this token secret and provide it to the proxy and its clients:")
    print(f"  export BROWSER_API_TOKEN='{token}'")
    print("  - or -")
    print(f"  browse-together --browser-api-token='{token}'")
    return 0


if __name__ == "__main__":
    sys.exit(main())
