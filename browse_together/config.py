"""Configuration for the browser proxy.

Settings are 12-factor compliant: raw values come from built-in defaults, an
optional ``.env`` file, the process environment and command-line flags (in
increasing order of precedence). Raw strings are merged first and then cast
with ``django-environ`` and validated with pydantic, so every source obeys the
same rules.
"""

from __future__ import annotations

import argparse
import json
import logging
import logging.config
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Mapping, Sequence

import environ
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_FILE_VAR = "BROWSE_TOGETHER_ENV_FILE"


def _default_profile_dir() -> Path:
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "playwright" / "profile"


DEFAULT_IGNORE_DEFAULT_ARGS = ["--enable-automation"]
DEFAULT_BROWSER_ARGS = [
    "--no-default-browser-check",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=site-per-process",
    "--disable-extensions",
    "--disable-component-extensions-with-background-pages",
    "--disable-default-apps",
    "--no-sandbox",
    "--disable-translate",
    "--use-fake-device-for-media-stream",
    "--use-fake-ui-for-media-stream",
]

# (env key, cli flag, short alias)
CONFIG_MAPPING: list[tuple[str, str, str | None]] = [
    ("APP_ENV", "app-env", "e"),
    ("BROWSER_TYPE", "browser-type", "t"),
    ("LOG_LEVEL", "log-level", "l"),
    ("HOST", "host", None),
    ("PORT", "port", "p"),
    ("BROWSER_API_TOKEN", "browser-api-token", None),  # no short alias for the secret
    ("HEADLESS", "headless", "H"),
    ("PROFILE_DIR", "profile-dir", "d"),
    ("IGNORE_DEFAULT_ARGS", "ignore-default-args", "i"),
    ("BROWSER_ARGS", "browser-args", "b"),
]

_LOG_LEVELS = {
    "debug": "DEBUG",
    "info": "INFO",
    "warn": "WARNING",
    "error": "ERROR",
}


@dataclass(frozen=True, slots=True)
class BrowserLaunchOptions:
    browser_type: str = "chromium"
    headless: bool = False
    profile_dir: Path = field(default_factory=_default_profile_dir)
    args: tuple[str, ...] = tuple(DEFAULT_BROWSER_ARGS)
    ignore_default_args: tuple[str, ...] = tuple(DEFAULT_IGNORE_DEFAULT_ARGS)


class ProxyConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    app_env: Literal["development", "production", "test"] = "development"
    browser_type: Literal["chromium", "firefox"] = "chromium"
    log_level: Literal["debug", "info", "warn", "error"] = "debug"
    host: str = "127.0.0.1"
    port: int = Field(default=8888, gt=0, le=65535)
    browser_api_token: str = Field(min_length=32, repr=False)
    headless: bool = False
    profile_dir: Path = Field(default_factory=_default_profile_dir)
    ignore_default_args: list[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_DEFAULT_ARGS))
    browser_args: list[str] = Field(default_factory=lambda: list(DEFAULT_BROWSER_ARGS))

    def launch_options(self) -> BrowserLaunchOptions:
        return BrowserLaunchOptions(
            browser_type=self.browser_type,
            headless=self.headless,
            profile_dir=self.profile_dir,
            args=tuple(self.browser_args),
            ignore_default_args=tuple(self.ignore_default_args),
        )

    def redacted(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        token = data.get("browser_api_token") or ""
        data["browser_api_token"] = f"{token[:4]}…" if token else ""
        return data


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="browse-together",
        description="Share one persistent browser session over HTTP.",
    )
    for env_key, cli_key, alias in CONFIG_MAPPING:
        flags = [f"--{cli_key}"]
        if alias:
            flags.append(f"-{alias}")
        kwargs: dict[str, Any] = {"dest": env_key, "default": None, "help": f"overrides {env_key}"}
        if env_key == "HEADLESS":
            kwargs.update(nargs="?", const="true")
        parser.add_argument(*flags, **kwargs)
    return parser


def parse_cli_arguments(argv: Sequence[str] | None = None) -> dict[str, str]:
    """Return CLI overrides keyed by environment variable name.

    Values stay raw strings; casting happens once the sources are merged.
    """
    namespace = build_cli_parser().parse_args(argv)
    return {key: str(value) for key, value in vars(namespace).items() if value is not None}


def _raw_environment(source: Mapping[str, str]) -> dict[str, str]:
    return {key: source[key] for key, _, _ in CONFIG_MAPPING if key in source}


def load_config(
    argv: Sequence[str] | None = None,
    env_vars: Mapping[str, str] | None = None,
) -> ProxyConfig:
    if env_vars is None:
        env_file = os.environ.get(ENV_FILE_VAR, ".env")
        if env_file and Path(env_file).is_file():
            environ.Env.read_env(env_file=env_file, overwrite=False)
        env_vars = os.environ

    merged = _raw_environment(env_vars)
    merged.update(parse_cli_arguments(argv))

    env = environ.Env()
    env.ENVIRON = merged
    values: dict[str, Any] = {}
    errors: list[str] = []

    def _read(key: str, reader) -> None:
        if key not in merged:
            return
        try:
            values[key.lower()] = reader(key)
        except (ValueError, TypeError) as exc:
            errors.append(f"{key}: {exc}")

    _read("APP_ENV", env.str)
    _read("BROWSER_TYPE", env.str)
    _read("LOG_LEVEL", env.str)
    _read("HOST", env.str)
    _read("PORT", env.int)
    _read("BROWSER_API_TOKEN", env.str)
    _read("HEADLESS", env.bool)
    _read("PROFILE_DIR", lambda key: Path(env.str(key)).expanduser())
    _read("IGNORE_DEFAULT_ARGS", _json_list_reader(env))
    _read("BROWSER_ARGS", _json_list_reader(env))

    if errors:
        raise ConfigError("Invalid configuration:\n  " + "\n  ".join(errors))
    try:
        return ProxyConfig(**values)
    except ValidationError as exc:
        raise ConfigError(_format_validation_error(exc)) from exc


def _json_list_reader(env: environ.Env):
    def read(key: str) -> list[str]:
        try:
            value = env.json(key)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON: {exc.msg}") from exc
        if not isinstance(value, list):
            raise ValueError("expected a JSON array of strings")
        return [str(item) for item in value]

    return read


def _format_validation_error(exc: ValidationError) -> str:
    lines = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())).upper() or "CONFIG"
        lines.append(f"{location}: {error.get('msg')}")
    return "Invalid configuration:\n  " + "\n  ".join(lines)


def logging_config(config: ProxyConfig) -> dict[str, Any]:
    level = "ERROR" if config.app_env == "test" else _LOG_LEVELS[config.log_level]
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
            }
        },
        "root": {
            "handlers": ["console"],
            "level": level,
        },
    }


def configure_logging(config: ProxyConfig) -> None:
    logging.config.dictConfig(logging_config(config))


def log_active_configuration(config: ProxyConfig) -> None:
    logger.info("Active configuration: %s", config.redacted())
