from __future__ import annotations

import json
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional

import requests
from requests import Response, Session


class BrowseTogetherClientError(RuntimeError):
    """Raised when the proxy rejects a request or a command fails."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BrowseTogetherClient:
    """Synchronous client for the browser proxy HTTP API.

    Every call targets a named page; the proxy creates the page on first use
    and keeps it (with its cookies and login state) until it is closed.

    Example:
        >>> client = BrowseTogetherClient(
        ...     base_url="http://localhost:8888",
        ...     token="your-browser-api-token",
        ... )
        >>> client.goto("research", "https://example.com")
        >>> client.title("research")
        'Example Domain'
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str,
        timeout: float | None = 60.0,
        session: Session | None = None,
    ) -> None:
        """
        Args:
            base_url: Proxy root URL, e.g. "http://localhost:8888".
            token: Shared secret sent as a bearer token.
            timeout: Default request timeout in seconds (None to disable).
            session: Optional preconfigured `requests.Session`.
        """
        if not base_url:
            raise ValueError("base_url is required")
        if not token:
            raise ValueError("token is required")

        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session: Session = session or requests.Session()
        self._session.headers.setdefault("Authorization", f"Bearer {token}")

    # Public API ------------------------------------------------------------

    def execute(self, page_id: str, command: Mapping[str, Any]) -> Any:
        """Send one raw command and return its ``result`` value."""
        if not page_id:
            raise ValueError("page_id is required")
        url = f"{self.base_url}/api/browser/{page_id}"
        body = {key: value for key, value in command.items() if value is not None}
        response = self._session.post(url, json=body, timeout=self.timeout)
        data = self._parse_json(response)
        if not data.get("success"):
            raise BrowseTogetherClientError(
                str(data.get("error") or "Unknown error occurred"),
                status_code=response.status_code,
            )
        return data.get("result")

    def goto(self, page_id: str, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.execute(page_id, {"action": "goto", "url": url, "params": params})

    def click(
        self,
        page_id: str,
        selector: str,
        *,
        frame: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.execute(page_id, {"action": "click", "selector": selector, "frame": frame, "params": params})

    def fill(
        self,
        page_id: str,
        selector: str,
        text: str,
        *,
        frame: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.execute(
            page_id,
            {"action": "fill", "selector": selector, "text": text, "frame": frame, "params": params},
        )

    def screenshot(self, page_id: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Return the screenshot as a base64 string."""
        result = self.execute(page_id, {"action": "screenshot", "params": params}) or {}
        return str(result.get("image") or "")

    def content(self, page_id: str, *, frame: Optional[str] = None) -> str:
        return str(self.execute(page_id, {"action": "content", "frame": frame}) or "")

    def title(self, page_id: str) -> str:
        return str(self.execute(page_id, {"action": "title"}) or "")

    def evaluate(self, page_id: str, expression: str, *, frame: Optional[str] = None) -> Any:
        return self.execute(page_id, {"action": "evaluate", "expression": expression, "frame": frame})

    def fetch(
        self,
        page_id: str,
        url: str,
        fetch_options: Optional[Dict[str, Any]] = None,
        response_type: Literal["text", "json"] = "text",
    ) -> Any:
        """Run ``fetch()`` inside the page so the browser's cookies apply."""
        if response_type not in ("text", "json"):
            raise ValueError("response_type must be 'text' or 'json'")
        expression = (
            f"fetch({json.dumps(url)}, {json.dumps(fetch_options or {})})"
            ".then(response => {"
            " if (!response.ok) { throw new Error('HTTP error ' + response.status); }"
            f" return response.{response_type}();"
            " })"
        )
        return self.evaluate(page_id, expression)

    def close_page(self, page_id: str) -> None:
        self.execute(page_id, {"action": "closePage"})

    def list_pages(self) -> List[str]:
        response = self._session.get(f"{self.base_url}/api/browser/pages", timeout=self.timeout)
        data = self._parse_json(response)
        if not data.get("success"):
            raise BrowseTogetherClientError(
                str(data.get("error") or "Unknown error occurred"),
                status_code=response.status_code,
            )
        return [str(page) for page in data.get("pages") or []]

    # Internal helpers ------------------------------------------------------

    def _parse_json(self, response: Response) -> MutableMapping[str, Any]:
        self._ensure_ok(response)
        try:
            return response.json()  # type: ignore[return-value]
        except json.JSONDecodeError as exc:  # pragma: no cover - network edge case
            raise BrowseTogetherClientError(
                f"Invalid JSON response from {response.url}",
                status_code=response.status_code,
            ) from exc

    def _ensure_ok(self, response: Response) -> None:
        if response.status_code == 200:
            return
        detail: Any
        try:
            payload = response.json()
            detail = payload.get("error") or payload
        except Exception:  # pragma: no cover - fallback path
            detail = response.text
        raise BrowseTogetherClientError(
            f"Request to {response.url} failed with status {response.status_code}: {detail!r}",
            status_code=response.status_code,
        )
