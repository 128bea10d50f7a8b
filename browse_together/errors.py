from __future__ import annotations

from typing import Iterable


class BrowseTogetherError(RuntimeError):
    """Base error for browser proxy failures."""


class ConfigError(BrowseTogetherError):
    """Raised when the resolved configuration does not validate."""


class BrowserLaunchError(BrowseTogetherError):
    """The persistent browser context could not be started."""


class SessionNotStartedError(BrowseTogetherError):
    def __init__(self) -> None:
        super().__init__("Browser context not initialized")


class FrameNotFoundError(BrowseTogetherError):
    def __init__(self, frame: str, available: Iterable[str]) -> None:
        self.frame = frame
        self.available = list(available)
        listing = ", ".join(self.available) if self.available else "(none)"
        super().__init__(f"Frame '{frame}' not found. Available frames: {listing}")
