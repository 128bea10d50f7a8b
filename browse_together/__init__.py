"""Share one persistent, headful browser session with many HTTP clients."""

from __future__ import annotations

__version__ = "0.1.0"

from .client import BrowseTogetherClient, BrowseTogetherClientError

__all__ = ["BrowseTogetherClient", "BrowseTogetherClientError", "__version__"]
