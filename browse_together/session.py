from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from playwright.async_api import BrowserContext, Page, async_playwright
from playwright_stealth import Stealth

from .config import BrowserLaunchOptions
from .errors import BrowserLaunchError, SessionNotStartedError

logger = logging.getLogger(__name__)

STEALTH_ENGINES = {"chromium"}


class BrowserSession:
    """Owns the single persistent browser context of the process.

    The context is backed by an on-disk profile so cookies and logins survive
    restarts. ``start`` launches it once; later calls return the same context.
    """

    def __init__(
        self,
        options: BrowserLaunchOptions,
        *,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self._options = options
        self._playwright_factory = playwright_factory
        self._driver: Any = None
        self._context: BrowserContext | None = None
        self._default_page: Page | None = None
        self._stealth: Stealth | None = (
            Stealth() if options.browser_type in STEALTH_ENGINES else None
        )
        self._lock = asyncio.Lock()

    @property
    def options(self) -> BrowserLaunchOptions:
        return self._options

    @property
    def is_started(self) -> bool:
        return self._context is not None

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise SessionNotStartedError()
        return self._context

    @property
    def default_page(self) -> Page | None:
        return self._default_page

    async def start(self) -> BrowserContext:
        async with self._lock:
            if self._context is not None:
                return self._context
            try:
                await self._launch()
            except Exception as exc:  # noqa: BLE001
                self._context = None
                self._default_page = None
                await self._stop_driver()
                raise BrowserLaunchError(f"Failed to launch {self._options.browser_type}: {exc}") from exc
            return self._context

    async def _launch(self) -> None:
        profile_dir = Path(self._options.profile_dir).expanduser()
        profile_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            "Starting %s context (profile=%s, headless=%s)",
            self._options.browser_type,
            profile_dir,
            self._options.headless,
        )
        self._driver = await self._playwright_factory().start()
        engine = getattr(self._driver, self._options.browser_type)
        self._context = await engine.launch_persistent_context(
            str(profile_dir),
            headless=self._options.headless,
            viewport=None,
            args=list(self._options.args),
            ignore_default_args=list(self._options.ignore_default_args),
        )

        # A persistent context usually opens with one blank tab already.
        existing = list(self._context.pages)
        page = existing[0] if existing else await self._context.new_page()
        await self.prepare_page(page)
        self._default_page = page
        logger.info("Browser initialized with default page")

    async def new_page(self) -> Page:
        return await self.context.new_page()

    async def prepare_page(self, page: Page) -> None:
        """Page initialisation hook, run once for every page handed out."""
        if self._stealth is not None:
            await self._stealth.apply_stealth_async(page)

    async def close(self) -> None:
        async with self._lock:
            context, self._context = self._context, None
            self._default_page = None
            try:
                if context is not None:
                    logger.info("Closing browser context")
                    await context.close()
            finally:
                await self._stop_driver()

    async def _stop_driver(self) -> None:
        driver, self._driver = self._driver, None
        if driver is not None:
            await driver.stop()
