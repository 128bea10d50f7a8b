from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Awaitable, Callable, Dict, Protocol

from playwright.async_api import Page

logger = logging.getLogger(__name__)


class PageSource(Protocol):
    async def new_page(self) -> Page:  # pragma: no cover - protocol
        ...

    async def prepare_page(self, page: Page) -> None:  # pragma: no cover - protocol
        ...


async def is_page_valid(page: Page) -> bool:
    """Probe whether ``page`` still answers a round-trip; never raises."""
    try:
        if page.is_closed():
            return False
        await page.evaluate("1")
    except Exception:  # noqa: BLE001 - any failure means the target is gone
        return False
    return True


class PageRegistry:
    """Maps client-chosen page identifiers to live Playwright pages.

    Two channels invalidate an entry: the engine's ``close`` event and the
    validity probe run right before an entry is reused. Both end in the same
    identity-checked eviction, so either may fire first (or both) safely.
    """

    def __init__(
        self,
        session: PageSource,
        *,
        validity_probe: Callable[[Page], Awaitable[bool]] = is_page_valid,
    ) -> None:
        self._session = session
        self._probe = validity_probe
        self._pages: Dict[str, Page] = {}
        self._creation_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    def __contains__(self, page_id: object) -> bool:
        return page_id in self._pages

    def __len__(self) -> int:
        return len(self._pages)

    def get(self, page_id: str) -> Page | None:
        return self._pages.get(page_id)

    def list_pages(self) -> list[str]:
        return list(self._pages)

    def register(self, page_id: str, page: Page) -> None:
        """Adopt an already-open page, e.g. the session's default tab."""
        self._watch(page_id, page)
        self._pages[page_id] = page

    async def get_or_create(self, page_id: str) -> Page:
        lock = self._creation_locks.setdefault(page_id, asyncio.Lock())
        self._lock_users[page_id] += 1
        try:
            async with lock:
                page = self._pages.get(page_id)
                if page is not None:
                    if await self._probe(page):
                        return page
                    logger.info("Page %s no longer valid, replacing it", page_id)
                    self._evict(page_id, page)
                    await self._close_quietly(page_id, page)
                return await self._create(page_id)
        finally:
            # A lock lives only while someone holds or waits for it.
            self._lock_users[page_id] -= 1
            if not self._lock_users[page_id]:
                del self._lock_users[page_id]
                self._creation_locks.pop(page_id, None)

    async def close(self, page_id: str) -> bool:
        page = self._pages.pop(page_id, None)
        if page is None:
            return False
        logger.info("Closing page %s", page_id)
        await page.close()
        return True

    def drain(self) -> list[tuple[str, Page]]:
        """Evict every entry and hand the pages to the caller for closing."""
        entries = list(self._pages.items())
        self._pages.clear()
        return entries

    async def _create(self, page_id: str) -> Page:
        logger.info("Creating new page: %s", page_id)
        page = await self._session.new_page()
        self._watch(page_id, page)
        try:
            await self._session.prepare_page(page)
        except Exception:
            await page.close()
            raise
        self._pages[page_id] = page
        return page

    def _watch(self, page_id: str, page: Page) -> None:
        page.on("close", lambda _closed: self._evict(page_id, page))

    def _evict(self, page_id: str, page: Page) -> bool:
        if self._pages.get(page_id) is not page:
            return False
        del self._pages[page_id]
        logger.info("Evicted page %s", page_id)
        return True


    async def _close_quietly(self, page_id: str, page: Page) -> None:
        try:
            await page.close()
        except Exception:  # noqa: BLE001 - the handle is usually already dead
            logger.debug("Could not close stale page %s", page_id, exc_info=True)
