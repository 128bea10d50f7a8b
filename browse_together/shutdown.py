from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from .pages import PageRegistry

logger = logging.getLogger(__name__)

DEFAULT_GRACE_PERIOD_SEC = 0.5


class ClosableSession(Protocol):
    async def close(self) -> None:  # pragma: no cover - protocol
        ...


class ShutdownCoordinator:
    def __init__(
        self,
        registry: PageRegistry,
        session: ClosableSession,
        *,
        grace_period_sec: float = DEFAULT_GRACE_PERIOD_SEC,
    ) -> None:
        self._registry = registry
        self._session = session
        self._grace_period_sec = grace_period_sec
        self._shutting_down = False
        self._completed = False

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    @property
    def completed(self) -> bool:
        return self._completed

    async def shutdown(self) -> None:
        """Close every page, then the browser; later calls are no-ops."""
        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info("Shutting down browser proxy service")

        for page_id, page in self._registry.drain():
            try:
                logger.info("Closing page %s", page_id)
                await page.close()
            except Exception:  # noqa: BLE001 - keep sweeping
                logger.exception("Error closing page %s", page_id)

        try:
            await self._session.close()
        except Exception:  # noqa: BLE001
            logger.exception("Error closing browser context")

        logger.info("Browser proxy service shutdown complete")
        if self._grace_period_sec > 0:
            # Let buffered log writes reach their sinks before the process exits.
            await asyncio.sleep(self._grace_period_sec)
        self._completed = True
