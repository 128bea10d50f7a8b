from __future__ import annotations

import base64
import logging
from typing import Any, Awaitable, Callable, Dict

from playwright.async_api import Page

from .frames import resolve_scope
from .pages import PageRegistry
from .protocol import (
    BrowserCommand,
    ClickCommand,
    ClosePageCommand,
    ContentCommand,
    EvaluateCommand,
    ExecutionResult,
    FillCommand,
    GotoCommand,
    ScreenshotCommand,
    TitleCommand,
)

logger = logging.getLogger(__name__)

SHUTTING_DOWN_MESSAGE = "Server is shutting down"


class CommandDispatcher:
    """Runs validated commands against registry pages.

    Every outcome is folded into an ``ExecutionResult``; nothing raised by the
    registry or by Playwright escapes ``execute``.
    """

    def __init__(
        self,
        registry: PageRegistry,
        *,
        is_shutting_down: Callable[[], bool] = lambda: False,
    ) -> None:
        self._registry = registry
        self._is_shutting_down = is_shutting_down
        self._handlers: Dict[str, Callable[[Page, Any], Awaitable[Any]]] = {
            "goto": self._goto,
            "click": self._click,
            "fill": self._fill,
            "screenshot": self._screenshot,
            "content": self._content,
            "title": self._title,
            "evaluate": self._evaluate,
        }

    async def execute(self, page_id: str, command: BrowserCommand) -> ExecutionResult:
        if self._is_shutting_down():
            return ExecutionResult.failure(SHUTTING_DOWN_MESSAGE)

        action = getattr(command, "action", None)
        try:
            if isinstance(command, ClosePageCommand):
                await self._registry.close(page_id)
                return ExecutionResult.ok()

            handler = self._handlers.get(action)
            if handler is None:
                raise ValueError(f"Unsupported action: {action}")
            page = await self._registry.get_or_create(page_id)
            return ExecutionResult.ok(await handler(page, command))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Command %s failed for page %s: %s", action, page_id, exc)
            return ExecutionResult.failure(str(exc) or exc.__class__.__name__)

    async def _goto(self, page: Page, command: GotoCommand) -> dict[str, Any]:
        response = await page.goto(command.url, **command.engine_params(command.params))
        return {
            "url": page.url,
            "status": response.status if response is not None else None,
            "ok": response.ok if response is not None else None,
        }

    async def _click(self, page: Page, command: ClickCommand) -> None:
        scope = await resolve_scope(page, command.frame)
        await scope.click(command.selector, **command.engine_params(command.params))

    async def _fill(self, page: Page, command: FillCommand) -> None:
        scope = await resolve_scope(page, command.frame)
        await scope.fill(command.selector, command.text, **command.engine_params(command.params))

    async def _screenshot(self, page: Page, command: ScreenshotCommand) -> dict[str, str]:
        image = await page.screenshot(**command.engine_params(command.params))
        return {
            "image": base64.b64encode(image).decode("ascii"),
            "encoding": "base64",
        }

    async def _content(self, page: Page, command: ContentCommand) -> str:
        scope = await resolve_scope(page, command.frame)
        return await scope.content()

    async def _title(self, page: Page, command: TitleCommand) -> str:
        return await page.title()

    async def _evaluate(self, page: Page, command: EvaluateCommand) -> Any:
        scope = await resolve_scope(page, command.frame)
        return await scope.evaluate(command.expression)
