from __future__ import annotations

import json
import logging
import secrets
import signal
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .config import ProxyConfig, configure_logging, load_config, log_active_configuration
from .dispatcher import CommandDispatcher
from .errors import BrowserLaunchError, ConfigError
from .pages import PageRegistry
from .protocol import parse_command
from .session import BrowserSession
from .shutdown import DEFAULT_GRACE_PERIOD_SEC, ShutdownCoordinator

logger = logging.getLogger(__name__)

DEFAULT_PAGE_ID = "default"
AVAILABLE_ENDPOINTS = [
    "/api/browser/:pageId (POST)",
    "/api/browser/pages (GET)",
]


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"success": False, "error": message, **extra}, status_code=status_code)


def _bearer_token(header: str | None) -> str | None:
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _token_matches(header: str | None, expected: str) -> bool:
    token = _bearer_token(header)
    if token is None:
        return False
    return secrets.compare_digest(token.encode("utf-8"), expected.encode("utf-8"))


def _validation_details(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())) or "body",
            "message": str(error.get("msg")),
        }
        for error in exc.errors()
    ]


def create_app(
    config: ProxyConfig,
    *,
    session: BrowserSession | None = None,
    grace_period_sec: float = DEFAULT_GRACE_PERIOD_SEC,
) -> FastAPI:
    """Composition root: wires session, registry, dispatcher and shutdown."""
    session = session or BrowserSession(config.launch_options())
    registry = PageRegistry(session)
    coordinator = ShutdownCoordinator(registry, session, grace_period_sec=grace_period_sec)
    dispatcher = CommandDispatcher(registry, is_shutting_down=lambda: coordinator.is_shutting_down)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Initializing browser proxy service")
        try:
            await session.start()
        except BrowserLaunchError:
            logger.exception("Browser could not be started")
            raise
        if session.default_page is not None:
            registry.register(DEFAULT_PAGE_ID, session.default_page)
        logger.info("Browser proxy service ready on %s:%s", config.host, config.port)
        try:
            yield
        finally:
            await coordinator.shutdown()

    app = FastAPI(title="Browse Together", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.session = session
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.coordinator = coordinator

    @app.middleware("http")
    async def require_bearer_token(request: Request, call_next):
        if request.url.path.startswith("/api/"):
            if not _token_matches(request.headers.get("authorization"), config.browser_api_token):
                logger.warning("Rejected unauthenticated request to %s", request.url.path)
                response = _error(401, "Unauthorized")
                response.headers["WWW-Authenticate"] = "Bearer"
                return response
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code in (404, 405):
            return _error(404, "Not found", availableEndpoints=AVAILABLE_ENDPOINTS)
        return _error(exc.status_code, str(exc.detail))

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/browser/pages")
    async def list_pages(request: Request) -> dict[str, Any]:
        return {"success": True, "pages": request.app.state.registry.list_pages()}

    @app.post("/api/browser/{page_id}")
    async def execute_command(page_id: str, request: Request):
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(400, "Request body must be valid JSON")
        try:
            command = parse_command(payload)
        except ValidationError as exc:
            details = _validation_details(exc)
            summary = "; ".join(f"{item['field']}: {item['message']}" for item in details)
            return _error(400, f"Invalid command: {summary}", details=details)

        result = await request.app.state.dispatcher.execute(page_id, command)
        return result.to_dict()

    return app


def run(argv: Sequence[str] | None = None) -> int:
    try:
        config = load_config(argv)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    configure_logging(config)
    log_active_configuration(config)
    app = create_app(config)
    _exit_on_sigterm(app.state.coordinator)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    return 0 if app.state.coordinator.completed else 1


def _exit_on_sigterm(coordinator: ShutdownCoordinator) -> None:
    """Turn SIGTERM into a normal exit once the lifespan shutdown has run.

    uvicorn restores the handler it found and re-raises the signal after a
    graceful stop; with the default handler the process would die of it.
    """

    def _handle(signum: int, frame: Any) -> None:
        sys.exit(0 if coordinator.completed else 1)

    signal.signal(signal.SIGTERM, _handle)


def main() -> None:
    sys.exit(run())
