"""HTTP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the Starlette lifespan context manager
- Register routes and turn handler results / SheetViewErrors into responses
- Start uvicorn
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.applications import Starlette
from starlette.responses import HTMLResponse, JSONResponse
from starlette.routing import Route

import sheetview.handlers.sheets as h_sheets
import sheetview.handlers.sos as h_sos
from sheetview import __version__
from sheetview.cache import RefreshCache
from sheetview.config import Settings
from sheetview.errors import SheetViewError
from sheetview.fetcher import Fetcher, build_http_client
from sheetview.htmlview import PublishedSheetSource
from sheetview.sheets_api import GoogleSheetsSource
from sheetview.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.requests import Request
    from starlette.responses import Response

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# State construction
# ---------------------------------------------------------------------------


def build_state(settings: Settings) -> AppState:
    """Wire the HTTP client, adapters and caches for the configured sheets."""
    http_client = build_http_client(settings.fetcher)
    fetcher = Fetcher(http_client)
    state = AppState(settings=settings, http_client=http_client)

    cache_options = {
        "ttl_seconds": settings.cache.ttl_seconds,
        "max_stale_seconds": settings.cache.max_stale_seconds,
        "serve_stale": settings.cache.serve_stale,
    }

    if settings.sheet_id:
        state.html_cache = RefreshCache(
            PublishedSheetSource(fetcher, settings.sheet_id),
            name="sheets",
            **cache_options,
        )
    else:
        log.warning("cache_disabled", cache="sheets", missing="SHEET_ID")

    if (
        settings.sos_sheet_id
        and settings.google_service_account_email
        and settings.google_private_key
    ):
        state.sos_cache = RefreshCache(
            GoogleSheetsSource(
                fetcher,
                settings.sos_sheet_id,
                client_email=settings.google_service_account_email,
                private_key=settings.google_private_key,
            ),
            name="sos",
            **cache_options,
        )
    else:
        log.warning("cache_disabled", cache="sos")

    return state


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)
    log.info("server_starting", version=__version__)

    state = build_state(settings)
    app.state.app_state = state

    log.info(
        "server_started",
        version=__version__,
        sheets_enabled=state.html_cache is not None,
        sos_enabled=state.sos_cache is not None,
    )
    try:
        yield
    finally:
        if state.http_client is not None:
            await state.http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def _error_response(error: SheetViewError) -> JSONResponse:
    return JSONResponse(error.to_dict(), status_code=error.status_code)


def _unexpected_error_response() -> JSONResponse:
    return JSONResponse({"error": "Internal server error"}, status_code=500)


async def sheets_endpoint(request: Request) -> Response:
    """GET /api/sheets: roll-call tab list, or one tab's HTML with ?gid=."""
    state: AppState = request.app.state.app_state
    try:
        result = await h_sheets.handle(request.query_params.get("gid"), state)
    except SheetViewError as exc:
        log.warning("request_error", route="sheets", code=exc.code, message=exc.message)
        return _error_response(exc)
    except Exception:
        log.error("request_unexpected_error", route="sheets", exc_info=True)
        return _unexpected_error_response()

    if isinstance(result.body, str):
        return HTMLResponse(result.body, headers=result.headers)
    return JSONResponse(result.body, headers=result.headers)


async def sos_endpoint(request: Request) -> Response:
    """GET /api/sos: help-needed tab list, or one tab's records with ?id=."""
    state: AppState = request.app.state.app_state
    params = request.query_params
    try:
        body = await h_sos.handle(
            params.get("id"),
            state,
            status=params.get("status") or None,
            query=params.get("q") or None,
        )
    except SheetViewError as exc:
        log.warning("request_error", route="sos", code=exc.code, message=exc.message)
        return _error_response(exc)
    except Exception:
        log.error("request_unexpected_error", route="sos", exc_info=True)
        return _unexpected_error_response()

    return JSONResponse(body)


async def health_endpoint(request: Request) -> Response:
    return JSONResponse({"status": "ok", "version": __version__})


def create_app(*, with_lifespan: bool = True) -> Starlette:
    """Build the ASGI app. Tests pass ``with_lifespan=False`` and set
    ``app.state.app_state`` themselves."""
    return Starlette(
        routes=[
            Route("/api/sheets", sheets_endpoint, methods=["GET"]),
            Route("/api/sos", sos_endpoint, methods=["GET"]),
            Route("/healthz", health_endpoint, methods=["GET"]),
        ],
        lifespan=lifespan if with_lifespan else None,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)

    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


if __name__ == "__main__":
    main()
