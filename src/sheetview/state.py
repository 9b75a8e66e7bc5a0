"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan
context manager) and reached by every request handler through
``request.app.state.app_state``.

A cache is only built when its spreadsheet is configured; handlers check
the configuration first and report what is missing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from sheetview.cache import RefreshCache
    from sheetview.config import Settings


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every request handler."""

    settings: Settings
    http_client: httpx.AsyncClient | None = None

    # Roll-call tabs as published HTML, keyed by gid
    html_cache: RefreshCache[str] | None = None

    # Help-needed sheet as raw row matrices, keyed by numeric sheetId
    sos_cache: RefreshCache[list[list[str]]] | None = None
