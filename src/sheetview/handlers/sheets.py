"""Request handler for the roll-call sheet (published HTML tabs).

Receives AppState, checks configuration, reads the HTML refresh cache and
returns a plain result. No Starlette imports; server.py turns results into
responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from sheetview.errors import missing_env
from sheetview.models.cache import normalise_tab_param

if TYPE_CHECKING:
    from sheetview.state import AppState


@dataclass(frozen=True)
class HandlerResult:
    """Body plus cache headers for one successful request."""

    body: dict | str
    headers: dict[str, str] = field(default_factory=dict)


def cache_headers(age: float, cache_hit: bool) -> dict[str, str]:
    return {
        "X-Cache": "HIT" if cache_hit else "MISS",
        "X-Cache-Age": f"{round(age)}s",
    }


async def handle(gid: str | None, state: AppState) -> HandlerResult:
    """Handle GET /api/sheets[?gid=...]."""
    log = structlog.get_logger().bind(handler="sheets", gid=gid)

    if not state.settings.sheet_id:
        raise missing_env("SHEET_ID")
    if state.html_cache is None:
        raise RuntimeError("HTML cache not initialized")

    gid = normalise_tab_param(gid)
    if gid is not None:
        result = await state.html_cache.get_tab(gid)
        log.info("serving_tab", age=round(result.age), cache_hit=result.cache_hit)
        headers = cache_headers(result.age, result.cache_hit)
        headers["Cache-Control"] = f"public, max-age={int(state.html_cache.ttl_seconds)}"
        return HandlerResult(body=result.payload, headers=headers)

    listing = await state.html_cache.list_tabs()
    log.info("serving_tab_list", age=round(listing.age), tab_count=len(listing.tabs))
    return HandlerResult(
        body={
            "tabs": [tab.model_dump(mode="json") for tab in listing.tabs],
            "age": round(listing.age),
        },
        headers=cache_headers(listing.age, listing.cache_hit),
    )
