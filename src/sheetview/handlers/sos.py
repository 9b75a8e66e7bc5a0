"""Request handler for the help-needed (SOS) sheet.

Rows are cached raw and projected on every read, so a change to the keyword
table or filter applies without waiting for the next refresh.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from sheetview.errors import missing_env
from sheetview.models.cache import normalise_tab_param
from sheetview.models.sos import SOSTabOutput
from sheetview.projector import distinct_statuses, filter_records, project_rows

if TYPE_CHECKING:
    from sheetview.state import AppState


def _check_configuration(state: AppState) -> None:
    settings = state.settings
    if not settings.sos_sheet_id:
        raise missing_env("SOS_SHEET_ID")
    if not settings.google_service_account_email:
        raise missing_env("GOOGLE_SERVICE_ACCOUNT_EMAIL")
    if not settings.google_private_key:
        raise missing_env("GOOGLE_PRIVATE_KEY")


async def handle(
    tab_id: str | None,
    state: AppState,
    *,
    status: str | None = None,
    query: str | None = None,
) -> dict:
    """Handle GET /api/sos[?id=...&status=...&q=...]."""
    log = structlog.get_logger().bind(handler="sos", tab_id=tab_id)

    _check_configuration(state)
    if state.sos_cache is None:
        raise RuntimeError("SOS cache not initialized")

    tab_id = normalise_tab_param(tab_id)
    if tab_id is None:
        listing = await state.sos_cache.list_tabs()
        log.info("serving_tab_list", age=round(listing.age), tab_count=len(listing.tabs))
        return {
            "tabs": [tab.model_dump(mode="json") for tab in listing.tabs],
            "cacheAge": round(listing.age),
        }

    result = await state.sos_cache.get_tab(tab_id)
    records = project_rows(result.payload)
    items = filter_records(records, status=status, query=query)
    log.info(
        "serving_tab",
        age=round(result.age),
        cache_hit=result.cache_hit,
        records=len(records),
        returned=len(items),
    )

    output = SOSTabOutput(
        name=result.tab.name,
        id=result.tab.id,
        items=items,
        statuses=distinct_statuses(records),
        cache_age=round(result.age),
    )
    return output.model_dump(mode="json", by_alias=True)
