"""Adapter for the authenticated Google Sheets v4 REST API.

Authenticates as a service account (the sheet must be shared with its
email). google-auth mints and refreshes the OAuth token; its refresh is a
blocking call, so it runs in a worker thread. The REST calls themselves go
through the shared async Fetcher.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import quote

import google.auth.transport.requests
import structlog
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account

from sheetview.errors import ErrorCode, SheetViewError
from sheetview.models.cache import TabDescriptor

if TYPE_CHECKING:
    from sheetview.fetcher import Fetcher

log = structlog.get_logger()

SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
SHEETS_READONLY_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"
TOKEN_URI = "https://oauth2.googleapis.com/token"

# Columns fetched per tab.
DEFAULT_COLUMNS = "A:Z"


def a1_range(tab_name: str, columns: str = DEFAULT_COLUMNS) -> str:
    """Quote a tab name for A1 notation: ``'Tab ''1'''!A:Z``."""
    escaped = tab_name.replace("'", "''")
    return f"'{escaped}'!{columns}"


def build_credentials(client_email: str, private_key: str) -> service_account.Credentials:
    """Create read-only service-account credentials from raw env values."""
    try:
        return service_account.Credentials.from_service_account_info(
            {
                "client_email": client_email,
                "private_key": private_key,
                "token_uri": TOKEN_URI,
            },
            scopes=[SHEETS_READONLY_SCOPE],
        )
    except (ValueError, GoogleAuthError) as exc:
        raise SheetViewError(
            code=ErrorCode.CONFIGURATION_INVALID,
            message=f"Invalid Google service account credentials: {exc}",
        ) from exc


class GoogleSheetsSource:
    """RefreshSource[list[list[str]]] reading a spreadsheet via the Sheets API."""

    def __init__(
        self,
        fetcher: Fetcher,
        spreadsheet_id: str,
        *,
        client_email: str,
        private_key: str,
    ) -> None:
        self._fetcher = fetcher
        self._spreadsheet_id = spreadsheet_id
        self._client_email = client_email
        self._private_key = private_key
        self._credentials: service_account.Credentials | None = None
        self._token_lock = asyncio.Lock()

    async def _auth_headers(self) -> dict[str, str]:
        async with self._token_lock:
            if self._credentials is None:
                log.info("google_auth_initialized", client_email=self._client_email)
                self._credentials = build_credentials(self._client_email, self._private_key)

            credentials = self._credentials
            if not credentials.valid:
                try:
                    await asyncio.to_thread(
                        credentials.refresh, google.auth.transport.requests.Request()
                    )
                except GoogleAuthError as exc:
                    raise SheetViewError(
                        code=ErrorCode.UPSTREAM_FETCH_FAILED,
                        message=f"Google authentication failed: {exc}",
                    ) from exc
                log.debug("google_token_refreshed", expiry=str(credentials.expiry))

        return {"Authorization": f"Bearer {credentials.token}"}

    async def fetch_tabs(self) -> list[TabDescriptor]:
        log.info("sheets_api_tabs_fetch_started", spreadsheet_id=self._spreadsheet_id)
        url = f"{SHEETS_API_BASE}/{self._spreadsheet_id}?fields=sheets.properties(sheetId,title)"
        data = await self._fetcher.fetch_json(url, headers=await self._auth_headers())

        tabs: list[TabDescriptor] = []
        for sheet in data.get("sheets") or []:
            properties = sheet.get("properties") or {}
            tabs.append(
                TabDescriptor(
                    name=properties.get("title") or "Untitled",
                    id=int(properties.get("sheetId") or 0),
                )
            )
        return tabs

    async def fetch_payload(self, tab: TabDescriptor) -> list[list[str]]:
        log.debug("sheets_api_values_fetch_started", tab=tab.name, sheet_id=tab.id)
        cell_range = quote(a1_range(tab.name), safe="")
        url = f"{SHEETS_API_BASE}/{self._spreadsheet_id}/values/{cell_range}"
        data = await self._fetcher.fetch_json(url, headers=await self._auth_headers())
        return [[str(cell) for cell in row] for row in data.get("values") or []]

    def empty_payload(self) -> list[list[str]]:
        return []
