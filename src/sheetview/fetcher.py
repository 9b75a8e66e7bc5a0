"""Shared HTTP plumbing for the upstream spreadsheet adapters.

All network I/O to Google goes through a single Fetcher wrapping one
httpx.AsyncClient. The Fetcher receives the client via constructor
injection; the server lifespan owns the client lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from sheetview.errors import ErrorCode, SheetViewError

if TYPE_CHECKING:
    from sheetview.config import FetcherSettings

log = structlog.get_logger()


def build_http_client(settings: FetcherSettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        limits=httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        ),
    )


class Fetcher:
    """GET helper translating transport and status failures into SheetViewError."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _get(self, url: str, headers: dict[str, str] | None) -> httpx.Response:
        try:
            response = await self._client.get(url, headers=headers)
        except httpx.HTTPError as exc:
            raise SheetViewError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"Network error fetching {url}: {exc}",
            ) from exc

        if not response.is_success:
            raise SheetViewError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"HTTP {response.status_code} fetching {url}",
            )

        log.debug(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return response

    async def fetch_text(self, url: str, headers: dict[str, str] | None = None) -> str:
        response = await self._get(url, headers)
        return response.text

    async def fetch_json(self, url: str, headers: dict[str, str] | None = None) -> Any:
        response = await self._get(url, headers)
        try:
            return response.json()
        except ValueError as exc:
            raise SheetViewError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"Invalid JSON from {url}",
            ) from exc
