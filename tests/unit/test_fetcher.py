"""Unit tests for sheetview.fetcher."""

from __future__ import annotations

import httpx
import pytest
import respx

from sheetview.config import FetcherSettings
from sheetview.errors import ErrorCode, SheetViewError
from sheetview.fetcher import Fetcher, build_http_client


class TestBuildHttpClient:
    async def test_uses_settings(self) -> None:
        client = build_http_client(FetcherSettings(timeout_seconds=12.5, user_agent="test/1"))
        try:
            assert client.timeout.read == 12.5
            assert client.headers["User-Agent"] == "test/1"
            assert client.follow_redirects is True
        finally:
            await client.aclose()


class TestFetcher:
    async def test_fetch_text(self) -> None:
        with respx.mock:
            respx.get("https://example.com/page").mock(
                return_value=httpx.Response(200, text="<html>ok</html>")
            )
            async with httpx.AsyncClient() as client:
                result = await Fetcher(client).fetch_text("https://example.com/page")
        assert result == "<html>ok</html>"

    async def test_fetch_json(self) -> None:
        with respx.mock:
            respx.get("https://example.com/api").mock(
                return_value=httpx.Response(200, json={"sheets": []})
            )
            async with httpx.AsyncClient() as client:
                result = await Fetcher(client).fetch_json("https://example.com/api")
        assert result == {"sheets": []}

    async def test_passes_headers(self) -> None:
        with respx.mock:
            route = respx.get("https://example.com/api").mock(
                return_value=httpx.Response(200, json={})
            )
            async with httpx.AsyncClient() as client:
                await Fetcher(client).fetch_json(
                    "https://example.com/api", headers={"Authorization": "Bearer t"}
                )
        assert route.calls.last.request.headers["authorization"] == "Bearer t"

    async def test_non_success_status(self) -> None:
        with respx.mock:
            respx.get("https://example.com/error").mock(return_value=httpx.Response(500))
            async with httpx.AsyncClient() as client:
                with pytest.raises(SheetViewError) as exc_info:
                    await Fetcher(client).fetch_text("https://example.com/error")
        assert exc_info.value.code == ErrorCode.UPSTREAM_FETCH_FAILED
        assert exc_info.value.message == "HTTP 500 fetching https://example.com/error"

    async def test_network_error(self) -> None:
        with respx.mock:
            respx.get("https://example.com/timeout").mock(
                side_effect=httpx.ConnectError("Connection refused")
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(SheetViewError) as exc_info:
                    await Fetcher(client).fetch_text("https://example.com/timeout")
        assert exc_info.value.code == ErrorCode.UPSTREAM_FETCH_FAILED
        assert "Connection refused" in exc_info.value.message

    async def test_invalid_json(self) -> None:
        with respx.mock:
            respx.get("https://example.com/api").mock(
                return_value=httpx.Response(200, text="<html>login</html>")
            )
            async with httpx.AsyncClient() as client:
                with pytest.raises(SheetViewError) as exc_info:
                    await Fetcher(client).fetch_json("https://example.com/api")
        assert exc_info.value.code == ErrorCode.UPSTREAM_FETCH_FAILED
