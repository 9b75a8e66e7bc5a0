"""Integration tests for GET /api/sos."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    import httpx

    from conftest import FakeClock, FakeSource
    from sheetview.state import AppState


class TestTabList:
    async def test_lists_tabs_with_numeric_ids(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos")
        assert response.status_code == 200
        assert response.json() == {
            "tabs": [{"name": "宏福苑", "id": 0}, {"name": "其他", "id": 123456}],
            "cacheAge": 0,
        }


class TestTabRecords:
    async def test_projected_items(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos", params={"id": "0"})
        assert response.status_code == 200
        body = response.json()

        assert body["name"] == "宏福苑"
        assert body["id"] == 0
        assert body["cacheAge"] == 0
        assert [item["location"] for item in body["items"]] == ["3座12樓C", "1座3樓A", "5座1樓D"]
        assert all("平安" not in item["status"] for item in body["items"])
        assert set(body["items"][0]) == {
            "timestamp",
            "timestampInstant",
            "location",
            "status",
            "details",
            "source",
        }
        assert body["statuses"] == ["未聯絡上", "求救"]

    async def test_header_only_tab_has_no_items(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos", params={"id": "123456"})
        assert response.status_code == 200
        assert response.json()["items"] == []

    async def test_status_filter(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos", params={"id": "0", "status": "求救"})
        body = response.json()
        assert [item["location"] for item in body["items"]] == ["1座3樓A"]
        assert body["statuses"] == ["未聯絡上", "求救"]

    async def test_location_query(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos", params={"id": "0", "q": "12樓"})
        assert [item["location"] for item in response.json()["items"]] == ["3座12樓C"]

    async def test_projection_reflects_refreshed_rows(
        self, client: httpx.AsyncClient, sos_source: FakeSource, clock: FakeClock
    ) -> None:
        await client.get("/api/sos", params={"id": "0"})

        header = sos_source.payloads["0"][0]
        sos_source.payloads["0"] = [header, ["2025年11月28日 上午08:00:00", "7座2樓", "求救"]]
        clock.advance(301)
        response = await client.get("/api/sos", params={"id": "0"})

        assert [item["location"] for item in response.json()["items"]] == ["7座2樓"]
        assert sos_source.tab_calls == 2

    async def test_unknown_id_is_404(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos", params={"id": "99"})
        assert response.status_code == 404
        assert response.json()["error"] == "Sheet with id 99 not found"

    @pytest.mark.parametrize("tab_id", ["", " "])
    async def test_blank_id_lists_tabs(self, client: httpx.AsyncClient, tab_id: str) -> None:
        response = await client.get("/api/sos", params={"id": tab_id})
        assert response.status_code == 200
        assert response.json() == {
            "tabs": [{"name": "宏福苑", "id": 0}, {"name": "其他", "id": 123456}],
            "cacheAge": 0,
        }

    async def test_padded_id_is_trimmed(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos", params={"id": " 123456 "})
        assert response.status_code == 200
        assert response.json()["id"] == 123456

    async def test_leading_zeros_match_numeric_id(self, client: httpx.AsyncClient) -> None:
        response = await client.get("/api/sos", params={"id": "0123456"})
        assert response.status_code == 200
        assert response.json()["name"] == "其他"


class TestConfiguration:
    async def test_missing_sos_sheet_id(
        self, client: httpx.AsyncClient, app_state: AppState, sos_source: FakeSource
    ) -> None:
        app_state.settings.sos_sheet_id = None
        response = await client.get("/api/sos")
        assert response.status_code == 500
        assert response.json()["error"] == "SOS_SHEET_ID environment variable not configured"
        assert sos_source.tab_calls == 0

    async def test_missing_private_key(
        self, client: httpx.AsyncClient, app_state: AppState
    ) -> None:
        app_state.settings.google_private_key = None
        response = await client.get("/api/sos", params={"id": "0"})
        assert response.status_code == 500
        assert response.json() == {
            "error": "GOOGLE_PRIVATE_KEY environment variable not configured",
            "code": "CONFIGURATION_MISSING",
        }
