"""Shared test fixtures for the sheetview test suite."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from sheetview.errors import ErrorCode, SheetViewError
from sheetview.models.cache import TabDescriptor


class FakeClock:
    """Manually advanced wall clock for RefreshCache."""

    def __init__(self) -> None:
        self.now = datetime(2025, 11, 27, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeSource:
    """In-memory RefreshSource recording every upstream call.

    Set ``gate`` to hold ``fetch_tabs`` until the event is set, ``tabs_error``
    to fail the tab listing, and ``failing_tabs`` to fail individual payloads.
    """

    def __init__(self, tabs: list[TabDescriptor], payloads: dict[str, Any], empty: Any) -> None:
        self.tabs = tabs
        self.payloads = payloads
        self.empty = empty
        self.gate: asyncio.Event | None = None
        self.tabs_error: Exception | None = None
        self.failing_tabs: set[str] = set()
        self.tab_calls = 0
        self.payload_calls: list[str] = []

    async def fetch_tabs(self) -> list[TabDescriptor]:
        self.tab_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.tabs_error is not None:
            raise self.tabs_error
        return list(self.tabs)

    async def fetch_payload(self, tab: TabDescriptor) -> Any:
        key = str(tab.id)
        self.payload_calls.append(key)
        if key in self.failing_tabs:
            raise SheetViewError(
                code=ErrorCode.UPSTREAM_FETCH_FAILED,
                message=f"HTTP 500 fetching tab {key}",
            )
        return self.payloads[key]

    def empty_payload(self) -> Any:
        return self.empty


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def html_source() -> FakeSource:
    """Two roll-call tabs served as HTML, keyed by gid."""
    return FakeSource(
        tabs=[
            TabDescriptor(name="A座", id="0", page_url="https://docs.google.com/a"),
            TabDescriptor(name="B座", id="1846", page_url="https://docs.google.com/b"),
        ],
        payloads={"0": "<table>A</table>", "1846": "<table>B</table>"},
        empty="",
    )


@pytest.fixture()
def sos_header() -> list[str]:
    return ["時間戳記", "A座/樓層/單位", "現時情況", "住戶情況", "消息來源", "通報人聯絡電話"]


@pytest.fixture()
def sos_rows(sos_header: list[str]) -> list[list[str]]:
    return [
        sos_header,
        ["2025年11月27日 上午09:38:26", "1座3樓A", "求救", "長者一名", "家人", "9123 4567"],
        ["2025年11月27日 下午01:05:00", "2座5樓B", "平安", "", "鄰居", ""],
        ["2025年11月27日 下午09:38:26", "3座12樓C", "未聯絡上", "", "", ""],
        ["not a date", "5座1樓D", "", "", "", ""],
    ]


@pytest.fixture()
def sos_source(sos_rows: list[list[str]]) -> FakeSource:
    """Two help-needed tabs as raw row matrices, keyed by numeric sheetId."""
    return FakeSource(
        tabs=[
            TabDescriptor(name="宏福苑", id=0),
            TabDescriptor(name="其他", id=123456),
        ],
        payloads={"0": sos_rows, "123456": [sos_rows[0]]},
        empty=[],
    )
