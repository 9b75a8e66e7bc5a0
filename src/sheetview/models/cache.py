from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class TabDescriptor(BaseModel):
    """One tab (sheet page) of a spreadsheet."""

    model_config = ConfigDict(frozen=True)

    name: str
    id: int | str  # numeric sheetId (Sheets API) or gid string (htmlview)
    page_url: str | None = Field(default=None, exclude=True)  # htmlview only


@dataclass(frozen=True)
class Snapshot(Generic[T]):
    """Atomically published cache contents.

    ``payloads`` holds an entry for every tab in ``tabs``; a tab whose fetch
    failed carries the source's empty payload.
    """

    fetched_at: datetime
    tabs: tuple[TabDescriptor, ...]
    payloads: Mapping[str, T]

    def find_tab(self, tab_id: int | str) -> TabDescriptor | None:
        """Look up a tab by id.

        Numeric ids match by value, so ``"0123"`` finds sheetId ``123``. Gid
        strings match exactly.
        """
        key = str(tab_id).strip()
        try:
            number: int | None = int(key)
        except ValueError:
            number = None
        for tab in self.tabs:
            if isinstance(tab.id, int):
                if tab.id == number:
                    return tab
            elif tab.id == key:
                return tab
        return None


@dataclass(frozen=True)
class TabListing:
    tabs: tuple[TabDescriptor, ...]
    age: float  # seconds since the snapshot was fetched
    cache_hit: bool


@dataclass(frozen=True)
class TabPayload(Generic[T]):
    tab: TabDescriptor
    payload: T
    age: float
    cache_hit: bool


def normalise_tab_param(value: str | None) -> str | None:
    """Strip a ``?gid=`` / ``?id=`` query value; blank means no tab requested."""
    if value is None:
        return None
    return value.strip() or None
