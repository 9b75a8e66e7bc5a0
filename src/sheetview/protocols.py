"""Protocol interfaces for swappable components.

The refresh cache references these protocols, not the concrete adapters.
This allows:
- Tests to drive the cache with in-memory sources
- The same cache to serve raw HTML tabs and structured row matrices
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar

if TYPE_CHECKING:
    from sheetview.models.cache import TabDescriptor

T = TypeVar("T")


class RefreshSource(Protocol[T]):
    """Upstream spreadsheet adapter feeding one RefreshCache instance."""

    async def fetch_tabs(self) -> list[TabDescriptor]: ...

    async def fetch_payload(self, tab: TabDescriptor) -> T: ...

    def empty_payload(self) -> T: ...
