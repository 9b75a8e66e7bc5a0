"""In-memory spreadsheet cache with single-flight refresh.

One ``RefreshCache`` instance holds one ``Snapshot`` (tab list, per-tab
payloads, fetch instant) for one upstream source. Reads that find the
snapshot missing or older than the TTL trigger a full refresh; concurrent
reads share that refresh instead of starting their own, so upstream sees at
most one refresh per cache at a time.

A failed refresh with a previous snapshot to fall back on is logged and
absorbed: readers keep getting the previous snapshot. Without a previous
snapshot the error propagates to every reader awaiting that refresh. An
optional staleness ceiling turns the fallback off once the previous snapshot
is older than ``max_stale_seconds``.

The cache lives for the lifetime of the process and is never persisted.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Generic, TypeVar

import structlog

from sheetview.errors import ErrorCode, SheetViewError
from sheetview.models.cache import Snapshot, TabListing, TabPayload

if TYPE_CHECKING:
    from sheetview.models.cache import TabDescriptor
    from sheetview.protocols import RefreshSource

log = structlog.get_logger()

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RefreshCache(Generic[T]):
    """TTL cache over a ``RefreshSource`` with single-flight refresh."""

    def __init__(
        self,
        source: RefreshSource[T],
        *,
        name: str,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_stale_seconds: float | None = None,
        serve_stale: bool = False,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._source = source
        self._ttl = timedelta(seconds=ttl_seconds)
        self._max_stale = (
            timedelta(seconds=max_stale_seconds) if max_stale_seconds is not None else None
        )
        self._serve_stale = serve_stale
        self._clock = clock
        self._log = log.bind(cache=name)

        self._snapshot: Snapshot[T] | None = None
        self._refresh_task: asyncio.Task[Snapshot[T]] | None = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl.total_seconds()

    @property
    def snapshot(self) -> Snapshot[T] | None:
        return self._snapshot

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None

    def age_seconds(self, snapshot: Snapshot[T]) -> float:
        return (self._clock() - snapshot.fetched_at).total_seconds()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_tabs(self) -> TabListing:
        """Return the current tab list, refreshing first if needed."""
        snapshot, cache_hit = await self._ensure_fresh()
        return TabListing(
            tabs=snapshot.tabs,
            age=self.age_seconds(snapshot),
            cache_hit=cache_hit,
        )

    async def get_tab(self, tab_id: int | str) -> TabPayload[T]:
        """Return one tab's payload, refreshing first if needed.

        The id is looked up in the snapshot's tab list (numeric ids by value),
        never in the payload map. Raises ``SheetViewError(TAB_NOT_FOUND)``
        when the snapshot has no such tab.
        """
        snapshot, cache_hit = await self._ensure_fresh()
        tab = snapshot.find_tab(tab_id)
        if tab is None:
            raise SheetViewError(
                code=ErrorCode.TAB_NOT_FOUND,
                message=f"Sheet with id {tab_id} not found",
            )
        payload = snapshot.payloads.get(str(tab.id))
        return TabPayload(
            tab=tab,
            payload=payload if payload is not None else self._source.empty_payload(),
            age=self.age_seconds(snapshot),
            cache_hit=cache_hit,
        )

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _is_fresh(self, snapshot: Snapshot[T]) -> bool:
        return self._clock() - snapshot.fetched_at <= self._ttl

    def _past_ceiling(self, snapshot: Snapshot[T]) -> bool:
        if self._max_stale is None:
            return False
        return self._clock() - snapshot.fetched_at > self._max_stale

    async def _ensure_fresh(self) -> tuple[Snapshot[T], bool]:
        """Return a usable snapshot and whether it was served without a refresh."""
        snapshot = self._snapshot
        if snapshot is not None and self._is_fresh(snapshot):
            return snapshot, True

        task = self._start_refresh()

        if snapshot is not None and self._serve_stale and not self._past_ceiling(snapshot):
            self._log.info("cache_serving_stale", age=round(self.age_seconds(snapshot)))
            return snapshot, True

        # Shielded: a cancelled request must not cancel the shared refresh.
        published = await asyncio.shield(task)
        return published, published is snapshot

    def _start_refresh(self) -> asyncio.Task[Snapshot[T]]:
        # No await between the check and the set, so one event-loop tick
        # decides which caller starts the refresh.
        if self._refresh_task is None:
            self._log.info(
                "cache_refresh_started",
                reason="empty" if self._snapshot is None else "expired",
            )
            task = asyncio.create_task(self._run_refresh())
            task.add_done_callback(self._on_refresh_done)
            self._refresh_task = task
        return self._refresh_task

    def _on_refresh_done(self, task: asyncio.Task[Snapshot[T]]) -> None:
        # Mark the exception retrieved when no reader awaited (serve_stale).
        if not task.cancelled():
            task.exception()

    async def _run_refresh(self) -> Snapshot[T]:
        previous = self._snapshot
        try:
            snapshot = await self._fetch_snapshot()
        except Exception:
            if previous is not None and not self._past_ceiling(previous):
                self._log.warning(
                    "cache_refresh_failed",
                    fallback="previous_snapshot",
                    age=round(self.age_seconds(previous)),
                    exc_info=True,
                )
                return previous
            self._log.error("cache_refresh_failed", fallback=None, exc_info=True)
            raise
        finally:
            self._refresh_task = None

        self._snapshot = snapshot
        self._log.info("cache_refresh_complete", tabs=len(snapshot.tabs))
        return snapshot

    async def _fetch_snapshot(self) -> Snapshot[T]:
        tabs = await self._source.fetch_tabs()
        self._log.info("cache_tabs_listed", tab_count=len(tabs))

        payloads = await asyncio.gather(*(self._fetch_tab(tab) for tab in tabs))

        return Snapshot(
            fetched_at=self._clock(),
            tabs=tuple(tabs),
            payloads=MappingProxyType(
                {str(tab.id): payload for tab, payload in zip(tabs, payloads, strict=True)}
            ),
        )

    async def _fetch_tab(self, tab: TabDescriptor) -> T:
        """Fetch one tab. Failures degrade this tab to the empty payload."""
        try:
            return await self._source.fetch_payload(tab)
        except Exception:
            self._log.warning("tab_fetch_failed", tab=tab.name, tab_id=tab.id, exc_info=True)
            return self._source.empty_payload()
