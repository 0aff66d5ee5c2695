"""Keyword tracker — one keyword's polling lifecycle.

Learn: A tracker walks a small state machine:

  idle → starting → running → stopping → terminated
            │                              ▲
            └────── first fetch failed ────┘

start() performs the first fetch inline so the subscriber that created
the tracker learns immediately whether the keyword is fetchable. Only on
success is the recurring schedule installed.

Each tick runs refresh():
1. fetch page 1 (display items, configured sort)
2. new = fetched items whose title wasn't in the previous snapshot
3. replace the snapshot wholesale
4. "new" event if anything is new, then always an "updated" event
5. on failure: snapshot untouched, one "error" event, keep scheduling

refresh() holds a per-tracker lock, so fetch → dedup → deliver never
overlaps for the same keyword. A tick that fires while a refresh is in
flight is skipped.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Sequence

import structlog

from newstracker.errors import NewsTrackerError, TrackerClosedError
from newstracker.news.base import NewsFetcher, NewsItem, SortMode
from newstracker.realtime.cache import SnapshotCache
from newstracker.realtime.events import NewsEvent, NewsListener
from newstracker.realtime.fanout import fan_out
from newstracker.realtime.scheduler import IntervalSpec, ScheduleHandle, Scheduler

logger = structlog.get_logger()


class TrackerState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


@dataclass(eq=False)
class Subscription:
    """One listener's interest in one keyword."""

    keyword: str
    listener: NewsListener
    interval: IntervalSpec
    display: int
    sort: SortMode
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def find_new_items(
    current: Sequence[NewsItem], previous: Sequence[NewsItem]
) -> list[NewsItem]:
    """Items of current whose identity (title) is absent from previous."""
    seen = {item.identity for item in previous}
    return [item for item in current if item.identity not in seen]


class KeywordTracker:
    """Polls one keyword on a schedule and pushes changes to its subscribers."""

    def __init__(
        self,
        keyword: str,
        *,
        fetcher: NewsFetcher,
        scheduler: Scheduler,
        cache: SnapshotCache,
        interval: IntervalSpec,
        display: int = 10,
        sort: SortMode = SortMode.DATE,
        listener_timeout: float = 5.0,
    ):
        self.keyword = keyword
        self.interval = interval
        self.display = display
        self.sort = sort
        self.listener_timeout = listener_timeout
        self.subscriptions: list[Subscription] = []

        self._fetcher = fetcher
        self._scheduler = scheduler
        self._cache = cache
        self._state = TrackerState.IDLE
        self._handle: Optional[ScheduleHandle] = None
        self._refresh_lock = asyncio.Lock()
        self._settled = asyncio.Event()  # start() finished, either way
        self._terminated = asyncio.Event()
        self._start_error: Optional[Exception] = None
        self._log = logger.bind(keyword=keyword)

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def schedule_handle(self) -> Optional[ScheduleHandle]:
        return self._handle

    # ─── Lifecycle ─────────────────────────────────────────

    async def start(self) -> None:
        """Run the first fetch, then install the recurring schedule.

        Raises whatever the first fetch raised; the tracker is then
        terminated and must be discarded. If the caller is cancelled
        mid-fetch, waiters are released without an error and see a
        terminated tracker.
        """
        if self._state is not TrackerState.IDLE:
            raise RuntimeError(f"Tracker for {self.keyword!r} already started")
        self._state = TrackerState.STARTING
        self._log.info("tracker.starting", interval=self.interval.expression, display=self.display)

        try:
            async with self._refresh_lock:
                page = await self._fetch()
                if self._state is not TrackerState.STARTING:
                    raise TrackerClosedError(f"Tracker for {self.keyword!r} stopped during start")
                self._cache.put(self.keyword, page.items)
        except Exception as e:
            self._start_error = e
            self._terminate()
            self._settled.set()
            self._log.warning("tracker.start_failed", error=str(e))
            raise
        except BaseException:
            # Cancellation belongs to the creating task only
            self._terminate()
            self._settled.set()
            self._log.info("tracker.start_cancelled")
            raise

        self._handle = self._scheduler.start(self.interval, self._on_tick)
        self._state = TrackerState.RUNNING
        self._settled.set()
        self._log.info("tracker.started", items=len(page.items))

    async def wait_started(self) -> None:
        """Wait for an in-progress start() to settle; re-raise its failure.

        Returns normally when the start was cancelled; check state.
        """
        await self._settled.wait()
        if self._start_error is not None:
            raise self._start_error

    def stop(self) -> None:
        """Cancel the schedule. Synchronous: no tick starts after this returns.

        A refresh already in flight finishes its fetch but delivers
        nothing and leaves the cache alone.
        """
        if self._state in (TrackerState.STOPPING, TrackerState.TERMINATED):
            return
        self._state = TrackerState.STOPPING
        if self._handle is not None:
            self._scheduler.cancel(self._handle)
            self._handle = None
        if not self._refresh_lock.locked():
            self._terminate()
        self._log.info("tracker.stopped")

    async def wait_terminated(self) -> None:
        await self._terminated.wait()

    def _terminate(self) -> None:
        self._state = TrackerState.TERMINATED
        self.subscriptions.clear()
        self._terminated.set()

    # ─── Subscribers ───────────────────────────────────────

    def add(self, subscription: Subscription) -> None:
        self.subscriptions.append(subscription)

    def remove(self, subscription: Subscription) -> bool:
        try:
            self.subscriptions.remove(subscription)
            return True
        except ValueError:
            return False

    # ─── Refresh ───────────────────────────────────────────

    async def _on_tick(self) -> None:
        if self._state is not TrackerState.RUNNING:
            return
        if self._refresh_lock.locked():
            self._log.info("tracker.tick_skipped", reason="refresh in flight")
            return
        await self.refresh()

    async def refresh(self) -> None:
        """One fetch → dedup → deliver cycle."""
        async with self._refresh_lock:
            try:
                await self._refresh_locked()
            finally:
                if self._state is TrackerState.STOPPING:
                    self._terminate()

    async def _refresh_locked(self) -> None:
        try:
            page = await self._fetch()
        except NewsTrackerError as e:
            if self._state is not TrackerState.RUNNING:
                return
            self._log.warning("tracker.refresh_failed", error=str(e), error_type=type(e).__name__)
            await self._deliver(NewsEvent.failure(self.keyword, str(e)))
            return
        except Exception as e:
            if self._state is not TrackerState.RUNNING:
                return
            self._log.exception("tracker.refresh_crashed")
            await self._deliver(NewsEvent.failure(self.keyword, str(e) or type(e).__name__))
            return

        if self._state is not TrackerState.RUNNING:
            return

        new_items = find_new_items(page.items, self._cache.get(self.keyword))
        self._cache.put(self.keyword, page.items)

        if new_items:
            await self._deliver(NewsEvent.new(self.keyword, new_items))
        await self._deliver(NewsEvent.updated(self.keyword, page.items))

        self._log.info(
            "tracker.refreshed",
            new=len(new_items),
            total=len(page.items),
            subscribers=len(self.subscriptions),
        )

    async def _fetch(self):
        return await self._fetcher.search(
            self.keyword, display=self.display, start=1, sort=self.sort
        )

    async def _deliver(self, event: NewsEvent) -> int:
        # Snapshot the list so (un)subscribes during delivery don't shift it
        return await fan_out(list(self.subscriptions), event, timeout=self.listener_timeout)
