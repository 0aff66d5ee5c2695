"""Subscription registry — the realtime service's single entry point.

Learn: The registry owns two maps:

  keyword → KeywordTracker      (at most one tracker per keyword)
  subscription id → Subscription

and the SnapshotCache the trackers write into. It is built once by the
app factory (main.py), reached through app.state, and shut down in the
FastAPI lifespan.

Concurrency model: everything runs on one asyncio event loop. Every
structural change (add/remove a subscription, create/discard a tracker)
happens in a stretch of code with no await in it, so no other coroutine
can observe a half-done change. The only awaits in subscribe() are the
tracker's first fetch and waiting for someone else's first fetch, and
both happen outside those stretches. Two concurrent first subscribes for
the same keyword therefore share one tracker and one fetch. A waiter
whose tracker vanished during that await (creator cancelled, or its
only subscriber already gone) looks the keyword up again.
"""

import math
from dataclasses import dataclass
from typing import Optional

import structlog

from newstracker.errors import (
    InvalidArgumentError,
    PageRangeError,
    RegistryClosedError,
    TrackerClosedError,
)
from newstracker.news.base import (
    MAX_DISPLAY,
    MAX_START,
    MIN_DISPLAY,
    NewsFetcher,
    NewsItem,
    SortMode,
)
from newstracker.realtime.cache import SnapshotCache
from newstracker.realtime.events import NewsListener
from newstracker.realtime.scheduler import (
    AsyncioScheduler,
    IntervalSpec,
    Scheduler,
    parse_interval,
)
from newstracker.realtime.tracker import KeywordTracker, Subscription, TrackerState

logger = structlog.get_logger()


@dataclass(frozen=True)
class NewsPage:
    """A page of results requested explicitly, outside the live feed."""

    keyword: str
    page: int
    start: int
    display: int
    total: int
    items: tuple[NewsItem, ...]
    has_next_page: bool
    total_pages: int


@dataclass(frozen=True)
class RegistryStatus:
    running: bool
    keywords: list[str]
    subscriber_count_by_keyword: dict[str, int]
    cached_keywords: list[str]


class SubscriptionRegistry:
    def __init__(
        self,
        fetcher: NewsFetcher,
        scheduler: Optional[Scheduler] = None,
        *,
        default_interval: str = "*/5 * * * *",
        default_display: int = 10,
        default_sort: SortMode = SortMode.DATE,
        listener_timeout: float = 5.0,
    ):
        self.fetcher = fetcher
        self.scheduler = scheduler or AsyncioScheduler()
        self.cache = SnapshotCache()
        self.default_interval = default_interval
        self.default_display = default_display
        self.default_sort = SortMode.parse(default_sort)
        self.listener_timeout = listener_timeout

        self._trackers: dict[str, KeywordTracker] = {}
        self._subscriptions: dict[str, Subscription] = {}
        self._closed = False

    # ─── Subscribe / unsubscribe ───────────────────────────

    async def subscribe(
        self,
        keyword: str,
        listener: NewsListener,
        *,
        interval: Optional[str] = None,
        display: Optional[int] = None,
        sort: "SortMode | str | None" = None,
    ) -> str:
        """Register listener for keyword and return the subscription id.

        The first subscriber for a keyword waits for one upstream fetch
        and fails with its error if that fetch fails (nothing is
        registered then). Later subscribers return immediately and get
        their first event on the next scheduled refresh.
        """
        if not isinstance(keyword, str) or not keyword.strip():
            raise InvalidArgumentError("keyword must be a non-empty string")
        spec = parse_interval(interval if interval is not None else self.default_interval)
        display = self.default_display if display is None else display
        if not MIN_DISPLAY <= display <= MAX_DISPLAY:
            raise InvalidArgumentError(
                f"display must be between {MIN_DISPLAY} and {MAX_DISPLAY}, got {display}"
            )
        sort = SortMode.parse(sort, self.default_sort)

        tracker = await self._running_tracker(keyword, spec, display, sort)

        subscription = Subscription(
            keyword=keyword,
            listener=listener,
            interval=spec,
            display=display,
            sort=sort,
        )
        tracker.add(subscription)
        self._subscriptions[subscription.id] = subscription

        logger.info(
            "registry.subscribed",
            keyword=keyword,
            subscription_id=subscription.id,
            subscribers=len(tracker.subscriptions),
        )
        return subscription.id

    async def _running_tracker(
        self, keyword: str, spec: IntervalSpec, display: int, sort: SortMode
    ) -> KeywordTracker:
        """Return keyword's running tracker, starting one if needed.

        A tracker awaited here can be gone by the time the await returns:
        its creator was cancelled, or its only subscriber already left.
        Either way the lookup starts over. Only a shut-down registry or a
        failed first fetch ends the loop with an error.
        """
        while True:
            if self._closed:
                raise RegistryClosedError("Registry is shut down")

            tracker = self._trackers.get(keyword)
            try:
                if tracker is None:
                    tracker = KeywordTracker(
                        keyword,
                        fetcher=self.fetcher,
                        scheduler=self.scheduler,
                        cache=self.cache,
                        interval=spec,
                        display=display,
                        sort=sort,
                        listener_timeout=self.listener_timeout,
                    )
                    self._trackers[keyword] = tracker
                    try:
                        await tracker.start()
                    except BaseException:
                        if self._trackers.get(keyword) is tracker:
                            del self._trackers[keyword]
                        raise
                elif tracker.state is TrackerState.STARTING:
                    await tracker.wait_started()
            except TrackerClosedError:
                # Stopped mid-start by shutdown; the loop head reports it
                continue

            if tracker.state is TrackerState.RUNNING and self._trackers.get(keyword) is tracker:
                return tracker
            logger.info("registry.tracker_retry", keyword=keyword, state=tracker.state.value)
            if self._trackers.get(keyword) is tracker:
                del self._trackers[keyword]

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Unknown ids return False.

        Removing a keyword's last subscription stops its tracker before
        this returns; the keyword's cached snapshot is kept.
        """
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return False

        tracker = self._trackers.get(subscription.keyword)
        if tracker is not None:
            tracker.remove(subscription)
            if not tracker.subscriptions:
                tracker.stop()
                del self._trackers[subscription.keyword]

        logger.info(
            "registry.unsubscribed",
            keyword=subscription.keyword,
            subscription_id=subscription_id,
            tracker_stopped=subscription.keyword not in self._trackers,
        )
        return True

    # ─── Queries ───────────────────────────────────────────

    def get_cache(self, keyword: str) -> list[NewsItem]:
        """Last snapshot for keyword, empty if it was never fetched."""
        return self.cache.get(keyword)

    def get_all_cache(self) -> dict[str, list[NewsItem]]:
        return self.cache.as_dict()

    async def get_page(
        self,
        keyword: str,
        page: int = 1,
        *,
        display: Optional[int] = None,
        sort: "SortMode | str | None" = None,
    ) -> NewsPage:
        """Fetch an explicit page of results; independent of the live feed."""
        display = self.default_display if display is None else display
        if page < 1:
            raise InvalidArgumentError(f"page must be >= 1, got {page}")
        if not MIN_DISPLAY <= display <= MAX_DISPLAY:
            raise InvalidArgumentError(
                f"display must be between {MIN_DISPLAY} and {MAX_DISPLAY}, got {display}"
            )
        sort = SortMode.parse(sort, self.default_sort)

        start = (page - 1) * display + 1
        if start > MAX_START:
            raise PageRangeError(
                f"Only the first {MAX_START} results are addressable "
                f"(page {page} starts at {start})"
            )

        result = await self.fetcher.search(keyword, display=display, start=start, sort=sort)
        return NewsPage(
            keyword=keyword,
            page=page,
            start=result.start,
            display=result.display,
            total=result.total,
            items=result.items,
            has_next_page=start + display - 1 < result.total,
            total_pages=math.ceil(result.total / display),
        )

    def subscription(self, subscription_id: str) -> Optional[Subscription]:
        return self._subscriptions.get(subscription_id)

    def tracker(self, keyword: str) -> Optional[KeywordTracker]:
        return self._trackers.get(keyword)

    def subscriber_count(self, keyword: str) -> int:
        tracker = self._trackers.get(keyword)
        return len(tracker.subscriptions) if tracker else 0

    def status(self) -> RegistryStatus:
        return RegistryStatus(
            running=not self._closed,
            keywords=list(self._trackers),
            subscriber_count_by_keyword={
                keyword: len(tracker.subscriptions)
                for keyword, tracker in self._trackers.items()
            },
            cached_keywords=self.cache.keywords(),
        )

    # ─── Shutdown ──────────────────────────────────────────

    async def shutdown(self) -> None:
        """Stop every tracker and wait for in-flight refreshes to settle."""
        self._closed = True
        trackers = list(self._trackers.values())
        for tracker in trackers:
            tracker.stop()
        self._trackers.clear()
        self._subscriptions.clear()

        for tracker in trackers:
            await tracker.wait_terminated()
        logger.info("registry.shutdown", trackers=len(trackers))
