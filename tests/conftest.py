"""Test fixtures — a scripted fetcher and a hand-driven scheduler.

Learn: Tracker behaviour depends on two things outside our control:
what the upstream returns and when the timer fires. Both are replaced:

1. FakeFetcher returns scripted pages (lists of titles) or raises
   scripted errors, records every call, and can be held open with an
   asyncio.Event to simulate a slow upstream.
2. ManualScheduler never fires by itself; tests call `await
   scheduler.tick()` to run exactly one refresh on every live schedule.

No network, no sleeping, fully deterministic.
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from newstracker.main import create_app
from newstracker.news.base import (
    NewsFetcher,
    NewsItem,
    SearchPage,
    SortMode,
    validate_search_params,
)
from newstracker.realtime.events import NewsEvent, NewsListener
from newstracker.realtime.registry import SubscriptionRegistry
from newstracker.realtime.scheduler import IntervalSpec, ScheduleHandle, Scheduler


def make_items(*titles: str) -> tuple[NewsItem, ...]:
    return tuple(
        NewsItem(
            title=title,
            link=f"https://news.example.com/{i}",
            source_link=f"https://source.example.com/{i}",
            summary=f"About {title}",
        )
        for i, title in enumerate(titles, start=1)
    )


def titles(items) -> list[str]:
    return [item.title for item in items]


@dataclass
class SearchCall:
    query: str
    display: int
    start: int
    sort: SortMode


class FakeFetcher(NewsFetcher):
    """Scripted NewsFetcher.

    script("k", ["a", "b"], SomeError(), ["b", "c"]) makes the next three
    searches for "k" return [a, b], raise, then return [b, c]; the last
    entry repeats forever. Unscripted keywords get `display` generated
    titles.
    """

    def __init__(self):
        self.calls: list[SearchCall] = []
        self.totals: dict[str, int] = {}
        self.gate: Optional[asyncio.Event] = None
        self.closed = False
        self._scripts: dict[str, list] = {}

    def script(self, keyword: str, *results) -> None:
        self._scripts.setdefault(keyword, []).extend(results)

    def calls_for(self, keyword: str) -> list[SearchCall]:
        return [c for c in self.calls if c.query == keyword]

    async def search(self, query, *, display=10, start=1, sort=SortMode.DATE) -> SearchPage:
        validate_search_params(query, display, start)
        self.calls.append(SearchCall(query, display, start, SortMode.parse(sort)))
        if self.gate is not None:
            await self.gate.wait()

        queue = self._scripts.get(query)
        if queue:
            result = queue.pop(0) if len(queue) > 1 else queue[0]
        else:
            result = [f"{query} #{start + i}" for i in range(display)]
        if isinstance(result, BaseException):
            raise result

        items = make_items(*result)
        total = self.totals.get(query, start - 1 + len(items))
        return SearchPage(total=total, start=start, display=len(items), items=items)

    async def aclose(self) -> None:
        self.closed = True


class ManualScheduler(Scheduler):
    def __init__(self):
        self.handles: list[ScheduleHandle] = []

    def start(self, spec: IntervalSpec, callback) -> ScheduleHandle:
        handle = ScheduleHandle(spec=spec, callback=callback)
        self.handles.append(handle)
        return handle

    def cancel(self, handle: ScheduleHandle) -> None:
        handle.cancelled = True

    @property
    def active(self) -> list[ScheduleHandle]:
        return [h for h in self.handles if not h.cancelled]

    async def tick(self) -> None:
        """Fire every live schedule once, in start order."""
        for handle in self.active:
            handle.ticks += 1
            await handle.callback()


class RecordingListener(NewsListener):
    def __init__(self):
        self.events: list[NewsEvent] = []

    async def deliver(self, event: NewsEvent) -> None:
        self.events.append(event)

    def of_type(self, kind: str) -> list[NewsEvent]:
        return [e for e in self.events if e.type == kind]


@pytest.fixture()
def fetcher():
    return FakeFetcher()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest_asyncio.fixture()
async def registry(fetcher, scheduler):
    reg = SubscriptionRegistry(
        fetcher,
        scheduler,
        default_interval="*/5 * * * *",
        default_display=10,
        listener_timeout=0.5,
    )
    yield reg
    await reg.shutdown()


@pytest.fixture()
def app(fetcher, scheduler):
    return create_app(fetcher=fetcher, scheduler=scheduler)


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client talking to an app backed by the fake fetcher."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
