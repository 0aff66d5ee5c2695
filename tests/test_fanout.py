"""Fan-out delivery tests — isolation, timeouts, listener adapters."""

import asyncio

import pytest

from conftest import RecordingListener, make_items
from newstracker.realtime.events import CallbackListener, NewsEvent, NewsListener
from newstracker.realtime.fanout import fan_out
from newstracker.realtime.scheduler import parse_interval
from newstracker.realtime.tracker import Subscription


def _sub(listener: NewsListener, keyword: str = "alpha") -> Subscription:
    return Subscription(
        keyword=keyword,
        listener=listener,
        interval=parse_interval("5m"),
        display=10,
        sort="date",
    )


class _Raising(NewsListener):
    async def deliver(self, event):
        raise ValueError("listener exploded")


class _Hanging(NewsListener):
    async def deliver(self, event):
        await asyncio.sleep(10)


@pytest.mark.asyncio
async def test_delivers_to_every_listener():
    listeners = [RecordingListener() for _ in range(3)]
    event = NewsEvent.updated("alpha", make_items("a"))

    delivered = await fan_out([_sub(l) for l in listeners], event)

    assert delivered == 3
    assert all(l.events == [event] for l in listeners)


@pytest.mark.asyncio
async def test_empty_subscription_list():
    assert await fan_out([], NewsEvent.updated("alpha", ())) == 0


@pytest.mark.asyncio
async def test_raising_listener_is_isolated():
    good = RecordingListener()
    event = NewsEvent.new("alpha", make_items("a"))

    delivered = await fan_out([_sub(_Raising()), _sub(good)], event)

    assert delivered == 1
    assert good.events == [event]


@pytest.mark.asyncio
async def test_hanging_listener_times_out():
    good = RecordingListener()
    event = NewsEvent.failure("alpha", "upstream down")

    delivered = await asyncio.wait_for(
        fan_out([_sub(_Hanging()), _sub(good)], event, timeout=0.05), timeout=2
    )

    assert delivered == 1
    assert good.events == [event]


@pytest.mark.asyncio
async def test_callback_listener_sync_and_async():
    seen = []

    async def async_cb(event):
        seen.append(("async", event.type))

    subs = [
        _sub(CallbackListener(lambda e: seen.append(("sync", e.type)))),
        _sub(CallbackListener(async_cb)),
    ]
    await fan_out(subs, NewsEvent.updated("alpha", ()))

    assert sorted(seen) == [("async", "updated"), ("sync", "updated")]


def test_event_payloads():
    items = make_items("a", "b")
    new = NewsEvent.new("alpha", items).to_dict()
    assert new["type"] == "new"
    assert new["keyword"] == "alpha"
    assert new["count"] == 2
    assert [i["title"] for i in new["items"]] == ["a", "b"]
    assert "error" not in new

    err = NewsEvent.failure("alpha", "boom").to_dict()
    assert err["type"] == "error"
    assert err["error"] == "boom"
    assert "items" not in err
