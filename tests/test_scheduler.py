"""Interval parsing and AsyncioScheduler tests."""

import asyncio
from datetime import datetime, timezone

import pytest

from newstracker.errors import InvalidArgumentError
from newstracker.realtime.scheduler import AsyncioScheduler, parse_interval


@pytest.mark.parametrize(
    "expression, seconds",
    [("30", 30), ("30s", 30), ("5m", 300), ("1h", 3600), ("0.5", 0.5), (" 2m ", 120)],
)
def test_parse_duration(expression, seconds):
    spec = parse_interval(expression)
    assert spec.seconds == seconds
    assert spec.cron is None
    assert spec.next_delay() == seconds


def test_parse_cron():
    spec = parse_interval("*/5 * * * *")
    assert spec.cron == "*/5 * * * *"
    assert spec.seconds is None


def test_cron_next_delay():
    spec = parse_interval("*/5 * * * *")
    now = datetime(2024, 3, 1, 12, 3, 30, tzinfo=timezone.utc)
    assert spec.next_delay(now) == 90.0


@pytest.mark.parametrize(
    "expression",
    ["", "  ", "0", "0s", "soon", "5 minutes", "* * * *", "61 * * * *", "*/5 * * * * *"],
)
def test_parse_rejects_garbage(expression):
    with pytest.raises(InvalidArgumentError):
        parse_interval(expression)


@pytest.mark.asyncio
async def test_asyncio_scheduler_fires_repeatedly():
    scheduler = AsyncioScheduler()
    fired = asyncio.Event()
    calls = []

    async def callback():
        calls.append(1)
        if len(calls) == 3:
            fired.set()

    handle = scheduler.start(parse_interval("0.01"), callback)
    await asyncio.wait_for(fired.wait(), timeout=2)
    scheduler.cancel(handle)

    assert handle.ticks >= 3
    assert handle.cancelled


@pytest.mark.asyncio
async def test_cancel_stops_future_ticks():
    scheduler = AsyncioScheduler()
    calls = []

    async def callback():
        calls.append(1)

    handle = scheduler.start(parse_interval("0.01"), callback)
    scheduler.cancel(handle)
    await asyncio.sleep(0.05)

    assert calls == []
    assert handle.task.done()


@pytest.mark.asyncio
async def test_cancel_inside_callback_lets_it_finish():
    """Cancelling mid-callback doesn't interrupt it, but no tick follows."""
    scheduler = AsyncioScheduler()
    entered = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def callback():
        entered.set()
        await release.wait()
        finished.append(1)

    handle = scheduler.start(parse_interval("0.01"), callback)
    await asyncio.wait_for(entered.wait(), timeout=2)
    scheduler.cancel(handle)
    release.set()
    await asyncio.wait_for(handle.task, timeout=2)

    assert finished == [1]
    assert handle.ticks == 1


@pytest.mark.asyncio
async def test_failing_callback_keeps_schedule_alive():
    scheduler = AsyncioScheduler()
    done = asyncio.Event()
    calls = []

    async def callback():
        calls.append(1)
        if len(calls) == 2:
            done.set()
        raise RuntimeError("tick failed")

    handle = scheduler.start(parse_interval("0.01"), callback)
    await asyncio.wait_for(done.wait(), timeout=2)
    scheduler.cancel(handle)

    assert len(calls) >= 2
