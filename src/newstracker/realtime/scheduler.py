"""Cancellable periodic scheduling.

Learn: The tracker only needs two operations:

    handle = scheduler.start(spec, callback)
    scheduler.cancel(handle)

An IntervalSpec is parsed from either a five-field cron expression
("*/5 * * * *", evaluated with croniter) or a plain duration
("30", "30s", "5m", "1h"). AsyncioScheduler runs one loop task per
handle:

  sleep until next fire time → await callback → repeat

Because the callback is awaited before the next sleep starts, ticks of
one handle never overlap. cancel() is synchronous: a sleeping loop is
cancelled on the spot; a loop that is inside the callback lets it finish
and then exits without sleeping again.
"""

import asyncio
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

import structlog
from croniter import croniter

from newstracker.errors import InvalidArgumentError

logger = structlog.get_logger()

TickCallback = Callable[[], Awaitable[None]]

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smh]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600}


@dataclass(frozen=True)
class IntervalSpec:
    """A parsed refresh interval. Exactly one of cron / seconds is set."""

    expression: str
    cron: Optional[str] = None
    seconds: Optional[float] = None

    def next_delay(self, now: Optional[datetime] = None) -> float:
        """Seconds from now until the next fire time."""
        if self.seconds is not None:
            return self.seconds
        now = now or datetime.now(timezone.utc)
        next_fire = croniter(self.cron, now).get_next(datetime)
        return max(0.0, (next_fire - now).total_seconds())


def parse_interval(expression: str) -> IntervalSpec:
    """Parse a refresh interval, raising InvalidArgumentError if it isn't one."""
    if not isinstance(expression, str) or not expression.strip():
        raise InvalidArgumentError("interval must be a non-empty string")

    match = _DURATION_RE.match(expression)
    if match:
        seconds = float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        if seconds <= 0:
            raise InvalidArgumentError(f"interval must be positive, got {expression!r}")
        return IntervalSpec(expression=expression, seconds=seconds)

    cron = expression.strip()
    if len(cron.split()) == 5 and croniter.is_valid(cron):
        return IntervalSpec(expression=expression, cron=cron)

    raise InvalidArgumentError(
        f"interval {expression!r} is neither a cron expression nor a duration"
    )


@dataclass(eq=False)
class ScheduleHandle:
    """One active schedule. Owned by whoever called start()."""

    spec: IntervalSpec
    callback: TickCallback
    cancelled: bool = False
    ticks: int = 0
    in_callback: bool = False
    task: Optional[asyncio.Task] = field(default=None, repr=False)


class Scheduler(ABC):
    @abstractmethod
    def start(self, spec: IntervalSpec, callback: TickCallback) -> ScheduleHandle:
        """Begin calling callback on spec's schedule. First call is after one interval."""

    @abstractmethod
    def cancel(self, handle: ScheduleHandle) -> None:
        """Stop the schedule. No callback starts after this returns."""


class AsyncioScheduler(Scheduler):
    """Runs each schedule as an asyncio task on the current event loop."""

    def start(self, spec: IntervalSpec, callback: TickCallback) -> ScheduleHandle:
        handle = ScheduleHandle(spec=spec, callback=callback)
        handle.task = asyncio.get_running_loop().create_task(self._run(handle))
        return handle

    def cancel(self, handle: ScheduleHandle) -> None:
        if handle.cancelled:
            return
        handle.cancelled = True
        if handle.task is not None and not handle.in_callback:
            handle.task.cancel()

    async def _run(self, handle: ScheduleHandle) -> None:
        while not handle.cancelled:
            await asyncio.sleep(handle.spec.next_delay())
            if handle.cancelled:
                return

            handle.ticks += 1
            handle.in_callback = True
            try:
                await handle.callback()
            except Exception:
                logger.exception("scheduler.tick_failed", interval=handle.spec.expression)
            finally:
                handle.in_callback = False
