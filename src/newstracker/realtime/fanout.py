"""Delivery fan-out — one event to every listener of a keyword.

Learn: Listeners are started in registration order and run concurrently,
each wrapped in its own timeout. A listener that raises or hangs is
logged and skipped; it never affects the other listeners and never
reaches the scheduler. fan_out() returns only when every delivery has
finished or timed out, so a tracker's events stay strictly ordered.
"""

import asyncio
from typing import Sequence

import structlog

from newstracker.realtime.events import NewsEvent

logger = structlog.get_logger()


async def _deliver_one(subscription, event: NewsEvent, timeout: float) -> bool:
    log = logger.bind(subscription_id=subscription.id, keyword=event.keyword, event_type=event.type)
    try:
        await asyncio.wait_for(subscription.listener.deliver(event), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        log.warning("fanout.listener_timeout", timeout=timeout)
    except Exception:
        log.exception("fanout.listener_failed")
    return False


async def fan_out(subscriptions: Sequence, event: NewsEvent, *, timeout: float = 5.0) -> int:
    """Deliver event to every subscription. Returns the number of successes."""
    if not subscriptions:
        return 0
    results = await asyncio.gather(
        *[_deliver_one(sub, event, timeout) for sub in subscriptions]
    )
    return sum(1 for ok in results if ok)
