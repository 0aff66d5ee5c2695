"""Realtime tracking — per-keyword polling, change detection, fan-out.

Learn: Events flow one way:

  Scheduler tick → KeywordTracker.refresh() → fetcher.search()
      → dedup against SnapshotCache → fan_out() → NewsListener.deliver()

SubscriptionRegistry is the only entry point callers use; trackers,
the cache and the scheduler are its internals. The WebSocket endpoint
(realtime/websocket.py) is one transport on top of it.
"""

from newstracker.realtime.events import (
    NEWS_ERROR,
    NEWS_NEW,
    NEWS_UPDATED,
    CallbackListener,
    NewsEvent,
    NewsListener,
)
from newstracker.realtime.registry import NewsPage, RegistryStatus, SubscriptionRegistry
from newstracker.realtime.scheduler import (
    AsyncioScheduler,
    IntervalSpec,
    ScheduleHandle,
    Scheduler,
    parse_interval,
)
from newstracker.realtime.tracker import KeywordTracker, Subscription, TrackerState

__all__ = [
    "NEWS_ERROR",
    "NEWS_NEW",
    "NEWS_UPDATED",
    "AsyncioScheduler",
    "CallbackListener",
    "IntervalSpec",
    "KeywordTracker",
    "NewsEvent",
    "NewsListener",
    "NewsPage",
    "RegistryStatus",
    "ScheduleHandle",
    "Scheduler",
    "Subscription",
    "SubscriptionRegistry",
    "TrackerState",
    "parse_interval",
]
