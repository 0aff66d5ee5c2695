"""Push events and the listener capability.

Learn: A tracker talks to its subscribers through exactly one method,
NewsListener.deliver(event). The WebSocket layer implements it by
sending JSON; tests implement it by appending to a list. The core never
sees a socket.

Event kinds:
- "new":     only the items that were not in the previous snapshot
- "updated": the full current snapshot (sent every successful tick)
- "error":   the refresh failed; the snapshot is unchanged
"""

import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from newstracker.news.base import NewsItem

NEWS_NEW = "new"
NEWS_UPDATED = "updated"
NEWS_ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NewsEvent:
    type: str
    keyword: str
    items: tuple[NewsItem, ...] = ()
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def count(self) -> int:
        return len(self.items)

    @classmethod
    def new(cls, keyword: str, items: Sequence[NewsItem]) -> "NewsEvent":
        return cls(type=NEWS_NEW, keyword=keyword, items=tuple(items))

    @classmethod
    def updated(cls, keyword: str, items: Sequence[NewsItem]) -> "NewsEvent":
        return cls(type=NEWS_UPDATED, keyword=keyword, items=tuple(items))

    @classmethod
    def failure(cls, keyword: str, error: str) -> "NewsEvent":
        return cls(type=NEWS_ERROR, keyword=keyword, error=error)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "keyword": self.keyword,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.type == NEWS_ERROR:
            payload["error"] = self.error
        else:
            payload["items"] = [item.to_dict() for item in self.items]
            payload["count"] = self.count
        return payload


class NewsListener(ABC):
    """Receives events for the keywords it is subscribed to."""

    @abstractmethod
    async def deliver(self, event: NewsEvent) -> None:
        """Handle one event. May raise; the fan-out isolates failures."""


ListenerCallback = Callable[[NewsEvent], Union[None, Awaitable[None]]]


class CallbackListener(NewsListener):
    """Adapts a plain function (sync or async) to NewsListener."""

    def __init__(self, callback: ListenerCallback):
        self._callback = callback

    async def deliver(self, event: NewsEvent) -> None:
        result = self._callback(event)
        if inspect.isawaitable(result):
            await result

    def __repr__(self) -> str:
        return f"CallbackListener({self._callback!r})"
