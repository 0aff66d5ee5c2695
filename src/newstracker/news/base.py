"""News fetcher base — pluggable interface for news-search backends.

Learn: The realtime core never talks HTTP. It asks a NewsFetcher for
"page N of results for keyword K" and gets back a SearchPage of
immutable NewsItems. The Naver client (news/naver.py) is the production
implementation; tests plug in a scripted fake.

A fetcher is stateless request/response: no caching, no retries.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from newstracker.errors import InvalidArgumentError

# Addressable window of the upstream search API
MIN_DISPLAY = 1
MAX_DISPLAY = 100
MIN_START = 1
MAX_START = 1000


class SortMode(str, Enum):
    """Result ordering. DATE is most-recent-first."""

    RELEVANCE = "relevance"
    DATE = "date"

    @classmethod
    def _missing_(cls, value):
        # "sim" is the upstream's own spelling of relevance ordering
        if value == "sim":
            return cls.RELEVANCE
        return None

    @classmethod
    def parse(
        cls, value: "SortMode | str | None", default: Optional["SortMode"] = None
    ) -> "SortMode":
        """Coerce a user-supplied value, raising InvalidArgumentError."""
        if value is None:
            return default or cls.DATE
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgumentError(
                f"sort must be one of 'relevance' (or 'sim') or 'date', got {value!r}"
            ) from None


@dataclass(frozen=True)
class NewsItem:
    """One article as returned by the upstream. Identity key is the title."""

    title: str
    link: str
    source_link: str = ""
    summary: str = ""
    published_at: Optional[datetime] = None

    @property
    def identity(self) -> str:
        return self.title

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "source_link": self.source_link,
            "summary": self.summary,
            "published_at": self.published_at.isoformat() if self.published_at else None,
        }


@dataclass(frozen=True)
class SearchPage:
    """One page of upstream search results.

    start/display echo what the upstream reports; total is the full
    result count for the query.
    """

    total: int
    start: int
    display: int
    items: tuple[NewsItem, ...] = field(default_factory=tuple)
    last_build_date: Optional[str] = None


def validate_search_params(query: str, display: int, start: int) -> None:
    """Reject out-of-range search parameters before any request is sent."""
    if not query or not query.strip():
        raise InvalidArgumentError("query must be a non-empty string")
    if not MIN_DISPLAY <= display <= MAX_DISPLAY:
        raise InvalidArgumentError(
            f"display must be between {MIN_DISPLAY} and {MAX_DISPLAY}, got {display}"
        )
    if not MIN_START <= start <= MAX_START:
        raise InvalidArgumentError(
            f"start must be between {MIN_START} and {MAX_START}, got {start}"
        )


class NewsFetcher(ABC):
    """Abstract base for news-search backends.

    Learn: Implement this to track keywords against another API. search()
    must raise InvalidArgumentError for bad parameters, and an
    UpstreamError subclass for anything that went wrong upstream.
    """

    @abstractmethod
    async def search(
        self,
        query: str,
        *,
        display: int = 10,
        start: int = 1,
        sort: SortMode = SortMode.DATE,
    ) -> SearchPage:
        """Fetch one page of results for query."""

    async def aclose(self) -> None:
        """Release network resources. Override if the fetcher holds any."""
