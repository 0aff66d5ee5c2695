"""Pydantic schemas for news search, pages, cache and realtime status.

Learn: The core works with frozen dataclasses (NewsItem, SearchPage,
NewsPage, RegistryStatus). These schemas are the API-facing shape;
from_attributes lets routes return the dataclasses directly.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# ─── Items & pages ───────────────────────────────────────

class NewsItemRead(BaseModel):
    title: str
    link: str
    source_link: str
    summary: str
    published_at: Optional[datetime]

    model_config = {"from_attributes": True}


class SearchRead(BaseModel):
    """One page straight from the upstream search API."""
    total: int
    start: int
    display: int
    last_build_date: Optional[str] = None
    items: list[NewsItemRead]

    model_config = {"from_attributes": True}


class NewsPageRead(BaseModel):
    """An explicitly requested page, with paging hints."""
    keyword: str
    page: int
    start: int
    display: int
    total: int
    items: list[NewsItemRead]
    has_next_page: bool
    total_pages: int

    model_config = {"from_attributes": True}


class TrendingEntry(BaseModel):
    keyword: str
    count: int
    items: list[NewsItemRead]


class TrendingRead(BaseModel):
    data: list[TrendingEntry]


# ─── Cache & status ──────────────────────────────────────

class CacheRead(BaseModel):
    keyword: str
    count: int
    items: list[NewsItemRead]


class RealtimeStatusRead(BaseModel):
    running: bool
    keywords: list[str]
    subscriber_count_by_keyword: dict[str, int]
    cached_keywords: list[str]

    model_config = {"from_attributes": True}


# ─── WebSocket commands ──────────────────────────────────

class SubscribeCommand(BaseModel):
    keyword: str = Field(..., min_length=1)
    interval: Optional[str] = None
    display: Optional[int] = Field(None, ge=1, le=100)
    sort: Optional[str] = Field(None, pattern=r"^(sim|relevance|date)$")


class UnsubscribeCommand(BaseModel):
    subscription_id: Optional[str] = None
    keyword: Optional[str] = None


class CachedNewsCommand(BaseModel):
    keyword: str = Field(..., min_length=1)


class PageCommand(BaseModel):
    keyword: str = Field(..., min_length=1)
    page: int = Field(1, ge=1)
    display: Optional[int] = Field(None, ge=1, le=100)
    sort: Optional[str] = Field(None, pattern=r"^(sim|relevance|date)$")
