"""News API routes — the synchronous query surface.

Learn: These routes never touch the live feed. /news/search and
/news/trending go straight to the fetcher; /news/{keyword}/pages/{page}
goes through the registry's paging rules; the cache routes only read
what trackers have already fetched.

Error mapping (see errors.py):
- InvalidArgumentError, PageRangeError, UpstreamRejectedError → 400
- UpstreamUnavailableError → 503
- any other UpstreamError → 502
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from newstracker.api.deps import get_fetcher, get_registry
from newstracker.config import settings
from newstracker.errors import (
    InvalidArgumentError,
    NewsTrackerError,
    PageRangeError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from newstracker.news.base import NewsFetcher, NewsItem, SortMode
from newstracker.realtime.registry import SubscriptionRegistry
from newstracker.schemas.news import (
    CacheRead,
    NewsPageRead,
    SearchRead,
    TrendingEntry,
    TrendingRead,
)

router = APIRouter()

_SORT_PATTERN = r"^(sim|relevance|date)$"


def http_error(exc: NewsTrackerError) -> HTTPException:
    """Translate a newstracker error into the matching HTTP error."""
    if isinstance(exc, (InvalidArgumentError, PageRangeError, UpstreamRejectedError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, UpstreamUnavailableError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


def _cache_read(keyword: str, items: list[NewsItem]) -> CacheRead:
    return CacheRead(keyword=keyword, count=len(items), items=[i.to_dict() for i in items])


@router.get("/news/search", response_model=SearchRead)
async def search_news(
    query: str = Query(..., min_length=1, description="Search keyword"),
    display: int = Query(10, ge=1, le=100),
    start: int = Query(1, ge=1, le=1000),
    sort: str = Query("date", pattern=_SORT_PATTERN),
    fetcher: NewsFetcher = Depends(get_fetcher),
):
    """Search the upstream news API directly."""
    try:
        return await fetcher.search(query, display=display, start=start, sort=SortMode.parse(sort))
    except NewsTrackerError as e:
        raise http_error(e)


@router.get("/news/trending", response_model=TrendingRead)
async def trending_news(fetcher: NewsFetcher = Depends(get_fetcher)):
    """Latest articles for each configured trending keyword."""
    data = []
    for keyword in settings.trending_keywords:
        try:
            page = await fetcher.search(
                keyword, display=settings.trending_page_size, sort=SortMode.DATE
            )
        except NewsTrackerError as e:
            raise http_error(e)
        data.append(
            TrendingEntry(
                keyword=keyword,
                count=len(page.items),
                items=[item.to_dict() for item in page.items],
            )
        )
    return TrendingRead(data=data)


@router.get("/news/cache", response_model=list[CacheRead])
async def list_cached_news(registry: SubscriptionRegistry = Depends(get_registry)):
    """Every keyword's last snapshot."""
    return [
        _cache_read(keyword, items)
        for keyword, items in registry.get_all_cache().items()
    ]


@router.get("/news/{keyword}/cache", response_model=CacheRead)
async def get_cached_news(
    keyword: str,
    registry: SubscriptionRegistry = Depends(get_registry),
):
    """Last snapshot for one keyword (empty if it was never tracked)."""
    return _cache_read(keyword, registry.get_cache(keyword))


@router.get("/news/{keyword}/pages/{page}", response_model=NewsPageRead)
async def get_news_page(
    keyword: str,
    page: int,
    display: Optional[int] = Query(None, ge=1, le=100),
    sort: Optional[str] = Query(None, pattern=_SORT_PATTERN),
    registry: SubscriptionRegistry = Depends(get_registry),
):
    """Fetch page N for keyword. Pages beyond result 1000 are rejected."""
    try:
        return await registry.get_page(keyword, page, display=display, sort=sort)
    except NewsTrackerError as e:
        raise http_error(e)
