"""News fetchers — where keyword searches actually hit the network.

Usage:
    fetcher = NaverNewsClient.from_settings(settings)
    page = await fetcher.search("python", display=10, sort=SortMode.DATE)
"""

from newstracker.news.base import (
    MAX_DISPLAY,
    MAX_START,
    NewsFetcher,
    NewsItem,
    SearchPage,
    SortMode,
    validate_search_params,
)
from newstracker.news.naver import NaverNewsClient

__all__ = [
    "MAX_DISPLAY",
    "MAX_START",
    "NaverNewsClient",
    "NewsFetcher",
    "NewsItem",
    "SearchPage",
    "SortMode",
    "validate_search_params",
]
