"""Naver Search news client — the production NewsFetcher.

Learn: Thin httpx wrapper around GET {base_url}/news.json. It does three
things beyond the raw request:
1. Validates paging params locally (no wasted request for display=500)
2. Normalizes items: strips markup, decodes entities, parses pubDate
3. Maps every failure onto the UpstreamError hierarchy so callers can
   tell "fix your request" apart from "try again later"
"""

import html
import re
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx
import structlog

from newstracker.errors import (
    UpstreamError,
    UpstreamRejectedError,
    UpstreamUnavailableError,
)
from newstracker.news.base import (
    NewsFetcher,
    NewsItem,
    SearchPage,
    SortMode,
    validate_search_params,
)

logger = structlog.get_logger()

DEFAULT_BASE_URL = "https://openapi.naver.com/v1/search"
DEFAULT_ENDPOINT = "/news.json"

_TAG_RE = re.compile(r"<[^>]*>")

# Upstream spelling of each sort mode
_SORT_PARAM = {
    SortMode.RELEVANCE: "sim",
    SortMode.DATE: "date",
}

# Documented Naver Search error codes
_ERROR_MESSAGES = {
    "SE01": "Malformed query request",
    "SE02": "display is outside the allowed range (1-100)",
    "SE03": "start is outside the allowed range (1-1000)",
    "SE04": "sort value is not valid",
    "SE05": "Search API does not exist",
    "SE06": "Query encoding is invalid",
    "SE99": "Upstream internal server error",
}


def strip_markup(text: Optional[str]) -> str:
    """Remove HTML tags and decode entities (<b>AI</b> &amp; ML → AI & ML)."""
    if not text:
        return ""
    return html.unescape(_TAG_RE.sub("", text))


def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 2822 date ("Mon, 19 Oct 2026 09:30:00 +0900")."""
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None


def parse_item(raw: dict[str, Any]) -> NewsItem:
    return NewsItem(
        title=strip_markup(raw.get("title")),
        link=raw.get("link", ""),
        source_link=raw.get("originallink", ""),
        summary=strip_markup(raw.get("description")),
        published_at=parse_pub_date(raw.get("pubDate")),
    )


class NaverNewsClient(NewsFetcher):
    """NewsFetcher backed by the Naver Search "news" endpoint."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "X-Naver-Client-Id": client_id,
                "X-Naver-Client-Secret": client_secret,
            },
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings) -> "NaverNewsClient":
        return cls(
            settings.naver_client_id,
            settings.naver_client_secret,
            base_url=settings.news_api_base_url,
            endpoint=settings.news_endpoint,
            timeout=settings.request_timeout_seconds,
        )

    async def search(
        self,
        query: str,
        *,
        display: int = 10,
        start: int = 1,
        sort: SortMode = SortMode.DATE,
    ) -> SearchPage:
        validate_search_params(query, display, start)
        sort = SortMode.parse(sort)

        try:
            resp = await self._client.get(
                self.endpoint,
                params={
                    "query": query,
                    "display": display,
                    "start": start,
                    "sort": _SORT_PARAM[sort],
                },
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            logger.warning("naver.unreachable", query=query, error=str(e))
            raise UpstreamUnavailableError(
                f"Cannot reach the news API: {e}"
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"News API request failed: {e}") from e

        try:
            return self._parse_page(resp.json())
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamError(f"Malformed news API response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()

    # ─── Helpers ───────────────────────────────────────────

    @staticmethod
    def _parse_page(data: dict[str, Any]) -> SearchPage:
        return SearchPage(
            total=int(data["total"]),
            start=int(data["start"]),
            display=int(data["display"]),
            items=tuple(parse_item(raw) for raw in data.get("items", [])),
            last_build_date=data.get("lastBuildDate"),
        )

    @staticmethod
    def _status_error(response: httpx.Response) -> UpstreamError:
        """Map an error response onto the UpstreamError hierarchy."""
        status = response.status_code
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        error_code = body.get("errorCode") or "UNKNOWN"
        message = _ERROR_MESSAGES.get(
            error_code, body.get("errorMessage") or "News API request failed"
        )
        text = f"[{status}] {message}"

        logger.warning("naver.error_response", status=status, error_code=error_code)
        if status >= 500 or error_code == "SE99":
            return UpstreamUnavailableError(text, status_code=status, error_code=error_code)
        if 400 <= status < 500:
            return UpstreamRejectedError(text, status_code=status, error_code=error_code)
        return UpstreamError(text, status_code=status, error_code=error_code)
