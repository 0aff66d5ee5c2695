"""Error taxonomy shared by the news client, the realtime core and the API.

Learn: Every failure the system can report maps to one of these classes,
so each layer decides what to do by type rather than by parsing messages:

- InvalidArgumentError: bad keyword / interval / paging, rejected before
  any state changes
- PageRangeError: page offset beyond what the upstream can address
- UpstreamError and its subclasses: the news-search API failed
  (rejected the request, unreachable, or something unknown)

The HTTP layer maps these to status codes (api/news.py); the tracker
turns upstream failures into "error" events for subscribers.
"""

from typing import Optional


class NewsTrackerError(Exception):
    """Base class for every error raised by newstracker."""


class InvalidArgumentError(NewsTrackerError):
    pass


class PageRangeError(NewsTrackerError):
    pass


class RegistryClosedError(NewsTrackerError):
    pass


class TrackerClosedError(NewsTrackerError):
    pass


class UpstreamError(NewsTrackerError):
    """The news-search API failed for an unknown reason."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class UpstreamRejectedError(UpstreamError):
    """The upstream refused the request (4xx). Retrying unmodified won't help."""


class UpstreamUnavailableError(UpstreamError):
    """The upstream could not be reached or failed server-side. Transient."""
