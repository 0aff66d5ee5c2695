"""FastAPI dependencies — reach the process-wide objects built by main.py.

Learn: The registry and fetcher are created once in create_app() and
stored on app.state. Routes ask for them via Depends(...) so tests can
build an app around a fake fetcher without touching globals.
"""

from fastapi import Request

from newstracker.news.base import NewsFetcher
from newstracker.realtime.registry import SubscriptionRegistry


def get_registry(request: Request) -> SubscriptionRegistry:
    return request.app.state.registry


def get_fetcher(request: Request) -> NewsFetcher:
    return request.app.state.registry.fetcher
