"""FastAPI application factory.

Learn: App factory pattern — create_app() builds the subscription
registry (the one piece of process state) and returns a configured
FastAPI instance with the registry on app.state. Lifespan handles
shutdown: every tracker is stopped and the upstream HTTP client closed.

Tests call create_app(fetcher=FakeFetcher(), scheduler=ManualScheduler())
to get an app with no network access and hand-driven ticks.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from newstracker import __version__
from newstracker.api import api_router
from newstracker.config import settings
from newstracker.news.base import NewsFetcher
from newstracker.news.naver import NaverNewsClient
from newstracker.realtime.registry import SubscriptionRegistry
from newstracker.realtime.scheduler import Scheduler

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. The registry already exists (create_app built it); startup
    only logs, shutdown tears it down.
    """
    registry: SubscriptionRegistry = app.state.registry
    logger.info(
        "newstracker.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
        default_interval=registry.default_interval,
    )

    yield

    logger.info("newstracker.shutdown")
    await registry.shutdown()
    await registry.fetcher.aclose()


def create_app(
    *,
    fetcher: Optional[NewsFetcher] = None,
    scheduler: Optional[Scheduler] = None,
) -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="newstracker",
        description="Keyword news search with live push updates over WebSocket",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.registry = SubscriptionRegistry(
        fetcher or NaverNewsClient.from_settings(settings),
        scheduler,
        default_interval=settings.default_refresh_interval,
        default_display=settings.default_page_size,
        default_sort=settings.default_sort,
        listener_timeout=settings.listener_timeout_seconds,
    )

    # ── Middleware stack ──────────────────────────────────────
    from newstracker.middleware.request_id import RequestIdMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount API routes
    app.include_router(api_router)

    # Mount WebSocket route (live keyword feeds)
    from newstracker.realtime.websocket import router as ws_router
    app.include_router(ws_router)

    return app


# Default app instance (used by uvicorn: newstracker.main:app)
app = create_app()
