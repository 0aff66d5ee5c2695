"""API route aggregation.

All routers registered here get mounted in main.py. Every route is open;
authentication is out of scope for this service.
"""

from fastapi import APIRouter

from newstracker.api.health import router as health_router
from newstracker.api.news import router as news_router
from newstracker.api.realtime import router as realtime_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(news_router, tags=["news"])
api_router.include_router(realtime_router, tags=["realtime"])
