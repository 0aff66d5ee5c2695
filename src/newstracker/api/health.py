"""Health check endpoint.

Learn: Reports that the server is up and how much live tracking is
going on. Never calls the upstream news API.
"""

from fastapi import APIRouter, Depends

from newstracker import __version__
from newstracker.api.deps import get_registry
from newstracker.realtime.registry import SubscriptionRegistry

router = APIRouter()


@router.get("/health")
async def health_check(registry: SubscriptionRegistry = Depends(get_registry)):
    """Server status plus tracker and subscription counts."""
    status = registry.status()
    return {
        "status": "healthy" if status.running else "shutting_down",
        "server": "ok",
        "version": __version__,
        "trackers": len(status.keywords),
        "subscriptions": sum(status.subscriber_count_by_keyword.values()),
        "cached_keywords": len(status.cached_keywords),
    }
