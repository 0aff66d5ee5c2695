"""Realtime introspection routes."""

from fastapi import APIRouter, Depends

from newstracker.api.deps import get_registry
from newstracker.realtime.registry import SubscriptionRegistry
from newstracker.schemas.news import RealtimeStatusRead

router = APIRouter()


@router.get("/realtime/status", response_model=RealtimeStatusRead)
async def realtime_status(registry: SubscriptionRegistry = Depends(get_registry)):
    """Tracked keywords, subscriber counts, and cached keywords."""
    return registry.status()
