"""
Liveness endpoint.
"""
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from ..dependencies import get_cache_service
from ..services.cache_service import CacheService

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request, cache: CacheService = Depends(get_cache_service)):
    """Report process uptime and cache connectivity."""
    started_at = getattr(request.app.state, "started_at", time.time())
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.time() - started_at, 3),
        "redis": "connected" if cache.is_available() else "disconnected",
    }
