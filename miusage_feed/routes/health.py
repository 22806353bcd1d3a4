"""Health and readiness check routes."""

import logging

from fastapi import APIRouter, Depends

from miusage_feed.config import settings
from miusage_feed.dependencies import get_coordinator
from miusage_feed.services.coordinator import DataCoordinator

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/ready")
async def ready() -> dict:
    """Lightweight readiness check — no external calls."""
    return {"status": "ok", "service": "miusage-feed", "commit": settings.git_sha}


@router.get("/health")
async def health(coordinator: DataCoordinator = Depends(get_coordinator)) -> dict:
    """Cache status and fetch counters. Reads only; never triggers a fetch."""
    info = coordinator.get_cache_info()
    return {
        "status": "ok" if info.is_valid else "degraded" if info.has_cache else "empty",
        "service": "miusage-feed",
        "commit": settings.git_sha,
        "cache": {
            "has_cache": info.has_cache,
            "is_valid": info.is_valid,
            "age": int(info.age),
            "expires_in": int(info.expires_in),
        },
        "refresh_pending": coordinator.is_refresh_pending(),
        "fetch_count": coordinator.fetch_count,
        "fallback_count": coordinator.fallback_count,
    }
