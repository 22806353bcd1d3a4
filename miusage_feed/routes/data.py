"""JSON data routes: public read and privileged refresh.

GET  /api/data     → cached-or-fresh payload, open to anyone (widget, admin JS)
POST /api/refresh  → forced refresh, requires manage_options + a valid nonce
"""

import asyncio
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Header

from miusage_feed.dependencies import get_coordinator
from miusage_feed.errors import AuthenticationRequired, PermissionDenied
from miusage_feed.presentation import sanitize_payload
from miusage_feed.security import REFRESH_CAPABILITY, Identity, get_identity, verify_nonce
from miusage_feed.services.coordinator import DataCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


@router.get("/data")
async def get_data(coordinator: DataCoordinator = Depends(get_coordinator)) -> dict:
    """Serve the payload with cache metadata. Upstream failures become a 500."""
    data = await asyncio.to_thread(coordinator.get_data)
    cache_info = coordinator.get_cache_info()

    return {
        "success": True,
        "data": {
            "data": sanitize_payload(data),
            "cache_info": {
                "is_cached": cache_info.has_cache,
                "cache_age": int(cache_info.age),
            },
            "timestamp": _now(),
        },
    }


@router.post("/refresh")
async def refresh_data(
    coordinator: DataCoordinator = Depends(get_coordinator),
    identity: Identity | None = Depends(get_identity),
    x_refresh_nonce: str | None = Header(None),
) -> dict:
    """Bypass the cache and fetch now. Privileged callers only."""
    if identity is None:
        raise AuthenticationRequired()
    if not identity.can(REFRESH_CAPABILITY):
        raise PermissionDenied()
    if not verify_nonce(x_refresh_nonce, identity.user_id):
        logger.warning("Refresh rejected: bad nonce for user %s", identity.user_id)
        raise PermissionDenied("Security check failed.")

    logger.info("Manual refresh requested by %s", identity.user_id)
    data = await asyncio.to_thread(coordinator.get_data, True)

    return {
        "success": True,
        "data": {
            "data": sanitize_payload(data),
            "message": "Data refreshed successfully!",
            "timestamp": _now(),
        },
    }
