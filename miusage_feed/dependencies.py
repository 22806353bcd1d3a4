"""FastAPI dependency functions shared across routes."""

from fastapi import Request

from miusage_feed.services.coordinator import DataCoordinator


def get_coordinator(request: Request) -> DataCoordinator:
    """Return the coordinator wired into this app by ``create_app``."""
    return request.app.state.coordinator
