"""Service descriptor and health endpoints."""

from fastapi import APIRouter, Depends, Request

from notifications import NotificationBroadcaster
from ..deps import get_broadcaster

API_VERSION = "1.0.0"

# Create router
router = APIRouter(tags=["System"])


@router.get("/api/info")
async def info(request: Request):
    """Static descriptor of this deployment. No authentication."""
    settings = request.app.state.settings
    return {
        "name": settings['service_name'],
        "contact": settings['contact_email'],
        "version": API_VERSION
    }


@router.get("/health")
async def health(broadcaster: NotificationBroadcaster = Depends(get_broadcaster)):
    return {
        "status": "ok",
        "connections": broadcaster.connection_count
    }
