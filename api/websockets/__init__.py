"""WebSocket endpoint for real-time notifications."""

import logging

from fastapi import APIRouter, WebSocket

from notifications import NotificationBroadcaster

# Configure logging
logger = logging.getLogger(__name__)

# Create router
router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def notifications_endpoint(websocket: WebSocket):
    """Live channel carrying newNotification and <kind>-created events.

    Clients send ``{"event": "sendNotification", "data": {"id": ...}}`` or
    ``{"event": "new-product", "data": {...}}``.
    """
    broadcaster: NotificationBroadcaster = websocket.app.state.broadcaster
    await broadcaster.serve(websocket)


# Export the router
__all__ = ['router']
