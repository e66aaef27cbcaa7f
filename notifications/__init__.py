"""Real-time notification broadcaster.

One NotificationBroadcaster is created per process when the API starts and is
closed at shutdown. It owns the only shared mutable state outside the store:
the set of live WebSocket connections and the record of notification ids that
have already been broadcast.

Frames in both directions are JSON objects ``{"event": <name>, "data": <payload>}``.

Server events:
    newNotification   a client notification seen for the first time
    <kind>-created    a resource was created (product-created, photo-created)

Client events:
    sendNotification  submit a notification, deduplicated by its ``id``
    new-product       relayed to every peer as product-created

New connections are not sent earlier notifications. Delivery is best-effort:
a peer that fails or stalls while being sent an event misses it and is dropped.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)

SEND_TIMEOUT = 5  # seconds

NEW_NOTIFICATION = 'newNotification'
PRODUCT_CREATED = 'product-created'
SEND_NOTIFICATION = 'sendNotification'
NEW_PRODUCT = 'new-product'


class NotificationBroadcaster:
    """Deduplicates notifications and fans events out to live connections."""

    def __init__(self, send_timeout: float = SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self._connections: Set[WebSocket] = set()
        self._notifications: Dict[str, Any] = {}
        self._closed = False

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def seen(self, notification_id: Any) -> bool:
        """Whether a notification with this id has already been broadcast."""
        return str(notification_id) in self._notifications

    async def connect(self, websocket: WebSocket) -> bool:
        """Accept a connection and register it for broadcasts."""
        if self._closed:
            await websocket.close(code=1001)
            return False
        await websocket.accept()
        self._connections.add(websocket)
        logger.info(f"WebSocket connected ({len(self._connections)} live)")
        return True

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a connection. Disconnected is terminal; reconnecting means a new socket."""
        if websocket in self._connections:
            self._connections.discard(websocket)
            logger.info(f"WebSocket disconnected ({len(self._connections)} live)")

    async def submit(self, notification: Any) -> bool:
        """Broadcast a notification the first time its id is seen.

        Returns:
            True if it was broadcast, False if it was a duplicate or malformed
        """
        if not isinstance(notification, dict):
            logger.debug("Dropped notification that is not an object")
            return False

        notification_id = notification.get('id')
        if isinstance(notification_id, bool) or not isinstance(notification_id, (str, int)) \
                or notification_id == '':
            logger.debug("Dropped notification without a usable id")
            return False

        key = str(notification_id)
        # Check and record with no await in between, so concurrent submits of one id can't both pass
        if key in self._notifications:
            return False
        self._notifications[key] = notification

        await self._fan_out(NEW_NOTIFICATION, notification)
        return True

    async def on_resource_created(self, kind: str, entity: Dict[str, Any]) -> None:
        """Announce a newly created resource to every peer. Not deduplicated."""
        await self._fan_out(f"{kind}-created", entity)

    async def relay_product(self, payload: Any) -> None:
        """Re-broadcast a client-announced product as product-created."""
        if not isinstance(payload, dict):
            logger.debug("Dropped new-product payload that is not an object")
            return
        await self._fan_out(PRODUCT_CREATED, payload)

    async def handle_message(self, raw: str) -> None:
        """Dispatch one client frame. Malformed frames are dropped."""
        try:
            message = json.loads(raw)
        except ValueError:
            logger.debug("Dropped malformed WebSocket frame")
            return
        if not isinstance(message, dict):
            return

        event = message.get('event')
        data = message.get('data')
        if event == SEND_NOTIFICATION:
            await self.submit(data)
        elif event == NEW_PRODUCT:
            await self.relay_product(data)
        else:
            logger.debug(f"Ignored unknown WebSocket event {event!r}")

    async def serve(self, websocket: WebSocket) -> None:
        """Run one connection from accept until it disconnects."""
        if not await self.connect(websocket):
            return
        try:
            while True:
                message = await websocket.receive()
                if message['type'] == 'websocket.disconnect':
                    break
                text = message.get('text')
                if text is None and message.get('bytes') is not None:
                    text = message['bytes'].decode('utf-8', errors='replace')
                if text is not None:
                    await self.handle_message(text)
        finally:
            self.disconnect(websocket)

    async def _fan_out(self, event: str, data: Any) -> None:
        targets = list(self._connections)
        if not targets:
            return

        message = {'event': event, 'data': data}
        results = await asyncio.gather(*(self._send(ws, message) for ws in targets))

        for websocket, delivered in zip(targets, results):
            if not delivered:
                self.disconnect(websocket)

    async def _send(self, websocket: WebSocket, message: Dict[str, Any]) -> bool:
        try:
            await asyncio.wait_for(websocket.send_json(message), timeout=self.send_timeout)
            return True
        except Exception as e:
            logger.warning(f"Failed to send {message['event']} to connection: {e}")
            return False

    async def close(self) -> None:
        """Close every live connection and stop accepting new ones."""
        self._closed = True
        connections = list(self._connections)
        self._connections.clear()
        for websocket in connections:
            try:
                await websocket.close(code=1001, reason="Server shutting down")
            except Exception as e:
                logger.debug(f"Error closing WebSocket during shutdown: {e}")
        logger.info(f"Broadcaster closed ({len(connections)} connections dropped)")


__all__ = ['NotificationBroadcaster', 'NEW_NOTIFICATION', 'PRODUCT_CREATED']
