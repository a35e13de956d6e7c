"""User-facing notifications.

Business logic for:
- Tracking live WebSocket connections per user
- Pushing success notifications (e.g. certificate issued) to those sockets
- Relaying notifications through Redis Pub/Sub so sockets held by other
  workers receive them too

Delivery is fire-and-forget: failures are logged, never raised.
"""

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID, uuid4

from fastapi import WebSocket

from src.core.logging import get_logger
from src.core.redis import notification_channel


if TYPE_CHECKING:
    from redis.asyncio import Redis


logger = get_logger(__name__)

# Identifies this process in relayed messages
WORKER_ID = uuid4().hex


class NotificationSink(Protocol):
    """Capability to show a one-shot success message to a user."""

    async def notify_success(
        self, user_id: UUID, message: str, detail: dict[str, Any] | None = None
    ) -> None: ...


class ConnectionManager:
    """Manage WebSocket connections by user."""

    def __init__(self) -> None:
        # user_id -> list of active connections
        self.active_connections: dict[str, list[WebSocket]] = {}

    def register(self, user_id: str, websocket: WebSocket) -> None:
        """Register an accepted WebSocket connection."""
        self.active_connections.setdefault(user_id, []).append(websocket)
        logger.debug("websocket_registered", user_id=user_id)

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        if user_id in self.active_connections:
            if websocket in self.active_connections[user_id]:
                self.active_connections[user_id].remove(websocket)
            if not self.active_connections[user_id]:
                del self.active_connections[user_id]
        logger.debug("websocket_unregistered", user_id=user_id)

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send message to all connections for a user.

        Returns:
            Number of connections that received the message.
        """
        delivered = 0
        disconnected = []
        for connection in list(self.active_connections.get(user_id, [])):
            try:
                await connection.send_json(message)
                delivered += 1
            except Exception:
                disconnected.append(connection)

        for conn in disconnected:
            self.disconnect(user_id, conn)
        return delivered

    def get_connected_users(self) -> list[str]:
        """Get list of currently connected user IDs."""
        return list(self.active_connections.keys())


class NotificationService:
    """Notification sink backed by live sockets and an optional Redis relay."""

    def __init__(
        self,
        manager: ConnectionManager,
        redis: "Redis | None" = None,
    ):
        self.manager = manager
        self.redis = redis

    @staticmethod
    def build_message(
        message: str, detail: dict[str, Any] | None = None, level: str = "success"
    ) -> dict[str, Any]:
        """Wire format of a notification."""
        return {
            "type": "notification",
            "level": level,
            "message": message,
            "detail": detail or {},
            "created_at": datetime.now(UTC).isoformat(),
        }

    async def notify_success(
        self, user_id: UUID, message: str, detail: dict[str, Any] | None = None
    ) -> None:
        """Show a success message on every session of the user."""
        payload = self.build_message(message, detail)
        user_key = str(user_id)

        delivered = await self.manager.send_to_user(user_key, payload)
        logger.info("notification_sent", user_id=user_key, connections=delivered)

        if self.redis is None:
            return

        # Other workers relay it to the sockets they hold
        try:
            await self.redis.publish(
                notification_channel(user_key),
                json.dumps({**payload, "origin": WORKER_ID}),
            )
        except Exception as e:
            logger.warning(
                "notification_publish_failed", user_id=user_key, error=str(e)
            )


# Global connection manager instance (one per worker process)
manager = ConnectionManager()


def get_connection_manager() -> ConnectionManager:
    """Get the connection manager instance."""
    return manager
