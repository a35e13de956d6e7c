"""Notifications module for user-facing messages.

Provides:
- Success notifications pushed to the user's live sockets
- Redis relay between workers
- WebSocket notification stream

Note: Router is imported directly in main.py to avoid circular imports.
"""

from src.notifications.service import (
    ConnectionManager,
    NotificationService,
    NotificationSink,
    get_connection_manager,
)


__all__ = [
    "ConnectionManager",
    "NotificationService",
    "NotificationSink",
    "get_connection_manager",
]
