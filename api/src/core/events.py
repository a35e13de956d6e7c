"""In-process domain event bus.

Playback sessions publish events (e.g. a lesson was completed) without
knowing who consumes them; consumers such as the certificate trigger
subscribe at startup. Handlers run sequentially on the event loop and a
failing handler never affects the publisher or the other handlers.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog


logger = structlog.get_logger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True)
class LessonCompleted:
    """A playback session transitioned into the completed state."""

    user_id: UUID
    lesson_id: UUID
    completed_at: datetime
    watched_seconds: int = 0
    manual: bool = False


class EventBus:
    """Type-keyed publish/subscribe for domain events."""

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: EventHandler) -> None:
        """Register an async handler for an event type."""
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: EventHandler) -> None:
        """Remove a previously registered handler."""
        if handler in self._handlers.get(event_type, []):
            self._handlers[event_type].remove(handler)

    def handler_count(self, event_type: type) -> int:
        """Number of handlers subscribed to an event type."""
        return len(self._handlers.get(event_type, []))

    async def publish(self, event: object) -> int:
        """Deliver an event to every subscribed handler.

        Returns:
            Number of handlers that completed without raising.
        """
        delivered = 0
        for handler in list(self._handlers.get(type(event), [])):
            try:
                await handler(event)
                delivered += 1
            except Exception as e:
                logger.exception(
                    "event_handler_failed",
                    event_type=type(event).__name__,
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                )
        return delivered
