"""Pydantic schemas for lesson progress and playback sessions.

Request and response models for:
- Playback WebSocket messages (client ticks, server state pushes)
- Stored lesson progress queries
- Sales-video unlock gate
"""

from datetime import datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .models import LessonProgress, TrackerState


# ==============================================================================
# Playback WebSocket: client -> server
# ==============================================================================


class TickMessage(BaseModel):
    """Periodic playback position sent by the player (timeupdate)."""

    type: Literal["tick"]
    current_time: float = Field(..., description="Current video position in seconds")
    duration: float = Field(..., description="Video duration in seconds (0 if unknown)")


class CompleteMessage(BaseModel):
    """Manual "mark as complete" action."""

    type: Literal["complete"]


class PingMessage(BaseModel):
    """Keep-alive ping."""

    type: Literal["ping"]


ClientMessage = Annotated[
    TickMessage | CompleteMessage | PingMessage,
    Field(discriminator="type"),
]

client_message_adapter: TypeAdapter[Any] = TypeAdapter(ClientMessage)


# ==============================================================================
# Playback WebSocket: server -> client
# ==============================================================================


class SessionStateMessage(BaseModel):
    """Session state pushed on connect ("session") and after ticks ("progress")."""

    type: Literal["session", "progress"]
    lesson_id: UUID
    state: TrackerState
    watched_seconds: int = Field(description="Resume position / last observed second")
    is_completed: bool
    completed_at: datetime | None = None
    real: float = Field(description="Real fraction watched (0-1)")
    display: float = Field(description="Fraction shown on the progress bar (0-1)")

    @classmethod
    def from_snapshot(
        cls, message_type: Literal["session", "progress"], snapshot: dict[str, Any]
    ) -> "SessionStateMessage":
        """Build from ``PlaybackTracker.snapshot()``."""
        return cls(type=message_type, **snapshot)


class LessonCompletedMessage(BaseModel):
    """Sent once, when the session transitions into completed."""

    type: Literal["completed"] = "completed"
    lesson_id: UUID
    completed_at: datetime
    manual: bool
    message: str


class ErrorMessage(BaseModel):
    """Malformed client message (the socket stays open)."""

    type: Literal["error"] = "error"
    message: str


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class LessonProgressResponse(BaseModel):
    """Stored lesson progress."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    watched_seconds: int = Field(description="Resume position in seconds")
    is_completed: bool
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: LessonProgress) -> "LessonProgressResponse":
        """Create response from entity."""
        return cls(
            lesson_id=entity.lesson_id,
            watched_seconds=entity.watched_seconds,
            is_completed=entity.is_completed,
            completed_at=entity.completed_at,
            updated_at=entity.updated_at,
        )


# ==============================================================================
# Unlock Gate Schemas
# ==============================================================================


class UnlockProgressRequest(BaseModel):
    """Sales-video playback position reported by an anonymous visitor."""

    visitor_id: str = Field(..., min_length=8, max_length=64)
    current_time: float = Field(..., ge=0)
    duration: float = Field(..., ge=0)


class UnlockStatusResponse(BaseModel):
    """Unlock state of a visitor."""

    visitor_id: str
    unlocked: bool
    just_unlocked: bool = False
    real: float = 0.0
    display: float = 0.0
