"""Database models for lesson progress.

Cassandra table definitions for:
- Lesson progress: watched seconds and completion per (user, lesson)

Writes are full-record upserts (a Cassandra INSERT overwrites on conflict),
so concurrent sessions on the same lesson resolve as last-write-wins.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID


class TrackerState(str, Enum):
    """Playback session state."""

    LOADING = "loading"  # Prior progress not fetched yet
    TRACKING = "tracking"  # Receiving ticks, not completed
    COMPLETED = "completed"  # Absorbing


# ==============================================================================
# Helper Functions
# ==============================================================================


def ensure_utc_aware(dt: datetime | None) -> datetime | None:
    """Ensure datetime is UTC-aware (Cassandra returns naive datetimes)."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Progresso de aula por usuario
# Partition key: user_id (certificate checks read every lesson of a user)
# Clustering: lesson_id
LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id UUID,
    lesson_id UUID,
    watched_seconds INT,
    is_completed BOOLEAN,
    completed_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id), lesson_id)
)
"""

PROGRESS_TABLES_CQL = [
    LESSON_PROGRESS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class LessonProgress:
    """Persisted progress of one user on one lesson.

    Attributes:
        user_id: User UUID
        lesson_id: Lesson UUID
        watched_seconds: Last observed playback position, whole seconds
        is_completed: Completion flag (never goes back to False)
        completed_at: Completion timestamp, set iff is_completed
        updated_at: Timestamp of the last write
    """

    def __init__(
        self,
        user_id: UUID,
        lesson_id: UUID,
        watched_seconds: int = 0,
        is_completed: bool = False,
        completed_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.lesson_id = lesson_id
        self.watched_seconds = max(0, int(watched_seconds))
        self.is_completed = is_completed
        self.completed_at = ensure_utc_aware(completed_at) if is_completed else None
        self.updated_at = ensure_utc_aware(updated_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "LessonProgress":
        """Create LessonProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            lesson_id=row.lesson_id,
            watched_seconds=row.watched_seconds or 0,
            is_completed=bool(row.is_completed),
            completed_at=row.completed_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "lesson_id": self.lesson_id,
            "watched_seconds": self.watched_seconds,
            "is_completed": self.is_completed,
            "completed_at": self.completed_at,
            "updated_at": self.updated_at,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LessonProgress):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"<LessonProgress user={self.user_id} lesson={self.lesson_id} "
            f"{self.watched_seconds}s completed={self.is_completed}>"
        )
