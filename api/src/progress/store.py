# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Lesson progress persistence.

Provides:
- ``ProgressStore`` protocol consumed by playback sessions
- Cassandra implementation (upsert keyed by user and lesson)
- Progress error hierarchy
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

import structlog

from .models import LessonProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ProgressLoadError(ProgressError):
    """Prior progress could not be read."""

    def __init__(self, message: str = "Nao foi possivel carregar o progresso"):
        super().__init__(message, "progress_load_failed")


class ProgressPersistError(ProgressError):
    """Progress upsert failed."""

    def __init__(self, message: str = "Nao foi possivel salvar o progresso"):
        super().__init__(message, "progress_persist_failed")


class StoreUnavailableError(ProgressError):
    """Progress store not initialized."""

    def __init__(self, message: str = "Servico de progresso nao disponivel"):
        super().__init__(message, "store_unavailable")


# ==============================================================================
# Store Protocol
# ==============================================================================


class ProgressStore(Protocol):
    """Storage capability used by playback sessions."""

    async def read_progress(
        self, user_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        """Return the stored record, or None when the user never watched."""
        ...

    async def upsert_progress(self, record: LessonProgress) -> None:
        """Write the full record, overwriting any existing one."""
        ...


# ==============================================================================
# Cassandra Store
# ==============================================================================


class CassandraProgressStore:
    """Lesson progress stored in the ``lesson_progress`` table."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND lesson_id = ?
        """)

        self._get_user_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ?
        """)

        self._upsert_lesson_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_progress
            (user_id, lesson_id, watched_seconds, is_completed,
             completed_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

    async def read_progress(
        self, user_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        """Get progress for a single lesson.

        Raises:
            ProgressLoadError: If the read fails
        """
        try:
            result = await self.session.aexecute(
                self._get_lesson_progress, [user_id, lesson_id]
            )
        except Exception as e:
            raise ProgressLoadError from e
        row = result.one()
        return LessonProgress.from_row(row) if row else None

    async def list_user_progress(self, user_id: UUID) -> list[LessonProgress]:
        """Get every lesson progress record of a user."""
        try:
            rows = await self.session.aexecute(self._get_user_progress, [user_id])
        except Exception as e:
            raise ProgressLoadError from e
        return [LessonProgress.from_row(row) for row in rows]

    async def upsert_progress(self, record: LessonProgress) -> None:
        """Insert or overwrite the record for (user, lesson).

        Raises:
            ProgressPersistError: If the write fails
        """
        try:
            await self.session.aexecute(
                self._upsert_lesson_progress,
                [
                    record.user_id,
                    record.lesson_id,
                    record.watched_seconds,
                    record.is_completed,
                    record.completed_at,
                    record.updated_at,
                ],
            )
        except Exception as e:
            raise ProgressPersistError from e
        logger.debug(
            "lesson_progress_upserted",
            user_id=str(record.user_id),
            lesson_id=str(record.lesson_id),
            watched_seconds=record.watched_seconds,
            is_completed=record.is_completed,
        )
