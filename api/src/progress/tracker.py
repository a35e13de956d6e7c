"""Playback tracking for a single lesson session.

One ``PlaybackTracker`` lives as long as one lesson player (a playback
WebSocket). It receives playback ticks, decides when the lesson counts as
completed, and writes progress to the store at a bounded rate:

- ticks are written at most once per ``persist_interval`` seconds; ticks in
  between (re)schedule a single deferred write
- crossing the completion threshold writes immediately and publishes
  ``LessonCompleted`` once per session
- ``mark_complete`` forces the same transition manually

Store failures are logged and swallowed; the next successful write carries
the latest state.
"""

from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from src.core.events import LessonCompleted

from .curve import display_progress, playback_fraction
from .models import LessonProgress, TrackerState


if TYPE_CHECKING:
    from src.config.settings import Settings
    from src.core.events import EventBus

    from .store import ProgressStore

logger = structlog.get_logger(__name__)

DEFAULT_COMPLETION_THRESHOLD = 0.9
DEFAULT_PERSIST_INTERVAL = 10.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DeferredTask:
    """Single-slot deferred coroutine runner.

    ``schedule`` always cancels the pending callback before arming a new one,
    so at most one callback is pending at any time.
    """

    def __init__(self) -> None:
        self._handle: asyncio.TimerHandle | None = None
        self._running: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> bool:
        """Whether a callback is armed and has not fired yet."""
        return self._handle is not None

    def schedule(
        self, delay: float, callback: Callable[[], Awaitable[None]]
    ) -> None:
        """Run ``callback`` after ``delay`` seconds, replacing any pending one."""
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(delay, self._fire, callback)

    def cancel(self) -> bool:
        """Cancel the pending callback. Returns True if one was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._handle = None
        return True

    async def wait_running(self) -> None:
        """Wait for callbacks that already fired to finish."""
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)

    def _fire(self, callback: Callable[[], Awaitable[None]]) -> None:
        self._handle = None
        task = asyncio.ensure_future(callback())
        self._running.add(task)
        task.add_done_callback(self._running.discard)


class PlaybackTracker:
    """Progress session for one user watching one lesson.

    State machine: ``loading -> tracking -> completed`` (absorbing).

    Args:
        store: Progress store used for reads and upserts.
        events: Bus receiving ``LessonCompleted``; optional.
        completion_threshold: Real fraction at which the lesson completes.
        persist_interval: Minimum seconds between regular writes.
        flush_on_teardown: Write unsaved progress when the session closes.
        clock: Monotonic seconds source for the write-rate limit.
        now: Wall-clock source for persisted timestamps.
    """

    def __init__(
        self,
        store: ProgressStore,
        events: EventBus | None = None,
        *,
        completion_threshold: float = DEFAULT_COMPLETION_THRESHOLD,
        persist_interval: float = DEFAULT_PERSIST_INTERVAL,
        flush_on_teardown: bool = True,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.events = events
        self.completion_threshold = completion_threshold
        self.persist_interval = persist_interval
        self.flush_on_teardown = flush_on_teardown
        self._clock = clock
        self._now = now

        self.user_id: UUID | None = None
        self.lesson_id: UUID | None = None
        self.state = TrackerState.LOADING
        self.watched_seconds: float = 0.0
        self.duration: float = 0.0
        self.is_completed = False
        self.completed_at: datetime | None = None
        self.last_persist_at: float = 0.0

        self._deferred = DeferredTask()
        self._publishing: set[asyncio.Task[Any]] = set()
        self._closed = False

    @classmethod
    def from_settings(
        cls,
        store: ProgressStore,
        events: EventBus | None,
        settings: Settings,
    ) -> PlaybackTracker:
        """Build a tracker configured from application settings."""
        return cls(
            store,
            events,
            completion_threshold=settings.progress_completion_threshold,
            persist_interval=settings.progress_persist_interval_seconds,
            flush_on_teardown=settings.progress_flush_on_teardown,
        )

    # ==========================================================================
    # Session lifecycle
    # ==========================================================================

    async def initialize(
        self, user_id: UUID | None, lesson_id: UUID
    ) -> LessonProgress | None:
        """Load prior progress and start tracking.

        Without a resolved user the session stays in ``loading`` and ignores
        ticks. A failed read counts as "no prior progress".

        Returns:
            The stored record, if one was loaded.
        """
        if self.state is not TrackerState.LOADING:
            return None
        if user_id is None:
            logger.debug("playback_session_waiting_identity", lesson_id=str(lesson_id))
            return None

        self.user_id = user_id
        self.lesson_id = lesson_id

        record: LessonProgress | None = None
        try:
            record = await self.store.read_progress(user_id, lesson_id)
        except Exception as e:
            logger.warning(
                "progress_load_failed",
                user_id=str(user_id),
                lesson_id=str(lesson_id),
                error=str(e),
            )

        if record is not None:
            self.watched_seconds = float(record.watched_seconds)
            self.is_completed = record.is_completed
            self.completed_at = record.completed_at

        self.state = (
            TrackerState.COMPLETED if self.is_completed else TrackerState.TRACKING
        )
        self.last_persist_at = self._clock()

        logger.info(
            "playback_session_started",
            user_id=str(user_id),
            lesson_id=str(lesson_id),
            resume_seconds=int(self.watched_seconds),
            state=self.state.value,
        )
        return record

    async def teardown(self) -> None:
        """Close the session, cancelling the pending deferred write.

        With ``flush_on_teardown`` a cancelled write is performed right away,
        so closing the player mid-interval does not lose watch time.
        """
        if self._closed:
            return
        self._closed = True

        had_pending = self._deferred.cancel()
        flushed = False
        if had_pending and self.flush_on_teardown and self.user_id is not None:
            flushed = await self._persist()
        await self.wait_published()

        logger.info(
            "playback_session_closed",
            user_id=str(self.user_id) if self.user_id else None,
            lesson_id=str(self.lesson_id) if self.lesson_id else None,
            watched_seconds=int(self.watched_seconds),
            flushed=flushed,
        )

    # ==========================================================================
    # Playback
    # ==========================================================================

    async def update_progress(self, current_time: float, duration: float) -> None:
        """Ingest a playback tick (current position and video duration)."""
        if self.state is TrackerState.LOADING or self._closed:
            return
        if not math.isfinite(current_time):
            return

        current_time = max(0.0, current_time)
        fraction = playback_fraction(current_time, duration)

        self.watched_seconds = current_time
        self.duration = duration

        if (
            fraction >= self.completion_threshold
            and self.state is TrackerState.TRACKING
        ):
            await self._complete(manual=False)
            return

        await self._persist_debounced()

    async def mark_complete(self) -> bool:
        """Complete the lesson manually.

        Idempotent: returns False (and does nothing) when the session is
        already completed, still loading or closed.
        """
        if self.state is not TrackerState.TRACKING or self._closed:
            return False
        await self._complete(manual=True)
        return True

    async def _complete(self, manual: bool) -> None:
        self._deferred.cancel()
        self.is_completed = True
        self.completed_at = self._now()
        self.state = TrackerState.COMPLETED
        self.last_persist_at = self._clock()

        await self._persist()

        logger.info(
            "lesson_completed",
            user_id=str(self.user_id),
            lesson_id=str(self.lesson_id),
            watched_seconds=int(self.watched_seconds),
            manual=manual,
        )

        if self.events is not None:
            self._publish(
                LessonCompleted(
                    user_id=self.user_id,
                    lesson_id=self.lesson_id,
                    completed_at=self.completed_at,
                    watched_seconds=int(self.watched_seconds),
                    manual=manual,
                )
            )

    def _publish(self, event: LessonCompleted) -> None:
        # Subscribers may call remote services; ticks keep flowing meanwhile
        task = asyncio.ensure_future(self.events.publish(event))
        self._publishing.add(task)
        task.add_done_callback(self._publishing.discard)

    async def wait_published(self) -> None:
        """Wait until completion subscribers have finished."""
        if self._publishing:
            await asyncio.gather(*self._publishing, return_exceptions=True)

    # ==========================================================================
    # Persistence
    # ==========================================================================

    async def _persist_debounced(self) -> None:
        now = self._clock()
        if now - self.last_persist_at >= self.persist_interval:
            self._deferred.cancel()
            self.last_persist_at = now
            await self._persist()
        else:
            self._deferred.schedule(self.persist_interval, self._persist_deferred)

    async def _persist_deferred(self) -> None:
        if self._closed:
            return
        self.last_persist_at = self._clock()
        await self._persist()

    async def _persist(self) -> bool:
        record = self.to_record()
        try:
            await self.store.upsert_progress(record)
        except Exception as e:
            logger.warning(
                "progress_persist_failed",
                user_id=str(self.user_id),
                lesson_id=str(self.lesson_id),
                watched_seconds=record.watched_seconds,
                error=str(e),
            )
            return False
        return True

    # ==========================================================================
    # Views
    # ==========================================================================

    @property
    def deferred_pending(self) -> bool:
        """Whether a deferred write is armed."""
        return self._deferred.pending

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def real_fraction(self) -> float:
        """Real fraction of the last observed tick."""
        return playback_fraction(self.watched_seconds, self.duration)

    def to_record(self) -> LessonProgress:
        """Full record written on every persist (seconds truncated)."""
        return LessonProgress(
            user_id=self.user_id,
            lesson_id=self.lesson_id,
            watched_seconds=math.floor(self.watched_seconds),
            is_completed=self.is_completed,
            completed_at=self.completed_at,
            updated_at=self._now(),
        )

    def snapshot(self) -> dict[str, Any]:
        """Session state sent to the player."""
        real = self.real_fraction
        return {
            "lesson_id": self.lesson_id,
            "state": self.state,
            "watched_seconds": math.floor(self.watched_seconds),
            "is_completed": self.is_completed,
            "completed_at": self.completed_at,
            "real": real,
            "display": display_progress(real),
        }

    async def wait_deferred(self) -> None:
        """Wait for deferred writes that already started."""
        await self._deferred.wait_running()
