"""Tests for the playback tracker.

Covers:
- completion threshold and manual completion
- debounced persistence (immediate, deferred, teardown flush)
- load/persist failures
- single completion event per session
"""

import asyncio
import math
from datetime import UTC, datetime

import pytest

from src.certificates.schemas import CompletionCheckResult
from src.certificates.trigger import CertificateTrigger
from src.config.settings import Settings
from src.core.events import LessonCompleted
from src.progress.models import LessonProgress, TrackerState
from src.progress.tracker import PlaybackTracker


def asyncio_clock():
    """Clock following the running event loop."""
    return lambda: asyncio.get_running_loop().time()


@pytest.fixture
def make_tracker(store, event_bus, clock, fixed_now):
    """Build trackers sharing the test store, bus and clocks."""

    def _make(**kwargs) -> PlaybackTracker:
        kwargs.setdefault("clock", clock)
        kwargs.setdefault("now", lambda: fixed_now)
        return PlaybackTracker(store, event_bus, **kwargs)

    return _make


@pytest.fixture
def trigger(checker, notifier, event_bus) -> CertificateTrigger:
    trigger = CertificateTrigger(checker, notifier)
    trigger.register(event_bus)
    return trigger


class TestInitialize:
    """Tests for session start."""

    @pytest.mark.asyncio
    async def test_fresh_session_starts_tracking(
        self, make_tracker, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        record = await tracker.initialize(user_id, lesson_id)

        assert record is None
        assert tracker.state is TrackerState.TRACKING
        assert tracker.watched_seconds == 0
        assert tracker.is_completed is False

    @pytest.mark.asyncio
    async def test_resumes_stored_position(
        self, make_tracker, store, user_id, lesson_id
    ) -> None:
        store.records[(user_id, lesson_id)] = LessonProgress(
            user_id, lesson_id, watched_seconds=42
        )
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        assert tracker.watched_seconds == 42
        assert tracker.snapshot()["watched_seconds"] == 42
        assert tracker.state is TrackerState.TRACKING

    @pytest.mark.asyncio
    async def test_completed_record_starts_completed(
        self, make_tracker, store, user_id, lesson_id
    ) -> None:
        done_at = datetime(2024, 1, 2, 10, 0, tzinfo=UTC)
        store.records[(user_id, lesson_id)] = LessonProgress(
            user_id,
            lesson_id,
            watched_seconds=300,
            is_completed=True,
            completed_at=done_at,
        )
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        assert tracker.state is TrackerState.COMPLETED
        assert tracker.completed_at == done_at
        assert await tracker.mark_complete() is False

    @pytest.mark.asyncio
    async def test_load_failure_counts_as_no_progress(
        self, make_tracker, store, user_id, lesson_id
    ) -> None:
        store.read_error = RuntimeError("cassandra timeout")
        tracker = make_tracker()
        record = await tracker.initialize(user_id, lesson_id)

        assert record is None
        assert tracker.state is TrackerState.TRACKING
        assert tracker.watched_seconds == 0

    @pytest.mark.asyncio
    async def test_without_identity_ticks_are_ignored(
        self, make_tracker, store, clock, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(None, lesson_id)

        clock.advance(30)
        await tracker.update_progress(95.0, 100.0)

        assert tracker.state is TrackerState.LOADING
        assert tracker.watched_seconds == 0
        assert store.writes == []
        assert await tracker.mark_complete() is False


class TestCompletionThreshold:
    """Tests for automatic completion."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("position", "completed"),
        [(89.0, False), (90.0, True), (95.0, True)],
    )
    async def test_threshold(
        self, make_tracker, user_id, lesson_id, position, completed
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.update_progress(position, 100.0)

        assert tracker.is_completed is completed
        await tracker.teardown()

    @pytest.mark.asyncio
    async def test_completion_persists_immediately(
        self, make_tracker, store, fixed_now, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.update_progress(91.4, 100.0)

        assert len(store.writes) == 1
        record = store.writes[0]
        assert record.is_completed is True
        assert record.completed_at == fixed_now
        assert record.watched_seconds == 91

    @pytest.mark.asyncio
    async def test_completion_cancels_pending_write(
        self, make_tracker, store, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        clock.advance(1)
        await tracker.update_progress(50.0, 100.0)
        assert tracker.deferred_pending

        clock.advance(1)
        await tracker.update_progress(92.0, 100.0)

        assert not tracker.deferred_pending
        assert len(store.writes) == 1

    @pytest.mark.asyncio
    async def test_unknown_duration_never_completes(
        self, make_tracker, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.update_progress(500.0, 0.0)

        assert tracker.is_completed is False
        assert tracker.real_fraction == 0.0
        await tracker.teardown()

    @pytest.mark.parametrize("duration", [0.0, -1.0, math.nan])
    @pytest.mark.asyncio
    async def test_snapshot_follows_last_duration(
        self, make_tracker, clock, user_id, lesson_id, duration
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.update_progress(50.0, 100.0)
        assert tracker.snapshot()["real"] == 0.5

        clock.advance(1)
        await tracker.update_progress(60.0, duration)

        snapshot = tracker.snapshot()
        assert snapshot["real"] == 0.0
        assert snapshot["display"] == 0.0
        assert snapshot["watched_seconds"] == 60
        await tracker.teardown()

    @pytest.mark.asyncio
    async def test_completion_publishes_once(
        self, make_tracker, trigger, checker, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        for position in (90.0, 95.0, 99.0):
            clock.advance(1)
            await tracker.update_progress(position, 100.0)
        await tracker.mark_complete()

        await tracker.wait_published()
        assert checker.calls == [(user_id, lesson_id)]
        await tracker.teardown()

    @pytest.mark.asyncio
    async def test_completed_session_keeps_completed_at(
        self, make_tracker, store, clock, fixed_now, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.update_progress(90.0, 100.0)

        clock.advance(15)
        await tracker.update_progress(97.0, 100.0)

        assert [w.watched_seconds for w in store.writes] == [90, 97]
        assert all(w.completed_at == fixed_now for w in store.writes)


class TestMarkComplete:
    """Tests for manual completion."""

    @pytest.mark.asyncio
    async def test_twice_writes_and_checks_once(
        self, make_tracker, trigger, store, checker, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        assert await tracker.mark_complete() is True
        assert await tracker.mark_complete() is False

        await tracker.wait_published()
        assert len(store.writes) == 1
        assert len(checker.calls) == 1
        assert tracker.state is TrackerState.COMPLETED

    @pytest.mark.asyncio
    async def test_persist_failure_still_completes(
        self, make_tracker, trigger, store, checker, user_id, lesson_id
    ) -> None:
        store.write_error = RuntimeError("write timeout")
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        assert await tracker.mark_complete() is True

        await tracker.wait_published()
        assert tracker.is_completed is True
        assert store.writes == []
        assert len(checker.calls) == 1

    @pytest.mark.asyncio
    async def test_slow_subscriber_does_not_block_ticks(
        self, make_tracker, store, event_bus, clock, user_id, lesson_id
    ) -> None:
        release = asyncio.Event()
        handled = []

        async def slow_handler(event) -> None:
            await release.wait()
            handled.append(event.lesson_id)

        event_bus.subscribe(LessonCompleted, slow_handler)
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        await asyncio.wait_for(tracker.mark_complete(), timeout=1)
        clock.advance(15)
        await asyncio.wait_for(tracker.update_progress(96.0, 100.0), timeout=1)

        assert handled == []
        assert [w.watched_seconds for w in store.writes] == [0, 96]

        release.set()
        await tracker.teardown()
        assert handled == [lesson_id]


class TestDebounce:
    """Tests for rate-limited persistence."""

    @pytest.mark.asyncio
    async def test_one_second_ticks_write_every_interval(
        self, make_tracker, store, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        for _ in range(25):
            clock.advance(1)
            await tracker.update_progress(clock(), 1000.0)

        assert [w.watched_seconds for w in store.writes] == [10, 20]
        assert tracker.deferred_pending
        await tracker.teardown()

    @pytest.mark.asyncio
    async def test_seconds_are_truncated(
        self, make_tracker, store, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        clock.advance(10)
        await tracker.update_progress(37.9, 1000.0)

        assert store.writes[0].watched_seconds == 37

    @pytest.mark.asyncio
    async def test_deferred_write_fires(
        self, make_tracker, store, user_id, lesson_id
    ) -> None:
        tracker = make_tracker(persist_interval=0.05, clock=asyncio_clock())
        await tracker.initialize(user_id, lesson_id)

        await tracker.update_progress(3.0, 100.0)
        await tracker.update_progress(4.0, 100.0)
        assert tracker.deferred_pending

        await asyncio.sleep(0.1)
        await tracker.wait_deferred()

        assert [w.watched_seconds for w in store.writes] == [4]
        assert not tracker.deferred_pending

    @pytest.mark.asyncio
    async def test_negative_position_clamped(
        self, make_tracker, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        await tracker.update_progress(-5.0, 100.0)
        assert tracker.watched_seconds == 0

        await tracker.update_progress(math.nan, 100.0)
        assert tracker.watched_seconds == 0
        await tracker.teardown()


class TestTeardown:
    """Tests for session close."""

    @pytest.mark.asyncio
    async def test_flushes_pending_write(
        self, make_tracker, store, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)

        clock.advance(3)
        await tracker.update_progress(33.0, 100.0)
        await tracker.teardown()

        assert [w.watched_seconds for w in store.writes] == [33]
        assert not tracker.deferred_pending
        assert tracker.closed

    @pytest.mark.asyncio
    async def test_without_flush_drops_pending_write(
        self, make_tracker, store, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker(flush_on_teardown=False)
        await tracker.initialize(user_id, lesson_id)

        clock.advance(3)
        await tracker.update_progress(33.0, 100.0)
        await tracker.teardown()

        assert store.writes == []
        assert not tracker.deferred_pending

    @pytest.mark.asyncio
    async def test_nothing_pending_nothing_written(
        self, make_tracker, store, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.teardown()

        assert store.writes == []

    @pytest.mark.asyncio
    async def test_ticks_after_teardown_ignored(
        self, make_tracker, store, clock, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.teardown()

        clock.advance(20)
        await tracker.update_progress(95.0, 100.0)

        assert store.writes == []
        assert tracker.is_completed is False


class TestEndToEnd:
    """Full session from first tick to close."""

    @pytest.mark.asyncio
    async def test_fresh_session_watched_to_92_of_100(
        self,
        make_tracker,
        store,
        event_bus,
        checker,
        notifier,
        clock,
        fixed_now,
        user_id,
        lesson_id,
    ) -> None:
        checker.result = CompletionCheckResult(issued=True, code="CERT-ABC123-2024")
        CertificateTrigger(checker, notifier).register(event_bus)

        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        for second in range(93):
            await tracker.update_progress(float(second), 100.0)
            clock.advance(1)
        await tracker.teardown()

        record = store.records[(user_id, lesson_id)]
        assert record.watched_seconds == 92
        assert record.is_completed is True
        assert record.completed_at == fixed_now
        assert checker.calls == [(user_id, lesson_id)]
        assert notifier.sent[0][2]["code"] == "CERT-ABC123-2024"


class TestViews:
    """Tests for snapshot and configuration helpers."""

    @pytest.mark.asyncio
    async def test_snapshot_reports_real_and_display(
        self, make_tracker, user_id, lesson_id
    ) -> None:
        tracker = make_tracker()
        await tracker.initialize(user_id, lesson_id)
        await tracker.update_progress(10.0, 100.0)

        snapshot = tracker.snapshot()
        assert snapshot["real"] == pytest.approx(0.1)
        assert snapshot["display"] == pytest.approx(0.55)
        assert snapshot["state"] is TrackerState.TRACKING
        await tracker.teardown()

    def test_from_settings(self, store) -> None:
        settings = Settings(
            progress_completion_threshold=0.8,
            progress_persist_interval_seconds=5.0,
            progress_flush_on_teardown=False,
        )
        tracker = PlaybackTracker.from_settings(store, None, settings)

        assert tracker.completion_threshold == 0.8
        assert tracker.persist_interval == 5.0
        assert tracker.flush_on_teardown is False
