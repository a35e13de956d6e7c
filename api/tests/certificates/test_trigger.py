"""Tests for the certificate trigger."""

from datetime import UTC, datetime

import pytest

from src.certificates.schemas import CompletionCheckResult
from src.certificates.service import CompletionCheckError
from src.certificates.trigger import CERTIFICATE_ISSUED_MESSAGE, CertificateTrigger
from src.core.events import LessonCompleted


@pytest.fixture
def event(user_id, lesson_id) -> LessonCompleted:
    return LessonCompleted(
        user_id=user_id,
        lesson_id=lesson_id,
        completed_at=datetime(2024, 3, 1, tzinfo=UTC),
        watched_seconds=92,
    )


class TestCertificateTrigger:
    """Tests for CertificateTrigger.handle."""

    @pytest.mark.asyncio
    async def test_issued_notifies_with_code(self, checker, notifier, event) -> None:
        checker.result = CompletionCheckResult(issued=True, code="CERT-QWE123-2024")

        await CertificateTrigger(checker, notifier).handle(event)

        assert checker.calls == [(event.user_id, event.lesson_id)]
        user, message, detail = notifier.sent[0]
        assert user == event.user_id
        assert message == CERTIFICATE_ISSUED_MESSAGE
        assert detail["code"] == "CERT-QWE123-2024"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "result",
        [
            CompletionCheckResult(issued=False, progress_percent=50.0),
            CompletionCheckResult(already_issued=True, code="CERT-OLD000-2023"),
        ],
    )
    async def test_not_issued_stays_silent(
        self, checker, notifier, event, result
    ) -> None:
        checker.result = result
        await CertificateTrigger(checker, notifier).handle(event)
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_check_failure_is_swallowed(self, checker, notifier, event) -> None:
        checker.error = CompletionCheckError("Completion check timeout")

        await CertificateTrigger(checker, notifier).handle(event)

        assert len(checker.calls) == 1
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_notification_failure_is_swallowed(
        self, checker, notifier, event
    ) -> None:
        checker.result = CompletionCheckResult(issued=True, code="CERT-QWE123-2024")
        notifier.error = ConnectionError("socket closed")

        await CertificateTrigger(checker, notifier).handle(event)

        assert len(checker.calls) == 1

    @pytest.mark.asyncio
    async def test_register_subscribes_to_lesson_completed(
        self, checker, notifier, event_bus, event
    ) -> None:
        trigger = CertificateTrigger(checker, notifier)
        trigger.register(event_bus)
        trigger.register(event_bus)

        assert await event_bus.publish(event) == 1
        assert len(checker.calls) == 1

        trigger.unregister(event_bus)
        assert event_bus.handler_count(LessonCompleted) == 0
