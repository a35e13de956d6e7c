"""Certificate issuance after a lesson completes.

Subscribes to ``LessonCompleted``, asks the completion checker whether the
enclosing course is now complete and, when a certificate was minted, shows
the student a one-shot success notification with the code.

Check failures are logged and swallowed: the lesson completion is already
persisted, and a later completion in the same course retries the check.
"""

from typing import Any

from src.core.events import EventBus, LessonCompleted
from src.core.logging import get_logger
from src.notifications.service import NotificationSink

from .schemas import CompletionChecker


logger = get_logger(__name__)

CERTIFICATE_ISSUED_MESSAGE = (
    "Parabens! Voce concluiu o curso e seu certificado foi emitido."
)


class CertificateTrigger:
    """Bridges lesson completion events to certificate issuance."""

    def __init__(self, checker: CompletionChecker, notifier: NotificationSink):
        self.checker = checker
        self.notifier = notifier

    def register(self, bus: EventBus) -> None:
        """Subscribe to lesson completion events."""
        bus.subscribe(LessonCompleted, self.handle)

    def unregister(self, bus: EventBus) -> None:
        bus.unsubscribe(LessonCompleted, self.handle)

    async def handle(self, event: LessonCompleted) -> None:
        """Check course completion for one completed lesson."""
        log = logger.bind(user_id=str(event.user_id), lesson_id=str(event.lesson_id))

        try:
            result = await self.checker.check(event.user_id, event.lesson_id)
        except Exception as e:
            log.warning("certificate_check_failed", error=str(e))
            return

        if not result.issued:
            log.debug(
                "certificate_not_issued",
                already_issued=result.already_issued,
                progress_percent=result.progress_percent,
            )
            return

        detail: dict[str, Any] = {
            "kind": "certificate_issued",
            "code": result.code,
            "lesson_id": str(event.lesson_id),
        }
        try:
            await self.notifier.notify_success(
                event.user_id, CERTIFICATE_ISSUED_MESSAGE, detail
            )
        except Exception as e:
            log.warning(
                "certificate_notification_failed", code=result.code, error=str(e)
            )
            return

        log.info("certificate_notified", code=result.code)
