# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Local course completion check and certificate issuance.

Business logic for:
- Resolving the course of a completed lesson
- Comparing active lessons with the student's completed lessons
- Minting one certificate per (user, course)
- Congratulating the student by email once a certificate is minted
"""

from typing import TYPE_CHECKING
from uuid import UUID

from src.core.logging import get_logger

from .models import Certificate
from .schemas import CompletionCheckResult


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from src.drip.directory import CourseDirectory
    from src.email.service import EmailSender
    from src.progress.store import CassandraProgressStore


logger = get_logger(__name__)

DEFAULT_STUDENT_NAME = "Aluno"
DEFAULT_COURSE_NAME = "Curso"


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CertificateError(Exception):
    """Base certificate error."""

    def __init__(self, message: str, code: str = "certificate_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class LessonNotFoundError(CertificateError):
    """Lesson is not part of any course."""

    def __init__(self, message: str = "Aula nao encontrada"):
        super().__init__(message, "lesson_not_found")


class CourseWithoutLessonsError(CertificateError):
    """Course has no active lessons."""

    def __init__(self, message: str = "Curso sem aulas ativas"):
        super().__init__(message, "course_without_lessons")


class CompletionCheckError(CertificateError):
    """Completion check could not be performed."""

    def __init__(self, message: str = "Nao foi possivel verificar a conclusao"):
        super().__init__(message, "completion_check_failed")


# ==============================================================================
# Certificate Service
# ==============================================================================


class CertificateService:
    """Completion checker backed by Cassandra."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        directory: "CourseDirectory",
        progress_store: "CassandraProgressStore",
        email_sender: "EmailSender | None" = None,
    ):
        """Initialize with Cassandra session and catalog/progress readers.

        Without ``email_sender`` certificates are issued silently.
        """
        self.session = session
        self.keyspace = keyspace
        self.directory = directory
        self.progress_store = progress_store
        self.email_sender = email_sender
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_certificate = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.certificates "
            "WHERE user_id = ? AND course_id = ?"
        )
        self._get_user_certificates = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.certificates WHERE user_id = ?"
        )
        # LWT: concurrent mints for the same course keep the first code
        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates
            (user_id, course_id, id, code, issued_at)
            VALUES (?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

    async def get_certificate(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        """Get the user's certificate for a course."""
        result = await self.session.aexecute(
            self._get_certificate, [user_id, course_id]
        )
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def list_certificates(self, user_id: UUID) -> list[Certificate]:
        """Get all certificates of a user, newest first."""
        rows = await self.session.aexecute(self._get_user_certificates, [user_id])
        certificates = [Certificate.from_row(row) for row in rows]
        certificates.sort(key=lambda c: c.issued_at, reverse=True)
        return certificates

    async def check(self, user_id: UUID, lesson_id: UUID) -> CompletionCheckResult:
        """Issue a certificate if every active lesson of the course is completed.

        Raises:
            LessonNotFoundError: If the lesson belongs to no course
            CourseWithoutLessonsError: If the course has no active lessons
        """
        course_id = await self.directory.get_lesson_course(lesson_id)
        if course_id is None:
            raise LessonNotFoundError

        existing = await self.get_certificate(user_id, course_id)
        if existing:
            logger.info(
                "certificate_already_issued",
                user_id=str(user_id),
                course_id=str(course_id),
            )
            return CompletionCheckResult(already_issued=True, code=existing.code)

        lesson_ids = set(await self.directory.list_active_lessons(course_id))
        total = len(lesson_ids)
        if total == 0:
            raise CourseWithoutLessonsError

        records = await self.progress_store.list_user_progress(user_id)
        completed = sum(
            1 for r in records if r.is_completed and r.lesson_id in lesson_ids
        )
        percent = completed / total * 100

        logger.info(
            "course_completion_checked",
            user_id=str(user_id),
            course_id=str(course_id),
            completed=completed,
            total=total,
        )

        if completed < total:
            return CompletionCheckResult(
                issued=False,
                progress_percent=percent,
                completed=completed,
                total=total,
            )

        certificate = Certificate(user_id=user_id, course_id=course_id)
        result = await self.session.aexecute(
            self._insert_certificate,
            [
                certificate.user_id,
                certificate.course_id,
                certificate.id,
                certificate.code,
                certificate.issued_at,
            ],
        )

        if not result.was_applied:
            # Minted concurrently by another session
            winner = await self.get_certificate(user_id, course_id)
            return CompletionCheckResult(
                already_issued=True, code=winner.code if winner else None
            )

        logger.info(
            "certificate_issued",
            user_id=str(user_id),
            course_id=str(course_id),
            code=certificate.code,
        )
        await self._send_congratulations(certificate)

        return CompletionCheckResult(
            issued=True,
            code=certificate.code,
            progress_percent=100.0,
            completed=completed,
            total=total,
        )

    async def _send_congratulations(self, certificate: Certificate) -> None:
        """Email the student about a new certificate.

        Failures are logged only; the certificate stays issued.
        """
        if self.email_sender is None:
            return

        log = logger.bind(
            user_id=str(certificate.user_id),
            course_id=str(certificate.course_id),
            code=certificate.code,
        )
        try:
            contact = await self.directory.get_student_contact(certificate.user_id)
            if contact is None or not contact.email:
                log.info("certificate_email_skipped", reason="missing_email")
                return
            course_name = await self.directory.get_course_title(certificate.course_id)
            response = await self.email_sender.send_certificate_issued(
                to=contact.email,
                student_name=contact.full_name or DEFAULT_STUDENT_NAME,
                course_name=course_name or DEFAULT_COURSE_NAME,
                code=certificate.code,
                issued_at=certificate.issued_at,
            )
        except Exception as e:
            log.warning("certificate_email_failed", error=str(e))
            return

        if response.success:
            log.info("certificate_email_sent", message_id=response.message_id)
        else:
            log.warning("certificate_email_failed", error=response.error)
