"""Shared fixtures and in-memory collaborators."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.auth.security import create_access_token
from src.certificates.schemas import CompletionCheckResult
from src.core.events import EventBus
from src.drip.directory import CourseModule, StudentContact
from src.email.schemas import SendEmailResponse
from src.main import create_app
from src.progress.models import LessonProgress


FIXED_NOW = datetime(2024, 3, 10, 15, 30, tzinfo=UTC)


# ==============================================================================
# In-memory collaborators
# ==============================================================================


class InMemoryProgressStore:
    """Progress store keeping every write for assertions."""

    def __init__(self) -> None:
        self.records: dict[tuple[UUID, UUID], LessonProgress] = {}
        self.writes: list[LessonProgress] = []
        self.read_error: Exception | None = None
        self.write_error: Exception | None = None

    async def read_progress(
        self, user_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        if self.read_error:
            raise self.read_error
        return self.records.get((user_id, lesson_id))

    async def upsert_progress(self, record: LessonProgress) -> None:
        if self.write_error:
            raise self.write_error
        self.writes.append(record)
        self.records[(record.user_id, record.lesson_id)] = record

    async def list_user_progress(self, user_id: UUID) -> list[LessonProgress]:
        return [r for (uid, _), r in self.records.items() if uid == user_id]


class InMemoryFlagStore:
    """Flag store backed by a dict."""

    def __init__(self) -> None:
        self.flags: dict[str, bool] = {}
        self.error: Exception | None = None

    async def get_flag(self, key: str) -> bool:
        if self.error:
            raise self.error
        return self.flags.get(key, False)

    async def set_flag(self, key: str) -> None:
        if self.error:
            raise self.error
        self.flags[key] = True


class FakeCompletionChecker:
    """Completion checker returning a canned result."""

    def __init__(self, result: CompletionCheckResult | None = None) -> None:
        self.result = result or CompletionCheckResult(issued=False)
        self.error: Exception | None = None
        self.calls: list[tuple[UUID, UUID]] = []

    async def check(self, user_id: UUID, lesson_id: UUID) -> CompletionCheckResult:
        self.calls.append((user_id, lesson_id))
        if self.error:
            raise self.error
        return self.result


class RecordingNotifier:
    """Notification sink recording what would be shown."""

    def __init__(self) -> None:
        self.sent: list[tuple[UUID, str, dict[str, Any] | None]] = []
        self.error: Exception | None = None

    async def notify_success(
        self, user_id: UUID, message: str, detail: dict[str, Any] | None = None
    ) -> None:
        if self.error:
            raise self.error
        self.sent.append((user_id, message, detail))


class InMemoryCourseDirectory:
    """Course catalog backed by dicts."""

    def __init__(self) -> None:
        self.enrollments: dict[tuple[UUID, UUID], datetime] = {}
        self.modules: dict[UUID, list[CourseModule]] = {}
        self.lessons: dict[UUID, UUID] = {}
        self.titles: dict[UUID, str] = {}
        self.contacts: dict[UUID, StudentContact] = {}

    async def get_enrollment_date(
        self, user_id: UUID, course_id: UUID
    ) -> datetime | None:
        return self.enrollments.get((user_id, course_id))

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        return self.modules.get(course_id, [])

    async def get_lesson_course(self, lesson_id: UUID) -> UUID | None:
        return self.lessons.get(lesson_id)

    async def list_active_lessons(self, course_id: UUID) -> list[UUID]:
        return [lid for lid, cid in self.lessons.items() if cid == course_id]

    async def get_course_title(self, course_id: UUID) -> str | None:
        return self.titles.get(course_id)

    async def get_student_contact(self, user_id: UUID) -> StudentContact | None:
        return self.contacts.get(user_id)


class RecordingEmailSender:
    """Email sender recording congratulation emails."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.error: Exception | None = None
        self.response = SendEmailResponse(success=True, message_id="msg-1")

    async def send_certificate_issued(self, **kwargs: Any) -> SendEmailResponse:
        if self.error:
            raise self.error
        self.sent.append(kwargs)
        return self.response


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def store() -> InMemoryProgressStore:
    return InMemoryProgressStore()


@pytest.fixture
def flags() -> InMemoryFlagStore:
    return InMemoryFlagStore()


@pytest.fixture
def checker() -> FakeCompletionChecker:
    return FakeCompletionChecker()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def directory() -> InMemoryCourseDirectory:
    return InMemoryCourseDirectory()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def user_id() -> UUID:
    return uuid4()


@pytest.fixture
def lesson_id() -> UUID:
    return uuid4()


@pytest.fixture
def make_token() -> Callable[[UUID], str]:
    """Mint access tokens signed with the configured key."""

    def _make(user: UUID, **claims: Any) -> str:
        return create_access_token({"sub": str(user), "role": "student", **claims})

    return _make


@pytest.fixture
def app() -> FastAPI:
    """Application without lifespan (no Cassandra/Redis)."""
    return create_app()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
