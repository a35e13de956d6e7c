# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Course catalog lookups needed by drip release and certificates.

Cassandra table definitions for:
- Enrollments: when a user joined a course
- Course modules: ordered modules with their drip offset
- Course lessons: lessons of a course (active flag)
- Lessons by id: reverse lookup lesson -> course/module
- Courses and student profiles: names used in certificate emails
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

from src.progress.models import ensure_utc_aware


if TYPE_CHECKING:
    from cassandra.cluster import Session


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    user_id UUID,
    course_id UUID,
    enrolled_at TIMESTAMP,
    PRIMARY KEY (user_id, course_id)
)
"""

COURSE_MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_modules (
    course_id UUID,
    position INT,
    module_id UUID,
    title TEXT,
    drip_days INT,
    PRIMARY KEY (course_id, position, module_id)
) WITH CLUSTERING ORDER BY (position ASC, module_id ASC)
"""

COURSE_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_lessons (
    course_id UUID,
    lesson_id UUID,
    module_id UUID,
    is_active BOOLEAN,
    PRIMARY KEY (course_id, lesson_id)
)
"""

LESSONS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons_by_id (
    lesson_id UUID PRIMARY KEY,
    course_id UUID,
    module_id UUID
)
"""

COURSES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    course_id UUID PRIMARY KEY,
    title TEXT
)
"""

STUDENT_PROFILES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.student_profiles (
    user_id UUID PRIMARY KEY,
    full_name TEXT,
    email TEXT
)
"""

CATALOG_TABLES_CQL = [
    ENROLLMENTS_TABLE_CQL,
    COURSE_MODULES_TABLE_CQL,
    COURSE_LESSONS_TABLE_CQL,
    LESSONS_BY_ID_TABLE_CQL,
    COURSES_TABLE_CQL,
    STUDENT_PROFILES_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class CourseModule:
    """Module of a course as seen by drip release.

    Attributes:
        module_id: Module identifier
        course_id: Parent course
        title: Display title
        position: Order inside the course
        drip_days: Days after enrollment until release (0/None = immediate)
    """

    def __init__(
        self,
        module_id: UUID,
        course_id: UUID,
        title: str = "",
        position: int = 0,
        drip_days: int | None = None,
    ):
        self.module_id = module_id
        self.course_id = course_id
        self.title = title
        self.position = position
        self.drip_days = drip_days

    @classmethod
    def from_row(cls, row: Any) -> "CourseModule":
        """Create from Cassandra row."""
        return cls(
            module_id=row.module_id,
            course_id=row.course_id,
            title=row.title or "",
            position=row.position or 0,
            drip_days=row.drip_days,
        )

    def __repr__(self) -> str:
        return (
            f"<CourseModule(module={self.module_id}, position={self.position}, "
            f"drip_days={self.drip_days})>"
        )


class StudentContact:
    """Name and email used to congratulate a student."""

    def __init__(self, user_id: UUID, email: str | None, full_name: str = ""):
        self.user_id = user_id
        self.email = email
        self.full_name = full_name

    @classmethod
    def from_row(cls, row: Any) -> "StudentContact":
        """Create from Cassandra row."""
        return cls(user_id=row.user_id, email=row.email, full_name=row.full_name or "")

    def __repr__(self) -> str:
        return f"<StudentContact(user={self.user_id})>"


class CourseDirectory(Protocol):
    """Catalog capability consumed by drip release and certificates."""

    async def get_enrollment_date(
        self, user_id: UUID, course_id: UUID
    ) -> datetime | None: ...

    async def list_modules(self, course_id: UUID) -> list[CourseModule]: ...

    async def get_lesson_course(self, lesson_id: UUID) -> UUID | None: ...

    async def list_active_lessons(self, course_id: UUID) -> list[UUID]: ...

    async def get_course_title(self, course_id: UUID) -> str | None: ...

    async def get_student_contact(self, user_id: UUID) -> StudentContact | None: ...


# ==============================================================================
# Cassandra Directory
# ==============================================================================


class CassandraCourseDirectory:
    """Catalog reads backed by Cassandra lookup tables."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_enrollment = self.session.prepare(
            f"SELECT enrolled_at FROM {self.keyspace}.enrollments "
            "WHERE user_id = ? AND course_id = ?"
        )
        self._get_course_modules = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.course_modules WHERE course_id = ?"
        )
        self._get_lesson_lookup = self.session.prepare(
            f"SELECT course_id FROM {self.keyspace}.lessons_by_id WHERE lesson_id = ?"
        )
        self._get_course_lessons = self.session.prepare(
            f"SELECT lesson_id, is_active FROM {self.keyspace}.course_lessons "
            "WHERE course_id = ?"
        )
        self._get_course = self.session.prepare(
            f"SELECT title FROM {self.keyspace}.courses WHERE course_id = ?"
        )
        self._get_student_profile = self.session.prepare(
            f"SELECT user_id, full_name, email FROM {self.keyspace}.student_profiles "
            "WHERE user_id = ?"
        )

    async def get_enrollment_date(
        self, user_id: UUID, course_id: UUID
    ) -> datetime | None:
        """Get when the user enrolled, or None if not enrolled."""
        result = await self.session.aexecute(
            self._get_enrollment, [user_id, course_id]
        )
        row = result.one()
        if not row:
            return None
        return ensure_utc_aware(row.enrolled_at)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        """Get modules of a course ordered by position."""
        rows = await self.session.aexecute(self._get_course_modules, [course_id])
        return [CourseModule.from_row(row) for row in rows]

    async def get_lesson_course(self, lesson_id: UUID) -> UUID | None:
        """Get the course a lesson belongs to."""
        result = await self.session.aexecute(self._get_lesson_lookup, [lesson_id])
        row = result.one()
        return row.course_id if row else None

    async def list_active_lessons(self, course_id: UUID) -> list[UUID]:
        """Get ids of the active lessons of a course."""
        rows = await self.session.aexecute(self._get_course_lessons, [course_id])
        return [row.lesson_id for row in rows if row.is_active is not False]

    async def get_course_title(self, course_id: UUID) -> str | None:
        """Get the display title of a course."""
        result = await self.session.aexecute(self._get_course, [course_id])
        row = result.one()
        return row.title if row else None

    async def get_student_contact(self, user_id: UUID) -> StudentContact | None:
        """Get the student's name and email."""
        result = await self.session.aexecute(self._get_student_profile, [user_id])
        row = result.one()
        return StudentContact.from_row(row) if row else None
