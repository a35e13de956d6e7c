"""Tests for the Cassandra course directory."""

from datetime import datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from cassandra.cluster import Session

from src.drip.directory import CassandraCourseDirectory


@pytest.fixture
def mock_session():
    """Mock Cassandra session."""
    session = Mock(spec=Session)
    session.prepare = Mock(return_value=Mock())
    session.aexecute = AsyncMock()
    return session


@pytest.fixture
def course_directory(mock_session) -> CassandraCourseDirectory:
    return CassandraCourseDirectory(session=mock_session, keyspace="test_keyspace")


class TestCassandraCourseDirectory:
    """Tests for CassandraCourseDirectory."""

    def test_prepares_statements(self, mock_session, course_directory) -> None:
        assert mock_session.prepare.call_count == 6

    @pytest.mark.asyncio
    async def test_enrollment_date_is_utc_aware(
        self, mock_session, course_directory
    ) -> None:
        result = Mock()
        result.one.return_value = Mock(enrolled_at=datetime(2024, 1, 1, 8, 0))
        mock_session.aexecute.return_value = result

        enrolled_at = await course_directory.get_enrollment_date(uuid4(), uuid4())

        assert enrolled_at.tzinfo is not None
        assert enrolled_at.hour == 8

    @pytest.mark.asyncio
    async def test_not_enrolled(self, mock_session, course_directory) -> None:
        result = Mock()
        result.one.return_value = None
        mock_session.aexecute.return_value = result

        assert await course_directory.get_enrollment_date(uuid4(), uuid4()) is None

    @pytest.mark.asyncio
    async def test_list_modules(self, mock_session, course_directory) -> None:
        course_id = uuid4()
        rows = [
            Mock(
                module_id=uuid4(),
                course_id=course_id,
                title="A",
                position=0,
                drip_days=None,
            ),
            Mock(
                module_id=uuid4(),
                course_id=course_id,
                title="B",
                position=1,
                drip_days=7,
            ),
        ]
        mock_session.aexecute.return_value = rows

        modules = await course_directory.list_modules(course_id)

        assert [m.title for m in modules] == ["A", "B"]
        assert modules[1].drip_days == 7

    @pytest.mark.asyncio
    async def test_list_active_lessons_skips_inactive(
        self, mock_session, course_directory
    ) -> None:
        active, inactive, unset = uuid4(), uuid4(), uuid4()
        mock_session.aexecute.return_value = [
            Mock(lesson_id=active, is_active=True),
            Mock(lesson_id=inactive, is_active=False),
            Mock(lesson_id=unset, is_active=None),
        ]

        lessons = await course_directory.list_active_lessons(uuid4())

        assert lessons == [active, unset]

    @pytest.mark.asyncio
    async def test_course_title(self, mock_session, course_directory) -> None:
        result = Mock()
        result.one.return_value = Mock(title="Farmacologia Basica")
        mock_session.aexecute.return_value = result

        assert await course_directory.get_course_title(uuid4()) == "Farmacologia Basica"

    @pytest.mark.asyncio
    async def test_student_contact(self, mock_session, course_directory) -> None:
        user_id = uuid4()
        result = Mock()
        result.one.return_value = Mock(
            user_id=user_id, full_name=None, email="aluna@example.com"
        )
        mock_session.aexecute.return_value = result

        contact = await course_directory.get_student_contact(user_id)

        assert contact.user_id == user_id
        assert contact.email == "aluna@example.com"
        assert contact.full_name == ""

    @pytest.mark.asyncio
    async def test_unknown_student(self, mock_session, course_directory) -> None:
        result = Mock()
        result.one.return_value = None
        mock_session.aexecute.return_value = result

        assert await course_directory.get_student_contact(uuid4()) is None
