"""Pydantic schemas for drip release."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .directory import CourseModule
from .scheduler import DripStatus


class ModuleDripResponse(BaseModel):
    """Availability of one module."""

    module_id: UUID
    title: str
    position: int
    drip_days: int = Field(0, description="Days after enrollment until release")
    is_available: bool
    available_date: datetime | None = None
    days_until_available: int = 0
    message: str = ""

    @classmethod
    def from_status(
        cls, module: CourseModule, drip: DripStatus
    ) -> "ModuleDripResponse":
        """Create from module and computed status."""
        return cls(
            module_id=module.module_id,
            title=module.title,
            position=module.position,
            drip_days=module.drip_days or 0,
            is_available=drip.is_available,
            available_date=drip.available_date,
            days_until_available=drip.days_until_available,
            message=drip.message,
        )


class CourseDripResponse(BaseModel):
    """Drip status of every module of a course for the caller."""

    course_id: UUID
    enrolled_at: datetime
    modules: list[ModuleDripResponse]
    available_count: int
