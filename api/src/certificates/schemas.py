"""Pydantic schemas and ports for certificate issuance.

Request and response models for:
- Completion check results (local service or remote function)
- Certificate listing
"""

from datetime import datetime
from typing import Protocol
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Certificate


class CompletionCheckResult(BaseModel):
    """Outcome of checking whether a course is complete."""

    model_config = ConfigDict(populate_by_name=True)

    issued: bool = False
    code: str | None = None
    already_issued: bool = Field(False, alias="alreadyIssued")
    progress_percent: float | None = Field(None, alias="progress")
    completed: int | None = None
    total: int | None = None


class CompletionChecker(Protocol):
    """Capability that decides certificate issuance after a lesson completes."""

    async def check(self, user_id: UUID, lesson_id: UUID) -> CompletionCheckResult:
        """Evaluate the enclosing course and mint a certificate when complete."""
        ...


class CertificateCheckRequest(BaseModel):
    """Request to check course completion after finishing a lesson."""

    lesson_id: UUID


class CertificateResponse(BaseModel):
    """Certificate data."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    code: str
    issued_at: datetime

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateResponse":
        """Create from Certificate entity."""
        return cls(
            id=entity.id,
            course_id=entity.course_id,
            code=entity.code,
            issued_at=entity.issued_at,
        )


class CertificateListResponse(BaseModel):
    """Certificates of the current user."""

    items: list[CertificateResponse]
    total: int
