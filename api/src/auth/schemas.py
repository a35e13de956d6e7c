"""Identity schemas."""

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Roles carried in access tokens."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class AuthenticatedUser(BaseModel):
    """Identity resolved from an access token."""

    id: UUID
    email: str = ""
    role: UserRole = UserRole.STUDENT

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "AuthenticatedUser":
        """Build from a decoded token payload."""
        return cls(
            id=UUID(payload["sub"]),
            email=payload.get("email", ""),
            role=payload.get("role", UserRole.STUDENT.value),
        )
