"""Database models for course certificates.

One certificate per (user, course); the code is human readable
(``CERT-XXXXXX-YYYY``) and shown to the student.
"""

import secrets
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from src.progress.models import ensure_utc_aware


CERTIFICATE_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
CERTIFICATE_CODE_LENGTH = 6


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    user_id UUID,
    course_id UUID,
    id UUID,
    code TEXT,
    issued_at TIMESTAMP,
    PRIMARY KEY ((user_id), course_id)
)
"""

CERTIFICATE_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
]


def generate_certificate_code(year: int | None = None) -> str:
    """Generate a code like ``CERT-7K2Q9A-2024``."""
    chars = "".join(
        secrets.choice(CERTIFICATE_CODE_ALPHABET)
        for _ in range(CERTIFICATE_CODE_LENGTH)
    )
    return f"CERT-{chars}-{year or datetime.now(UTC).year}"


# ==============================================================================
# Entity Classes
# ==============================================================================


class Certificate:
    """Certificate of course completion.

    Attributes:
        user_id: Student who completed the course
        course_id: Completed course
        id: Unique identifier
        code: Public certificate code
        issued_at: Issue timestamp
    """

    def __init__(
        self,
        user_id: UUID,
        course_id: UUID,
        id: UUID | None = None,
        code: str | None = None,
        issued_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.course_id = course_id
        self.id = id or uuid4()
        self.issued_at = ensure_utc_aware(issued_at) or datetime.now(UTC)
        self.code = code or generate_certificate_code(self.issued_at.year)

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            id=row.id,
            code=row.code,
            issued_at=row.issued_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "course_id": str(self.course_id),
            "code": self.code,
            "issued_at": self.issued_at.isoformat(),
        }

    def __repr__(self) -> str:
        return f"<Certificate(code={self.code}, course={self.course_id})>"
