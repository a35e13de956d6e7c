"""Course certificates.

Provides:
- Certificate trigger subscribed to lesson completion
- Local (Cassandra) and remote (HTTP) completion checkers

Note: Router is imported directly in main.py to avoid circular imports.
"""

from .models import CERTIFICATE_TABLES_CQL, Certificate
from .schemas import CompletionChecker, CompletionCheckResult
from .service import CertificateError, CertificateService, CompletionCheckError
from .trigger import CertificateTrigger


__all__ = [
    "CERTIFICATE_TABLES_CQL",
    "Certificate",
    "CertificateError",
    "CertificateService",
    "CertificateTrigger",
    "CompletionCheckError",
    "CompletionCheckResult",
    "CompletionChecker",
]
