"""Email module using Gmail API.

Provides:
- Gmail-backed EmailService (service account with domain-wide delegation)
- Certificate congratulations template
"""

from src.email.service import EmailSender, EmailService


__all__ = ["EmailSender", "EmailService"]
