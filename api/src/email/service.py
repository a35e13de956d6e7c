"""Email service using Gmail API with Service Account.

Uses domain-wide delegation to send emails on behalf of a Google Workspace user.
The service account must have domain-wide delegation enabled in Google Admin
Console with scope https://www.googleapis.com/auth/gmail.send.
"""

import asyncio
import base64
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from src.core.logging import get_logger

from .schemas import EmailRecipient, SendEmailRequest, SendEmailResponse
from .templates import render_certificate_issued


if TYPE_CHECKING:
    from googleapiclient._apis.gmail.v1 import GmailResource


logger = get_logger(__name__)

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


class EmailSender(Protocol):
    """Outgoing email capability used after a certificate is minted."""

    async def send_certificate_issued(
        self,
        to: str,
        student_name: str,
        course_name: str,
        code: str,
        issued_at: datetime,
    ) -> SendEmailResponse: ...


class EmailService:
    """Service for sending emails via Gmail API."""

    def __init__(
        self,
        credentials_path: str,
        sender_address: str,
        sender_name: str = "AulaFlow",
        certificates_url: str = "",
    ):
        """Initialize Gmail API service.

        Args:
            credentials_path: Path to service account JSON file
            sender_address: Email address to send from (must be in Google Workspace)
            sender_name: Display name for sender
            certificates_url: Student certificates page linked from emails
        """
        self.credentials_path = credentials_path
        self.sender_address = sender_address
        self.sender_name = sender_name
        self.certificates_url = certificates_url
        self._service: GmailResource | None = None

        if not Path(credentials_path).exists():
            logger.warning(
                "email_credentials_not_found",
                path=credentials_path,
                message="Gmail API will not be available",
            )

    def _get_service(self) -> "GmailResource":
        """Get or create the Gmail API resource (lazy).

        Raises:
            FileNotFoundError: If credentials file doesn't exist
        """
        if self._service is not None:
            return self._service

        credentials_file = Path(self.credentials_path)
        if not credentials_file.exists():
            msg = f"Credentials file not found: {self.credentials_path}"
            raise FileNotFoundError(msg)

        credentials = service_account.Credentials.from_service_account_file(
            str(credentials_file),
            scopes=GMAIL_SCOPES,
        )
        # Impersonate the sender through domain-wide delegation
        delegated_credentials = credentials.with_subject(self.sender_address)

        self._service = build(
            "gmail",
            "v1",
            credentials=delegated_credentials,
            cache_discovery=False,
        )
        logger.info("gmail_service_initialized", sender=self.sender_address)
        return self._service

    def _format_address(self, recipient: EmailRecipient) -> str:
        if recipient.name:
            return f"{recipient.name} <{recipient.email}>"
        return recipient.email

    def _create_message(self, request: SendEmailRequest) -> dict[str, str]:
        """Build the base64url ``raw`` payload expected by Gmail."""
        message = MIMEMultipart("alternative")
        message["From"] = f"{self.sender_name} <{self.sender_address}>"
        message["To"] = ", ".join(self._format_address(r) for r in request.to)
        message["Subject"] = request.subject
        if request.reply_to:
            message["Reply-To"] = request.reply_to

        # Plain text first, then HTML (clients prefer the last part)
        if request.body_text:
            message.attach(MIMEText(request.body_text, "plain", "utf-8"))
        message.attach(MIMEText(request.body_html, "html", "utf-8"))

        raw_message = base64.urlsafe_b64encode(message.as_bytes()).decode("utf-8")
        return {"raw": raw_message}

    def _send_raw(self, message: dict[str, str]) -> dict[str, Any]:
        service = self._get_service()
        return service.users().messages().send(userId="me", body=message).execute()

    async def send_email(self, request: SendEmailRequest) -> SendEmailResponse:
        """Send an email via Gmail API.

        Never raises; failures are reported in the response.
        """
        recipients = [r.email for r in request.to]
        try:
            message = self._create_message(request)
            # googleapiclient is blocking
            result = await asyncio.to_thread(self._send_raw, message)

        except HttpError as e:
            logger.exception(
                "email_send_failed",
                error=str(e),
                to=recipients,
                subject=request.subject[:50],
            )
            return SendEmailResponse(success=False, error=f"Gmail API error: {e}")

        except FileNotFoundError as e:
            logger.error("email_credentials_missing", error=str(e))
            return SendEmailResponse(
                success=False,
                error="Email service not configured: credentials file missing",
            )

        except Exception as e:
            logger.exception("email_send_unexpected_error", error=str(e))
            return SendEmailResponse(success=False, error=f"Unexpected error: {e!s}")

        logger.info(
            "email_sent",
            message_id=result.get("id"),
            to=recipients,
            subject=request.subject[:50],
        )
        return SendEmailResponse(
            success=True,
            message_id=result.get("id"),
            thread_id=result.get("threadId"),
        )

    async def send_simple_email(
        self,
        to: str,
        subject: str,
        body_html: str,
        body_text: str | None = None,
        to_name: str | None = None,
    ) -> SendEmailResponse:
        """Send an email to a single recipient."""
        request = SendEmailRequest(
            to=[EmailRecipient(email=to, name=to_name)],
            subject=subject,
            body_html=body_html,
            body_text=body_text,
        )
        return await self.send_email(request)

    async def send_certificate_issued(
        self,
        to: str,
        student_name: str,
        course_name: str,
        code: str,
        issued_at: datetime,
    ) -> SendEmailResponse:
        """Send the congratulations email for a newly issued certificate."""
        body_html, body_text = render_certificate_issued(
            student_name=student_name,
            course_name=course_name,
            code=code,
            issued_at=issued_at,
            certificates_url=self.certificates_url,
        )
        return await self.send_simple_email(
            to=to,
            subject=f"Parabéns! Seu certificado de {course_name} está disponível!",
            body_html=body_html,
            body_text=body_text,
            to_name=student_name,
        )
