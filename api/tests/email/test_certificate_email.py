"""Tests for the certificate congratulations email."""

import base64
import email
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest
from googleapiclient.errors import HttpError

from src.email.schemas import SendEmailRequest, SendEmailResponse
from src.email.service import EmailService
from src.email.templates import format_date_pt, render_certificate_issued


ISSUED_AT = datetime(2024, 3, 10, 15, 30, tzinfo=UTC)
CERTIFICATES_URL = "https://app.aulaflow.com.br/aluno/certificados"


class TestCertificateTemplate:
    """Tests for render_certificate_issued."""

    def test_date_in_portuguese(self) -> None:
        assert format_date_pt(ISSUED_AT) == "10 de março de 2024"

    def test_contains_code_course_and_link(self) -> None:
        html, text = render_certificate_issued(
            "Maria Silva",
            "Farmacologia Basica",
            "CERT-ZX81QP-2024",
            ISSUED_AT,
            CERTIFICATES_URL,
        )

        for body in (html, text):
            assert "Maria Silva" in body
            assert "Farmacologia Basica" in body
            assert "CERT-ZX81QP-2024" in body
            assert "10 de março de 2024" in body
            assert CERTIFICATES_URL in body

    def test_escapes_names_in_html(self) -> None:
        html, text = render_certificate_issued(
            "<b>Maria</b>", "A & B", "CERT-AAAAAA-2024", ISSUED_AT, CERTIFICATES_URL
        )

        assert "<b>Maria</b>" not in html
        assert "&lt;b&gt;Maria&lt;/b&gt;" in html
        assert "A &amp; B" in html
        assert "<b>Maria</b>" in text


class TestEmailService:
    """Tests for the Gmail-backed EmailService."""

    @pytest.fixture
    def email_service(self):
        with patch.object(EmailService, "_get_service"):
            service = EmailService(
                credentials_path="/fake/path.json",
                sender_address="contato@aulaflow.com.br",
                certificates_url=CERTIFICATES_URL,
            )
            yield service

    def test_message_headers_and_parts(self, email_service) -> None:
        request = SendEmailRequest(
            to=[{"email": "maria@example.com", "name": "Maria Silva"}],
            subject="Certificado",
            body_html="<p>Oi</p>",
            body_text="Oi",
        )

        raw = email_service._create_message(request)["raw"]
        message = email.message_from_bytes(base64.urlsafe_b64decode(raw))

        assert message["To"] == "Maria Silva <maria@example.com>"
        assert message["From"] == "AulaFlow <contato@aulaflow.com.br>"
        parts = [p.get_content_type() for p in message.get_payload()]
        assert parts == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_send_certificate_issued(self, email_service) -> None:
        email_service.send_simple_email = AsyncMock(
            return_value=SendEmailResponse(success=True, message_id="msg123")
        )

        result = await email_service.send_certificate_issued(
            to="maria@example.com",
            student_name="Maria Silva",
            course_name="Farmacologia Basica",
            code="CERT-ZX81QP-2024",
            issued_at=ISSUED_AT,
        )

        assert result.success is True
        kwargs = email_service.send_simple_email.call_args.kwargs
        assert kwargs["to"] == "maria@example.com"
        assert kwargs["to_name"] == "Maria Silva"
        assert "Farmacologia Basica" in kwargs["subject"]
        assert "CERT-ZX81QP-2024" in kwargs["body_html"]

    @pytest.mark.asyncio
    async def test_send_email_success(self, email_service) -> None:
        email_service._send_raw = MagicMock(
            return_value={"id": "msg123", "threadId": "thread1"}
        )

        result = await email_service.send_simple_email(
            to="maria@example.com", subject="Oi", body_html="<p>Oi</p>"
        )

        assert result.success is True
        assert result.message_id == "msg123"
        assert result.thread_id == "thread1"

    @pytest.mark.asyncio
    async def test_gmail_error_is_reported(self, email_service) -> None:
        email_service._send_raw = MagicMock(
            side_effect=HttpError(Mock(status=403, reason="Forbidden"), b"denied")
        )

        result = await email_service.send_simple_email(
            to="maria@example.com", subject="Oi", body_html="<p>Oi</p>"
        )

        assert result.success is False
        assert result.error.startswith("Gmail API error")

    @pytest.mark.asyncio
    async def test_missing_credentials_is_reported(self) -> None:
        service = EmailService(
            credentials_path="/does/not/exist.json",
            sender_address="contato@aulaflow.com.br",
        )

        result = await service.send_simple_email(
            to="maria@example.com", subject="Oi", body_html="<p>Oi</p>"
        )

        assert result.success is False
        assert "credentials file missing" in result.error
