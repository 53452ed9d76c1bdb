"""Tests for SMTP email delivery of password-reset links."""

import aiosmtplib
import pytest

from erp_backoffice.auth import mailer as mailer_module
from erp_backoffice.auth.mailer import EmailSender
from erp_backoffice.common.config import BackofficeSettings
from erp_backoffice.common.exceptions import ExternalServiceError


class TestEmailSender:
    async def test_unconfigured_sender_does_not_send(self):
        sender = EmailSender(host="")
        sent = await sender.send_password_reset("a@example.com", "Alice", "alice", "http://x/reset")
        assert sent is False

    def test_from_settings(self):
        settings = BackofficeSettings(
            smtp_host="smtp.example.com", smtp_port=465, smtp_user="mailer@example.com", smtp_from=""
        )
        sender = EmailSender.from_settings(settings)
        assert sender.host == "smtp.example.com"
        assert sender.port == 465
        assert sender.from_email == "mailer@example.com"

    def test_reset_body_escapes_user_values(self):
        body = EmailSender._build_reset_body("<Eve>", "eve", "http://x/reset?token=a&b=1")
        assert "&lt;Eve&gt;" in body
        assert 'href="http://x/reset?token=a&amp;b=1"' in body

    async def test_send_uses_starttls_on_587(self, monkeypatch):
        calls = []

        async def fake_send(message, **kwargs):
            calls.append((message, kwargs))

        monkeypatch.setattr(mailer_module.aiosmtplib, "send", fake_send)
        sender = EmailSender(host="smtp.test", port=587, from_email="erp@test")
        assert await sender.send("to@test", "Hello", "<p>Hi</p>") is True

        message, kwargs = calls[0]
        assert message["To"] == "to@test"
        assert message["Subject"] == "Hello"
        assert kwargs["start_tls"] is True
        assert kwargs["use_tls"] is False
        assert kwargs["username"] is None

    async def test_smtp_failure_is_external_error(self, monkeypatch):
        async def failing_send(message, **kwargs):
            raise aiosmtplib.SMTPConnectError("connection refused")

        monkeypatch.setattr(mailer_module.aiosmtplib, "send", failing_send)
        sender = EmailSender(host="smtp.test")
        with pytest.raises(ExternalServiceError) as exc:
            await sender.send("to@test", "Hello", "<p>Hi</p>")
        assert exc.value.operation == "send email"
