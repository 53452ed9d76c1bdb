"""Email delivery for password-reset links over SMTP."""

import logging
from email.message import EmailMessage
from html import escape

import aiosmtplib

from erp_backoffice.common.config import BackofficeSettings
from erp_backoffice.common.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class EmailSender:
    """Sends transactional emails through the configured SMTP relay.

    Falls back to logging if no SMTP host is configured.
    """

    def __init__(
        self,
        host: str = "",
        port: int = 587,
        username: str = "",
        password: str = "",
        from_email: str = "no-reply@localhost",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: BackofficeSettings) -> "EmailSender":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_user,
            password=settings.smtp_password,
            from_email=settings.smtp_from or settings.smtp_user,
            timeout=settings.smtp_timeout,
        )

    async def send_password_reset(
        self, to_email: str, name: str, username: str, reset_link: str
    ) -> bool:
        """Send the reset link; returns False when delivery is not configured."""
        subject = "Reset Password & Two-Factor Activation"
        body = self._build_reset_body(name, username, reset_link)
        return await self.send(to_email, subject, body)

    async def send(self, to_email: str, subject: str, html_body: str) -> bool:
        if not self.host:
            logger.info("No SMTP host configured; email to %s not sent: %s", to_email, subject)
            return False

        message = EmailMessage()
        message["From"] = self.from_email
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html_body, subtype="html")

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username or None,
                password=self.password or None,
                use_tls=self.port == 465,
                start_tls=self.port == 587,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as exc:
            logger.warning("SMTP delivery to %s failed: %s", to_email, exc)
            raise ExternalServiceError("send email", "Email sending failed") from exc

        logger.info("Email sent to %s", to_email)
        return True

    @staticmethod
    def _build_reset_body(name: str, username: str, reset_link: str) -> str:
        return (
            "<div style=\"font-family: Arial, sans-serif; background-color: #f8fbff;\">"
            "<table width=\"700\" align=\"center\" cellpadding=\"0\" cellspacing=\"0\" "
            "style=\"background-color: #fff; padding: 30px;\"><tbody>"
            f"<tr><td><p>Hi {escape(name)},</p>"
            f"<p>A password reset was requested for the account <b>{escape(username)}</b>.</p>"
            "<p>Use the link below to choose a new password and finish the two-factor "
            "activation. The link is valid for 24 hours and can be used once.</p>"
            f"<p><a href=\"{escape(reset_link, quote=True)}\">Reset password</a></p>"
            "<p>If you did not expect this email you can ignore it.</p>"
            "</td></tr></tbody></table></div>"
        )
