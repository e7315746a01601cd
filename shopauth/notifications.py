"""Outbound account notifications (confirmation, password reset, 2FA codes).

Senders raise ``NotificationError`` when delivery fails; the auth service
catches it and logs, so a mail outage never fails a registration or reset.
"""

import asyncio
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.errors import MessageError
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import quote

from shopauth.core.exceptions import NotificationError
from shopauth.core.settings import Settings

logger = logging.getLogger(__name__)


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class NotificationSender(ABC):
    """Send-only collaborator used by the auth service."""

    @abstractmethod
    async def send_confirmation(self, email: str, token: str) -> None:
        """Send the email-confirmation link."""

    @abstractmethod
    async def send_password_reset(self, email: str, token: str) -> None:
        """Send the password reset link."""

    @abstractmethod
    async def send_two_factor_code(self, email: str, code: str) -> None:
        """Send a one-time two-factor code."""


class LoggingNotificationSender(NotificationSender):
    """Development sender that only logs that a message would be sent.

    Tokens and codes are not logged.
    """

    async def send_confirmation(self, email: str, token: str) -> None:
        logger.info(f"[dev] confirmation email for {redact_email(email)}")

    async def send_password_reset(self, email: str, token: str) -> None:
        logger.info(f"[dev] password reset email for {redact_email(email)}")

    async def send_two_factor_code(self, email: str, code: str) -> None:
        logger.info(f"[dev] two-factor code email for {redact_email(email)}")


class SmtpNotificationSender(NotificationSender):
    """Sends notifications over SMTP.

    smtplib is blocking, so each message is sent from a worker thread.
    """

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_username: str | None = None,
        smtp_password: str | None = None,
        smtp_use_tls: bool = True,
        email_from: str | None = None,
        app_base_url: str = "http://localhost:8000",
        timeout: float = 30,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username
        self.smtp_password = smtp_password
        self.smtp_use_tls = smtp_use_tls
        self.email_from = email_from or smtp_username
        self.app_base_url = app_base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpNotificationSender":
        """Build a sender from settings.

        Raises:
            NotificationError: If no SMTP host is configured
        """
        if not settings.smtp_host:
            raise NotificationError(
                "SMTP is not configured",
                hint="Set SHOPAUTH_SMTP_HOST and SHOPAUTH_EMAIL_FROM.",
            )
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_username=settings.smtp_username,
            smtp_password=settings.smtp_password,
            smtp_use_tls=settings.smtp_use_tls,
            email_from=settings.email_from,
            app_base_url=settings.app_base_url,
        )

    def build_message(self, to_email: str, subject: str, text_body: str, html_body: str) -> MIMEMultipart:
        if any(c in value for value in (to_email, subject) for c in "\r\n"):
            raise MessageError("Line breaks are not allowed in mail headers")
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.email_from or ""
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _deliver(self, to_email: str, msg: MIMEMultipart) -> None:
        context = ssl.create_default_context()
        if self.smtp_use_tls:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls(context=context)
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.email_from, to_email, msg.as_string())
        else:
            with smtplib.SMTP_SSL(
                self.smtp_host, self.smtp_port, context=context, timeout=self.timeout
            ) as server:
                if self.smtp_username and self.smtp_password:
                    server.login(self.smtp_username, self.smtp_password)
                server.sendmail(self.email_from, to_email, msg.as_string())

    async def _send(self, to_email: str, subject: str, text_body: str, html_body: str) -> None:
        try:
            msg = self.build_message(to_email, subject, text_body, html_body)
            await asyncio.to_thread(self._deliver, to_email, msg)
        except (smtplib.SMTPException, ssl.SSLError, OSError, MessageError) as e:
            logger.error(
                f"Email to {redact_email(to_email)} failed: {type(e).__name__}"
            )
            raise NotificationError(f"Could not send email: {type(e).__name__}") from e
        logger.info(f"Email sent to {redact_email(to_email)}: {subject}")

    async def send_confirmation(self, email: str, token: str) -> None:
        link = f"{self.app_base_url}/auth/verify-email?token={quote(token)}"
        await self._send(
            email,
            "Confirm your email",
            f"Please confirm your email by opening this link: {link}",
            f'<p>Please confirm your email by clicking <a href="{link}">here</a>.</p>',
        )

    async def send_password_reset(self, email: str, token: str) -> None:
        link = f"{self.app_base_url}/auth/reset-password?token={quote(token)}"
        await self._send(
            email,
            "Password reset",
            f"Reset your password using this link: {link}\nThe link expires in one hour.",
            f'<p>Reset your password by clicking <a href="{link}">here</a>. '
            "The link expires in one hour.</p>",
        )

    async def send_two_factor_code(self, email: str, code: str) -> None:
        await self._send(
            email,
            "Your two-factor authentication code",
            f"Your code is: {code}\nIt expires in 5 minutes.",
            f"<p>Your code is: <strong>{code}</strong></p><p>It expires in 5 minutes.</p>",
        )
