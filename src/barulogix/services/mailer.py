"""Transactional email for the driver portal.

Sends the account verification and password reset messages. Bodies are
rendered from Jinja2 templates under ``barulogix/templates/email`` in an
HTML and a plain text version and delivered over SMTP. SMTP calls block, so
they run in a worker thread.

Usage:
    mailer = ConductorMailer(settings.smtp, base_url=settings.portal.public_url)
    result = await mailer.send_verification(
        to_email="driver@example.com", conductor_name="Ana", token=token
    )
    if not result.success:
        ...
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import smtplib
import ssl
from dataclasses import dataclass
from datetime import UTC, datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import TYPE_CHECKING
from urllib.parse import urlencode

from jinja2 import Environment, PackageLoader, select_autoescape

if TYPE_CHECKING:
    from barulogix.core.config import SMTPSettings

logger = logging.getLogger(__name__)

VERIFICATION_SUBJECT = "Verifica tu cuenta de conductor en BaruLogix"
PASSWORD_RESET_SUBJECT = "Restablecer contraseña - BaruLogix Conductor"


class EmailDeliveryError(Exception):
    """Raised when the SMTP server refuses or cannot be reached."""


@dataclass(frozen=True, slots=True)
class MailResult:
    """Outcome of one send attempt."""

    success: bool
    message_id: str | None = None
    error: str | None = None
    sent_at: datetime | None = None


class ConductorMailer:
    """Renders and sends driver account emails.

    Attributes:
        smtp_settings: SMTP configuration for delivery.
        base_url: Frontend URL the links in the emails point to.
    """

    def __init__(self, smtp_settings: SMTPSettings, base_url: str) -> None:
        self.smtp_settings = smtp_settings
        self.base_url = base_url.rstrip("/")

        self._env = Environment(
            loader=PackageLoader("barulogix", "templates/email"),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def link(self, path: str, token: str) -> str:
        """Frontend link carrying ``token`` as query parameter."""
        return f"{self.base_url}/{path.lstrip('/')}?{urlencode({'token': token})}"

    async def send_verification(
        self, *, to_email: str, conductor_name: str, token: str
    ) -> MailResult:
        """Send the link that confirms a newly registered account."""
        html_body, text_body = self._render(
            "verify_email",
            conductor_name=conductor_name,
            link=self.link("conductor/verify-email", token),
        )
        return await self._deliver(to_email, VERIFICATION_SUBJECT, html_body, text_body)

    async def send_password_reset(
        self, *, to_email: str, conductor_name: str, token: str
    ) -> MailResult:
        """Send the link that lets a driver choose a new password."""
        html_body, text_body = self._render(
            "password_reset",
            conductor_name=conductor_name,
            link=self.link("conductor/reset-password", token),
        )
        return await self._deliver(to_email, PASSWORD_RESET_SUBJECT, html_body, text_body)

    def _render(self, name: str, **context: str) -> tuple[str, str]:
        html_body = self._env.get_template(f"{name}.html").render(**context)
        text_body = self._env.get_template(f"{name}.txt").render(**context)
        return html_body, text_body

    async def _deliver(
        self, to_email: str, subject: str, html_body: str, text_body: str
    ) -> MailResult:
        try:
            message_id = await asyncio.to_thread(
                self._send_email, to_email, subject, html_body, text_body
            )
        except EmailDeliveryError as e:
            logger.error(
                "Failed to send email",
                extra={"subject": subject, "error": str(e)},
            )
            return MailResult(success=False, error=str(e))

        logger.info("Email sent", extra={"subject": subject, "message_id": message_id})
        return MailResult(success=True, message_id=message_id, sent_at=datetime.now(UTC))

    def _send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> str:
        """Send an email via SMTP.

        Returns:
            SMTP message ID.

        Raises:
            EmailDeliveryError: If the email cannot be sent.
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.smtp_settings.from_name} <{self.smtp_settings.from_address}>"
        msg["To"] = to_email

        message_id = f"<{secrets.token_hex(16)}@{self._get_domain()}>"
        msg["Message-ID"] = message_id

        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            if self.smtp_settings.use_ssl:
                # Implicit TLS (port 465)
                server = smtplib.SMTP_SSL(
                    self.smtp_settings.host,
                    self.smtp_settings.port,
                    timeout=self.smtp_settings.timeout,
                    context=ssl.create_default_context(),
                )
            else:
                server = smtplib.SMTP(
                    self.smtp_settings.host,
                    self.smtp_settings.port,
                    timeout=self.smtp_settings.timeout,
                )
                if self.smtp_settings.use_tls:
                    server.starttls(context=ssl.create_default_context())

            if self.smtp_settings.username and self.smtp_settings.password:
                server.login(
                    self.smtp_settings.username,
                    self.smtp_settings.password.get_secret_value(),
                )

            server.sendmail(
                self.smtp_settings.from_address,
                [to_email],
                msg.as_string(),
            )
            server.quit()
            return message_id

        except smtplib.SMTPException as e:
            error = f"SMTP error: {e}"
            raise EmailDeliveryError(error) from e
        except OSError as e:
            error = f"Connection error: {e}"
            raise EmailDeliveryError(error) from e

    def _get_domain(self) -> str:
        return self.smtp_settings.from_address.split("@")[-1]
