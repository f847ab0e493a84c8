"""Tests for the driver portal mailer.

Tests verify:
- Templates render the link and the driver name in both versions
- SMTP connection modes (plain, STARTTLS, implicit TLS) and login
- Delivery failures are reported in the result instead of raised
"""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from barulogix.services.mailer import (
    PASSWORD_RESET_SUBJECT,
    VERIFICATION_SUBJECT,
    ConductorMailer,
    EmailDeliveryError,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_smtp_settings() -> MagicMock:
    """Create mock SMTP settings for testing."""
    settings = MagicMock()
    settings.host = "localhost"
    settings.port = 1025
    settings.username = None
    settings.password = None
    settings.use_tls = False
    settings.use_ssl = False
    settings.from_address = "noreply@barulogix.test"
    settings.from_name = "BaruLogix Test"
    settings.timeout = 30
    return settings


@pytest.fixture
def mailer(mock_smtp_settings: MagicMock) -> ConductorMailer:
    return ConductorMailer(mock_smtp_settings, base_url="https://app.barulogix.test/")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRendering:
    """Tests for links and templates."""

    def test_link_carries_token(self, mailer: ConductorMailer) -> None:
        assert (
            mailer.link("conductor/verify-email", "abc123")
            == "https://app.barulogix.test/conductor/verify-email?token=abc123"
        )

    def test_verification_template(self, mailer: ConductorMailer) -> None:
        html, text = mailer._render(
            "verify_email",
            conductor_name="Ana <Ruiz>",
            link="https://app.barulogix.test/conductor/verify-email?token=t1",
        )

        assert "token=t1" in html
        assert "token=t1" in text
        # HTML output is escaped, text output is not
        assert "Ana &lt;Ruiz&gt;" in html
        assert "Ana <Ruiz>" in text

    def test_password_reset_template(self, mailer: ConductorMailer) -> None:
        html, text = mailer._render("password_reset", conductor_name="Luis", link="L")

        assert "Restablecer contraseña" in html
        assert "1 hora" in text


# ---------------------------------------------------------------------------
# Sending
# ---------------------------------------------------------------------------


class TestSend:
    """Tests for send_verification() and send_password_reset()."""

    @pytest.mark.asyncio
    @patch("barulogix.services.mailer.ConductorMailer._send_email")
    async def test_send_verification_success(
        self, mock_send: MagicMock, mailer: ConductorMailer
    ) -> None:
        mock_send.return_value = "<id@barulogix.test>"

        result = await mailer.send_verification(
            to_email="driver@example.com", conductor_name="Ana", token="tok"
        )

        assert result.success is True
        assert result.message_id == "<id@barulogix.test>"
        assert result.sent_at is not None
        to_email, subject, html, _text = mock_send.call_args.args
        assert to_email == "driver@example.com"
        assert subject == VERIFICATION_SUBJECT
        assert "conductor/verify-email?token=tok" in html

    @pytest.mark.asyncio
    @patch("barulogix.services.mailer.ConductorMailer._send_email")
    async def test_send_failure_is_reported(
        self, mock_send: MagicMock, mailer: ConductorMailer
    ) -> None:
        mock_send.side_effect = EmailDeliveryError("Connection error: refused")

        result = await mailer.send_password_reset(
            to_email="driver@example.com", conductor_name="Ana", token="tok"
        )

        assert result.success is False
        assert result.message_id is None
        assert "refused" in result.error

    @pytest.mark.asyncio
    @patch("barulogix.services.mailer.ConductorMailer._send_email")
    async def test_password_reset_subject(
        self, mock_send: MagicMock, mailer: ConductorMailer
    ) -> None:
        mock_send.return_value = "<id@barulogix.test>"

        await mailer.send_password_reset(
            to_email="driver@example.com", conductor_name="Ana", token="r1"
        )

        assert mock_send.call_args.args[1] == PASSWORD_RESET_SUBJECT
        assert "conductor/reset-password?token=r1" in mock_send.call_args.args[3]


class TestSMTP:
    """Tests for the SMTP transport."""

    @patch("barulogix.services.mailer.smtplib.SMTP")
    def test_send_email_plain_smtp(
        self, mock_smtp_class: MagicMock, mailer: ConductorMailer
    ) -> None:
        """Plain SMTP should work without TLS."""
        mock_smtp = MagicMock()
        mock_smtp_class.return_value = mock_smtp

        message_id = mailer._send_email(
            "test@example.com", "Test Subject", "<p>HTML body</p>", "Text body"
        )

        mock_smtp_class.assert_called_once_with("localhost", 1025, timeout=30)
        mock_smtp.starttls.assert_not_called()
        mock_smtp.login.assert_not_called()
        mock_smtp.sendmail.assert_called_once()
        mock_smtp.quit.assert_called_once()
        assert message_id.endswith("@barulogix.test>")

    @patch("barulogix.services.mailer.smtplib.SMTP")
    def test_send_email_with_starttls_and_login(
        self, mock_smtp_class: MagicMock, mock_smtp_settings: MagicMock
    ) -> None:
        mock_smtp_settings.use_tls = True
        mock_smtp_settings.username = "relay"
        mock_smtp_settings.password.get_secret_value.return_value = "secret"
        mock_smtp = MagicMock()
        mock_smtp_class.return_value = mock_smtp

        ConductorMailer(mock_smtp_settings, base_url="https://x")._send_email(
            "test@example.com", "Test", "<p>HTML</p>", "Text"
        )

        mock_smtp.starttls.assert_called_once()
        mock_smtp.login.assert_called_once_with("relay", "secret")

    @patch("barulogix.services.mailer.smtplib.SMTP_SSL")
    def test_send_email_with_ssl(
        self, mock_smtp_ssl_class: MagicMock, mock_smtp_settings: MagicMock
    ) -> None:
        """SMTP with SSL should use SMTP_SSL."""
        mock_smtp_settings.use_ssl = True
        mock_smtp_ssl_class.return_value = MagicMock()

        ConductorMailer(mock_smtp_settings, base_url="https://x")._send_email(
            "test@example.com", "Test", "<p>HTML</p>", "Text"
        )

        mock_smtp_ssl_class.assert_called_once()

    @patch("barulogix.services.mailer.smtplib.SMTP")
    def test_smtp_error_raises_delivery_error(
        self, mock_smtp_class: MagicMock, mailer: ConductorMailer
    ) -> None:
        mock_smtp_class.return_value.sendmail.side_effect = smtplib.SMTPRecipientsRefused({})

        with pytest.raises(EmailDeliveryError, match="SMTP error"):
            mailer._send_email("test@example.com", "Test", "<p>HTML</p>", "Text")

    @patch("barulogix.services.mailer.smtplib.SMTP")
    def test_connection_error_raises_delivery_error(
        self, mock_smtp_class: MagicMock, mailer: ConductorMailer
    ) -> None:
        mock_smtp_class.side_effect = ConnectionRefusedError("refused")

        with pytest.raises(EmailDeliveryError, match="Connection error"):
            mailer._send_email("test@example.com", "Test", "<p>HTML</p>", "Text")
