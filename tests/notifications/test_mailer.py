"""Tests for SMTP delivery with smtplib patched out."""

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from src.notifications.mailer import SmtpMailer
from src.notifications.templates import RenderedEmail

EMAIL = RenderedEmail(subject="Hello", text="plain body", html="<p>html body</p>")


def _mailer(port: int = 465, **kwargs) -> SmtpMailer:
    return SmtpMailer(
        host="smtp.example.com",
        port=port,
        username=kwargs.pop("username", "studio@example.com"),
        password=kwargs.pop("password", "app-password"),
        from_name="Cocoa Code",
        **kwargs,
    )


def test_build_message_is_multipart_alternative() -> None:
    message = _mailer().build_message("jane@example.com", EMAIL)

    assert message["Subject"] == "Hello"
    assert message["To"] == "jane@example.com"
    assert message["From"] == "Cocoa Code <studio@example.com>"
    assert message.get_content_subtype() == "alternative"
    parts = [part.get_content_type() for part in message.get_payload()]
    assert parts == ["text/plain", "text/html"]


def test_disabled_without_credentials() -> None:
    assert _mailer(password=None).enabled is False


@pytest.mark.asyncio
async def test_send_uses_ssl_on_465() -> None:
    server = MagicMock()
    with patch("src.notifications.mailer.smtplib.SMTP_SSL") as smtp_ssl:
        smtp_ssl.return_value.__enter__.return_value = server
        await _mailer().send("jane@example.com", EMAIL)

    smtp_ssl.assert_called_once()
    server.login.assert_called_once_with("studio@example.com", "app-password")
    args = server.sendmail.call_args.args
    assert args[0] == "studio@example.com"
    assert args[1] == ["jane@example.com"]


@pytest.mark.asyncio
async def test_send_uses_starttls_on_other_ports() -> None:
    with patch("src.notifications.mailer.smtplib.SMTP") as smtp:
        client = smtp.return_value
        client.__enter__.return_value = client
        await _mailer(port=587).send("jane@example.com", EMAIL)

    client.starttls.assert_called_once()
    client.sendmail.assert_called_once()


@pytest.mark.asyncio
async def test_send_without_credentials_raises() -> None:
    with pytest.raises(RuntimeError):
        await _mailer(username=None).send("jane@example.com", EMAIL)


@pytest.mark.asyncio
async def test_verify_reports_auth_failure() -> None:
    with patch("src.notifications.mailer.smtplib.SMTP_SSL") as smtp_ssl:
        server = smtp_ssl.return_value.__enter__.return_value
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
        assert await _mailer().verify() is False


@pytest.mark.asyncio
async def test_verify_skips_when_disabled() -> None:
    with patch("src.notifications.mailer.smtplib.SMTP_SSL") as smtp_ssl:
        assert await _mailer(password=None).verify() is False
    smtp_ssl.assert_not_called()
