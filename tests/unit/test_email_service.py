from unittest.mock import AsyncMock, MagicMock, patch

import aiosmtplib
import pytest

from core.services.email_service import (
    EmailDeliveryError,
    EmailNotConfiguredError,
    EmailService,
    EmailServiceConfig,
)


@pytest.fixture
def smtp_env(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.test")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("SMTP_USERNAME", "mailer")
    monkeypatch.setenv("SMTP_PASSWORD", "secret")
    monkeypatch.setenv("FROM_EMAIL", "noreply@healyai.test")
    monkeypatch.delenv("SMTP_USE_SSL", raising=False)
    monkeypatch.delenv("SMTP_USE_TLS", raising=False)


def _smtp_patch(smtp):
    smtp_cls = MagicMock()
    smtp_cls.return_value.__aenter__.return_value = smtp
    smtp_cls.return_value.__aexit__.return_value = False
    return patch("core.services.email_service.aiosmtplib.SMTP", smtp_cls)


def test_config_validation(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    monkeypatch.setenv("SMTP_USE_SSL", "true")
    monkeypatch.setenv("SMTP_USE_TLS", "true")
    config = EmailServiceConfig()
    assert not config.is_configured()
    assert config.validate() == ["SMTP_HOST is required", "Cannot use both SSL and TLS simultaneously"]


def test_render_verification_template(smtp_env):
    html, text = EmailService().render_template(
        "verify_email",
        {"name": "Ada", "verification_url": "http://localhost:3000/auth/verify-email?token=t", "expires_hours": 24},
    )
    assert "verify-email?token=t" in html
    assert text.startswith("Hello Dr. Ada,")


def test_welcome_template_text_falls_back_to_html(smtp_env):
    html, text = EmailService().render_template("welcome", {"name": "Ada", "login_url": "http://x/auth/login"})
    assert "<" not in text
    assert "Ada" in text


@pytest.mark.asyncio
async def test_send_email_not_configured(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    result = await EmailService().send_email("a@b.co", "Hi", "<p>Hi</p>")
    assert result == {"success": False, "error": "Email service not configured"}


@pytest.mark.asyncio
async def test_send_email_uses_starttls_and_login(smtp_env):
    smtp = AsyncMock()
    with _smtp_patch(smtp) as smtp_cls:
        result = await EmailService().send_email("a@b.co", "Hi", "<p>Hi</p>", "Hi")
    assert result["success"] is True
    smtp_cls.assert_called_once_with(hostname="smtp.test", port=2525, use_tls=False, start_tls=True)
    smtp.login.assert_awaited_once_with("mailer", "secret")
    message = smtp.send_message.await_args.args[0]
    assert message["To"] == "a@b.co"
    assert message["From"] == "HealyAI <noreply@healyai.test>"


@pytest.mark.asyncio
async def test_send_email_reports_smtp_failure(smtp_env):
    smtp = AsyncMock()
    smtp.send_message.side_effect = aiosmtplib.SMTPException("rejected")
    with _smtp_patch(smtp):
        result = await EmailService().send_email("a@b.co", "Hi", "<p>Hi</p>")
    assert result["success"] is False
    assert "rejected" in result["error"]


@pytest.mark.asyncio
async def test_verification_email_requires_smtp(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    with pytest.raises(EmailNotConfiguredError):
        await EmailService().send_verification_email("a@b.co", "Ada", "tok")


@pytest.mark.asyncio
async def test_verification_email_delivery_failure_raises(smtp_env):
    smtp = AsyncMock()
    smtp.send_message.side_effect = OSError("connection refused")
    with _smtp_patch(smtp):
        with pytest.raises(EmailDeliveryError):
            await EmailService().send_verification_email("a@b.co", "Ada", "tok")


@pytest.mark.asyncio
async def test_verification_email_link(smtp_env):
    smtp = AsyncMock()
    with _smtp_patch(smtp):
        await EmailService().send_verification_email("a@b.co", "Ada", "tok123")
    message = smtp.send_message.await_args.args[0]
    assert message["Subject"] == "Verify your HealyAI account"
    body = message.get_payload()[0].get_payload(decode=True).decode()
    assert "http://localhost:3000/auth/verify-email?token=tok123" in body


@pytest.mark.asyncio
async def test_welcome_email_is_best_effort(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    result = await EmailService().send_welcome_email("a@b.co", "Ada")
    assert result["success"] is False
