"""
Email Service

Sends account e-mails (verification, welcome) over SMTP.
Uses aiosmtplib for async delivery and Jinja2 templates from
``core/templates/email``.
"""

import logging
import os
import re
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiosmtplib
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from core.utils.runtime import app_base_url

logger = logging.getLogger(__name__)

_DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

VERIFICATION_SUBJECT = "Verify your HealyAI account"
WELCOME_SUBJECT = "Welcome to HealyAI!"


class EmailNotConfiguredError(RuntimeError):
    """Raised when a required e-mail cannot be sent because SMTP is unset."""


class EmailDeliveryError(RuntimeError):
    """Raised when SMTP delivery of a required e-mail fails."""


class EmailServiceConfig:
    """Configuration for email service from environment variables."""

    def __init__(self):
        self.smtp_host = os.getenv('SMTP_HOST', '')
        self.smtp_port = int(os.getenv('SMTP_PORT', '587'))
        self.smtp_username = os.getenv('SMTP_USERNAME', '')
        self.smtp_password = os.getenv('SMTP_PASSWORD', '')
        self.smtp_use_tls = os.getenv('SMTP_USE_TLS', 'true').lower() == 'true'
        self.smtp_use_ssl = os.getenv('SMTP_USE_SSL', 'false').lower() == 'true'
        self.from_email = os.getenv('FROM_EMAIL', 'noreply@healyai.com')
        self.from_name = os.getenv('FROM_NAME', 'HealyAI')
        self.reply_to_email = os.getenv('REPLY_TO_EMAIL', '')
        self.template_dir = os.getenv('EMAIL_TEMPLATE_DIR', str(_DEFAULT_TEMPLATE_DIR))

    def is_configured(self) -> bool:
        """Check if email service is properly configured."""
        return bool(self.smtp_host and self.smtp_port and self.from_email)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        if not self.smtp_host:
            errors.append("SMTP_HOST is required")
        if not self.smtp_port or self.smtp_port <= 0:
            errors.append("SMTP_PORT must be a positive integer")
        if not self.from_email:
            errors.append("FROM_EMAIL is required")
        if self.smtp_use_ssl and self.smtp_use_tls:
            errors.append("Cannot use both SSL and TLS simultaneously")
        return errors


class EmailService:
    """Service for sending emails via SMTP."""

    def __init__(self, config: Optional[EmailServiceConfig] = None):
        self.config = config or EmailServiceConfig()
        template_path = Path(self.config.template_dir)
        if not template_path.exists():
            logger.warning("Email template directory not found: %s", template_path)
        self.template_env = Environment(
            loader=FileSystemLoader(str(template_path)),
            autoescape=select_autoescape(["html"]),
        )

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Send an email via SMTP.

        Returns a dict with ``success`` and either ``message_id`` or ``error``.
        """
        if not self.config.is_configured():
            return {'success': False, 'error': 'Email service not configured'}

        message = MIMEMultipart('alternative')
        message['From'] = f"{self.config.from_name} <{self.config.from_email}>"
        message['To'] = to_email
        message['Subject'] = subject
        if reply_to or self.config.reply_to_email:
            message['Reply-To'] = reply_to or self.config.reply_to_email
        if text_content:
            message.attach(MIMEText(text_content, 'plain', 'utf-8'))
        message.attach(MIMEText(html_content, 'html', 'utf-8'))

        smtp_kwargs = {
            'hostname': self.config.smtp_host,
            'port': self.config.smtp_port,
            'use_tls': self.config.smtp_use_ssl,
            'start_tls': self.config.smtp_use_tls and not self.config.smtp_use_ssl,
        }
        try:
            async with aiosmtplib.SMTP(**smtp_kwargs) as smtp:
                if self.config.smtp_username and self.config.smtp_password:
                    await smtp.login(self.config.smtp_username, self.config.smtp_password)
                await smtp.send_message(message)
        except (aiosmtplib.SMTPException, OSError) as e:
            error_msg = f"Failed to send email to {to_email}: {e}"
            logger.error(error_msg)
            return {'success': False, 'error': error_msg}

        logger.info("Email sent to %s: %s", to_email, subject)
        return {'success': True, 'message_id': message.get('Message-ID', '')}

    def render_template(self, template_name: str, context: Dict[str, Any]) -> tuple[str, str]:
        """Render ``<name>.html`` and ``<name>.txt``; text falls back to stripped HTML."""
        html_content = self.template_env.get_template(f"{template_name}.html").render(**context)
        try:
            text_content = self.template_env.get_template(f"{template_name}.txt").render(**context)
        except TemplateNotFound:
            text_content = self._html_to_text(html_content)
        return html_content, text_content

    def _html_to_text(self, html_content: str) -> str:
        text = re.sub(r'<(style|title)[^>]*>.*?</\1>', '', html_content, flags=re.S | re.I)
        text = re.sub(r'<[^>]+>', '', text)
        text = text.replace('&amp;', '&').replace('&lt;', '<').replace('&gt;', '>')
        text = text.replace('&quot;', '"').replace('&#39;', "'").replace('&copy;', '(c)')
        return re.sub(r'\s+', ' ', text).strip()

    async def send_verification_email(self, email: str, name: str, token: str) -> Dict[str, Any]:
        """Send the account verification link; raises when it cannot be delivered."""
        if not self.config.is_configured():
            logger.error("Verification email not sent: SMTP is not configured")
            raise EmailNotConfiguredError("Email service not configured")
        verification_url = f"{app_base_url()}/auth/verify-email?token={token}"
        html, text = self.render_template(
            "verify_email",
            {"name": name, "verification_url": verification_url, "expires_hours": 24},
        )
        result = await self.send_email(email, VERIFICATION_SUBJECT, html, text)
        if not result.get('success'):
            raise EmailDeliveryError("Failed to send verification email")
        return result

    async def send_welcome_email(self, email: str, name: str) -> Dict[str, Any]:
        """Send the post-verification welcome e-mail; failures are only logged."""
        if not self.config.is_configured():
            logger.warning("Welcome email not sent: SMTP is not configured")
            return {'success': False, 'error': 'Email service not configured'}
        html, text = self.render_template(
            "welcome",
            {"name": name, "login_url": f"{app_base_url()}/auth/login"},
        )
        result = await self.send_email(email, WELCOME_SUBJECT, html, text)
        if not result.get('success'):
            logger.error("Failed to send welcome email to %s: %s", email, result.get('error'))
        return result


_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get singleton email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service


def reset_email_service_for_tests() -> None:
    global _email_service
    _email_service = None
