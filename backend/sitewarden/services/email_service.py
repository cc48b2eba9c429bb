"""
Email service for SiteWarden reports.

Provides pluggable email backends for delivering weekly maintenance reports.
Backends include console (dev), SMTP and the Resend HTTP API.

Key Features:
    - Pluggable backend architecture (console, SMTP, Resend)
    - Jinja2 template rendering
    - HTML + plain text fallback
    - Async sending

Usage:
    from sitewarden.services.email_service import EmailService

    email_service = EmailService()
    await email_service.send_template(
        to="owner@example.com",
        subject="Weekly maintenance report for Acme",
        template_name="weekly_report",
        context={...},
    )

Configuration:
    Uses settings from config.py:
    - email_backend: Backend to use (console, smtp, resend)
    - email_from_address / email_from_name
    - smtp_*: SMTP configuration
    - resend_api_key / resend_api_url: Resend configuration
"""

import logging
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, Optional

import aiosmtplib
import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..config import Settings, settings

logger = logging.getLogger("sitewarden.email")

TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"


class EmailBackend(ABC):
    """Abstract base class for email backends."""

    @abstractmethod
    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        from_address: str,
        from_name: str,
    ) -> bool:
        """
        Send an email.

        Returns:
            bool: True if sent successfully, False otherwise
        """
        pass


class ConsoleEmailBackend(EmailBackend):
    """
    Console email backend for development.

    Logs emails instead of sending them.
    """

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        from_address: str,
        from_name: str,
    ) -> bool:
        logger.info("=" * 80)
        logger.info("EMAIL (Console Backend)")
        logger.info("=" * 80)
        logger.info(f"To: {to}")
        logger.info(f"From: {from_name} <{from_address}>")
        logger.info(f"Subject: {subject}")
        logger.info("-" * 80)
        logger.info(text_body)
        logger.info("=" * 80)
        return True


class SMTPEmailBackend(EmailBackend):
    """Sends emails via an SMTP server with optional STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        username: Optional[str],
        password: Optional[str],
        use_tls: bool = True,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        from_address: str,
        from_name: str,
    ) -> bool:
        try:
            message = MIMEMultipart("alternative")
            message["From"] = f"{from_name} <{from_address}>"
            message["To"] = to
            message["Subject"] = subject
            message.attach(MIMEText(text_body, "plain"))
            message.attach(MIMEText(html_body, "html"))

            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
            )
            logger.info(f"Email sent successfully via SMTP to {to}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email via SMTP: {e}")
            return False


class ResendEmailBackend(EmailBackend):
    """
    Resend email backend.

    Posts the message to the Resend REST API with a bearer token.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        text_body: str,
        from_address: str,
        from_name: str,
    ) -> bool:
        payload = {
            "from": f"{from_name} <{from_address}>",
            "to": [to],
            "subject": subject,
            "html": html_body,
            "text": text_body,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Failed to send email via Resend: {e}")
            return False

        if not response.is_success:
            logger.error(f"Failed to send email via Resend: {response.status_code} {response.text}")
            return False

        logger.info(f"Email sent successfully via Resend to {to}")
        return True


class EmailService:
    """
    Email service with pluggable backends.

    Attributes:
        backend: Current email backend instance
        jinja_env: Jinja2 environment for template rendering
        from_address: From email address
        from_name: From name
    """

    def __init__(self, backend: Optional[EmailBackend] = None, config: Optional[Settings] = None):
        config = config or settings
        self.backend = backend or self._create_backend(config)
        self.jinja_env = self._create_jinja_env()
        self.from_address = config.email_from_address
        self.from_name = config.email_from_name

        logger.info(f"EmailService initialized with backend: {type(self.backend).__name__}")

    @staticmethod
    def _create_backend(config: Settings) -> EmailBackend:
        backend_type = config.email_backend.lower()

        if backend_type == "console":
            return ConsoleEmailBackend()

        elif backend_type == "smtp":
            if not config.smtp_host:
                logger.warning("SMTP backend selected but smtp_host not configured. Falling back to console.")
                return ConsoleEmailBackend()
            return SMTPEmailBackend(
                host=config.smtp_host,
                port=config.smtp_port,
                username=config.smtp_username,
                password=config.smtp_password,
                use_tls=config.smtp_use_tls,
            )

        elif backend_type == "resend":
            if not config.resend_api_key:
                logger.warning("Resend backend selected but resend_api_key not configured. Falling back to console.")
                return ConsoleEmailBackend()
            return ResendEmailBackend(
                api_key=config.resend_api_key,
                api_url=config.resend_api_url,
                timeout=config.http_timeout_seconds,
            )

        logger.warning(f"Unknown email backend: {backend_type}. Falling back to console.")
        return ConsoleEmailBackend()

    @staticmethod
    def _create_jinja_env() -> Environment:
        """Create Jinja2 environment for email templates."""
        return Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def render(self, template_name: str, context: Dict[str, Any]) -> Dict[str, str]:
        """Render the ``.html`` and ``.txt`` variants of a template."""
        html_body = self.jinja_env.get_template(f"{template_name}.html").render(**context)
        text_body = self.jinja_env.get_template(f"{template_name}.txt").render(**context)
        return {"html": html_body, "text": text_body}

    async def send(self, recipient: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send an already rendered email through the configured backend."""
        return await self.backend.send_email(
            to=recipient,
            subject=subject,
            html_body=html_body,
            text_body=text_body,
            from_address=self.from_address,
            from_name=self.from_name,
        )

    async def send_template(
        self,
        to: str,
        subject: str,
        template_name: str,
        context: Dict[str, Any],
    ) -> bool:
        """
        Send an email using a template.

        Args:
            to: Recipient email address
            subject: Email subject
            template_name: Template name (without extension)
            context: Template context variables

        Returns:
            bool: True if sent successfully, False otherwise
        """
        try:
            bodies = self.render(template_name, context)
            return await self.send(to, subject, bodies["html"], bodies["text"])
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {e}")
            return False
