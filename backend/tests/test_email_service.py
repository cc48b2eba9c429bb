"""
Tests for email backends and template rendering.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from sitewarden.config import Settings
from sitewarden.services.email_service import (
    ConsoleEmailBackend,
    EmailService,
    ResendEmailBackend,
    SMTPEmailBackend,
)

MESSAGE = dict(
    to="owner@example.com",
    subject="Weekly maintenance report for Acme",
    html_body="<p>hi</p>",
    text_body="hi",
    from_address="reports@sitewarden.local",
    from_name="SiteWarden Reports",
)


class TestBackendSelection:

    def test_console_default(self):
        service = EmailService(config=Settings(email_backend="console"))
        assert isinstance(service.backend, ConsoleEmailBackend)

    def test_smtp(self):
        service = EmailService(config=Settings(email_backend="smtp", smtp_host="mail.example.com", smtp_port=2525))
        assert isinstance(service.backend, SMTPEmailBackend)
        assert service.backend.port == 2525

    def test_resend_requires_key(self):
        service = EmailService(config=Settings(email_backend="resend", resend_api_key=None))
        assert isinstance(service.backend, ConsoleEmailBackend)

    def test_resend(self):
        service = EmailService(config=Settings(email_backend="resend", resend_api_key="re_test"))
        assert isinstance(service.backend, ResendEmailBackend)

    def test_unknown_backend_falls_back(self):
        service = EmailService(config=Settings(email_backend="pigeon"))
        assert isinstance(service.backend, ConsoleEmailBackend)


class TestResendBackend:

    @pytest.mark.asyncio
    async def test_posts_json_with_bearer_token(self):
        captured = {}

        def handler(request):
            captured["auth"] = request.headers["Authorization"]
            captured["payload"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email-1"})

        backend = ResendEmailBackend("re_test", transport=httpx.MockTransport(handler))

        assert await backend.send_email(**MESSAGE) is True
        assert captured["auth"] == "Bearer re_test"
        assert captured["payload"] == {
            "from": "SiteWarden Reports <reports@sitewarden.local>",
            "to": ["owner@example.com"],
            "subject": "Weekly maintenance report for Acme",
            "html": "<p>hi</p>",
            "text": "hi",
        }

    @pytest.mark.asyncio
    async def test_rejected_request(self):
        backend = ResendEmailBackend(
            "re_test", transport=httpx.MockTransport(lambda request: httpx.Response(422, json={"error": "bad"}))
        )
        assert await backend.send_email(**MESSAGE) is False

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        backend = ResendEmailBackend("re_test", transport=httpx.MockTransport(handler))
        assert await backend.send_email(**MESSAGE) is False


class TestSMTPBackend:

    @pytest.mark.asyncio
    async def test_sends_multipart_message(self):
        backend = SMTPEmailBackend("mail.example.com", 587, "user", "pass", use_tls=True)
        with patch("sitewarden.services.email_service.aiosmtplib.send", new_callable=AsyncMock) as mock_send:
            assert await backend.send_email(**MESSAGE) is True

        message = mock_send.call_args.args[0]
        assert message["To"] == "owner@example.com"
        assert message["Subject"] == "Weekly maintenance report for Acme"
        assert mock_send.call_args.kwargs["hostname"] == "mail.example.com"
        assert mock_send.call_args.kwargs["start_tls"] is True

    @pytest.mark.asyncio
    async def test_failure_returns_false(self):
        backend = SMTPEmailBackend("mail.example.com", 587, None, None)
        with patch(
            "sitewarden.services.email_service.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=OSError("connection refused"),
        ):
            assert await backend.send_email(**MESSAGE) is False


class TestTemplates:

    @pytest.mark.asyncio
    async def test_send_template_missing_template(self):
        service = EmailService(backend=ConsoleEmailBackend())
        assert await service.send_template("owner@example.com", "x", "does_not_exist", {}) is False

    @pytest.mark.asyncio
    async def test_console_send(self):
        service = EmailService(backend=ConsoleEmailBackend())
        assert await service.send("owner@example.com", "subject", "<p>x</p>", "x") is True
