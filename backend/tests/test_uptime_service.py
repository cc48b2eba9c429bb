"""
Tests for uptime probing.
"""

import httpx
import pytest

from sitewarden.services.uptime_service import UptimeService


def client_for(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestUptimeProbe:

    @pytest.mark.asyncio
    async def test_success_keeps_body(self):
        async with client_for(lambda request: httpx.Response(200, text="<html>ok</html>")) as client:
            probe = await UptimeService(client).probe("https://site.example.com")

        assert probe.ok is True
        assert probe.status_code == 200
        assert probe.duration_ms >= 0
        assert probe.body == "<html>ok</html>"
        assert probe.message is None

    @pytest.mark.asyncio
    async def test_server_error_is_failure_with_status(self):
        async with client_for(lambda request: httpx.Response(500)) as client:
            probe = await UptimeService(client).probe("https://site.example.com")

        assert probe.ok is False
        assert probe.status_code == 500
        assert probe.message == "HTTP 500"
        assert probe.body is None

    @pytest.mark.asyncio
    async def test_redirect_followed(self):
        def handler(request):
            if request.url.path == "/":
                return httpx.Response(301, headers={"Location": "https://site.example.com/home"})
            return httpx.Response(200, text="home")

        async with client_for(handler) as client:
            probe = await UptimeService(client).probe("https://site.example.com/")

        assert probe.ok is True
        assert probe.status_code == 200
        assert probe.body == "home"

    @pytest.mark.asyncio
    async def test_network_error_has_no_status(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        async with client_for(handler) as client:
            probe = await UptimeService(client).probe("https://down.example.com")

        assert probe.ok is False
        assert probe.status_code is None
        assert probe.message == "timed out"
        assert probe.duration_ms >= 0
