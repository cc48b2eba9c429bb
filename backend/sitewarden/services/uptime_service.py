"""
Uptime probing for deployed sites.

Issues one GET (following redirects) against a deployment URL and reports
status code, success flag and wall-clock duration. A response below 400 is a
success; a network failure is a failure with no status code.

The response body of a successful probe is kept on the returned object (not
persisted) so a later step of the same pass can reuse it.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

logger = logging.getLogger("sitewarden.uptime")


@dataclass(frozen=True)
class UptimeProbe:
    url: str
    ok: bool
    status_code: Optional[int] = None
    duration_ms: Optional[int] = None
    message: Optional[str] = None
    body: Optional[str] = None


class UptimeService:
    """Probe deployment URLs with a shared httpx client."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def probe(self, url: str) -> UptimeProbe:
        started = time.perf_counter()
        try:
            response = await self.client.get(url, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            duration_ms = int((time.perf_counter() - started) * 1000)
            message = str(e) or type(e).__name__
            logger.warning(f"Uptime probe failed for {url}: {message}")
            return UptimeProbe(url=url, ok=False, duration_ms=duration_ms, message=message)

        duration_ms = max(0, int((time.perf_counter() - started) * 1000))
        ok = response.status_code < 400
        body = response.text if response.is_success else None
        if ok:
            logger.info(f"Uptime probe {url}: {response.status_code} in {duration_ms}ms")
        else:
            logger.warning(f"Uptime probe {url}: {response.status_code} in {duration_ms}ms")
        return UptimeProbe(
            url=url,
            ok=ok,
            status_code=response.status_code,
            duration_ms=duration_ms,
            message=None if ok else f"HTTP {response.status_code}",
            body=body,
        )
