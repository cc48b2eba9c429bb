"""
Backup Producer for deployed sites.

Fetches a deployment's rendered HTML, packages it as a ZIP archive, uploads
it to object storage under ``backups/{site_id}/{timestamp}.zip`` and returns
a retrievable locator.

Limitation: the archive holds only the top-level document (``index.html``),
not the site's asset tree.

Usage:
    from sitewarden.services.backup_service import BackupService

    artifact = await BackupService(storage, client).backup(site_id, deploy_url)
    print(artifact.locator)
"""

import asyncio
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Callable, Optional

import httpx

from ..exceptions import BackupError
from ..models import utcnow
from .minio_service import MinIOService

logger = logging.getLogger("sitewarden.backup")

ARCHIVE_CONTENT_TYPE = "application/zip"
ARCHIVE_ENTRY_NAME = "index.html"


@dataclass(frozen=True)
class BackupArtifact:
    locator: str
    key: str
    timestamp: str
    size_bytes: int


def backup_timestamp(moment: datetime) -> str:
    """
    Filesystem-safe ISO-8601 UTC timestamp.

    Example:
        >>> backup_timestamp(datetime(2026, 10, 19, 2, 0, 0, 123000))
        '2026-10-19T02-00-00-123Z'
    """
    return moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"


def backup_key(site_id: str, timestamp: str) -> str:
    return f"backups/{site_id}/{timestamp}.zip"


def build_archive(html: str) -> bytes:
    """Package a single document as a ZIP archive."""
    buffer = BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(ARCHIVE_ENTRY_NAME, html.encode("utf-8"))
    return buffer.getvalue()


class BackupService:
    """
    Produce and store point-in-time backups.

    Attributes:
        storage: Object store with ``put`` and ``public_url``
        client: Shared httpx client used to fetch deployments
        clock: Returns the current UTC time (naive)
    """

    def __init__(
        self,
        storage: MinIOService,
        client: httpx.AsyncClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.client = client
        self.clock = clock

    async def backup(self, site_id: str, deploy_url: str) -> BackupArtifact:
        """
        Back up the live deployment of a site.

        Raises:
            BackupError: Missing URL, fetch failure or storage write failure
        """
        if not deploy_url:
            raise BackupError("Cannot back up a website without a deployment URL")

        html = await self._fetch(deploy_url)
        data = build_archive(html)
        timestamp = backup_timestamp(self.clock())
        key = backup_key(site_id, timestamp)

        try:
            # minio is a blocking client
            await asyncio.to_thread(self.storage.put, key, data, ARCHIVE_CONTENT_TYPE)
        except Exception as e:
            logger.error(f"Failed to store backup {key}: {e}")
            raise BackupError(f"Failed to store backup: {e}") from e

        artifact = BackupArtifact(
            locator=self.storage.public_url(key),
            key=key,
            timestamp=timestamp,
            size_bytes=len(data),
        )
        logger.info(f"Backed up site {site_id} to {artifact.locator} ({artifact.size_bytes} bytes)")
        return artifact

    async def _fetch(self, deploy_url: str) -> str:
        try:
            response = await self.client.get(deploy_url, follow_redirects=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BackupError(f"Failed to download deployed site: {e}") from e
        if not response.is_success:
            raise BackupError(
                f"Failed to download deployed site: {response.status_code} {response.reason_phrase}"
            )
        return response.text
