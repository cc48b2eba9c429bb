"""
MinIO Storage Service.

Object storage for backup archives using the MinIO S3-compatible API. Works
against MinIO, Cloudflare R2, AWS S3 or any S3-compatible endpoint.

Backups are written to a single bucket and addressed by a public locator
derived from a configured base URL and the object key.
"""

import logging
from io import BytesIO
from typing import List, Optional, Tuple

from minio import Minio
from minio.error import S3Error

from ..config import Settings, settings

logger = logging.getLogger("sitewarden.minio")


class MinIOService:
    """
    MinIO storage service implementation.

    Provides the object-store operations the Backup Producer needs:
    - Object upload
    - Public locator derivation
    - Bucket provisioning and health check

    Configuration comes from ``Settings`` (MINIO_* environment variables).
    """

    def __init__(self, config: Optional[Settings] = None):
        config = config or settings
        self.endpoint = config.minio_endpoint
        self.access_key = config.minio_access_key
        self.secret_key = config.minio_secret_key
        self.secure = config.minio_secure
        self.region = config.minio_region
        self.bucket = config.minio_bucket_backups
        self.public_base_url = config.storage_public_base_url
        self._client: Optional[Minio] = None

    @property
    def client(self) -> Minio:
        """Get or create MinIO client (lazy initialization)."""
        if self._client is None:
            self._client = Minio(
                endpoint=self.endpoint,
                access_key=self.access_key,
                secret_key=self.secret_key,
                secure=self.secure,
                region=self.region,
            )
            logger.info(
                f"MinIO client initialized (endpoint={self.endpoint}, "
                f"secure={self.secure})"
            )
        return self._client

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    def check_health(self) -> Tuple[bool, Optional[List[str]], Optional[str]]:
        """
        Check MinIO connection health.

        Returns:
            Tuple of (connected, buckets list, error message)
        """
        try:
            buckets = self.client.list_buckets()
            return True, [b.name for b in buckets], None
        except Exception as e:
            logger.error(f"MinIO health check failed: {e}")
            return False, None, str(e)

    # =========================================================================
    # BUCKET OPERATIONS
    # =========================================================================

    def ensure_bucket(self) -> bool:
        """
        Create the backup bucket if it doesn't exist.

        Returns:
            True if bucket was created, False if it already existed
        """
        try:
            if not self.client.bucket_exists(bucket_name=self.bucket):
                self.client.make_bucket(bucket_name=self.bucket)
                logger.info(f"Created bucket: {self.bucket}")
                return True
            logger.debug(f"Bucket already exists: {self.bucket}")
            return False
        except S3Error as e:
            logger.error(f"Failed to create bucket {self.bucket}: {e}")
            raise

    # =========================================================================
    # OBJECT OPERATIONS
    # =========================================================================

    def put(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Upload an object to the backup bucket.

        Args:
            key: Object key
            data: Object content
            content_type: MIME type

        Returns:
            Object ETag
        """
        result = self.client.put_object(
            bucket_name=self.bucket,
            object_name=key,
            data=BytesIO(data),
            length=len(data),
            content_type=content_type,
        )
        logger.info(f"Uploaded object {self.bucket}/{key} ({len(data)} bytes)")
        return result.etag

    def public_url(self, key: str) -> str:
        """
        Stable public locator for an object key.

        Uses ``storage_public_base_url`` when configured, otherwise
        ``<scheme>://<endpoint>/<bucket>``.
        """
        if self.public_base_url:
            base = self.public_base_url.rstrip("/")
        else:
            scheme = "https" if self.secure else "http"
            base = f"{scheme}://{self.endpoint}/{self.bucket}"
        return f"{base}/{key.lstrip('/')}"
