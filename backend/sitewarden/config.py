# ============================================================================
# SiteWarden - Application Configuration
# ============================================================================
"""
Application configuration module using Pydantic Settings.

This module defines all configuration parameters for the SiteWarden
maintenance worker, including:
- Maintenance cadences (cron expressions) and task intervals
- Outbound HTTP limits
- Database and object storage connections
- Report delivery (email) and SEO recommendation (LLM) settings

Environment Variables:
    Every field maps to an upper-case environment variable of the same name
    (e.g. ``UPTIME_CRON``, ``MINIO_ENDPOINT``). A local ``.env`` file is read
    when present.

Usage:
    from sitewarden.config import settings
    timeout = settings.http_timeout_seconds
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # =========================================================================
    # API SETTINGS
    # =========================================================================
    api_title: str = "SiteWarden Ops API"
    api_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Enable verbose logging & SQL echo")
    log_level: str = Field(default="INFO", description="Root log level for the worker")

    # =========================================================================
    # MAINTENANCE CADENCES (cron, UTC)
    # =========================================================================
    uptime_cron: str = Field(default="0 0 * * *", description="Uptime probes (midnight UTC)")
    backup_cron: str = Field(default="0 2 * * 0", description="Backup checks (Sundays 02:00 UTC)")
    seo_cron: str = Field(default="0 3 * * 0", description="SEO re-audits (Sundays 03:00 UTC)")
    report_cron: str = Field(default="0 8 * * 1", description="Weekly reports (Mondays 08:00 UTC)")

    # =========================================================================
    # MAINTENANCE INTERVALS (days)
    # =========================================================================
    backup_interval_days: int = Field(default=7, description="Minimum days between backups")
    seo_interval_days: int = Field(default=7, description="Minimum days between SEO audits")
    report_window_days: int = Field(default=7, description="Trailing window covered by a report")

    # =========================================================================
    # OUTBOUND HTTP / FAN-OUT
    # =========================================================================
    http_timeout_seconds: float = Field(default=20.0, description="Timeout (s) for every outbound request")
    http_user_agent: str = Field(default="SiteWarden/1.0 (+maintenance)", description="User-Agent header")
    max_concurrent_sites: int = Field(default=4, description="Sites processed in parallel per pass")

    # =========================================================================
    # DATABASE
    # =========================================================================
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/sitewarden.db",
        description="SQLAlchemy async database URL",
    )
    db_pool_size: int = Field(default=10, description="PostgreSQL pool size")
    db_max_overflow: int = Field(default=20, description="PostgreSQL pool overflow")
    db_pool_recycle: int = Field(default=3600, description="Seconds before recycling a connection")

    # =========================================================================
    # OBJECT STORAGE (MinIO / S3-compatible)
    # =========================================================================
    minio_endpoint: Optional[str] = Field(default=None, description="host:port of the object store")
    minio_access_key: Optional[str] = Field(default=None, description="Object store access key")
    minio_secret_key: Optional[str] = Field(default=None, description="Object store secret key")
    minio_secure: bool = Field(default=True, description="Use HTTPS for the object store")
    minio_region: Optional[str] = Field(default=None, description="Bucket region (e.g. 'auto')")
    minio_bucket_backups: str = Field(default="site-backups", description="Bucket for backup archives")
    storage_public_base_url: Optional[str] = Field(
        default=None,
        description="Public base URL for backup locators (defaults to endpoint/bucket)",
    )

    # =========================================================================
    # EMAIL (weekly reports)
    # =========================================================================
    email_backend: str = Field(default="console", description="console, smtp or resend")
    email_from_address: str = Field(default="reports@sitewarden.local", description="From address")
    email_from_name: str = Field(default="SiteWarden Reports", description="From display name")
    smtp_host: str = Field(default="localhost", description="SMTP host")
    smtp_port: int = Field(default=587, description="SMTP port")
    smtp_username: Optional[str] = Field(default=None, description="SMTP username")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=True, description="STARTTLS for SMTP")
    resend_api_key: Optional[str] = Field(default=None, description="Resend API key")
    resend_api_url: str = Field(default="https://api.resend.com/emails", description="Resend endpoint")

    # =========================================================================
    # OPENAI/LLM CONFIGURATION (SEO recommendations)
    # =========================================================================
    openai_api_key: Optional[str] = Field(default=None, description="LLM API key")
    openai_model: str = Field(default="gpt-4o-mini", description="LLM model name")
    openai_base_url: str = Field(default="https://api.openai.com/v1", description="LLM base URL")
    openai_timeout: float = Field(default=60.0, description="Timeout (s) for LLM requests")
    openai_max_retries: int = Field(default=2, description="Retry count for LLM requests")

    # =========================================================================
    # CELERY (optional distributed deployment)
    # =========================================================================
    celery_broker_url: str = Field(default="redis://redis:6379/0", description="Celery broker")
    celery_result_backend: str = Field(default="redis://redis:6379/1", description="Celery results")
    celery_startup_pass_enabled: bool = Field(default=True, description="Run startup pass on worker_ready")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    def missing_required(self) -> List[str]:
        """
        Names of required settings that are not configured.

        Backups cannot run without object storage, so its endpoint and
        credentials are mandatory for the worker to start.
        """
        required = {
            "MINIO_ENDPOINT": self.minio_endpoint,
            "MINIO_ACCESS_KEY": self.minio_access_key,
            "MINIO_SECRET_KEY": self.minio_secret_key,
            "MINIO_BUCKET_BACKUPS": self.minio_bucket_backups,
        }
        missing = [name for name, value in required.items() if not value]
        if self.email_backend.lower() == "resend" and not self.resend_api_key:
            missing.append("RESEND_API_KEY")
        return missing


# Global settings instance (imported elsewhere)
settings = Settings()
