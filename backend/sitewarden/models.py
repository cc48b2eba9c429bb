# ============================================================================
# SiteWarden - Domain Models
# ============================================================================
"""
Domain types shared by the maintenance engine.

This module defines:
- Enumerations for site lifecycle, subscription plan, billing status,
  task kinds and outcomes
- Result payload models, one per task kind, combined into a tagged union
  keyed by ``kind`` so every consumer reads typed fields
- Plain records for sites and maintenance log entries as returned by the
  persistence layer
- The transient analysis types (ExtractedFile, SiteAnalysisResult, SeoAudit)

Persistence-specific ORM models live in ``sitewarden.database.models``.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# ENUMERATION TYPES
# ============================================================================

class SiteStatus(str, Enum):
    """
    Lifecycle status of a hosted site.

    Values:
        UPLOADED: Bundle received, not analysed yet
        ANALYZED: Bundle analysed, not deployed
        DEPLOYED: Live at its deployment URL
        FAILED: Analysis or deployment failed
    """
    UPLOADED = "uploaded"
    ANALYZED = "analyzed"
    DEPLOYED = "deployed"
    FAILED = "failed"


class SitePlan(str, Enum):
    """Subscription tier of a site."""
    BASIC = "basic"
    STANDARD = "standard"
    PRO = "pro"


class BillingStatus(str, Enum):
    """Account state derived from the payment provider."""
    INACTIVE = "inactive"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class TaskKind(str, Enum):
    """Category of recurring maintenance work."""
    UPTIME = "uptime"
    BACKUP = "backup"
    SEO = "seo"


class LogOutcome(str, Enum):
    SUCCESS = "success"
    FAIL = "fail"


class PassTrigger(str, Enum):
    """What started a maintenance pass."""
    STARTUP = "startup"
    CRON = "cron"
    MANUAL = "manual"


ALL_TASK_KINDS = frozenset(TaskKind)


# ============================================================================
# RESULT PAYLOADS (tagged union keyed by task kind)
# ============================================================================

class UptimeResult(BaseModel):
    """Outcome of one uptime probe. ``status_code`` is None on network failure."""
    kind: Literal["uptime"] = "uptime"
    trigger: str
    status_code: Optional[int] = None
    ok: bool = False
    duration_ms: Optional[int] = Field(default=None, ge=0)
    message: Optional[str] = None
    checked_at: datetime = Field(default_factory=utcnow)


class BackupResult(BaseModel):
    """Outcome of one backup attempt. ``locator`` is set only on success."""
    kind: Literal["backup"] = "backup"
    trigger: str
    locator: Optional[str] = None
    key: Optional[str] = None
    timestamp: Optional[str] = None
    size_bytes: Optional[int] = None
    message: Optional[str] = None


class SeoResult(BaseModel):
    """Outcome of one SEO re-audit."""
    kind: Literal["seo"] = "seo"
    trigger: str
    score: Optional[int] = Field(default=None, ge=0, le=100)
    title: str = ""
    description: str = ""
    page_count: int = 0
    script_count: int = 0
    suggestions: List[str] = Field(default_factory=list)
    recommendations: Optional[str] = None
    message: Optional[str] = None


TaskResult = Annotated[
    Union[UptimeResult, BackupResult, SeoResult],
    Field(discriminator="kind"),
]

_task_result_adapter = TypeAdapter(TaskResult)


def parse_task_result(data: Dict[str, Any]) -> Union[UptimeResult, BackupResult, SeoResult]:
    """Rebuild a typed payload from its stored JSON form."""
    return _task_result_adapter.validate_python(data)


# ============================================================================
# SITE AND LOG RECORDS
# ============================================================================

class SiteMeta(BaseModel):
    """Analysis metadata stored on a site."""
    pages: int = 0
    scripts: int = 0
    seo_score: int = Field(default=0, ge=0, le=100)
    title: str = ""
    description: str = ""
    favicon_path: Optional[str] = None
    favicon_data_url: Optional[str] = None


@dataclass
class SiteRecord:
    """
    A tenant-owned deployable unit, as seen by the maintenance engine.

    Invariant: ``deploy_url`` is non-empty if and only if ``status`` is
    ``deployed``.
    """
    id: str
    name: str
    tenant_id: str
    status: SiteStatus
    plan: SitePlan = SitePlan.BASIC
    billing_status: BillingStatus = BillingStatus.INACTIVE
    deploy_url: Optional[str] = None
    contact_email: Optional[str] = None
    meta: SiteMeta = field(default_factory=SiteMeta)

    @property
    def is_reachable(self) -> bool:
        return self.status == SiteStatus.DEPLOYED and bool(self.deploy_url and self.deploy_url.strip())


@dataclass(frozen=True)
class MaintenanceLogEntry:
    """Immutable record of one task execution."""
    site_id: str
    kind: TaskKind
    outcome: LogOutcome
    result: Union[UptimeResult, BackupResult, SeoResult]
    created_at: datetime
    id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == LogOutcome.SUCCESS


# ============================================================================
# ANALYSIS TYPES
# ============================================================================

class FileEncoding(str, Enum):
    TEXT = "text"
    BASE64 = "base64"


@dataclass(frozen=True)
class ExtractedFile:
    """One file of an extracted bundle."""
    data: str
    encoding: FileEncoding = FileEncoding.TEXT
    media_type: Optional[str] = None


# Normalized relative path -> file
ExtractedFileSet = Dict[str, ExtractedFile]


@dataclass(frozen=True)
class SiteAnalysisResult:
    title: str = ""
    description: str = ""
    script_count: int = 0
    page_count: int = 0
    seo_score: int = 50
    favicon_path: Optional[str] = None
    favicon_data_url: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "script_count": self.script_count,
            "page_count": self.page_count,
            "seo_score": self.seo_score,
        }
        if self.favicon_data_url:
            data["favicon_path"] = self.favicon_path
            data["favicon_data_url"] = self.favicon_data_url
        return data


@dataclass(frozen=True)
class SeoAudit:
    """Rule-based findings for a single document."""
    heading_count: int = 0
    link_count: int = 0
    suggestions: List[str] = field(default_factory=list)
