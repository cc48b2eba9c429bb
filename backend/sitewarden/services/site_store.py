"""
Site and maintenance-log persistence for SiteWarden.

The maintenance engine talks to persistence through ``SiteRepository`` so
that the orchestrator never depends on a particular database. The default
implementation, ``SqlSiteRepository``, stores sites and the append-only
maintenance journal with async SQLAlchemy.

Key Features:
- Deployed-site listing for maintenance passes
- Partial meta updates (merge, never replace)
- Append-only log entries with typed payloads
- "Latest entry per (site, kind)" lookups for scheduling
- Trailing-window reads for weekly reports
- Site lifecycle writes that keep the deploy URL / status invariant

Usage:
    from sitewarden.services.site_store import SqlSiteRepository

    repository = SqlSiteRepository()
    latest = await repository.latest_log_entry(site_id, TaskKind.BACKUP)
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import select, text

from ..database.models import MaintenanceLog, Site
from ..models import (
    BillingStatus,
    LogOutcome,
    MaintenanceLogEntry,
    SiteAnalysisResult,
    SiteMeta,
    SitePlan,
    SiteRecord,
    SiteStatus,
    TaskKind,
    parse_task_result,
    utcnow,
)
from .database_service import DatabaseService, database_service

logger = logging.getLogger("sitewarden.services.site_store")

DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100


def clamp_history_limit(limit: Optional[int]) -> int:
    """Clamp a requested history size to 1..100 (default 20)."""
    if limit is None:
        return DEFAULT_HISTORY_LIMIT
    return min(MAX_HISTORY_LIMIT, max(1, int(limit)))


def _enum_or_default(enum_cls, value, default):
    try:
        return enum_cls(value)
    except ValueError:
        return default


class SiteRepository(ABC):
    """Persistence operations consumed by the maintenance engine."""

    @abstractmethod
    async def find_sites_by_status(self, status: SiteStatus) -> List[SiteRecord]:
        pass

    @abstractmethod
    async def get_site(self, site_id: str) -> Optional[SiteRecord]:
        pass

    @abstractmethod
    async def update_site_meta(self, site_id: str, partial_meta: Dict[str, Any]) -> None:
        """Merge ``partial_meta`` into the stored meta of a site."""

    @abstractmethod
    async def append_log_entry(self, entry: MaintenanceLogEntry) -> MaintenanceLogEntry:
        """Persist an entry and return it with its assigned id."""

    @abstractmethod
    async def latest_log_entry(self, site_id: str, kind: TaskKind) -> Optional[MaintenanceLogEntry]:
        pass

    @abstractmethod
    async def log_entries_since(self, site_id: str, since: datetime) -> List[MaintenanceLogEntry]:
        """Entries created at or after ``since``, oldest first."""

    @abstractmethod
    async def list_log_entries(
        self, site_id: str, limit: Optional[int] = DEFAULT_HISTORY_LIMIT
    ) -> List[MaintenanceLogEntry]:
        """Most recent entries first, limit clamped to 1..100."""

    async def ping(self) -> None:
        """Raise if the store is unreachable."""


class SqlSiteRepository(SiteRepository):
    """
    ``SiteRepository`` backed by async SQLAlchemy.

    Every call opens its own session, so a log entry written by one call is
    visible to the next (read-your-writes for the scheduling queries).
    """

    def __init__(self, db: Optional[DatabaseService] = None):
        self.db = db or database_service

    # =========================================================================
    # Mapping
    # =========================================================================

    @staticmethod
    def _to_site_record(site: Site) -> SiteRecord:
        return SiteRecord(
            id=str(site.id),
            name=site.name,
            tenant_id=site.tenant_id,
            status=_enum_or_default(SiteStatus, site.status, SiteStatus.UPLOADED),
            plan=_enum_or_default(SitePlan, site.plan, SitePlan.BASIC),
            billing_status=_enum_or_default(
                BillingStatus, site.billing_status, BillingStatus.INACTIVE
            ),
            deploy_url=site.deploy_url or None,
            contact_email=site.contact_email,
            meta=SiteMeta(**(site.meta or {})),
        )

    @staticmethod
    def _to_log_entry(row: MaintenanceLog) -> MaintenanceLogEntry:
        return MaintenanceLogEntry(
            id=str(row.id),
            site_id=str(row.site_id),
            kind=TaskKind(row.task_kind),
            outcome=LogOutcome(row.outcome),
            result=parse_task_result(row.result),
            created_at=row.created_at,
        )

    # =========================================================================
    # Reads
    # =========================================================================

    async def ping(self) -> None:
        async with self.db.get_session() as session:
            await session.execute(text("SELECT 1"))

    async def find_sites_by_status(self, status: SiteStatus) -> List[SiteRecord]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(Site).where(Site.status == SiteStatus(status).value).order_by(Site.created_at)
            )
            return [self._to_site_record(site) for site in result.scalars().all()]

    async def get_site(self, site_id: str) -> Optional[SiteRecord]:
        try:
            key = UUID(str(site_id))
        except ValueError:
            return None
        async with self.db.get_session() as session:
            site = await session.get(Site, key)
            return self._to_site_record(site) if site else None

    async def latest_log_entry(self, site_id: str, kind: TaskKind) -> Optional[MaintenanceLogEntry]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(MaintenanceLog)
                .where(
                    MaintenanceLog.site_id == UUID(str(site_id)),
                    MaintenanceLog.task_kind == TaskKind(kind).value,
                )
                .order_by(MaintenanceLog.created_at.desc())
                .limit(1)
            )
            row = result.scalar_one_or_none()
            return self._to_log_entry(row) if row else None

    async def log_entries_since(self, site_id: str, since: datetime) -> List[MaintenanceLogEntry]:
        async with self.db.get_session() as session:
            result = await session.execute(
                select(MaintenanceLog)
                .where(
                    MaintenanceLog.site_id == UUID(str(site_id)),
                    MaintenanceLog.created_at >= since,
                )
                .order_by(MaintenanceLog.created_at)
            )
            return [self._to_log_entry(row) for row in result.scalars().all()]

    async def list_log_entries(
        self, site_id: str, limit: Optional[int] = DEFAULT_HISTORY_LIMIT
    ) -> List[MaintenanceLogEntry]:
        try:
            UUID(str(site_id))
        except ValueError:
            return []
        async with self.db.get_session() as session:
            result = await session.execute(
                select(MaintenanceLog)
                .where(MaintenanceLog.site_id == UUID(str(site_id)))
                .order_by(MaintenanceLog.created_at.desc())
                .limit(clamp_history_limit(limit))
            )
            return [self._to_log_entry(row) for row in result.scalars().all()]

    # =========================================================================
    # Writes
    # =========================================================================

    async def append_log_entry(self, entry: MaintenanceLogEntry) -> MaintenanceLogEntry:
        entry_id = uuid4()
        async with self.db.get_session() as session:
            session.add(
                MaintenanceLog(
                    id=entry_id,
                    site_id=UUID(str(entry.site_id)),
                    task_kind=entry.kind.value,
                    outcome=entry.outcome.value,
                    result=entry.result.model_dump(mode="json"),
                    created_at=entry.created_at,
                )
            )
        logger.debug(
            f"Recorded {entry.kind.value} {entry.outcome.value} for site {entry.site_id} (id={entry_id})"
        )
        return MaintenanceLogEntry(
            id=str(entry_id),
            site_id=entry.site_id,
            kind=entry.kind,
            outcome=entry.outcome,
            result=entry.result,
            created_at=entry.created_at,
        )

    async def update_site_meta(self, site_id: str, partial_meta: Dict[str, Any]) -> None:
        async with self.db.get_session() as session:
            site = await session.get(Site, UUID(str(site_id)))
            if site is None:
                raise LookupError(f"Site {site_id} not found")
            merged = SiteMeta(**{**(site.meta or {}), **partial_meta})
            # Assign a new dict so the JSON column is flagged as modified
            site.meta = merged.model_dump()
            site.updated_at = utcnow()

    async def create_site(
        self,
        name: str,
        tenant_id: str,
        analysis: SiteAnalysisResult,
        contact_email: Optional[str] = None,
        plan: SitePlan = SitePlan.BASIC,
    ) -> SiteRecord:
        """
        Create a site from a successful upload + analysis (status ``analyzed``).

        The analysed title becomes the display name when ``name`` is empty.
        """
        meta = SiteMeta(
            pages=analysis.page_count,
            scripts=analysis.script_count,
            seo_score=analysis.seo_score,
            title=analysis.title,
            description=analysis.description,
            favicon_path=analysis.favicon_path,
            favicon_data_url=analysis.favicon_data_url,
        )
        site = Site(
            id=uuid4(),
            tenant_id=tenant_id,
            name=name or analysis.title or "Untitled Site",
            contact_email=contact_email,
            status=SiteStatus.ANALYZED.value,
            deploy_url=None,
            plan=plan.value,
            billing_status=BillingStatus.INACTIVE.value,
            meta=meta.model_dump(),
        )
        async with self.db.get_session() as session:
            session.add(site)
            await session.flush()
            record = self._to_site_record(site)
        logger.info(f"Created site {record.id} ({record.name}) for tenant {tenant_id}")
        return record

    async def record_deployment(self, site_id: str, deploy_url: str) -> SiteRecord:
        """Mark a site deployed at ``deploy_url`` (must be non-empty)."""
        if not deploy_url or not deploy_url.strip():
            raise ValueError("A deployed site requires a non-empty deployment URL")
        async with self.db.get_session() as session:
            site = await session.get(Site, UUID(str(site_id)))
            if site is None:
                raise LookupError(f"Site {site_id} not found")
            site.status = SiteStatus.DEPLOYED.value
            site.deploy_url = deploy_url.strip()
            site.updated_at = utcnow()
            await session.flush()
            record = self._to_site_record(site)
        logger.info(f"Site {site_id} deployed at {record.deploy_url}")
        return record

    async def mark_failed(self, site_id: str) -> SiteRecord:
        """Mark a site failed; a failed site has no deployment URL."""
        async with self.db.get_session() as session:
            site = await session.get(Site, UUID(str(site_id)))
            if site is None:
                raise LookupError(f"Site {site_id} not found")
            site.status = SiteStatus.FAILED.value
            site.deploy_url = None
            site.updated_at = utcnow()
            await session.flush()
            record = self._to_site_record(site)
        logger.warning(f"Site {site_id} marked failed")
        return record

    async def update_billing(
        self,
        site_id: str,
        plan: Optional[SitePlan] = None,
        billing_status: Optional[BillingStatus] = None,
    ) -> SiteRecord:
        """Apply a plan and/or billing status transition."""
        async with self.db.get_session() as session:
            site = await session.get(Site, UUID(str(site_id)))
            if site is None:
                raise LookupError(f"Site {site_id} not found")
            if plan is not None:
                site.plan = SitePlan(plan).value
            if billing_status is not None:
                site.billing_status = BillingStatus(billing_status).value
            site.updated_at = utcnow()
            await session.flush()
            record = self._to_site_record(site)
        logger.info(
            f"Billing updated for site {site_id}: plan={record.plan.value}, "
            f"billing_status={record.billing_status.value}"
        )
        return record
