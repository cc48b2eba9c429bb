# ============================================================================
# backend/sitewarden/services/maintenance_service.py
# ============================================================================
#
# Maintenance Orchestrator for SiteWarden
#
# Runs maintenance passes over every deployed site. For each site the pass:
#   1. asks the policy gate which task kinds the site's plan allows
#   2. probes uptime (every pass, no interval)
#   3. produces a backup when the last one is at least the backup interval old
#   4. re-audits SEO when the last audit is at least the SEO interval old,
#      reusing the uptime probe's body and updating the site's meta
#   5. sends the weekly report (report passes only, Pro tier)
#
# Every task attempt appends exactly one entry to the maintenance log. Due
# checks read the latest entry per (site, kind), so scheduling is optimistic:
# two overlapping passes may both run a task once. Within one pass a
# (site, kind) pair is attempted at most once.
#
# Sites are processed concurrently up to max_concurrent_sites; the steps for
# one site run in order.
#
# ============================================================================

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Set, Tuple, Union

import httpx

from ..config import Settings, settings
from ..exceptions import (
    MaintenancePassError,
    SiteNotDeployedError,
    SiteNotFoundError,
    TaskNotEnabledError,
)
from ..models import (
    ALL_TASK_KINDS,
    BackupResult,
    LogOutcome,
    MaintenanceLogEntry,
    PassTrigger,
    SeoResult,
    SiteRecord,
    SiteStatus,
    TaskKind,
    UptimeResult,
    utcnow,
)
from .backup_service import BackupService
from .email_service import EmailService
from .minio_service import MinIOService
from .policy_gate import enabled_tasks, weekly_report_enabled
from .recommendation_service import RecommendationService
from .report_service import ReportService
from .site_analyzer import SiteAnalyzer, site_analyzer
from .site_store import SiteRepository, SqlSiteRepository
from .uptime_service import UptimeProbe, UptimeService

logger = logging.getLogger("sitewarden.maintenance")

TaskPayload = Union[UptimeResult, BackupResult, SeoResult]


def is_due(latest_at: Optional[datetime], interval: timedelta, now: datetime) -> bool:
    """A task is due when it never ran or its last run is at least ``interval`` old."""
    if latest_at is None:
        return True
    return now - latest_at >= interval


@dataclass(frozen=True)
class MaintenanceIntervals:
    """Minimum spacing between runs of each gated task kind."""

    backup: timedelta = timedelta(days=7)
    seo: timedelta = timedelta(days=7)
    report_window: timedelta = timedelta(days=7)

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "MaintenanceIntervals":
        config = config or settings
        return cls(
            backup=timedelta(days=config.backup_interval_days),
            seo=timedelta(days=config.seo_interval_days),
            report_window=timedelta(days=config.report_window_days),
        )

    def for_kind(self, kind: TaskKind) -> Optional[timedelta]:
        """Interval for ``kind``; None means the task runs on every pass."""
        if kind == TaskKind.BACKUP:
            return self.backup
        if kind == TaskKind.SEO:
            return self.seo
        return None


@dataclass
class PassSummary:
    """Counters for one maintenance pass."""

    trigger: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    sites_total: int = 0
    sites_skipped: int = 0
    succeeded: int = 0
    failed: int = 0
    attempts: Dict[TaskKind, int] = field(default_factory=dict)
    reports_sent: int = 0

    def record(self, entry: MaintenanceLogEntry) -> None:
        self.attempts[entry.kind] = self.attempts.get(entry.kind, 0) + 1
        if entry.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1

    @property
    def total_attempts(self) -> int:
        return sum(self.attempts.values())


class MaintenanceService:
    """
    Maintenance Orchestrator.

    Collaborators are injected so that passes can run against fakes in
    tests and against real storage / HTTP in the worker.

    Attributes:
        repository: Site and log persistence
        uptime: Uptime prober
        backups: Backup producer
        analyzer: Archive analyzer used for SEO re-audits
        recommendations: Optional LLM recommendation generator
        reports: Optional weekly report composer / sender
        intervals: Task spacing
        clock: Returns the current UTC time (naive)
    """

    def __init__(
        self,
        repository: SiteRepository,
        uptime: UptimeService,
        backups: BackupService,
        analyzer: SiteAnalyzer = site_analyzer,
        recommendations: Optional[RecommendationService] = None,
        reports: Optional[ReportService] = None,
        intervals: Optional[MaintenanceIntervals] = None,
        clock: Callable[[], datetime] = utcnow,
        max_concurrent_sites: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.repository = repository
        self.uptime = uptime
        self.backups = backups
        self.analyzer = analyzer
        self.recommendations = recommendations
        self.reports = reports
        self.intervals = intervals or MaintenanceIntervals.from_settings()
        self.clock = clock
        self.max_concurrent_sites = max(1, max_concurrent_sites or settings.max_concurrent_sites)
        self.client = client

    # =========================================================================
    # Passes
    # =========================================================================

    async def run_pass(
        self,
        trigger: Union[PassTrigger, str],
        tasks: Optional[Iterable[Union[TaskKind, str]]] = None,
        include_reports: bool = False,
    ) -> PassSummary:
        """
        Run one maintenance pass over every deployed site.

        Args:
            trigger: What started the pass (startup, cron, manual)
            tasks: Task kinds to consider (default: all)
            include_reports: Also send weekly reports to eligible sites

        Returns:
            PassSummary with per-kind attempt counts

        Raises:
            MaintenancePassError: The site list could not be loaded
        """
        trigger_value = PassTrigger(trigger).value
        requested = ALL_TASK_KINDS if tasks is None else frozenset(TaskKind(t) for t in tasks)
        summary = PassSummary(trigger=trigger_value, started_at=self.clock())

        try:
            sites = await self.repository.find_sites_by_status(SiteStatus.DEPLOYED)
        except Exception as e:
            logger.error(f"Could not load deployed sites for {trigger_value} pass: {e}")
            raise MaintenancePassError(f"Could not load deployed sites: {e}") from e

        sites = [site for site in sites if site.is_reachable]
        summary.sites_total = len(sites)
        kinds = ", ".join(sorted(kind.value for kind in requested))
        logger.info(
            f"Starting {trigger_value} pass for {len(sites)} sites "
            f"(tasks: {kinds or 'none'}, reports: {include_reports})"
        )

        attempted: Set[Tuple[str, TaskKind]] = set()
        semaphore = asyncio.Semaphore(self.max_concurrent_sites)

        async def maintain(site: SiteRecord) -> None:
            async with semaphore:
                await self._maintain_site(
                    site, trigger_value, requested, include_reports, attempted, summary
                )

        await asyncio.gather(*(maintain(site) for site in sites))

        summary.finished_at = self.clock()
        logger.info(
            f"Finished {trigger_value} pass: {summary.total_attempts} tasks "
            f"({summary.succeeded} succeeded, {summary.failed} failed), "
            f"{summary.sites_skipped} sites skipped, {summary.reports_sent} reports sent"
        )
        return summary

    async def run_site_task(
        self,
        site_id: str,
        kind: Union[TaskKind, str],
        trigger: Union[PassTrigger, str] = PassTrigger.MANUAL,
    ) -> MaintenanceLogEntry:
        """
        Run one task for one site now, ignoring the task interval.

        The policy gate still applies.

        Raises:
            SiteNotFoundError: Unknown site
            SiteNotDeployedError: Site has no live deployment
            TaskNotEnabledError: Plan or billing status does not allow the task
        """
        kind = TaskKind(kind)
        trigger_value = PassTrigger(trigger).value

        site = await self.repository.get_site(site_id)
        if site is None:
            raise SiteNotFoundError(f"Site {site_id} not found")
        if not site.is_reachable:
            raise SiteNotDeployedError(f"Site {site_id} is not deployed")
        if kind not in enabled_tasks(site.plan, site.billing_status):
            raise TaskNotEnabledError(
                f"{kind.value} is not enabled for site {site_id} "
                f"(plan={site.plan.value}, billing_status={site.billing_status.value})"
            )

        logger.info(f"Running {kind.value} for site {site_id} ({trigger_value})")
        if kind == TaskKind.UPTIME:
            entry, _ = await self._run_uptime(site, trigger_value)
        elif kind == TaskKind.BACKUP:
            entry = await self._run_backup(site, trigger_value)
        else:
            entry = await self._run_seo(site, trigger_value)
        return entry

    # =========================================================================
    # Per-site steps
    # =========================================================================

    async def _maintain_site(
        self,
        site: SiteRecord,
        trigger: str,
        requested: FrozenSet[TaskKind],
        include_reports: bool,
        attempted: Set[Tuple[str, TaskKind]],
        summary: PassSummary,
    ) -> None:
        enabled = enabled_tasks(site.plan, site.billing_status)
        if not enabled:
            logger.debug(f"Skipping site {site.id}: no tasks enabled")
            summary.sites_skipped += 1
            return

        selected = enabled & requested
        probe: Optional[UptimeProbe] = None
        if TaskKind.UPTIME in selected and self._claim(attempted, site.id, TaskKind.UPTIME):
            try:
                entry, probe = await self._run_uptime(site, trigger)
                summary.record(entry)
            except Exception as e:
                logger.error(f"uptime step failed for site {site.id}: {e}")

        if TaskKind.BACKUP in selected and self._claim(attempted, site.id, TaskKind.BACKUP):
            try:
                if await self._is_task_due(site.id, TaskKind.BACKUP):
                    summary.record(await self._run_backup(site, trigger))
            except Exception as e:
                logger.error(f"backup step failed for site {site.id}: {e}")

        if TaskKind.SEO in selected and self._claim(attempted, site.id, TaskKind.SEO):
            try:
                if await self._is_task_due(site.id, TaskKind.SEO):
                    html = probe.body if probe is not None and probe.ok else None
                    summary.record(await self._run_seo(site, trigger, html))
            except Exception as e:
                logger.error(f"seo step failed for site {site.id}: {e}")

        if include_reports:
            await self._send_report(site, summary)

    @staticmethod
    def _claim(attempted: Set[Tuple[str, TaskKind]], site_id: str, kind: TaskKind) -> bool:
        key = (site_id, kind)
        if key in attempted:
            logger.debug(f"Skipping {kind.value} for site {site_id}: already attempted this pass")
            return False
        attempted.add(key)
        return True

    async def _is_task_due(self, site_id: str, kind: TaskKind) -> bool:
        interval = self.intervals.for_kind(kind)
        if interval is None:
            return True
        latest = await self.repository.latest_log_entry(site_id, kind)
        due = is_due(latest.created_at if latest else None, interval, self.clock())
        if not due:
            logger.debug(f"{kind.value} not due for site {site_id} (last run {latest.created_at})")
        return due

    async def _run_uptime(
        self, site: SiteRecord, trigger: str
    ) -> Tuple[MaintenanceLogEntry, Optional[UptimeProbe]]:
        try:
            probe = await self.uptime.probe(site.deploy_url)
        except Exception as e:
            logger.error(f"Uptime probe crashed for site {site.id}: {e}")
            result = UptimeResult(trigger=trigger, ok=False, message=str(e), checked_at=self.clock())
            return await self._record(site.id, TaskKind.UPTIME, LogOutcome.FAIL, result), None

        result = UptimeResult(
            trigger=trigger,
            status_code=probe.status_code,
            ok=probe.ok,
            duration_ms=probe.duration_ms,
            message=probe.message,
            checked_at=self.clock(),
        )
        outcome = LogOutcome.SUCCESS if probe.ok else LogOutcome.FAIL
        return await self._record(site.id, TaskKind.UPTIME, outcome, result), probe

    async def _run_backup(self, site: SiteRecord, trigger: str) -> MaintenanceLogEntry:
        try:
            artifact = await self.backups.backup(site.id, site.deploy_url)
        except Exception as e:
            logger.warning(f"Backup failed for site {site.id}: {e}")
            result = BackupResult(trigger=trigger, message=str(e))
            return await self._record(site.id, TaskKind.BACKUP, LogOutcome.FAIL, result)

        result = BackupResult(
            trigger=trigger,
            locator=artifact.locator,
            key=artifact.key,
            timestamp=artifact.timestamp,
            size_bytes=artifact.size_bytes,
        )
        return await self._record(site.id, TaskKind.BACKUP, LogOutcome.SUCCESS, result)

    async def _run_seo(
        self, site: SiteRecord, trigger: str, html: Optional[str] = None
    ) -> MaintenanceLogEntry:
        try:
            if html is None:
                html = await self.analyzer.fetch_document(site.deploy_url, self.client)
            analysis = self.analyzer.analyze_document(html)
            audit = self.analyzer.audit_document(html)
            recommendations = await self._recommend(site, analysis.as_dict(), audit.suggestions)

            stored = site.meta
            await self.repository.update_site_meta(
                site.id,
                {
                    "seo_score": analysis.seo_score,
                    "title": analysis.title or stored.title or "",
                    "description": analysis.description or stored.description or "",
                    "pages": max(stored.pages or 0, analysis.page_count),
                    "scripts": analysis.script_count,
                },
            )
        except Exception as e:
            logger.warning(f"SEO audit failed for site {site.id}: {e}")
            result = SeoResult(trigger=trigger, message=str(e))
            return await self._record(site.id, TaskKind.SEO, LogOutcome.FAIL, result)

        result = SeoResult(
            trigger=trigger,
            score=analysis.seo_score,
            title=analysis.title,
            description=analysis.description,
            page_count=analysis.page_count,
            script_count=analysis.script_count,
            suggestions=audit.suggestions,
            recommendations=recommendations,
        )
        return await self._record(site.id, TaskKind.SEO, LogOutcome.SUCCESS, result)

    async def _recommend(self, site: SiteRecord, analysis: dict, suggestions: list) -> Optional[str]:
        if self.recommendations is None:
            return None
        try:
            return await self.recommendations.suggest({**analysis, "suggestions": suggestions})
        except Exception as e:
            logger.warning(f"SEO recommendations unavailable for site {site.id}: {e}")
            return None

    async def _send_report(self, site: SiteRecord, summary: PassSummary) -> None:
        if self.reports is None or not site.contact_email:
            return
        if not weekly_report_enabled(site.plan, site.billing_status):
            return
        now = self.clock()
        try:
            entries = await self.repository.log_entries_since(
                site.id, now - self.intervals.report_window
            )
            if await self.reports.send_weekly_report(site, entries, now):
                summary.reports_sent += 1
        except Exception as e:
            logger.warning(f"Weekly report failed for site {site.id}: {e}")

    # =========================================================================
    # Log writes
    # =========================================================================

    async def _record(
        self,
        site_id: str,
        kind: TaskKind,
        outcome: LogOutcome,
        result: TaskPayload,
    ) -> MaintenanceLogEntry:
        entry = MaintenanceLogEntry(
            site_id=site_id,
            kind=kind,
            outcome=outcome,
            result=result,
            created_at=self.clock(),
        )
        try:
            return await self.repository.append_log_entry(entry)
        except Exception as e:
            logger.error(f"Failed to persist {kind.value} log for site {site_id}: {e}")
            return entry


def create_maintenance_service(
    client: httpx.AsyncClient,
    repository: Optional[SiteRepository] = None,
    config: Optional[Settings] = None,
) -> MaintenanceService:
    """Wire the orchestrator with the configured storage, email and LLM backends."""
    config = config or settings
    intervals = MaintenanceIntervals.from_settings(config)
    return MaintenanceService(
        repository=repository or SqlSiteRepository(),
        uptime=UptimeService(client),
        backups=BackupService(MinIOService(config), client),
        analyzer=site_analyzer,
        recommendations=RecommendationService(config=config),
        reports=ReportService(EmailService(config=config), window=intervals.report_window),
        intervals=intervals,
        max_concurrent_sites=config.max_concurrent_sites,
        client=client,
    )


def create_http_client(config: Optional[Settings] = None) -> httpx.AsyncClient:
    """Shared outbound client: redirects followed, every request time-bounded."""
    config = config or settings
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=config.http_timeout_seconds,
        headers={"User-Agent": config.http_user_agent},
    )
