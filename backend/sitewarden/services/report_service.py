"""
Report Composer for Pro-tier sites.

Aggregates a trailing window of maintenance log entries into a weekly summary
and delivers it by email.

Summary fields:
- Uptime success percentage (100% when there were no probes)
- Most recent successful SEO score and its top suggestion
- Most recent backup outcome and locator
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from ..models import (
    BackupResult,
    MaintenanceLogEntry,
    SeoResult,
    SiteRecord,
    TaskKind,
)
from .email_service import EmailService

logger = logging.getLogger("sitewarden.reports")

DEFAULT_REPORT_WINDOW = timedelta(days=7)
REPORT_TEMPLATE = "weekly_report"


@dataclass(frozen=True)
class WeeklyReport:
    site_id: str
    site_name: str
    deploy_url: Optional[str]
    window_start: datetime
    window_end: datetime
    uptime_checks: int
    uptime_successes: int
    uptime_percentage: float
    seo_score: Optional[int] = None
    top_suggestion: Optional[str] = None
    backup_outcome: Optional[str] = None
    backup_locator: Optional[str] = None
    backup_message: Optional[str] = None

    @property
    def subject(self) -> str:
        return report_subject(self.site_name)


def report_subject(site_name: str) -> str:
    return f"Weekly maintenance report for {site_name}"


def uptime_percentage(successes: int, total: int) -> float:
    """Success ratio as a percentage; 100.0 when nothing was probed."""
    if total <= 0:
        return 100.0
    return round(successes * 100.0 / total, 1)


def compose_weekly_report(
    site: SiteRecord,
    entries: Iterable[MaintenanceLogEntry],
    now: datetime,
    window: timedelta = DEFAULT_REPORT_WINDOW,
) -> WeeklyReport:
    """
    Summarise the entries of a site that fall inside ``[now - window, now]``.

    Entries may be given in any order.
    """
    window_start = now - window
    in_window = sorted(
        (e for e in entries if e.site_id == site.id and window_start <= e.created_at <= now),
        key=lambda e: e.created_at,
    )

    probes = [e for e in in_window if e.kind == TaskKind.UPTIME]
    successes = sum(1 for e in probes if e.succeeded)

    seo_score = None
    top_suggestion = None
    seo_entries = [e for e in in_window if e.kind == TaskKind.SEO and e.succeeded]
    if seo_entries:
        latest_seo = seo_entries[-1].result
        if isinstance(latest_seo, SeoResult):
            seo_score = latest_seo.score
            top_suggestion = latest_seo.suggestions[0] if latest_seo.suggestions else None

    backup_outcome = None
    backup_locator = None
    backup_message = None
    backup_entries = [e for e in in_window if e.kind == TaskKind.BACKUP]
    if backup_entries:
        latest_backup = backup_entries[-1]
        backup_outcome = latest_backup.outcome.value
        if isinstance(latest_backup.result, BackupResult):
            backup_locator = latest_backup.result.locator
            backup_message = latest_backup.result.message

    return WeeklyReport(
        site_id=site.id,
        site_name=site.name,
        deploy_url=site.deploy_url,
        window_start=window_start,
        window_end=now,
        uptime_checks=len(probes),
        uptime_successes=successes,
        uptime_percentage=uptime_percentage(successes, len(probes)),
        seo_score=seo_score,
        top_suggestion=top_suggestion,
        backup_outcome=backup_outcome,
        backup_locator=backup_locator,
        backup_message=backup_message,
    )


class ReportService:
    """Compose and deliver weekly reports."""

    def __init__(self, email_service: EmailService, window: timedelta = DEFAULT_REPORT_WINDOW):
        self.email_service = email_service
        self.window = window

    async def send_weekly_report(
        self,
        site: SiteRecord,
        entries: Iterable[MaintenanceLogEntry],
        now: datetime,
    ) -> bool:
        """
        Render and send the weekly report for a site.

        Returns False when the site has no contact address or delivery failed.
        """
        if not site.contact_email:
            logger.debug(f"Site {site.id} has no contact address, skipping report")
            return False

        report = compose_weekly_report(site, entries, now, self.window)
        context = {"report": report, "subject": report.subject}
        bodies = self.email_service.render(REPORT_TEMPLATE, context)
        sent = await self.email_service.send(
            site.contact_email, report.subject, bodies["html"], bodies["text"]
        )
        if sent:
            logger.info(f"Weekly report sent for site {site.id} to {site.contact_email}")
        else:
            logger.warning(f"Weekly report delivery failed for site {site.id}")
        return sent
