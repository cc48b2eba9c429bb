"""
Cron scheduler for the single-process maintenance worker.

Turns the configured cron expressions into maintenance passes:

    job       cadence (default)   pass
    -------   -----------------   ---------------------------
    uptime    0 0 * * *           uptime probes
    backup    0 2 * * 0           backup checks
    seo       0 3 * * 0           SEO re-audits
    report    0 8 * * 1           weekly reports only

Jobs firing on the same tick are merged into one pass. The loop is
cooperative: it sleeps until the next boundary or until ``stop_event`` is
set, and a pass that is already running always finishes.

Usage:
    scheduler = MaintenanceScheduler(service)
    await scheduler.run_startup_pass()
    await scheduler.run_forever(stop_event)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, FrozenSet, List, Optional

from croniter import croniter

from ..config import Settings, settings
from ..exceptions import MaintenancePassError
from ..models import ALL_TASK_KINDS, PassTrigger, TaskKind, utcnow
from .maintenance_service import MaintenanceService, PassSummary

logger = logging.getLogger("sitewarden.scheduler")


@dataclass(frozen=True)
class CronJob:
    name: str
    expression: str
    tasks: FrozenSet[TaskKind]
    include_reports: bool = False


def validate_cron(expression: str) -> bool:
    """
    Validate a cron expression.

    Args:
        expression: Cron expression (5 fields: minute hour day month weekday)

    Returns:
        True if valid, False otherwise
    """
    if not expression or len(expression.split()) != 5:
        return False
    try:
        croniter(expression)
        return True
    except (ValueError, KeyError):
        return False


def next_run(expression: str, base_time: datetime) -> datetime:
    """First boundary of ``expression`` strictly after ``base_time``."""
    return croniter(expression, base_time).get_next(datetime)


def build_jobs(config: Optional[Settings] = None) -> List[CronJob]:
    """
    Cron jobs from configuration.

    Raises:
        ValueError: If any expression is invalid
    """
    config = config or settings
    jobs = [
        CronJob("uptime", config.uptime_cron, frozenset({TaskKind.UPTIME})),
        CronJob("backup", config.backup_cron, frozenset({TaskKind.BACKUP})),
        CronJob("seo", config.seo_cron, frozenset({TaskKind.SEO})),
        CronJob("report", config.report_cron, frozenset(), include_reports=True),
    ]
    invalid = [f"{job.name}={job.expression!r}" for job in jobs if not validate_cron(job.expression)]
    if invalid:
        raise ValueError(f"Invalid cron expression(s): {', '.join(invalid)}")
    return jobs


class MaintenanceScheduler:
    """Drive a MaintenanceService from cron cadences."""

    def __init__(
        self,
        service: MaintenanceService,
        jobs: Optional[List[CronJob]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.service = service
        self.jobs = jobs if jobs is not None else build_jobs()
        self.clock = clock

    async def run_startup_pass(self) -> PassSummary:
        """Uptime, backup and SEO for every eligible site. Reports keep their own cadence."""
        return await self.service.run_pass(PassTrigger.STARTUP, tasks=ALL_TASK_KINDS)

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        now = self.clock()
        next_runs: Dict[str, datetime] = {job.name: next_run(job.expression, now) for job in self.jobs}
        for job in self.jobs:
            logger.info(f"Scheduled {job.name} ({job.expression}), next run {next_runs[job.name]:%Y-%m-%d %H:%M} UTC")

        while not stop_event.is_set():
            now = self.clock()
            due = [job for job in self.jobs if next_runs[job.name] <= now]

            if not due:
                wait_seconds = max(0.0, (min(next_runs.values()) - now).total_seconds())
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=wait_seconds)
                except asyncio.TimeoutError:
                    pass
                continue

            await self._run_jobs(due)
            now = self.clock()
            for job in due:
                next_runs[job.name] = next_run(job.expression, now)

        logger.info("Scheduler stopped")

    async def _run_jobs(self, jobs: List[CronJob]) -> Optional[PassSummary]:
        tasks = frozenset().union(*(job.tasks for job in jobs))
        include_reports = any(job.include_reports for job in jobs)
        names = ", ".join(job.name for job in jobs)
        logger.info(f"Cron tick: {names}")
        try:
            return await self.service.run_pass(PassTrigger.CRON, tasks=tasks, include_reports=include_reports)
        except MaintenancePassError as e:
            logger.error(f"Cron pass ({names}) failed: {e}")
            return None
