"""
Tests for the cron scheduler that drives maintenance passes.
"""

import asyncio
from datetime import datetime

import pytest

from sitewarden.config import Settings
from sitewarden.exceptions import MaintenancePassError
from sitewarden.models import ALL_TASK_KINDS, PassTrigger, TaskKind
from sitewarden.services.maintenance_service import PassSummary
from sitewarden.services.scheduler_service import (
    CronJob,
    MaintenanceScheduler,
    build_jobs,
    next_run,
    validate_cron,
)


class SequenceClock:
    """Returns the given times in order, then repeats the last one."""

    def __init__(self, *times):
        self.times = list(times)

    def __call__(self):
        if len(self.times) > 1:
            return self.times.pop(0)
        return self.times[0]


class FakeService:

    def __init__(self, stop_event=None, error=None):
        self.stop_event = stop_event
        self.error = error
        self.calls = []

    async def run_pass(self, trigger, tasks=None, include_reports=False):
        self.calls.append((PassTrigger(trigger), frozenset(tasks), include_reports))
        if self.stop_event is not None:
            self.stop_event.set()
        if self.error is not None:
            raise self.error
        return PassSummary(trigger=PassTrigger(trigger).value, started_at=datetime(2026, 10, 19))


class TestCronHelpers:

    @pytest.mark.parametrize("expression", ["0 0 * * *", "0 2 * * 0", "*/15 * * * 1-5"])
    def test_valid(self, expression):
        assert validate_cron(expression) is True

    @pytest.mark.parametrize("expression", ["", "* * * *", "0 0 * * * *", "61 * * * *", "not a cron"])
    def test_invalid(self, expression):
        assert validate_cron(expression) is False

    def test_next_run_is_strictly_after_base(self):
        midnight = datetime(2026, 10, 19, 0, 0)
        assert next_run("0 0 * * *", midnight) == datetime(2026, 10, 20, 0, 0)
        assert next_run("0 2 * * 0", datetime(2026, 10, 19, 2, 0)) == datetime(2026, 10, 25, 2, 0)


class TestBuildJobs:

    def test_default_cadences(self):
        jobs = {job.name: job for job in build_jobs(Settings())}

        assert jobs["uptime"].expression == "0 0 * * *"
        assert jobs["uptime"].tasks == frozenset({TaskKind.UPTIME})
        assert jobs["backup"].tasks == frozenset({TaskKind.BACKUP})
        assert jobs["seo"].tasks == frozenset({TaskKind.SEO})
        assert jobs["report"].tasks == frozenset()
        assert jobs["report"].include_reports is True

    def test_invalid_expression_rejected(self):
        with pytest.raises(ValueError, match="backup"):
            build_jobs(Settings(backup_cron="every sunday"))


class TestMaintenanceScheduler:

    @pytest.mark.asyncio
    async def test_startup_pass_runs_all_kinds(self):
        service = FakeService()
        scheduler = MaintenanceScheduler(service, jobs=[])

        await scheduler.run_startup_pass()

        assert service.calls == [(PassTrigger.STARTUP, ALL_TASK_KINDS, False)]

    @pytest.mark.asyncio
    async def test_fires_due_job(self):
        stop_event = asyncio.Event()
        service = FakeService(stop_event=stop_event)
        clock = SequenceClock(datetime(2026, 10, 18, 23, 59, 59), datetime(2026, 10, 19, 0, 0))
        jobs = [CronJob("uptime", "0 0 * * *", frozenset({TaskKind.UPTIME}))]

        await MaintenanceScheduler(service, jobs=jobs, clock=clock).run_forever(stop_event)

        assert service.calls == [(PassTrigger.CRON, frozenset({TaskKind.UPTIME}), False)]

    @pytest.mark.asyncio
    async def test_same_tick_jobs_merged(self):
        stop_event = asyncio.Event()
        service = FakeService(stop_event=stop_event)
        clock = SequenceClock(datetime(2026, 10, 18, 1, 59), datetime(2026, 10, 18, 2, 0))
        jobs = [
            CronJob("backup", "0 2 * * 0", frozenset({TaskKind.BACKUP})),
            CronJob("seo", "0 2 * * 0", frozenset({TaskKind.SEO})),
            CronJob("report", "0 2 * * 0", frozenset(), include_reports=True),
            CronJob("uptime", "0 0 * * *", frozenset({TaskKind.UPTIME})),
        ]

        await MaintenanceScheduler(service, jobs=jobs, clock=clock).run_forever(stop_event)

        assert service.calls == [(PassTrigger.CRON, frozenset({TaskKind.BACKUP, TaskKind.SEO}), True)]

    @pytest.mark.asyncio
    async def test_failed_pass_does_not_stop_loop(self):
        stop_event = asyncio.Event()
        service = FakeService(stop_event=stop_event, error=MaintenancePassError("database down"))
        clock = SequenceClock(datetime(2026, 10, 18, 23, 59), datetime(2026, 10, 19, 0, 0))
        jobs = [CronJob("uptime", "0 0 * * *", frozenset({TaskKind.UPTIME}))]

        await MaintenanceScheduler(service, jobs=jobs, clock=clock).run_forever(stop_event)

        assert len(service.calls) == 1

    @pytest.mark.asyncio
    async def test_stop_event_interrupts_wait(self):
        stop_event = asyncio.Event()
        service = FakeService()
        clock = SequenceClock(datetime(2026, 10, 19, 0, 1))
        jobs = [CronJob("uptime", "0 0 * * *", frozenset({TaskKind.UPTIME}))]
        scheduler = MaintenanceScheduler(service, jobs=jobs, clock=clock)

        runner = asyncio.create_task(scheduler.run_forever(stop_event))
        await asyncio.sleep(0.01)
        stop_event.set()
        await asyncio.wait_for(runner, timeout=1)

        assert service.calls == []
