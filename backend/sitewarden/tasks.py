"""
Celery tasks wrapping the maintenance orchestrator.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional

from celery import shared_task

from .services.database_service import DatabaseService
from .services.maintenance_service import create_http_client, create_maintenance_service
from .services.site_store import SqlSiteRepository

logger = logging.getLogger("sitewarden.tasks")


async def _run_pass(trigger: str, tasks: Optional[List[str]], include_reports: bool) -> Dict[str, Any]:
    # Each task runs in a fresh event loop, so it gets its own engine
    db = DatabaseService()
    try:
        async with create_http_client() as client:
            service = create_maintenance_service(client, SqlSiteRepository(db))
            summary = await service.run_pass(trigger, tasks=tasks, include_reports=include_reports)
    finally:
        await db.close()
    return {
        "trigger": summary.trigger,
        "sites": summary.sites_total,
        "sites_skipped": summary.sites_skipped,
        "succeeded": summary.succeeded,
        "failed": summary.failed,
        "attempts": {kind.value: count for kind, count in summary.attempts.items()},
        "reports_sent": summary.reports_sent,
        "started_at": summary.started_at.isoformat(),
        "finished_at": summary.finished_at.isoformat() if summary.finished_at else None,
    }


async def _run_site_task(site_id: str, kind: str) -> Dict[str, Any]:
    db = DatabaseService()
    try:
        async with create_http_client() as client:
            service = create_maintenance_service(client, SqlSiteRepository(db))
            entry = await service.run_site_task(site_id, kind)
    finally:
        await db.close()
    return {
        "id": entry.id,
        "site_id": entry.site_id,
        "kind": entry.kind.value,
        "outcome": entry.outcome.value,
        "result": entry.result.model_dump(mode="json"),
        "created_at": entry.created_at.isoformat(),
    }


@shared_task(bind=True, autoretry_for=(ConnectionError,), retry_backoff=True, retry_kwargs={"max_retries": 3})
def run_maintenance_pass_task(
    self,
    trigger: str = "cron",
    tasks: Optional[List[str]] = None,
    include_reports: bool = False,
) -> Dict[str, Any]:
    logger.info(f"Maintenance pass task {self.request.id} started (trigger={trigger}, tasks={tasks})")
    return asyncio.run(_run_pass(trigger, tasks, include_reports))


@shared_task(bind=True)
def run_site_task_task(self, site_id: str, kind: str) -> Dict[str, Any]:
    logger.info(f"Manual {kind} task {self.request.id} for site {site_id}")
    return asyncio.run(_run_site_task(site_id, kind))
