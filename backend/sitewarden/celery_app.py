"""
Celery application setup for SiteWarden.

Distributed alternative to the single-process worker: Celery beat fires the
same cron cadences as ``sitewarden-worker`` and the startup pass runs when a
worker becomes ready. Tasks live in sitewarden.tasks and are routed to the
``maintenance`` queue.

Run:
    celery -A sitewarden.celery_app worker -Q maintenance --loglevel=info
    celery -A sitewarden.celery_app beat --loglevel=info
"""
import logging
from typing import Any, Dict, Optional

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_ready
from kombu import Queue

from .config import Settings, settings
from .services.scheduler_service import validate_cron

_logger = logging.getLogger("sitewarden.celery")

app = Celery(
    "sitewarden",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["sitewarden.tasks"],
)

app.conf.task_queues = (Queue("maintenance", routing_key="maintenance"),)

app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    # A pass over a large fleet can take a while; bound it generously
    task_soft_time_limit=3300,
    task_time_limit=3600,
    result_expires=259200,  # 3 days
    task_default_queue="maintenance",
    task_routes={
        "sitewarden.tasks.run_maintenance_pass_task": {"queue": "maintenance"},
        "sitewarden.tasks.run_site_task_task": {"queue": "maintenance"},
    },
)


# ============================================================================
# Celery Beat Schedule
# ============================================================================

def parse_crontab(expression: str) -> crontab:
    """
    Parse a 5-field cron string (minute hour day month day_of_week).

    Raises:
        ValueError: If the expression is invalid
    """
    if not validate_cron(expression):
        raise ValueError(f"Invalid cron expression: {expression!r}")
    parts = expression.split()
    return crontab(
        minute=parts[0],
        hour=parts[1],
        day_of_month=parts[2],
        month_of_year=parts[3],
        day_of_week=parts[4],
    )


def build_beat_schedule(config: Optional[Settings] = None) -> Dict[str, Dict[str, Any]]:
    config = config or settings
    task = "sitewarden.tasks.run_maintenance_pass_task"
    options = {"queue": "maintenance"}
    return {
        "maintenance-uptime": {
            "task": task,
            "schedule": parse_crontab(config.uptime_cron),
            "kwargs": {"trigger": "cron", "tasks": ["uptime"]},
            "options": options,
        },
        "maintenance-backup": {
            "task": task,
            "schedule": parse_crontab(config.backup_cron),
            "kwargs": {"trigger": "cron", "tasks": ["backup"]},
            "options": options,
        },
        "maintenance-seo": {
            "task": task,
            "schedule": parse_crontab(config.seo_cron),
            "kwargs": {"trigger": "cron", "tasks": ["seo"]},
            "options": options,
        },
        "maintenance-weekly-report": {
            "task": task,
            "schedule": parse_crontab(config.report_cron),
            "kwargs": {"trigger": "cron", "tasks": [], "include_reports": True},
            "options": options,
        },
    }


app.conf.beat_schedule = build_beat_schedule()
app.conf.timezone = "UTC"


# ============================================================================
# WORKER STARTUP PASS
# ============================================================================

@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    """
    Queue the startup pass (uptime, backup, SEO) once a worker is ready.

    Delayed slightly so the broker connection and services are settled.
    """
    if not settings.celery_startup_pass_enabled:
        _logger.info("Startup pass disabled via CELERY_STARTUP_PASS_ENABLED")
        return

    # Import here to avoid circular imports
    from .tasks import run_maintenance_pass_task

    run_maintenance_pass_task.apply_async(
        kwargs={"trigger": "startup", "tasks": ["uptime", "backup", "seo"]},
        countdown=10,
    )
    _logger.info("Startup maintenance pass scheduled")
