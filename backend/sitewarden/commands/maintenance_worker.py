#!/usr/bin/env python3
"""
SiteWarden Maintenance Worker.

Runs a startup maintenance pass (uptime, backups, SEO re-audits) for every
deployed site, then stays resident and runs passes on the configured cron
cadences until SIGINT / SIGTERM. A pass in progress always finishes before
the worker exits.

Usage:
    # Startup pass, then cron cadences
    python -m sitewarden.commands.maintenance_worker

    # Startup pass only
    python -m sitewarden.commands.maintenance_worker --once

    # One task for one site, now (interval ignored, plan enforced)
    python -m sitewarden.commands.maintenance_worker --site <id> --task backup

    # Recent maintenance history of a site
    python -m sitewarden.commands.maintenance_worker --history <id> --limit 50

Exit codes:
    0  Success
    1  Invalid configuration, unreachable database, or failed manual task
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from ..config import settings
from ..exceptions import MaintenancePassError, SiteWardenError
from ..models import MaintenanceLogEntry, TaskKind
from ..services.database_service import database_service
from ..services.maintenance_service import create_http_client, create_maintenance_service
from ..services.scheduler_service import MaintenanceScheduler, build_jobs
from ..services.site_store import DEFAULT_HISTORY_LIMIT, SqlSiteRepository

logger = logging.getLogger("sitewarden.worker")


def configure_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose or settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitewarden-worker",
        description="Run SiteWarden maintenance passes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  UPTIME_CRON        Uptime cadence (default: 0 0 * * *)
  BACKUP_CRON        Backup cadence (default: 0 2 * * 0)
  SEO_CRON           SEO cadence (default: 0 3 * * 0)
  REPORT_CRON        Weekly report cadence (default: 0 8 * * 1)
  DATABASE_URL       SQLAlchemy async URL
  MINIO_ENDPOINT     Object store for backups (required)
        """,
    )
    parser.add_argument("--once", action="store_true", help="Run the startup pass and exit")
    parser.add_argument("--site", metavar="ID", help="Run one task for this site now")
    parser.add_argument(
        "--task",
        choices=[kind.value for kind in TaskKind],
        help="Task kind for --site",
    )
    parser.add_argument("--history", metavar="ID", help="Print recent maintenance log entries for a site")
    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_HISTORY_LIMIT,
        help=f"Entries for --history (1-100, default {DEFAULT_HISTORY_LIMIT})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    return parser


def format_entry(entry: MaintenanceLogEntry) -> str:
    result = entry.result
    if entry.kind == TaskKind.UPTIME:
        detail = f"status={result.status_code} duration_ms={result.duration_ms}"
    elif entry.kind == TaskKind.BACKUP:
        detail = f"locator={result.locator}"
    else:
        detail = f"score={result.score}"
    if result.message:
        detail += f" message={result.message!r}"
    return (
        f"{entry.created_at:%Y-%m-%d %H:%M:%S}  {entry.kind.value:<6}  "
        f"{entry.outcome.value:<7}  trigger={result.trigger}  {detail}"
    )


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops do not support signal handlers
            logger.debug(f"Signal handler for {sig.name} not installed")


async def run_worker(args: argparse.Namespace) -> int:
    pass_mode = not args.history
    if pass_mode:
        missing = settings.missing_required()
        if missing:
            logger.error(f"Missing required configuration: {', '.join(missing)}")
            return 1

    jobs = None
    if pass_mode and not args.once and not args.site:
        try:
            jobs = build_jobs()
        except ValueError as e:
            logger.error(str(e))
            return 1

    repository = SqlSiteRepository()
    try:
        await database_service.init_db()
        await repository.ping()
    except Exception as e:
        logger.error(f"Database unreachable: {e}")
        await database_service.close()
        return 1

    try:
        async with create_http_client() as client:
            service = create_maintenance_service(client, repository)

            if args.history:
                entries = await repository.list_log_entries(args.history, args.limit)
                for entry in entries:
                    print(format_entry(entry))
                if not entries:
                    print(f"No maintenance history for site {args.history}")
                return 0

            try:
                await asyncio.to_thread(service.backups.storage.ensure_bucket)
            except Exception as e:
                logger.warning(f"Could not verify backup bucket: {e}")

            if args.site:
                try:
                    entry = await service.run_site_task(args.site, args.task)
                except SiteWardenError as e:
                    logger.error(str(e))
                    return 1
                print(format_entry(entry))
                return 0 if entry.succeeded else 1

            scheduler = MaintenanceScheduler(service, jobs=jobs or [])
            try:
                await scheduler.run_startup_pass()
            except MaintenancePassError as e:
                logger.error(f"Startup pass failed: {e}")
                return 1

            if args.once:
                return 0

            stop_event = asyncio.Event()
            _install_signal_handlers(stop_event)
            logger.info(
                f"Maintenance worker started. Uptime cron: {settings.uptime_cron}, "
                f"backup cron: {settings.backup_cron}, SEO cron: {settings.seo_cron}, "
                f"report cron: {settings.report_cron}."
            )
            await scheduler.run_forever(stop_event)
            return 0
    finally:
        await database_service.close()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the maintenance worker."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.site and not args.task:
        parser.error("--site requires --task")
    if args.task and not args.site:
        parser.error("--task requires --site")

    configure_logging(args.verbose)
    return asyncio.run(run_worker(args))


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
