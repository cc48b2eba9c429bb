# backend/sitewarden/api/routers/maintenance.py
import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...config import settings
from ...exceptions import SiteNotDeployedError, SiteNotFoundError, TaskNotEnabledError
from ...models import TaskKind
from ...services.database_service import database_service
from ...services.maintenance_service import MaintenanceService
from ...services.site_store import DEFAULT_HISTORY_LIMIT
from ..models import HealthStatus, LogEntryResponse, LogHistoryResponse

logger = logging.getLogger("sitewarden.api.maintenance")

router = APIRouter()


def get_maintenance_service(request: Request) -> MaintenanceService:
    """Orchestrator created at application startup."""
    service = getattr(request.app.state, "maintenance_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Maintenance service not initialized")
    return service


@router.get("/health", response_model=HealthStatus, tags=["System"])
async def health_check(request: Request):
    """Database and object storage connectivity."""
    database = await database_service.health_check()

    components = {"database": database}
    service = getattr(request.app.state, "maintenance_service", None)
    if service is not None:
        connected, buckets, error = await asyncio.to_thread(service.backups.storage.check_health)
        components["storage"] = {
            "status": "healthy" if connected else "unhealthy",
            "connected": connected,
            "bucket": service.backups.storage.bucket,
            "error": error,
        }

    healthy = all(component.get("connected") for component in components.values())
    return HealthStatus(
        status="healthy" if healthy else "degraded",
        version=settings.api_version,
        components=components,
    )


@router.get("/sites/{site_id}/logs", response_model=LogHistoryResponse, tags=["Maintenance"])
async def list_site_logs(
    site_id: str,
    limit: int = Query(DEFAULT_HISTORY_LIMIT, description="Entries to return (clamped to 1-100)"),
    service: MaintenanceService = Depends(get_maintenance_service),
):
    """Most recent maintenance log entries of a site, newest first."""
    site = await service.repository.get_site(site_id)
    if site is None:
        raise HTTPException(status_code=404, detail=f"Site {site_id} not found")

    entries = await service.repository.list_log_entries(site_id, limit)
    return LogHistoryResponse(
        site_id=site_id,
        count=len(entries),
        entries=[LogEntryResponse.from_entry(entry) for entry in entries],
    )


@router.post("/sites/{site_id}/tasks/{kind}", response_model=LogEntryResponse, tags=["Maintenance"])
async def run_site_task(
    site_id: str,
    kind: TaskKind,
    service: MaintenanceService = Depends(get_maintenance_service),
):
    """Run one task for a site now. The task interval is ignored; the plan is not."""
    try:
        entry = await service.run_site_task(site_id, kind)
    except SiteNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SiteNotDeployedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TaskNotEnabledError as e:
        raise HTTPException(status_code=403, detail=str(e))

    logger.info(f"Manual {kind.value} for site {site_id}: {entry.outcome.value}")
    return LogEntryResponse.from_entry(entry)
