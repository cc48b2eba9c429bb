# ============================================================================
# SiteWarden - Ops API Entry Point
# ============================================================================
"""
FastAPI application exposing the maintenance engine to operators.

Endpoints (under /api/v1):
- GET  /health                       database and object storage status
- GET  /sites/{site_id}/logs         maintenance history of a site
- POST /sites/{site_id}/tasks/{kind} run one task for a site now

The scheduled work itself runs in ``sitewarden-worker`` or Celery; this
API only reads the log and triggers manual runs.

Usage:
    Direct: python -m sitewarden.main
    Docker: uvicorn sitewarden.main:app --host 0.0.0.0 --port 8000
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .api import api_router
from .api.models import ErrorResponse
from .config import settings
from .services.database_service import database_service
from .services.maintenance_service import create_http_client, create_maintenance_service

logger = logging.getLogger("sitewarden.api")

app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="SiteWarden ops API: maintenance history and manual task runs",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ============================================================================
# APPLICATION EVENT HANDLERS
# ============================================================================

@app.on_event("startup")
async def startup_event() -> None:
    logger.info(f"Starting {settings.api_title} {settings.api_version} (debug={settings.debug})")
    await database_service.init_db()
    app.state.http_client = create_http_client()
    app.state.maintenance_service = create_maintenance_service(app.state.http_client)
    logger.info("Startup complete")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    client = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()
    await database_service.close()
    logger.info("Shutdown complete")


# ============================================================================
# ERROR HANDLERS
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error_response = ErrorResponse(error=f"HTTP {exc.status_code}", detail=str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump(mode="json"))


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unexpected errors; details only in debug mode."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    error_response = ErrorResponse(
        error="Internal Server Error",
        detail=str(exc) if settings.debug else "An unexpected error occurred",
    )
    return JSONResponse(status_code=500, content=error_response.model_dump(mode="json"))


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================

app.include_router(api_router, prefix="/api/v1")


@app.get("/", tags=["root"])
async def root() -> Dict[str, Any]:
    return {
        "name": settings.api_title,
        "version": settings.api_version,
        "status": "running",
        "docs_url": "/docs",
        "health_check": "/api/v1/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("sitewarden.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
