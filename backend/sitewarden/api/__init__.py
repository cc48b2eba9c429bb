# backend/sitewarden/api/__init__.py
from fastapi import APIRouter

from .routers import maintenance

api_router = APIRouter()
api_router.include_router(maintenance.router)

__all__ = ["api_router"]
