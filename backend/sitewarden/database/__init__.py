"""Database layer: declarative base and ORM models."""

from .base import Base
from .models import MaintenanceLog, Site

__all__ = ["Base", "MaintenanceLog", "Site"]
