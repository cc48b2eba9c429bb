# backend/sitewarden/api/models.py
"""Response models for the ops API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..models import LogOutcome, MaintenanceLogEntry, TaskKind, TaskResult, utcnow


class ErrorResponse(BaseModel):
    """
    Standard error response model for API errors.

    Attributes:
        error: Error category or type
        detail: Detailed error message
        timestamp: When the error occurred
    """
    error: str = Field(description="Error category or type")
    detail: Optional[str] = Field(default=None, description="Detailed error message")
    timestamp: datetime = Field(default_factory=utcnow, description="Timestamp when error occurred")


class HealthStatus(BaseModel):
    """
    Health of the worker's dependencies.

    Attributes:
        status: "healthy" when every component is reachable, else "degraded"
        version: API version
        components: Per-component details (database, storage)
    """
    status: str
    timestamp: datetime = Field(default_factory=utcnow)
    version: str
    components: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class LogEntryResponse(BaseModel):
    id: Optional[str] = None
    site_id: str
    kind: TaskKind
    outcome: LogOutcome
    result: TaskResult
    created_at: datetime

    @classmethod
    def from_entry(cls, entry: MaintenanceLogEntry) -> "LogEntryResponse":
        return cls(
            id=entry.id,
            site_id=entry.site_id,
            kind=entry.kind,
            outcome=entry.outcome,
            result=entry.result,
            created_at=entry.created_at,
        )


class LogHistoryResponse(BaseModel):
    site_id: str
    count: int
    entries: List[LogEntryResponse]
