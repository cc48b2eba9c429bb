# backend/sitewarden/database/models.py
"""
SQLAlchemy ORM models for SiteWarden persistence.

Models:
    - Site: Tenant-owned static site with plan, billing status and analysis meta
    - MaintenanceLog: Append-only journal of maintenance task executions

All models use UUID primary keys and include timestamps for auditing.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    JSON,
    String,
    TypeDecorator,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import relationship

from ..models import utcnow
from .base import Base


# UUID type that works with both SQLite and PostgreSQL
class UUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise uses String(36).
    """
    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Site(Base):
    """
    Site model: a tenant-owned deployable unit.

    Created on first successful upload + analysis, mutated by deployment,
    re-analysis and billing transitions, never hard-deleted.

    Attributes:
        id: Unique site identifier
        tenant_id: Owning tenant (opaque, managed by the identity layer)
        name: Display name
        contact_email: Recipient for weekly reports (optional)
        status: uploaded, analyzed, deployed, failed
        deploy_url: Live URL; non-empty only while status is deployed
        plan: basic, standard, pro
        billing_status: inactive, active, past_due, canceled
        meta: Analysis metadata (pages, scripts, seo_score, title,
              description, favicon_path, favicon_data_url)
    """

    __tablename__ = "sites"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    tenant_id = Column(String(255), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=True)

    status = Column(String(20), nullable=False, default="uploaded", index=True)
    deploy_url = Column(String(2048), nullable=True)

    plan = Column(String(20), nullable=False, default="basic")
    billing_status = Column(String(20), nullable=False, default="inactive")

    meta = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    maintenance_logs = relationship(
        "MaintenanceLog", back_populates="site", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Site(id={self.id}, name={self.name}, status={self.status})>"


class MaintenanceLog(Base):
    """
    MaintenanceLog model: one immutable record per task attempt.

    Insert-only. The latest row per (site_id, task_kind) decides whether a
    recurring task is due.

    Attributes:
        id: Unique entry identifier
        site_id: Owning site
        task_kind: uptime, backup, seo
        outcome: success, fail
        result: Kind-specific payload (see sitewarden.models.TaskResult)
        created_at: When the attempt finished
    """

    __tablename__ = "maintenance_logs"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    site_id = Column(
        UUID(), ForeignKey("sites.id", ondelete="CASCADE"), nullable=False, index=True
    )
    task_kind = Column(String(20), nullable=False, index=True)
    outcome = Column(String(20), nullable=False)
    result = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    site = relationship("Site", back_populates="maintenance_logs")

    __table_args__ = (
        Index("ix_maintenance_logs_site_kind_created", "site_id", "task_kind", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<MaintenanceLog(id={self.id}, site_id={self.site_id}, "
            f"task_kind={self.task_kind}, outcome={self.outcome})>"
        )
