import os
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

# Configure settings for tests before importing sitewarden modules.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MINIO_ENDPOINT", "storage.test:9000")
os.environ.setdefault("MINIO_ACCESS_KEY", "test-access-key")
os.environ.setdefault("MINIO_SECRET_KEY", "test-secret-key")
os.environ.setdefault("STORAGE_PUBLIC_BASE_URL", "https://backups.example.com")
os.environ.setdefault("EMAIL_BACKEND", "console")
os.environ.setdefault("OPENAI_API_KEY", "")

import pytest

from sitewarden.models import (
    BillingStatus,
    MaintenanceLogEntry,
    SiteMeta,
    SitePlan,
    SiteRecord,
    SiteStatus,
    TaskKind,
)
from sitewarden.services.site_store import SiteRepository, clamp_history_limit


class InMemorySiteRepository(SiteRepository):
    """SiteRepository fake holding sites and log entries in memory."""

    def __init__(self, sites: Optional[List[SiteRecord]] = None):
        self.sites: Dict[str, SiteRecord] = {site.id: site for site in sites or []}
        self.entries: List[MaintenanceLogEntry] = []
        self.meta_updates: List[Dict[str, Any]] = []
        self.find_error: Optional[Exception] = None

    def add(self, site: SiteRecord) -> SiteRecord:
        self.sites[site.id] = site
        return site

    def entries_for(self, site_id: str, kind: Optional[TaskKind] = None) -> List[MaintenanceLogEntry]:
        return [
            e for e in self.entries
            if e.site_id == site_id and (kind is None or e.kind == kind)
        ]

    async def find_sites_by_status(self, status: SiteStatus) -> List[SiteRecord]:
        if self.find_error is not None:
            raise self.find_error
        return [site for site in self.sites.values() if site.status == status]

    async def get_site(self, site_id: str) -> Optional[SiteRecord]:
        return self.sites.get(site_id)

    async def update_site_meta(self, site_id: str, partial_meta: Dict[str, Any]) -> None:
        site = self.sites.get(site_id)
        if site is None:
            raise LookupError(f"Site {site_id} not found")
        self.meta_updates.append(dict(partial_meta))
        site.meta = SiteMeta(**{**site.meta.model_dump(), **partial_meta})

    async def append_log_entry(self, entry: MaintenanceLogEntry) -> MaintenanceLogEntry:
        stored = MaintenanceLogEntry(
            id=str(len(self.entries) + 1),
            site_id=entry.site_id,
            kind=entry.kind,
            outcome=entry.outcome,
            result=entry.result,
            created_at=entry.created_at,
        )
        self.entries.append(stored)
        return stored

    async def latest_log_entry(self, site_id: str, kind: TaskKind) -> Optional[MaintenanceLogEntry]:
        matching = self.entries_for(site_id, kind)
        if not matching:
            return None
        return max(enumerate(matching), key=lambda pair: (pair[1].created_at, pair[0]))[1]

    async def log_entries_since(self, site_id: str, since: datetime) -> List[MaintenanceLogEntry]:
        matching = [e for e in self.entries_for(site_id) if e.created_at >= since]
        return sorted(matching, key=lambda e: e.created_at)

    async def list_log_entries(self, site_id: str, limit: Optional[int] = 20) -> List[MaintenanceLogEntry]:
        matching = sorted(self.entries_for(site_id), key=lambda e: e.created_at, reverse=True)
        return matching[: clamp_history_limit(limit)]


class FakeClock:
    """Settable clock returning naive UTC datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def repository() -> InMemorySiteRepository:
    return InMemorySiteRepository()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 2, 0, 0))


@pytest.fixture
def make_site() -> Callable[..., SiteRecord]:
    """Factory for deployed sites; override any field by keyword."""
    counter = {"n": 0}

    def factory(**overrides) -> SiteRecord:
        counter["n"] += 1
        n = counter["n"]
        values = dict(
            id=f"site-{n}",
            name=f"Site {n}",
            tenant_id="tenant-1",
            status=SiteStatus.DEPLOYED,
            plan=SitePlan.PRO,
            billing_status=BillingStatus.ACTIVE,
            deploy_url=f"https://site-{n}.example.com",
            contact_email=f"owner{n}@example.com",
            meta=SiteMeta(pages=3, scripts=2, seo_score=60, title="Stored title", description="Stored description"),
        )
        values.update(overrides)
        return SiteRecord(**values)

    return factory


SAMPLE_HTML = (
    "<html><head><title>Acme Bakery</title>"
    '<meta name="description" content="Fresh bread daily"></head>'
    "<body><h1>Welcome</h1></body></html>"
)


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML
