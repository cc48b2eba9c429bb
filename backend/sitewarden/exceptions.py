"""Exception hierarchy for the maintenance engine."""


class SiteWardenError(Exception):
    """Base class for errors raised by SiteWarden services."""


class ArchiveError(SiteWardenError):
    """An uploaded bundle could not be decoded."""


class AnalysisFetchError(SiteWardenError):
    """A live document could not be fetched for analysis."""


class BackupError(SiteWardenError):
    """A backup could not be produced or stored."""


class MaintenancePassError(SiteWardenError):
    """A maintenance pass could not start (persistence unreachable)."""


class SiteNotFoundError(SiteWardenError):
    pass


class SiteNotDeployedError(SiteWardenError):
    pass


class TaskNotEnabledError(SiteWardenError):
    """The site's plan or billing status does not allow the task."""
