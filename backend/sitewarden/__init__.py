# backend/sitewarden/__init__.py
"""SiteWarden - maintenance engine for hosted static sites."""

__version__ = "1.0.0"
__title__ = "SiteWarden"
__description__ = "Uptime probes, backups and SEO re-audits for a fleet of static sites"
