# backend/sitewarden/commands/__init__.py
"""
Command-line utilities for SiteWarden.

Commands:
    - maintenance_worker: Run maintenance passes (startup pass + cron cadences)

Usage:
    python -m sitewarden.commands.maintenance_worker --once
"""
