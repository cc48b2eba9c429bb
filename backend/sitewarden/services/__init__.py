# backend/sitewarden/services/__init__.py
"""Services package for SiteWarden."""
