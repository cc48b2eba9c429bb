# backend/sitewarden/api/routers/__init__.py
