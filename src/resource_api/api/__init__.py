# src/resource_api/api/__init__.py
"""HTTP API routers."""

from .endpoints import auth_router, resources_router, system_router

__all__ = ["auth_router", "resources_router", "system_router"]
