# src/resource_api/api/endpoints/__init__.py
"""API endpoint modules."""

from .auth import router as auth_router
from .resources import router as resources_router
from .system import router as system_router

__all__ = [
    "auth_router",
    "resources_router",
    "system_router",
]
