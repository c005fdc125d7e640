"""Service information and health endpoints."""

from __future__ import annotations

from fastapi import APIRouter
from sqlalchemy import text

from resource_api.api.dependencies import SessionDep, SettingsDep

router = APIRouter(tags=["system"])


@router.get("/health")
async def health_check(db: SessionDep) -> dict[str, str]:
    """Health check endpoint to verify the service and its database respond."""
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}


@router.get("/")
async def root(settings: SettingsDep) -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
    }
