"""Main entry point for the Resource API application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from resource_api.api import auth_router, resources_router, system_router
from resource_api.core.errors import register_exception_handlers
from resource_api.core.logging import RequestLoggingMiddleware, configure_logging
from resource_api.core.settings import Settings, get_settings
from resource_api.db.session import build_engine, build_session_factory, create_tables
from resource_api.services.cache import RecordCache

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build a fully wired application.

    The engine, session factory and record cache are created here and kept
    on ``app.state``; request handlers reach them through dependencies.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    record_cache = (
        RecordCache.from_url(settings.redis_url, ttl_seconds=settings.cache_ttl_seconds)
        if settings.redis_url
        else None
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.auto_create_tables:
            await create_tables(engine)
        logger.info(
            "%s %s started (cache %s)",
            settings.app_name,
            settings.app_version,
            "enabled" if record_cache else "disabled",
        )
        try:
            yield
        finally:
            if record_cache is not None:
                await record_cache.close()
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="CRUD resource API with password login and bearer tokens",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.record_cache = record_cache

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app, debug=settings.debug)

    app.include_router(system_router)
    app.include_router(auth_router)
    app.include_router(resources_router)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "resource_api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=get_settings().debug,
    )
