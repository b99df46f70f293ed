"""Main FastAPI application for the EMR intake service.

This module builds the FastAPI application with all routes, middleware,
exception handlers and the storage lifecycle.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.errors import register_exception_handlers
from src.api.logging_config import setup_logging
from src.api.middleware import setup_middleware
from src.api.routes import appointments, health, patients, sections, social_history, visits
from src.domain.ports import StorageError, StoragePort
from src.infrastructure.settings import APP_VERSION, settings
from src.main import create_storage_adapter

logger = logging.getLogger(__name__)


def create_app(storage: Optional[StoragePort] = None) -> FastAPI:
    """Build the application.

    Parameters:
        storage: Storage adapter to serve from. When omitted, the adapter is
            created from configuration at startup and closed at shutdown.

    Returns:
        FastAPI: Configured application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.storage is None
        adapter = app.state.storage or create_storage_adapter()
        result = adapter.initialize_schema()
        if not result.is_success():
            raise StorageError(result.error or "Schema initialization failed", operation="initialize_schema")
        app.state.storage = adapter
        logger.info(f"{settings.app_name} API starting up (docs at /api/docs)")
        yield
        logger.info(f"{settings.app_name} API shutting down...")
        if owned:
            adapter.close()
            app.state.storage = None

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Patient intake records: demographics, sections, visits and appointments",
        version=APP_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Process-Time"],
    )
    setup_middleware(app)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(patients.router)
    app.include_router(sections.router)
    app.include_router(social_history.router)
    app.include_router(visits.router)
    app.include_router(appointments.router)

    @app.get("/")
    def root():
        """Root endpoint."""
        return {
            "message": f"{settings.app_name} API",
            "version": APP_VERSION,
            "docs": "/api/docs",
            "health": "/api/health"
        }

    return app


setup_logging(use_json=settings.json_logs, log_level=settings.log_level)

app = create_app()
