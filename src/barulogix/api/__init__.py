"""BaruLogix API service.

FastAPI application providing:
- Package CRUD, search, statistics and bulk import
- Bulk delivery and return reconciliation
- Conductor management and notifications
- Reports and exports
- Admin user management backed by the identity provider
- Undoable admin bulk operations
- Driver portal with its own accounts

This module provides the app factory pattern for creating configured
FastAPI instances suitable for testing and production deployment.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from barulogix.api.middleware import (
    ErrorHandlerMiddleware,
    IdentityMiddleware,
    RequestIDMiddleware,
    install_exception_handlers,
)
from barulogix.api.routers import (
    admin_router,
    auth_router,
    conductor_portal_router,
    conductors_router,
    notifications_router,
    packages_router,
    reports_router,
)
from barulogix.core.config import AuthSettings
from barulogix.db import close_engine

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from barulogix.core.config import Settings

logger = logging.getLogger(__name__)

# Application metadata
API_TITLE = "BaruLogix API"
API_DESCRIPTION = """
Package operations for small delivery warehouses.

## Namespaces

- **/api/auth/** - Password login through the identity provider
- **/api/packages/** - Packages, search, stats, bulk import, reconciliation
- **/api/conductors/** - Driver management
- **/api/notifications/** - Delay alerts, messages and driver inbox
- **/api/reports/** - Reports and exports
- **/api/admin/** - Users, operation history, bulk operations and undo (admin auth)
- **/api/conductor/** - Driver accounts, packages, stats and inbox (driver auth)

## Documentation

- OpenAPI schema: `/api/openapi.json`
- Swagger UI: `/api/docs`
- ReDoc: `/api/redoc`
"""

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://localhost:8000"]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Disposes the database engine on shutdown.
    """
    yield
    await close_engine()
    logger.info("Database engine closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Optional Settings instance. When omitted, routes load
            settings from the environment on first use and tokens are
            verified with default (unconfigured) auth settings.

    Returns:
        Configured FastAPI application ready to serve requests.

    Example:
        # For testing
        settings = Settings(database=DatabaseSettings(url=...), auth=...)
        app = create_app(settings)
    """
    version = settings.app_version if settings else "0.1.0"

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=version,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    # Store settings in app state for access in routes
    app.state.settings = settings

    _add_middleware(app, settings)
    install_exception_handlers(app)
    _include_routers(app)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for container orchestration."""
        return {"status": "healthy"}

    logger.info("BaruLogix API application created (version=%s)", version)

    return app


def _add_middleware(app: FastAPI, settings: Settings | None) -> None:
    """Add middleware to the application.

    The last middleware added is the outermost one, so the request id is
    set before errors are rendered and before identity is resolved.

    Args:
        app: The FastAPI application instance.
        settings: Optional settings for middleware configuration.
    """
    # Error handler middleware - converts exceptions to JSON responses
    app.add_middleware(ErrorHandlerMiddleware)

    # Identity middleware - verifies Bearer tokens
    auth_settings = settings.auth if settings else AuthSettings()
    app.add_middleware(IdentityMiddleware, auth_settings=auth_settings)

    # Request ID middleware - adds X-Request-ID to all responses
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = settings.cors_origins if settings else DEFAULT_CORS_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )


def _include_routers(app: FastAPI) -> None:
    """Include API namespace routers under /api.

    Args:
        app: The FastAPI application instance.
    """
    app.include_router(auth_router, prefix="/api")
    app.include_router(packages_router, prefix="/api")
    app.include_router(conductors_router, prefix="/api")
    app.include_router(notifications_router, prefix="/api")
    app.include_router(reports_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")
    app.include_router(conductor_portal_router, prefix="/api")
