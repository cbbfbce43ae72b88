"""FastAPI application factory.

This module provides the create_app() function that creates and configures
the FastAPI application instance. The app.py file uses this to expose the
app instance for ASGI servers.
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI


@asynccontextmanager
async def _lifespan(app: FastAPI):
    from drumforge.core.database import create_db_and_tables
    from drumforge.core.logging import get_logger

    create_db_and_tables()
    get_logger("drumforge.main").info("[startup] Database tables ensured")
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    1. Logging and Sentry configuration
    2. FastAPI app instantiation
    3. Middleware and exception handlers
    4. Routes and health checks
    5. Table creation on startup

    Returns:
        FastAPI: Configured application instance ready for use by ASGI server.
    """
    from drumforge.config.logging import configure_logging, setup_sentry
    from drumforge.core.config import settings
    from drumforge.core.logging import get_logger

    configure_logging()
    setup_sentry(environment=settings.APP_ENV)

    log = get_logger("drumforge.main")

    app = FastAPI(title="DrumForge AI API", lifespan=_lifespan)

    from drumforge.config.middleware import configure_middleware
    configure_middleware(app, settings)

    from drumforge.config.routes import attach_routes
    attach_routes(app)

    log.info("[startup] Application configured successfully")
    return app


__all__ = ["create_app"]
