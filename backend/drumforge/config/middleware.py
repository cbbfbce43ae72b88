"""Middleware configuration for the FastAPI application."""
from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI
    from drumforge.core.config import Settings


def configure_middleware(app: FastAPI, settings: Settings) -> None:
    """Configure all middleware for the application.

    Args:
        app: FastAPI application instance
        settings: Application settings
    """
    from drumforge.core.logging import get_logger
    log = get_logger("drumforge.config.middleware")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origin_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
        allow_credentials=True,
    )

    from drumforge.middleware.request_id import RequestIDMiddleware
    app.add_middleware(RequestIDMiddleware)

    from drumforge.exceptions import install_exception_handlers
    install_exception_handlers(app)
    log.debug("[startup] Middleware configured (cors origins=%s)", settings.cors_allowed_origin_list)
