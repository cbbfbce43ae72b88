"""Logging and Sentry configuration for the application."""
from __future__ import annotations

import logging
import os


def configure_logging() -> None:
    """Configure application logging via the core logging setup."""
    from drumforge.core.logging import configure_logging as core_configure_logging
    core_configure_logging()


def setup_sentry(environment: str, dsn: str | None = None) -> None:
    """Initialize Sentry error tracking.

    Sentry captures request context, unhandled exceptions and WARNING+ log
    records. It stays off in dev/test environments and when no DSN is set.

    Args:
        environment: Current environment (dev, production, etc.)
        dsn: Sentry DSN. If None, reads from settings / SENTRY_DSN env var.
    """
    from drumforge.core.config import settings
    from drumforge.core.logging import get_logger
    log = get_logger("drumforge.config.logging")

    sentry_dsn = dsn or settings.SENTRY_DSN or os.getenv("SENTRY_DSN")

    if not sentry_dsn or environment in ("dev", "development", "test", "testing", "local"):
        log.debug("[startup] Sentry disabled (missing DSN or dev/test env)")
        return

    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.httpx import HttpxIntegration
        from sentry_sdk.integrations.logging import LoggingIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        def before_send(event, hint):
            # 404s and quota denials are expected traffic, not errors
            if event.get("tags", {}).get("status_code") in (403, 404):
                return None
            return event

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FastApiIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.WARNING),
                SqlalchemyIntegration(),
                HttpxIntegration(),
            ],
            traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
            environment=environment,
            send_default_pii=False,
            before_send=before_send,
            max_breadcrumbs=100,
        )
        log.info("[startup] Sentry initialized for env=%s", environment)
    except Exception as se:
        log.warning("[startup] Sentry init failed: %s", se)
