"""Routes and health check configuration for the FastAPI application."""
from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from fastapi import FastAPI


def attach_routes(app: FastAPI) -> None:
    """Attach all routers and configure health check endpoints.

    Args:
        app: FastAPI application instance
    """
    from drumforge.core import database
    from drumforge.core.logging import get_logger
    from drumforge.routing import attach_routers

    log = get_logger("drumforge.config.routes")

    availability = attach_routers(app)
    log.info("[startup] %d routers attached", len(availability))

    # --- Health Check Endpoints ---
    @app.get("/api/health")
    def api_health_alias():
        return {"status": "ok"}

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/readyz")
    def readyz():
        try:
            with database.engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return {"ok": True}
        except Exception as e:
            log.warning("[readyz] Database not ready: %s", e)
            return JSONResponse(status_code=500, content={"ok": False, "error": str(e)})
