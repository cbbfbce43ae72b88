from __future__ import annotations

import logging

from fastapi import FastAPI

from drumforge.routers.billing import router as billing_router
from drumforge.routers.billing_webhook import router as billing_webhook_router
from drumforge.routers.generate import router as generate_router
from drumforge.routers.subscription import router as subscription_router

log = logging.getLogger(__name__)

_ROUTERS = {
    "generate": generate_router,
    "subscription": subscription_router,
    "billing": billing_router,
    "billing_webhook": billing_webhook_router,
}


def attach_routers(app: FastAPI) -> dict[str, bool]:
    """Mount every API router under /api and report what was attached."""
    availability: dict[str, bool] = {}
    for name, router in _ROUTERS.items():
        app.include_router(router, prefix="/api")
        availability[name] = True
    log.info("[routing] Attached routers: %s", ", ".join(sorted(availability)))
    return availability


__all__ = ["attach_routers"]
