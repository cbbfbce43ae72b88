import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlmodel import Session

from ..billing.plans import PAID_TIERS, parse_tier
from ..core.auth import Identity, get_current_identity
from ..core.config import settings
from ..core.database import get_session
from ..exceptions import BillingError
from ..services.billing.checkout import create_checkout_url, create_portal_url

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Billing"])


class CheckoutRequest(BaseModel):
    tier: str


class UrlResponse(BaseModel):
    url: str


def _base_url(request: Request) -> str:
    if settings.APP_BASE_URL:
        return settings.APP_BASE_URL.rstrip("/")
    origin = request.headers.get("origin")
    if origin:
        return origin.rstrip("/")
    return str(request.base_url).rstrip("/")


@router.post("/checkout", response_model=UrlResponse)
def start_checkout(
    req: CheckoutRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    if not settings.stripe_configured:
        raise HTTPException(status_code=503, detail="Payment processing not configured")
    tier = parse_tier(req.tier)
    if tier is None or tier not in PAID_TIERS:
        raise HTTPException(status_code=400, detail="Invalid tier")
    try:
        url = create_checkout_url(session, identity, tier, _base_url(request))
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    return UrlResponse(url=url)


@router.post("/billing-portal", response_model=UrlResponse)
def open_billing_portal(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    try:
        url = create_portal_url(session, identity, _base_url(request))
    except BillingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e
    return UrlResponse(url=url)
