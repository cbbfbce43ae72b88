import logging

import stripe
from fastapi import APIRouter, HTTPException, Request

from ..core.config import settings
from ..core.database import session_scope
from ..services.billing.lifecycle import handle_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Billing Webhook"])


@router.post("/billing")
async def billing_webhook(request: Request):
    secret = settings.STRIPE_WEBHOOK_SECRET
    if not secret:
        # Refuse unsigned deliveries rather than trust them
        logger.error("event=billing.webhook_rejected reason=secret_not_configured")
        raise HTTPException(status_code=500, detail="Stripe webhook secret not configured")

    # Signature covers the exact raw bytes
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise HTTPException(status_code=400, detail="Missing stripe-signature header")
    try:
        event = stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=secret)
    except stripe.SignatureVerificationError as e:
        logger.warning("event=billing.webhook_rejected reason=bad_signature error=%s", e)
        raise HTTPException(status_code=400, detail=f"Webhook error: {e}")
    except Exception as e:
        logger.warning("event=billing.webhook_rejected reason=bad_payload error=%s", e)
        raise HTTPException(status_code=400, detail=f"Webhook error: {e}")

    data = event.to_dict()
    with session_scope() as session:
        changed = handle_event(session, data)
    logger.info("event=billing.webhook_processed type=%s id=%s changed=%s", data.get("type"), data.get("id"), changed)
    return {"received": True}
