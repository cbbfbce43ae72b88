"""Delegate checkout and subscription management to Stripe's hosted pages."""
from __future__ import annotations

import logging
from typing import Any, Optional

import stripe

from drumforge.billing.plans import PAID_TIERS, Tier
from drumforge.billing.prices import price_id_for_tier
from drumforge.core import crud
from drumforge.core.auth import Identity
from drumforge.core.config import settings
from drumforge.exceptions import (
    BillingNotConfigured,
    BillingProviderError,
    NoBillingCustomer,
    TierNotPriced,
)

log = logging.getLogger(__name__)


def _require_stripe() -> None:
    if not settings.stripe_configured:
        raise BillingNotConfigured()
    stripe.api_key = settings.STRIPE_SECRET_KEY


def _stored_customer_id(session: Any, user_id: str) -> Optional[str]:
    subscription = crud.get_subscription_by_user_id(session, user_id)
    return getattr(subscription, "stripe_customer_id", None) or None


def _ensure_customer(session: Any, identity: Identity) -> str:
    """Reuse the stored Stripe customer or create one.

    A new customer id is not stored here; the checkout.session.completed
    webhook records it once payment succeeds.
    """
    customer_id = _stored_customer_id(session, identity.user_id)
    if customer_id:
        return customer_id
    try:
        customer = stripe.Customer.create(
            email=identity.email,
            metadata={"user_id": identity.user_id},
        )
    except stripe.StripeError as e:
        log.error(
            "event=billing.customer_create_failed user_id=%s error=%s",
            identity.user_id, e,
        )
        raise BillingProviderError(f"Failed to create Stripe customer: {e}") from e
    log.info("event=billing.customer_created user_id=%s customer=%s", identity.user_id, customer.id)
    return customer.id


def create_checkout_url(session: Any, identity: Identity, tier: Tier, base_url: str) -> str:
    """Start a subscription-mode Checkout Session for a paid tier and return its URL."""
    _require_stripe()
    price_id = price_id_for_tier(tier) if tier in PAID_TIERS else None
    if not price_id:
        raise TierNotPriced()

    customer_id = _ensure_customer(session, identity)
    base = base_url.rstrip("/")
    try:
        checkout = stripe.checkout.Session.create(
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{base}/pricing?success=true",
            cancel_url=f"{base}/pricing?canceled=true",
            metadata={"user_id": identity.user_id, "tier": tier.value},
        )
    except stripe.StripeError as e:
        log.error("event=billing.checkout_failed user_id=%s tier=%s error=%s", identity.user_id, tier.value, e)
        raise BillingProviderError(f"Stripe error: {e}") from e

    url = getattr(checkout, "url", None)
    if not url:
        raise BillingProviderError("Stripe did not return a checkout URL")
    log.info("event=billing.checkout_started user_id=%s tier=%s", identity.user_id, tier.value)
    return str(url)


def create_portal_url(session: Any, identity: Identity, base_url: str) -> str:
    """Open Stripe's billing portal for the caller's stored customer."""
    _require_stripe()
    customer_id = _stored_customer_id(session, identity.user_id)
    if not customer_id:
        raise NoBillingCustomer()
    try:
        portal = stripe.billing_portal.Session.create(
            customer=customer_id,
            return_url=f"{base_url.rstrip('/')}/pricing",
        )
    except stripe.StripeError as e:
        log.error("event=billing.portal_failed user_id=%s error=%s", identity.user_id, e)
        raise BillingProviderError(f"Stripe error: {e}") from e
    return str(getattr(portal, "url", ""))


__all__ = ["create_checkout_url", "create_portal_url"]
