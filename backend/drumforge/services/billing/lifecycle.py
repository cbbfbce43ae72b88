"""Apply Stripe billing events to subscription rows.

Every handler is safe to replay: Stripe retries deliveries, and a replay must
leave the row exactly as the first delivery did.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from drumforge.billing.plans import Tier, parse_tier
from drumforge.billing.prices import tier_for_price_id
from drumforge.core import crud
from drumforge.core.timeutil import utcnow
from .usage import get_or_create_subscription

log = logging.getLogger(__name__)


def _from_unix(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        log.warning("[billing] Ignoring unparseable timestamp %r", value)
        return None


def _first_item(data: Dict[str, Any]) -> Dict[str, Any]:
    items = (data.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _period(data: Dict[str, Any], key: str) -> Optional[datetime]:
    # Newer Stripe API versions moved the billing period onto the subscription items
    value = data.get(key)
    if value is None:
        value = _first_item(data).get(key)
    return _from_unix(value)


def _on_checkout_completed(session: Any, data: Dict[str, Any], now: datetime) -> bool:
    metadata = data.get("metadata") or {}
    user_id = metadata.get("user_id") or metadata.get("userId")
    raw_tier = metadata.get("tier")
    tier = parse_tier(raw_tier)
    if not user_id or tier is None:
        log.warning(
            "event=billing.checkout_ignored reason=%s session=%s",
            "missing_user" if not user_id else f"unknown_tier:{raw_tier}",
            data.get("id"),
        )
        return False

    customer_id = data.get("customer")
    stripe_subscription_id = data.get("subscription")

    subscription = get_or_create_subscription(session, user_id, now, for_update=True)
    if (
        subscription.tier == tier.value
        and subscription.stripe_customer_id == customer_id
        and subscription.stripe_subscription_id == stripe_subscription_id
    ):
        log.info("event=billing.checkout_replay user_id=%s tier=%s", user_id, tier.value)
        session.rollback()
        return False

    subscription.tier = tier.value
    subscription.stripe_customer_id = customer_id
    subscription.stripe_subscription_id = stripe_subscription_id
    subscription.generations_this_month = 0
    subscription.last_generation_reset = now
    subscription.updated_at = now
    session.add(subscription)
    session.commit()
    log.info(
        "event=billing.checkout_completed user_id=%s tier=%s customer=%s subscription=%s",
        user_id, tier.value, customer_id, stripe_subscription_id,
    )
    return True


def _on_subscription_updated(session: Any, data: Dict[str, Any], now: datetime) -> bool:
    customer_id = data.get("customer")
    if not customer_id:
        log.warning("event=billing.subscription_updated_ignored reason=missing_customer")
        return False

    price_id = (_first_item(data).get("price") or {}).get("id")
    tier = tier_for_price_id(price_id)
    period_start = _period(data, "current_period_start")
    period_end = _period(data, "current_period_end")

    rows = crud.get_subscriptions_by_customer_id(session, customer_id, for_update=True)
    if not rows:
        log.info("event=billing.subscription_updated_unmatched customer=%s", customer_id)
        session.rollback()
        return False
    for subscription in rows:
        subscription.tier = tier.value
        subscription.current_period_start = period_start
        subscription.current_period_end = period_end
        subscription.updated_at = now
        session.add(subscription)
    session.commit()
    log.info(
        "event=billing.subscription_updated customer=%s price=%s tier=%s rows=%s",
        customer_id, price_id, tier.value, len(rows),
    )
    return True


def _on_subscription_deleted(session: Any, data: Dict[str, Any], now: datetime) -> bool:
    customer_id = data.get("customer")
    if not customer_id:
        log.warning("event=billing.subscription_deleted_ignored reason=missing_customer")
        return False

    rows = crud.get_subscriptions_by_customer_id(session, customer_id, for_update=True)
    if not rows:
        log.info("event=billing.subscription_deleted_unmatched customer=%s", customer_id)
        session.rollback()
        return False
    for subscription in rows:
        subscription.tier = Tier.free.value
        subscription.stripe_subscription_id = None
        subscription.current_period_start = None
        subscription.current_period_end = None
        subscription.updated_at = now
        session.add(subscription)
    session.commit()
    log.info("event=billing.subscription_deleted customer=%s rows=%s", customer_id, len(rows))
    return True


def _on_payment_failed(session: Any, data: Dict[str, Any], now: datetime) -> bool:
    log.warning(
        "event=billing.payment_failed customer=%s invoice=%s",
        data.get("customer"), data.get("id"),
    )
    return False


_HANDLERS: Dict[str, Callable[[Any, Dict[str, Any], datetime], bool]] = {
    "checkout.session.completed": _on_checkout_completed,
    "customer.subscription.updated": _on_subscription_updated,
    "customer.subscription.deleted": _on_subscription_deleted,
    "invoice.payment_failed": _on_payment_failed,
}


def handle_event(session: Any, event: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """Dispatch one verified billing event. Returns True if any row changed."""
    now = now or utcnow()
    kind = event.get("type")
    handler = _HANDLERS.get(kind or "")
    if handler is None:
        log.debug("event=billing.ignored type=%s", kind)
        return False
    data = (event.get("data") or {}).get("object") or {}
    return handler(session, data, now)


__all__ = ["handle_event"]
