"""Decide whether a user may start another generation this month.

The quota window is the calendar month: a counter last reset in any earlier
(year, month) counts as zero, whatever the day of month.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Tuple

from drumforge.billing.plans import get_tier, is_unlimited, UNLIMITED
from drumforge.core import crud
from drumforge.core.timeutil import utcnow
from drumforge.models.subscription import Subscription

log = logging.getLogger(__name__)

# A missing reset timestamp behaves as if the counter was last reset at the epoch
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Entitlement:
    allowed: bool
    remaining: int  # UNLIMITED (-1) for tiers without a cap
    reason: Optional[str] = None


def quota_exceeded_message(quota: int) -> str:
    return f"You've reached your monthly limit of {quota} generations. Upgrade to get more!"


def months_since_reset(last_reset: Optional[datetime], now: datetime) -> int:
    last = last_reset or EPOCH
    return (now.year - last.year) * 12 + (now.month - last.month)


def effective_usage(subscription: Optional[Subscription], now: datetime) -> int:
    """Generations that count against this month's quota."""
    if subscription is None:
        return 0
    if months_since_reset(subscription.last_generation_reset, now) >= 1:
        return 0
    return subscription.generations_this_month or 0


def evaluate(subscription: Optional[Subscription], now: datetime) -> Entitlement:
    """Pure entitlement decision for a (possibly absent) subscription row."""
    descriptor = get_tier(subscription.tier if subscription is not None else None)
    if is_unlimited(descriptor):
        return Entitlement(allowed=True, remaining=UNLIMITED)

    quota = descriptor.generations_per_month
    remaining = quota - effective_usage(subscription, now)
    if remaining <= 0:
        return Entitlement(allowed=False, remaining=0, reason=quota_exceeded_message(quota))
    return Entitlement(allowed=True, remaining=remaining)


def can_generate(session: Any, user_id: str, now: Optional[datetime] = None) -> Entitlement:
    """Read-only check; an absent row is treated as free with nothing used and is not created."""
    now = now or utcnow()
    subscription = crud.get_subscription_by_user_id(session, user_id)
    entitlement = evaluate(subscription, now)
    if not entitlement.allowed:
        log.info("event=entitlement.denied user_id=%s tier=%s", user_id, getattr(subscription, "tier", "free"))
    return entitlement


def usage_snapshot(subscription: Optional[Subscription], now: Optional[datetime] = None) -> Tuple[int, int]:
    """(generations_used, generations_remaining) as shown to the user; remaining is -1 when unlimited."""
    now = now or utcnow()
    used = effective_usage(subscription, now)
    descriptor = get_tier(subscription.tier if subscription is not None else None)
    if is_unlimited(descriptor):
        return used, UNLIMITED
    return used, max(descriptor.generations_per_month - used, 0)


__all__ = [
    "EPOCH",
    "Entitlement",
    "quota_exceeded_message",
    "months_since_reset",
    "effective_usage",
    "evaluate",
    "can_generate",
    "usage_snapshot",
]
