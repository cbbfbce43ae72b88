from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError

from drumforge.billing.plans import Tier, UNLIMITED
from drumforge.core import crud
from drumforge.core.timeutil import utcnow
from drumforge.models.subscription import Subscription
from .entitlements import Entitlement, evaluate, months_since_reset

log = logging.getLogger(__name__)


def get_or_create_subscription(session: Any, user_id: str, now: Optional[datetime] = None, *, for_update: bool = False) -> Subscription:
    """Load the user's row, creating a free one if absent.

    A concurrent insert for the same user loses on the unique user_id; the
    loser rolls back and re-reads the winner's row. The row is flushed, not
    committed, so the caller decides when its transaction ends.
    """
    now = now or utcnow()
    subscription = crud.get_subscription_by_user_id(session, user_id, for_update=for_update)
    if subscription is not None:
        return subscription

    subscription = Subscription(
        user_id=user_id,
        tier=Tier.free.value,
        generations_this_month=0,
        last_generation_reset=now,
        created_at=now,
        updated_at=now,
    )
    session.add(subscription)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        log.info("event=subscription.create_race user_id=%s", user_id)
        subscription = crud.get_subscription_by_user_id(session, user_id, for_update=for_update)
        if subscription is None:
            raise
        return subscription
    log.info("event=subscription.created user_id=%s tier=free", user_id)
    return subscription


def _consume(subscription: Subscription, now: datetime) -> None:
    if months_since_reset(subscription.last_generation_reset, now) >= 1:
        subscription.generations_this_month = 1
        subscription.last_generation_reset = now
    else:
        subscription.generations_this_month = (subscription.generations_this_month or 0) + 1
    subscription.updated_at = now


def record_generation(session: Any, user_id: str, now: Optional[datetime] = None) -> Subscription:
    """Count one generation against the user's month, rolling the counter over if needed."""
    now = now or utcnow()
    subscription = get_or_create_subscription(session, user_id, now, for_update=True)
    _consume(subscription, now)
    session.add(subscription)
    session.commit()
    log.info(
        "event=usage.recorded user_id=%s tier=%s count=%s",
        user_id, subscription.tier, subscription.generations_this_month,
    )
    return subscription


def admit_generation(session: Any, user_id: str, now: Optional[datetime] = None) -> Entitlement:
    """Check the entitlement and consume one generation in a single transaction.

    The row stays locked between the check and the increment, so two requests
    can never both take the last generation of the month. The returned
    remaining count reflects the state after this admission.
    """
    now = now or utcnow()
    subscription = get_or_create_subscription(session, user_id, now, for_update=True)
    entitlement = evaluate(subscription, now)
    if not entitlement.allowed:
        log.info("event=usage.denied user_id=%s tier=%s", user_id, subscription.tier)
        session.rollback()
        return entitlement

    _consume(subscription, now)
    session.add(subscription)
    session.commit()
    log.info(
        "event=usage.admitted user_id=%s tier=%s count=%s",
        user_id, subscription.tier, subscription.generations_this_month,
    )
    if entitlement.remaining == UNLIMITED:
        return entitlement
    return Entitlement(allowed=True, remaining=entitlement.remaining - 1)


__all__ = ["get_or_create_subscription", "record_generation", "admit_generation"]
