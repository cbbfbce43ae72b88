from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import Session

from ..billing.plans import TierDescriptor, get_tier, list_tiers
from ..core.auth import Identity, get_current_identity
from ..core.database import get_session
from ..core.timeutil import utcnow
from ..models.subscription import SubscriptionPublic
from ..services.billing.entitlements import usage_snapshot
from ..services.billing.usage import get_or_create_subscription

router = APIRouter(tags=["Subscription"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TierPublic(_CamelModel):
    id: str
    name: str
    price: float
    generations_per_month: int
    download_formats: List[str]
    ad_free: bool
    history_retention_days: int
    priority: bool

    @classmethod
    def from_descriptor(cls, descriptor: TierDescriptor) -> "TierPublic":
        return cls(
            id=descriptor.id.value,
            name=descriptor.name,
            price=descriptor.price,
            generations_per_month=descriptor.generations_per_month,
            download_formats=list(descriptor.download_formats),
            ad_free=descriptor.ad_free,
            history_retention_days=descriptor.history_retention_days,
            priority=descriptor.priority,
        )


class UsagePublic(_CamelModel):
    generations_used: int
    generations_remaining: int  # -1 when unlimited


class SubscriptionStatusResponse(_CamelModel):
    subscription: SubscriptionPublic
    limits: TierPublic
    usage: UsagePublic


class PricingResponse(_CamelModel):
    tiers: List[TierPublic]


@router.get("/subscription", response_model=SubscriptionStatusResponse)
def get_subscription_status(
    identity: Identity = Depends(get_current_identity),
    session: Session = Depends(get_session),
):
    """Current tier, its limits and this month's usage; creates a free row on first visit."""
    now = utcnow()
    subscription = get_or_create_subscription(session, identity.user_id, now)
    session.commit()
    used, remaining = usage_snapshot(subscription, now)
    return SubscriptionStatusResponse(
        subscription=SubscriptionPublic.model_validate(subscription),
        limits=TierPublic.from_descriptor(get_tier(subscription.tier)),
        usage=UsagePublic(generations_used=used, generations_remaining=remaining),
    )


@router.get("/pricing", response_model=PricingResponse)
def get_pricing():
    return PricingResponse(tiers=[TierPublic.from_descriptor(d) for d in list_tiers()])
