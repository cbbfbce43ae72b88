from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlmodel import SQLModel, Field

from drumforge.core.timeutil import utcnow


class Subscription(SQLModel, table=True):
    """One row per user; created lazily on first metered or billing activity."""

    id: UUID = Field(default_factory=uuid4, primary_key=True, index=True)
    # Identity-provider user id; never generated here
    user_id: str = Field(index=True, unique=True)
    tier: str = Field(default="free")
    stripe_customer_id: Optional[str] = Field(default=None, index=True)
    stripe_subscription_id: Optional[str] = Field(default=None)
    # Mirrored from Stripe for display; quota rollover does not read these
    current_period_start: Optional[datetime] = Field(default=None)
    current_period_end: Optional[datetime] = Field(default=None)
    generations_this_month: int = Field(default=0, ge=0)
    last_generation_reset: Optional[datetime] = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class SubscriptionPublic(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: UUID
    user_id: str
    tier: str
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    generations_this_month: int
    last_generation_reset: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
