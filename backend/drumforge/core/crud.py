from sqlmodel import Session, select
from sqlalchemy import desc
from typing import Optional, List, Any, cast
from uuid import UUID

from ..models.generation import DrumGeneration, GenerationStatus
from ..models.subscription import Subscription

# --- Subscription CRUD ---

def get_subscription_by_user_id(session: Session, user_id: str, for_update: bool = False) -> Optional[Subscription]:
    statement = select(Subscription).where(Subscription.user_id == user_id)
    if for_update:
        statement = statement.with_for_update()
    return session.exec(statement).first()


def get_subscriptions_by_customer_id(session: Session, stripe_customer_id: str, for_update: bool = False) -> List[Subscription]:
    statement = select(Subscription).where(Subscription.stripe_customer_id == stripe_customer_id)
    if for_update:
        statement = statement.with_for_update()
    return list(session.exec(statement).all())

# --- Generation CRUD ---

def get_generation_by_id(session: Session, generation_id: UUID) -> Optional[DrumGeneration]:
    statement = select(DrumGeneration).where(DrumGeneration.id == generation_id)
    return session.exec(statement).first()


def get_completed_generations(session: Session, limit: int = 10) -> List[DrumGeneration]:
    statement = (
        select(DrumGeneration)
        .where(DrumGeneration.status == GenerationStatus.completed)
        .order_by(desc(cast(Any, DrumGeneration.created_at)))
        .limit(limit)
    )
    return list(session.exec(statement).all())


def get_generations_by_user(session: Session, user_id: str, limit: int = 50) -> List[DrumGeneration]:
    statement = (
        select(DrumGeneration)
        .where(DrumGeneration.user_id == user_id)
        .order_by(desc(cast(Any, DrumGeneration.created_at)))
        .limit(limit)
    )
    return list(session.exec(statement).all())
