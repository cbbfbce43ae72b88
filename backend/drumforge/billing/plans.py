"""
Tier definitions.

Single source of truth for subscription tiers and what each one entitles.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

# Sentinel for "no limit" on generations_per_month and history_retention_days
UNLIMITED = -1


class Tier(str, Enum):
    free = "free"
    basic = "basic"
    pro = "pro"
    premium = "premium"


@dataclass(frozen=True)
class TierDescriptor:
    id: Tier
    name: str
    price: float  # USD per month
    generations_per_month: int
    download_formats: Tuple[str, ...]
    ad_free: bool
    history_retention_days: int
    priority: bool  # Advertised only; generation order does not depend on it


TIERS: Dict[Tier, TierDescriptor] = {
    Tier.free: TierDescriptor(
        id=Tier.free,
        name="Free",
        price=0,
        generations_per_month=5,
        download_formats=("mp3",),
        ad_free=False,
        history_retention_days=7,
        priority=False,
    ),
    Tier.basic: TierDescriptor(
        id=Tier.basic,
        name="Basic",
        price=4.99,
        generations_per_month=25,
        download_formats=("mp3",),
        ad_free=True,
        history_retention_days=30,
        priority=False,
    ),
    Tier.pro: TierDescriptor(
        id=Tier.pro,
        name="Pro",
        price=9.99,
        generations_per_month=100,
        download_formats=("mp3", "wav"),
        ad_free=True,
        history_retention_days=90,
        priority=True,
    ),
    Tier.premium: TierDescriptor(
        id=Tier.premium,
        name="Premium",
        price=19.99,
        generations_per_month=UNLIMITED,
        download_formats=("mp3", "wav"),
        ad_free=True,
        history_retention_days=UNLIMITED,
        priority=True,
    ),
}

PAID_TIERS: Tuple[Tier, ...] = (Tier.basic, Tier.pro, Tier.premium)


def parse_tier(value: Union[Tier, str, None]) -> Optional[Tier]:
    """Strictly parse a tier id; returns None for anything not in the catalog."""
    if isinstance(value, Tier):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Tier(value.strip().lower())
    except ValueError:
        return None


def get_tier(tier_id: Union[Tier, str, None]) -> TierDescriptor:
    """
    Get the descriptor for a tier id.

    Unknown or missing ids resolve to the free tier, so a stale or corrupted
    stored value never grants more than the free entitlement.
    """
    tier = parse_tier(tier_id)
    if tier is None:
        return TIERS[Tier.free]
    return TIERS[tier]


def list_tiers() -> Tuple[TierDescriptor, ...]:
    """All descriptors in catalog order (free first)."""
    return tuple(TIERS.values())


def is_unlimited(descriptor: TierDescriptor) -> bool:
    return descriptor.generations_per_month == UNLIMITED


__all__ = [
    "UNLIMITED",
    "Tier",
    "TierDescriptor",
    "TIERS",
    "PAID_TIERS",
    "parse_tier",
    "get_tier",
    "list_tiers",
    "is_unlimited",
]
