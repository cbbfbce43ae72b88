"""Stripe price id <-> tier mapping, read from settings."""
from typing import Dict, Optional

from drumforge.billing.plans import Tier
from drumforge.core.config import settings


def _price_map() -> Dict[Tier, str]:
    # Read at call time so settings overrides (tests, reloads) are honoured
    return {
        Tier.basic: (settings.STRIPE_PRICE_BASIC or "").strip(),
        Tier.pro: (settings.STRIPE_PRICE_PRO or "").strip(),
        Tier.premium: (settings.STRIPE_PRICE_PREMIUM or "").strip(),
    }


def price_id_for_tier(tier: Tier) -> Optional[str]:
    """Configured Stripe price id for a paid tier, or None if unpriced."""
    return _price_map().get(tier) or None


def tier_for_price_id(price_id: Optional[str]) -> Tier:
    """Map a Stripe price id back to its tier; unknown ids map to free."""
    if price_id:
        for tier, configured in _price_map().items():
            if configured and configured == price_id:
                return tier
    return Tier.free


__all__ = ["price_id_for_tier", "tier_for_price_id"]
