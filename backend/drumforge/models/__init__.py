"""Aggregate exports for model convenience imports."""

from .generation import DrumGeneration, GenerationPublic, GenerationStatus  # noqa: F401
from .subscription import Subscription, SubscriptionPublic  # noqa: F401
