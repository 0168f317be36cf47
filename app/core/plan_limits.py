from enum import Enum
from typing import Dict, Optional

from app.core.config import Settings


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"


# Tiers a billing event may move an account to. Downgrades to free never
# arrive through the webhook path.
PAID_PLAN_TIERS = frozenset({PlanTier.PRO, PlanTier.PREMIUM})


def normalize_plan_tier(value: Optional[str]) -> PlanTier:
    """Map any stored or reported tier value onto a known tier; unknown or missing means free."""
    if isinstance(value, PlanTier):
        return value
    if not value:
        return PlanTier.FREE
    try:
        return PlanTier(str(value).strip().lower())
    except ValueError:
        return PlanTier.FREE


def get_plan_limits(settings: Settings) -> Dict[PlanTier, int]:
    """Quota ceilings per tier, in cost units."""
    return {
        PlanTier.FREE: settings.PLAN_FREE_MAX_TOKENS,
        PlanTier.PRO: settings.PLAN_PRO_MAX_TOKENS,
        PlanTier.PREMIUM: settings.PLAN_PREMIUM_MAX_TOKENS,
    }


def get_quota_ceiling(plan_tier: Optional[str], settings: Settings) -> int:
    """Get the token ceiling for a plan tier, falling back to the free ceiling."""
    return get_plan_limits(settings)[normalize_plan_tier(plan_tier)]
