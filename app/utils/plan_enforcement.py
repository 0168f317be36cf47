import asyncio
import logging
import math
import weakref
from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings
from app.core.exceptions import QuotaExceeded, ValidationFailure
from app.core.plan_limits import PlanTier, get_quota_ceiling
from app.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    plan_tier: PlanTier
    used: int
    limit: int
    requested: int
    reason: str = ""

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


def resolve_target_words(target_words: Optional[int], settings: Settings) -> int:
    if target_words is None:
        return settings.DEFAULT_TARGET_WORDS
    if target_words < 1 or target_words > settings.MAX_TARGET_WORDS:
        raise ValidationFailure(
            f"target_words must be between 1 and {settings.MAX_TARGET_WORDS}"
        )
    return target_words


def estimate_output_tokens(target_words: int, settings: Settings) -> int:
    """Output budget handed to the provider; the provider can never bill beyond it."""
    return target_words * settings.TOKENS_PER_WORD


def estimate_prompt_tokens(prompt: str, settings: Settings) -> int:
    return math.ceil(len(prompt or "") / settings.CHARS_PER_TOKEN)


def estimate_generation_cost(target_words: int, settings: Settings, prompt: Optional[str] = None) -> int:
    """
    Deterministic pre-estimate of what a generation costs, computed before the
    provider is called. Prompt tokens are added only when CHARGE_PROMPT_TOKENS is on.
    """
    cost = estimate_output_tokens(target_words, settings)
    if settings.CHARGE_PROMPT_TOKENS and prompt:
        cost += estimate_prompt_tokens(prompt, settings)
    return cost


def admit(user: User, requested_cost: int, settings: Settings) -> AdmissionDecision:
    """
    Decide whether the account may spend requested_cost more tokens.
    Pure: reads the account, never mutates it.
    """
    if requested_cost < 0:
        raise ValueError("requested_cost must be non-negative")

    plan_tier = user.tier
    limit = get_quota_ceiling(plan_tier, settings)
    used = user.used_tokens or 0

    if used + requested_cost <= limit:
        return AdmissionDecision(True, plan_tier, used, limit, requested_cost)
    return AdmissionDecision(False, plan_tier, used, limit, requested_cost, reason="quota exceeded")


def check_generation_allowed(user: User, requested_cost: int, settings: Settings) -> AdmissionDecision:
    """
    Same decision as admit(), raising QuotaExceeded (402) when denied.
    """
    decision = admit(user, requested_cost, settings)
    if not decision.allowed:
        logger.info(
            "[Quota] Denied user %s: %s used + %s requested > %s (%s plan)",
            user.id, decision.used, decision.requested, decision.limit, decision.plan_tier.value,
        )
        raise QuotaExceeded(
            used=decision.used,
            limit=decision.limit,
            requested=decision.requested,
            plan_tier=decision.plan_tier.value,
        )
    return decision


# Per-account locks serialize check -> generate -> charge within this process,
# so two concurrent generations for one account cannot both pass admission.
# Entries vanish once no request holds or waits on the lock.
_account_locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()


def get_account_lock(user_id: int) -> asyncio.Lock:
    lock = _account_locks.get(user_id)
    if lock is None:
        lock = asyncio.Lock()
        _account_locks[user_id] = lock
    return lock
