import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.plan_limits import get_quota_ceiling, normalize_plan_tier
from app.db.session import get_db
from app.dependencies.auth import get_current_user_id, require_admin_key
from app.models.user import User
from app.schemas.auth import ArticleResponse, PlanChangeRequest, PlanChangeResponse, UserResponse
from app.services.accounts import get_user
from app.services.usage_ledger import list_history

logger = logging.getLogger(__name__)

router = APIRouter()


def serialize_user(user: User, settings: Settings) -> dict:
    max_tokens = get_quota_ceiling(user.tier, settings)
    return {
        "id": user.id,
        "email": user.email,
        "plan_tier": user.tier.value,
        "used_tokens": user.used_tokens,
        "max_tokens": max_tokens,
        "remaining_tokens": max(0, max_tokens - user.used_tokens),
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


@router.get("/me", response_model=UserResponse)
def get_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
):
    """Get current user profile with plan and token usage"""
    user = get_user(db, user_id)
    return serialize_user(user, settings)


@router.get("/me/articles", response_model=list[ArticleResponse])
def get_article_history(
    limit: Optional[int] = Query(None),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
):
    """Generated articles for the current user, newest first"""
    if limit is None:
        limit = settings.HISTORY_DEFAULT_LIMIT
    limit = max(1, min(limit, settings.HISTORY_MAX_LIMIT))
    get_user(db, user_id)
    return list_history(db, user_id, limit)


@router.post("/me/plan", response_model=PlanChangeResponse, dependencies=[Depends(require_admin_key)])
def change_plan(
    plan_data: PlanChangeRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
):
    """
    Set the plan tier directly, without payment.
    Requires X-Admin-Key when ADMIN_API_KEY is configured. Usage is not reset.
    """
    user = get_user(db, user_id)
    plan_tier = normalize_plan_tier(plan_data.plan_tier)
    previous = user.tier
    user.plan_tier = plan_tier.value
    db.commit()
    logger.info("[Plan] User %s plan changed manually %s -> %s", user_id, previous.value, plan_tier.value)

    return {
        "message": "Plan updated",
        "plan_tier": plan_tier.value,
        "max_tokens": get_quota_ceiling(plan_tier, settings),
    }
