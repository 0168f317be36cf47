import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.plan_limits import get_quota_ceiling
from app.db.session import get_db
from app.dependencies.auth import get_current_user_id
from app.schemas.generation import DemoArticleRequest, DemoArticleResponse, GenerateRequest, GenerateResponse
from app.services.accounts import get_user
from app.services.generation_gateway import (
    GenerationGateway,
    build_article_prompt,
    build_demo_prompt,
    derive_title,
    get_generation_gateway,
)
from app.services.usage_ledger import charge_and_record, get_used_tokens
from app.utils.plan_enforcement import (
    check_generation_allowed,
    estimate_generation_cost,
    estimate_output_tokens,
    get_account_lock,
    resolve_target_words,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", response_model=GenerateResponse)
async def generate_article(
    request: GenerateRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
    gateway: GenerationGateway = Depends(get_generation_gateway),
):
    """
    Generate an article against the user's token quota.

    The cost is estimated up front from target_words, checked against the plan
    ceiling, and charged only after the provider returned text. A denied or
    failed generation leaves usage and history untouched.
    """
    target_words = resolve_target_words(request.target_words, settings)
    system_prompt, user_prompt = build_article_prompt(request.topic, target_words, request.tone)
    max_output_tokens = estimate_output_tokens(target_words, settings)
    cost = estimate_generation_cost(target_words, settings, prompt=system_prompt + user_prompt)

    async with get_account_lock(user_id):
        user = get_user(db, user_id)
        decision = check_generation_allowed(user, cost, settings)
        # Release the read transaction while the provider runs
        db.commit()

        logger.info(
            "[Generation] User %s generating %s words (cost %s, used %s/%s)",
            user_id, target_words, cost, decision.used, decision.limit,
        )
        article_text = await gateway.generate_with_system(system_prompt, user_prompt, max_output_tokens)

        article = charge_and_record(db, user_id, cost, request.topic, article_text)
        used_tokens = get_used_tokens(db, user_id)
        # Tier may have changed while the provider ran
        max_tokens = get_quota_ceiling(get_user(db, user_id).tier, settings)

    return {
        "article_id": article.id,
        "title": derive_title(article_text),
        "article": article_text,
        "tokens_charged": cost,
        "used_tokens": used_tokens,
        "max_tokens": max_tokens,
        "remaining_tokens": max(0, max_tokens - used_tokens),
    }


@router.post("/generate-article", response_model=DemoArticleResponse)
async def generate_demo_article(
    request: DemoArticleRequest,
    settings: Settings = Depends(get_settings),
    gateway: GenerationGateway = Depends(get_generation_gateway),
):
    """
    Unauthenticated demo generation. Not metered and not saved to any history;
    output is capped at DEMO_MAX_OUTPUT_TOKENS.
    """
    prompt = build_demo_prompt(request.topic, request.tone, request.length)
    text = await gateway.generate(prompt, settings.DEMO_MAX_OUTPUT_TOKENS)
    return {
        "title": derive_title(text),
        "content": text,
    }
