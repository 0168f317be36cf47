"""
Stripe Checkout and webhook routes.
Handles checkout session creation for plan upgrades and subscription events.
"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.plan_limits import PlanTier
from app.db.session import get_db
from app.dependencies.auth import get_current_user_id
from app.schemas.billing import CheckoutRequest, CheckoutResponse, WebhookAck
from app.services import billing
from app.services.accounts import get_user

router = APIRouter()


@router.post("/create-checkout-session", response_model=CheckoutResponse)
async def create_checkout_session(
    checkout: CheckoutRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    settings: Settings = Depends(get_settings),
):
    """
    Create a Stripe Checkout Session for a pro or premium subscription.
    Returns the checkout URL to redirect the user to.
    """
    user = get_user(db, user_id)
    checkout_url, session_id = billing.create_checkout_session(user, PlanTier(checkout.plan_tier), settings)
    return {"checkout_url": checkout_url, "session_id": session_id}


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Stripe webhook. Register this URL in the Stripe dashboard:
    https://your-backend.com/billing/webhook

    Once the signature checks out the event is always acknowledged with 200,
    even when applying it failed internally, so Stripe does not keep retrying.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    result = billing.apply_billing_event(db, payload, sig_header, settings)
    return {"received": True, "outcome": result.outcome, "reason": result.reason}
