"""
Stripe billing: checkout session creation and webhook event processing.

Webhook events are verified with the shared signing secret before anything in
them is read. Only subscription activation/renewal events change an account's
plan tier, and only to a paid tier; other events are acknowledged and ignored.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.exceptions import ServiceUnavailable, SignatureInvalid, UpstreamFailure
from app.core.plan_limits import PAID_PLAN_TIERS, PlanTier
from app.models.user import User

logger = logging.getLogger(__name__)

APPLIED = "applied"
IGNORED = "ignored"
FAILED = "failed"

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
INVOICE_PAID = "invoice.paid"

ACTIVATION_EVENT_TYPES = frozenset({
    CHECKOUT_COMPLETED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_UPDATED,
    INVOICE_PAID,
})
ACTIVE_SUBSCRIPTION_STATUSES = frozenset({"active", "trialing"})


@dataclass(frozen=True)
class BillingEventResult:
    outcome: str
    reason: str
    event_type: Optional[str] = None
    user_id: Optional[int] = None
    plan_tier: Optional[str] = None


def _price_id_for_tier(plan_tier: PlanTier, settings: Settings) -> str:
    if plan_tier == PlanTier.PRO:
        return settings.STRIPE_PRICE_ID_PRO
    if plan_tier == PlanTier.PREMIUM:
        return settings.STRIPE_PRICE_ID_PREMIUM
    return ""


def create_checkout_session(user: User, plan_tier: PlanTier, settings: Settings) -> tuple[str, str]:
    """
    Create a Stripe Checkout Session for a subscription to plan_tier.
    The account id and target tier ride along as metadata so the webhook can
    map the resulting events back to the account.
    Returns (checkout_url, session_id).
    """
    price_id = _price_id_for_tier(plan_tier, settings)
    if not settings.STRIPE_SECRET_KEY or not price_id:
        logger.error("[Billing] Stripe not configured for %s checkout", plan_tier.value)
        raise ServiceUnavailable(f"Payment system not configured for the {plan_tier.value} plan")

    metadata = {
        "user_id": str(user.id),
        "user_email": user.email,
        "plan_tier": plan_tier.value,
    }
    try:
        checkout_session = stripe.checkout.Session.create(
            api_key=settings.STRIPE_SECRET_KEY,
            mode="subscription",
            customer_email=user.email,
            client_reference_id=str(user.id),
            line_items=[{"price": price_id, "quantity": 1}],
            success_url=f"{settings.FRONTEND_URL}/billing?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{settings.FRONTEND_URL}/billing?canceled=true",
            metadata=metadata,
            subscription_data={"metadata": metadata},
        )
    except stripe.StripeError as e:
        logger.error("[Billing] Stripe error creating checkout session for user %s: %s", user.id, e)
        raise UpstreamFailure("Failed to create checkout session")

    logger.info("[Billing] Created checkout session %s for user %s (%s)", checkout_session.id, user.id, plan_tier.value)
    return checkout_session.url, checkout_session.id


def verify_event(payload: bytes, signature_header: Optional[str], settings: Settings) -> dict:
    """
    Check the Stripe-Signature header against the raw body and return the parsed event.
    Any failure raises the same generic SignatureInvalid.
    """
    if not settings.STRIPE_WEBHOOK_SECRET or not signature_header:
        raise SignatureInvalid()
    try:
        stripe.Webhook.construct_event(payload, signature_header, settings.STRIPE_WEBHOOK_SECRET)
        event = json.loads(payload)
    except (stripe.SignatureVerificationError, ValueError):
        raise SignatureInvalid()
    if not isinstance(event, dict):
        raise SignatureInvalid()
    return event


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _activation_metadata(event_type: str, obj: dict):
    """Metadata carrying user_id/plan_tier, or None when the event does not activate anything."""
    if event_type == CHECKOUT_COMPLETED:
        if obj.get("payment_status") == "unpaid":
            return None
        return obj.get("metadata") or {}

    if event_type in (SUBSCRIPTION_CREATED, SUBSCRIPTION_UPDATED):
        if obj.get("status") not in ACTIVE_SUBSCRIPTION_STATUSES:
            return None
        return obj.get("metadata") or {}

    if event_type == INVOICE_PAID:
        details = _dict(obj.get("subscription_details"))
        if not details:
            details = _dict(_dict(obj.get("parent")).get("subscription_details"))
        if details.get("metadata"):
            return details["metadata"]
        lines = _dict(obj.get("lines")).get("data") or []
        if isinstance(lines, list) and lines:
            return _dict(lines[0]).get("metadata") or {}
        return {}

    return None


def _parse_user_id(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_paid_tier(value) -> Optional[PlanTier]:
    try:
        tier = PlanTier(str(value).strip().lower())
    except ValueError:
        return None
    return tier if tier in PAID_PLAN_TIERS else None


def apply_event(db: Session, event: dict) -> BillingEventResult:
    """Apply an already-verified event. Setting a tier is idempotent, so replays are harmless."""
    event_type = event.get("type")
    if not isinstance(event_type, str) or event_type not in ACTIVATION_EVENT_TYPES:
        return BillingEventResult(IGNORED, "event type not handled", str(event_type))

    obj = _dict(event.get("data")).get("object")
    if not isinstance(obj, dict):
        logger.warning("[Webhook] %s without an event object", event_type)
        return BillingEventResult(IGNORED, "malformed event", event_type)

    metadata = _activation_metadata(event_type, obj)
    if metadata is None:
        return BillingEventResult(IGNORED, "subscription not active", event_type)
    if not isinstance(metadata, dict):
        logger.warning("[Webhook] %s with non-object metadata", event_type)
        return BillingEventResult(IGNORED, "malformed event", event_type)

    user_id = _parse_user_id(metadata.get("user_id"))
    if user_id is None:
        logger.warning("[Webhook] %s without a usable user_id in metadata", event_type)
        return BillingEventResult(IGNORED, "missing account reference", event_type)

    plan_tier = _parse_paid_tier(metadata.get("plan_tier"))
    if plan_tier is None:
        # Downgrades never come through this path
        logger.warning("[Webhook] %s for user %s with non-paid tier %r ignored", event_type, user_id, metadata.get("plan_tier"))
        return BillingEventResult(IGNORED, "target tier not applicable", event_type, user_id)

    try:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            logger.warning("[Webhook] %s for unknown user %s", event_type, user_id)
            return BillingEventResult(IGNORED, "account not found", event_type, user_id, plan_tier.value)

        previous = user.tier
        user.plan_tier = plan_tier.value
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("[Webhook] Failed to apply %s to user %s", event_type, user_id)
        return BillingEventResult(FAILED, "internal error", event_type, user_id, plan_tier.value)

    logger.info("[Webhook] %s: user %s plan %s -> %s", event_type, user_id, previous.value, plan_tier.value)
    return BillingEventResult(APPLIED, "plan updated", event_type, user_id, plan_tier.value)


def apply_billing_event(
    db: Session,
    payload: bytes,
    signature_header: Optional[str],
    settings: Settings,
) -> BillingEventResult:
    """
    Verify then apply a raw webhook delivery. Raises SignatureInvalid before touching the database;
    after verification every outcome, including unexpected errors, is returned as a result.
    """
    event = verify_event(payload, signature_header, settings)
    try:
        return apply_event(db, event)
    except Exception:
        db.rollback()
        logger.exception("[Webhook] Unexpected error applying event %s", event.get("id"))
        return BillingEventResult(FAILED, "internal error", str(event.get("type")))
