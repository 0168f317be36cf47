from typing import Literal

from pydantic import BaseModel


class CheckoutRequest(BaseModel):
    plan_tier: Literal["pro", "premium"]


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str
    reason: str
