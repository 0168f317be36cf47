"""Shared test fixtures and configuration."""

import asyncio
import hashlib
import hmac
import json
import time
from typing import Callable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, get_settings
from app.core.exceptions import UpstreamFailure
from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models import Article, User  # noqa: F401
from app.services.generation_gateway import get_generation_gateway
from app.utils import plan_enforcement

TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_PASSWORD = "correct-horse-battery"
ARTICLE_TEXT = "# The Future of Solar Power\n\nSolar panels keep getting cheaper.\n\nConclusion: go solar."


# =============================================================================
# Settings
# =============================================================================

def make_settings(**overrides) -> Settings:
    values = dict(
        DATABASE_URL="sqlite://",
        JWT_SECRET="test-jwt-secret",
        BCRYPT_ROUNDS=4,
        OPENAI_API_KEY="",
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET=TEST_WEBHOOK_SECRET,
        STRIPE_PRICE_ID_PRO="price_pro_123",
        STRIPE_PRICE_ID_PREMIUM="price_premium_123",
        ADMIN_API_KEY="",
        CHARGE_PROMPT_TOKENS=False,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


# =============================================================================
# Database
# =============================================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# Generation gateway
# =============================================================================

class FakeGateway:
    """Stands in for the OpenAI-backed gateway; records every call."""

    def __init__(self, text: str = ARTICLE_TEXT):
        self.text = text
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self.during_call: Optional[Callable[[], None]] = None
        self.calls = []

    async def _respond(self) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.during_call:
            self.during_call()
        if self.error:
            raise self.error
        return self.text

    async def generate(self, prompt: str, max_output_tokens: int) -> str:
        self.calls.append({"prompt": prompt, "max_output_tokens": max_output_tokens})
        return await self._respond()

    async def generate_with_system(self, system_prompt: str, user_prompt: str, max_output_tokens: int) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "prompt": user_prompt,
            "max_output_tokens": max_output_tokens,
        })
        return await self._respond()

    def fail(self, error: Exception = None):
        self.error = error or UpstreamFailure()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture(autouse=True)
def reset_account_locks():
    plan_enforcement._account_locks.clear()
    yield
    plan_enforcement._account_locks.clear()


# =============================================================================
# API client
# =============================================================================

@pytest.fixture
def client(session_factory, settings, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_generation_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client: TestClient, email: str, password: str = TEST_PASSWORD):
    return client.post("/auth/register", json={"email": email, "password": password})


def login(client: TestClient, email: str, password: str = TEST_PASSWORD):
    return client.post("/auth/login", json={"email": email, "password": password})


def auth_headers(client: TestClient, email: str = "writer@example.com", password: str = TEST_PASSWORD) -> dict:
    register(client, email, password)
    response = login(client, email, password)
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


# =============================================================================
# Stripe webhook helpers
# =============================================================================

def stripe_signature(payload: bytes, secret: str = TEST_WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs deliveries."""
    timestamp = timestamp or int(time.time())
    signed_payload = f"{timestamp}.{payload.decode()}".encode()
    signature = hmac.new(secret.encode(), signed_payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }).encode()


def checkout_completed(user_id, plan_tier, payment_status: str = "paid") -> bytes:
    return stripe_event("checkout.session.completed", {
        "id": "cs_test_1",
        "object": "checkout.session",
        "payment_status": payment_status,
        "metadata": {"user_id": str(user_id), "plan_tier": plan_tier},
    })


def post_webhook(client: TestClient, payload: bytes, signature: str = None):
    headers = {"Content-Type": "application/json"}
    if signature is None:
        signature = stripe_signature(payload)
    if signature:
        headers["Stripe-Signature"] = signature
    return client.post("/billing/webhook", content=payload, headers=headers)
