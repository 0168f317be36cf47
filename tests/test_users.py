"""Tests for the current-user profile, article history and manual plan change."""

import pytest

from app.models.user import User
from app.services.usage_ledger import charge, record_generation

from conftest import auth_headers, make_settings


def _user_id(db, email="writer@example.com"):
    return db.query(User.id).filter(User.email == email).scalar()


class TestProfile:
    def test_new_account(self, client):
        headers = auth_headers(client)

        data = client.get("/users/me", headers=headers).json()

        assert data["plan_tier"] == "free"
        assert data["used_tokens"] == 0
        assert data["max_tokens"] == 20000
        assert data["remaining_tokens"] == 20000
        assert data["created_at"]

    def test_reflects_latest_charge(self, client, db):
        headers = auth_headers(client)
        charge(db, _user_id(db), 1500)

        data = client.get("/users/me", headers=headers).json()

        assert data["used_tokens"] == 1500
        assert data["remaining_tokens"] == 18500

    def test_remaining_never_negative(self, client, db):
        headers = auth_headers(client)
        charge(db, _user_id(db), 25000)

        assert client.get("/users/me", headers=headers).json()["remaining_tokens"] == 0


class TestArticleHistory:
    def test_newest_first(self, client, db):
        headers = auth_headers(client)
        user_id = _user_id(db)
        for topic in ("one", "two", "three"):
            record_generation(db, user_id, topic, f"about {topic}")

        response = client.get("/users/me/articles", headers=headers)

        assert response.status_code == 200
        assert [a["topic"] for a in response.json()] == ["three", "two", "one"]

    def test_limit_is_clamped(self, client, db):
        headers = auth_headers(client)
        user_id = _user_id(db)
        for i in range(3):
            record_generation(db, user_id, f"topic {i}", "content")

        assert len(client.get("/users/me/articles?limit=2", headers=headers).json()) == 2
        assert len(client.get("/users/me/articles?limit=0", headers=headers).json()) == 1
        assert len(client.get("/users/me/articles?limit=100000", headers=headers).json()) == 3

    def test_other_accounts_not_visible(self, client, db):
        auth_headers(client, "other@example.com")
        record_generation(db, _user_id(db, "other@example.com"), "private", "content")
        headers = auth_headers(client)

        assert client.get("/users/me/articles", headers=headers).json() == []


class TestChangePlan:
    def test_allowed_without_admin_key_configured(self, client, db):
        headers = auth_headers(client)
        charge(db, _user_id(db), 700)

        response = client.post("/users/me/plan", json={"plan_tier": "pro"}, headers=headers)

        assert response.status_code == 200
        assert response.json() == {"message": "Plan updated", "plan_tier": "pro", "max_tokens": 200000}
        # Usage carries over
        me = client.get("/users/me", headers=headers).json()
        assert me["plan_tier"] == "pro"
        assert me["used_tokens"] == 700

    def test_downgrade(self, client):
        headers = auth_headers(client)
        client.post("/users/me/plan", json={"plan_tier": "premium"}, headers=headers)

        response = client.post("/users/me/plan", json={"plan_tier": "free"}, headers=headers)

        assert response.json()["max_tokens"] == 20000

    def test_invalid_tier(self, client):
        headers = auth_headers(client)
        response = client.post("/users/me/plan", json={"plan_tier": "enterprise"}, headers=headers)
        assert response.status_code == 400

    def test_requires_authentication(self, client):
        response = client.post("/users/me/plan", json={"plan_tier": "pro"})
        assert response.status_code == 401


class TestChangePlanWithAdminKey:
    @pytest.fixture
    def settings(self):
        return make_settings(ADMIN_API_KEY="admin-secret")

    def test_rejected_without_admin_key(self, client, db):
        headers = auth_headers(client)

        response = client.post("/users/me/plan", json={"plan_tier": "premium"}, headers=headers)

        assert response.status_code == 403
        db.expire_all()
        assert db.query(User).filter(User.email == "writer@example.com").first().plan_tier == "free"

    def test_rejected_with_wrong_admin_key(self, client):
        headers = auth_headers(client)
        headers["X-Admin-Key"] = "guess"

        response = client.post("/users/me/plan", json={"plan_tier": "premium"}, headers=headers)

        assert response.status_code == 403

    def test_accepted_with_admin_key(self, client):
        headers = auth_headers(client)
        headers["X-Admin-Key"] = "admin-secret"

        response = client.post("/users/me/plan", json={"plan_tier": "premium"}, headers=headers)

        assert response.status_code == 200
        assert response.json()["plan_tier"] == "premium"

    def test_missing_token_is_unauthenticated_not_forbidden(self, client):
        response = client.post("/users/me/plan", json={"plan_tier": "premium"}, headers={"X-Admin-Key": "admin-secret"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing token"

    def test_missing_token_and_admin_key(self, client):
        response = client.post("/users/me/plan", json={"plan_tier": "premium"})
        assert response.status_code == 401
