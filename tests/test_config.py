"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from app.core.config import Settings

from conftest import make_settings


def test_defaults(monkeypatch):
    for key in ("PLAN_FREE_MAX_TOKENS", "TOKENS_PER_WORD", "ACCESS_TOKEN_EXPIRE_DAYS"):
        monkeypatch.delenv(key, raising=False)
    settings = Settings(_env_file=None)

    assert settings.PLAN_FREE_MAX_TOKENS == 20000
    assert settings.PLAN_PRO_MAX_TOKENS == 200000
    assert settings.PLAN_PREMIUM_MAX_TOKENS == 1000000
    assert settings.TOKENS_PER_WORD == 2
    assert settings.ACCESS_TOKEN_EXPIRE_DAYS == 7


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PLAN_PRO_MAX_TOKENS", "123")
    monkeypatch.setenv("CHARGE_PROMPT_TOKENS", "true")

    settings = Settings(_env_file=None)

    assert settings.PLAN_PRO_MAX_TOKENS == 123
    assert settings.CHARGE_PROMPT_TOKENS is True


def test_settings_are_immutable():
    settings = make_settings()
    with pytest.raises(ValidationError):
        settings.PLAN_FREE_MAX_TOKENS = 1


def test_postgres_url_normalized():
    settings = make_settings(DATABASE_URL="postgres://u:p@host:5432/db")
    assert settings.sqlalchemy_database_url == "postgresql://u:p@host:5432/db"


def test_cors_origins_split():
    settings = make_settings(CORS_ORIGINS="https://a.example, https://b.example,")
    assert settings.cors_origins == ["https://a.example", "https://b.example"]


def test_default_jwt_secret_detected():
    assert make_settings(JWT_SECRET="CHANGE_ME").uses_default_jwt_secret
    assert not make_settings().uses_default_jwt_secret
