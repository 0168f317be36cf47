"""Application configuration via pydantic-settings.

Built once per process by get_settings() and passed by reference into the
plan limits, auth helpers, generation gateway and billing processor.
"""
from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "CHANGE_ME"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    # ── General ────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"
    FRONTEND_URL: str = "http://localhost:3000"

    # ── Database ───────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./app.db"

    # ── Auth ───────────────────────────────────────────────
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    BCRYPT_ROUNDS: int = 12
    ADMIN_API_KEY: str = ""

    # ── Plans (cost units = provider tokens) ───────────────
    PLAN_FREE_MAX_TOKENS: int = 20000
    PLAN_PRO_MAX_TOKENS: int = 200000
    PLAN_PREMIUM_MAX_TOKENS: int = 1000000

    # ── Cost estimation ────────────────────────────────────
    TOKENS_PER_WORD: int = 2
    DEFAULT_TARGET_WORDS: int = 1200
    MAX_TARGET_WORDS: int = 5000
    CHARGE_PROMPT_TOKENS: bool = False
    CHARS_PER_TOKEN: int = 4

    # ── Generation provider ────────────────────────────────
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4.1-mini"
    GENERATION_TIMEOUT_SECONDS: float = 60.0
    GENERATION_MAX_RETRIES: int = 0
    DEMO_MAX_OUTPUT_TOKENS: int = 900

    # ── Stripe ─────────────────────────────────────────────
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_PRICE_ID_PRO: str = ""
    STRIPE_PRICE_ID_PREMIUM: str = ""

    # ── History ────────────────────────────────────────────
    HISTORY_DEFAULT_LIMIT: int = 20
    HISTORY_MAX_LIMIT: int = 100

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def sqlalchemy_database_url(self) -> str:
        # Normalize postgres:// -> postgresql:// for SQLAlchemy
        if self.DATABASE_URL.startswith("postgres://"):
            return "postgresql://" + self.DATABASE_URL[len("postgres://"):]
        return self.DATABASE_URL

    @property
    def uses_default_jwt_secret(self) -> bool:
        return self.JWT_SECRET == DEFAULT_JWT_SECRET


@lru_cache()
def get_settings() -> Settings:
    return Settings()
