from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship, validates
from sqlalchemy.sql import func

from app.core.plan_limits import PlanTier, normalize_plan_tier
from app.db.base import Base


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("used_tokens >= 0", name="ck_users_used_tokens_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)  # Stored lowercased
    hashed_password = Column(String, nullable=False)
    plan_tier = Column(String, default=PlanTier.FREE.value, nullable=False)
    used_tokens = Column(Integer, default=0, nullable=False)  # Cumulative, only changed by the usage ledger
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    articles = relationship(
        "Article",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @validates("plan_tier")
    def _normalize_plan_tier(self, key, value):
        return normalize_plan_tier(value).value

    @property
    def tier(self) -> PlanTier:
        """Plan tier as stored, with legacy or corrupt values read as free."""
        return normalize_plan_tier(self.plan_tier)
