from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterResponse(BaseModel):
    message: str
    user_id: int


class UserResponse(BaseModel):
    id: int
    email: str
    plan_tier: str
    used_tokens: int
    max_tokens: int
    remaining_tokens: int
    created_at: Optional[str] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class PlanChangeRequest(BaseModel):
    plan_tier: Literal["free", "pro", "premium"]


class PlanChangeResponse(BaseModel):
    message: str
    plan_tier: str
    max_tokens: int


class ArticleResponse(BaseModel):
    id: int
    topic: str
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
