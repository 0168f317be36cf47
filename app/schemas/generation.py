from typing import Optional

from pydantic import BaseModel, Field


class GenerateRequest(BaseModel):
    topic: str = Field(min_length=1)
    target_words: Optional[int] = Field(default=None, ge=1)
    tone: str = "professional"


class GenerateResponse(BaseModel):
    article_id: int
    title: str
    article: str
    tokens_charged: int
    used_tokens: int
    max_tokens: int
    remaining_tokens: int


class DemoArticleRequest(BaseModel):
    topic: str = Field(min_length=1)
    tone: str = "professional"
    length: str = "medium"


class DemoArticleResponse(BaseModel):
    title: str
    content: str
