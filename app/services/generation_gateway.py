"""
Client for the text generation provider (OpenAI Responses API).
Every provider error, timeout or malformed response surfaces as UpstreamFailure.
"""
import logging
from functools import lru_cache
from typing import Any, Optional

import openai
from fastapi import Depends
from openai import AsyncOpenAI

from app.core.config import Settings, get_settings
from app.core.exceptions import ServiceUnavailable, UpstreamFailure

logger = logging.getLogger(__name__)

EMPTY_RESPONSE_MESSAGE = "Generation returned no content"


def extract_text(response: Any) -> Optional[str]:
    """
    Pull the generated text out of a Responses API result.
    Returns None when the response does not have the expected shape.
    """
    text = getattr(response, "output_text", None)
    if isinstance(text, str) and text.strip():
        return text
    try:
        text = response.output[0].content[0].text
    except (AttributeError, IndexError, KeyError, TypeError):
        return None
    if isinstance(text, str) and text.strip():
        return text
    return None


def derive_title(text: Optional[str]) -> str:
    """First non-blank line of the text, without markdown heading marks or a 'Title:' label."""
    for line in (text or "").splitlines():
        line = line.strip().lstrip("#").strip()
        if line.lower().startswith("title:"):
            line = line[len("title:"):].strip()
        line = line.strip("*\"").strip()
        if line:
            return line
    return "Untitled"


def build_article_prompt(topic: str, target_words: int, tone: str = "professional") -> tuple[str, str]:
    """System/user prompt pair for the metered article generation."""
    system_prompt = (
        "You are an experienced blog writer. Start with a single-line title, "
        "then write the article in plain text."
    )
    user_prompt = f"Write a {target_words}-word blog article about {topic}.\nTone: {tone}."
    return system_prompt, user_prompt


def build_demo_prompt(topic: str, tone: str = "professional", length: str = "medium") -> str:
    return (
        f'Write a {length} blog article about "{topic}".\n'
        f"Tone: {tone}.\n"
        "Include:\n"
        "- SEO title\n"
        "- Introduction\n"
        "- Subheadings\n"
        "- Conclusion\n"
        "Plain text only.\n"
    )


class GenerationGateway:
    def __init__(self, settings: Settings, client: Optional[AsyncOpenAI] = None):
        self.model = settings.OPENAI_MODEL
        self.client = client
        if self.client is None and settings.OPENAI_API_KEY:
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.GENERATION_TIMEOUT_SECONDS,
                max_retries=settings.GENERATION_MAX_RETRIES,
            )

    async def generate(self, prompt: str, max_output_tokens: int) -> str:
        """Single-shot prompt."""
        return await self._create(input=prompt, max_output_tokens=max_output_tokens)

    async def generate_with_system(self, system_prompt: str, user_prompt: str, max_output_tokens: int) -> str:
        """Structured system/user prompt pair."""
        return await self._create(
            instructions=system_prompt,
            input=user_prompt,
            max_output_tokens=max_output_tokens,
        )

    async def _create(self, **kwargs) -> str:
        if self.client is None:
            logger.error("[Generation] OPENAI_API_KEY not set; cannot call provider")
            raise ServiceUnavailable("Generation provider not configured")

        try:
            response = await self.client.responses.create(model=self.model, **kwargs)
        except openai.APITimeoutError:
            logger.warning("[Generation] Provider call timed out (model=%s)", self.model)
            raise UpstreamFailure()
        except openai.OpenAIError as e:
            logger.error("[Generation] Provider call failed: %s", e)
            raise UpstreamFailure()

        text = extract_text(response)
        if text is None:
            logger.error("[Generation] Provider response had no text output (model=%s)", self.model)
            raise UpstreamFailure(EMPTY_RESPONSE_MESSAGE)
        return text


@lru_cache()
def _build_gateway(settings: Settings) -> GenerationGateway:
    return GenerationGateway(settings)


def get_generation_gateway(settings: Settings = Depends(get_settings)) -> GenerationGateway:
    return _build_gateway(settings)
