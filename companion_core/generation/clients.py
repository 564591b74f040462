from abc import ABC, abstractmethod
from typing import Optional

import anthropic
import openai
from anthropic import AsyncAnthropic
from openai import AsyncOpenAI

from ..core.config import Settings
from ..core.error_handling import GenerationServiceError


class TextGenerationClient(ABC):
    """Prompt in, free-form text out"""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 2000,
        temperature: float = 0.7
    ) -> str:
        pass


class OpenAITextClient(TextGenerationClient):
    """OpenAI chat completions client"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "gpt-4o-mini",
        timeout: float = 60.0,
        client: Optional[AsyncOpenAI] = None
    ):
        # SDK retries are off: GenerationPipeline owns the retry policy
        self.client = client or AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self.default_model = default_model

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 2000,
        temperature: float = 0.7
    ) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self.client.chat.completions.create(
                model=model or self.default_model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature
            )
        except openai.OpenAIError as e:
            raise GenerationServiceError(f"OpenAI API error: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationServiceError("OpenAI API returned an empty completion")
        return content


class AnthropicTextClient(TextGenerationClient):
    """Claude/Anthropic messages client"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        default_model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 60.0,
        client: Optional[AsyncAnthropic] = None
    ):
        self.client = client or AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.default_model = default_model

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: int = 2000,
        temperature: float = 0.7
    ) -> str:
        try:
            response = await self.client.messages.create(
                model=model or self.default_model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system_prompt or "",
                messages=[{"role": "user", "content": prompt}]
            )
        except anthropic.AnthropicError as e:
            raise GenerationServiceError(f"Anthropic API error: {e}") from e

        text_blocks = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        if not text_blocks:
            raise GenerationServiceError("Anthropic API returned no text content")
        return "".join(text_blocks)


def create_text_client(settings: Settings) -> TextGenerationClient:
    """Client for the configured provider"""
    provider = settings.generation_provider.lower()
    if provider == "openai":
        return OpenAITextClient(
            api_key=settings.openai_api_key,
            default_model=settings.generation_model,
            timeout=settings.generation_attempt_timeout
        )
    if provider == "anthropic":
        return AnthropicTextClient(
            api_key=settings.anthropic_api_key,
            default_model=settings.generation_model,
            timeout=settings.generation_attempt_timeout
        )
    raise ValueError(f"Unknown generation provider: {settings.generation_provider}")
