"""
Generation Pipeline

prompt -> внешний сервис -> снятие ```json ограждения -> json -> схема

Временные сбои (ошибка сервиса, таймаут попытки, malformed ответ)
повторяются с exponential backoff. Весь вызов ограничен общим дедлайном.
После исчерпания попыток - GenerationError(cause); ничего не сохраняется,
сохранение - забота вызывающего.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..core.config import Settings
from ..core.error_handling import GenerationError, GenerationServiceError, MalformedOutputError
from ..core.retry import RetryableOperation, RetryConfig, RetryExhaustedError
from .clients import TextGenerationClient
from .prompts import build_prompt
from .schemas import ContentType, parse_content_type, schema_for

logger = logging.getLogger(__name__)

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_-]*\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


@dataclass
class PipelineConfig:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    attempt_timeout: float = 60.0
    deadline: float = 180.0
    model: Optional[str] = None
    premium_model: Optional[str] = None
    max_tokens: int = 2000
    temperature: float = 0.7

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            max_attempts=settings.generation_max_attempts,
            base_delay=settings.generation_base_delay,
            max_delay=settings.generation_max_delay,
            attempt_timeout=settings.generation_attempt_timeout,
            deadline=settings.generation_deadline,
            model=settings.generation_model,
            premium_model=settings.premium_generation_model,
            max_tokens=settings.generation_max_tokens,
            temperature=settings.generation_temperature,
        )


def strip_code_fences(raw: str) -> str:
    """Снимает markdown ограждение ```json ... ``` (или просто ``` ... ```)"""
    content = (raw or "").strip()
    if content.startswith("```"):
        content = _FENCE_OPEN.sub("", content, count=1)
        content = _FENCE_CLOSE.sub("", content, count=1)
    return content.strip()


def parse_payload(raw: str, schema: Type[BaseModel]) -> Dict[str, Any]:
    """
    Разбирает ответ модели в payload по схеме

    Raises:
        MalformedOutputError: не JSON-объект или не проходит схему
    """
    content = strip_code_fences(raw)
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise MalformedOutputError(f"Response is not valid JSON: {e.msg}", raw_output=raw) from e

    if not isinstance(data, dict):
        raise MalformedOutputError(
            f"Expected a JSON object, got {type(data).__name__}", raw_output=raw
        )

    try:
        return schema.model_validate(data).model_dump()
    except PydanticValidationError as e:
        raise MalformedOutputError(
            f"Response does not match {schema.__name__}: {e.error_count()} errors", raw_output=raw
        ) from e


class GenerationPipeline:
    """Генерация структурированного контента с retry и таймаутами"""

    def __init__(self, client: TextGenerationClient, config: Optional[PipelineConfig] = None):
        self.client = client
        self.config = config or PipelineConfig()

    async def generate(
        self,
        content_type: Any,
        parameters: Mapping[str, Any],
        premium: bool = False
    ) -> Dict[str, Any]:
        """
        Payload для типа контента

        Raises:
            ValidationError: неизвестный тип или не хватает параметров (без retry)
            GenerationError: попытки или дедлайн исчерпаны
        """
        content_type = parse_content_type(content_type)
        parameters = dict(parameters or {})
        system_prompt, prompt = build_prompt(content_type, parameters)
        schema = schema_for(content_type, parameters)
        model = self.config.premium_model if premium and self.config.premium_model else self.config.model

        operation = RetryableOperation(
            f"generate:{content_type.value}",
            RetryConfig(
                max_attempts=self.config.max_attempts,
                base_delay=self.config.base_delay,
                max_delay=self.config.max_delay,
                exponential_base=2.0,
                jitter=False,
                retry_exceptions=(GenerationServiceError, MalformedOutputError),
            ),
        )

        try:
            payload = await asyncio.wait_for(
                operation.execute(self._attempt, content_type, prompt, system_prompt, model, schema),
                timeout=self.config.deadline,
            )
        except RetryExhaustedError as e:
            raise GenerationError(content_type.value, e.last_error) from e
        except asyncio.TimeoutError as e:
            logger.error(
                f"Generation of {content_type.value} exceeded deadline of {self.config.deadline}s "
                f"after {operation.attempt} attempts"
            )
            raise GenerationError(content_type.value, e) from e

        logger.info(f"Generated {content_type.value} in {operation.attempt} attempt(s) (model={model})")
        return payload

    async def _attempt(
        self,
        content_type: ContentType,
        prompt: str,
        system_prompt: str,
        model: Optional[str],
        schema: Type[BaseModel]
    ) -> Dict[str, Any]:
        try:
            raw = await asyncio.wait_for(
                self.client.complete(
                    prompt,
                    system_prompt=system_prompt,
                    model=model,
                    max_tokens=self.config.max_tokens,
                    temperature=self.config.temperature,
                ),
                timeout=self.config.attempt_timeout,
            )
        except asyncio.TimeoutError as e:
            raise GenerationServiceError(
                f"{content_type.value} attempt timed out after {self.config.attempt_timeout}s"
            ) from e

        return parse_payload(raw, schema)
