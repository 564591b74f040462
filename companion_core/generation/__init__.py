"""
Generation - структурированный контент от генеративного текстового сервиса

Публичный API:
- GenerationPipeline - prompt, вызов, очистка, схема, retry
- ContentType - типы контента
- TextGenerationClient - клиенты OpenAI / Anthropic
"""

from .clients import AnthropicTextClient, OpenAITextClient, TextGenerationClient, create_text_client
from .perspectives import Perspective, derive_perspectives, detect_topic_category
from .pipeline import GenerationPipeline, PipelineConfig, parse_payload, strip_code_fences
from .schemas import ContentType, parse_content_type, schema_for

__all__ = [
    "GenerationPipeline",
    "PipelineConfig",
    "parse_payload",
    "strip_code_fences",

    "ContentType",
    "parse_content_type",
    "schema_for",

    "TextGenerationClient",
    "OpenAITextClient",
    "AnthropicTextClient",
    "create_text_client",

    "Perspective",
    "derive_perspectives",
    "detect_topic_category",
]
