"""
Общие fixtures для unit-тестов
"""

from unittest.mock import AsyncMock

import pytest

from companion_core.cache.manager import ContentCacheManager
from companion_core.database.memory_store import InMemoryDocumentStore
from companion_core.generation.clients import TextGenerationClient
from companion_core.generation.pipeline import GenerationPipeline, PipelineConfig
from tests.factories import FakeClock, as_model_output, payload_for_prompt


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def fast_pipeline_config():
    """Без задержек между попытками"""
    return PipelineConfig(
        max_attempts=3,
        base_delay=0.0,
        max_delay=0.0,
        attempt_timeout=1.0,
        deadline=5.0,
        model="test-model",
        premium_model="test-premium-model",
    )


@pytest.fixture
def text_client():
    """Mock генеративного сервиса: отвечает валидным JSON под промпт"""
    client = AsyncMock(spec=TextGenerationClient)

    async def complete(prompt, **kwargs):
        return as_model_output(payload_for_prompt(prompt))

    client.complete = AsyncMock(side_effect=complete)
    return client


@pytest.fixture
def pipeline(text_client, fast_pipeline_config):
    return GenerationPipeline(text_client, fast_pipeline_config)


@pytest.fixture
def cache_manager(store, pipeline, clock):
    return ContentCacheManager(store, pipeline, clock=clock)
