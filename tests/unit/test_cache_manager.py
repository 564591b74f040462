"""
Unit Tests: Content Cache Manager

- Reuse law: промах, затем попадание у другого потребителя
- Exclusion law: просмотренный артефакт не выдается повторно
- Популярность: самый используемый артефакт первым
- История просмотров и счетчики выдачи
- Оценки артефактов
"""

from unittest.mock import AsyncMock

import pytest

from companion_core.cache.manager import ContentCacheManager
from companion_core.cache.models import ConsumerKey
from companion_core.core.error_handling import GenerationError, NotFoundError, ValidationError
from companion_core.database.store import ARTIFACTS_COLLECTION
from companion_core.generation.schemas import ContentType
from tests.factories import FakeClock, character_details_payload

SCORES = {"openness": 4.5, "conscientiousness": 3.8, "extraversion": 1.2, "agreeableness": 2.0, "neuroticism": 1.9}
PARAMS = {"scores": SCORES, "stage": 100}


@pytest.fixture
def alice():
    return ConsumerKey("alice", "char-a")


@pytest.fixture
def bob():
    return ConsumerKey("bob", "char-b")


# ============================================================================
# REUSE / EXCLUSION
# ============================================================================

@pytest.mark.asyncio
async def test_scenario_b_second_consumer_reuses_artifact(cache_manager, text_client, alice, bob):
    """
    Тест: "HHLLL" дважды от разных потребителей -> miss, затем hit с тем же id
    """
    first = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)
    second = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, bob, set(), PARAMS)

    assert first.cache_hit is False
    assert second.cache_hit is True
    assert second.artifact.id == first.artifact.id
    assert first.artifact.usage_count == 1
    assert second.artifact.usage_count == 2
    assert text_client.complete.await_count == 1


@pytest.mark.asyncio
async def test_exclusion_law_forces_new_generation(cache_manager, text_client, alice):
    """
    Тест: Потребитель уже видел единственный артефакт -> новая генерация
    """
    first = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)

    history = await cache_manager.viewed_history(alice)
    second = await cache_manager.fetch_or_generate(
        "HHLLL", ContentType.CHARACTER_DETAILS, alice, history.artifact_ids, PARAMS
    )

    assert second.cache_hit is False
    assert second.artifact.id != first.artifact.id
    assert text_client.complete.await_count == 2


@pytest.mark.asyncio
async def test_most_used_artifact_is_preferred(store, pipeline, alice, bob):
    """
    Тест: Из нескольких артефактов выбирается самый популярный непросмотренный
    """
    ids = iter(["art-1", "art-2"])
    manager = ContentCacheManager(store, pipeline, clock=FakeClock(), id_factory=lambda: next(ids))

    await manager.fetch_or_generate("MMMMM", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)
    await manager.fetch_or_generate("MMMMM", ContentType.CHARACTER_DETAILS, alice, {"art-1"}, PARAMS)
    await store.set(ARTIFACTS_COLLECTION, "art-2", {"usage_count": 10}, merge=True)

    result = await manager.fetch_or_generate("MMMMM", ContentType.CHARACTER_DETAILS, bob, set(), PARAMS)

    assert result.cache_hit is True
    assert result.artifact.id == "art-2"
    assert result.artifact.usage_count == 11


@pytest.mark.asyncio
async def test_key_includes_content_type_and_variant(cache_manager, text_client, alice, bob):
    await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS, variant="stage-100")

    other_variant = await cache_manager.fetch_or_generate(
        "HHLLL", ContentType.CHARACTER_DETAILS, bob, set(), {**PARAMS, "stage": 20}, variant="stage-20"
    )
    other_type = await cache_manager.fetch_or_generate(
        "HHLLL", ContentType.TRAIT_ANALYSIS, bob, set(), {"scores": SCORES, "level": 20}, variant="level-20"
    )

    assert other_variant.cache_hit is False
    assert other_type.cache_hit is False
    assert set(other_type.payload) == {"career", "romance", "stress"}


@pytest.mark.asyncio
async def test_hit_updates_last_used_at(cache_manager, alice, bob):
    first = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)
    second = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, bob, set(), PARAMS)

    stored = await cache_manager.get_artifact(first.artifact.id)
    assert second.artifact.last_used_at > first.artifact.last_used_at
    assert stored.last_used_at == second.artifact.last_used_at
    assert stored.usage_count == 2


# ============================================================================
# FAILURES
# ============================================================================

@pytest.mark.asyncio
async def test_generation_failure_persists_nothing(store, alice, clock):
    """
    Тест: GenerationError при промахе -> артефакт и история не сохраняются
    """
    pipeline = AsyncMock()
    pipeline.generate = AsyncMock(side_effect=GenerationError("character_details", RuntimeError("down")))
    manager = ContentCacheManager(store, pipeline, clock=clock)

    with pytest.raises(GenerationError):
        await manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)

    assert await store.query(ARTIFACTS_COLLECTION, {"signature": "HHLLL"}) == []
    history = await manager.viewed_history(alice)
    assert history.artifact_ids == []
    assert history.usage == {}


@pytest.mark.asyncio
async def test_empty_signature_is_rejected(cache_manager, alice):
    with pytest.raises(ValidationError):
        await cache_manager.fetch_or_generate("", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)


# ============================================================================
# VIEW HISTORY
# ============================================================================

@pytest.mark.asyncio
async def test_view_history_tracks_ids_and_usage(cache_manager, alice, bob):
    first = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)
    await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)

    history = await cache_manager.viewed_history(alice)

    assert history.artifact_ids == [first.artifact.id]
    assert history.usage_for("character_details") == 2
    assert history.usage_for("group_discussion") == 0
    assert (await cache_manager.viewed_history(bob)).artifact_ids == []


# ============================================================================
# RATING
# ============================================================================

@pytest.mark.asyncio
async def test_rating_accumulates(cache_manager, alice):
    """
    Тест: Оценки копятся в rating_sum / rating_count
    """
    result = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)

    await cache_manager.rate_artifact(result.artifact.id, 5)
    rated = await cache_manager.rate_artifact(result.artifact.id, 2)

    assert rated.rating_sum == 7
    assert rated.rating_count == 2
    assert rated.average_rating == 3.5
    assert rated.payload == character_details_payload()


@pytest.mark.asyncio
@pytest.mark.parametrize("rating", [0, 6, 4.5, "5", True])
async def test_invalid_rating(cache_manager, alice, rating):
    result = await cache_manager.fetch_or_generate("HHLLL", ContentType.CHARACTER_DETAILS, alice, set(), PARAMS)

    with pytest.raises(ValidationError):
        await cache_manager.rate_artifact(result.artifact.id, rating)


@pytest.mark.asyncio
async def test_rating_unknown_artifact(cache_manager):
    with pytest.raises(NotFoundError):
        await cache_manager.rate_artifact("missing", 4)
