"""
Unit Tests: Caller-facing services

AssessmentService:
- аутентификация и владение
- этапы 20/50/100 -> фоновые генерации
- сброс поврежденного прогресса

ContentService:
- not-found / permission-denied / resource-exhausted / internal
- переиспользование контента этапа и премиум

ConversationService:
- маршрутизация по интенту
"""

import time
from unittest.mock import AsyncMock

import pytest

from companion_core.container import build_container
from companion_core.core.config import Settings
from companion_core.core.error_handling import (
    AuthenticationError,
    AuthorizationError,
    GenerationError,
    GenerationServiceError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from companion_core.data_access.profile_dao import GenerationStatus, profile_document_id
from companion_core.database.store import (
    PROFILES_COLLECTION,
    PROGRESS_COLLECTION,
    SUBSCRIPTIONS_COLLECTION,
)
from companion_core.generation.schemas import ContentType
from companion_core.services.auth import Caller
from companion_core.services.conversation_service import NUDGE_REPLIES, ConversationService
from companion_core.stats.aggregator import TOTAL_COMPLETED_KEY

USER = "alice"
CHARACTER = "char-1"
PROFILE_ID = profile_document_id(USER, CHARACTER)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        generation_base_delay=0.0,
        generation_max_delay=0.0,
        generation_attempt_timeout=1.0,
        generation_deadline=5.0,
    )


@pytest.fixture
def container(settings, store, text_client):
    return build_container(settings, store=store, client=text_client)


@pytest.fixture
def caller():
    return Caller(USER)


async def answer(container, caller, count, value=4):
    """count ответов подряд, затем ожидание фоновых задач"""
    await container.assessment.request_next_question(caller, USER, CHARACTER)
    responses = []
    for _ in range(count):
        responses.append(await container.assessment.submit_assessment_answer(caller, USER, CHARACTER, value))
    await container.runner.drain(timeout=5.0)
    return responses


# ============================================================================
# ASSESSMENT: AUTH
# ============================================================================

@pytest.mark.asyncio
async def test_unauthenticated_caller(container):
    with pytest.raises(AuthenticationError) as exc_info:
        await container.assessment.submit_assessment_answer(None, USER, CHARACTER, 3)

    assert exc_info.value.code == "unauthenticated"


@pytest.mark.asyncio
async def test_caller_cannot_act_for_another_user(container):
    with pytest.raises(AuthorizationError) as exc_info:
        await container.assessment.request_next_question(Caller("mallory"), USER, CHARACTER)

    assert exc_info.value.code == "permission-denied"


@pytest.mark.asyncio
async def test_character_owned_by_someone_else(container, store, caller):
    await store.set(PROFILES_COLLECTION, PROFILE_ID, {"owner_id": "bob"})

    with pytest.raises(AuthorizationError):
        await container.assessment.request_next_question(caller, USER, CHARACTER)


# ============================================================================
# ASSESSMENT: FLOW
# ============================================================================

@pytest.mark.asyncio
async def test_first_question_creates_profile(container, store, caller):
    response = await container.assessment.request_next_question(caller, USER, CHARACTER)

    assert response.question.id == "O1"
    assert response.answered_count == 0
    assert response.total_questions == 100
    assert response.reset is False
    profile = await store.get(PROFILES_COLLECTION, PROFILE_ID)
    assert profile["owner_id"] == USER


@pytest.mark.asyncio
async def test_invalid_value_is_rejected_before_reading_state(container, store, caller):
    """
    Тест: invalid-argument без создания прогресса или профиля
    """
    with pytest.raises(ValidationError) as exc_info:
        await container.assessment.submit_assessment_answer(caller, USER, CHARACTER, 7)

    assert exc_info.value.code == "invalid-argument"
    assert await store.get(PROGRESS_COLLECTION, f"{USER}:{CHARACTER}") is None
    assert await store.get(PROFILES_COLLECTION, PROFILE_ID) is None


@pytest.mark.asyncio
async def test_answer_without_pending_question(container, caller):
    with pytest.raises(NotFoundError) as exc_info:
        await container.assessment.submit_assessment_answer(caller, USER, CHARACTER, 3)

    assert exc_info.value.code == "not-found"


@pytest.mark.asyncio
async def test_failed_answer_from_another_user_does_not_claim_character(container, store, caller):
    """
    Тест: not-found у чужого пользователя не создает профиль и не мешает владельцу
    """
    with pytest.raises(NotFoundError):
        await container.assessment.submit_assessment_answer(Caller("mallory"), "mallory", CHARACTER, 3)

    assert await store.get(PROFILES_COLLECTION, profile_document_id("mallory", CHARACTER)) is None
    assert await store.get(PROFILES_COLLECTION, PROFILE_ID) is None

    response = await container.assessment.request_next_question(caller, USER, CHARACTER)

    assert response.question.id == "O1"
    profile = await container.assessment.profiles.get(USER, CHARACTER)
    assert profile.owner_id == USER


@pytest.mark.asyncio
async def test_same_character_id_is_separate_per_user(container, caller):
    await answer(container, caller, 3)

    other = await container.assessment.request_next_question(Caller("bob"), "bob", CHARACTER)
    mine = await container.assessment.request_next_question(caller, USER, CHARACTER)

    assert other.answered_count == 0
    assert other.question.id == "O1"
    assert mine.answered_count == 3


@pytest.mark.asyncio
async def test_progress_is_persisted_between_calls(container, caller):
    await answer(container, caller, 3)

    response = await container.assessment.request_next_question(caller, USER, CHARACTER)

    assert response.answered_count == 3
    assert response.question.id == "A1"


@pytest.mark.asyncio
async def test_stage_20_triggers_background_generation(container, store, caller, text_client):
    """
    Тест: 20-й ответ -> stage_completed=20, профиль с сигнатурой, фоновые генерации
    """
    responses = await answer(container, caller, 20, value=3)

    assert [r.stage_completed for r in responses].count(20) == 1
    assert responses[-1].stage_completed == 20
    assert responses[-1].running_scores == {
        "openness": 3.0, "conscientiousness": 3.0, "extraversion": 3.0,
        "agreeableness": 3.0, "neuroticism": 3.0,
    }

    profile = await container.assessment.profiles.get(USER, CHARACTER)
    assert profile.signature == "MMMMM"
    assert profile.analysis_level == 20

    await container.runner.drain(timeout=5.0)

    profile = await container.assessment.profiles.get(USER, CHARACTER)
    assert profile.generation_status == GenerationStatus.COMPLETED.value
    assert profile.details_artifact_id
    assert profile.analysis_artifact_id
    assert text_client.complete.await_count == 2


@pytest.mark.asyncio
async def test_signature_includes_profile_gender(container, store, caller):
    await store.set(PROFILES_COLLECTION, PROFILE_ID, {"owner_id": USER, "gender": "female"})

    await answer(container, caller, 20, value=5)
    await container.runner.drain(timeout=5.0)

    profile = await container.assessment.profiles.get(USER, CHARACTER)
    assert profile.signature.endswith("_female")


@pytest.mark.asyncio
async def test_background_failure_does_not_fail_stage_response(container, caller, text_client):
    """
    Тест: Генерация падает -> ответ этапа успешен, статус профиля failed
    """
    text_client.complete = AsyncMock(side_effect=GenerationServiceError("upstream down"))

    responses = await answer(container, caller, 20)
    await container.runner.drain(timeout=5.0)

    assert responses[-1].stage_completed == 20
    profile = await container.assessment.profiles.get(USER, CHARACTER)
    assert profile.generation_status == GenerationStatus.FAILED.value
    assert profile.details_artifact_id is None


@pytest.mark.asyncio
async def test_store_error_in_one_stage_job_does_not_stop_the_other(container, caller):
    """
    Тест: ConnectionError в character_details -> trait_analysis все равно готов, статус failed
    """
    fetch_or_generate = container.cache.fetch_or_generate
    calls = []

    async def flaky_fetch(signature, content_type, consumer, **kwargs):
        calls.append(content_type)
        if content_type == ContentType.CHARACTER_DETAILS:
            raise ConnectionError("document store unavailable")
        return await fetch_or_generate(signature, content_type, consumer, **kwargs)

    container.cache.fetch_or_generate = flaky_fetch

    responses = await answer(container, caller, 20)
    await container.runner.drain(timeout=5.0)

    assert responses[-1].stage_completed == 20
    assert sorted(c.value for c in calls) == ["character_details", "trait_analysis"]
    profile = await container.assessment.profiles.get(USER, CHARACTER)
    assert profile.generation_status == GenerationStatus.FAILED.value
    assert profile.details_artifact_id is None
    assert profile.analysis_artifact_id
    assert container.runner.stats["failed"] == 0


@pytest.mark.asyncio
async def test_full_assessment_records_completion_stats(container, caller):
    """
    Тест: 100 ответов -> этапы 20/50/100, completed, статистика завершения
    """
    responses = await answer(container, caller, 100, value=2)
    await container.runner.drain(timeout=5.0)

    assert [r.stage_completed for r in responses if r.stage_completed] == [20, 50, 100]
    assert responses[-1].completed is True
    assert responses[-1].next_question is None

    profile = await container.assessment.profiles.get(USER, CHARACTER)
    counts = await container.counters.get_many([f"personality:{profile.signature}", TOTAL_COMPLETED_KEY])
    assert counts == {f"personality:{profile.signature}": 1, TOTAL_COMPLETED_KEY: 1}

    final = await container.assessment.request_next_question(caller, USER, CHARACTER)
    assert final.completed is True
    assert final.question is None


@pytest.mark.asyncio
async def test_corrupted_progress_returns_fresh_first_question(container, store, caller):
    """
    Тест: Поврежденный answered_at -> reset=True и первый вопрос
    """
    await answer(container, caller, 5)
    doc = await store.get(PROGRESS_COLLECTION, f"{USER}:{CHARACTER}")
    doc["answered_questions"][2]["answered_at"] = {"_methodName": "serverTimestamp"}
    await store.set(PROGRESS_COLLECTION, f"{USER}:{CHARACTER}", doc)

    response = await container.assessment.submit_assessment_answer(caller, USER, CHARACTER, 4)

    assert response.reset is True
    assert response.next_question.id == "O1"
    assert response.answered_count == 0
    saved = await store.get(PROGRESS_COLLECTION, f"{USER}:{CHARACTER}")
    assert saved["answered_questions"] == []
    assert saved["current_question"]["id"] == "O1"


# ============================================================================
# CONTENT
# ============================================================================

@pytest.mark.asyncio
async def test_content_without_profile_is_not_found(container, caller):
    with pytest.raises(NotFoundError):
        await container.content.request_cached_or_generated_content(caller, USER, CHARACTER, "character_details")


@pytest.mark.asyncio
async def test_content_before_first_stage_is_not_found(container, caller):
    await answer(container, caller, 5)

    with pytest.raises(NotFoundError) as exc_info:
        await container.content.request_cached_or_generated_content(caller, USER, CHARACTER, "trait_analysis")

    assert exc_info.value.code == "not-found"


@pytest.mark.asyncio
async def test_content_for_foreign_character(container, store, caller):
    await store.set(PROFILES_COLLECTION, PROFILE_ID, {"owner_id": "bob", "signature": "MMMMM"})

    with pytest.raises(AuthorizationError):
        await container.content.request_cached_or_generated_content(caller, USER, CHARACTER, "character_details")


@pytest.mark.asyncio
async def test_stage_content_is_served_from_cache(container, caller, text_client):
    """
    Тест: Контент этапа уже сгенерирован в фоне -> cache hit без новых вызовов
    """
    await answer(container, caller, 20)
    await container.runner.drain(timeout=5.0)
    calls_before = text_client.complete.await_count

    details = await container.content.request_cached_or_generated_content(
        caller, USER, CHARACTER, "character_details"
    )
    analysis = await container.content.request_cached_or_generated_content(
        caller, USER, CHARACTER, "trait_analysis", {"level": 20}
    )

    assert details.cache_hit is True
    assert analysis.cache_hit is True
    assert details.usage_count == 2
    assert set(analysis.payload) == {"career", "romance", "stress"}
    assert text_client.complete.await_count == calls_before


@pytest.mark.asyncio
async def test_analysis_level_above_reached_stage(container, caller):
    await answer(container, caller, 20)

    with pytest.raises(ValidationError):
        await container.content.request_cached_or_generated_content(
            caller, USER, CHARACTER, "trait_analysis", {"level": 50}
        )


@pytest.mark.asyncio
async def test_unknown_content_type(container, caller):
    with pytest.raises(ValidationError):
        await container.content.request_cached_or_generated_content(caller, USER, CHARACTER, "horoscope")


@pytest.mark.asyncio
async def test_group_discussion_requires_concern(container, caller):
    await answer(container, caller, 20)

    with pytest.raises(ValidationError) as exc_info:
        await container.content.request_cached_or_generated_content(
            caller, USER, CHARACTER, "group_discussion", {"concern": "   "}
        )

    assert exc_info.value.code == "invalid-argument"


@pytest.mark.asyncio
async def test_free_quota_for_group_discussion(container, caller):
    """
    Тест: Вторая групповая дискуссия без премиума -> resource-exhausted
    """
    await answer(container, caller, 20)
    params = {"concern": "Should I change my job this year?"}

    first = await container.content.request_cached_or_generated_content(
        caller, USER, CHARACTER, "group_discussion", params
    )
    with pytest.raises(QuotaExceededError) as exc_info:
        await container.content.request_cached_or_generated_content(
            caller, USER, CHARACTER, "group_discussion", params
        )

    assert first.cache_hit is False
    assert first.payload["conclusion"]["summary"]
    assert exc_info.value.code == "resource-exhausted"
    assert exc_info.value.context["upgrade_available"] is True


@pytest.mark.asyncio
async def test_premium_bypasses_quota_and_gets_fresh_discussion(container, store, caller, text_client):
    await answer(container, caller, 20)
    await store.set(SUBSCRIPTIONS_COLLECTION, USER, {"status": "active", "expires_at": time.time() + 3600})
    params = {"concern": "Should I change my job this year?"}

    first = await container.content.request_cached_or_generated_content(
        caller, USER, CHARACTER, "group_discussion", params
    )
    second = await container.content.request_cached_or_generated_content(
        caller, USER, CHARACTER, "group_discussion", params
    )

    assert second.cache_hit is False
    assert second.artifact_id != first.artifact_id
    assert text_client.complete.await_args.kwargs["model"] == container.settings.premium_generation_model


@pytest.mark.asyncio
async def test_expired_subscription_is_not_premium(container, store):
    await store.set(SUBSCRIPTIONS_COLLECTION, USER, {"status": "active", "expires_at": time.time() - 60})

    assert await container.entitlements.is_premium(USER) is False


@pytest.mark.asyncio
async def test_discussion_is_shared_across_same_signature(container, store, text_client):
    """
    Тест: Два пользователя с одной сигнатурой и категорией -> один артефакт
    """
    for user, character in [("alice", "char-a"), ("bob", "char-b")]:
        await store.set(PROFILES_COLLECTION, profile_document_id(user, character), {
            "owner_id": user,
            "signature": "HHLLL",
            "confirmed_scores": {"openness": 4.5, "conscientiousness": 3.8, "extraversion": 1.2,
                                 "agreeableness": 2.0, "neuroticism": 1.9},
            "analysis_level": 20,
        })

    first = await container.content.request_cached_or_generated_content(
        Caller("alice"), "alice", "char-a", "group_discussion", {"concern": "My boss ignores me"}
    )
    second = await container.content.request_cached_or_generated_content(
        Caller("bob"), "bob", "char-b", "group_discussion", {"concern": "Work is stressful lately"}
    )

    assert first.cache_hit is False
    assert second.cache_hit is True
    assert second.artifact_id == first.artifact_id


@pytest.mark.asyncio
async def test_generation_failure_maps_to_internal(container, caller, text_client):
    await answer(container, caller, 20)
    await container.runner.drain(timeout=5.0)
    text_client.complete = AsyncMock(side_effect=GenerationServiceError("upstream down"))

    with pytest.raises(GenerationError) as exc_info:
        await container.content.request_cached_or_generated_content(
            caller, USER, CHARACTER, "group_discussion", {"concern": "Should I move to a new apartment?"}
        )

    assert exc_info.value.code == "internal"


@pytest.mark.asyncio
async def test_rate_content(container, caller):
    await answer(container, caller, 20)
    await container.runner.drain(timeout=5.0)
    details = await container.content.request_cached_or_generated_content(
        caller, USER, CHARACTER, "character_details"
    )

    result = await container.content.rate_content(caller, USER, details.artifact_id, 4)

    assert result == {"artifact_id": details.artifact_id, "rating_count": 1, "average_rating": 4.0}


# ============================================================================
# CONVERSATION
# ============================================================================

@pytest.fixture
def conversation(container):
    return ConversationService(container.assessment, container.assessment.profiles, choose=lambda replies: replies[0])


@pytest.mark.asyncio
async def test_numeric_message_answers_pending_question(conversation, container, caller):
    await container.assessment.request_next_question(caller, USER, CHARACTER)

    result = await conversation.handle_message(caller, USER, CHARACTER, " 4 ")

    assert result.action == "answer_recorded"
    assert result.answer.answered_count == 1


@pytest.mark.asyncio
async def test_numeric_message_without_question_is_free_chat(conversation, caller):
    result = await conversation.handle_message(caller, USER, CHARACTER, "3")

    assert result.action == "free_chat"
    assert result.intent == "free_chat"


@pytest.mark.asyncio
async def test_numeric_message_for_unstarted_character_leaves_no_profile(conversation, store):
    result = await conversation.handle_message(Caller("mallory"), "mallory", CHARACTER, "3")

    assert result.action == "free_chat"
    assert await store.get(PROFILES_COLLECTION, profile_document_id("mallory", CHARACTER)) is None


@pytest.mark.asyncio
async def test_topic_request_starts_assessment(conversation, caller):
    result = await conversation.handle_message(caller, USER, CHARACTER, "何か話題ある？")

    assert result.action == "question"
    assert result.question.question.id == "O1"


@pytest.mark.asyncio
async def test_data_query_is_handed_to_caller(conversation, caller):
    result = await conversation.handle_message(caller, USER, CHARACTER, "明日の予定は？")

    assert result.action == "data_query"
    assert result.day == "tomorrow"


@pytest.mark.asyncio
async def test_low_information_gets_nudge(conversation, store, caller):
    await store.set(PROFILES_COLLECTION, PROFILE_ID, {"owner_id": USER, "gender": "female"})

    result = await conversation.handle_message(caller, USER, CHARACTER, "ｳｳｳ")

    assert result.action == "nudge"
    assert result.reply == NUDGE_REPLIES["female"][0]


@pytest.mark.asyncio
async def test_free_chat_passes_text_through(conversation, caller):
    result = await conversation.handle_message(caller, USER, CHARACTER, "I had a long day at the office")

    assert result.action == "free_chat"
    assert result.text == "I had a long day at the office"


@pytest.mark.asyncio
async def test_conversation_requires_authentication(conversation):
    with pytest.raises(AuthenticationError):
        await conversation.handle_message(None, USER, CHARACTER, "hello there")


# ============================================================================
# CONTAINER LIFECYCLE
# ============================================================================

@pytest.mark.asyncio
async def test_container_start_and_shutdown_drain_background_work(container, caller):
    await container.start()
    assert container.started is True

    await container.assessment.request_next_question(caller, USER, CHARACTER)
    for _ in range(20):
        await container.assessment.submit_assessment_answer(caller, USER, CHARACTER, 4)

    await container.shutdown(timeout=5.0)

    assert container.started is False
    assert container.runner.pending == 0
    assert container.runner.stats["succeeded"] >= 1
