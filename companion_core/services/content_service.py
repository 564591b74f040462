"""
Content Service - контент из кэша по сигнатуре или новая генерация

Порядок проверок:
1. аутентификация и владение персонажем
2. профиль с сигнатурой существует
3. free-квота по типу контента (премиум без ограничений)
4. параметры типа контента -> кэш / генерация
"""

import time
from typing import Any, Dict, Mapping, Optional, Tuple

from ..assessment.models import TraitScores
from ..cache.manager import ContentCacheManager
from ..cache.models import ConsumerKey
from ..core.error_handling import (
    AuthorizationError,
    GenerationError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from ..core.logging import LoggerMixin
from ..data_access.profile_dao import CharacterProfile, ProfileDAO
from ..generation.perspectives import (
    TOPIC_CATEGORY_NAMES,
    calculate_similarity,
    derive_perspectives,
    detect_topic_category,
)
from ..generation.schemas import ANALYSIS_LEVELS, ContentType, parse_content_type
from ..stats.aggregator import UsageStatsAggregator
from .auth import Caller, EntitlementProvider, require_self
from .dto import ContentResponse

MAX_CONCERN_LENGTH = 2000

# Типы, где потребителю нужен каждый раз новый артефакт
VARIETY_CONTENT_TYPES = frozenset({ContentType.GROUP_DISCUSSION})


class ContentService(LoggerMixin):
    """Выдача сгенерированного контента персонажа"""

    def __init__(
        self,
        cache: ContentCacheManager,
        profiles: ProfileDAO,
        stats: UsageStatsAggregator,
        entitlements: EntitlementProvider,
        free_quotas: Optional[Mapping[str, int]] = None
    ):
        self.cache = cache
        self.profiles = profiles
        self.stats = stats
        self.entitlements = entitlements
        self.free_quotas = dict(free_quotas or {})

    async def request_cached_or_generated_content(
        self,
        caller: Optional[Caller],
        user_id: str,
        character_id: str,
        content_type: Any,
        parameters: Optional[Mapping[str, Any]] = None
    ) -> ContentResponse:
        """
        Raises:
            AuthenticationError, AuthorizationError, NotFoundError,
            QuotaExceededError, ValidationError, GenerationError
        """
        start_time = time.time()
        require_self(caller, user_id)
        content_type = parse_content_type(content_type)
        parameters = dict(parameters or {})
        self.logger.log_service_call(
            "request_cached_or_generated_content", user_id,
            character_id=character_id, content_type=content_type.value
        )

        profile = await self.profiles.get(user_id, character_id)
        if profile is None:
            raise NotFoundError(
                f"Character {character_id} has no profile yet",
                user_id=user_id,
                context={'character_id': character_id}
            )
        if profile.owner_id != user_id:
            raise AuthorizationError(
                f"Character {character_id} belongs to another user",
                user_id=user_id,
                context={'character_id': character_id}
            )
        if not profile.signature or not profile.confirmed_scores:
            raise NotFoundError(
                f"Character {character_id} has no personality signature yet",
                user_id=user_id,
                context={'character_id': character_id}
            )

        consumer = ConsumerKey(user_id, character_id)
        history = await self.cache.viewed_history(consumer)
        premium = await self.entitlements.is_premium(user_id)

        limit = self.free_quotas.get(content_type.value)
        used = history.usage_for(content_type.value)
        if not premium and limit is not None and used >= limit:
            raise QuotaExceededError(content_type.value, used, limit, user_id=user_id)

        variant, generation_parameters = await self._build_request(content_type, profile, parameters)

        try:
            result = await self.cache.fetch_or_generate(
                profile.signature,
                content_type,
                consumer,
                exclude_viewed=history.artifact_ids if content_type in VARIETY_CONTENT_TYPES else (),
                parameters=generation_parameters,
                variant=variant,
                premium=premium,
            )
        except GenerationError as e:
            self.logger.log_error(
                e.code, e.message, user_id=user_id, exception=e,
                character_id=character_id, content_type=content_type.value
            )
            raise

        self.logger.log_service_result(
            "request_cached_or_generated_content", True, time.time() - start_time,
            cache_hit=result.cache_hit, artifact_id=result.artifact.id
        )
        return ContentResponse(
            artifact_id=result.artifact.id,
            payload=result.payload,
            cache_hit=result.cache_hit,
            usage_count=result.artifact.usage_count,
        )

    async def rate_content(
        self,
        caller: Optional[Caller],
        user_id: str,
        artifact_id: str,
        rating: Any
    ) -> Dict[str, Any]:
        require_self(caller, user_id)
        artifact = await self.cache.rate_artifact(artifact_id, rating)
        self.logger.log_user_action("content_rated", user_id, artifact_id=artifact_id, rating=rating)
        return {
            "artifact_id": artifact.id,
            "rating_count": artifact.rating_count,
            "average_rating": artifact.average_rating,
        }

    async def _build_request(
        self,
        content_type: ContentType,
        profile: CharacterProfile,
        parameters: Dict[str, Any]
    ) -> Tuple[str, Dict[str, Any]]:
        """Вариант ключа кэша и параметры промпта для типа контента"""
        base = {
            "scores": profile.confirmed_scores,
            "gender": profile.gender,
        }
        if "language" in parameters:
            base["language"] = parameters["language"]

        if content_type == ContentType.CHARACTER_DETAILS:
            stage = max(profile.analysis_level, ANALYSIS_LEVELS[0])
            return f"stage-{stage}", {**base, "stage": stage}

        if content_type == ContentType.TRAIT_ANALYSIS:
            level = self._analysis_level(parameters.get("level"), profile.analysis_level)
            return f"level-{level}", {**base, "level": level}

        concern = parameters.get("concern")
        if not isinstance(concern, str) or not concern.strip():
            raise ValidationError("concern", concern, "a non-empty concern is required for group discussion")
        concern = concern.strip()
        if len(concern) > MAX_CONCERN_LENGTH:
            raise ValidationError("concern", len(concern), f"must be at most {MAX_CONCERN_LENGTH} characters")

        category = parameters.get("category") or detect_topic_category(concern)
        if not isinstance(category, str) or category not in TOPIC_CATEGORY_NAMES:
            raise ValidationError("category", category, f"must be one of {sorted(TOPIC_CATEGORY_NAMES)}")
        scores = TraitScores.from_mapping(profile.confirmed_scores)
        share = await self.stats.profile_share(profile.signature)
        return category, {
            **base,
            "concern": concern,
            "category": category,
            "perspectives": [
                {**perspective.to_dict(), "similarity": round(calculate_similarity(scores, perspective.scores), 2)}
                for perspective in derive_perspectives(scores)
            ],
            "share": share.to_dict(),
        }

    @staticmethod
    def _analysis_level(requested: Any, reached: int) -> int:
        """Запрошенный уровень анализа, не выше достигнутого этапа"""
        available = [level for level in ANALYSIS_LEVELS if level <= reached] or [ANALYSIS_LEVELS[0]]
        if requested is None:
            return available[-1]
        if isinstance(requested, bool) or requested not in ANALYSIS_LEVELS:
            raise ValidationError("level", requested, f"must be one of {list(ANALYSIS_LEVELS)}")
        if requested not in available:
            raise ValidationError("level", requested, f"stage {requested} is not reached yet")
        return requested
