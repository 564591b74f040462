"""
Content Cache Manager

Контент генерируется один раз на сигнатуру и переиспользуется
всеми пользователями с той же сигнатурой.

Поиск:
1. Кандидаты по (signature, content_type, variant), самые популярные первыми
2. Первый, которого потребитель еще не видел - cache hit
3. Иначе - генерация и сохранение нового артефакта

Дубликаты при гонке двух промахов допустимы: оба артефакта валидны,
следующие запросы просто выберут один из них.
"""

import logging
import time
import uuid
from typing import Any, Callable, Iterable, Mapping, Optional

from ..core.error_handling import NotFoundError, ValidationError
from ..database.store import ARTIFACTS_COLLECTION, VIEWED_HISTORY_COLLECTION, DocumentStore
from ..generation.pipeline import GenerationPipeline
from ..generation.schemas import parse_content_type
from .models import CachedArtifact, CacheResult, ConsumerKey, ViewedHistory, usage_field

logger = logging.getLogger(__name__)


def _new_artifact_id() -> str:
    return uuid.uuid4().hex


class ContentCacheManager:
    """Signature-keyed кэш сгенерированного контента"""

    def __init__(
        self,
        store: DocumentStore,
        pipeline: GenerationPipeline,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = _new_artifact_id
    ):
        self.store = store
        self.pipeline = pipeline
        self.clock = clock
        self.id_factory = id_factory

    async def fetch_or_generate(
        self,
        signature: str,
        content_type: Any,
        consumer: ConsumerKey,
        exclude_viewed: Optional[Iterable[str]] = None,
        parameters: Optional[Mapping[str, Any]] = None,
        variant: str = "",
        premium: bool = False
    ) -> CacheResult:
        """
        Артефакт для потребителя: переиспользованный или новый

        Raises:
            ValidationError: неизвестный тип контента / пустая сигнатура
            GenerationError: промах кэша и генерация не удалась (ничего не сохраняется)
        """
        content_type = parse_content_type(content_type)
        if not signature:
            raise ValidationError("signature", signature, "must be a non-empty signature")

        excluded = set(exclude_viewed or ())
        candidates = await self.store.query(
            ARTIFACTS_COLLECTION,
            {"signature": signature, "content_type": content_type.value, "variant": variant},
            order_by="usage_count",
            descending=True,
        )
        if len(candidates) > 1:
            logger.debug(f"{len(candidates)} cached {content_type.value} artifacts for {signature}/{variant or '-'}")

        for doc in candidates:
            if doc["id"] in excluded:
                continue
            artifact = await self._reuse(doc)
            await self._record_view(consumer, artifact)
            logger.info(f"♻️ Cache hit: {content_type.value} {signature} -> {artifact.id} (used {artifact.usage_count}x)")
            return CacheResult(artifact=artifact, cache_hit=True)

        logger.info(
            f"🆕 Cache miss: {content_type.value} {signature} "
            f"({len(candidates)} candidates, {len(excluded)} excluded), generating"
        )
        payload = await self.pipeline.generate(content_type, parameters or {}, premium=premium)

        now = self.clock()
        artifact = CachedArtifact(
            id=self.id_factory(),
            signature=signature,
            content_type=content_type,
            variant=variant,
            payload=payload,
            usage_count=1,
            created_at=now,
            last_used_at=now,
        )
        await self.store.set(ARTIFACTS_COLLECTION, artifact.id, artifact.to_document())
        await self._record_view(consumer, artifact)
        return CacheResult(artifact=artifact, cache_hit=False)

    async def _reuse(self, doc: Mapping[str, Any]) -> CachedArtifact:
        now = self.clock()
        artifact_id = doc["id"]
        updated = await self.store.increment(ARTIFACTS_COLLECTION, artifact_id, {"usage_count": 1})
        await self.store.set(ARTIFACTS_COLLECTION, artifact_id, {"last_used_at": now}, merge=True)
        return CachedArtifact.from_document({**doc, **updated, "id": artifact_id, "last_used_at": now})

    async def _record_view(self, consumer: ConsumerKey, artifact: CachedArtifact) -> None:
        await self.store.append_unique(VIEWED_HISTORY_COLLECTION, consumer.doc_id, "artifact_ids", artifact.id)
        await self.store.increment(VIEWED_HISTORY_COLLECTION, consumer.doc_id, {usage_field(artifact.content_type): 1})

    async def viewed_history(self, consumer: ConsumerKey) -> ViewedHistory:
        doc = await self.store.get(VIEWED_HISTORY_COLLECTION, consumer.doc_id)
        return ViewedHistory.from_document(doc)

    async def get_artifact(self, artifact_id: str) -> CachedArtifact:
        doc = await self.store.get(ARTIFACTS_COLLECTION, artifact_id)
        if doc is None:
            raise NotFoundError(f"Artifact {artifact_id} not found")
        return CachedArtifact.from_document({**doc, "id": artifact_id})

    async def rate_artifact(self, artifact_id: str, rating: Any) -> CachedArtifact:
        """Оценка 1-5, копится атомарно в rating_sum / rating_count"""
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError("rating", rating, "must be an integer between 1 and 5")

        await self.get_artifact(artifact_id)
        updated = await self.store.increment(
            ARTIFACTS_COLLECTION, artifact_id, {"rating_sum": rating, "rating_count": 1}
        )
        artifact = CachedArtifact.from_document({**updated, "id": artifact_id})
        logger.info(f"⭐ Artifact {artifact_id} rated {rating} (avg {artifact.average_rating})")
        return artifact
