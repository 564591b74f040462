"""
Stage Completion Handler

StageCompleted (20 / 50 / 100) -> явный список независимых генераций:
- character_details (variant stage-N)
- trait_analysis (variant level-N)
- на 100: запись статистики завершения

Событие обрабатывается синхронно (постановка в очередь), работа идет
в фоне. Сбой одной генерации не отменяет другую и никогда не доходит
до пользователя: он фиксируется в generation_status профиля.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..cache.manager import ContentCacheManager
from ..cache.models import ConsumerKey
from ..core.error_handling import CompanionCoreError, ErrorCode
from ..core.events import StageCompletedEventV1
from ..core.logging import LoggerMixin
from ..data_access.profile_dao import GenerationStatus, ProfileDAO
from ..generation.schemas import ContentType
from ..stats.aggregator import UsageStatsAggregator
from .background import BackgroundTaskRunner

FINAL_STAGE = 100


@dataclass(frozen=True)
class StageJob:
    """Одна генерация, запускаемая этапом"""
    content_type: ContentType
    variant: str
    profile_field: str


def jobs_for_stage(stage: int) -> List[StageJob]:
    return [
        StageJob(ContentType.CHARACTER_DETAILS, f"stage-{stage}", "details_artifact_id"),
        StageJob(ContentType.TRAIT_ANALYSIS, f"level-{stage}", "analysis_artifact_id"),
    ]


class StageCompletionHandler(LoggerMixin):
    """Раскладывает StageCompleted на фоновые генерации"""

    def __init__(
        self,
        cache: ContentCacheManager,
        profiles: ProfileDAO,
        stats: UsageStatsAggregator,
        runner: BackgroundTaskRunner
    ):
        self.cache = cache
        self.profiles = profiles
        self.stats = stats
        self.runner = runner

    def handle(self, event: StageCompletedEventV1) -> Optional[asyncio.Task]:
        """Поставить обработку этапа в фон, не дожидаясь результата"""
        self.logger.log_user_action(
            "stage_completed", event.user_id,
            character_id=event.character_id, stage=event.stage, signature=event.signature
        )
        if event.stage >= FINAL_STAGE or event.completed:
            self.stats.record_completion(event.signature)

        return self.runner.spawn(
            self.process(event),
            name=f"stage:{event.character_id}:{event.stage}"
        )

    async def process(self, event: StageCompletedEventV1) -> Dict[str, Optional[str]]:
        """
        Сгенерировать (или переиспользовать) контент этапа, вернуть id артефактов по job

        Job-ы выполняются параллельно и падают независимо; итоговый
        generation_status пишется всегда.
        """
        jobs = jobs_for_stage(event.stage)
        results: Dict[str, Optional[str]] = {job.profile_field: None for job in jobs}
        consumer = ConsumerKey(event.user_id, event.character_id)

        try:
            profile = await self.profiles.get(event.user_id, event.character_id)
            await self.profiles.update(
                event.user_id, event.character_id, generation_status=GenerationStatus.GENERATING
            )
            parameters: Dict[str, Any] = {
                "scores": event.scores,
                "stage": event.stage,
                "level": event.stage,
                "gender": profile.gender if profile else None,
            }
            artifact_ids = await asyncio.gather(
                *(self._run_job(job, event, consumer, parameters) for job in jobs)
            )
            results.update(zip((job.profile_field for job in jobs), artifact_ids))
        finally:
            failed = [field for field, artifact_id in results.items() if artifact_id is None]
            status = GenerationStatus.FAILED if failed else GenerationStatus.COMPLETED
            await self.profiles.update(
                event.user_id,
                event.character_id,
                generation_status=status,
                **{field: artifact_id for field, artifact_id in results.items() if artifact_id}
            )
            self.logger.info(
                "stage_generation_finished",
                character_id=event.character_id, stage=event.stage, status=status.value, failed=failed
            )
        return results

    async def _run_job(
        self,
        job: StageJob,
        event: StageCompletedEventV1,
        consumer: ConsumerKey,
        parameters: Dict[str, Any]
    ) -> Optional[str]:
        """id артефакта или None; ошибка job-а только логируется"""
        try:
            result = await self.cache.fetch_or_generate(
                event.signature,
                job.content_type,
                consumer,
                parameters=parameters,
                variant=job.variant,
            )
        except CompanionCoreError as e:
            self.logger.log_error(
                e.code, e.message, user_id=event.user_id, exception=e,
                character_id=event.character_id, content_type=job.content_type.value, stage=event.stage
            )
            return None
        except Exception as e:
            self.logger.log_error(
                ErrorCode.INTERNAL.value, f"{type(e).__name__}: {e}", user_id=event.user_id, exception=e,
                character_id=event.character_id, content_type=job.content_type.value, stage=event.stage
            )
            return None
        return result.artifact.id
