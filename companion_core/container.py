"""
Container - сборка сервисов из Settings

Порядок:
1. build_container(settings) - объекты без I/O
2. await container.start() - логирование, пул PostgreSQL и таблицы (если postgres)
3. await container.shutdown() - дождаться фоновых задач, закрыть ресурсы
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .assessment.state_machine import AssessmentStateMachine
from .cache.manager import ContentCacheManager
from .core.config import Settings
from .core.logging import setup_logging
from .data_access.profile_dao import ProfileDAO
from .data_access.progress_dao import ProgressDAO
from .database.memory_store import InMemoryDocumentStore
from .database.postgres_store import PostgresDocumentStore
from .database.service import DatabaseService
from .database.store import DocumentStore
from .generation.clients import TextGenerationClient, create_text_client
from .generation.pipeline import GenerationPipeline, PipelineConfig
from .services.assessment_service import AssessmentService
from .services.auth import EntitlementProvider, StoreEntitlementProvider
from .services.content_service import ContentService
from .services.conversation_service import ConversationService
from .stats.aggregator import UsageStatsAggregator
from .stats.counters import CounterStore, DocumentCounterStore, RedisCounterStore
from .tasks.background import BackgroundTaskRunner
from .tasks.stage_handler import StageCompletionHandler

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    store: DocumentStore
    counters: CounterStore
    runner: BackgroundTaskRunner
    pipeline: GenerationPipeline
    cache: ContentCacheManager
    stats: UsageStatsAggregator
    entitlements: EntitlementProvider
    assessment: AssessmentService
    content: ContentService
    conversation: ConversationService
    db_service: Optional[DatabaseService] = None
    started: bool = field(default=False)

    async def start(self) -> None:
        if self.started:
            return

        setup_logging(self.settings.log_level, json_format=self.settings.log_json)

        if self.db_service is not None:
            initialized = await self.db_service.initialize(
                min_size=self.settings.database_pool_min_size,
                max_size=self.settings.database_pool_max_size,
            )
            if not initialized:
                raise RuntimeError("Database pool could not be initialized")
            if isinstance(self.store, PostgresDocumentStore):
                await self.store.create_tables()

        self.started = True
        logger.info(
            f"🚀 {self.settings.app_name} started "
            f"(storage={self.settings.storage_backend}, stats={self.settings.stats_backend}, "
            f"provider={self.settings.generation_provider})"
        )

    async def shutdown(self, timeout: float = 30.0) -> None:
        logger.info(f"🛑 Shutting down, {self.runner.pending} background tasks pending")
        await self.runner.drain(timeout=timeout)
        await self.counters.close()
        await self.store.close()
        if self.db_service is not None:
            await self.db_service.close()
        self.started = False
        logger.info(f"📊 Background task stats: {self.runner.stats}")


def build_container(
    settings: Settings,
    *,
    store: Optional[DocumentStore] = None,
    client: Optional[TextGenerationClient] = None
) -> Container:
    """Собрать все сервисы; store/client можно подменить (тесты, dev)"""
    db_service = None
    if store is None:
        if settings.storage_backend == "postgres":
            db_service = DatabaseService(settings.database_url, schema=settings.database_schema)
            store = PostgresDocumentStore(db_service)
        else:
            store = InMemoryDocumentStore()

    if settings.stats_backend == "redis":
        counters: CounterStore = RedisCounterStore.from_url(settings.redis_url)
    else:
        counters = DocumentCounterStore(store)

    runner = BackgroundTaskRunner()
    pipeline = GenerationPipeline(client or create_text_client(settings), PipelineConfig.from_settings(settings))
    cache = ContentCacheManager(store, pipeline)
    stats = UsageStatsAggregator(counters, runner)
    profiles = ProfileDAO(store)
    entitlements = StoreEntitlementProvider(store)

    stage_handler = StageCompletionHandler(cache, profiles, stats, runner)
    assessment = AssessmentService(AssessmentStateMachine(), ProgressDAO(store), profiles, stage_handler)
    content = ContentService(cache, profiles, stats, entitlements, free_quotas=settings.free_quotas)
    conversation = ConversationService(assessment, profiles)

    return Container(
        settings=settings,
        store=store,
        counters=counters,
        runner=runner,
        pipeline=pipeline,
        cache=cache,
        stats=stats,
        entitlements=entitlements,
        assessment=assessment,
        content=content,
        conversation=conversation,
        db_service=db_service,
    )
