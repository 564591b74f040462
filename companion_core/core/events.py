"""
Domain Events

Pydantic-события ассессмента. Обработчики получают их синхронно из сервиса,
а тяжелая работа (генерация, статистика) уходит в фоновые задачи.

Usage:
    event = StageCompletedEventV1(
        user_id="u1",
        character_id="c1",
        stage=20,
        count=20,
        scores=scores.model_dump(),
        signature="HMLLM"
    )
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventVersion(str, Enum):
    """Версии событий"""
    V1 = "v1"


class EventPriority(str, Enum):
    """Приоритет события"""
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


# ============================================================================
# BASE EVENT
# ============================================================================

class BaseDomainEvent(BaseModel):
    """
    Базовый класс для всех domain events
    """
    model_config = ConfigDict(use_enum_values=True)

    event_type: str = Field(..., description="Тип события (assessment.stage.completed)")
    version: EventVersion = Field(EventVersion.V1, description="Версия события")
    timestamp: datetime = Field(default_factory=datetime.now, description="Время создания")
    trace_id: Optional[str] = Field(None, description="Trace ID")
    priority: EventPriority = Field(EventPriority.NORMAL, description="Приоритет обработки")


# ============================================================================
# ASSESSMENT EVENTS
# ============================================================================

class StageCompletedEventV1(BaseDomainEvent):
    """Событие: пройден порог 20/50/100 ответов"""
    event_type: str = "assessment.stage.completed"
    user_id: str = Field(..., description="ID пользователя")
    character_id: str = Field(..., description="ID персонажа")
    stage: int = Field(..., description="Порог (20, 50, 100)")
    count: int = Field(..., description="Количество ответов на момент события")
    scores: Dict[str, float] = Field(..., description="Текущие оценки Big Five")
    signature: str = Field(..., description="Сигнатура личности")
    completed: bool = Field(False, description="Ассессмент завершен")


class AssessmentResetEventV1(BaseDomainEvent):
    """Событие: поврежденный прогресс сброшен"""
    event_type: str = "assessment.reset"
    priority: EventPriority = EventPriority.HIGH
    user_id: str = Field(..., description="ID пользователя")
    character_id: str = Field(..., description="ID персонажа")
    reason: str = Field(..., description="Причина сброса")
    discarded_answers: int = Field(0, description="Сколько ответов отброшено")
