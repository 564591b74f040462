"""
Assessment Models - модели Big Five ассессмента

Pydantic модели прогресса опросника:
- TraitScores (пять черт OCEAN, шкала 1-5)
- Question / AnsweredQuestion
- AssessmentProgress (персистентное состояние на пару user/character)
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.error_handling import CorruptedStateError


# ============================================================================
# ЧЕРТЫ
# ============================================================================

class BigFiveTrait(str, Enum):
    """Big Five черты личности"""
    OPENNESS = "openness"
    CONSCIENTIOUSNESS = "conscientiousness"
    EXTRAVERSION = "extraversion"
    AGREEABLENESS = "agreeableness"
    NEUROTICISM = "neuroticism"


# Канонический порядок черт в сигнатуре: O, C, E, A, N
TRAIT_ORDER = (
    BigFiveTrait.OPENNESS,
    BigFiveTrait.CONSCIENTIOUSNESS,
    BigFiveTrait.EXTRAVERSION,
    BigFiveTrait.AGREEABLENESS,
    BigFiveTrait.NEUROTICISM,
)

NEUTRAL_SCORE = 3.0


class Direction(str, Enum):
    """Направление ключа вопроса"""
    POSITIVE = "positive"
    NEGATIVE = "negative"


class TraitScores(BaseModel):
    """
    Оценки пяти черт по шкале 1.0-5.0

    Во время ассессмента это текущая (running) оценка, после 100 ответов
    замораживается в AssessmentProgress.final_scores.
    """
    model_config = ConfigDict(frozen=True)

    openness: float = Field(default=NEUTRAL_SCORE, ge=1.0, le=5.0)
    conscientiousness: float = Field(default=NEUTRAL_SCORE, ge=1.0, le=5.0)
    extraversion: float = Field(default=NEUTRAL_SCORE, ge=1.0, le=5.0)
    agreeableness: float = Field(default=NEUTRAL_SCORE, ge=1.0, le=5.0)
    neuroticism: float = Field(default=NEUTRAL_SCORE, ge=1.0, le=5.0)

    @classmethod
    def neutral(cls) -> "TraitScores":
        return cls()

    @classmethod
    def from_mapping(cls, values: Optional[Mapping[str, Any]]) -> "TraitScores":
        """Missing or non-numeric traits fall back to the neutral 3.0."""
        values = values or {}
        kwargs = {}
        for trait in TRAIT_ORDER:
            raw = values.get(trait.value)
            if isinstance(raw, (int, float)) and not isinstance(raw, bool):
                kwargs[trait.value] = min(5.0, max(1.0, float(raw)))
        return cls(**kwargs)

    def get(self, trait: BigFiveTrait) -> float:
        return getattr(self, trait.value)

    def as_dict(self) -> Dict[str, float]:
        return {trait.value: self.get(trait) for trait in TRAIT_ORDER}


# ============================================================================
# ВОПРОСЫ И ОТВЕТЫ
# ============================================================================

class Question(BaseModel):
    """Вопрос инвентаря"""
    model_config = ConfigDict(frozen=True)

    id: str
    trait: BigFiveTrait
    direction: Direction
    text: str


class AnsweredQuestion(BaseModel):
    """Записанный ответ. answered_at хранится как epoch seconds."""
    question_id: str
    trait: BigFiveTrait
    direction: Direction
    value: int = Field(ge=1, le=5)
    answered_at: float

    @property
    def scored_value(self) -> int:
        """Значение с учетом обратного ключа (6 - v для negative)"""
        if self.direction == Direction.NEGATIVE:
            return 6 - self.value
        return self.value


class AssessmentState(str, Enum):
    NOT_STARTED = "not_started"
    AWAITING_ANSWER = "awaiting_answer"
    COMPLETED = "completed"


# ============================================================================
# ПРОГРЕСС
# ============================================================================

class AssessmentProgress(BaseModel):
    """
    Прогресс ассессмента для пары (user_id, character_id)

    Инварианты:
    - answered_questions только растет, question_id не повторяется
    - current_question = None только до первого вопроса или после завершения
    - stages_completed хранит уже сработавшие пороги (exactly-once)
    """
    user_id: str
    character_id: str
    answered_questions: List[AnsweredQuestion] = Field(default_factory=list)
    current_question: Optional[Question] = None
    completed: bool = False
    final_scores: Optional[TraitScores] = None
    stages_completed: List[int] = Field(default_factory=list)

    @property
    def document_id(self) -> str:
        return progress_document_id(self.user_id, self.character_id)

    @property
    def answered_count(self) -> int:
        return len(self.answered_questions)

    @property
    def answered_ids(self) -> set:
        return {answer.question_id for answer in self.answered_questions}

    @property
    def state(self) -> AssessmentState:
        if self.completed:
            return AssessmentState.COMPLETED
        if self.current_question is None and not self.answered_questions:
            return AssessmentState.NOT_STARTED
        return AssessmentState.AWAITING_ANSWER

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_document(cls, user_id: str, character_id: str, doc: Mapping[str, Any]) -> "AssessmentProgress":
        """
        Восстанавливает прогресс из документа хранилища

        Raises:
            CorruptedStateError: документ не соответствует ожидаемой форме
        """
        answered = doc.get("answered_questions") or []
        if not isinstance(answered, list):
            raise CorruptedStateError(
                "answered_questions is not a list",
                user_id=user_id,
                context={'character_id': character_id}
            )

        seen = set()
        for index, entry in enumerate(answered):
            if not isinstance(entry, Mapping):
                raise CorruptedStateError(
                    f"Answer #{index} is not a mapping",
                    user_id=user_id,
                    context={'character_id': character_id}
                )
            answered_at = entry.get("answered_at")
            # Сериализованный серверный timestamp (объект-сентинел) - известный баг данных
            if isinstance(answered_at, bool) or not isinstance(answered_at, (int, float)):
                raise CorruptedStateError(
                    f"Answer #{index} has unexpected answered_at encoding: {type(answered_at).__name__}",
                    user_id=user_id,
                    context={'character_id': character_id}
                )
            question_id = entry.get("question_id")
            if not question_id:
                raise CorruptedStateError(
                    f"Answer #{index} has no question_id",
                    user_id=user_id,
                    context={'character_id': character_id}
                )
            if question_id in seen:
                raise CorruptedStateError(
                    f"Duplicate answer for {question_id}",
                    user_id=user_id,
                    context={'character_id': character_id}
                )
            seen.add(question_id)

        try:
            return cls.model_validate({**doc, "user_id": user_id, "character_id": character_id})
        except PydanticValidationError as e:
            raise CorruptedStateError(
                f"Progress document failed validation: {e.error_count()} errors",
                user_id=user_id,
                context={'character_id': character_id}
            ) from e


def progress_document_id(user_id: str, character_id: str) -> str:
    return f"{user_id}:{character_id}"
