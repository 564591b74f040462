"""
Assessment - Big Five опросник из 100 вопросов

Публичный API:
- AssessmentStateMachine - переходы состояния прогресса
- signature - дискретная сигнатура личности для кэша
- QuestionInventory - фиксированный упорядоченный инвентарь
"""

from .models import (
    AnsweredQuestion,
    AssessmentProgress,
    AssessmentState,
    BigFiveTrait,
    Direction,
    Question,
    TraitScores,
)
from .quantizer import TraitLevel, quantize, signature
from .questions import QuestionInventory, default_inventory
from .scoring import calculate_scores
from .state_machine import STAGE_THRESHOLDS, AnswerOutcome, AssessmentStateMachine, StageCompleted

__all__ = [
    "AssessmentStateMachine",
    "AnswerOutcome",
    "StageCompleted",
    "STAGE_THRESHOLDS",

    "AssessmentProgress",
    "AssessmentState",
    "AnsweredQuestion",
    "Question",
    "QuestionInventory",
    "default_inventory",

    "BigFiveTrait",
    "Direction",
    "TraitScores",
    "calculate_scores",

    "TraitLevel",
    "quantize",
    "signature",
]
