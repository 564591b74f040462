"""Response models for caller-facing operations"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..assessment.models import Question


class QuestionResponse(BaseModel):
    question: Optional[Question] = None
    answered_count: int = 0
    total_questions: int = 100
    completed: bool = False
    reset: bool = False


class AnswerResponse(BaseModel):
    next_question: Optional[Question] = None
    completed: bool = False
    stage_completed: Optional[int] = None
    answered_count: int = 0
    running_scores: Dict[str, float] = Field(default_factory=dict)
    reset: bool = False


class ContentResponse(BaseModel):
    artifact_id: str
    payload: Dict[str, Any]
    cache_hit: bool
    usage_count: int


class MessageResult(BaseModel):
    """Результат обработки свободного сообщения"""
    intent: str
    action: str
    reply: Optional[str] = None
    answer: Optional[AnswerResponse] = None
    question: Optional[QuestionResponse] = None
    day: Optional[str] = None
    text: Optional[str] = None
