"""
Assessment State Machine

NotStarted -> AwaitingAnswer(current_question) -> ... -> Completed

Отвечает ТОЛЬКО за переходы состояния прогресса:
- выбор следующего вопроса (фиксированный порядок инвентаря)
- запись ответа и пересчет running-оценок
- пороги этапов 20/50/100 (ровно один раз каждый)
- сброс поврежденного прогресса

Персистентность и фоновые задачи живут в сервисном слое.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Tuple

from ..core.error_handling import CorruptedStateError, NotFoundError, ValidationError
from .models import AnsweredQuestion, AssessmentProgress, Question, TraitScores
from .questions import QuestionInventory, default_inventory
from .scoring import answers_per_trait, calculate_scores

logger = logging.getLogger(__name__)

STAGE_THRESHOLDS = (20, 50, 100)
COMPLETION_COUNT = 100
MIN_ANSWER_VALUE = 1
MAX_ANSWER_VALUE = 5


@dataclass(frozen=True)
class StageCompleted:
    stage: int
    count: int


@dataclass
class AnswerOutcome:
    """Результат submit_answer"""
    answered: AnsweredQuestion
    running_scores: TraitScores
    next_question: Optional[Question]
    stage_completed: Optional[StageCompleted] = None
    completed: bool = False


class AssessmentStateMachine:
    """Переходы состояния ассессмента поверх фиксированного инвентаря"""

    def __init__(
        self,
        inventory: Optional[QuestionInventory] = None,
        clock: Callable[[], float] = time.time
    ):
        self.inventory = inventory or default_inventory()
        self.clock = clock

    # ------------------------------------------------------------------
    # Загрузка / сброс
    # ------------------------------------------------------------------

    def new_progress(self, user_id: str, character_id: str) -> AssessmentProgress:
        return AssessmentProgress(user_id=user_id, character_id=character_id)

    def restore(
        self,
        user_id: str,
        character_id: str,
        doc: Optional[Mapping[str, Any]]
    ) -> Tuple[AssessmentProgress, Optional[CorruptedStateError]]:
        """
        Восстанавливает прогресс из документа.

        Поврежденный документ не чинится частично: прогресс начинается
        заново, а ошибка возвращается вызывающему для логирования.
        """
        if doc is None:
            return self.new_progress(user_id, character_id), None

        try:
            progress = AssessmentProgress.from_document(user_id, character_id, doc)
            unknown = [qid for qid in progress.answered_ids if qid not in self.inventory]
            if unknown:
                raise CorruptedStateError(
                    f"Answers reference unknown questions: {sorted(unknown)[:5]}",
                    user_id=user_id,
                    context={'character_id': character_id}
                )
            return progress, None
        except CorruptedStateError as e:
            logger.warning(
                f"Corrupted assessment progress for {user_id}/{character_id}, restarting: {e.message}"
            )
            return self.new_progress(user_id, character_id), e

    def reset(self, progress: AssessmentProgress) -> AssessmentProgress:
        progress.answered_questions = []
        progress.current_question = None
        progress.completed = False
        progress.final_scores = None
        progress.stages_completed = []
        return progress

    # ------------------------------------------------------------------
    # Переходы
    # ------------------------------------------------------------------

    def request_next_question(self, progress: AssessmentProgress) -> Optional[Question]:
        """
        Текущий вопрос (если уже выдан) или следующий неотвеченный.
        None означает, что инвентарь исчерпан и ассессмент завершен.
        """
        if progress.completed:
            return None

        if progress.current_question is not None and progress.current_question.id not in progress.answered_ids:
            return progress.current_question

        question = self.inventory.next_unanswered(progress.answered_ids)
        progress.current_question = question
        if question is None:
            self._complete(progress, calculate_scores(progress.answered_questions))
        return question

    def submit_answer(self, progress: AssessmentProgress, value: Any) -> AnswerOutcome:
        """
        Записывает ответ на текущий вопрос

        Raises:
            ValidationError: value не целое 1-5 (прогресс не меняется)
            NotFoundError: нет текущего вопроса
        """
        self.validate_value(value)

        question = progress.current_question
        if progress.completed or question is None:
            raise NotFoundError(
                "No pending question for this assessment",
                user_id=progress.user_id,
                context={'character_id': progress.character_id, 'completed': progress.completed}
            )

        answered = AnsweredQuestion(
            question_id=question.id,
            trait=question.trait,
            direction=question.direction,
            value=value,
            answered_at=self.clock()
        )
        progress.answered_questions.append(answered)
        count = progress.answered_count
        scores = calculate_scores(progress.answered_questions)

        stage = None
        if count in STAGE_THRESHOLDS and count not in progress.stages_completed:
            progress.stages_completed.append(count)
            stage = StageCompleted(stage=count, count=count)
            logger.info(
                f"Stage {count} completed for {progress.user_id}/{progress.character_id}, "
                f"answers per trait: {answers_per_trait(progress.answered_questions)}"
            )

        next_question = None
        if count >= COMPLETION_COUNT:
            self._complete(progress, scores)
        else:
            next_question = self.inventory.next_unanswered(progress.answered_ids)
            progress.current_question = next_question
            if next_question is None:
                self._complete(progress, scores)

        return AnswerOutcome(
            answered=answered,
            running_scores=scores,
            next_question=next_question,
            stage_completed=stage,
            completed=progress.completed
        )

    def running_scores(self, progress: AssessmentProgress) -> TraitScores:
        if progress.final_scores is not None:
            return progress.final_scores
        return calculate_scores(progress.answered_questions)

    @staticmethod
    def validate_value(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("value", value, "answer must be an integer from 1 to 5")
        if not MIN_ANSWER_VALUE <= value <= MAX_ANSWER_VALUE:
            raise ValidationError("value", value, "answer must be an integer from 1 to 5")
        return value

    def _complete(self, progress: AssessmentProgress, scores: TraitScores) -> None:
        progress.current_question = None
        progress.completed = True
        if progress.final_scores is None:
            progress.final_scores = scores
        logger.info(
            f"Assessment completed for {progress.user_id}/{progress.character_id} "
            f"after {progress.answered_count} answers"
        )
