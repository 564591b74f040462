"""
Assessment Service - caller-facing операции ассессмента

- request_next_question: старт / продолжение, выдача текущего вопроса
- submit_assessment_answer: запись ответа, этапы 20/50/100

Прогресс сохраняется до постановки фоновых задач, поэтому
StageCompleted не повторяется даже при сбое генерации.
"""

import time
from typing import Any, Optional, Tuple

from ..assessment.models import AssessmentProgress
from ..assessment.quantizer import signature
from ..assessment.state_machine import AssessmentStateMachine
from ..core.error_handling import AuthorizationError, NotFoundError
from ..core.events import AssessmentResetEventV1, StageCompletedEventV1
from ..core.logging import LoggerMixin
from ..data_access.profile_dao import CharacterProfile, ProfileDAO
from ..data_access.progress_dao import ProgressDAO
from ..tasks.stage_handler import StageCompletionHandler
from .auth import Caller, require_self
from .dto import AnswerResponse, QuestionResponse


class AssessmentService(LoggerMixin):
    """Big Five ассессмент для пары (пользователь, персонаж)"""

    def __init__(
        self,
        state_machine: AssessmentStateMachine,
        progress: ProgressDAO,
        profiles: ProfileDAO,
        stage_handler: StageCompletionHandler
    ):
        self.state_machine = state_machine
        self.progress = progress
        self.profiles = profiles
        self.stage_handler = stage_handler

    async def request_next_question(
        self,
        caller: Optional[Caller],
        user_id: str,
        character_id: str
    ) -> QuestionResponse:
        start_time = time.time()
        require_self(caller, user_id)
        self.logger.log_service_call("request_next_question", user_id, character_id=character_id)

        profile = await self.profiles.get_or_create(user_id, character_id)
        self._check_owner(profile, user_id)
        progress, reset = await self._load_progress(user_id, character_id)

        question = self.state_machine.request_next_question(progress)
        await self.progress.save(progress)

        self.logger.log_service_result(
            "request_next_question", True, time.time() - start_time,
            answered=progress.answered_count, completed=progress.completed
        )
        return QuestionResponse(
            question=question,
            answered_count=progress.answered_count,
            total_questions=len(self.state_machine.inventory),
            completed=progress.completed,
            reset=reset,
        )

    async def submit_assessment_answer(
        self,
        caller: Optional[Caller],
        user_id: str,
        character_id: str,
        value: Any
    ) -> AnswerResponse:
        """
        Raises:
            ValidationError: value вне 1-5 (до чтения состояния)
            NotFoundError: ассессмент не начат или нет текущего вопроса
            AuthenticationError / AuthorizationError
        """
        start_time = time.time()
        require_self(caller, user_id)
        self.state_machine.validate_value(value)
        self.logger.log_service_call("submit_assessment_answer", user_id, character_id=character_id)

        # Профиль создает только request_next_question
        profile = await self.profiles.get(user_id, character_id)
        if profile is None:
            raise NotFoundError(
                f"No assessment started for character {character_id}",
                user_id=user_id,
                context={'character_id': character_id}
            )
        self._check_owner(profile, user_id)
        progress, reset = await self._load_progress(user_id, character_id)

        if reset:
            # Ответ относился к вопросу из поврежденного прогресса
            question = self.state_machine.request_next_question(progress)
            await self.progress.save(progress)
            return AnswerResponse(next_question=question, answered_count=0, reset=True)

        outcome = self.state_machine.submit_answer(progress, value)
        await self.progress.save(progress)

        stage = outcome.stage_completed
        if stage is not None:
            profile_signature = signature(outcome.running_scores, profile.gender)
            scores = outcome.running_scores.as_dict()
            await self.profiles.update(
                user_id,
                character_id,
                confirmed_scores=scores,
                signature=profile_signature,
                analysis_level=stage.stage,
            )
            self.stage_handler.handle(StageCompletedEventV1(
                user_id=user_id,
                character_id=character_id,
                stage=stage.stage,
                count=stage.count,
                scores=scores,
                signature=profile_signature,
                completed=outcome.completed,
            ))

        self.logger.log_service_result(
            "submit_assessment_answer", True, time.time() - start_time,
            answered=progress.answered_count, stage=stage.stage if stage else None
        )
        return AnswerResponse(
            next_question=outcome.next_question,
            completed=outcome.completed,
            stage_completed=stage.stage if stage else None,
            answered_count=progress.answered_count,
            running_scores=outcome.running_scores.as_dict(),
        )

    @staticmethod
    def _check_owner(profile: CharacterProfile, user_id: str) -> None:
        if profile.owner_id != user_id:
            raise AuthorizationError(
                f"Character {profile.character_id} belongs to another user",
                user_id=user_id,
                context={'character_id': profile.character_id}
            )

    async def _load_progress(self, user_id: str, character_id: str) -> Tuple[AssessmentProgress, bool]:
        """Прогресс и флаг сброса (поврежденный документ начинается заново)"""
        doc = await self.progress.load_document(user_id, character_id)
        progress, error = self.state_machine.restore(user_id, character_id, doc)
        if error is None:
            return progress, False

        answered = (doc or {}).get("answered_questions")
        event = AssessmentResetEventV1(
            user_id=user_id,
            character_id=character_id,
            reason=error.message,
            discarded_answers=len(answered) if isinstance(answered, list) else 0,
        )
        self.logger.log_error(
            error.code, error.message, user_id=user_id,
            character_id=character_id, reset_event=event.model_dump(mode="json")
        )
        await self.progress.save(progress)
        return progress, True
