"""
Conversation Service - маршрутизация свободного сообщения по интенту

NumericAnswer  -> ответ на текущий вопрос (если он есть)
TopicRequest   -> следующий вопрос ассессмента
DataQuery      -> действие для внешнего календаря
LowInformation -> короткая реплика-подсказка
FreeChat       -> внешнему генератору реплик
"""

import random
from typing import Callable, Optional, Sequence

from ..core.error_handling import NotFoundError
from ..core.logging import LoggerMixin
from ..data_access.profile_dao import ProfileDAO
from ..intent.router import (
    DataQuery,
    FreeChat,
    IntentRouter,
    LowInformation,
    NumericAnswer,
    TopicRequest,
)
from .assessment_service import AssessmentService
from .auth import Caller, require_self
from .dto import MessageResult

NUDGE_REPLIES = {
    "female": (
        "ん？どうしたの？",
        "何か言いたいことある？",
        "うーん、よく聞こえなかったかも",
        "もう少し詳しく教えて？",
        "どうしたの？何かあった？",
        "え、なになに？",
    ),
    "default": (
        "ん？どうした？",
        "何か言いたいことある？",
        "うーん、よく聞こえなかったかも",
        "もう少し詳しく教えて？",
        "どうした？何かあった？",
        "え、なになに？",
    ),
}


def nudge_replies(gender: Optional[str]) -> Sequence[str]:
    return NUDGE_REPLIES["female"] if (gender or "").lower() == "female" else NUDGE_REPLIES["default"]


class ConversationService(LoggerMixin):
    """Входная точка для текстовых сообщений персонажу"""

    def __init__(
        self,
        assessment: AssessmentService,
        profiles: ProfileDAO,
        router: Optional[IntentRouter] = None,
        choose: Callable[[Sequence[str]], str] = random.choice
    ):
        self.assessment = assessment
        self.profiles = profiles
        self.router = router or IntentRouter()
        self.choose = choose

    async def handle_message(
        self,
        caller: Optional[Caller],
        user_id: str,
        character_id: str,
        text: str
    ) -> MessageResult:
        require_self(caller, user_id)
        intent = self.router.classify(text)
        self.logger.debug("intent_classified", user_id=user_id, character_id=character_id, intent=intent.kind)

        if isinstance(intent, NumericAnswer):
            try:
                answer = await self.assessment.submit_assessment_answer(
                    caller, user_id, character_id, intent.value
                )
            except NotFoundError:
                # Нет активного вопроса: цифра - обычная реплика
                return MessageResult(intent=FreeChat.kind, action="free_chat", text=text)
            return MessageResult(intent=intent.kind, action="answer_recorded", answer=answer)

        if isinstance(intent, TopicRequest):
            question = await self.assessment.request_next_question(caller, user_id, character_id)
            return MessageResult(intent=intent.kind, action="question", question=question)

        if isinstance(intent, DataQuery):
            return MessageResult(intent=intent.kind, action="data_query", day=intent.day)

        if isinstance(intent, LowInformation):
            profile = await self.profiles.get(user_id, character_id)
            reply = self.choose(nudge_replies(profile.gender if profile else None))
            return MessageResult(intent=intent.kind, action="nudge", reply=reply)

        return MessageResult(intent=intent.kind, action="free_chat", text=text)
