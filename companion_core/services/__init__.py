"""
Services - caller-facing операции
"""

from .assessment_service import AssessmentService
from .auth import Caller, EntitlementProvider, StoreEntitlementProvider, require_caller, require_self
from .content_service import ContentService
from .conversation_service import ConversationService
from .dto import AnswerResponse, ContentResponse, MessageResult, QuestionResponse

__all__ = [
    "AssessmentService",
    "ContentService",
    "ConversationService",

    "Caller",
    "require_caller",
    "require_self",
    "EntitlementProvider",
    "StoreEntitlementProvider",

    "AnswerResponse",
    "QuestionResponse",
    "ContentResponse",
    "MessageResult",
]
