"""
Error taxonomy for companion-core.

Every error a caller can see carries one of the string codes from
``ErrorCode``; the request layer maps them onto its own protocol.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Caller-facing error codes"""

    INVALID_ARGUMENT = "invalid-argument"
    NOT_FOUND = "not-found"
    UNAUTHENTICATED = "unauthenticated"
    PERMISSION_DENIED = "permission-denied"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    INTERNAL = "internal"


class CompanionCoreError(Exception):
    """Base exception with an error code and context"""

    default_code = ErrorCode.INTERNAL

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        user_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.user_id = user_id
        self.context = context or {}
        super().__init__(message)

    @property
    def code(self) -> str:
        return self.error_code.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            'error_type': type(self).__name__,
            'message': self.message,
            'error_code': self.code,
            'user_id': self.user_id,
            'context': self.context
        }


class ValidationError(CompanionCoreError):
    """Malformed input. State is never mutated."""

    default_code = ErrorCode.INVALID_ARGUMENT

    def __init__(self, field: str, value: Any, reason: str, **kwargs):
        self.field = field
        self.value = value
        self.reason = reason
        context = {'field': field, 'value': repr(value), **kwargs.pop('context', {})}
        super().__init__(f"Invalid {field}: {reason}", context=context, **kwargs)


class AuthenticationError(CompanionCoreError):
    default_code = ErrorCode.UNAUTHENTICATED

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, **kwargs)


class AuthorizationError(CompanionCoreError):
    """Caller is authenticated but does not own the target"""

    default_code = ErrorCode.PERMISSION_DENIED


class NotFoundError(CompanionCoreError):
    default_code = ErrorCode.NOT_FOUND


class QuotaExceededError(CompanionCoreError):
    """Free allotment for a content type is used up"""

    default_code = ErrorCode.RESOURCE_EXHAUSTED

    def __init__(self, content_type: str, used: int, limit: int, **kwargs):
        self.content_type = content_type
        self.used = used
        self.limit = limit
        super().__init__(
            f"Free quota for '{content_type}' exhausted ({used}/{limit})",
            context={'content_type': content_type, 'used': used, 'limit': limit, 'upgrade_available': True},
            **kwargs
        )


class CorruptedStateError(CompanionCoreError):
    """Persisted progress fails structural checks. Handled by a reset, never surfaced."""

    default_code = ErrorCode.INTERNAL


class GenerationServiceError(CompanionCoreError):
    """Transport failure or timeout talking to the generative text service"""


class MalformedOutputError(CompanionCoreError):
    """Model output could not be parsed or did not match the content schema"""

    def __init__(self, message: str, raw_output: Optional[str] = None, **kwargs):
        self.raw_output = raw_output
        context = {'raw_output': (raw_output or '')[:500]}
        super().__init__(message, context=context, **kwargs)


class GenerationError(CompanionCoreError):
    """Generation failed after exhausting retries or the deadline"""

    default_code = ErrorCode.INTERNAL

    def __init__(self, content_type: str, cause: Optional[BaseException], **kwargs):
        self.content_type = content_type
        self.cause = cause
        cause_text = f"{type(cause).__name__}: {cause}" if cause else "unknown"
        super().__init__(
            f"Generation of '{content_type}' failed: {cause_text}",
            context={'content_type': content_type},
            **kwargs
        )
