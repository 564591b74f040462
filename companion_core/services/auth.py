"""
Caller identity and entitlements

Аутентификация и биллинг внешние: сюда приходит уже проверенный uid,
а премиум-статус читается из документа подписки.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.error_handling import AuthenticationError, AuthorizationError
from ..database.store import SUBSCRIPTIONS_COLLECTION, DocumentStore


@dataclass(frozen=True)
class Caller:
    uid: str


def require_caller(caller: Optional[Caller]) -> Caller:
    if caller is None or not caller.uid:
        raise AuthenticationError()
    return caller


def require_self(caller: Optional[Caller], user_id: str) -> Caller:
    """Вызывающий должен действовать от своего имени"""
    caller = require_caller(caller)
    if caller.uid != user_id:
        raise AuthorizationError(
            "Caller may only act on their own data",
            user_id=caller.uid,
            context={'target_user_id': user_id}
        )
    return caller


class EntitlementProvider(ABC):

    @abstractmethod
    async def is_premium(self, user_id: str) -> bool:
        pass


class StoreEntitlementProvider(EntitlementProvider):
    """subscriptions/<user_id>: {status: "active", expires_at: epoch}"""

    def __init__(self, store: DocumentStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock

    async def is_premium(self, user_id: str) -> bool:
        doc = await self.store.get(SUBSCRIPTIONS_COLLECTION, user_id)
        if not doc or doc.get("status") != "active":
            return False
        expires_at = doc.get("expires_at")
        if isinstance(expires_at, bool) or not isinstance(expires_at, (int, float)):
            return False
        return expires_at > self.clock()
