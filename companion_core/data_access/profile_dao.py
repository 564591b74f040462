"""
Character Profile Data Access Object

Профиль персонажа: владелец, подтвержденные оценки, сигнатура
и статус фоновой генерации.
"""

import logging
import time
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from ..core.error_handling import CorruptedStateError
from ..database.store import PROFILES_COLLECTION, DocumentStore

logger = logging.getLogger(__name__)


class GenerationStatus(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class CharacterProfile(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    user_id: str
    character_id: str
    owner_id: str
    gender: Optional[str] = None
    confirmed_scores: Optional[Dict[str, float]] = None
    signature: Optional[str] = None
    analysis_level: int = 0
    generation_status: GenerationStatus = GenerationStatus.IDLE
    details_artifact_id: Optional[str] = None
    analysis_artifact_id: Optional[str] = None
    created_at: float = Field(default_factory=time.time)
    updated_at: Optional[float] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"user_id", "character_id"})


def profile_document_id(user_id: str, character_id: str) -> str:
    """Профиль живет под пользователем: users/{uid}/characters/{cid}"""
    return f"{user_id}:{character_id}"


class ProfileDAO:
    """Data Access Object for character profiles"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def get(self, user_id: str, character_id: str) -> Optional[CharacterProfile]:
        doc_id = profile_document_id(user_id, character_id)
        doc = await self.store.get(PROFILES_COLLECTION, doc_id)
        if doc is None:
            return None
        try:
            return CharacterProfile.model_validate({**doc, "user_id": user_id, "character_id": character_id})
        except PydanticValidationError as e:
            raise CorruptedStateError(
                f"Character profile {doc_id} failed validation: {e.error_count()} errors",
                user_id=user_id,
                context={'character_id': character_id}
            ) from e

    async def get_or_create(self, user_id: str, character_id: str) -> CharacterProfile:
        profile = await self.get(user_id, character_id)
        if profile is not None:
            return profile

        profile = CharacterProfile(user_id=user_id, character_id=character_id, owner_id=user_id)
        await self.store.set(
            PROFILES_COLLECTION, profile_document_id(user_id, character_id), profile.to_document()
        )
        logger.info(f"Character profile {character_id} created for {user_id}")
        return profile

    async def update(self, user_id: str, character_id: str, **fields: Any) -> None:
        """Частичное обновление (merge) с отметкой updated_at"""
        data = {
            key: value.value if isinstance(value, Enum) else value
            for key, value in fields.items()
        }
        data["updated_at"] = time.time()
        await self.store.set(PROFILES_COLLECTION, profile_document_id(user_id, character_id), data, merge=True)
