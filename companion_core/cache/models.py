"""Cached artifacts and per-consumer view history."""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..generation.schemas import ContentType

USAGE_FIELD_PREFIX = "usage:"


class CachedArtifact(BaseModel):
    """
    Сгенерированный payload, разделяемый всеми пользователями
    с одинаковой сигнатурой (и типом контента / вариантом)
    """
    model_config = ConfigDict(use_enum_values=True)

    id: str
    signature: str
    content_type: ContentType
    variant: str = ""
    payload: Dict[str, Any]
    usage_count: int = Field(default=0, ge=0)
    rating_sum: float = 0.0
    rating_count: int = Field(default=0, ge=0)
    created_at: float
    last_used_at: Optional[float] = None

    @property
    def average_rating(self) -> Optional[float]:
        if not self.rating_count:
            return None
        return round(self.rating_sum / self.rating_count, 2)

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude={"id"})

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "CachedArtifact":
        return cls.model_validate(dict(doc))


@dataclass(frozen=True)
class ConsumerKey:
    """Потребитель контента - пара (пользователь, персонаж)"""
    user_id: str
    character_id: str

    @property
    def doc_id(self) -> str:
        return f"{self.user_id}:{self.character_id}"


@dataclass
class CacheResult:
    artifact: CachedArtifact
    cache_hit: bool

    @property
    def payload(self) -> Dict[str, Any]:
        return self.artifact.payload


def usage_field(content_type: str) -> str:
    return f"{USAGE_FIELD_PREFIX}{content_type}"


@dataclass
class ViewedHistory:
    """Просмотренные артефакты и счетчики выдачи по типам"""
    artifact_ids: List[str]
    usage: Dict[str, int]

    @classmethod
    def from_document(cls, doc: Optional[Mapping[str, Any]]) -> "ViewedHistory":
        doc = doc or {}
        ids = doc.get("artifact_ids") or []
        usage = {
            key[len(USAGE_FIELD_PREFIX):]: int(value)
            for key, value in doc.items()
            if key.startswith(USAGE_FIELD_PREFIX) and isinstance(value, (int, float))
        }
        return cls(artifact_ids=[str(i) for i in ids], usage=usage)

    def usage_for(self, content_type: str) -> int:
        return self.usage.get(content_type, 0)
