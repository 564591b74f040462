"""
Document Store interface

Документное хранилище по составному ключу (collection, doc_id):
- get / set (с merge)
- query по равенству полей с сортировкой
- атомарный increment (без read-modify-write)
- append_unique (семантика arrayUnion)

Транзакции между документами не предполагаются.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

# Коллекции
PROGRESS_COLLECTION = "assessment_progress"
PROFILES_COLLECTION = "character_profiles"
ARTIFACTS_COLLECTION = "cached_artifacts"
VIEWED_HISTORY_COLLECTION = "viewed_history"
COUNTERS_COLLECTION = "counters"
SUBSCRIPTIONS_COLLECTION = "subscriptions"


class DocumentStore(ABC):
    """Persistent key/document store"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Документ или None"""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        """Записать документ. merge=True обновляет только переданные поля верхнего уровня."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Mapping[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Документы, у которых все поля filters равны заданным значениям. Каждый включает 'id'."""

    @abstractmethod
    async def increment(self, collection: str, doc_id: str, amounts: Mapping[str, float]) -> Dict[str, Any]:
        """Атомарно прибавить значения к числовым полям, создавая документ/поля при отсутствии."""

    @abstractmethod
    async def append_unique(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        """Добавить value в список field, если его там еще нет."""

    async def close(self) -> None:
        return None
