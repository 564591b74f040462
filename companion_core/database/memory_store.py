"""In-process DocumentStore for tests and local development."""

import copy
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional

from .store import DocumentStore


class InMemoryDocumentStore(DocumentStore):

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, data: Mapping[str, Any], merge: bool = False) -> None:
        data = copy.deepcopy(dict(data))
        existing = self._collections[collection].get(doc_id)
        if merge and existing is not None:
            existing.update(data)
        else:
            self._collections[collection][doc_id] = data

    async def query(
        self,
        collection: str,
        filters: Mapping[str, Any],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        results = []
        for doc_id, doc in self._collections[collection].items():
            if all(doc.get(field) == value for field, value in filters.items()):
                results.append({**copy.deepcopy(doc), "id": doc_id})

        if order_by:
            results.sort(key=lambda d: d.get(order_by) or 0, reverse=descending)
        if limit is not None:
            results = results[:limit]
        return results

    async def increment(self, collection: str, doc_id: str, amounts: Mapping[str, float]) -> Dict[str, Any]:
        doc = self._collections[collection].setdefault(doc_id, {})
        for field, amount in amounts.items():
            doc[field] = (doc.get(field) or 0) + amount
        return copy.deepcopy(doc)

    async def append_unique(self, collection: str, doc_id: str, field: str, value: Any) -> None:
        doc = self._collections[collection].setdefault(doc_id, {})
        items = doc.setdefault(field, [])
        if value not in items:
            items.append(value)
