"""
Progress Data Access Object - хранение прогресса ассессмента
"""

import logging
from typing import Any, Dict, Optional

from ..assessment.models import AssessmentProgress, progress_document_id
from ..database.store import PROGRESS_COLLECTION, DocumentStore

logger = logging.getLogger(__name__)


class ProgressDAO:
    """Сырые документы прогресса: разбор и сброс делает state machine"""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def load_document(self, user_id: str, character_id: str) -> Optional[Dict[str, Any]]:
        return await self.store.get(PROGRESS_COLLECTION, progress_document_id(user_id, character_id))

    async def save(self, progress: AssessmentProgress) -> None:
        await self.store.set(PROGRESS_COLLECTION, progress.document_id, progress.to_document())
        logger.debug(
            f"Progress saved for {progress.user_id}/{progress.character_id}: "
            f"{progress.answered_count} answers, state={progress.state.value}"
        )
