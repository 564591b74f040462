"""Fixed, ordered Big Five question inventory."""

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence

from .models import Question

logger = logging.getLogger(__name__)

INVENTORY_PATH = Path(__file__).parent / "data" / "big_five_inventory.json"


class QuestionInventory:
    """Ordered questions; selection always walks this order."""

    def __init__(self, questions: Sequence[Question]):
        ids = [q.id for q in questions]
        if len(ids) != len(set(ids)):
            raise ValueError("Question inventory contains duplicate ids")
        self._questions: List[Question] = list(questions)
        self._by_id = {q.id: q for q in self._questions}

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "QuestionInventory":
        path = path or INVENTORY_PATH
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        questions = [Question.model_validate(item) for item in data["questions"]]
        logger.info(f"Loaded {len(questions)} questions from {path.name}")
        return cls(questions)

    def __len__(self) -> int:
        return len(self._questions)

    def __iter__(self) -> Iterator[Question]:
        return iter(self._questions)

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._by_id

    def next_unanswered(self, answered_ids: Iterable[str]) -> Optional[Question]:
        answered = set(answered_ids)
        for question in self._questions:
            if question.id not in answered:
                return question
        return None


@lru_cache()
def default_inventory() -> QuestionInventory:
    return QuestionInventory.load()
