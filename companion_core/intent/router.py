"""
Intent Router

Классифицирует входящее сообщение ровно в один вариант Intent.
Правила проверяются по порядку, первое сработавшее побеждает:

1. NumericAnswer  - "1".."5" (раньше всего, чтобы "3" не стал LowInformation)
2. LowInformation - короткие / повторяющиеся / пунктуация / гласные
3. DataQuery      - "что у меня сегодня/завтра"
4. TopicRequest   - "есть тема для разговора?"
5. FreeChat       - все остальное
"""

import re
import unicodedata
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

MIN_MEANINGFUL_LENGTH = 3
VOWEL_ONLY_MAX_LENGTH = 5

_NUMERIC_ANSWER = re.compile(r"^[1-5]$")
_REPEATED_CHAR = re.compile(r"^(.)\1+$", re.DOTALL)
_VOWELS_ONLY = re.compile(r"^[あいうえおアイウエオｱｲｳｴｵ]+$")

DATA_QUERY_PATTERNS = [
    re.compile(p) for p in (
        r"今日.*予定",
        r"今日.*何.*ある[？?]",
        r"明日.*予定",
        r"明日.*何.*ある[？?]",
        r"予定.*教えて",
        r"予定.*ある[？?]",
        r"what.*(scheduled|planned|onmyschedule|onmycalendar)",
        r"(today|tomorrow).*(schedule|plans|appointments)",
        r"(schedule|plans|appointments)(for)?(today|tomorrow)",
    )
]

TOPIC_REQUEST_PATTERNS = [
    re.compile(p) for p in (
        r"話題.*ある[？?]",
        r"何.*話.*[？?]",
        r"話.*[？?]",
        r"なんか.*話.*[？?]",
        r"話.*したい",
        r"話.*しよう",
        r"(got|have|haveyou)(any|a)?(topic|somethingtotalkabout|anythingtotalkabout)",
        r"(what|anything).*talkabout",
        r"let'?stalk",
        r"iwant(ed)?totalk",
    )
]

_TOMORROW = re.compile(r"明日|tomorrow")


# ============================================================================
# INTENT VARIANTS
# ============================================================================

@dataclass(frozen=True)
class NumericAnswer:
    value: int
    kind: str = "numeric_answer"


@dataclass(frozen=True)
class TopicRequest:
    kind: str = "topic_request"


@dataclass(frozen=True)
class DataQuery:
    day: str = "today"
    kind: str = "data_query"


@dataclass(frozen=True)
class LowInformation:
    reason: str
    kind: str = "low_information"


@dataclass(frozen=True)
class FreeChat:
    text: str
    kind: str = "free_chat"


Intent = Union[NumericAnswer, TopicRequest, DataQuery, LowInformation, FreeChat]
Rule = Callable[[str], Optional[Intent]]


# ============================================================================
# RULES
# ============================================================================

def _compact(text: str) -> str:
    return re.sub(r"\s", "", text).lower()


def numeric_answer_rule(text: str) -> Optional[Intent]:
    stripped = text.strip()
    if _NUMERIC_ANSWER.match(stripped):
        return NumericAnswer(int(stripped))
    return None


def low_information_rule(text: str) -> Optional[Intent]:
    stripped = text.strip()
    if len(stripped) < MIN_MEANINGFUL_LENGTH:
        return LowInformation("too_short")
    if _REPEATED_CHAR.match(stripped):
        return LowInformation("repeated_character")
    if all(ch.isspace() or unicodedata.category(ch).startswith("P") for ch in stripped):
        return LowInformation("punctuation_only")
    if len(stripped) <= VOWEL_ONLY_MAX_LENGTH and _VOWELS_ONLY.match(stripped):
        return LowInformation("vowels_only")
    return None


def data_query_rule(text: str) -> Optional[Intent]:
    compact = _compact(text)
    if any(pattern.search(compact) for pattern in DATA_QUERY_PATTERNS):
        day = "tomorrow" if _TOMORROW.search(compact) else "today"
        return DataQuery(day=day)
    return None


def topic_request_rule(text: str) -> Optional[Intent]:
    compact = _compact(text)
    if any(pattern.search(compact) for pattern in TOPIC_REQUEST_PATTERNS):
        return TopicRequest()
    return None


DEFAULT_RULES: List[Rule] = [
    numeric_answer_rule,
    low_information_rule,
    data_query_rule,
    topic_request_rule,
]


class IntentRouter:
    """Stateless classifier over an ordered rule list."""

    def __init__(self, rules: Optional[Sequence[Rule]] = None):
        self.rules: List[Rule] = list(rules if rules is not None else DEFAULT_RULES)

    def classify(self, text: Optional[str]) -> Intent:
        text = text or ""
        for rule in self.rules:
            intent = rule(text)
            if intent is not None:
                return intent
        return FreeChat(text.strip())


_default_router = IntentRouter()


def classify(text: Optional[str]) -> Intent:
    return _default_router.classify(text)
