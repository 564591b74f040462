"""
Group discussion perspectives

Шесть "версий себя" для симулированного обсуждения, выведенные из
оценок пользователя, и грубая классификация темы по ключевым словам.
"""

from dataclasses import dataclass
from typing import Dict, List

from ..assessment.models import TRAIT_ORDER, TraitScores


@dataclass(frozen=True)
class Perspective:
    id: str
    name: str
    description: str
    scores: TraitScores
    position: str  # "cautious" | "active" - сторона в обсуждении

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "scores": self.scores.as_dict(),
            "position": self.position,
        }


def _clamp(value: float) -> float:
    return min(5.0, max(1.0, value))


def _toward(value: float, target: float) -> float:
    """Сдвиг на 1 пункт к target"""
    if value < target:
        return _clamp(min(value + 1, target))
    if value > target:
        return _clamp(max(value - 1, target))
    return value


def derive_perspectives(scores: TraitScores) -> List[Perspective]:
    """Шесть персон обсуждения в фиксированном порядке"""
    o, c, e, a, n = (scores.get(trait) for trait in TRAIT_ORDER)

    return [
        Perspective(
            id="current",
            name="Current you",
            description="You as you are today.",
            scores=scores,
            position="cautious",
        ),
        Perspective(
            id="opposite",
            name="Opposite you",
            description="Your mirror image: every trait flipped.",
            scores=TraitScores(
                openness=6 - o,
                conscientiousness=6 - c,
                extraversion=6 - e,
                agreeableness=6 - a,
                neuroticism=6 - n,
            ),
            position="active",
        ),
        Perspective(
            id="ideal",
            name="Ideal you",
            description="A balanced, grown-up version that looks at things objectively.",
            scores=TraitScores(
                openness=max(o, 4.0),
                conscientiousness=max(c, 4.0),
                extraversion=_toward(e, 3.5),
                agreeableness=max(a, 4.0),
                neuroticism=min(n, 2.0),
            ),
            position="cautious",
        ),
        Perspective(
            id="candid",
            name="Candid you",
            description="Says what you really think, without the polite filter.",
            scores=TraitScores(
                openness=_clamp(o + 1.5),
                conscientiousness=_clamp(c - 2),
                extraversion=_clamp(e + 1.5),
                agreeableness=_clamp(a - 2.5),
                neuroticism=_clamp(n - 1.5),
            ),
            position="active",
        ),
        Perspective(
            id="child",
            name="Childhood you",
            description="You at ten years old, chasing whatever feels exciting.",
            scores=TraitScores(
                openness=5.0,
                conscientiousness=1.0,
                extraversion=max(_clamp(e + 1), 4.0),
                agreeableness=3.0,
                neuroticism=2.0,
            ),
            position="active",
        ),
        Perspective(
            id="elder",
            name="Future you (70)",
            description="You at seventy, calm and speaking from a long life.",
            scores=TraitScores(
                openness=max(o - 1, 2.0),
                conscientiousness=_clamp(c + 0.5),
                extraversion=max(e - 1, 2.0),
                agreeableness=_clamp(a + 1),
                neuroticism=max(n - 1.5, 1.0),
            ),
            position="cautious",
        ),
    ]


def calculate_similarity(first: TraitScores, second: TraitScores) -> float:
    """1.0 = одинаковые оценки, 0.0 = максимально разные"""
    diff = sum(abs(first.get(t) - second.get(t)) for t in TRAIT_ORDER)
    return 1.0 - diff / (4.0 * len(TRAIT_ORDER))


# ============================================================================
# TOPIC CATEGORIES
# ============================================================================

TOPIC_KEYWORDS: Dict[str, List[str]] = {
    "career": ["仕事", "転職", "キャリア", "就職", "職場", "上司", "同僚", "残業", "給料",
               "job", "career", "work", "boss", "coworker", "salary", "promotion"],
    "romance": ["恋愛", "恋人", "彼氏", "彼女", "結婚", "パートナー", "出会い", "片思い", "別れ",
                "love", "dating", "boyfriend", "girlfriend", "marriage", "partner", "crush", "breakup"],
    "money": ["お金", "貯金", "投資", "ローン", "借金", "収入", "支出", "節約",
              "money", "savings", "invest", "loan", "debt", "income", "budget"],
    "health": ["健康", "病気", "ダイエット", "運動", "睡眠", "疲れ", "ストレス",
               "health", "sick", "diet", "exercise", "sleep", "tired", "stress"],
    "family": ["家族", "親", "子供", "子育て", "育児", "夫婦", "兄弟", "姉妹",
               "family", "parent", "mother", "father", "child", "kids", "sibling"],
    "future": ["将来", "人生", "目標", "夢", "計画", "不安",
               "future", "life", "goal", "dream", "plan"],
    "hobby": ["趣味", "やりたいこと", "好きなこと", "興味", "hobby", "passion", "interest"],
    "study": ["勉強", "学習", "資格", "スキル", "語学", "study", "exam", "school", "skill", "learn"],
    "moving": ["引っ越し", "住居", "家", "マンション", "一人暮らし",
               "moving", "move out", "apartment", "relocate", "house"],
}

TOPIC_CATEGORY_NAMES: Dict[str, str] = {
    "career": "Career & work",
    "romance": "Love & relationships",
    "money": "Money",
    "health": "Health & lifestyle",
    "family": "Family & parenting",
    "future": "Future & life plans",
    "hobby": "Hobbies & self-fulfillment",
    "study": "Learning & skills",
    "moving": "Moving & housing",
    "other": "Other",
}


def detect_topic_category(concern: str) -> str:
    """Первая категория (в порядке TOPIC_KEYWORDS), ключевое слово которой есть в тексте"""
    text = (concern or "").lower()
    for category, words in TOPIC_KEYWORDS.items():
        if any(word in text for word in words):
            return category
    return "other"
