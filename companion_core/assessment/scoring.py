"""
Trait Scoring

Running-оценка: среднее арифметическое ответов по черте (1-5),
negative-вопросы переворачиваются (6 - v). Черта без ответов = 3.0.
"""

from collections import defaultdict
from typing import Dict, Iterable

from .models import NEUTRAL_SCORE, TRAIT_ORDER, AnsweredQuestion, BigFiveTrait, TraitScores


def calculate_scores(answers: Iterable[AnsweredQuestion]) -> TraitScores:
    """Оценки по всем пяти чертам из записанных ответов"""
    totals: Dict[BigFiveTrait, int] = defaultdict(int)
    counts: Dict[BigFiveTrait, int] = defaultdict(int)

    for answer in answers:
        totals[answer.trait] += answer.scored_value
        counts[answer.trait] += 1

    values = {}
    for trait in TRAIT_ORDER:
        if counts[trait]:
            values[trait.value] = totals[trait] / counts[trait]
        else:
            values[trait.value] = NEUTRAL_SCORE

    return TraitScores(**values)


def answers_per_trait(answers: Iterable[AnsweredQuestion]) -> Dict[str, int]:
    counts = {trait.value: 0 for trait in TRAIT_ORDER}
    for answer in answers:
        counts[answer.trait.value] += 1
    return counts
