"""
Personality signature

Дискретизация непрерывных оценок в компактный ключ кэша:
    v <= 2.0        -> L
    2.0 < v <= 3.0  -> M
    v > 3.0         -> H

Порядок черт фиксирован: O, C, E, A, N. Дискриминатор (например, пол)
добавляется суффиксом: "HHLLL_female".
"""

from enum import Enum
from typing import Optional

from .models import TRAIT_ORDER, TraitScores

LOW_UPPER_BOUND = 2.0
MID_UPPER_BOUND = 3.0


class TraitLevel(str, Enum):
    LOW = "L"
    MID = "M"
    HIGH = "H"


def quantize(value: float) -> TraitLevel:
    if value <= LOW_UPPER_BOUND:
        return TraitLevel.LOW
    if value <= MID_UPPER_BOUND:
        return TraitLevel.MID
    return TraitLevel.HIGH


def signature(scores: TraitScores, discriminator: Optional[str] = None) -> str:
    """Deterministic signature for a score vector."""
    code = "".join(quantize(scores.get(trait)).value for trait in TRAIT_ORDER)
    suffix = _normalize_discriminator(discriminator)
    return f"{code}_{suffix}" if suffix else code


def _normalize_discriminator(discriminator: Optional[str]) -> str:
    if not discriminator:
        return ""
    return str(discriminator).strip().lower().replace(" ", "-")
