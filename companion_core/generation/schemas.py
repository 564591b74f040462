"""
Content types and payload schemas

Каждый тип контента валидируется своей pydantic-моделью. Ответ модели,
не прошедший схему, считается malformed и повторяется пайплайном.
"""

from enum import Enum
from typing import Any, List, Mapping, Optional, Type

from pydantic import BaseModel, Field

from ..core.error_handling import ValidationError


class ContentType(str, Enum):
    CHARACTER_DETAILS = "character_details"
    TRAIT_ANALYSIS = "trait_analysis"
    GROUP_DISCUSSION = "group_discussion"


def parse_content_type(value: Any) -> ContentType:
    try:
        return ContentType(value)
    except ValueError:
        raise ValidationError(
            "content_type", value, f"must be one of {[c.value for c in ContentType]}"
        ) from None


# ============================================================================
# CHARACTER DETAILS
# ============================================================================

class CharacterAttributes(BaseModel):
    """Атрибуты персонажа, перегенерируются на этапах 20 и 50"""
    favorite_color: str = Field(min_length=1)
    favorite_place: str = Field(min_length=1)
    favorite_word: str = Field(min_length=1, description="Любимая фраза / присказка")
    word_tendency: str = Field(min_length=1, description="Особенности речи")
    strength: str = Field(min_length=1)
    weakness: str = Field(min_length=1)


class CharacterDetails(CharacterAttributes):
    """Полное описание персонажа после 100 ответов"""
    skill: str = Field(min_length=1)
    hobby: str = Field(min_length=1)
    aptitude: str = Field(min_length=1)
    dream: str = Field(min_length=1)
    favorite_entertainment_genre: str = Field(min_length=1)


# ============================================================================
# TRAIT ANALYSIS
# ============================================================================

ANALYSIS_LEVELS = (20, 50, 100)
BASIC_CATEGORIES = ("career", "romance", "stress")
EXTENDED_CATEGORIES = BASIC_CATEGORIES + ("learning", "decision")


class AnalysisCategory(BaseModel):
    personality_type: str = Field(min_length=1, description="Тип личности в этой области одной фразой")
    detailed_text: str = Field(min_length=1)
    key_points: List[str] = Field(min_length=1)


class BasicTraitAnalysis(BaseModel):
    """Анализ уровня 20"""
    career: AnalysisCategory
    romance: AnalysisCategory
    stress: AnalysisCategory


class ExtendedTraitAnalysis(BasicTraitAnalysis):
    """Анализ уровней 50 и 100"""
    learning: AnalysisCategory
    decision: AnalysisCategory


# ============================================================================
# GROUP DISCUSSION
# ============================================================================

class DiscussionMessage(BaseModel):
    speaker_id: str = Field(min_length=1)
    speaker_name: str = Field(min_length=1)
    text: str = Field(min_length=1)


class DiscussionRound(BaseModel):
    round_number: int = Field(ge=1)
    messages: List[DiscussionMessage] = Field(min_length=1)


class DiscussionConclusion(BaseModel):
    summary: str = Field(min_length=1)
    recommendations: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class GroupDiscussion(BaseModel):
    rounds: List[DiscussionRound] = Field(min_length=1)
    conclusion: DiscussionConclusion


def analysis_level(parameters: Mapping[str, Any]) -> int:
    level = parameters.get("level", 20)
    if level not in ANALYSIS_LEVELS:
        raise ValidationError("level", level, f"must be one of {ANALYSIS_LEVELS}")
    return level


def schema_for(content_type: ContentType, parameters: Optional[Mapping[str, Any]] = None) -> Type[BaseModel]:
    """Схема payload для типа контента (и уровня/этапа, где он важен)"""
    parameters = parameters or {}
    if content_type == ContentType.CHARACTER_DETAILS:
        return CharacterDetails if parameters.get("stage", 100) >= 100 else CharacterAttributes
    if content_type == ContentType.TRAIT_ANALYSIS:
        return BasicTraitAnalysis if analysis_level(parameters) == 20 else ExtendedTraitAnalysis
    if content_type == ContentType.GROUP_DISCUSSION:
        return GroupDiscussion
    raise ValidationError("content_type", content_type, "no schema registered")
