"""
Prompt templates per content type

build_prompt(content_type, parameters) -> (system_prompt, prompt)

Отсутствующие обязательные параметры - ValidationError (не retry-able).
"""

import json
from typing import Any, Mapping, Tuple

from ..assessment.models import TraitScores
from ..core.error_handling import ValidationError
from .schemas import (
    BASIC_CATEGORIES,
    EXTENDED_CATEGORIES,
    ContentType,
    analysis_level,
)

DEFAULT_LANGUAGE = "Japanese"

SYSTEM_PROMPT = (
    "You are a personality psychology expert writing content for a companion-character app. "
    "Always answer with a single JSON object and nothing else."
)

LEVEL_DESCRIPTIONS = {
    20: "an overview of basic tendencies",
    50: "more detailed behavior patterns with concrete examples",
    100: "a complete analysis with deep insight",
}

LEVEL_TEXT_LENGTH = {
    20: "200-300",
    50: "300-400",
    100: "400-500",
}

CATEGORY_DESCRIPTIONS = {
    "career": "work and career style",
    "romance": "love and relationships",
    "stress": "handling stress and emotions",
    "learning": "learning and personal growth",
    "decision": "decision making and problem solving",
}

CHARACTER_ATTRIBUTE_FIELDS = {
    "favorite_color": "favorite color",
    "favorite_place": "favorite place",
    "favorite_word": "a catchphrase the character often says",
    "word_tendency": "how the character talks",
    "strength": "strong point",
    "weakness": "weak point",
}

CHARACTER_DETAIL_FIELDS = {
    **CHARACTER_ATTRIBUTE_FIELDS,
    "skill": "special skill",
    "hobby": "hobby",
    "aptitude": "what the character is suited for",
    "dream": "the character's dream",
    "favorite_entertainment_genre": "favorite entertainment genre",
}


def _scores(parameters: Mapping[str, Any]) -> TraitScores:
    raw = parameters.get("scores")
    if not isinstance(raw, Mapping):
        raise ValidationError("scores", raw, "trait scores are required")
    return TraitScores.from_mapping(raw)


def _format_scores(scores: TraitScores) -> str:
    return "\n".join(
        f"- {trait.capitalize()}: {value:.1f}/5" for trait, value in scores.as_dict().items()
    )


def _gender_text(parameters: Mapping[str, Any]) -> str:
    return parameters.get("gender") or "unspecified"


# ============================================================================
# CHARACTER DETAILS
# ============================================================================

def character_details_prompt(parameters: Mapping[str, Any]) -> str:
    scores = _scores(parameters)
    stage = parameters.get("stage", 100)
    fields = CHARACTER_DETAIL_FIELDS if stage >= 100 else CHARACTER_ATTRIBUTE_FIELDS
    shape = json.dumps({key: description for key, description in fields.items()}, ensure_ascii=False)

    return f"""Create profile details for a companion character whose personality mirrors these Big Five scores (1-5):
{_format_scores(scores)}

Gender: {_gender_text(parameters)}
Assessment progress: {stage} of 100 questions answered.

Output JSON with exactly these keys (values are short phrases):
{shape}

Rules:
- Do not mention scores or numbers
- Keep every value under 40 characters
- Write in natural {parameters.get("language", DEFAULT_LANGUAGE)}"""


# ============================================================================
# TRAIT ANALYSIS
# ============================================================================

def trait_analysis_prompt(parameters: Mapping[str, Any]) -> str:
    scores = _scores(parameters)
    level = analysis_level(parameters)
    categories = BASIC_CATEGORIES if level == 20 else EXTENDED_CATEGORIES
    category_lines = "\n".join(f"- {c}: {CATEGORY_DESCRIPTIONS[c]}" for c in categories)
    shape = {
        c: {
            "personality_type": "one short phrase naming the type in this area",
            "detailed_text": f"{LEVEL_TEXT_LENGTH[level]} characters on how the traits show up here",
            "key_points": ["point 1", "point 2", "point 3"],
        }
        for c in categories
    }

    return f"""Write a personality analysis from these Big Five scores (1-5):
{_format_scores(scores)}

Gender: {_gender_text(parameters)}
Analysis level: {level} answers ({LEVEL_DESCRIPTIONS[level]})

Cover these categories:
{category_lines}

Output JSON in exactly this shape:
{json.dumps(shape, ensure_ascii=False, indent=2)}

Rules:
- Use exactly the keys {", ".join(categories)}; no aliases
- key_points has three items
- Do not include numeric scores in the text
- Write in natural {parameters.get("language", DEFAULT_LANGUAGE)}"""


# ============================================================================
# GROUP DISCUSSION
# ============================================================================

def group_discussion_prompt(parameters: Mapping[str, Any]) -> str:
    concern = (parameters.get("concern") or "").strip()
    if not concern:
        raise ValidationError("concern", concern, "a concern is required for a group discussion")

    perspectives = parameters.get("perspectives")
    if not perspectives:
        raise ValidationError("perspectives", perspectives, "discussion perspectives are required")

    persona_lines = "\n".join(
        f"- {p['id']} ({p['name']}, {p['position']} side): {p['description']} "
        f"Scores: {', '.join(f'{k}={v:.1f}' for k, v in p['scores'].items())}"
        for p in perspectives
    )
    share = parameters.get("share") or {}
    message_shape = [{"speaker_id": p["id"], "speaker_name": p["name"], "text": "..."} for p in perspectives]
    output_shape = {
        "rounds": [{"round_number": 1, "messages": message_shape}],
        "conclusion": {"summary": "...", "recommendations": ["..."], "next_steps": ["..."]},
    }

    return f"""Six versions of the same person meet to talk through one of their worries.

Worry:
{concern}

Category: {parameters.get("category", "other")}

The six participants:
{persona_lines}

Reference data:
- Users sharing this personality profile: {share.get("count", 0)} of {share.get("total", 0)} ({share.get("percentage", 50)}%)

Rules:
1. Two rounds; every participant speaks once per round
2. Each message is 50-100 characters
3. The cautious side and the active side disagree
4. "opposite" offers an unexpected angle and "ideal" pulls the discussion together
5. Finish with an integrated conclusion and an action plan
6. Write in natural {parameters.get("language", DEFAULT_LANGUAGE)}

Output JSON:
{json.dumps(output_shape, ensure_ascii=False, indent=2)}"""


PROMPT_BUILDERS = {
    ContentType.CHARACTER_DETAILS: character_details_prompt,
    ContentType.TRAIT_ANALYSIS: trait_analysis_prompt,
    ContentType.GROUP_DISCUSSION: group_discussion_prompt,
}


def build_prompt(content_type: ContentType, parameters: Mapping[str, Any]) -> Tuple[str, str]:
    builder = PROMPT_BUILDERS.get(content_type)
    if builder is None:
        raise ValidationError("content_type", content_type, "no prompt template registered")
    return SYSTEM_PROMPT, builder(dict(parameters or {}))

