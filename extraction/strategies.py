"""JSON response parsing with ordered extraction strategies.

Narrator models answer with JSON of varying shape: the scene may live under
`scene_description`, `scene.description` or
`narrative_response.scene_description`; speakers may be `character_name` or
`character`; and so on. Each field gets an ordered list of named strategies,
and the first strategy that yields a non-empty value wins.

Adding support for a new response layout means appending a strategy to the
relevant list, not editing the parser.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any

from models.interaction import CharacterResponse, InteractionRecord, RelationshipChange

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"^```[A-Za-z0-9_-]*\s*|\s*```$")

# Path segments are dict keys (str) or list indices (int)
PathSegment = str | int


@dataclass(frozen=True)
class ExtractionStrategy:
    """Read a value at a fixed path inside a JSON object."""

    name: str
    path: tuple[PathSegment, ...]

    def extract(self, data: Any) -> Any:
        node = data
        for segment in self.path:
            if isinstance(segment, int):
                if not isinstance(node, list) or len(node) <= segment:
                    return None
                node = node[segment]
            else:
                if not isinstance(node, dict) or segment not in node:
                    return None
                node = node[segment]
        return node


def _path(*segments: PathSegment) -> ExtractionStrategy:
    return ExtractionStrategy(".".join(str(s) for s in segments), tuple(segments))


# === Top-level field strategies ===

SCENE_STRATEGIES = [
    _path("scene_description"),
    _path("scene", "description"),
    _path("narrative_response", "scene_description"),
]
LOCATION_STRATEGIES = [_path("current_location"), _path("location")]
NARRATIVE_STRATEGIES = [_path("narrative_progression")]
CHARACTER_RESPONSE_STRATEGIES = [_path("character_responses")]
RELATIONSHIP_STRATEGIES = [_path("relationship_changes")]
PLOT_STRATEGIES = [
    _path("plot_developments"),
    _path("story_tracking", "plot_developments"),
]
SUGGESTED_ACTION_STRATEGIES = [
    _path("available_actions"),
    _path("player_options", "suggested_actions"),
]

# === Per-item strategies ===

RESPONSE_FIELD_STRATEGIES = {
    "character_name": [_path("character_name"), _path("character")],
    "dialogue": [_path("dialogue")],
    "action": [_path("action"), _path("actions")],
    "emotion": [_path("emotion"), _path("emotional_state")],
    "internal_thoughts": [_path("internal_thoughts")],
}

RELATIONSHIP_FIELD_STRATEGIES = {
    "character1": [_path("character1"), _path("between", 0)],
    "character2": [_path("character2"), _path("between", 1)],
    "change": [_path("change")],
    "reason": [_path("reason")],
}


def strip_code_fences(text: str) -> str:
    """Remove a surrounding Markdown code fence (```json ... ```)."""
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE.sub("", text).strip()
    return text


def parse_json_response(text: str) -> dict | None:
    """Parse a response as a JSON object, or return None if it is not one."""
    cleaned = strip_code_fences(text)
    if not cleaned.startswith("{"):
        return None
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        return "; ".join(t for t in (_as_text(v) for v in value) if t)
    return ""


def _first_value(data: Any, strategies: list[ExtractionStrategy]) -> Any:
    for strategy in strategies:
        value = strategy.extract(data)
        if value not in (None, "", [], {}):
            return value
    return None


def first_text(data: Any, strategies: list[ExtractionStrategy]) -> str:
    """Text from the first strategy that yields a non-empty string."""
    for strategy in strategies:
        text = _as_text(strategy.extract(data))
        if text:
            return text
    return ""


def first_list(data: Any, strategies: list[ExtractionStrategy]) -> list:
    value = _first_value(data, strategies)
    return value if isinstance(value, list) else []


def _string_items(items: list) -> list[str]:
    return [t for t in (_as_text(i) for i in items if isinstance(i, str)) if t]


def _parse_response(item: Any) -> CharacterResponse | None:
    if not isinstance(item, dict):
        return None
    fields = {name: first_text(item, s) for name, s in RESPONSE_FIELD_STRATEGIES.items()}
    return CharacterResponse(**fields)


def _parse_relationship(item: Any) -> RelationshipChange | None:
    if not isinstance(item, dict):
        return None
    fields = {name: first_text(item, s) for name, s in RELATIONSHIP_FIELD_STRATEGIES.items()}
    if not (fields["character1"] and fields["character2"]):
        return None
    value = item.get("change_value")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        fields["change_value"] = float(value)
    return RelationshipChange(**fields)


def interaction_from_json(data: dict, player_action: str) -> InteractionRecord:
    """Build an InteractionRecord from a parsed JSON response.

    Malformed parts (wrong types, missing keys) leave the field empty.
    """
    responses = [_parse_response(i) for i in first_list(data, CHARACTER_RESPONSE_STRATEGIES)]
    changes = [_parse_relationship(i) for i in first_list(data, RELATIONSHIP_STRATEGIES)]

    return InteractionRecord(
        player_action=player_action,
        scene_description=first_text(data, SCENE_STRATEGIES),
        location=first_text(data, LOCATION_STRATEGIES),
        character_responses=[r for r in responses if r is not None],
        plot_developments=_string_items(first_list(data, PLOT_STRATEGIES)),
        relationship_changes=[c for c in changes if c is not None],
        narrative_progression=first_text(data, NARRATIVE_STRATEGIES),
        suggested_actions=_string_items(first_list(data, SUGGESTED_ACTION_STRATEGIES)),
    )
