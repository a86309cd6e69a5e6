"""Model-assisted extraction for responses the rules could not parse.

The model is asked to restate the response in a fixed `Label: value` layout,
which is then read back with simple per-field patterns. The layout is:

    Scene Description: ...

    Characters and their responses:
    - Character 1: Morgan
      Dialogue: ...
      Action: ...
      Emotion: ...

    Location: ...

    Plot Developments: first; second

    Relationship Changes: Morgan and Eleanor: allies
"""

import re

from models.interaction import CharacterResponse, InteractionRecord, RelationshipChange

EXTRACTION_PROMPT = """Extract structured information from this story response. Do not add any new content.

TEXT:
{text}

Extract and provide ONLY the following information in this format:

Scene Description: [The main narrative description of what's happening]

Characters and their responses:
- Character 1: [Name]
  Dialogue: [What they say]
  Action: [What they do, if mentioned]
  Emotion: [Their emotional state, if mentioned]
- Character 2: [Name]
  Dialogue: [What they say]
  Action: [What they do, if mentioned]
  Emotion: [Their emotional state, if mentioned]

Location: [Where this scene takes place]

Plot Developments: [Any significant story developments, separated by semicolons]

Relationship Changes: [Any changes in relationships between characters, formatted as 'Character1 and Character2: nature of change']
"""

_SCENE = re.compile(
    r"Scene Description:[ \t]*(.+?)(?=\n[ \t]*\n|\n[ \t]*Characters and their responses:|\Z)", re.DOTALL
)
_LOCATION = re.compile(r"^[ \t]*Location:[ \t]*(.+)$", re.MULTILINE)
_PLOT = re.compile(r"Plot Developments:[ \t]*(.+)")
_RELATIONSHIPS = re.compile(r"Relationship Changes:[ \t]*(.+)")
_CHARACTER_SECTION = re.compile(
    r"Characters and their responses:(.*?)(?=\n[ \t]*(?:\n[ \t]*)?(?:Location|Plot Developments|Relationship Changes):|\Z)",
    re.DOTALL,
)
_CHARACTER_BLOCK = re.compile(r"^[ \t]*-[ \t]+(.+?)(?=^[ \t]*-[ \t]+|\Z)", re.DOTALL | re.MULTILINE)
_BLOCK_NAME_PREFIX = re.compile(r"^Character\s*\d*\s*:\s*", re.IGNORECASE)
_DIALOGUE = re.compile(r"Dialogue:[ \t]*(.+?)(?=\n[ \t]*(?:Action|Emotion):|\Z)", re.DOTALL)
_ACTION = re.compile(r"Action:[ \t]*(.+?)(?=\n[ \t]*Emotion:|\Z)", re.DOTALL)
_EMOTION = re.compile(r"Emotion:[ \t]*(.+)")

# Placeholder answers the model gives for missing information
_EMPTY_VALUES = {"none", "n/a", "na", "-", "unknown", "not mentioned", "none mentioned"}


def build_extraction_prompt(text: str) -> str:
    return EXTRACTION_PROMPT.replace("{text}", text)


def _clean(value: str) -> str:
    value = value.strip().strip("[]").strip()
    if value.lower().rstrip(".") in _EMPTY_VALUES:
        return ""
    return value


def _parse_characters(section: str) -> list[CharacterResponse]:
    responses = []
    for block in _CHARACTER_BLOCK.finditer(section):
        body = block.group(1)
        first_line = body.split("\n", 1)[0]
        name = _clean(_BLOCK_NAME_PREFIX.sub("", first_line))
        if not name or not name[0].isupper():
            continue

        dialogue = _DIALOGUE.search(body)
        action = _ACTION.search(body)
        emotion = _EMOTION.search(body)
        responses.append(
            CharacterResponse(
                character_name=name,
                dialogue=_clean(dialogue.group(1)) if dialogue else "",
                action=_clean(action.group(1)) if action else "",
                emotion=_clean(emotion.group(1)) if emotion else "",
            )
        )
    return responses


def _parse_relationships(line: str) -> list[RelationshipChange]:
    changes = []
    for entry in line.split(";"):
        pair, sep, change = entry.partition(":")
        if not sep:
            continue
        names = pair.split(" and ")
        if len(names) < 2:
            continue
        changes.append(
            RelationshipChange(
                character1=names[0].strip(),
                character2=names[1].strip(),
                change=change.strip(),
            )
        )
    return changes


def parse_extraction_reply(reply: str) -> InteractionRecord:
    """Read the `Label: value` layout back into a partial InteractionRecord."""
    record = InteractionRecord()
    if not reply:
        return record

    if match := _SCENE.search(reply):
        record.scene_description = _clean(match.group(1))
    if match := _LOCATION.search(reply):
        record.location = _clean(match.group(1))
    if match := _CHARACTER_SECTION.search(reply):
        record.character_responses = _parse_characters(match.group(1))
    if match := _PLOT.search(reply):
        record.plot_developments = [p for p in (_clean(s) for s in match.group(1).split(";")) if p]
    if match := _RELATIONSHIPS.search(reply):
        record.relationship_changes = _parse_relationships(_clean(match.group(1)))
    return record


def merge_missing(primary: InteractionRecord, fallback: InteractionRecord) -> InteractionRecord:
    """Fill fields that are still empty in `primary` from `fallback`.

    Values already present in `primary` are never overwritten.
    """
    updates = {}
    for field in (
        "scene_description",
        "location",
        "character_responses",
        "plot_developments",
        "relationship_changes",
    ):
        if not getattr(primary, field) and getattr(fallback, field):
            updates[field] = getattr(fallback, field)
    return primary.model_copy(update=updates) if updates else primary
