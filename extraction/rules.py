"""Rule-based field matchers for free-text story responses.

Each matcher reads one field from the raw text and is independent of the
others. Matchers never raise on odd input; a field they cannot find comes
back empty.

Names are matched with an ASCII heuristic: a capital letter followed by
letters and spaces, optionally with a parenthesized emotion
(`Morgan (angry):`). Names with digits, accents or punctuation are missed.
"""

import re

from models.interaction import CharacterResponse, RelationshipChange

# Speaker header at the start of a line: "Name:" or "Name (emotion):"
_SPEAKER = r"[A-Z][A-Za-z \t]*?(?:[ \t]*\([^)\n]*\))?"
SPEAKER_LINE = re.compile(rf"^(?P<name>{_SPEAKER})[ \t]*:(?=\s|$)", re.MULTILINE)

_PARAGRAPH_SPLIT = re.compile(r"\r?\n[ \t]*\r?\n")
_ACTION = re.compile(r"\(([^)]+)\)")
_EMOTION_SUFFIX = re.compile(r"^(?P<name>.*?)\s*\((?P<emotion>[^)]*)\)\s*$")

LOCATION_PATTERNS = [
    re.compile(r"\bin\s+the\s+([A-Za-z0-9' \t]+)", re.IGNORECASE),
    re.compile(r"\bat\s+the\s+([A-Za-z0-9' \t]+)", re.IGNORECASE),
    re.compile(r"\binside\s+the\s+([A-Za-z0-9' \t]+)", re.IGNORECASE),
    re.compile(r"\blocation:[ \t]*([A-Za-z0-9' \t]+)", re.IGNORECASE),
]

PLOT_PATTERNS = [
    re.compile(r"The\s+story\s+progresses\s+as\s+([^.!?]+)[.!?]", re.IGNORECASE),
    re.compile(r"A\s+new\s+development\s+([^.!?]+)[.!?]", re.IGNORECASE),
    re.compile(r"The\s+plot\s+thickens\s+as\s+([^.!?]+)[.!?]", re.IGNORECASE),
]

_NAME = r"[A-Z][A-Za-z]*(?:[ \t][A-Z][A-Za-z]*)*"
RELATIONSHIP_PATTERNS = [
    re.compile(
        rf"(?i:the\s+relationship\s+between)\s+({_NAME})\s+and\s+({_NAME})\s+([^.!?]+)[.!?]"
    ),
    re.compile(
        rf"\b({_NAME})\s+and\s+({_NAME})\s+(?i:are\s+now|becomes?|grows?)\s+([A-Za-z \t]+)"
    ),
]


def split_paragraphs(text: str) -> list[str]:
    return [p.strip() for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]


def extract_scene_description(text: str) -> str:
    """Join every paragraph before the first one that contains a speaker line."""
    scene = []
    for paragraph in split_paragraphs(text):
        if SPEAKER_LINE.search(paragraph):
            break
        scene.append(paragraph)
    return "\n\n".join(scene).strip()


def _split_speaker(raw_name: str) -> tuple[str, str]:
    """Split "Name (emotion)" into (name, emotion)."""
    match = _EMOTION_SUFFIX.match(raw_name.strip())
    if match:
        return match.group("name").strip(), match.group("emotion").strip()
    return raw_name.strip(), ""


def extract_character_responses(text: str) -> list[CharacterResponse]:
    """Read every `Name: ...` turn, up to the next speaker line or the end.

    Parenthesized asides in a turn become the action (joined with "; ") and
    are removed from the dialogue.
    """
    headers = list(SPEAKER_LINE.finditer(text))
    responses = []
    for i, header in enumerate(headers):
        end = headers[i + 1].start() if i + 1 < len(headers) else len(text)
        body = text[header.end():end].strip()

        actions = [a.strip() for a in _ACTION.findall(body)]
        dialogue = re.sub(r"[ \t]{2,}", " ", _ACTION.sub("", body)).strip()
        name, emotion = _split_speaker(header.group("name"))

        responses.append(
            CharacterResponse(
                character_name=name,
                dialogue=dialogue,
                action="; ".join(a for a in actions if a),
                emotion=emotion,
            )
        )
    return responses


def extract_location(text: str) -> str:
    """First pattern (in order) that matches wins."""
    for pattern in LOCATION_PATTERNS:
        match = pattern.search(text)
        if match:
            location = match.group(1).strip()
            if location:
                return location
    return ""


def extract_plot_developments(text: str) -> list[str]:
    found = []
    for pattern in PLOT_PATTERNS:
        for match in pattern.finditer(text):
            found.append((match.start(), match.group(1).strip()))
    return [development for _, development in sorted(found, key=lambda m: m[0])]


def extract_relationship_changes(text: str) -> list[RelationshipChange]:
    """Relationship deltas in order of appearance.

    Overlapping matches keep the one that starts first, so "The relationship
    between A and B grows ..." yields one change, not two.
    """
    matches = []
    for pattern in RELATIONSHIP_PATTERNS:
        matches.extend(pattern.finditer(text))
    matches.sort(key=lambda m: (m.start(), -m.end()))

    changes = []
    last_end = -1
    for match in matches:
        if match.start() < last_end:
            continue
        last_end = match.end()
        changes.append(
            RelationshipChange(
                character1=match.group(1).strip(),
                character2=match.group(2).strip(),
                change=match.group(3).strip(),
            )
        )
    return changes
