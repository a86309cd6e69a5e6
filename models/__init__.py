"""Pydantic models for the Fable story engine.

This package contains the data models shared across the engine:

InteractionRecord:
    Structured form of one narrator response (scene, location, character
    responses, plot developments, relationship changes).

CharacterResponse / RelationshipChange:
    Parts of an InteractionRecord.

MemoryRecord:
    Immutable stored memory: the interaction plus derived characters,
    locations, plot elements, embedding, importance and summary.

StoryConfig / Character:
    Story title, setting, genre and cast.

StoryScenario:
    Scenario file format, converted with to_story_config().

Example:
    >>> from models import InteractionRecord, MemoryRecord
    >>> interaction = InteractionRecord(player_action="Look around", scene_description="...")
    >>> record = MemoryRecord.create("raw text", interaction, embedding, 0.3, "summary")
"""

from models.interaction import CharacterResponse, InteractionRecord, RelationshipChange
from models.memory import MEMORY_TYPE_INTERACTION, MemoryRecord
from models.story import (
    Character,
    ScenarioLoadError,
    StoryConfig,
    StoryScenario,
    default_story,
    load_story_config,
)

__all__ = [
    "CharacterResponse",
    "InteractionRecord",
    "RelationshipChange",
    "MEMORY_TYPE_INTERACTION",
    "MemoryRecord",
    "Character",
    "ScenarioLoadError",
    "StoryConfig",
    "StoryScenario",
    "default_story",
    "load_story_config",
]
