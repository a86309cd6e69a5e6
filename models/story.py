"""Story configuration models.

StoryConfig is the static description of the story being played: title,
setting, genre and the cast. It can be loaded from two JSON layouts:

    1. A plain StoryConfig document ({"title", "setting", "genre", "characters"})
    2. A story scenario module ({"moduleInfo", "playerCharacter", "npcs",
       "storyBackground"}) converted with StoryScenario.to_story_config()
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_PLAYER_DESCRIPTION = "Detective: A sharp-minded investigator with a keen eye for details."


class ScenarioLoadError(Exception):
    """Raised when a story file cannot be read or parsed."""


class Character(BaseModel):
    """A member of the story's cast."""

    name: str = ""
    personality: str = ""
    background: str = ""
    motivation: str = ""
    is_player_character: bool = False


class StoryConfig(BaseModel):
    """Static story configuration used to build prompts."""

    title: str = ""
    setting: str = ""
    genre: str = ""
    characters: list[Character] = Field(default_factory=list)

    @property
    def player(self) -> Character | None:
        """The player character, if the cast has one."""
        return next((c for c in self.characters if c.is_player_character), None)

    @property
    def npcs(self) -> list[Character]:
        return [c for c in self.characters if not c.is_player_character]

    def npc_roster(self) -> str:
        """One `- Name: personality` line per non-player character."""
        return "\n".join(f"- {c.name}: {c.personality}" for c in self.npcs)

    def player_description(self) -> str:
        """`Name: personality - background` for the player, or a default detective."""
        player = self.player
        if player is None:
            return DEFAULT_PLAYER_DESCRIPTION
        return f"{player.name}: {player.personality} - {player.background}"


# === Scenario module format ===


class ModuleInfo(BaseModel):
    id: str = ""
    name: str = ""
    description: str = ""


class PlayerCharacter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    description: str = ""
    personality_traits: dict[str, str] = Field(default_factory=dict, alias="personalityTraits")


class NpcCharacter(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    back_story: str = Field(default="", alias="backStory")
    personality_traits: dict[str, str] = Field(default_factory=dict, alias="personalityTraits")
    prompt: str = ""


class BackgroundElement(BaseModel):
    summary: str = ""
    context: dict[str, str] = Field(default_factory=dict)


class StoryScenario(BaseModel):
    """A story scenario module as authored in JSON (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    module_info: ModuleInfo = Field(default_factory=ModuleInfo, alias="moduleInfo")
    player_character: PlayerCharacter = Field(default_factory=PlayerCharacter, alias="playerCharacter")
    npcs: list[NpcCharacter] = Field(default_factory=list)
    story_background: list[BackgroundElement] = Field(default_factory=list, alias="storyBackground")

    def to_story_config(self) -> StoryConfig:
        """Flatten the scenario into a StoryConfig.

        The setting joins every background summary, the genre is the first
        sentence of the module description, and the player comes first in
        the cast.
        """
        characters = [
            Character(
                name=self.player_character.name,
                personality=self.player_character.personality_traits.get("personality", ""),
                background=self.player_character.description,
                motivation="To engage with the story",
                is_player_character=True,
            )
        ]
        for npc in self.npcs:
            characters.append(
                Character(
                    name=npc.name,
                    personality=npc.personality_traits.get("personality", ""),
                    background=npc.back_story,
                    motivation=npc.personality_traits.get("role", ""),
                )
            )

        return StoryConfig(
            title=self.module_info.name,
            setting=" ".join(b.summary for b in self.story_background),
            genre=self.module_info.description.split(".")[0],
            characters=characters,
        )


def load_story_config(path: str | Path) -> StoryConfig:
    """Load a story from a scenario module or a plain StoryConfig JSON file.

    Raises:
        ScenarioLoadError: If the file is missing, not JSON, or not a story
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.error("Scenario load failed | path=%s error=%s", path, e)
        raise ScenarioLoadError(f"Error loading scenario from {path}: {e}") from e

    if not isinstance(data, dict):
        raise ScenarioLoadError(f"Scenario {path} is not a JSON object")

    try:
        if "moduleInfo" in data or "playerCharacter" in data:
            story = StoryScenario.model_validate(data).to_story_config()
        else:
            story = StoryConfig.model_validate(data)
    except ValidationError as e:
        logger.error("Scenario validation failed | path=%s error=%s", path, e)
        raise ScenarioLoadError(f"Invalid scenario in {path}: {e}") from e

    logger.info("Scenario loaded | title=%s characters=%d", story.title, len(story.characters))
    return story


def default_story() -> StoryConfig:
    """Built-in demo story used when no scenario file is configured."""
    return StoryConfig(
        title="The Ashgrove Inheritance",
        setting=(
            "Ashgrove Manor, a decaying estate on the moors, the night after "
            "Lord Ashgrove was found dead in his locked study."
        ),
        genre="Gothic mystery",
        characters=[
            Character(
                name="Detective",
                personality="Observant, patient, quietly relentless",
                background="A city investigator called in by the family solicitor.",
                motivation="Find out who killed Lord Ashgrove",
                is_player_character=True,
            ),
            Character(
                name="Morgan",
                personality="Proud, guarded, fiercely loyal to the family",
                background="The manor's butler for thirty years.",
                motivation="Protect the Ashgrove name",
            ),
            Character(
                name="Eleanor",
                personality="Sharp-tongued, grieving, impatient",
                background="Lord Ashgrove's estranged daughter, returned for the will.",
                motivation="Secure her inheritance",
            ),
        ],
    )
