"""Story configuration and scenario files."""

import json

import pytest

from models.story import (
    DEFAULT_PLAYER_DESCRIPTION,
    Character,
    ScenarioLoadError,
    StoryConfig,
    StoryScenario,
    default_story,
    load_story_config,
)

SCENARIO = {
    "moduleInfo": {
        "id": "ashgrove",
        "name": "Secrets of Ashgrove",
        "description": "A gothic mystery. Someone in the house is lying.",
    },
    "playerCharacter": {
        "name": "Inspector Hale",
        "description": "A weary inspector from the city.",
        "personalityTraits": {"personality": "Dry, methodical"},
    },
    "npcs": [
        {
            "name": "Morgan",
            "backStory": "Butler for thirty years.",
            "personalityTraits": {"personality": "Guarded", "role": "butler"},
            "prompt": "Speak formally.",
        }
    ],
    "storyBackground": [
        {"summary": "The lord is dead.", "context": {"time": "night"}},
        {"summary": "A storm cuts off the manor.", "context": {}},
    ],
}


class TestScenarioConversion:
    def test_to_story_config(self):
        story = StoryScenario.model_validate(SCENARIO).to_story_config()

        assert story.title == "Secrets of Ashgrove"
        assert story.genre == "A gothic mystery"
        assert story.setting == "The lord is dead. A storm cuts off the manor."
        player, morgan = story.characters
        assert player.is_player_character
        assert player.name == "Inspector Hale"
        assert player.personality == "Dry, methodical"
        assert player.motivation == "To engage with the story"
        assert morgan.background == "Butler for thirty years."
        assert morgan.motivation == "butler"

    def test_player_and_npcs(self):
        story = StoryScenario.model_validate(SCENARIO).to_story_config()

        assert story.player.name == "Inspector Hale"
        assert [c.name for c in story.npcs] == ["Morgan"]
        assert story.npc_roster() == "- Morgan: Guarded"
        assert story.player_description() == (
            "Inspector Hale: Dry, methodical - A weary inspector from the city."
        )

    def test_default_player_description(self):
        story = StoryConfig(characters=[Character(name="Morgan")])
        assert story.player_description() == DEFAULT_PLAYER_DESCRIPTION


class TestLoadStoryConfig:
    def test_scenario_file(self, tmp_path):
        path = tmp_path / "scenario.json"
        path.write_text(json.dumps(SCENARIO), encoding="utf-8")
        assert load_story_config(path).title == "Secrets of Ashgrove"

    def test_plain_story_file(self, tmp_path):
        path = tmp_path / "story.json"
        path.write_text(default_story().model_dump_json(), encoding="utf-8")
        assert load_story_config(path) == default_story()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ScenarioLoadError):
            load_story_config(tmp_path / "absent.json")

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"characters": "nobody"}'])
    def test_invalid_content(self, tmp_path, content):
        path = tmp_path / "bad.json"
        path.write_text(content, encoding="utf-8")
        with pytest.raises(ScenarioLoadError):
            load_story_config(path)
