"""JSON response parsing with ordered extraction strategies."""

import json

import pytest

from memory.importance import score_interaction
from extraction.strategies import (
    ExtractionStrategy,
    SCENE_STRATEGIES,
    first_text,
    interaction_from_json,
    parse_json_response,
    strip_code_fences,
)


class TestParsing:
    def test_plain_json(self):
        assert parse_json_response('{"scene_description": "Fog."}') == {"scene_description": "Fog."}

    def test_fenced_json(self):
        text = '```json\n{"location": "the study"}\n```'
        assert strip_code_fences(text) == '{"location": "the study"}'
        assert parse_json_response(text) == {"location": "the study"}

    def test_not_json(self):
        assert parse_json_response("Morgan: Hello.") is None
        assert parse_json_response("{broken") is None
        assert parse_json_response("[1, 2]") is None


class TestStrategies:
    def test_path_with_index(self):
        strategy = ExtractionStrategy("between.1", ("between", 1))
        assert strategy.extract({"between": ["Morgan", "Eleanor"]}) == "Eleanor"
        assert strategy.extract({"between": ["Morgan"]}) is None
        assert strategy.extract({"between": "Morgan"}) is None

    def test_first_non_empty_wins(self):
        data = {"scene_description": "", "scene": {"description": "Candles flicker."}}
        assert first_text(data, SCENE_STRATEGIES) == "Candles flicker."

    def test_priority_order(self):
        data = {
            "scene_description": "Primary.",
            "narrative_response": {"scene_description": "Secondary."},
        }
        assert first_text(data, SCENE_STRATEGIES) == "Primary."


class TestInteractionFromJson:
    def test_standard_layout(self):
        data = {
            "scene_description": "The study is cold.",
            "current_location": "the study",
            "character_responses": [
                {
                    "character_name": "Morgan",
                    "dialogue": "It was locked.",
                    "action": "points at the door",
                    "emotion": "defensive",
                }
            ],
            "plot_developments": ["The key is missing"],
            "relationship_changes": [
                {"character1": "Morgan", "character2": "Eleanor", "change": "strained", "change_value": -1}
            ],
            "narrative_progression": "Suspicion grows.",
            "available_actions": ["Search the desk", "Question Eleanor"],
        }
        record = interaction_from_json(data, "Ask about the key")

        assert record.player_action == "Ask about the key"
        assert record.scene_description == "The study is cold."
        assert record.location == "the study"
        assert record.character_responses[0].character_name == "Morgan"
        assert record.character_responses[0].emotion == "defensive"
        assert record.plot_developments == ["The key is missing"]
        assert record.relationship_changes[0].change_value == -1.0
        assert record.narrative_progression == "Suspicion grows."
        assert record.suggested_actions == ["Search the desk", "Question Eleanor"]

    def test_alternate_layout(self):
        data = {
            "narrative_response": {"scene_description": "Thunder rolls."},
            "location": "the hall",
            "character_responses": [
                {
                    "character": "Eleanor",
                    "dialogue": "Leave.",
                    "actions": ["turns away", "slams the door"],
                    "emotional_state": "furious",
                }
            ],
            "story_tracking": {"plot_developments": ["Eleanor hides something"]},
            "relationship_changes": [{"between": ["Eleanor", "Detective"], "change": "hostile"}],
            "player_options": {"suggested_actions": ["Follow her"]},
        }
        record = interaction_from_json(data, "Knock")

        assert record.scene_description == "Thunder rolls."
        assert record.location == "the hall"
        response = record.character_responses[0]
        assert response.character_name == "Eleanor"
        assert response.action == "turns away; slams the door"
        assert response.emotion == "furious"
        assert record.plot_developments == ["Eleanor hides something"]
        assert record.relationship_changes[0].character1 == "Eleanor"
        assert record.relationship_changes[0].character2 == "Detective"
        assert record.suggested_actions == ["Follow her"]

    def test_malformed_parts_left_empty(self):
        data = json.loads(
            '{"scene_description": 42, "character_responses": "nobody", '
            '"plot_developments": [1, null, "Real one"], "relationship_changes": ["oops"]}'
        )
        record = interaction_from_json(data, "Wait")

        assert record.scene_description == "42"
        assert record.character_responses == []
        assert record.plot_developments == ["Real one"]
        assert record.relationship_changes == []

    def test_relationship_without_both_names_dropped(self):
        data = {
            "scene_description": "Rain on the windows.",
            "relationship_changes": [
                {},
                {"character1": "Morgan", "change": "colder"},
                {"between": ["Eleanor"], "change": "wary"},
                {"character1": "Morgan", "character2": "Eleanor", "change": "strained"},
            ],
        }
        record = interaction_from_json(data, "Wait")

        assert [(c.character1, c.character2) for c in record.relationship_changes] == [("Morgan", "Eleanor")]
        assert score_interaction(record) == pytest.approx(0.7)

    def test_only_nameless_relationships_score_as_empty(self):
        record = interaction_from_json({"scene_description": "x", "relationship_changes": [{}, {}]}, "Wait")

        assert record.relationship_changes == []
        assert score_interaction(record) == 0.5
