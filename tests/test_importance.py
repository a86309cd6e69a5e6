"""Importance scoring."""

import pytest

from memory.importance import importance_score, score_interaction
from models.interaction import RelationshipChange
from tests.fakes import make_interaction


class TestImportanceScore:
    def test_nothing_detected_scores_half(self):
        assert importance_score(0, 0, 0) == 0.5

    def test_saturates_at_one(self):
        assert importance_score(10, 10, 10) == 1.0

    @pytest.mark.parametrize(
        "counts, expected",
        [
            ((1, 0, 0), 0.6),
            ((2, 1, 0), 0.85),
            ((3, 2, 0), 1.0),
            ((0, 0, 1), 0.7),
            ((5, 0, 0), 0.8),
        ],
    )
    def test_weights_and_caps(self, counts, expected):
        assert importance_score(*counts) == pytest.approx(expected)

    def test_stays_in_unit_interval(self):
        for c in range(6):
            for p in range(6):
                for r in range(6):
                    assert 0.0 <= importance_score(c, p, r) <= 1.0


class TestScoreInteraction:
    def test_counts_unique_characters_and_plot(self):
        interaction = make_interaction(
            characters=("Morgan", "Eleanor", "Morgan"),
            plot=("The key is missing", "The key is missing"),
        )
        # 2 unique characters, 1 unique plot element
        assert score_interaction(interaction) == pytest.approx(0.85)

    def test_relationship_changes_count(self):
        interaction = make_interaction().model_copy(
            update={"relationship_changes": [RelationshipChange(character1="A", character2="B")]}
        )
        assert score_interaction(interaction) == pytest.approx(0.7)
