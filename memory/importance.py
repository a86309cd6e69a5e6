"""Importance scoring for story memories.

A memory's importance is a fixed function of how much happened in the turn:

    score = 0.5
          + min(0.10 * characters, 0.3)
          + min(0.15 * plot elements, 0.3)
          + min(0.20 * relationship changes, 0.4)

clamped to [0, 1]. A turn with nothing detected scores exactly 0.5.
"""

from models.interaction import InteractionRecord

BASE_SCORE = 0.5

CHARACTER_WEIGHT, CHARACTER_CAP = 0.1, 0.3
PLOT_WEIGHT, PLOT_CAP = 0.15, 0.3
RELATIONSHIP_WEIGHT, RELATIONSHIP_CAP = 0.2, 0.4


def importance_score(characters: int, plot_elements: int, relationship_changes: int) -> float:
    """Score a turn from its counts. Negative counts are treated as zero."""
    score = BASE_SCORE
    score += min(CHARACTER_WEIGHT * max(characters, 0), CHARACTER_CAP)
    score += min(PLOT_WEIGHT * max(plot_elements, 0), PLOT_CAP)
    score += min(RELATIONSHIP_WEIGHT * max(relationship_changes, 0), RELATIONSHIP_CAP)
    # Round off float noise so 0.5 + 0.3 + 0.3 + 0.4 clamps to exactly 1.0
    return min(max(round(score, 6), 0.0), 1.0)


def score_interaction(interaction: InteractionRecord) -> float:
    """Score an interaction from its derived character and plot sets."""
    return importance_score(
        len(interaction.characters_involved()),
        len(interaction.plot_elements()),
        len(interaction.relationship_changes),
    )
