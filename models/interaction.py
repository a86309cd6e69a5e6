"""Structured interaction models for a single story turn.

An InteractionRecord is the non-embedded payload of a memory: the scene,
who said and did what, where it happened, and any plot or relationship
deltas the turn introduced. Records are produced by the structured
extractor from the narrator's raw response.
"""

from pydantic import BaseModel, Field


class CharacterResponse(BaseModel):
    """One character's reaction within a turn.

    All fields are optional. A response without a name or without dialogue
    is not shown to the player but is still kept on the record.
    """

    character_name: str = Field(default="", description="Speaking character")
    dialogue: str = Field(default="", description="What the character says")
    action: str = Field(default="", description="What the character does")
    emotion: str = Field(default="", description="Emotional state")
    internal_thoughts: str = Field(default="", description="Unspoken thoughts")

    @property
    def is_displayable(self) -> bool:
        """True when the response has both a speaker and dialogue."""
        return bool(self.character_name) and bool(self.dialogue)

    def format_line(self) -> str:
        """Render as `Name: dialogue (action)`."""
        line = f"{self.character_name}: {self.dialogue}"
        if self.action:
            line += f" ({self.action})"
        return line


class RelationshipChange(BaseModel):
    """A shift in the relationship between two characters."""

    character1: str = ""
    character2: str = ""
    change: str = Field(default="", description="Nature of the change")
    reason: str = ""
    change_value: float = Field(default=0.0, description="Numeric weight (unused by scoring)")


class InteractionRecord(BaseModel):
    """Structured representation of one story turn.

    Attributes:
        player_action: Player input that triggered the turn
        scene_description: Narrative description of the scene
        location: Where the turn takes place
        character_responses: Reactions of each character, in order
        plot_developments: New plot developments, in order of appearance
        relationship_changes: Relationship deltas, in order of appearance
        narrative_progression: Short note on how the story moved forward
        suggested_actions: Optional next actions offered to the player
    """

    player_action: str = ""
    scene_description: str = ""
    location: str = ""
    character_responses: list[CharacterResponse] = Field(default_factory=list)
    plot_developments: list[str] = Field(default_factory=list)
    relationship_changes: list[RelationshipChange] = Field(default_factory=list)
    narrative_progression: str = ""
    suggested_actions: list[str] = Field(default_factory=list)

    def characters_involved(self) -> list[str]:
        """Unique non-empty character names, in order of first appearance."""
        names = [r.character_name.strip() for r in self.character_responses]
        return list(dict.fromkeys(n for n in names if n))

    def plot_elements(self) -> list[str]:
        """Unique non-empty plot developments, in order of first appearance."""
        return list(dict.fromkeys(p.strip() for p in self.plot_developments if p.strip()))

    def locations_involved(self) -> list[str]:
        """The turn's location as a filterable list (empty when unknown)."""
        location = self.location.strip()
        return [location] if location else []

    def character_lines(self) -> str:
        """One `Name: dialogue (action)` line per character response."""
        return "\n".join(r.format_line() for r in self.character_responses)

    def render_text(self) -> str:
        """Reconstruct readable text: scene description, then dialogue lines.

        Paragraphs are separated by blank lines so the output can be fed back
        through the rule-based extractor.
        """
        parts = []
        if self.scene_description:
            parts.append(self.scene_description)
        parts.extend(r.format_line() for r in self.character_responses if r.character_name)
        return "\n\n".join(parts)
