"""Prompt assembly for story turns.

Each turn prompt combines three sources:

    1. Relevant memories: semantic search keyed on the player's action
    2. Recent history: the last few turns in chronological order
    3. Story configuration: setting, cast and player character

and substitutes them into a named template (default "story").

Memory block format (one per memory, oldest first):

    MEMORY ID: 1718000000123
    RELEVANCE: High
    EVENT: Morgan refuses to open the study.
    CHARACTERS: Morgan, Eleanor
    LOCATION: the study
    EMOTIONAL IMPACT: Morgan: defensive        (only if any emotion)
    NARRATIVE SIGNIFICANCE: The key is missing (only if any plot development)
"""

import logging

from memory.retriever import MemoryRetriever
from models.memory import MemoryRecord
from models.story import StoryConfig
from prompts.repository import TemplateRepository

logger = logging.getLogger(__name__)

INITIAL_TEMPLATE = "initial"


def format_memories(memories: list[MemoryRecord]) -> str:
    """Render memories as prompt blocks, oldest first."""
    blocks = []
    for memory in sorted(memories, key=lambda m: (m.created_at, m.id)):
        interaction = memory.interaction
        lines = [
            f"MEMORY ID: {memory.id}",
            "RELEVANCE: High",
            f"EVENT: {memory.summary}",
            f"CHARACTERS: {', '.join(memory.characters_involved)}",
            f"LOCATION: {interaction.location}",
        ]
        emotions = [
            f"{r.character_name}: {r.emotion}" for r in interaction.character_responses if r.emotion
        ]
        if emotions:
            lines.append(f"EMOTIONAL IMPACT: {', '.join(emotions)}")
        if interaction.plot_developments:
            lines.append(f"NARRATIVE SIGNIFICANCE: {', '.join(interaction.plot_developments)}")
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def format_recent_history(records: list[MemoryRecord]) -> str:
    """`[Player] action` then one `[Name] dialogue (action)` line per response."""
    entries = []
    for record in records:
        lines = [f"[Player] {record.interaction.player_action}"]
        for response in record.interaction.character_responses:
            line = f"[{response.character_name}] {response.dialogue}"
            if response.action:
                line += f" ({response.action})"
            lines.append(line)
        entries.append("\n".join(lines))
    return "\n\n".join(entries)


def format_character_roster(story: StoryConfig) -> str:
    return "\n".join(f"* {c.name}: {c.personality}" for c in story.characters)


class PromptAssembler:
    """Builds grounded prompts for each story turn.

    Args:
        retriever: Memory retriever for relevant and recent memories
        templates: Template repository
        story: Static story configuration
        template_name: Template used for turn prompts
        relevant_limit: Relevant memories per prompt
        recent_size: Recent records per prompt
    """

    def __init__(
        self,
        retriever: MemoryRetriever,
        templates: TemplateRepository,
        story: StoryConfig,
        template_name: str = "story",
        relevant_limit: int = 5,
        recent_size: int = 3,
    ):
        self.retriever = retriever
        self.templates = templates
        self.story = story
        self.template_name = template_name
        self.relevant_limit = relevant_limit
        self.recent_size = recent_size

    def story_variables(self) -> dict[str, str]:
        """Template variables that depend only on the story configuration."""
        player = self.story.player
        return {
            "story_title": self.story.title,
            "genre": self.story.genre,
            "story_setting": self.story.setting,
            "characters": format_character_roster(self.story),
            "player.name": player.name if player else "Player",
            "player.background": player.background if player else "",
        }

    async def build_prompt(self, player_action: str) -> str:
        """Assemble the turn prompt for `player_action`.

        Raises:
            TemplateNotFoundError: If the configured template does not exist
            EmbeddingError / store errors: If memory retrieval fails
        """
        template = self.templates.get_template(self.template_name)

        relevant = await self.retriever.retrieve_relevant(player_action, limit=self.relevant_limit)
        recent = await self.retriever.recent_history(self.recent_size)

        current_location = ""
        if recent:
            current_location = recent[-1].interaction.location
        if not current_location:
            current_location = self.story.setting

        variables = self.story_variables()
        variables.update(
            {
                "story_context": format_memories(relevant),
                "recent_history": format_recent_history(recent),
                "current_location": current_location,
                "player_action": player_action,
            }
        )
        prompt = template.format(**variables)
        logger.debug(
            "Prompt assembled | template=%s relevant=%d recent=%d chars=%d",
            self.template_name,
            len(relevant),
            len(recent),
            len(prompt),
        )
        return prompt

    def build_opening_prompt(self) -> str:
        """Prompt for the opening scene (`initial` template)."""
        return self.templates.format(
            INITIAL_TEMPLATE,
            {
                "setting": self.story.setting,
                "characters": self.story.npc_roster(),
                "playerCharacter": self.story.player_description(),
            },
        )
