"""Summary generation for story memories.

Each memory carries a one or two sentence summary written by the summary
model from the `summarize` template. The summary is what retrieval shows
the narrator as the EVENT of a past memory, and it leads the embedded text.

A missing summary must never block the story: on any failure (network,
timeout, missing template, empty reply) the generator falls back to

    "Interaction involving {characters} at {location}."
"""

import logging

from agents.llm import SUMMARIZATION, TextGenerator
from models.interaction import InteractionRecord
from prompts.repository import TemplateRepository

logger = logging.getLogger(__name__)

SUMMARY_TEMPLATE = "summarize"


def fallback_summary(interaction: InteractionRecord) -> str:
    """Deterministic summary used when the model cannot provide one."""
    characters = ", ".join(interaction.characters_involved())
    return f"Interaction involving {characters} at {interaction.location}."


def format_character_responses(interaction: InteractionRecord) -> str:
    return interaction.character_lines()


class SummaryGenerator:
    """Writes memory summaries with the summary model.

    Example:
        >>> summarizer = SummaryGenerator(ChatModel(config.summary_model), templates)
        >>> summary = await summarizer.summarize(interaction)
    """

    def __init__(self, llm: TextGenerator, templates: TemplateRepository):
        self.llm = llm
        self.templates = templates

    async def summarize(self, interaction: InteractionRecord) -> str:
        """Summarize an interaction. Never raises."""
        try:
            prompt = self.templates.format(
                SUMMARY_TEMPLATE,
                {
                    "playerAction": interaction.player_action,
                    "sceneDescription": interaction.scene_description,
                    "characterResponses": format_character_responses(interaction),
                },
            )
            summary = (await self.llm.invoke(prompt, SUMMARIZATION)).strip()
            if not summary:
                raise ValueError("empty summary")
        except Exception as e:
            logger.error("Summary generation failed | error=%s: %s", type(e).__name__, e)
            return fallback_summary(interaction)

        logger.debug("Summary generated | chars=%d", len(summary))
        return summary
