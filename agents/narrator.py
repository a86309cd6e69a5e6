"""Narrator agent: writes the story.

The narrator receives a fully assembled prompt (memories, recent history,
story configuration and the player's action) and returns the raw response
that the extractor turns into a memory. Responses are usually JSON as
requested by the templates, but free text is accepted downstream.
"""

import logging

from agents.llm import NORMAL_DIALOGUE, TextGenerator

logger = logging.getLogger(__name__)


class NarratorAgent:
    """Generates story turns with the narrator model.

    Errors propagate: a failed narrator call fails the turn.
    """

    def __init__(self, llm: TextGenerator):
        self.llm = llm

    async def continue_story(self, prompt: str) -> str:
        """Generate the response to an assembled turn prompt."""
        response = await self.llm.invoke(prompt, NORMAL_DIALOGUE)
        logger.info("Narrator response | chars=%d", len(response))
        return response

    async def opening_scene(self, prompt: str) -> str:
        """Generate the opening scene from the `initial` prompt."""
        response = await self.llm.invoke(prompt, NORMAL_DIALOGUE)
        logger.info("Opening scene generated | chars=%d", len(response))
        return response
