"""PydanticAI-backed agents for the Fable story engine.

ChatModel:
    Prompt-in, text-out completion with fixed sampling profiles.

NarratorAgent:
    Writes the opening scene and every story turn.

SummaryGenerator:
    Writes the one-line summary stored with each memory, with a
    deterministic fallback.

Example:
    >>> from agents import ChatModel, NarratorAgent
    >>> narrator = NarratorAgent(ChatModel(config.narrator_model))
    >>> response = await narrator.continue_story(prompt)
"""

from agents.llm import EXTRACTION, NORMAL_DIALOGUE, SUMMARIZATION, ChatModel, SamplingProfile
from agents.narrator import NarratorAgent
from agents.summarizer import SummaryGenerator

__all__ = [
    "ChatModel",
    "SamplingProfile",
    "NORMAL_DIALOGUE",
    "SUMMARIZATION",
    "EXTRACTION",
    "NarratorAgent",
    "SummaryGenerator",
]
