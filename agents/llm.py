"""Text generation backed by PydanticAI.

Every LLM call in the engine is a plain prompt-in, text-out completion with
one of a few fixed sampling profiles. ChatModel wraps a PydanticAI Agent
with `output_type=str` and applies the profile as per-run model settings.

Model strings follow PydanticAI conventions:
    - Remote: 'google-gla:gemini-3-flash-preview', 'openai:gpt-4o-mini'
    - Local OpenAI-compatible server: 'openai:{model_name}@http://127.0.0.1:8080/v1'
"""

import logging
from dataclasses import dataclass
from typing import Protocol

from openai import AsyncOpenAI
from pydantic_ai import Agent
from pydantic_ai.models.openai import OpenAIModel
from pydantic_ai.profiles.openai import OpenAIModelProfile
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SamplingProfile:
    """Sampling parameters for one kind of request."""

    name: str
    temperature: float
    max_tokens: int
    frequency_penalty: float = 0.0
    presence_penalty: float = 0.0

    def to_settings(self, timeout: float | None = None) -> ModelSettings:
        settings = ModelSettings(
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            frequency_penalty=self.frequency_penalty,
            presence_penalty=self.presence_penalty,
        )
        if timeout:
            settings["timeout"] = timeout
        return settings


# Story turns: some creativity, discourage repetition
NORMAL_DIALOGUE = SamplingProfile("normal_dialogue", 0.6, 1000, 0.4, 0.2)
# Memory summaries: short and factual
SUMMARIZATION = SamplingProfile("summarization", 0.2, 350, 0.1, 0.1)
# Extraction fallback: copy, don't invent
EXTRACTION = SamplingProfile("extraction", 0.1, 800)


class TextGenerator(Protocol):
    """Anything that completes a prompt with a sampling profile."""

    async def invoke(self, prompt: str, profile: SamplingProfile) -> str: ...


def _parse_local_model(model_str: str) -> tuple[str, str] | None:
    """Parse local model string into (model_name, base_url) or None if not local."""
    if model_str.startswith("openai:") and "@" in model_str:
        rest = model_str[7:]  # Remove "openai:" prefix
        model_name, base_url = rest.split("@", 1)
        return model_name, base_url
    return None


def _create_model(model_str: str):
    """Create a PydanticAI model instance or pass through remote model string."""
    parsed = _parse_local_model(model_str)
    if parsed:
        model_name, base_url = parsed
        logger.info("Using local model | model=%s base_url=%s", model_name, base_url)
        # Local servers don't need authentication - use placeholder
        client = AsyncOpenAI(base_url=base_url, api_key="local-model")
        profile = OpenAIModelProfile(supports_json_object_output=False)
        return OpenAIModel(
            model_name=model_name,
            provider=OpenAIProvider(openai_client=client),
            profile=profile,
        )
    return model_str


class ChatModel:
    """Prompt completion through a PydanticAI agent.

    Errors (network, timeouts, provider errors) propagate to the caller;
    callers decide whether a failure is fatal.

    Example:
        >>> llm = ChatModel("google-gla:gemini-3-flash-preview", timeout=60)
        >>> text = await llm.invoke("Describe the study.", NORMAL_DIALOGUE)
    """

    def __init__(self, model: str, timeout: float | None = None, system_prompt: str = ""):
        self.model = model
        self.timeout = timeout
        self._agent = Agent(
            _create_model(model),
            output_type=str,
            system_prompt=system_prompt,
            retries=1,
        )

    async def invoke(self, prompt: str, profile: SamplingProfile) -> str:
        result = await self._agent.run(prompt, model_settings=profile.to_settings(self.timeout))
        usage = result.usage()
        logger.debug(
            "LLM call | model=%s profile=%s requests=%d tokens=%d/%d",
            self.model,
            profile.name,
            usage.requests,
            usage.request_tokens or 0,
            usage.response_tokens or 0,
        )
        return (result.output or "").strip()
