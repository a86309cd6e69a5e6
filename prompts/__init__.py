"""Prompt templates and assembly.

TemplateRepository:
    Named templates loaded from YAML / text files.

PromptAssembler:
    Combines relevant memories, recent history and story configuration
    into the prompt for each turn.
"""

from prompts.assembler import PromptAssembler
from prompts.repository import PromptTemplate, TemplateNotFoundError, TemplateRepository, substitute

__all__ = [
    "PromptAssembler",
    "PromptTemplate",
    "TemplateNotFoundError",
    "TemplateRepository",
    "substitute",
]
