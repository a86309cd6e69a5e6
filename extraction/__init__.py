"""Structured extraction of narrator responses.

StructuredExtractor:
    Two-pass extraction (JSON strategies or text rules, then a model-assisted
    fallback) producing InteractionRecords.

Example:
    >>> from extraction import StructuredExtractor
    >>> record = await StructuredExtractor(llm).extract(raw_text, player_action)
"""

from extraction.extractor import StructuredExtractor
from extraction.strategies import ExtractionStrategy, parse_json_response, strip_code_fences

__all__ = [
    "StructuredExtractor",
    "ExtractionStrategy",
    "parse_json_response",
    "strip_code_fences",
]
