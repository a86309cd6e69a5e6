"""Structured extraction of story turns.

StructuredExtractor turns a raw narrator response into an InteractionRecord
in up to two passes:

    1. Primary pass
       - JSON responses (optionally fenced) are read with ordered strategies
       - Free text is read with independent rule-based matchers
    2. Fallback pass (only when the scene or the character responses are
       still missing): one model request restating the response in a fixed
       layout; its values fill only the fields that are still empty

Extraction never fails the caller. Any internal error is logged and the raw
text becomes the scene description.
"""

import logging

from agents.llm import EXTRACTION, TextGenerator
from extraction import rules
from extraction.fallback import build_extraction_prompt, merge_missing, parse_extraction_reply
from extraction.strategies import interaction_from_json, parse_json_response
from models.interaction import InteractionRecord

logger = logging.getLogger(__name__)


def extract_rule_based(text: str, player_action: str) -> InteractionRecord:
    """Run every rule-based matcher over free text."""
    return InteractionRecord(
        player_action=player_action,
        scene_description=rules.extract_scene_description(text),
        location=rules.extract_location(text),
        character_responses=rules.extract_character_responses(text),
        plot_developments=rules.extract_plot_developments(text),
        relationship_changes=rules.extract_relationship_changes(text),
    )


def extract_primary(text: str, player_action: str) -> InteractionRecord:
    """Primary pass: JSON strategies when the response is JSON, rules otherwise."""
    data = parse_json_response(text)
    if data is not None:
        logger.debug("Extracting from JSON response | keys=%s", ",".join(sorted(data)))
        return interaction_from_json(data, player_action)
    return extract_rule_based(text, player_action)


def needs_fallback(record: InteractionRecord) -> bool:
    return not record.scene_description.strip() or not record.character_responses


class StructuredExtractor:
    """Converts raw narrator output into InteractionRecords.

    Args:
        llm: Text generator used by the fallback pass. Without one, the
            fallback pass is skipped.

    Example:
        >>> extractor = StructuredExtractor(llm)
        >>> record = await extractor.extract(raw_text, "Ask Morgan about the key")
    """

    def __init__(self, llm: TextGenerator | None = None):
        self.llm = llm

    async def _fallback(self, text: str) -> InteractionRecord:
        try:
            reply = await self.llm.invoke(build_extraction_prompt(text), EXTRACTION)
        except Exception as e:
            logger.warning("Extraction fallback failed | error=%s: %s", type(e).__name__, e)
            return InteractionRecord()
        return parse_extraction_reply(reply)

    async def extract(self, raw_text: str, player_action: str) -> InteractionRecord:
        """Extract an InteractionRecord from a raw response. Never raises."""
        raw_text = raw_text or ""
        try:
            record = extract_primary(raw_text, player_action)

            if needs_fallback(record) and self.llm is not None:
                logger.debug(
                    "Primary extraction incomplete, using fallback | scene=%s responses=%d",
                    bool(record.scene_description),
                    len(record.character_responses),
                )
                record = merge_missing(record, await self._fallback(raw_text))
        except Exception as e:
            logger.error("Extraction failed | error=%s: %s", type(e).__name__, e, exc_info=True)
            return InteractionRecord(player_action=player_action, scene_description=raw_text)

        if not record.scene_description.strip():
            # Degenerate but usable: nothing else recognised the scene
            record = record.model_copy(update={"scene_description": raw_text})

        logger.info(
            "Extracted interaction | characters=%d location=%s plot=%d relationships=%d",
            len(record.character_responses),
            record.location or "-",
            len(record.plot_developments),
            len(record.relationship_changes),
        )
        return record
