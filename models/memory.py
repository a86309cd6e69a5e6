"""Memory record model persisted by the memory store.

A MemoryRecord is one embedded, immutable snapshot of a single story turn.
Records are append-only: created once per turn, never updated.

Identity:
    Record ids are derived from creation time in milliseconds. Within a
    process they are strictly increasing even when several records are
    created in the same millisecond (the generator bumps to last + 1).
"""

import threading
import time

from pydantic import BaseModel, ConfigDict, Field

from models.interaction import InteractionRecord

MEMORY_TYPE_INTERACTION = "story_interaction"


class _MemoryIdGenerator:
    """Monotonic millisecond id source, safe across threads."""

    def __init__(self):
        self._lock = threading.Lock()
        self._last = 0

    def next_id(self) -> int:
        with self._lock:
            candidate = time.time_ns() // 1_000_000
            if candidate <= self._last:
                candidate = self._last + 1
            self._last = candidate
            return candidate


_id_generator = _MemoryIdGenerator()


def next_memory_id() -> int:
    """Return a new memory id, strictly greater than any previous one."""
    return _id_generator.next_id()


class MemoryRecord(BaseModel):
    """A persisted story memory.

    The filter lists (characters, locations, plot elements) are derived from
    the interaction and exist so stores can filter on them; the interaction
    is the authoritative source.

    Example:
        >>> record = MemoryRecord.create(
        ...     content=raw_response,
        ...     interaction=interaction,
        ...     embedding=vector,
        ...     importance=0.7,
        ...     summary="Morgan refuses to believe the detective.",
        ... )
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Millisecond-derived monotonic key")
    memory_type: str = MEMORY_TYPE_INTERACTION
    content: str = Field(default="", description="Raw AI response text")
    created_at: int = Field(description="Creation time (Unix seconds)")
    interaction: InteractionRecord = Field(default_factory=InteractionRecord)
    characters_involved: list[str] = Field(default_factory=list)
    locations_involved: list[str] = Field(default_factory=list)
    plot_elements: list[str] = Field(default_factory=list)
    embedding: list[float] = Field(default_factory=list)
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    summary: str = ""

    @classmethod
    def create(
        cls,
        content: str,
        interaction: InteractionRecord,
        embedding: list[float],
        importance: float,
        summary: str,
    ) -> "MemoryRecord":
        """Build a new record, assigning id and timestamp and deriving filter fields."""
        memory_id = next_memory_id()
        return cls(
            id=memory_id,
            content=content,
            created_at=memory_id // 1000,
            interaction=interaction,
            characters_involved=interaction.characters_involved(),
            locations_involved=interaction.locations_involved(),
            plot_elements=interaction.plot_elements(),
            embedding=list(embedding),
            importance=importance,
            summary=summary,
        )

    @staticmethod
    def build_embedding_text(summary: str, interaction: InteractionRecord) -> str:
        """Text embedded for a memory: summary, scene, then each character's line."""
        lines = [
            f"{r.character_name}: {r.dialogue} {r.action}".rstrip()
            for r in interaction.character_responses
        ]
        return f"{summary}\n{interaction.scene_description}\n" + "\n".join(lines)

    def __str__(self) -> str:
        """Human-readable representation for logging."""
        return f"MemoryRecord({self.id}, '{self.summary[:50]}')"
