"""Memory retrieval: which past memories matter for the next turn."""

import logging

from embeddings import EmbeddingProvider
from memory.store import MemoryFilter, MemoryStore
from models.memory import MemoryRecord

logger = logging.getLogger(__name__)


class MemoryRetriever:
    """Combines an embedding provider and a memory store.

    There is no retry policy: embedding and store errors propagate, and the
    turn that needed the memories fails.
    """

    def __init__(self, embedder: EmbeddingProvider, store: MemoryStore):
        self.embedder = embedder
        self.store = store

    async def retrieve_relevant(
        self,
        query_text: str,
        character_filter: list[str] | None = None,
        location_filter: str | None = None,
        limit: int = 5,
    ) -> list[MemoryRecord]:
        """Records most similar to `query_text`, filtered by characters and location."""
        query_vector = await self.embedder.embed(query_text)
        memory_filter = MemoryFilter(
            characters=list(character_filter or []),
            location=location_filter or None,
        )
        memories = await self.store.search(query_vector, limit, memory_filter)
        logger.debug(
            "Retrieved memories | query='%s' results=%d characters=%s location=%s",
            query_text[:50],
            len(memories),
            ",".join(memory_filter.characters) or "-",
            memory_filter.location or "-",
        )
        return memories

    async def recent_history(self, n: int = 3) -> list[MemoryRecord]:
        """The n most recent records, oldest first."""
        return await self.store.recent(n)
