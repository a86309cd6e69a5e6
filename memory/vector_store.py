"""ChromaDB-backed memory store.

Alternative to the SQLite store for larger stories: ChromaDB keeps an HNSW
index in cosine space, so search does not scan every embedding.

Record layout in the collection:
    - id: str(memory id)
    - document: raw AI response (content)
    - embedding: the record's vector
    - metadata: scalar fields, JSON-encoded lists and interaction, plus one
      boolean flag per character (`character:{name}`) and location
      (`location:{name}`) so filters can be expressed as `where` clauses

Requirements:
    pip install chromadb

Enable via configuration:
    MEMORY_BACKEND=chroma
    VECTOR_DB_PATH=./vectors
"""

import json
import logging
from pathlib import Path
from typing import Any

from embeddings import EMBEDDING_DIM
from memory.store import MemoryFilter, MemoryStore, check_dimension
from models.interaction import InteractionRecord
from models.memory import MemoryRecord

logger = logging.getLogger(__name__)

CHARACTER_FLAG = "character:"
LOCATION_FLAG = "location:"


def _build_where(memory_filter: MemoryFilter | None) -> dict | None:
    """Translate a MemoryFilter into a Chroma `where` clause."""
    if memory_filter is None or memory_filter.is_empty:
        return None
    predicates = [{f"{CHARACTER_FLAG}{name}": True} for name in memory_filter.characters]
    if memory_filter.location:
        predicates.append({f"{LOCATION_FLAG}{memory_filter.location}": True})
    if len(predicates) == 1:
        return predicates[0]
    return {"$and": predicates}


def _to_metadata(record: MemoryRecord) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "memory_type": record.memory_type,
        "created_at": record.created_at,
        "summary": record.summary,
        "importance": record.importance,
        "interaction_json": record.interaction.model_dump_json(),
        "characters_json": json.dumps(record.characters_involved),
        "locations_json": json.dumps(record.locations_involved),
        "plot_json": json.dumps(record.plot_elements),
    }
    for name in record.characters_involved:
        metadata[f"{CHARACTER_FLAG}{name}"] = True
    for location in record.locations_involved:
        metadata[f"{LOCATION_FLAG}{location}"] = True
    return metadata


def _from_parts(memory_id: str, document: str | None, metadata: dict, embedding) -> MemoryRecord:
    return MemoryRecord(
        id=int(memory_id),
        memory_type=metadata.get("memory_type", "story_interaction"),
        content=document or "",
        created_at=int(metadata.get("created_at", 0)),
        interaction=InteractionRecord.model_validate_json(metadata.get("interaction_json", "{}")),
        characters_involved=json.loads(metadata.get("characters_json", "[]")),
        locations_involved=json.loads(metadata.get("locations_json", "[]")),
        plot_elements=json.loads(metadata.get("plot_json", "[]")),
        embedding=[float(v) for v in embedding] if embedding is not None else [],
        importance=float(metadata.get("importance", 0.5)),
        summary=metadata.get("summary", ""),
    )


class ChromaMemoryStore(MemoryStore):
    """ChromaDB-based store for story memories.

    The client is created lazily on first use. Unlike SQLite, errors from
    ChromaDB propagate to the caller.
    """

    def __init__(
        self,
        path: Path | str,
        collection_name: str = "story_memories",
        dim: int = EMBEDDING_DIM,
    ):
        """Initialize the vector store.

        Args:
            path: Directory path for persistent storage
            collection_name: Name of the ChromaDB collection
            dim: Embedding dimension every stored vector must have
        """
        self.path = Path(path)
        self.collection_name = collection_name
        self.dim = dim
        self._client = None
        self._collection = None

    @property
    def collection(self):
        """Lazily initialize ChromaDB and return the collection."""
        if self._collection is None:
            import chromadb

            self.path.mkdir(parents=True, exist_ok=True)
            self._client = chromadb.PersistentClient(path=str(self.path))
            self._collection = self._client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine", "description": "Story memories"},
            )
            logger.info("Vector store initialized | path=%s collection=%s", self.path, self.collection_name)
        return self._collection

    def _records(self, result: dict) -> list[MemoryRecord]:
        """Rebuild records from a `collection.get` result."""
        embeddings = result.get("embeddings")
        records = []
        for i, memory_id in enumerate(result["ids"]):
            embedding = embeddings[i] if embeddings is not None else None
            records.append(
                _from_parts(memory_id, result["documents"][i], result["metadatas"][i], embedding)
            )
        return records

    async def upsert(self, record: MemoryRecord) -> None:
        """Insert or replace a record.

        Raises:
            ValueError: If the embedding length differs from the store dimension
        """
        embedding = check_dimension(record.embedding, self.dim)
        self.collection.upsert(
            ids=[str(record.id)],
            embeddings=[embedding.tolist()],
            documents=[record.content],
            metadatas=[_to_metadata(record)],
        )
        logger.debug("Memory saved to vector store | id=%d", record.id)

    async def search(
        self,
        query_vector,
        top_k: int,
        memory_filter: MemoryFilter | None = None,
    ) -> list[MemoryRecord]:
        """Search for the records closest to `query_vector`.

        Raises:
            ValueError: If the query vector length differs from the store dimension
        """
        query = check_dimension(query_vector, self.dim)
        total = self.collection.count()
        if top_k <= 0 or total == 0:
            return []

        result = self.collection.query(
            query_embeddings=[query.tolist()],
            n_results=min(top_k, total),
            where=_build_where(memory_filter),
            include=["documents", "metadatas", "embeddings", "distances"],
        )

        ids = result["ids"][0]
        embeddings = result.get("embeddings")
        hits = []
        for i, memory_id in enumerate(ids):
            embedding = embeddings[0][i] if embeddings is not None else None
            record = _from_parts(
                memory_id, result["documents"][0][i], result["metadatas"][0][i], embedding
            )
            hits.append((result["distances"][0][i], record))

        # Distance asc, ties newer first
        hits.sort(key=lambda h: (h[0], -h[1].id))
        logger.debug("Vector search | results=%d", len(hits))
        return [record for _, record in hits]

    async def recent(self, n: int) -> list[MemoryRecord]:
        """The n most recently created records, oldest first.

        ChromaDB has no ordered queries, so this reads every record's
        metadata and sorts by (created_at, id).
        """
        if n <= 0:
            return []
        result = self.collection.get(include=["metadatas"])
        keyed = sorted(
            (int(m.get("created_at", 0)), int(memory_id))
            for memory_id, m in zip(result["ids"], result["metadatas"])
        )
        latest = [str(memory_id) for _, memory_id in keyed[-n:]]
        if not latest:
            return []

        records = {
            r.id: r
            for r in self._records(
                self.collection.get(ids=latest, include=["documents", "metadatas", "embeddings"])
            )
        }
        return [records[int(memory_id)] for memory_id in latest]

    async def get(self, memory_id: int) -> MemoryRecord | None:
        result = self.collection.get(
            ids=[str(memory_id)], include=["documents", "metadatas", "embeddings"]
        )
        records = self._records(result)
        return records[0] if records else None

    async def count(self) -> int:
        return self.collection.count()

    def close(self) -> None:
        # PersistentClient writes through; nothing to flush
        self._collection = None
        self._client = None
