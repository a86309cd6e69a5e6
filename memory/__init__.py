"""Story memory: scoring, storage and retrieval.

MemoryStore:
    Interface for the persistent, append-only record collection.

SqliteMemoryStore:
    Default backend. SQLite tables plus numpy cosine search.

ChromaMemoryStore:
    ChromaDB backend (requires `pip install chromadb`).

MemoryRetriever:
    Semantic retrieval and recent history for prompt assembly.

Example:
    >>> from memory import SqliteMemoryStore, MemoryRetriever
    >>> store = SqliteMemoryStore("story.db", dim=384)
    >>> retriever = MemoryRetriever(embedder, store)
    >>> memories = await retriever.retrieve_relevant("Where is the key?")
"""

from memory.importance import importance_score, score_interaction
from memory.retriever import MemoryRetriever
from memory.sqlite_store import SqliteMemoryStore
from memory.store import MemoryFilter, MemoryStore
from memory.vector_store import ChromaMemoryStore

__all__ = [
    "importance_score",
    "score_interaction",
    "MemoryRetriever",
    "SqliteMemoryStore",
    "MemoryFilter",
    "MemoryStore",
    "ChromaMemoryStore",
    "create_memory_store",
]


def create_memory_store(config) -> MemoryStore:
    """Build the memory store selected by MEMORY_BACKEND."""
    if config.memory_backend == "chroma":
        return ChromaMemoryStore(config.vector_db_path, config.collection_name, config.embedding_dim)
    return SqliteMemoryStore(config.db_path, config.embedding_dim)
