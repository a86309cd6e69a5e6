"""SQLite-backed memory store.

Database Schema:
    memories table:
        - id (INTEGER, PK): Millisecond-derived monotonic memory id
        - memory_type (TEXT): Record kind ("story_interaction")
        - content (TEXT): Raw AI response
        - created_at (INTEGER): Creation time (Unix seconds)
        - interaction_json (TEXT): Serialized InteractionRecord
        - summary (TEXT): Memory summary
        - importance (REAL): Importance score 0-1
        - embedding (BLOB): float32 vector of the configured dimension

    memory_characters / memory_locations / memory_plot_elements tables:
        - memory_id (INTEGER): FK to memories.id
        - position (INTEGER): Order within the record's list
        - value (TEXT): Character name / location / plot element

Features:
    - WAL mode for concurrent read/write access
    - Vector search: cosine similarity computed with numpy over stored BLOBs
    - Filters: EXISTS subqueries on the child tables
    - Recent: indexed ORDER BY created_at, id
    - Context manager support for auto-cleanup
"""

import json
import logging
import sqlite3
from pathlib import Path

import numpy as np

from embeddings import EMBEDDING_DIM
from memory.store import MemoryFilter, MemoryStore, check_dimension
from models.interaction import InteractionRecord
from models.memory import MemoryRecord

logger = logging.getLogger(__name__)

# Child tables holding the filterable list fields, keyed by record attribute
LIST_TABLES = {
    "characters_involved": "memory_characters",
    "locations_involved": "memory_locations",
    "plot_elements": "memory_plot_elements",
}


def _embedding_to_blob(embedding: np.ndarray) -> bytes:
    """Convert numpy embedding to SQLite BLOB."""
    return embedding.astype(np.float32).tobytes()


def _blob_to_embedding(blob: bytes) -> np.ndarray:
    """Convert SQLite BLOB to numpy embedding."""
    return np.frombuffer(blob, dtype=np.float32)


def cosine_similarities(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine similarity of `query` against each row of `matrix`.

    Zero-length vectors have similarity 0 with everything.
    """
    norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(norms > 0, dots / norms, 0.0)
    return sims


class SqliteMemoryStore(MemoryStore):
    """SQLite store for story memories with brute-force vector search.

    Suitable for single-story sessions: search loads candidate embeddings
    and ranks them with numpy.

    Example:
        >>> with SqliteMemoryStore("story.db") as store:
        ...     await store.upsert(record)
        ...     latest = await store.recent(3)
    """

    SCHEMA = """
    -- One row per story turn
    CREATE TABLE IF NOT EXISTS memories (
        id INTEGER PRIMARY KEY,          -- Millisecond-derived id
        memory_type TEXT NOT NULL,       -- "story_interaction"
        content TEXT NOT NULL,           -- Raw AI response
        created_at INTEGER NOT NULL,     -- Creation time (Unix seconds)
        interaction_json TEXT NOT NULL,  -- Serialized InteractionRecord
        summary TEXT NOT NULL,           -- Memory summary
        importance REAL NOT NULL,        -- 0-1 importance
        embedding BLOB NOT NULL          -- float32 vector
    );

    -- Index for chronological queries (recent history)
    CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at, id);

    CREATE TABLE IF NOT EXISTS memory_characters (
        memory_id INTEGER NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        value TEXT NOT NULL,
        PRIMARY KEY (memory_id, position)
    );
    CREATE INDEX IF NOT EXISTS idx_characters_value ON memory_characters(value);

    CREATE TABLE IF NOT EXISTS memory_locations (
        memory_id INTEGER NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        value TEXT NOT NULL,
        PRIMARY KEY (memory_id, position)
    );
    CREATE INDEX IF NOT EXISTS idx_locations_value ON memory_locations(value);

    CREATE TABLE IF NOT EXISTS memory_plot_elements (
        memory_id INTEGER NOT NULL REFERENCES memories(id) ON DELETE CASCADE,
        position INTEGER NOT NULL,
        value TEXT NOT NULL,
        PRIMARY KEY (memory_id, position)
    );
    """

    path: Path
    conn: sqlite3.Connection

    def __init__(self, path: Path | str, dim: int = EMBEDDING_DIM):
        """Initialize database connection.

        Creates the database file if it doesn't exist and sets up
        the schema. Uses WAL mode for better concurrent access.

        Args:
            path: Path to SQLite database file (":memory:" for tests)
            dim: Embedding dimension every stored vector must have
        """
        self.path = Path(path)
        self.dim = dim
        self.conn = sqlite3.connect(str(path))
        self.conn.row_factory = sqlite3.Row  # Enable dict-like row access

        # WAL mode allows concurrent readers during writes
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA foreign_keys=ON")
        self.conn.executescript(self.SCHEMA)
        self.conn.commit()
        logger.debug("Memory store initialized | path=%s dim=%d", self.path, self.dim)

    # === Writes ===

    async def upsert(self, record: MemoryRecord) -> None:
        """Insert or replace a record and its list fields in one transaction.

        Raises:
            ValueError: If the embedding length differs from the store dimension
        """
        embedding = check_dimension(record.embedding, self.dim)
        with self.conn:
            self.conn.execute(
                """
                INSERT OR REPLACE INTO memories
                (id, memory_type, content, created_at, interaction_json, summary, importance, embedding)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.memory_type,
                    record.content,
                    record.created_at,
                    record.interaction.model_dump_json(),
                    record.summary,
                    record.importance,
                    _embedding_to_blob(embedding),
                ),
            )
            for attr, table in LIST_TABLES.items():
                self.conn.execute(f"DELETE FROM {table} WHERE memory_id = ?", (record.id,))
                self.conn.executemany(
                    f"INSERT INTO {table} (memory_id, position, value) VALUES (?, ?, ?)",
                    [(record.id, i, value) for i, value in enumerate(getattr(record, attr))],
                )
        logger.debug("Memory saved | id=%d importance=%.2f", record.id, record.importance)

    # === Reads ===

    def _load_lists(self, ids: list[int]) -> dict[int, dict[str, list[str]]]:
        lists: dict[int, dict[str, list[str]]] = {i: {a: [] for a in LIST_TABLES} for i in ids}
        if not ids:
            return lists
        placeholders = ",".join("?" * len(ids))
        for attr, table in LIST_TABLES.items():
            cursor = self.conn.execute(
                f"SELECT memory_id, value FROM {table} WHERE memory_id IN ({placeholders}) "
                "ORDER BY memory_id, position",
                ids,
            )
            for row in cursor.fetchall():
                lists[row["memory_id"]][attr].append(row["value"])
        return lists

    def _rows_to_records(self, rows: list[sqlite3.Row]) -> list[MemoryRecord]:
        lists = self._load_lists([row["id"] for row in rows])
        return [
            MemoryRecord(
                id=row["id"],
                memory_type=row["memory_type"],
                content=row["content"],
                created_at=row["created_at"],
                interaction=InteractionRecord.model_validate(json.loads(row["interaction_json"])),
                embedding=_blob_to_embedding(row["embedding"]).tolist(),
                importance=row["importance"],
                summary=row["summary"],
                **lists[row["id"]],
            )
            for row in rows
        ]

    @staticmethod
    def _filter_clause(memory_filter: MemoryFilter | None) -> tuple[str, list]:
        """WHERE clause (possibly empty) and parameters for a filter."""
        if memory_filter is None or memory_filter.is_empty:
            return "", []
        clauses, params = [], []
        for name in memory_filter.characters:
            clauses.append(
                "EXISTS (SELECT 1 FROM memory_characters c WHERE c.memory_id = m.id AND c.value = ?)"
            )
            params.append(name)
        if memory_filter.location:
            clauses.append(
                "EXISTS (SELECT 1 FROM memory_locations l WHERE l.memory_id = m.id AND l.value = ?)"
            )
            params.append(memory_filter.location)
        return "WHERE " + " AND ".join(clauses), params

    async def search(
        self,
        query_vector,
        top_k: int,
        memory_filter: MemoryFilter | None = None,
    ) -> list[MemoryRecord]:
        """Search by cosine similarity over records matching the filter.

        Ties are broken by recency (newer first).

        Raises:
            ValueError: If the query vector length differs from the store dimension
        """
        query = check_dimension(query_vector, self.dim)
        if top_k <= 0:
            return []

        where, params = self._filter_clause(memory_filter)
        cursor = self.conn.execute(f"SELECT m.id, m.embedding FROM memories m {where}", params)
        candidates = cursor.fetchall()
        if not candidates:
            return []

        ids = np.array([row["id"] for row in candidates])
        matrix = np.vstack([_blob_to_embedding(row["embedding"]) for row in candidates])
        sims = cosine_similarities(query, matrix)

        # lexsort: last key is primary -> similarity desc, then id desc
        order = np.lexsort((-ids, -sims))[:top_k]
        top_ids = [int(ids[i]) for i in order]

        placeholders = ",".join("?" * len(top_ids))
        cursor = self.conn.execute(f"SELECT * FROM memories WHERE id IN ({placeholders})", top_ids)
        by_id = {r.id: r for r in self._rows_to_records(cursor.fetchall())}

        logger.debug(
            "Memory search | candidates=%d results=%d filtered=%s",
            len(candidates),
            len(top_ids),
            bool(where),
        )
        return [by_id[i] for i in top_ids]

    async def recent(self, n: int) -> list[MemoryRecord]:
        """The n most recently created records, oldest first."""
        if n <= 0:
            return []
        cursor = self.conn.execute(
            "SELECT * FROM memories ORDER BY created_at DESC, id DESC LIMIT ?",
            (n,),
        )
        records = self._rows_to_records(cursor.fetchall())
        records.reverse()
        return records

    async def get(self, memory_id: int) -> MemoryRecord | None:
        cursor = self.conn.execute("SELECT * FROM memories WHERE id = ?", (memory_id,))
        records = self._rows_to_records(cursor.fetchall())
        return records[0] if records else None

    async def count(self) -> int:
        cursor = self.conn.execute("SELECT COUNT(*) AS total FROM memories")
        return cursor.fetchone()["total"] or 0

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
