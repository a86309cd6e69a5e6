"""Memory store interface shared by the SQLite and ChromaDB backends.

Stores own the persistent, append-only collection of MemoryRecords. They
support three queries:

    - search: nearest neighbours by cosine similarity, optionally filtered
    - recent: the n most recently created records, oldest first
    - get / count: direct lookups

Every stored embedding has the store's fixed dimension. Upserting or
searching with a vector of any other length raises ValueError.

Records are never evicted; the collection grows for the lifetime of the
story.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from models.memory import MemoryRecord


@dataclass
class MemoryFilter:
    """Conjunction of "list field contains value" predicates.

    Attributes:
        characters: Every name listed must be in the record's characters
        location: If set, must be in the record's locations
    """

    characters: list[str] = field(default_factory=list)
    location: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.characters and not self.location

    def matches(self, record: MemoryRecord) -> bool:
        if any(name not in record.characters_involved for name in self.characters):
            return False
        if self.location and self.location not in record.locations_involved:
            return False
        return True


def check_dimension(vector, dim: int) -> np.ndarray:
    """Return `vector` as a float32 array, raising ValueError on a wrong length."""
    array = np.asarray(vector, dtype=np.float32)
    if array.ndim != 1 or array.shape[0] != dim:
        raise ValueError(f"Embedding dimension mismatch: expected {dim}, got {array.shape}")
    return array


class MemoryStore(ABC):
    """Persistent collection of memory records."""

    dim: int

    @abstractmethod
    async def upsert(self, record: MemoryRecord) -> None:
        """Insert a record, replacing any record with the same id."""

    @abstractmethod
    async def search(
        self,
        query_vector,
        top_k: int,
        memory_filter: MemoryFilter | None = None,
    ) -> list[MemoryRecord]:
        """Up to `top_k` records by descending cosine similarity."""

    @abstractmethod
    async def recent(self, n: int) -> list[MemoryRecord]:
        """The `n` most recently created records, in ascending time order."""

    @abstractmethod
    async def get(self, memory_id: int) -> MemoryRecord | None: ...

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    def close(self) -> None: ...

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
