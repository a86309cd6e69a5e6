"""SQLite memory store."""

import numpy as np
import pytest

from memory.sqlite_store import SqliteMemoryStore, cosine_similarities
from memory.store import MemoryFilter
from tests.fakes import DIM, make_record


class TestCosine:
    def test_zero_vector_scores_zero(self):
        matrix = np.array([[0.0, 0.0], [1.0, 0.0]], dtype=np.float32)
        sims = cosine_similarities(np.array([1.0, 0.0], dtype=np.float32), matrix)
        assert sims.tolist() == [0.0, 1.0]


class TestWritesAndLookups:
    @pytest.mark.asyncio
    async def test_upsert_get_count(self, store, embedder):
        record = make_record(
            embedder,
            "Morgan refuses to talk",
            location="the study",
            characters=("Morgan",),
            plot=("The key is missing",),
        )
        await store.upsert(record)

        assert await store.count() == 1
        loaded = await store.get(record.id)
        assert loaded is not None
        assert loaded.summary == "Morgan refuses to talk"
        assert loaded.characters_involved == ["Morgan"]
        assert loaded.locations_involved == ["the study"]
        assert loaded.plot_elements == ["The key is missing"]
        assert loaded.interaction == record.interaction
        assert loaded.embedding == pytest.approx(record.embedding, abs=1e-6)
        assert await store.get(record.id + 1) is None

    @pytest.mark.asyncio
    async def test_upsert_replaces_same_id(self, store, embedder):
        record = make_record(embedder, "first", characters=("Morgan",))
        await store.upsert(record)
        await store.upsert(record.model_copy(update={"summary": "second", "characters_involved": ["Eleanor"]}))

        assert await store.count() == 1
        loaded = await store.get(record.id)
        assert loaded.summary == "second"
        assert loaded.characters_involved == ["Eleanor"]

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self, store, embedder):
        record = make_record(embedder, "short vector")
        bad = record.model_copy(update={"embedding": [0.1] * (DIM - 1)})

        with pytest.raises(ValueError):
            await store.upsert(bad)
        with pytest.raises(ValueError):
            await store.search([0.1] * (DIM + 1), 3)

    @pytest.mark.asyncio
    async def test_persists_across_connections(self, tmp_path, embedder):
        path = tmp_path / "persist.db"
        with SqliteMemoryStore(path, dim=DIM) as store:
            await store.upsert(make_record(embedder, "kept"))
        with SqliteMemoryStore(path, dim=DIM) as store:
            assert await store.count() == 1


class TestRecent:
    @pytest.mark.asyncio
    async def test_three_most_recent_ascending(self, store, embedder):
        records = [make_record(embedder, f"turn {i}") for i in range(5)]
        for record in reversed(records):
            await store.upsert(record)

        recent = await store.recent(3)

        assert [r.id for r in recent] == [r.id for r in records[2:]]
        assert [r.created_at for r in recent] == sorted(r.created_at for r in recent)

    @pytest.mark.asyncio
    async def test_fewer_than_requested(self, store, embedder):
        await store.upsert(make_record(embedder, "only"))
        assert len(await store.recent(3)) == 1
        assert await store.recent(0) == []


class TestSearch:
    @pytest.mark.asyncio
    async def test_most_similar_first(self, store, embedder):
        for summary in ("the locked study door", "a storm over the moor", "tea in the kitchen"):
            await store.upsert(make_record(embedder, summary))

        results = await store.search(embedder.vector("the locked study door"), 2)

        assert len(results) == 2
        assert results[0].summary == "the locked study door"

    @pytest.mark.asyncio
    async def test_character_filter(self, store, embedder):
        await store.upsert(make_record(embedder, "morgan alone", characters=("Morgan",)))
        await store.upsert(make_record(embedder, "eleanor alone", characters=("Eleanor",)))
        await store.upsert(make_record(embedder, "both", characters=("Morgan", "Eleanor")))

        results = await store.search(
            embedder.vector("eleanor alone"), 5, MemoryFilter(characters=["Eleanor"])
        )
        assert {r.summary for r in results} == {"eleanor alone", "both"}
        assert all("Eleanor" in r.characters_involved for r in results)

        both = await store.search(
            embedder.vector("x"), 5, MemoryFilter(characters=["Morgan", "Eleanor"])
        )
        assert [r.summary for r in both] == ["both"]

    @pytest.mark.asyncio
    async def test_location_filter(self, store, embedder):
        await store.upsert(make_record(embedder, "study", location="the study"))
        await store.upsert(make_record(embedder, "hall", location="the hall"))

        results = await store.search(embedder.vector("study"), 5, MemoryFilter(location="the hall"))
        assert [r.summary for r in results] == ["hall"]

    @pytest.mark.asyncio
    async def test_empty_store(self, store, embedder):
        assert await store.search(embedder.vector("anything"), 5) == []
