"""Story session: turns, persistence and wiring."""

import asyncio
import json
import sqlite3

import pytest

from config import Config
from embeddings import EmbeddingError
from memory.sqlite_store import SqliteMemoryStore
from pipeline import OPENING_ACTION, MemoryWriter, PersistenceHandle, build_session
from prompts.repository import TemplateNotFoundError, TemplateRepository
from agents.summarizer import SummaryGenerator
from tests.fakes import DIM, FakeEmbedder, FakeLLM, make_interaction


def narrator_reply(scene: str, *speakers: str, location: str = "the study") -> str:
    return json.dumps(
        {
            "scene_description": scene,
            "current_location": location,
            "character_responses": [
                {"character_name": name, "dialogue": f"{name} answers.", "emotion": "wary"}
                for name in speakers
            ],
            "plot_developments": ["A door creaks"],
            "available_actions": ["Open the door"],
        }
    )


@pytest.fixture
def config(tmp_path):
    return Config(db_path=tmp_path / "story.db", embedding_dim=DIM)


def make_session(config, store, narrator, summary=None, embedder=None):
    return build_session(
        config,
        narrator_llm=narrator,
        summary_llm=summary or FakeLLM("A short summary."),
        extractor_llm=FakeLLM(""),
        embedder=embedder or FakeEmbedder(),
        store=store,
    )


class TestMemoryWriter:
    @pytest.mark.asyncio
    async def test_store_interaction(self, store, embedder, templates):
        writer = MemoryWriter(SummaryGenerator(FakeLLM("Morgan lies."), templates), embedder, store)
        interaction = make_interaction(scene="Rain.", location="the hall", characters=("Morgan",))

        record = await writer.store_interaction("raw text", interaction)

        assert record.content == "raw text"
        assert record.summary == "Morgan lies."
        assert record.importance == pytest.approx(0.6)
        assert record.characters_involved == ["Morgan"]
        assert embedder.calls == ["Morgan lies.\nRain.\nMorgan: Morgan speaks."]
        assert await store.get(record.id) == record

    @pytest.mark.asyncio
    async def test_embedding_failure_propagates(self, store, templates):
        class BrokenEmbedder(FakeEmbedder):
            async def embed(self, text):
                raise ConnectionError("embedding service unavailable")

        writer = MemoryWriter(SummaryGenerator(FakeLLM("s"), templates), BrokenEmbedder(), store)
        with pytest.raises(ConnectionError):
            await writer.store_interaction("raw", make_interaction())
        assert await store.count() == 0


class TestPersistenceHandle:
    @pytest.mark.asyncio
    async def test_await_and_record(self):
        async def work():
            return "done"

        handle = PersistenceHandle(asyncio.create_task(work()), "Look")
        assert await handle == "done"
        assert handle.done()

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog):
        async def work():
            raise RuntimeError("disk full")

        handle = PersistenceHandle(asyncio.create_task(work()), "Look")
        with pytest.raises(RuntimeError):
            await handle
        await asyncio.sleep(0)
        assert handle.record is None
        assert "Memory persistence failed" in caplog.text

    @pytest.mark.asyncio
    async def test_cancel(self):
        handle = PersistenceHandle(asyncio.create_task(asyncio.sleep(10)), "Wait")
        assert handle.cancel()
        with pytest.raises(asyncio.CancelledError):
            await handle


class TestStorySession:
    @pytest.mark.asyncio
    async def test_opening_and_turns_are_remembered(self, config, store):
        narrator = FakeLLM(
            narrator_reply("Fog wraps the manor.", "Morgan"),
            narrator_reply("The study is cold.", "Morgan", "Eleanor"),
        )
        session = make_session(config, store, narrator)

        opening = await session.start()
        assert opening.player_action == OPENING_ACTION
        assert opening.record is not None
        assert opening.interaction.suggested_actions == ["Open the door"]
        assert "Ashgrove Manor" in narrator.calls[0][0]

        turn = await session.take_turn("Ask Morgan about the key")
        assert turn.record is not None
        assert turn.record.characters_involved == ["Morgan", "Eleanor"]

        # The second prompt sees the opening as recent history
        assert "[Player] Begin the story" in narrator.calls[1][0]
        assert "## PLAYER INPUT\nAsk Morgan about the key" in narrator.calls[1][0]

        recent = await store.recent(5)
        assert [r.interaction.player_action for r in recent] == [OPENING_ACTION, "Ask Morgan about the key"]
        await session.close()

    @pytest.mark.asyncio
    async def test_awaited_persistence_fails_the_turn(self, config, tmp_path):
        class FailingStore(SqliteMemoryStore):
            async def upsert(self, record):
                raise OSError("disk full")

        store = FailingStore(tmp_path / "failing.db", dim=DIM)
        session = make_session(config, store, FakeLLM(narrator_reply("Dust.", "Morgan")))

        with pytest.raises(OSError):
            await session.take_turn("Look")
        assert session.tracer.stats["turn_errors"] == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_retrieval_failure_abandons_the_turn(self, config, store):
        class DownEmbedder(FakeEmbedder):
            async def embed(self, text):
                raise EmbeddingError("Ollama unreachable")

        narrator = FakeLLM(narrator_reply("Dust.", "Morgan"))
        session = make_session(config, store, narrator, embedder=DownEmbedder())

        with pytest.raises(EmbeddingError):
            await session.take_turn("Ask Morgan about the key")
        assert narrator.calls == []
        assert session.tracer.stats["turn_errors"] == 1
        assert session.tracer.stats["turns"] == 0
        assert await store.count() == 0
        await session.close()

    @pytest.mark.asyncio
    async def test_store_search_failure_abandons_the_turn(self, config, tmp_path):
        class LockedStore(SqliteMemoryStore):
            async def search(self, query_vector, top_k, memory_filter=None):
                raise sqlite3.OperationalError("database is locked")

        narrator = FakeLLM(narrator_reply("Dust.", "Morgan"))
        session = make_session(config, LockedStore(tmp_path / "locked.db", dim=DIM), narrator)

        with pytest.raises(sqlite3.OperationalError):
            await session.take_turn("Look")
        assert narrator.calls == []
        assert session.tracer.stats["turn_errors"] == 1
        await session.close()

    @pytest.mark.asyncio
    async def test_background_persistence_and_flush(self, config, store):
        config.await_persistence = False
        session = make_session(config, store, FakeLLM(narrator_reply("Wind.", "Eleanor")))

        turns = [await session.take_turn(f"Action {i}") for i in range(3)]
        stored = await session.flush()

        assert len(stored) == 3
        assert all(t.persistence.done() for t in turns)
        assert await store.count() == 3
        assert session.tracer.stats["memories_stored"] == 3
        await session.close()

    @pytest.mark.asyncio
    async def test_summary_failure_uses_fallback(self, config, store):
        session = make_session(
            config,
            store,
            FakeLLM(narrator_reply("Dust.", "Morgan", "Eleanor")),
            summary=FakeLLM(RuntimeError("quota")),
        )
        turn = await session.take_turn("Look")
        assert turn.record.summary == "Interaction involving Morgan, Eleanor at the study."
        await session.close()


class TestBuildSession:
    def test_missing_story_template(self, config, store):
        config.story_template = "does-not-exist"
        with pytest.raises(TemplateNotFoundError):
            make_session(config, store, FakeLLM(""))

    def test_empty_templates_dir(self, config, store, tmp_path):
        config.templates_dir = tmp_path / "empty"
        with pytest.raises(TemplateNotFoundError):
            make_session(config, store, FakeLLM(""))

    def test_explicit_templates(self, config, store, templates):
        session = build_session(
            config,
            narrator_llm=FakeLLM(""),
            summary_llm=FakeLLM(""),
            extractor_llm=FakeLLM(""),
            embedder=FakeEmbedder(),
            store=store,
            templates=templates,
        )
        assert session.story.title == "The Ashgrove Inheritance"
        assert session.await_persistence is True
        assert isinstance(session.assembler.templates, TemplateRepository)
