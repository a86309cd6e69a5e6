"""Story turn pipeline.

This module coordinates one story session:

Turn Flow:
    1. RETRIEVE: Relevant memories (semantic) + recent history (chronological)
    2. PROMPT: Assemble the turn prompt from memories and story configuration
    3. NARRATE: Narrator model writes the response
    4. EXTRACT: Raw response -> InteractionRecord (rules, then model fallback)
    5. PERSIST: Score + summarize + embed + upsert, as a PersistenceHandle

The opening scene runs steps 3-5 with the `initial` prompt and the player
action "Begin the story".

Persistence consistency:
    With await_persistence (the default) every turn waits for its own
    memory to be stored before returning, so turn N is always visible to
    turn N+1 and storage errors fail the turn that caused them.

    Without it, persistence runs as a background task and the turn returns
    immediately. Turn N may then be missing from turn N+1's retrieval
    (eventual consistency). Failures are logged on the handle; flush()
    waits for everything outstanding.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

from agents.llm import ChatModel, TextGenerator
from agents.narrator import NarratorAgent
from agents.summarizer import SummaryGenerator
from config import Config
from embeddings import EmbeddingProvider, create_embedding_provider
from extraction.extractor import StructuredExtractor
from memory import create_memory_store
from memory.importance import score_interaction
from memory.retriever import MemoryRetriever
from memory.store import MemoryStore
from models.interaction import InteractionRecord
from models.memory import MemoryRecord
from models.story import StoryConfig, default_story, load_story_config
from observability.logging import clear_context, set_session_context
from observability.tracing import SessionTracer, trace_operation
from prompts.assembler import INITIAL_TEMPLATE, PromptAssembler
from prompts.repository import TemplateRepository

logger = logging.getLogger(__name__)

OPENING_ACTION = "Begin the story"


class MemoryWriter:
    """Turns an extracted interaction into a stored memory.

    Importance is computed locally; the summary falls back deterministically;
    embedding and store errors propagate.
    """

    def __init__(self, summarizer: SummaryGenerator, embedder: EmbeddingProvider, store: MemoryStore):
        self.summarizer = summarizer
        self.embedder = embedder
        self.store = store

    async def store_interaction(self, content: str, interaction: InteractionRecord) -> MemoryRecord:
        importance = score_interaction(interaction)
        summary = await self.summarizer.summarize(interaction)
        vector = await self.embedder.embed(MemoryRecord.build_embedding_text(summary, interaction))

        record = MemoryRecord.create(
            content=content,
            interaction=interaction,
            embedding=[float(v) for v in vector],
            importance=importance,
            summary=summary,
        )
        await self.store.upsert(record)
        logger.info(
            "Memory stored | id=%d importance=%.2f characters=%d",
            record.id,
            record.importance,
            len(record.characters_involved),
        )
        return record


class PersistenceHandle:
    """Awaitable, cancellable handle on a turn's background persistence.

    Awaiting the handle returns the stored MemoryRecord or raises the
    persistence error. Failures are logged even if nobody awaits.
    """

    def __init__(self, task: asyncio.Task, player_action: str):
        self.task = task
        self.player_action = player_action
        task.add_done_callback(self._log_outcome)

    def _log_outcome(self, task: asyncio.Task) -> None:
        if task.cancelled():
            logger.warning("Memory persistence cancelled | action='%s'", self.player_action[:50])
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Memory persistence failed | action='%s' error=%s: %s",
                self.player_action[:50],
                type(error).__name__,
                error,
            )

    def done(self) -> bool:
        return self.task.done()

    def cancel(self) -> bool:
        return self.task.cancel()

    @property
    def record(self) -> MemoryRecord | None:
        """The stored record, if persistence finished successfully."""
        if self.task.done() and not self.task.cancelled() and self.task.exception() is None:
            return self.task.result()
        return None

    def __await__(self):
        return self.task.__await__()


@dataclass
class TurnResult:
    """Outcome of one story turn.

    Attributes:
        player_action: Player input for the turn
        response: Raw narrator response
        interaction: Extracted interaction
        persistence: Handle on the memory write for this turn
    """

    player_action: str
    response: str
    interaction: InteractionRecord
    persistence: PersistenceHandle

    @property
    def record(self) -> MemoryRecord | None:
        return self.persistence.record


@dataclass
class StorySession:
    """One interactive story: narrator, memory and prompt assembly.

    Example:
        >>> session = build_session(Config.load())
        >>> opening = await session.start()
        >>> turn = await session.take_turn("Ask Morgan about the study key")
        >>> await session.close()
    """

    story: StoryConfig
    narrator: NarratorAgent
    extractor: StructuredExtractor
    assembler: PromptAssembler
    writer: MemoryWriter
    store: MemoryStore
    await_persistence: bool = True
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    _pending: set[PersistenceHandle] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self):
        self.tracer = SessionTracer(self.session_id)
        set_session_context(self.session_id)

    def _persist(self, response: str, interaction: InteractionRecord) -> PersistenceHandle:
        task = asyncio.create_task(self.writer.store_interaction(response, interaction))
        handle = PersistenceHandle(task, interaction.player_action)
        self._pending.add(handle)

        def _finished(t: asyncio.Task) -> None:
            self._pending.discard(handle)
            self.tracer.record_persistence(not t.cancelled() and t.exception() is None)

        task.add_done_callback(_finished)
        return handle

    async def _process(self, response: str, player_action: str) -> TurnResult:
        interaction = await self.extractor.extract(response, player_action)
        handle = self._persist(response, interaction)
        if self.await_persistence:
            await handle
        return TurnResult(player_action, response, interaction, handle)

    async def start(self) -> TurnResult:
        """Generate and store the opening scene."""
        logger.info("Story started | title=%s", self.story.title)
        with self.tracer.trace_turn(OPENING_ACTION) as attrs:
            prompt = self.assembler.build_opening_prompt()
            response = await self.narrator.opening_scene(prompt)
            result = await self._process(response, OPENING_ACTION)
            attrs["characters"] = len(result.interaction.character_responses)
        return result

    async def take_turn(self, player_action: str) -> TurnResult:
        """Run one turn: retrieve, prompt, narrate, extract, persist.

        Raises:
            EmbeddingError, store errors, model errors: The turn is abandoned
        """
        logger.info("Turn started | action='%s'", player_action[:80])
        with self.tracer.trace_turn(player_action) as attrs:
            prompt = await self.assembler.build_prompt(player_action)
            response = await self.narrator.continue_story(prompt)
            result = await self._process(response, player_action)
            attrs["characters"] = len(result.interaction.character_responses)
        return result

    async def flush(self) -> list[MemoryRecord]:
        """Wait for all outstanding persistence; return what was stored."""
        pending = list(self._pending)
        if not pending:
            return []
        results = await asyncio.gather(*(h.task for h in pending), return_exceptions=True)
        failed = sum(1 for r in results if isinstance(r, BaseException))
        logger.info("Persistence flushed | stored=%d failed=%d", len(results) - failed, failed)
        return [r for r in results if isinstance(r, MemoryRecord)]

    async def close(self) -> None:
        """Flush pending writes and close the store."""
        await self.flush()
        self.store.close()
        logger.info("Story session closed | stats=%s", self.tracer.get_summary())
        clear_context()


def load_story(config: Config) -> StoryConfig:
    """Story configuration from SCENARIO_PATH, or the built-in demo story."""
    if config.scenario_path:
        return load_story_config(config.scenario_path)
    return default_story()


def build_session(
    config: Config,
    *,
    narrator_llm: TextGenerator | None = None,
    summary_llm: TextGenerator | None = None,
    extractor_llm: TextGenerator | None = None,
    embedder: EmbeddingProvider | None = None,
    store: MemoryStore | None = None,
    templates: TemplateRepository | None = None,
    story: StoryConfig | None = None,
) -> StorySession:
    """Wire a StorySession from configuration.

    Every collaborator can be passed in explicitly; anything omitted is
    built from `config`.

    Raises:
        TemplateNotFoundError: If the story or opening template is missing
        ScenarioLoadError: If SCENARIO_PATH cannot be loaded
    """
    with trace_operation("build_session", {"backend": config.memory_backend}):
        if templates is None:
            templates = TemplateRepository.from_directory(config.templates_dir)
        # Fail fast on missing templates
        templates.get_template(config.story_template)
        templates.get_template(INITIAL_TEMPLATE)

        if story is None:
            story = load_story(config)
        if embedder is None:
            embedder = create_embedding_provider(config)
        if store is None:
            store = create_memory_store(config)

        if narrator_llm is None:
            narrator_llm = ChatModel(config.narrator_model, config.llm_timeout)
        if summary_llm is None:
            summary_llm = ChatModel(config.summary_model, config.llm_timeout)
        if extractor_llm is None:
            extractor_llm = ChatModel(config.extractor_model, config.llm_timeout)

        session = StorySession(
            story=story,
            narrator=NarratorAgent(narrator_llm),
            extractor=StructuredExtractor(extractor_llm),
            assembler=PromptAssembler(
                MemoryRetriever(embedder, store),
                templates,
                story,
                template_name=config.story_template,
                relevant_limit=config.relevant_memory_limit,
                recent_size=config.recent_history_size,
            ),
            writer=MemoryWriter(SummaryGenerator(summary_llm, templates), embedder, store),
            store=store,
            await_persistence=config.await_persistence,
        )

    logger.info(
        "Session ready | session=%s story=%s backend=%s await_persistence=%s",
        session.session_id,
        story.title,
        config.memory_backend,
        config.await_persistence,
    )
    return session
