"""Turn prompt assembly."""

import pytest

from memory.retriever import MemoryRetriever
from models.interaction import CharacterResponse
from models.story import default_story
from prompts.assembler import PromptAssembler, format_memories, format_recent_history
from prompts.repository import PromptTemplate, TemplateNotFoundError, TemplateRepository
from tests.fakes import make_record


class TestFormatting:
    def test_memory_block(self, embedder):
        record = make_record(
            embedder,
            "Morgan hides the key",
            location="the study",
            characters=("Morgan",),
            plot=("The key is gone",),
        )
        response = record.interaction.character_responses[0].model_copy(update={"emotion": "guilty"})
        interaction = record.interaction.model_copy(update={"character_responses": [response]})
        record = record.model_copy(update={"interaction": interaction})

        assert format_memories([record]) == (
            f"MEMORY ID: {record.id}\n"
            "RELEVANCE: High\n"
            "EVENT: Morgan hides the key\n"
            "CHARACTERS: Morgan\n"
            "LOCATION: the study\n"
            "EMOTIONAL IMPACT: Morgan: guilty\n"
            "NARRATIVE SIGNIFICANCE: The key is gone"
        )

    def test_memories_sorted_oldest_first(self, embedder):
        older = make_record(embedder, "older")
        newer = make_record(embedder, "newer")
        text = format_memories([newer, older])
        assert text.index("EVENT: older") < text.index("EVENT: newer")

    def test_recent_history(self, embedder):
        record = make_record(embedder, "s", action="Knock")
        interaction = record.interaction.model_copy(
            update={
                "character_responses": [
                    CharacterResponse(character_name="Morgan", dialogue="Who is it?", action="opens the door")
                ]
            }
        )
        record = record.model_copy(update={"interaction": interaction})

        assert format_recent_history([record]) == "[Player] Knock\n[Morgan] Who is it? (opens the door)"


class TestPromptAssembler:
    @pytest.mark.asyncio
    async def test_story_prompt(self, store, embedder, templates):
        await store.upsert(
            make_record(embedder, "Morgan hides the key", location="the cellar", characters=("Morgan",))
        )
        assembler = PromptAssembler(MemoryRetriever(embedder, store), templates, default_story())

        prompt = await assembler.build_prompt("Ask Morgan about the key")

        assert "Title: The Ashgrove Inheritance" in prompt
        assert "Name: Detective" in prompt
        assert "* Morgan: Proud, guarded, fiercely loyal to the family" in prompt
        assert "EVENT: Morgan hides the key" in prompt
        assert "[Player] Look around" in prompt
        assert "## CURRENT LOCATION\nthe cellar" in prompt
        assert "## PLAYER INPUT\nAsk Morgan about the key" in prompt
        assert '"scene_description"' in prompt

    @pytest.mark.asyncio
    async def test_location_defaults_to_setting(self, store, embedder, templates):
        story = default_story()
        assembler = PromptAssembler(MemoryRetriever(embedder, store), templates, story)

        prompt = await assembler.build_prompt("Look around")
        assert f"## CURRENT LOCATION\n{story.setting}" in prompt

    @pytest.mark.asyncio
    async def test_unknown_variables_left_verbatim(self, store, embedder):
        templates = TemplateRepository()
        templates.add(PromptTemplate("story", "{player_action} in {weather}"))
        assembler = PromptAssembler(MemoryRetriever(embedder, store), templates, default_story())

        assert await assembler.build_prompt("Run") == "Run in {weather}"

    @pytest.mark.asyncio
    async def test_missing_template(self, store, embedder):
        assembler = PromptAssembler(MemoryRetriever(embedder, store), TemplateRepository(), default_story())
        with pytest.raises(TemplateNotFoundError):
            await assembler.build_prompt("Run")

    def test_opening_prompt(self, store, embedder, templates):
        assembler = PromptAssembler(MemoryRetriever(embedder, store), templates, default_story())
        prompt = assembler.build_opening_prompt()

        assert "- Morgan: Proud, guarded, fiercely loyal to the family" in prompt
        assert "- Detective" not in prompt
        assert "Detective: Observant, patient, quietly relentless - " in prompt
        assert "{{" not in prompt
