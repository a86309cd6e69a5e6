"""Configuration loading and validation."""

from pathlib import Path

import pytest

from config import DEFAULT_MODEL, DEFAULT_TEMPLATES_DIR, Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in (
        "GEMINI_API_KEY", "NARRATOR_MODEL", "SUMMARY_MODEL", "EXTRACTOR_MODEL",
        "EMBEDDING_PROVIDER", "EMBEDDING_DIM", "MEMORY_BACKEND", "DB_PATH",
        "AWAIT_PERSISTENCE", "TEMPLATES_DIR", "LOG_LEVEL", "LOG_FORMAT", "LLM_TIMEOUT",
        "STORY_TEMPLATE", "RELEVANT_MEMORY_LIMIT", "RECENT_HISTORY_SIZE",
    ):
        monkeypatch.delenv(key, raising=False)


class TestLoad:
    def test_defaults(self):
        config = Config.load()

        assert config.narrator_model == DEFAULT_MODEL
        assert config.embedding_provider == "local"
        assert config.embedding_dim == 384
        assert config.memory_backend == "sqlite"
        assert config.db_path == Path("story.db")
        assert config.templates_dir == DEFAULT_TEMPLATES_DIR
        assert config.story_template == "story"
        assert config.relevant_memory_limit == 5
        assert config.recent_history_size == 3
        assert config.await_persistence is True

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_PROVIDER", "OLLAMA")
        monkeypatch.setenv("EMBEDDING_DIM", "768")
        monkeypatch.setenv("MEMORY_BACKEND", "chroma")
        monkeypatch.setenv("AWAIT_PERSISTENCE", "false")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        config = Config.load()

        assert config.embedding_provider == "ollama"
        assert config.embedding_dim == 768
        assert config.memory_backend == "chroma"
        assert config.await_persistence is False
        assert config.log_level == "DEBUG"

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_DIM", "lots")
        with pytest.raises(ValueError, match="EMBEDDING_DIM"):
            Config.load()


class TestValidate:
    def test_remote_models_need_key(self):
        assert "GEMINI_API_KEY" in Config().validate()
        assert Config(gemini_api_key="k").validate() is None

    def test_local_models_need_no_key(self):
        local = "openai:qwen@http://127.0.0.1:8080/v1"
        config = Config(narrator_model=local, summary_model=local, extractor_model=local)
        assert config.validate() is None

    @pytest.mark.parametrize(
        "overrides, fragment",
        [
            ({"embedding_provider": "openai"}, "EMBEDDING_PROVIDER"),
            ({"embedding_dim": 0}, "EMBEDDING_DIM"),
            ({"memory_backend": "redis"}, "MEMORY_BACKEND"),
            ({"relevant_memory_limit": 0}, "RELEVANT_MEMORY_LIMIT"),
            ({"recent_history_size": -1}, "RECENT_HISTORY_SIZE"),
            ({"log_format": "xml"}, "LOG_FORMAT"),
        ],
    )
    def test_invalid_values(self, overrides, fragment):
        assert fragment in Config(gemini_api_key="k", **overrides).validate()
