"""Shared fixtures: deterministic embedder, temporary stores, bundled templates."""

import pytest

from config import DEFAULT_TEMPLATES_DIR
from memory.sqlite_store import SqliteMemoryStore
from prompts.repository import TemplateRepository
from tests.fakes import DIM, FakeEmbedder


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def store(tmp_path):
    store = SqliteMemoryStore(tmp_path / "story.db", dim=DIM)
    yield store
    store.close()


@pytest.fixture
def templates():
    return TemplateRepository.from_directory(DEFAULT_TEMPLATES_DIR)
