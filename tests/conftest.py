"""Shared pytest fixtures."""

from __future__ import annotations

import pytest
from fakes import CODE_MODEL, DIM, TEXT_MODEL, FakeEmbeddingClient

from dualrag.config import IndexConfig, Settings
from dualrag.db.store import VectorStore
from dualrag.engine import RagEngine


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep DUALRAG_* variables from the developer's shell out of the tests."""
    for var in ("DUALRAG_TEXT_MODEL", "DUALRAG_CODE_MODEL", "DUALRAG_API_BASE", "DUALRAG_DATA_DIR"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def index_config() -> IndexConfig:
    return IndexConfig(
        text_embedding_model=TEXT_MODEL,
        code_embedding_model=CODE_MODEL,
        dimension=DIM,
        chunk_size=64,
        chunk_overlap=8,
    )


@pytest.fixture
def settings(tmp_path, index_config) -> Settings:
    return Settings(data_dir=tmp_path / "data", index=index_config)


@pytest.fixture
def fake_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def engine(settings, fake_client):
    """RagEngine over a tmp data dir with the fake client; closed after the test."""
    eng = RagEngine(settings, client=fake_client)
    eng.initialize_database()
    yield eng
    eng.close()


@pytest.fixture
def store(tmp_path):
    """Standalone 8D vector store, closed after the test."""
    s = VectorStore.open(tmp_path / "store" / "vectors.db", DIM)
    yield s
    s.close()
