"""Tests for dualrag config loader."""

from __future__ import annotations

import warnings
from pathlib import Path

import pytest
import yaml

from dualrag.config import (
    DEFAULT_CODE_MODEL,
    DEFAULT_TEXT_MODEL,
    ConfigError,
    IndexConfig,
    IndexingCfg,
    Settings,
    load_config,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, global_cfg: Path | None = None) -> Settings:
    return load_config(
        project_dir=tmp_path,
        global_config_path=global_cfg or tmp_path / "nonexistent" / "config.yaml",
    )


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    cfg = _load(tmp_path)

    assert cfg.index.text_embedding_model == DEFAULT_TEXT_MODEL
    assert cfg.index.code_embedding_model == DEFAULT_CODE_MODEL
    assert cfg.index.embedding_mode == "auto"
    assert cfg.index.dimension == 1024
    assert cfg.index.chunk_size == 512
    assert cfg.index.chunk_overlap == 50
    assert cfg.index.retrieve_top_k == 20
    assert cfg.index.rerank_top_n == 3
    assert cfg.index.use_reranking is False
    assert cfg.indexing == IndexingCfg()


def test_settings_derived_dirs(tmp_path: Path) -> None:
    s = Settings(data_dir=tmp_path)
    assert s.live_dir == tmp_path / "rag_db"
    assert s.snapshots_dir == tmp_path / "rag_snapshots"


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def test_global_config_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"text_model": "openai/text-embedding-3-small"}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.index.text_embedding_model == "openai/text-embedding-3-small"
    assert cfg.index.code_embedding_model == DEFAULT_CODE_MODEL


def test_project_config_overrides_global(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"chunking": {"chunk_size": 256, "chunk_overlap": 10}})
    _write_yaml(tmp_path / "dualrag.yaml", {"chunking": {"chunk_size": 128}})

    cfg = _load(tmp_path, global_cfg)
    assert cfg.index.chunk_size == 128
    assert cfg.index.chunk_overlap == 10  # deep merge keeps the global value


def test_empty_global_file_gives_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")
    assert _load(tmp_path, global_cfg).index == IndexConfig()


def test_storage_and_indexing_sections(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "dualrag.yaml",
        {
            "storage": {"data_dir": str(tmp_path / "store")},
            "indexing": {"flush_records": 50, "embed_batch_size": 2},
            "retrieval": {"top_k": 5, "top_n": 2, "rerank": True},
        },
    )
    cfg = _load(tmp_path)
    assert cfg.data_dir == tmp_path / "store"
    assert cfg.indexing.flush_records == 50
    assert cfg.indexing.embed_batch_size == 2
    assert cfg.indexing.flush_files == 20
    assert cfg.index.retrieve_top_k == 5
    assert cfg.index.rerank_top_n == 2
    assert cfg.index.use_reranking is True


def test_env_overrides_files(tmp_path: Path, monkeypatch) -> None:
    _write_yaml(tmp_path / "dualrag.yaml", {"embedding": {"text_model": "ollama/from-file"}})
    monkeypatch.setenv("DUALRAG_TEXT_MODEL", "ollama/from-env")
    monkeypatch.setenv("DUALRAG_DATA_DIR", str(tmp_path / "env-data"))

    cfg = _load(tmp_path)
    assert cfg.index.text_embedding_model == "ollama/from-env"
    assert cfg.data_dir == tmp_path / "env-data"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("key", ["api_key", "openai_api_key", "token", "password"])
def test_global_config_rejects_secrets(tmp_path: Path, key: str) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {key: "sk-123"}})
    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_cfg)


def test_unknown_section_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "dualrag.yaml", {"generation": {"model": "x"}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        _load(tmp_path)
    assert any("generation" in str(w.message) for w in caught)


def test_invalid_mode_rejected(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "dualrag.yaml", {"embedding": {"mode": "hybrid"}})
    with pytest.raises(ConfigError, match="embedding_mode"):
        _load(tmp_path)


def test_indexing_values_must_be_positive(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "dualrag.yaml", {"indexing": {"flush_files": 0}})
    with pytest.raises(ConfigError):
        _load(tmp_path)


# ---------------------------------------------------------------------------
# IndexConfig
# ---------------------------------------------------------------------------


def test_merged_applies_partial() -> None:
    cfg = IndexConfig().merged(dimension=768, embedding_mode="manual-text")
    assert cfg.dimension == 768
    assert cfg.embedding_mode == "manual-text"
    assert cfg.chunk_size == 512


def test_merged_rejects_unknown_field() -> None:
    with pytest.raises(ConfigError, match="bogus"):
        IndexConfig().merged(bogus=1)


def test_merged_validates_values() -> None:
    with pytest.raises(ConfigError):
        IndexConfig().merged(dimension=0)


def test_dict_roundtrip_ignores_unknown_keys() -> None:
    data = IndexConfig(dimension=768).to_dict()
    data["legacy_field"] = True
    assert IndexConfig.from_dict(data) == IndexConfig(dimension=768)
