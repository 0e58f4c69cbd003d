"""dualrag configuration loader.

Priority (high → low):
  1. CLI flags           (applied by the CLI after loading)
  2. Environment variables  (DUALRAG_TEXT_MODEL, DUALRAG_CODE_MODEL,
                             DUALRAG_API_BASE, DUALRAG_DATA_DIR)
  3. Per-project dualrag.yaml  (current working directory)
  4. Global ~/.dualrag/config.yaml  (no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import dataclasses
import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".dualrag"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "dualrag.yaml"

# Matches api_key, apikey, api-key, api_secret, *_token, token, *_secret,
# secret, password, passwd, credential(s). Does NOT match top_k or chunk_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "embedding", "chunking", "retrieval", "indexing"]
)

EMBEDDING_MODES: frozenset[str] = frozenset(["auto", "manual-text", "manual-code"])

DEFAULT_TEXT_MODEL = "ollama/snowflake-arctic-embed2:568m"
DEFAULT_CODE_MODEL = "ollama/qwen3-embedding:0.6b"
DEFAULT_API_BASE = "http://localhost:11434"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file or update contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IndexConfig:
    """Configuration a vector store is built and searched with.

    The same structure is written into snapshot metadata and into the
    active-snapshot pointer, so it must stay JSON-serialisable.

    Attributes:
        text_embedding_model: LiteLLM model string used for prose and queries.
        code_embedding_model: LiteLLM model string used for source code.
        embedding_mode: ``auto`` (per file type), ``manual-text`` or
            ``manual-code`` (one model for every file).
        dimension: Vector dimension of the store. Fixed for the store's lifetime.
        reranker_model: Model used by the stage-2 reranker ("" = text model).
        chunk_size: Chunk size in tokens (4 characters per token).
        chunk_overlap: Overlap between consecutive chunks, in tokens.
        semantic_chunking: Heading-aware chunking for Markdown files.
        retrieve_top_k: Candidates fetched per embedding space.
        rerank_top_n: Results returned after ranking/reranking.
        use_reranking: Enable the stage-2 reranker.
    """

    text_embedding_model: str = DEFAULT_TEXT_MODEL
    code_embedding_model: str = DEFAULT_CODE_MODEL
    embedding_mode: str = "auto"
    dimension: int = 1024
    reranker_model: str = ""
    chunk_size: int = 512
    chunk_overlap: int = 50
    semantic_chunking: bool = True
    retrieve_top_k: int = 20
    rerank_top_n: int = 3
    use_reranking: bool = False

    def __post_init__(self) -> None:
        _validate_index_config(self)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexConfig:
        """Build from a (possibly partial) dict; unknown keys are ignored."""
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def merged(self, **partial: Any) -> IndexConfig:
        """Return a copy with *partial* applied.

        Raises:
            ConfigError: If *partial* names an unknown field or a value is invalid.
        """
        known = {f.name for f in dataclasses.fields(self)}
        unknown = sorted(set(partial) - known)
        if unknown:
            raise ConfigError(f"Unknown IndexConfig field(s): {', '.join(unknown)}")
        return dataclasses.replace(self, **partial)


@dataclass
class IndexingCfg:
    """Batching and concurrency tunables (dualrag.yaml: indexing:).

    Attributes:
        embed_batch_size: Concurrent embedding requests per batch.
        flush_records: Flush the write buffer once it holds this many records.
        flush_files: Flush the write buffer after this many buffered files.
        append_batch_size: Records per insert when appending a snapshot.
        rerank_batch_size: Concurrent reranker requests per batch.
    """

    embed_batch_size: int = 5
    flush_records: int = 200
    flush_files: int = 20
    append_batch_size: int = 500
    rerank_batch_size: int = 5


@dataclass
class Settings:
    """Root configuration object, built by load_config() from merged YAML layers."""

    data_dir: Path = field(default_factory=lambda: _GLOBAL_CONFIG_DIR)
    api_base: str = DEFAULT_API_BASE
    index: IndexConfig = field(default_factory=IndexConfig)
    indexing: IndexingCfg = field(default_factory=IndexingCfg)

    @property
    def live_dir(self) -> Path:
        """Directory holding the live store."""
        return self.data_dir / "rag_db"

    @property
    def snapshots_dir(self) -> Path:
        return self.data_dir / "rag_snapshots"


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _validate_index_config(cfg: IndexConfig) -> None:
    if cfg.embedding_mode not in EMBEDDING_MODES:
        raise ConfigError(
            f"embedding_mode must be one of {sorted(EMBEDDING_MODES)}, "
            f"got '{cfg.embedding_mode}'"
        )
    if not cfg.text_embedding_model or not cfg.code_embedding_model:
        raise ConfigError("Both text_embedding_model and code_embedding_model must be set")
    if cfg.dimension < 1:
        raise ConfigError(f"dimension must be >= 1, got {cfg.dimension}")
    if cfg.chunk_size < 1:
        raise ConfigError(f"chunk_size must be >= 1, got {cfg.chunk_size}")
    if cfg.chunk_overlap < 0:
        raise ConfigError(f"chunk_overlap must be >= 0, got {cfg.chunk_overlap}")
    if cfg.retrieve_top_k < 1 or cfg.rerank_top_n < 1:
        raise ConfigError("retrieve_top_k and rerank_top_n must be >= 1")


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Ignoring unknown config key '{key}' in '{source}'.",
                UserWarning,
                stacklevel=4,
            )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build *Settings* from a merged raw YAML dict."""
    cfg = Settings()
    index = cfg.index

    if "storage" in data:
        s = data["storage"] or {}
        if s.get("data_dir"):
            cfg.data_dir = Path(str(s["data_dir"])).expanduser()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.api_base = str(e.get("api_base", cfg.api_base))
        index = index.merged(
            text_embedding_model=str(e.get("text_model", index.text_embedding_model)),
            code_embedding_model=str(e.get("code_model", index.code_embedding_model)),
            embedding_mode=str(e.get("mode", index.embedding_mode)),
            dimension=int(e.get("dimension", index.dimension)),
            reranker_model=str(e.get("reranker_model", index.reranker_model)),
        )

    if "chunking" in data:
        c = data["chunking"] or {}
        index = index.merged(
            chunk_size=int(c.get("chunk_size", index.chunk_size)),
            chunk_overlap=int(c.get("chunk_overlap", index.chunk_overlap)),
            semantic_chunking=bool(c.get("semantic", index.semantic_chunking)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        index = index.merged(
            retrieve_top_k=int(r.get("top_k", index.retrieve_top_k)),
            rerank_top_n=int(r.get("top_n", index.rerank_top_n)),
            use_reranking=bool(r.get("rerank", index.use_reranking)),
        )

    if "indexing" in data:
        i = data["indexing"] or {}
        defaults = cfg.indexing
        cfg.indexing = IndexingCfg(
            embed_batch_size=int(i.get("embed_batch_size", defaults.embed_batch_size)),
            flush_records=int(i.get("flush_records", defaults.flush_records)),
            flush_files=int(i.get("flush_files", defaults.flush_files)),
            append_batch_size=int(i.get("append_batch_size", defaults.append_batch_size)),
            rerank_batch_size=int(i.get("rerank_batch_size", defaults.rerank_batch_size)),
        )
        if min(dataclasses.astuple(cfg.indexing)) < 1:
            raise ConfigError("indexing values must all be >= 1")

    cfg.index = index
    return cfg


def _apply_env_overrides(cfg: Settings) -> Settings:
    """Apply DUALRAG_* environment variable overrides (layer 2)."""
    if model := os.environ.get("DUALRAG_TEXT_MODEL"):
        cfg.index = cfg.index.merged(text_embedding_model=model)
    if model := os.environ.get("DUALRAG_CODE_MODEL"):
        cfg.index = cfg.index.merged(code_embedding_model=model)
    if api_base := os.environ.get("DUALRAG_API_BASE"):
        cfg.api_base = api_base
    if data_dir := os.environ.get("DUALRAG_DATA_DIR"):
        cfg.data_dir = Path(data_dir).expanduser()
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> Settings:
    """Load and return merged *Settings*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *dualrag.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a value
            is invalid.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _settings_from_dict(merged)
    return _apply_env_overrides(cfg)
