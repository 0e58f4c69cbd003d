"""Snapshot manager: whole-store backup, restore, merge and housekeeping.

Layout under ``data_dir``::

    rag_db/vectors.db                      live store
    rag_snapshots/<name>/vectors.db        snapshot copy
    rag_snapshots/<name>/_metadata.json    config + stats + fingerprint
    rag_snapshots/_active_snapshot.json    active pointer
    rag_snapshots/_temp_*                  in-flight copies

Save and load close the live store before touching its files and always
reopen it afterwards. A load that fails after the live files were replaced
leaves an empty store and no active snapshot. Snapshot directories only
appear under their final name once the copy and its metadata are complete.
Append reads a private copy of the snapshot database and never writes to
the snapshot itself.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shutil
import sqlite3
import tempfile
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from dualrag.config import ConfigError, IndexConfig, Settings
from dualrag.db.connection import DB_FILENAME, open_connection
from dualrag.db.models import IndexRecord
from dualrag.db.store import VectorStore
from dualrag.db.vectors import recorded_dimension
from dualrag.errors import DualragError, SnapshotValidationError, StoreError
from dualrag.rag.embedding_client import EmbeddingClient
from dualrag.snapshots.active import ActivePointer, clear_pointer, read_pointer, write_pointer

log = logging.getLogger(__name__)

METADATA_FILENAME = "_metadata.json"
FINGERPRINT_TEXT = "test embedding fingerprint"
AUTOSAVE_PREFIX = "autosave_before_load_"

# Names starting with "_" or "." are reserved for internal files.
_NAME_RE = re.compile(r"^[\w.\- ]+$")

_OUTDATED_FORMAT = (
    "Snapshot format is outdated. This snapshot was created without dual-model "
    "configuration. Please re-index your documents."
)


class StoreOwner(Protocol):
    """What the manager needs from whoever owns the live store."""

    settings: Settings

    @property
    def store(self) -> VectorStore: ...

    @property
    def config(self) -> IndexConfig: ...

    @config.setter
    def config(self, value: IndexConfig) -> None: ...

    def close_store(self) -> None: ...

    def open_store(self) -> VectorStore: ...


# ------------------------------------------------------------------
# Result types
# ------------------------------------------------------------------


@dataclass
class SaveResult:
    success: bool
    name: str = ""
    path: Path | None = None
    message: str = ""
    error: str = ""


@dataclass
class LoadResult:
    success: bool
    name: str = ""
    config: IndexConfig | None = None
    backup_name: str = ""
    message: str = ""
    error: str = ""


@dataclass
class AppendResult:
    """Outcome of merging a snapshot into the live store.

    ``files_added`` counts inserted records, ``duplicates_skipped`` the
    snapshot records whose file path was already present.
    """

    success: bool
    files_added: int = 0
    duplicates_skipped: int = 0
    total_chunks: int = 0
    warning: str = ""
    message: str = ""
    error: str = ""


@dataclass
class SnapshotSummary:
    name: str
    saved_at: float
    chunks: int
    text_embedding_model: str
    code_embedding_model: str
    embedding_mode: str
    dimension: int | None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class InfoResult:
    success: bool
    name: str = ""
    path: Path | None = None
    metadata: dict[str, Any] | None = None
    error: str = ""


@dataclass
class CompatibilityReport:
    compatible: bool
    issues: list[str] = field(default_factory=list)
    metadata: dict[str, Any] | None = None


@dataclass
class DeleteResult:
    success: bool
    message: str = ""
    error: str = ""


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def validate_snapshot_name(name: str) -> str:
    """Return *name* stripped, or raise SnapshotValidationError."""
    cleaned = name.strip()
    if not cleaned or not _NAME_RE.match(cleaned) or cleaned[0] in "_.":
        raise SnapshotValidationError(
            f"Invalid snapshot name '{name}'. Use letters, digits, spaces, '.', '-' or '_', "
            "and do not start with '_' or '.'."
        )
    return cleaned


def _timestamp_suffix() -> str:
    return datetime.now().strftime("%Y-%m-%dT%H-%M-%S")


def _read_json(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


class SnapshotManager:
    """Save, load, append, list, inspect and delete snapshots of the live store.

    Args:
        owner: Holder of the live store handle and running config.
        client: Embedding client used for fingerprints and model checks.
    """

    def __init__(self, owner: StoreOwner, client: EmbeddingClient) -> None:
        self._owner = owner
        self._client = client

    @property
    def snapshots_dir(self) -> Path:
        return self._owner.settings.snapshots_dir

    @property
    def live_dir(self) -> Path:
        return self._owner.settings.live_dir

    def _path_for(self, name: str) -> Path:
        return self.snapshots_dir / validate_snapshot_name(name)

    def _existing(self, name: str) -> Path:
        path = self._path_for(name)
        if not path.is_dir():
            raise SnapshotValidationError(f'Snapshot "{name}" not found')
        return path

    def _metadata(self, path: Path) -> dict[str, Any]:
        try:
            return _read_json(path / METADATA_FILENAME)
        except (OSError, ValueError) as exc:
            raise SnapshotValidationError(f"Failed to read snapshot metadata: {exc}") from exc

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def current_metadata(self) -> dict[str, Any]:
        """Describe the live store: config with the probed dimension, stats, fingerprint.

        Raises:
            EmbeddingProviderError: If the text model cannot be probed.
        """
        cfg = self._owner.config
        vector = await self._client.embed(FINGERPRINT_TEXT, cfg.text_embedding_model)
        count = await asyncio.to_thread(self._owner.store.count)
        config = cfg.to_dict()
        config["dimension"] = len(vector)
        return {
            "config": config,
            "stats": {"total_chunks": count, "created_at": time.time()},
            "model_fingerprint": {
                "test_embedding_dim": len(vector),
                "sample_vector": vector[:3],
            },
        }

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    async def save(self, name: str, auto_timestamp: bool = False) -> SaveResult:
        """Copy the live store into a new snapshot directory."""
        try:
            base = validate_snapshot_name(name)
        except SnapshotValidationError as exc:
            return SaveResult(success=False, error=str(exc))

        count = await asyncio.to_thread(self._owner.store.count)
        if count == 0:
            return SaveResult(success=False, error="Database is empty. Index some documents first.")

        try:
            metadata = await self.current_metadata()
        except DualragError as exc:
            return SaveResult(success=False, error=f"Failed to fingerprint the embedding model: {exc}")

        if auto_timestamp:
            base = f"{base}_{_timestamp_suffix()}"
        self.snapshots_dir.mkdir(parents=True, exist_ok=True)
        final_name = base
        counter = 1
        while (self.snapshots_dir / final_name).exists():
            final_name = f"{base}_{counter}"
            counter += 1

        metadata["snapshot_name"] = final_name
        metadata["saved_at"] = time.time()
        target = self.snapshots_dir / final_name
        temp = self.snapshots_dir / f"_temp_{time.time_ns()}"

        log.info("Saving snapshot %s (%d chunks)", final_name, count)
        self._owner.close_store()
        try:
            await asyncio.to_thread(self._copy_into_place, temp, target, metadata)
        except OSError as exc:
            log.error("Snapshot save failed: %s", exc)
            shutil.rmtree(temp, ignore_errors=True)
            return SaveResult(success=False, error=str(exc))
        finally:
            self._owner.open_store()

        log.info("Snapshot saved: %s", final_name)
        return SaveResult(
            success=True,
            name=final_name,
            path=target,
            message=f'Snapshot "{final_name}" created with {count} chunks',
        )

    def _copy_into_place(self, temp: Path, target: Path, metadata: dict[str, Any]) -> None:
        shutil.copytree(self.live_dir, temp)
        (temp / METADATA_FILENAME).write_text(json.dumps(metadata, indent=2), encoding="utf-8")
        temp.rename(target)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self, name: str, skip_backup: bool = False) -> LoadResult:
        """Replace the live store with snapshot *name* and adopt its config."""
        try:
            path = self._existing(name)
            metadata = self._metadata(path)
            snap_cfg = await self._validate_for_load(metadata)
            new_config = self._owner.config.merged(
                text_embedding_model=snap_cfg["text_embedding_model"],
                code_embedding_model=snap_cfg["code_embedding_model"],
                embedding_mode=snap_cfg.get("embedding_mode") or "auto",
                dimension=int(snap_cfg["dimension"]),
            )
        except (DualragError, ConfigError) as exc:
            return LoadResult(success=False, name=name, error=str(exc))

        backup_name = ""
        if not skip_backup:
            backup_name = await self._auto_backup()

        loading = self.live_dir.with_name(self.live_dir.name + ".loading")
        previous_config = self._owner.config
        swapped = False

        log.info("Loading snapshot %s", path.name)
        self._owner.close_store()
        try:
            await asyncio.to_thread(self._swap_in, path, loading)
            swapped = True
            write_pointer(self.snapshots_dir, path.name, new_config.to_dict())
            self._owner.config = new_config
            store = self._owner.open_store()
            count = await asyncio.to_thread(store.count)
        except (OSError, DualragError) as exc:
            log.error("Snapshot load failed: %s", exc)
            shutil.rmtree(loading, ignore_errors=True)
            self._owner.config = previous_config
            self._recover_live_store(discard=swapped)
            return LoadResult(success=False, name=name, backup_name=backup_name, error=str(exc))

        log.info("Snapshot loaded: %s (%d chunks)", path.name, count)
        return LoadResult(
            success=True,
            name=path.name,
            config=new_config,
            backup_name=backup_name,
            message=(
                f'Snapshot "{path.name}" loaded with {count} chunks. '
                "Settings have been updated to match the snapshot configuration."
            ),
        )

    async def _validate_for_load(self, metadata: dict[str, Any]) -> dict[str, Any]:
        """Check format, model availability and dimension, in that order."""
        cfg = metadata.get("config") or {}
        text_model = cfg.get("text_embedding_model")
        code_model = cfg.get("code_embedding_model")
        if not text_model or not code_model:
            raise SnapshotValidationError(_OUTDATED_FORMAT)

        for kind, model in (("text", text_model), ("code", code_model)):
            if not await self._client.is_available(model):
                raise SnapshotValidationError(
                    f"Required {kind} embedding model not available: {model}"
                )

        required = cfg.get("dimension")
        probe = await self._client.embed("dimension compatibility test", text_model)
        if len(probe) != required:
            raise SnapshotValidationError(
                f"Model version mismatch! Expected {required}D vectors, got {len(probe)}D. "
                f'The model "{text_model}" differs from the one used to create this snapshot.'
            )
        return cfg

    async def _auto_backup(self) -> str:
        count = await asyncio.to_thread(self._owner.store.count)
        if count == 0:
            return ""
        result = await self.save(f"{AUTOSAVE_PREFIX}{int(time.time() * 1000)}")
        if not result.success:
            log.warning("Auto-backup failed: %s", result.error)
            return ""
        log.info("Auto-backup created: %s", result.name)
        return result.name

    def _swap_in(self, snapshot: Path, loading: Path) -> None:
        shutil.rmtree(loading, ignore_errors=True)
        shutil.copytree(snapshot, loading, ignore=shutil.ignore_patterns(METADATA_FILENAME))
        if self.live_dir.exists():
            shutil.rmtree(self.live_dir)
        loading.rename(self.live_dir)

    def _recover_live_store(self, discard: bool) -> None:
        """Leave an open live store behind after a failed load.

        With *discard*, or when the live files are missing or unreadable, the
        live directory is replaced by an empty store and the active pointer
        is cleared.
        """
        self._owner.close_store()
        if not discard and self.live_dir.exists():
            try:
                self._owner.open_store()
                return
            except StoreError as exc:
                log.warning("Live store unusable after failed load: %s", exc)
        shutil.rmtree(self.live_dir, ignore_errors=True)
        clear_pointer(self.snapshots_dir)
        self._owner.open_store()
        log.info("Live store re-initialized empty after failed load")

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    async def append(self, name: str) -> AppendResult:
        """Merge the records of snapshot *name* whose file paths are not yet indexed."""
        try:
            path = self._existing(name)
            metadata = self._metadata(path)
        except DualragError as exc:
            return AppendResult(success=False, error=str(exc))

        cfg = metadata.get("config") or {}
        snap_dim = cfg.get("dimension")
        current_dim = self._owner.config.dimension
        if snap_dim != current_dim:
            return AppendResult(
                success=False,
                error=(
                    f"Dimension mismatch! Current database: {current_dim}D, "
                    f"snapshot: {snap_dim}D. Cannot merge snapshots with different dimensions."
                ),
            )
        if not cfg.get("text_embedding_model") or not cfg.get("code_embedding_model"):
            return AppendResult(success=False, error=_OUTDATED_FORMAT)

        warning = ""
        current_model = self._owner.config.text_embedding_model
        if cfg["text_embedding_model"] != current_model:
            warning = (
                f"Embedding model mismatch: current {current_model}, snapshot "
                f"{cfg['text_embedding_model']}. Both are {snap_dim}D but use different "
                "embedding spaces; search results may be inconsistent."
            )
            log.warning(warning)

        live = self._owner.store
        try:
            records = await asyncio.to_thread(self._extract_records, path, live.dimension)
            existing = await asyncio.to_thread(live.file_paths)
            fresh = [r for r in records if r.file_path not in existing]
            duplicates = len(records) - len(fresh)

            batch_size = self._owner.settings.indexing.append_batch_size
            for start in range(0, len(fresh), batch_size):
                await asyncio.to_thread(live.add, fresh[start : start + batch_size])
                log.info("Appended %d/%d records", min(start + batch_size, len(fresh)), len(fresh))
            total = await asyncio.to_thread(live.count)
        except DualragError as exc:
            log.error("Snapshot append failed: %s", exc)
            return AppendResult(success=False, warning=warning, error=str(exc))

        if not fresh:
            message = (
                f'All {len(records)} documents from "{path.name}" are already indexed. '
                "No new documents added."
            )
        else:
            message = (
                f'Snapshot "{path.name}" appended: {len(fresh)} new documents added, '
                f"{duplicates} duplicates skipped. Total database size: {total} chunks."
            )
        return AppendResult(
            success=True,
            files_added=len(fresh),
            duplicates_skipped=duplicates,
            total_chunks=total,
            warning=warning,
            message=message,
        )

    @staticmethod
    def _extract_records(path: Path, expected_dim: int) -> list[IndexRecord]:
        db_path = path / DB_FILENAME
        if not db_path.is_file():
            raise SnapshotValidationError(f"Snapshot has no vector database: {db_path}")
        with tempfile.TemporaryDirectory(prefix="dualrag_append_") as tmp:
            copy = Path(tmp) / DB_FILENAME
            for suffix in ("", "-wal"):
                source = db_path.with_name(DB_FILENAME + suffix)
                if source.exists():
                    shutil.copy2(source, copy.with_name(DB_FILENAME + suffix))
            conn: sqlite3.Connection | None = None
            try:
                conn = open_connection(copy)
                dimension = recorded_dimension(conn)
            except sqlite3.Error as exc:
                if conn is not None:
                    conn.close()
                raise StoreError(f"Cannot read snapshot database '{db_path}': {exc}") from exc
            store = VectorStore(conn, dimension or expected_dim)
            try:
                if dimension != expected_dim:
                    raise SnapshotValidationError(
                        f"Dimension mismatch! Current database: {expected_dim}D, "
                        f"snapshot vectors: {dimension}D."
                    )
                records = store.all_records()
            finally:
                store.close()
        for record in records:
            record.id = None
        return records

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def list(self) -> list[SnapshotSummary]:
        """All readable snapshots, newest first. Internal entries are skipped."""
        if not self.snapshots_dir.is_dir():
            return []
        summaries: list[SnapshotSummary] = []
        for entry in self.snapshots_dir.iterdir():
            if entry.name.startswith("_") or not entry.is_dir():
                continue
            try:
                metadata = _read_json(entry / METADATA_FILENAME)
                cfg = metadata.get("config") or {}
                summaries.append(
                    SnapshotSummary(
                        name=entry.name,
                        saved_at=float(metadata.get("saved_at", 0)),
                        chunks=int(metadata["stats"]["total_chunks"]),
                        text_embedding_model=cfg.get("text_embedding_model") or "outdated",
                        code_embedding_model=cfg.get("code_embedding_model") or "outdated",
                        embedding_mode=cfg.get("embedding_mode") or "unknown",
                        dimension=cfg.get("dimension"),
                        metadata=metadata,
                    )
                )
            except (OSError, ValueError, KeyError, TypeError) as exc:
                log.warning("Skipping snapshot %s: unreadable metadata (%s)", entry.name, exc)
        summaries.sort(key=lambda s: s.saved_at, reverse=True)
        return summaries

    def get_info(self, name: str) -> InfoResult:
        try:
            path = self._existing(name)
            metadata = self._metadata(path)
        except DualragError as exc:
            return InfoResult(success=False, name=name, error=str(exc))
        return InfoResult(success=True, name=path.name, path=path, metadata=metadata)

    async def check_compatibility(self, name: str) -> CompatibilityReport:
        """Report whether snapshot *name* could be loaded with the current provider."""
        info = self.get_info(name)
        if not info.success:
            return CompatibilityReport(compatible=False, issues=[info.error])

        metadata = info.metadata or {}
        cfg = metadata.get("config") or {}
        mode = cfg.get("embedding_mode") or "auto"
        required: list[tuple[str, str]] = []
        if mode in ("auto", "manual-text") and cfg.get("text_embedding_model"):
            required.append(("text", cfg["text_embedding_model"]))
        if mode in ("auto", "manual-code") and cfg.get("code_embedding_model"):
            required.append(("code", cfg["code_embedding_model"]))

        issues: list[str] = []
        for kind, model in required:
            if not await self._client.is_available(model):
                issues.append(f"Required {kind} embedding model not available: {model}")

        if not issues and cfg.get("text_embedding_model"):
            try:
                dim = await self._client.dimension_of(cfg["text_embedding_model"])
            except DualragError as exc:
                issues.append(f"Failed to test embedding dimension: {exc}")
            else:
                if dim != cfg.get("dimension"):
                    issues.append(
                        f"Model version mismatch: expected {cfg.get('dimension')}D, got {dim}D"
                    )

        return CompatibilityReport(compatible=not issues, issues=issues, metadata=metadata)

    def delete(self, name: str) -> DeleteResult:
        """Remove snapshot *name*. The active snapshot cannot be deleted."""
        try:
            path = self._existing(name)
        except DualragError as exc:
            return DeleteResult(success=False, error=str(exc))
        if self.active().snapshot_name == path.name:
            return DeleteResult(
                success=False,
                error=(
                    f'Cannot delete active snapshot "{path.name}". '
                    "Load a different snapshot or clear the database first."
                ),
            )
        try:
            shutil.rmtree(path)
        except OSError as exc:
            return DeleteResult(success=False, error=str(exc))
        log.info("Snapshot deleted: %s", path.name)
        return DeleteResult(success=True, message=f'Snapshot "{path.name}" deleted successfully')

    def active(self) -> ActivePointer:
        return read_pointer(self.snapshots_dir)
