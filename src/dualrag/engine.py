"""RagEngine: the owned context behind every public operation.

One engine holds the settings, the live store handle, the embedding client,
the indexing abort flag and the snapshot manager. Create one per data
directory; instances share nothing.

Usage::

    engine = RagEngine(load_config())
    result = await engine.add_documents(["notes.md", "src/app.py"])
    hits = await engine.search("how is the cache invalidated?")
    engine.close()
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from dualrag.config import IndexConfig, Settings
from dualrag.db.connection import DB_FILENAME
from dualrag.db.models import IndexRecord, RecordMetadata
from dualrag.db.store import VectorStore
from dualrag.errors import DualragError, EmbeddingProviderError, StoreError
from dualrag.ingest.events import ProgressEvent
from dualrag.ingest.indexer import IndexJob, IndexResult
from dualrag.rag.embedding_client import EmbeddingClient
from dualrag.rag.retriever import Retriever, SearchResult
from dualrag.snapshots.active import ActivePointer, clear_pointer
from dualrag.snapshots.manager import (
    AppendResult,
    CompatibilityReport,
    DeleteResult,
    InfoResult,
    LoadResult,
    SaveResult,
    SnapshotManager,
    SnapshotSummary,
)

log = logging.getLogger(__name__)

PINNED_PATH_PREFIX = "pinned_message_"
PINNED_SCORE_BOOST = 0.3


@dataclass
class StoreStats:
    count: int


@dataclass
class OpResult:
    success: bool
    message: str = ""
    error: str = ""


@dataclass
class ModelCompatibility:
    """Whether switching to a text/code model pair keeps the store searchable."""

    compatible: bool
    has_database_content: bool = False
    current_dimension: int | None = None
    new_text_model_dimension: int | None = None
    new_code_model_dimension: int | None = None
    database_chunks: int = 0
    error: str = ""


class RagEngine:
    """Facade over indexing, retrieval and snapshots for one data directory.

    Args:
        settings: Loaded settings. Defaults are used when omitted.
        client: Embedding client; built from ``settings.api_base`` when omitted.
    """

    def __init__(self, settings: Settings | None = None, client: EmbeddingClient | None = None) -> None:
        self.settings = settings or Settings()
        self.client = client or EmbeddingClient(api_base=self.settings.api_base)
        self._store: VectorStore | None = None
        self._abort = threading.Event()
        self.snapshots = SnapshotManager(self, self.client)

    # ------------------------------------------------------------------
    # Store lifecycle
    # ------------------------------------------------------------------

    @property
    def db_path(self) -> Path:
        return self.settings.live_dir / DB_FILENAME

    @property
    def config(self) -> IndexConfig:
        return self.settings.index

    @config.setter
    def config(self, value: IndexConfig) -> None:
        self.settings.index = value

    @property
    def store(self) -> VectorStore:
        """The live store, opened on first use."""
        if self._store is None:
            self.initialize_database()
        if self._store is None or not self._store.is_open:
            raise StoreError(f"Vector store at {self.db_path} is not open")
        return self._store

    def initialize_database(self) -> None:
        """Open the live store, creating it with ``config.dimension`` if absent.

        A store created for the first time cannot match any snapshot, so the
        active-snapshot pointer is cleared.
        """
        if self._store is not None:
            return
        if not self.db_path.exists():
            clear_pointer(self.settings.snapshots_dir)
        self.open_store()
        log.info("Vector store ready at %s (%dD)", self.db_path, self._store.dimension)

    def open_store(self) -> VectorStore:
        self._store = VectorStore.open(self.db_path, self.config.dimension)
        return self._store

    def close_store(self) -> None:
        if self._store is not None:
            self._store.close()
            self._store = None

    def close(self) -> None:
        """Stop any running indexing job at its next checkpoint and close the store."""
        self._abort.set()
        self.close_store()

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index_job(self, paths: list[str | Path]) -> IndexJob:
        """Create an indexing job; iterate it to run it and receive progress events."""
        return IndexJob(
            paths,
            store=self.store,
            client=self.client,
            config=self.config,
            indexing=self.settings.indexing,
            abort=self._abort,
        )

    async def add_documents(
        self,
        paths: list[str | Path],
        on_progress: Callable[[ProgressEvent], Awaitable[None] | None] | None = None,
    ) -> IndexResult:
        """Index *paths* in order and return the job result.

        A store failure ends the job and is returned as a failed result;
        records flushed before the failure stay in the store.
        """
        job = self.index_job(paths)
        try:
            return await job.run(on_progress)
        except StoreError as exc:
            log.error("Indexing failed: %s", exc)
            return IndexResult(success=False, message=f"Indexing failed: {exc}")

    def abort_indexing(self) -> None:
        """Ask the running job to stop at its next file or batch boundary."""
        log.info("Indexing abort requested")
        self._abort.set()

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def search(self, query: str) -> SearchResult:
        try:
            store = self.store
        except StoreError as exc:
            return SearchResult(error=True, error_message=str(exc))

        pointer = self.get_active_snapshot()
        recorded = store.dimension
        if pointer.is_active and pointer.config and pointer.config.get("dimension"):
            recorded = int(pointer.config["dimension"])

        retriever = Retriever(
            store,
            self.client,
            self.config,
            indexing=self.settings.indexing,
            recorded_dimension=recorded,
        )
        return await retriever.search(query)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clear_database(self) -> OpResult:
        """Drop every record, recreate an empty store and forget the active snapshot."""
        self.close_store()
        try:
            if self.settings.live_dir.exists():
                shutil.rmtree(self.settings.live_dir)
            clear_pointer(self.settings.snapshots_dir)
        except OSError as exc:
            log.error("Failed to clear RAG database: %s", exc)
            return OpResult(success=False, error=str(exc))
        finally:
            self.open_store()
        log.info("RAG database cleared")
        return OpResult(success=True, message="Database cleared.")

    def remove_file(self, path: str | Path) -> OpResult:
        """Delete every record indexed from *path*.

        The path is matched exactly as it was given to ``add_documents``.
        """
        try:
            removed = self.store.delete_by_file_path(str(path))
        except StoreError as exc:
            return OpResult(success=False, error=str(exc))
        log.info("Removed %d record(s) for %s", removed, path)
        return OpResult(success=True, message=f"Removed {removed} record(s) for {path}")

    def get_stats(self) -> StoreStats:
        return StoreStats(count=self.store.count())

    def set_config(self, **partial: object) -> IndexConfig:
        """Apply a partial config update.

        Raises:
            ConfigError: For unknown fields or invalid values.
        """
        self.config = self.config.merged(**partial)
        log.debug("Configuration updated: %s", partial)
        return self.config

    async def validate_model_compatibility(self, text_model: str, code_model: str) -> ModelCompatibility:
        """Check that a new model pair produces vectors the current store accepts."""
        count = await asyncio.to_thread(self.store.count)
        if count == 0:
            return ModelCompatibility(compatible=True)

        current = self.store.dimension
        try:
            text_dim, code_dim = await asyncio.gather(
                self.client.dimension_of(text_model),
                self.client.dimension_of(code_model),
            )
        except EmbeddingProviderError as exc:
            return ModelCompatibility(
                compatible=False,
                has_database_content=True,
                current_dimension=current,
                database_chunks=count,
                error=str(exc),
            )
        return ModelCompatibility(
            compatible=text_dim == current and code_dim == current,
            has_database_content=True,
            current_dimension=current,
            new_text_model_dimension=text_dim,
            new_code_model_dimension=code_dim,
            database_chunks=count,
        )

    async def current_metadata(self) -> dict:
        return await self.snapshots.current_metadata()

    # ------------------------------------------------------------------
    # Pinned records
    # ------------------------------------------------------------------

    async def add_pinned_record(
        self,
        message_id: str,
        role: str,
        content: str,
        pinned_at: float | None = None,
        tags: list[str] | None = None,
    ) -> OpResult:
        """Embed *content* with the text model and store it as one high-priority record."""
        model = self.config.text_embedding_model
        try:
            vector = await self.client.embed(content, model)
            record = IndexRecord(
                vector=vector,
                text=content,
                file_path=f"{PINNED_PATH_PREFIX}{message_id}",
                metadata=RecordMetadata(
                    type="pinned_user" if role == "user" else "pinned_assistant",
                    source="rag_pin",
                    priority="high",
                    score_boost=PINNED_SCORE_BOOST,
                    pinned_at=pinned_at or time.time(),
                    message_id=message_id,
                    tags=list(tags) if tags else ["pinned"],
                    embedding_model=model,
                    file_type="text",
                ),
            )
            await asyncio.to_thread(self.store.add, [record])
        except DualragError as exc:
            log.error("Failed to index pinned message %s: %s", message_id, exc)
            return OpResult(success=False, error=str(exc))
        log.info("Pinned %s message %s indexed", role, message_id)
        return OpResult(success=True, message=f"Pinned message {message_id} indexed")

    async def remove_pinned_record(self, message_id: str) -> OpResult:
        try:
            removed = await asyncio.to_thread(self.store.delete_by_message_id, message_id)
        except StoreError as exc:
            return OpResult(success=False, error=str(exc))
        return OpResult(success=True, message=f"Removed {removed} record(s) for message {message_id}")

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    async def save_snapshot(self, name: str, auto_timestamp: bool = False) -> SaveResult:
        return await self.snapshots.save(name, auto_timestamp=auto_timestamp)

    async def load_snapshot(self, name: str, skip_backup: bool = False) -> LoadResult:
        return await self.snapshots.load(name, skip_backup=skip_backup)

    async def append_snapshot(self, name: str) -> AppendResult:
        return await self.snapshots.append(name)

    def list_snapshots(self) -> list[SnapshotSummary]:
        return self.snapshots.list()

    def get_snapshot_info(self, name: str) -> InfoResult:
        return self.snapshots.get_info(name)

    async def check_snapshot_compatibility(self, name: str) -> CompatibilityReport:
        return await self.snapshots.check_compatibility(name)

    def delete_snapshot(self, name: str) -> DeleteResult:
        return self.snapshots.delete(name)

    def get_active_snapshot(self) -> ActivePointer:
        return self.snapshots.active()
