"""Indexing pipeline: read → chunk → embed → enrich → buffered durable write.

An ``IndexJob`` is consumed as an async iterator of progress events::

    job = IndexJob(paths, store=store, client=client, config=cfg, indexing=tun, abort=flag)
    async for event in job:
        ...
    print(job.result.message)

Failure semantics:
- A file that cannot be parsed or embedded is reported as an ``ErrorEvent``
  and skipped.
- ``StoreError`` from a flush is not caught here; it ends the job.
- Setting the abort flag stops the job at the next file or batch boundary.
  Records still in the write buffer are discarded; flushed ones stay.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, replace
from pathlib import Path

from dualrag.config import IndexConfig, IndexingCfg
from dualrag.db.models import CodeContext, IndexRecord, RecordMetadata
from dualrag.db.store import VectorStore
from dualrag.errors import DimensionMismatchError, EmbeddingProviderError, ParseError
from dualrag.ingest.base import Chunk
from dualrag.ingest.chunking import chunk_document
from dualrag.ingest.detect import detect_file_type, select_embedding_model
from dualrag.ingest.events import (
    ChunkingEvent,
    CompletedEvent,
    EmbeddingEvent,
    ErrorEvent,
    ParsingEvent,
    ProgressEvent,
)
from dualrag.ingest.pdf import extract_pdf_text
from dualrag.rag.embedding_client import EmbeddingClient

log = logging.getLogger(__name__)

# Per-file failures that are reported and skipped rather than ending the job.
_FILE_ERRORS = (ParseError, EmbeddingProviderError, DimensionMismatchError, OSError, UnicodeError)


@dataclass
class IndexResult:
    success: bool
    message: str
    aborted: bool = False
    files_processed: int = 0
    chunks_indexed: int = 0
    files_failed: int = 0


class _Aborted(Exception):
    """Internal signal: the abort flag was seen at a checkpoint."""


class IndexJob:
    """One indexing run over an ordered list of files.

    Args:
        paths: Files to index, processed in order.
        store: Open vector store to write into.
        client: Embedding client.
        config: Index configuration (models, mode, chunking).
        indexing: Batch and flush tunables.
        abort: Shared cancel flag. Cleared when the job starts.
    """

    def __init__(
        self,
        paths: list[str | Path],
        *,
        store: VectorStore,
        client: EmbeddingClient,
        config: IndexConfig,
        indexing: IndexingCfg,
        abort: threading.Event,
    ) -> None:
        self.paths = [str(p) for p in paths]
        self._store = store
        self._client = client
        self._config = config
        self._indexing = indexing
        self._abort = abort
        self._started = False
        self.result: IndexResult | None = None

        self._buffer: list[IndexRecord] = []
        self._buffered_files = 0
        self._flushed = 0

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        if self._started:
            raise RuntimeError("An IndexJob can only be iterated once")
        self._started = True
        return self._run()

    async def run(
        self,
        on_progress: Callable[[ProgressEvent], Awaitable[None] | None] | None = None,
    ) -> IndexResult:
        """Drive the job to completion, passing each event to *on_progress*."""
        async for event in self:
            if on_progress is not None:
                maybe = on_progress(event)
                if asyncio.iscoroutine(maybe):
                    await maybe
        if self.result is None:
            raise RuntimeError("IndexJob finished without a result")
        return self.result

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def _run(self) -> AsyncIterator[ProgressEvent]:
        self._abort.clear()
        total = len(self.paths)
        failed = 0

        for index, path in enumerate(self.paths):
            name = Path(path).name
            if self._abort.is_set():
                self.result = self._aborted_result(index, failed)
                return

            log.info("Indexing file %d/%d: %s", index + 1, total, path)
            try:
                async for event in self._index_file(path, index + 1, total):
                    yield event
            except _Aborted:
                self.result = self._aborted_result(index, failed)
                return
            except _FILE_ERRORS as exc:
                failed += 1
                log.warning("Skipping %s: %s", path, exc)
                yield ErrorEvent(index + 1, total, name, error=str(exc))
                continue

            if (
                len(self._buffer) >= self._indexing.flush_records
                or self._buffered_files >= self._indexing.flush_files
            ):
                await self._flush()

        await self._flush()
        log.info("Indexing complete: %d chunks from %d file(s)", self._flushed, total)
        self.result = IndexResult(
            success=True,
            message=f"Indexing complete: {self._flushed} chunks from {total} file(s).",
            files_processed=total,
            chunks_indexed=self._flushed,
            files_failed=failed,
        )

    async def _index_file(self, path: str, file_index: int, total: int) -> AsyncIterator[ProgressEvent]:
        name = Path(path).name
        file_type = detect_file_type(path)

        if file_type == "pdf":
            pdf = await asyncio.to_thread(extract_pdf_text, path)
            content = pdf.text
            yield ParsingEvent(file_index, total, name, pages=pdf.pages)
        else:
            content = await asyncio.to_thread(
                Path(path).read_text, encoding="utf-8", errors="replace"
            )
            yield ChunkingEvent(file_index, total, name, file_size=len(content))

        chunks = chunk_document(path, file_type, content, self._config)
        model = select_embedding_model(file_type, self._config)
        log.debug("%s: %d %s chunks, model %s", name, len(chunks), file_type, model)

        template = RecordMetadata(
            type="file",
            source="indexed_file",
            priority="normal",
            tags=["file"],
            embedding_model=model,
            file_type=file_type,
        )

        records: list[IndexRecord] = []
        batch_size = self._indexing.embed_batch_size
        for start in range(0, len(chunks), batch_size):
            if self._abort.is_set():
                raise _Aborted
            batch = chunks[start : start + batch_size]
            yield EmbeddingEvent(
                file_index, total, name, chunk_index=start + 1, total_chunks=len(chunks)
            )
            vectors = await asyncio.gather(
                *(self._client.embed(chunk.text, model) for chunk in batch)
            )
            for chunk, vector in zip(batch, vectors):
                if len(vector) != self._store.dimension:
                    raise DimensionMismatchError(
                        self._store.dimension, len(vector), context=f"model {model}"
                    )
                records.append(_to_record(chunk, vector, template))

        self._buffer.extend(records)
        self._buffered_files += 1
        yield CompletedEvent(file_index, total, name, chunks=len(records))

    # ------------------------------------------------------------------
    # Buffer
    # ------------------------------------------------------------------

    async def _flush(self) -> None:
        if not self._buffer:
            self._buffered_files = 0
            return
        batch, self._buffer = self._buffer, []
        await asyncio.to_thread(self._store.add, batch)
        self._flushed += len(batch)
        log.info(
            "Flushed %d chunks from %d file(s) (%d total)",
            len(batch),
            self._buffered_files,
            self._flushed,
        )
        self._buffered_files = 0

    def _aborted_result(self, processed: int, failed: int) -> IndexResult:
        dropped = len(self._buffer)
        self._buffer = []
        self._buffered_files = 0
        log.info("Indexing aborted after %d file(s); %d unflushed chunks dropped", processed, dropped)
        return IndexResult(
            success=False,
            aborted=True,
            message=(
                f"Indexing stopped by user ({processed}/{len(self.paths)} files processed, "
                f"{self._flushed} chunks indexed)"
            ),
            files_processed=processed,
            chunks_indexed=self._flushed,
            files_failed=failed,
        )


def _to_record(chunk: Chunk, vector: list[float], template: RecordMetadata) -> IndexRecord:
    """Copy the per-file metadata template onto one chunk's record."""
    code = chunk.code
    metadata = replace(
        template,
        tags=list(template.tags),
        code_context=CodeContext(
            language=code.language,
            functions=list(code.functions),
            classes=list(code.classes),
            imports=list(code.imports),
            exports=list(code.exports),
        )
        if code is not None
        else CodeContext(),
    )
    return IndexRecord(vector=vector, text=chunk.text, file_path=chunk.file_path, metadata=metadata)
