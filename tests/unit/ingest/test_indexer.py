"""Tests for the indexing pipeline (IndexJob via RagEngine)."""

from __future__ import annotations

from pathlib import Path

import pytest
from fakes import CODE_MODEL, TEXT_MODEL, FakeEmbeddingClient

from dualrag.config import IndexingCfg
from dualrag.engine import RagEngine
from dualrag.ingest.events import (
    ChunkingEvent,
    CompletedEvent,
    EmbeddingEvent,
    ErrorEvent,
    ProgressEvent,
)

_MD = "# One\n\nFirst section body text here.\n\n# Two\n\nSecond section body text here.\n"
_PY = "def hello():\n    return 'hello world'\n"


def _write(tmp_path: Path, name: str, content: str) -> str:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return str(path)


def _docs(tmp_path: Path, count: int) -> list[str]:
    return [
        _write(tmp_path, f"doc{i}.txt", f"Document {i} has a sentence long enough to keep.")
        for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_index_markdown_and_code(engine: RagEngine, tmp_path: Path) -> None:
    engine.set_config(chunk_size=512)
    paths = [_write(tmp_path, "a.md", _MD), _write(tmp_path, "b.py", _PY)]

    result = await engine.add_documents(paths)

    assert result.success is True
    assert result.files_processed == 2
    assert result.chunks_indexed >= 3
    assert result.message == f"Indexing complete: {result.chunks_indexed} chunks from 2 file(s)."
    assert engine.get_stats().count == result.chunks_indexed


@pytest.mark.asyncio
async def test_index_routes_models_by_file_type(engine: RagEngine, tmp_path: Path) -> None:
    paths = [_write(tmp_path, "a.md", _MD), _write(tmp_path, "b.py", _PY)]
    await engine.add_documents(paths)

    by_path = {}
    for record in engine.store.all_records():
        by_path.setdefault(Path(record.file_path).name, set()).add(record.metadata.embedding_model)
    assert by_path == {"a.md": {TEXT_MODEL}, "b.py": {CODE_MODEL}}


@pytest.mark.asyncio
async def test_index_record_metadata(engine: RagEngine, tmp_path: Path) -> None:
    await engine.add_documents([_write(tmp_path, "b.py", _PY)])
    [record] = engine.store.all_records()
    meta = record.metadata
    assert meta.type == "file"
    assert meta.source == "indexed_file"
    assert meta.priority == "normal"
    assert meta.tags == ["file"]
    assert meta.file_type == "code"
    assert meta.code_context.language == "python"
    assert meta.code_context.functions == ["hello"]
    assert meta.indexed_at > 0


@pytest.mark.asyncio
async def test_index_emits_typed_events(engine: RagEngine, tmp_path: Path) -> None:
    events: list[ProgressEvent] = []
    await engine.add_documents([_write(tmp_path, "a.md", _MD)], on_progress=events.append)

    assert isinstance(events[0], ChunkingEvent)
    assert isinstance(events[-1], CompletedEvent)
    assert any(isinstance(e, EmbeddingEvent) for e in events)
    assert all(e.file_index == 1 and e.total_files == 1 for e in events)
    assert events[-1].chunks == 2
    assert [e.phase for e in events][0] == "chunking"


@pytest.mark.asyncio
async def test_index_job_async_iteration(engine: RagEngine, tmp_path: Path) -> None:
    job = engine.index_job(_docs(tmp_path, 2))
    phases = [event.phase async for event in job]
    assert phases.count("completed") == 2
    assert job.result is not None and job.result.success

    with pytest.raises(RuntimeError):
        job.__aiter__()


@pytest.mark.asyncio
async def test_index_async_progress_callback(engine: RagEngine, tmp_path: Path) -> None:
    seen: list[str] = []

    async def on_progress(event: ProgressEvent) -> None:
        seen.append(event.phase)

    await engine.add_documents(_docs(tmp_path, 1), on_progress=on_progress)
    assert seen[-1] == "completed"


# ---------------------------------------------------------------------------
# Per-file failures
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_file_is_skipped(engine: RagEngine, tmp_path: Path) -> None:
    events: list[ProgressEvent] = []
    paths = [str(tmp_path / "missing.txt"), *_docs(tmp_path, 1)]

    result = await engine.add_documents(paths, on_progress=events.append)

    errors = [e for e in events if isinstance(e, ErrorEvent)]
    assert len(errors) == 1 and errors[0].file_name == "missing.txt"
    assert result.success is True
    assert result.files_failed == 1
    assert engine.get_stats().count == 1


@pytest.mark.asyncio
async def test_provider_failure_skips_only_that_file(settings, tmp_path: Path) -> None:
    client = FakeEmbeddingClient(unavailable={CODE_MODEL})
    engine = RagEngine(settings, client=client)
    try:
        events: list[ProgressEvent] = []
        paths = [_write(tmp_path, "b.py", _PY), _write(tmp_path, "a.md", _MD)]
        result = await engine.add_documents(paths, on_progress=events.append)

        [error] = [e for e in events if isinstance(e, ErrorEvent)]
        assert error.file_name == "b.py"
        assert "connection refused" in error.error
        assert result.files_failed == 1
        assert engine.get_stats().count == 2
    finally:
        engine.close()


@pytest.mark.asyncio
async def test_wrong_dimension_is_rejected(settings, tmp_path: Path) -> None:
    engine = RagEngine(settings, client=FakeEmbeddingClient(dims={CODE_MODEL: 16}))
    try:
        events: list[ProgressEvent] = []
        await engine.add_documents([_write(tmp_path, "b.py", _PY)], on_progress=events.append)
        [error] = [e for e in events if isinstance(e, ErrorEvent)]
        assert "Dimension mismatch" in error.error
        assert engine.get_stats().count == 0
    finally:
        engine.close()


# ---------------------------------------------------------------------------
# Cooperative abort
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_abort_keeps_exactly_the_flushed_records(engine: RagEngine, tmp_path: Path) -> None:
    engine.settings.indexing = IndexingCfg(flush_files=1)
    paths = _docs(tmp_path, 3)

    def on_progress(event: ProgressEvent) -> None:
        if isinstance(event, CompletedEvent) and event.file_index == 1:
            engine.abort_indexing()

    result = await engine.add_documents(paths, on_progress=on_progress)

    assert result.aborted is True
    assert result.success is False
    assert result.files_processed == 1
    assert result.chunks_indexed == 1
    assert engine.get_stats().count == result.chunks_indexed
    assert result.message.startswith("Indexing stopped by user (1/3 files processed")


@pytest.mark.asyncio
async def test_abort_drops_unflushed_buffer(engine: RagEngine, tmp_path: Path) -> None:
    paths = _docs(tmp_path, 3)  # default flush threshold: nothing flushed before abort

    def on_progress(event: ProgressEvent) -> None:
        if isinstance(event, CompletedEvent):
            engine.abort_indexing()

    result = await engine.add_documents(paths, on_progress=on_progress)
    assert result.aborted is True
    assert result.chunks_indexed == 0
    assert engine.get_stats().count == 0


@pytest.mark.asyncio
async def test_abort_flag_cleared_for_next_job(engine: RagEngine, tmp_path: Path) -> None:
    engine.abort_indexing()
    result = await engine.add_documents(_docs(tmp_path, 2))
    assert result.success is True
    assert engine.get_stats().count == 2


@pytest.mark.asyncio
async def test_final_flush_below_threshold(engine: RagEngine, tmp_path: Path) -> None:
    engine.settings.indexing = IndexingCfg(flush_records=1000, flush_files=1000)
    result = await engine.add_documents(_docs(tmp_path, 5))
    assert result.chunks_indexed == 5
    assert engine.get_stats().count == 5


@pytest.mark.asyncio
async def test_run_without_result_raises(engine: RagEngine) -> None:
    async def _no_events():
        return
        yield

    job = engine.index_job([])
    job._run = _no_events
    with pytest.raises(RuntimeError, match="without a result"):
        await job.run()
