"""Tests for VectorStore, migrations and the vec table."""

from __future__ import annotations

import pytest
from fakes import DIM, fake_vector

from dualrag.db.connection import open_connection
from dualrag.db.migrations import MIGRATIONS, run_migrations
from dualrag.db.models import CodeContext, IndexRecord, RecordMetadata
from dualrag.db.store import VectorStore
from dualrag.db.vectors import VEC_TABLE, ensure_vec_table, recorded_dimension
from dualrag.errors import DimensionMismatchError, StoreError


def _record(text: str, path: str = "notes.md", **meta) -> IndexRecord:
    return IndexRecord(
        vector=fake_vector(text),
        text=text,
        file_path=path,
        metadata=RecordMetadata(tags=["file"], **meta),
    )


# --- migrations / vec table ---


def test_open_connection_creates_parent_and_uses_wal(tmp_path):
    conn = open_connection(tmp_path / "nested" / "v.db")
    assert (tmp_path / "nested").is_dir()
    assert conn.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
    conn.close()


def test_migrations_idempotent(tmp_path):
    conn = open_connection(tmp_path / "v.db")
    assert run_migrations(conn) == MIGRATIONS[-1][0]
    assert run_migrations(conn) == MIGRATIONS[-1][0]
    versions = [r[0] for r in conn.execute("SELECT version FROM schema_version").fetchall()]
    assert versions == [v for v, _ in MIGRATIONS]
    conn.close()


def test_ensure_vec_table_records_dimension(tmp_path):
    conn = open_connection(tmp_path / "v.db")
    run_migrations(conn)
    assert ensure_vec_table(conn, 16) == 16
    assert recorded_dimension(conn) == 16
    # second call keeps the dimension the table was created with
    assert ensure_vec_table(conn, 32) == 16
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE name=?", (VEC_TABLE,)
    ).fetchone()
    assert row is not None
    conn.close()


def test_ensure_vec_table_rejects_zero(tmp_path):
    conn = open_connection(tmp_path / "v.db")
    run_migrations(conn)
    with pytest.raises(ValueError):
        ensure_vec_table(conn, 0)
    conn.close()


def test_open_existing_store_keeps_recorded_dimension(tmp_path):
    path = tmp_path / "v.db"
    VectorStore.open(path, 8).close()
    reopened = VectorStore.open(path, 1024)
    assert reopened.dimension == 8
    reopened.close()


# --- add ---


def test_add_assigns_ids_and_counts(store):
    records = [_record("first passage about caching"), _record("second passage about queues")]
    ids = store.add(records)
    assert len(ids) == 2
    assert [r.id for r in records] == ids
    assert store.count() == 2


def test_add_empty_batch(store):
    assert store.add([]) == []
    assert store.count() == 0


def test_add_rejects_wrong_dimension_atomically(store):
    good = _record("a valid record with the right size")
    bad = IndexRecord(vector=[0.1] * (DIM + 1), text="too long", file_path="x.md")
    with pytest.raises(DimensionMismatchError, match=f"expected {DIM}D"):
        store.add([good, bad])
    assert store.count() == 0


def test_closed_store_raises(tmp_path):
    s = VectorStore.open(tmp_path / "v.db", DIM)
    s.close()
    assert not s.is_open
    with pytest.raises(StoreError, match="closed"):
        s.count()


# --- search ---


def test_search_returns_exact_match_first(store):
    texts = [f"passage number {i} about topic {i}" for i in range(5)]
    store.add([_record(t, path=f"doc{i}.md") for i, t in enumerate(texts)])

    hits = store.search(fake_vector(texts[3]), k=3)
    assert len(hits) == 3
    assert hits[0].record.text == texts[3]
    assert hits[0].distance == pytest.approx(0.0, abs=1e-5)
    assert [h.distance for h in hits] == sorted(h.distance for h in hits)


def test_search_rejects_wrong_dimension(store):
    with pytest.raises(DimensionMismatchError):
        store.search([0.0] * 3, k=1)


def test_search_empty_store(store):
    assert store.search(fake_vector("anything"), k=5) == []


# --- metadata round trip ---


def test_metadata_survives_storage(store):
    meta = dict(
        type="file",
        file_type="code",
        embedding_model="ollama/test-code",
        code_context=CodeContext(language="python", functions=["load"], classes=["Cache"]),
    )
    store.add([_record("def load(): return Cache()", path="cache.py", **meta)])
    [record] = store.all_records()
    assert record.metadata.code_context.language == "python"
    assert record.metadata.code_context.functions == ["load"]
    assert record.metadata.tags == ["file"]
    assert len(record.vector) == DIM
    assert record.vector == pytest.approx(fake_vector("def load(): return Cache()"), abs=1e-6)


# --- deletes ---


def test_delete_by_file_path(store):
    store.add([_record("alpha chunk one of the file", "a.md"), _record("alpha chunk two", "a.md")])
    store.add([_record("beta chunk kept in the store", "b.md")])
    assert store.delete_by_file_path("a.md") == 2
    assert store.file_paths() == {"b.md"}
    assert store.search(fake_vector("alpha chunk two"), k=5)[0].record.file_path == "b.md"


def test_delete_by_message_id(store):
    store.add([_record("pinned message text here", "pinned_message_m1", message_id="m1")])
    assert store.delete_by_message_id("m1") == 1
    assert store.delete_by_message_id("m1") == 0
    assert store.count() == 0
