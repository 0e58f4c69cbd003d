"""Vector store: the single repository over the live sqlite-vec database.

One ``VectorStore`` owns one connection. Methods are synchronous; async
callers run them through ``asyncio.to_thread`` and the internal lock
serialises access to the shared connection.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from array import array
from pathlib import Path

from dualrag.db.connection import open_connection
from dualrag.db.migrations import run_migrations
from dualrag.db.models import Hit, IndexRecord, RecordMetadata
from dualrag.db.vectors import VEC_TABLE, ensure_vec_table
from dualrag.errors import DimensionMismatchError, StoreError

log = logging.getLogger(__name__)


class VectorStore:
    """Data access layer for index records and their embeddings.

    Args:
        conn: Open connection with sqlite-vec loaded.
        dimension: The store's fixed vector dimension.
    """

    def __init__(self, conn: sqlite3.Connection, dimension: int) -> None:
        self._conn: sqlite3.Connection | None = conn
        self._dimension = dimension
        self._lock = threading.Lock()

    @classmethod
    def open(cls, db_path: Path | str, dimension: int) -> VectorStore:
        """Open (or create) the store at *db_path*.

        A new store is created with *dimension*; an existing store keeps the
        dimension it was created with.

        Raises:
            StoreError: If the database cannot be opened or migrated.
        """
        try:
            conn = open_connection(db_path)
            run_migrations(conn)
            recorded = ensure_vec_table(conn, dimension)
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open vector store at '{db_path}': {exc}") from exc
        if recorded != dimension:
            log.warning(
                "Store at %s was created with %dD vectors (config says %dD); using %dD",
                db_path,
                recorded,
                dimension,
                recorded,
            )
        return cls(conn, recorded)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def close(self) -> None:
        """Close the connection. Closing the last WAL connection checkpoints it."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, records: list[IndexRecord]) -> list[int]:
        """Insert *records* and their vectors in a single transaction.

        Every vector is checked before anything is written, so a batch is
        either inserted completely or not at all.

        Returns:
            The new record ids, in input order.

        Raises:
            DimensionMismatchError: If any vector length differs from the store.
            StoreError: If the insert fails.
        """
        for record in records:
            if len(record.vector) != self._dimension:
                raise DimensionMismatchError(
                    self._dimension, len(record.vector), context=record.file_path
                )
        if not records:
            return []

        with self._lock:
            conn = self._require_conn()
            ids: list[int] = []
            try:
                with conn:
                    for record in records:
                        cur = conn.execute(
                            """
                            INSERT INTO records (text, file_path, message_id, metadata)
                            VALUES (?, ?, ?, ?)
                            """,
                            (
                                record.text,
                                record.file_path,
                                record.metadata.message_id,
                                record.metadata.to_json(),
                            ),
                        )
                        rowid = cur.lastrowid
                        conn.execute(
                            f"INSERT INTO {VEC_TABLE}(rowid, embedding) VALUES (?, ?)",
                            (rowid, json.dumps(record.vector)),
                        )
                        ids.append(rowid)
            except sqlite3.Error as exc:
                raise StoreError(f"Insert of {len(records)} records failed: {exc}") from exc

        for record, rowid in zip(records, ids):
            record.id = rowid
        return ids

    def delete_by_message_id(self, message_id: str) -> int:
        """Delete every record carrying *message_id*. Returns the number deleted."""
        return self._delete_where("message_id", message_id)

    def delete_by_file_path(self, file_path: str) -> int:
        """Delete every record indexed from *file_path*. Returns the number deleted."""
        return self._delete_where("file_path", file_path)

    def _delete_where(self, column: str, value: str) -> int:
        if column not in ("message_id", "file_path"):
            raise ValueError(f"Cannot delete by column '{column}'")
        with self._lock:
            conn = self._require_conn()
            try:
                with conn:
                    rowids = [
                        r[0]
                        for r in conn.execute(
                            f"SELECT id FROM records WHERE {column} = ?",  # noqa: S608
                            (value,),
                        ).fetchall()
                    ]
                    if not rowids:
                        return 0
                    placeholders = ",".join("?" * len(rowids))
                    conn.execute(
                        f"DELETE FROM {VEC_TABLE} WHERE rowid IN ({placeholders})",  # noqa: S608
                        rowids,
                    )
                    conn.execute(
                        f"DELETE FROM records WHERE id IN ({placeholders})",  # noqa: S608
                        rowids,
                    )
            except sqlite3.Error as exc:
                raise StoreError(f"Delete by {column} failed: {exc}") from exc
        return len(rowids)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def count(self) -> int:
        with self._lock:
            conn = self._require_conn()
            try:
                return conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]
            except sqlite3.Error as exc:
                raise StoreError(f"Row count failed: {exc}") from exc

    def search(self, vector: list[float], k: int) -> list[Hit]:
        """Cosine nearest-neighbour search. Returns hits sorted by distance.

        Raises:
            DimensionMismatchError: If *vector* does not match the store.
            StoreError: If the query fails.
        """
        if len(vector) != self._dimension:
            raise DimensionMismatchError(self._dimension, len(vector), context="query vector")
        with self._lock:
            conn = self._require_conn()
            try:
                vec_rows = conn.execute(
                    f"SELECT rowid, distance FROM {VEC_TABLE} "
                    "WHERE embedding MATCH ? AND k = ? ORDER BY distance",
                    (json.dumps(vector), k),
                ).fetchall()
                hits: list[Hit] = []
                for vec_row in vec_rows:
                    row = conn.execute(
                        "SELECT id, text, file_path, metadata FROM records WHERE id = ?",
                        (vec_row["rowid"],),
                    ).fetchone()
                    if row is not None:
                        hits.append(Hit(record=_row_to_record(row, []), distance=vec_row["distance"]))
            except sqlite3.Error as exc:
                raise StoreError(f"Vector search failed: {exc}") from exc
        return hits

    def file_paths(self) -> set[str]:
        """Return the distinct file paths present in the store."""
        with self._lock:
            conn = self._require_conn()
            try:
                rows = conn.execute("SELECT DISTINCT file_path FROM records").fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Reading file paths failed: {exc}") from exc
        return {r[0] for r in rows}

    def all_records(self) -> list[IndexRecord]:
        """Return every record with its vector, ordered by id."""
        with self._lock:
            conn = self._require_conn()
            try:
                vectors = {
                    r[0]: _decode_vector(r[1])
                    for r in conn.execute(f"SELECT rowid, embedding FROM {VEC_TABLE}").fetchall()
                }
                rows = conn.execute(
                    "SELECT id, text, file_path, metadata FROM records ORDER BY id"
                ).fetchall()
            except sqlite3.Error as exc:
                raise StoreError(f"Reading records failed: {exc}") from exc
        return [_row_to_record(row, vectors.get(row["id"], [])) for row in rows]

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Vector store is closed")
        return self._conn


# ------------------------------------------------------------------
# Row → model helpers
# ------------------------------------------------------------------


def _decode_vector(blob: bytes) -> list[float]:
    values = array("f")
    values.frombytes(blob)
    return values.tolist()


def _row_to_record(row: sqlite3.Row, vector: list[float]) -> IndexRecord:
    return IndexRecord(
        id=row["id"],
        vector=vector,
        text=row["text"],
        file_path=row["file_path"],
        metadata=RecordMetadata.from_json(row["metadata"]),
    )
