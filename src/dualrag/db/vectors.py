"""sqlite-vec virtual table management for the record embeddings."""

from __future__ import annotations

import sqlite3

VEC_TABLE = "vec_records"


def ensure_vec_table(conn: sqlite3.Connection, dimensions: int) -> int:
    """Create the vec table with *dimensions* if it doesn't already exist.

    Vectors are compared with cosine distance. The dimension is recorded in
    ``store_meta`` the first time the table is created and never changes
    afterwards; an existing store keeps its recorded dimension even if
    *dimensions* differs.

    Returns:
        The store's recorded dimension.
    """
    if dimensions < 1:
        raise ValueError(f"dimensions must be >= 1, got {dimensions}")

    existing = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?", (VEC_TABLE,)
    ).fetchone()

    if existing is None:
        conn.execute(
            f"CREATE VIRTUAL TABLE {VEC_TABLE} USING vec0("
            f"embedding float[{dimensions}] distance_metric=cosine)"
        )
        conn.execute(
            "INSERT OR REPLACE INTO store_meta (key, value) VALUES ('dimension', ?)",
            (str(dimensions),),
        )
        conn.execute(
            "INSERT OR REPLACE INTO store_meta (key, value) "
            "VALUES ('created_at', datetime('now'))"
        )
        conn.commit()
        return dimensions

    return recorded_dimension(conn) or dimensions


def recorded_dimension(conn: sqlite3.Connection) -> int | None:
    """Return the dimension recorded in ``store_meta``, or None if absent."""
    row = conn.execute("SELECT value FROM store_meta WHERE key = 'dimension'").fetchone()
    return int(row[0]) if row else None
