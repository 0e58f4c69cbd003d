"""Schema migrations for the record table.

The embeddings live in a sqlite-vec virtual table whose shape depends on the
store dimension, so it is created by ``ensure_vec_table`` rather than here.
"""

from __future__ import annotations

import sqlite3

_CREATE_SCHEMA_VERSION = """
CREATE TABLE IF NOT EXISTS schema_version (
    version     INTEGER NOT NULL,
    applied_at  DATETIME NOT NULL DEFAULT (datetime('now'))
)
"""

# store_meta holds the dimension and creation time; records holds the text
# and JSON metadata keyed by the same rowid as the vec table.
_V1_RECORDS = """
CREATE TABLE IF NOT EXISTS store_meta (
    key     TEXT PRIMARY KEY,
    value   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS records (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    text        TEXT NOT NULL,
    file_path   TEXT NOT NULL,
    message_id  TEXT NOT NULL DEFAULT '',
    metadata    TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_records_file_path ON records(file_path);
CREATE INDEX IF NOT EXISTS idx_records_message_id ON records(message_id);
"""

# Append new (version, sql) pairs; never edit a released entry.
MIGRATIONS: list[tuple[int, str]] = [
    (1, _V1_RECORDS),
]


def current_version(conn: sqlite3.Connection) -> int:
    row = conn.execute("SELECT MAX(version) FROM schema_version").fetchone()
    return row[0] or 0


def run_migrations(conn: sqlite3.Connection) -> int:
    """Bring *conn* up to the latest schema and return the resulting version.

    Snapshots copied from an older store are upgraded the same way when they
    are opened.
    """
    with conn:
        conn.execute(_CREATE_SCHEMA_VERSION)
    version = current_version(conn)
    for target, sql in MIGRATIONS:
        if target <= version:
            continue
        # executescript commits any open transaction first
        conn.executescript(sql)
        with conn:
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (target,))
        version = target
    return version
