"""Opening the live vector database.

Every store lives in its own directory as ``vectors.db``; snapshots copy the
whole directory, so the file name is fixed.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import sqlite_vec

DB_FILENAME = "vectors.db"

# Seconds a writer waits on a locked database before failing.
BUSY_TIMEOUT = 5.0


def open_connection(db_path: Path | str) -> sqlite3.Connection:
    """Return a connection to *db_path* with sqlite-vec loaded.

    The parent directory is created when missing. The connection is shared
    with worker threads (``asyncio.to_thread``), so thread checks are off and
    callers serialise access themselves.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        conn.enable_load_extension(True)
        sqlite_vec.load(conn)
        conn.enable_load_extension(False)
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
    except sqlite3.Error:
        conn.close()
        raise
    return conn
