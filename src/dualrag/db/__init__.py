"""dualrag vector store layer."""

from dualrag.db.connection import DB_FILENAME, open_connection
from dualrag.db.migrations import MIGRATIONS, run_migrations
from dualrag.db.models import CodeContext, Hit, IndexRecord, RecordMetadata
from dualrag.db.store import VectorStore
from dualrag.db.vectors import VEC_TABLE, ensure_vec_table, recorded_dimension

__all__ = [
    "DB_FILENAME",
    "CodeContext",
    "Hit",
    "IndexRecord",
    "MIGRATIONS",
    "RecordMetadata",
    "VEC_TABLE",
    "VectorStore",
    "ensure_vec_table",
    "open_connection",
    "recorded_dimension",
    "run_migrations",
]
