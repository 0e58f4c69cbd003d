"""dualrag snapshots: whole-store backup, restore and merge."""

from dualrag.snapshots.active import ActivePointer, clear_pointer, read_pointer, write_pointer
from dualrag.snapshots.manager import (
    AppendResult,
    CompatibilityReport,
    DeleteResult,
    InfoResult,
    LoadResult,
    SaveResult,
    SnapshotManager,
    SnapshotSummary,
    validate_snapshot_name,
)

__all__ = [
    "ActivePointer",
    "AppendResult",
    "CompatibilityReport",
    "DeleteResult",
    "InfoResult",
    "LoadResult",
    "SaveResult",
    "SnapshotManager",
    "SnapshotSummary",
    "clear_pointer",
    "read_pointer",
    "validate_snapshot_name",
    "write_pointer",
]
