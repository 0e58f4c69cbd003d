"""Active-snapshot pointer: which snapshot (if any) is materialised as the live store."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

POINTER_FILENAME = "_active_snapshot.json"


@dataclass
class ActivePointer:
    snapshot_name: str | None = None
    loaded_at: float | None = None
    config: dict[str, Any] | None = None

    @property
    def is_active(self) -> bool:
        return self.snapshot_name is not None


def read_pointer(snapshots_dir: Path) -> ActivePointer:
    """Return the persisted pointer, or an empty one if none is readable."""
    path = snapshots_dir / POINTER_FILENAME
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return ActivePointer()
    except (OSError, ValueError) as exc:
        log.warning("Ignoring unreadable active-snapshot pointer %s: %s", path, exc)
        return ActivePointer()
    return ActivePointer(
        snapshot_name=data.get("snapshot_name"),
        loaded_at=data.get("loaded_at"),
        config=data.get("config"),
    )


def write_pointer(snapshots_dir: Path, name: str, config: dict[str, Any]) -> ActivePointer:
    """Record *name* as the active snapshot. The file is replaced atomically."""
    pointer = ActivePointer(snapshot_name=name, loaded_at=time.time(), config=config)
    snapshots_dir.mkdir(parents=True, exist_ok=True)
    path = snapshots_dir / POINTER_FILENAME
    tmp = path.with_suffix(".json.tmp")
    tmp.write_text(json.dumps(asdict(pointer), indent=2), encoding="utf-8")
    os.replace(tmp, path)
    log.info("Active snapshot set to %s", name)
    return pointer


def clear_pointer(snapshots_dir: Path) -> None:
    """Forget the active snapshot (the live store no longer matches any snapshot)."""
    try:
        (snapshots_dir / POINTER_FILENAME).unlink()
    except FileNotFoundError:
        return
    log.info("Active snapshot tracking cleared")
