"""Domain models for the vector store."""

from __future__ import annotations

import json
import time
from dataclasses import asdict, dataclass, field
from typing import Any

RECORD_TYPES = frozenset(["file", "pinned_user", "pinned_assistant", "system"])


@dataclass
class CodeContext:
    """Best-effort structural metadata for a code chunk."""

    language: str = ""
    functions: list[str] = field(default_factory=list)
    classes: list[str] = field(default_factory=list)
    imports: list[str] = field(default_factory=list)
    exports: list[str] = field(default_factory=list)


@dataclass
class RecordMetadata:
    """Metadata stored alongside every record. Always fully populated."""

    type: str = "file"
    source: str = "indexed_file"
    priority: str = "normal"
    score_boost: float = 0.0
    indexed_at: float = field(default_factory=time.time)
    pinned_at: float = 0.0
    message_id: str = ""
    tags: list[str] = field(default_factory=list)
    embedding_model: str = ""
    file_type: str = "text"
    code_context: CodeContext = field(default_factory=CodeContext)

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, raw: str) -> RecordMetadata:
        data: dict[str, Any] = json.loads(raw) if raw else {}
        code = data.pop("code_context", None) or {}
        known = set(cls.__dataclass_fields__)
        meta = cls(**{k: v for k, v in data.items() if k in known})
        meta.code_context = CodeContext(
            **{k: v for k, v in code.items() if k in CodeContext.__dataclass_fields__}
        )
        return meta


@dataclass
class IndexRecord:
    vector: list[float]
    text: str
    file_path: str
    metadata: RecordMetadata = field(default_factory=RecordMetadata)
    id: int | None = None  # set after insert; None for unsaved records


@dataclass
class Hit:
    """A record returned by a nearest-neighbour search."""

    record: IndexRecord
    distance: float
