"""Typed progress events emitted by an indexing job, one stream per job."""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class ProgressEvent:
    """Base event. ``file_index`` is 1-based."""

    phase: ClassVar[str] = ""

    file_index: int
    total_files: int
    file_name: str


@dataclass(frozen=True)
class ParsingEvent(ProgressEvent):
    """A PDF was parsed."""

    phase: ClassVar[str] = "parsing"

    pages: int = 0


@dataclass(frozen=True)
class ChunkingEvent(ProgressEvent):
    """A text file was read and is about to be chunked."""

    phase: ClassVar[str] = "chunking"

    file_size: int = 0


@dataclass(frozen=True)
class EmbeddingEvent(ProgressEvent):
    """An embedding batch started; ``chunk_index`` is its first chunk (1-based)."""

    phase: ClassVar[str] = "embedding"

    chunk_index: int = 0
    total_chunks: int = 0


@dataclass(frozen=True)
class CompletedEvent(ProgressEvent):
    phase: ClassVar[str] = "completed"

    chunks: int = 0


@dataclass(frozen=True)
class ErrorEvent(ProgressEvent):
    """The file was skipped; the job continues with the next one."""

    phase: ClassVar[str] = "error"

    error: str = ""
