"""Base chunker interface shared by the plain-text, Markdown and code strategies."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from dualrag.db.models import CodeContext

# Chunk sizes are configured in tokens; 1 token is approximated as 4 chars.
CHARS_PER_TOKEN = 4

# Candidate chunks shorter than this (after trimming) are discarded.
MIN_CHUNK_CHARS = 20


@dataclass
class Chunk:
    """A retrievable text unit cut from one document."""

    text: str
    file_path: str
    chunk_index: int = 0
    heading: str = ""
    level: int = 0
    code: CodeContext | None = None


class BaseChunker(ABC):
    """Abstract base for all chunkers.

    Args:
        chunk_size: Maximum chunk size in tokens.
        chunk_overlap: Overlap between consecutive chunks in tokens.
    """

    def __init__(self, chunk_size: int = 512, chunk_overlap: int = 50) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must be >= 0")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    @property
    def max_chars(self) -> int:
        return self.chunk_size * CHARS_PER_TOKEN

    @property
    def overlap_chars(self) -> int:
        return self.chunk_overlap * CHARS_PER_TOKEN

    @abstractmethod
    def chunk(self, content: str, path: str = "") -> list[Chunk]:
        """Split *content* into ordered, non-empty chunks.

        Args:
            content: Full decoded text of the document.
            path: Source file path, copied onto every chunk.

        Returns:
            Chunks with sequential ``chunk_index``. Empty only when the input
            is blank or every candidate falls below ``MIN_CHUNK_CHARS``.
        """

    @staticmethod
    def _number(chunks: list[Chunk]) -> list[Chunk]:
        for i, chunk in enumerate(chunks):
            chunk.chunk_index = i
        return chunks
