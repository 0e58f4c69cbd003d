"""Strategy selection: which chunker handles which document."""

from __future__ import annotations

from dualrag.config import IndexConfig
from dualrag.ingest.base import BaseChunker, Chunk
from dualrag.ingest.code import CodeChunker
from dualrag.ingest.markdown import MarkdownChunker
from dualrag.ingest.plaintext import PlainTextChunker


def chunker_for(file_type: str, config: IndexConfig) -> BaseChunker:
    """Code files get the code chunker, Markdown the heading-aware chunker
    (unless semantic chunking is off), everything else plain windows."""
    if file_type == "code":
        cls: type[BaseChunker] = CodeChunker
    elif file_type == "markdown" and config.semantic_chunking:
        cls = MarkdownChunker
    else:
        cls = PlainTextChunker
    return cls(chunk_size=config.chunk_size, chunk_overlap=config.chunk_overlap)


def chunk_document(path: str, file_type: str, content: str, config: IndexConfig) -> list[Chunk]:
    """Chunk one document's text with the strategy chosen for *file_type*."""
    return chunker_for(file_type, config).chunk(content, path)
