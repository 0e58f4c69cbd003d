"""dualrag ingest pipeline: chunkers, file detection, PDF extraction, indexer."""

from dualrag.ingest.base import MIN_CHUNK_CHARS, BaseChunker, Chunk
from dualrag.ingest.chunking import chunk_document, chunker_for
from dualrag.ingest.code import CodeChunker, extract_code_metadata
from dualrag.ingest.detect import (
    detect_file_type,
    detect_language,
    prepare_prompt,
    select_embedding_model,
)
from dualrag.ingest.markdown import MarkdownChunker
from dualrag.ingest.pdf import PdfText, extract_pdf_text
from dualrag.ingest.plaintext import PlainTextChunker

__all__ = [
    "MIN_CHUNK_CHARS",
    "BaseChunker",
    "Chunk",
    "CodeChunker",
    "MarkdownChunker",
    "PdfText",
    "PlainTextChunker",
    "chunk_document",
    "chunker_for",
    "detect_file_type",
    "detect_language",
    "extract_code_metadata",
    "extract_pdf_text",
    "prepare_prompt",
    "select_embedding_model",
]
