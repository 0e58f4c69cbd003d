"""Exception taxonomy for the indexing, retrieval and snapshot pipeline.

Per-file failures (``ParseError``, ``EmbeddingProviderError``) are isolated by
the indexer and reported on the progress stream. ``StoreError`` is a hard
failure. ``DimensionMismatchError`` and ``SnapshotValidationError`` block the
operation that raised them and leave the store untouched.

Cooperative cancellation is not an exception; it is reported as
``IndexResult(aborted=True)``.
"""

from __future__ import annotations


class DualragError(Exception):
    """Base class for all dualrag errors."""


class EmbeddingProviderError(DualragError):
    """The embedding service failed (network error or non-2xx response)."""

    def __init__(self, model: str, reason: str) -> None:
        super().__init__(f"Embedding request to '{model}' failed: {reason}")
        self.model = model
        self.reason = reason


class ParseError(DualragError):
    """A source document could not be read (corrupted, protected, undecodable)."""

    def __init__(self, code: str, path: str, detail: str = "") -> None:
        message = f"{code}: {path}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.code = code
        self.path = path


class DimensionMismatchError(DualragError):
    """A vector or model dimension differs from the store's fixed dimension."""

    def __init__(self, expected: int, actual: int, context: str = "") -> None:
        message = f"Dimension mismatch: expected {expected}D vectors, got {actual}D"
        if context:
            message = f"{message} ({context})"
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class StoreError(DualragError):
    """The underlying vector-store engine failed."""


class SnapshotValidationError(DualragError):
    """A snapshot cannot be loaded or merged into the live store."""
