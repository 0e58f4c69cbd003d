"""Test doubles shared across the suite."""

from __future__ import annotations

import hashlib
import math

from dualrag.errors import EmbeddingProviderError
from dualrag.rag.embedding_client import EmbeddingClient

TEXT_MODEL = "ollama/test-text"
CODE_MODEL = "ollama/test-code"
DIM = 8


def fake_vector(text: str, dim: int = DIM) -> list[float]:
    """Deterministic unit vector derived from *text*; equal texts give equal vectors."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = [(digest[i % len(digest)] / 255.0) * 2 - 1 for i in range(dim)]
    norm = math.sqrt(sum(v * v for v in raw)) or 1.0
    return [v / norm for v in raw]


class FakeEmbeddingClient(EmbeddingClient):
    """Embedding client that never touches the network.

    Args:
        dim: Vector length for every model not listed in *dims*.
        dims: Per-model vector length overrides.
        unavailable: Models whose requests fail with EmbeddingProviderError.
    """

    def __init__(
        self,
        dim: int = DIM,
        dims: dict[str, int] | None = None,
        unavailable: set[str] | None = None,
    ) -> None:
        super().__init__()
        self.dim = dim
        self.dims = dims or {}
        self.unavailable = unavailable or set()
        self.calls: list[tuple[str, str]] = []

    async def embed(self, text: str, model: str) -> list[float]:
        self.calls.append((text, model))
        if model in self.unavailable:
            raise EmbeddingProviderError(model, "connection refused")
        return fake_vector(text, self.dims.get(model, self.dim))
