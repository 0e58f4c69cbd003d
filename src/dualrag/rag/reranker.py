"""Stage-2 reranker: magnitude heuristic over a concatenated query/document embedding.

The score is the L2 norm of ``embed("Query: q\\nDocument: d")``. This is a
heuristic stand-in for a cross-encoder and carries no calibrated relevance
guarantee; any class with the same ``rerank`` signature can replace it.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import TypeVar

from dualrag.errors import EmbeddingProviderError
from dualrag.rag.embedding_client import EmbeddingClient

log = logging.getLogger(__name__)

T = TypeVar("T")


def rerank_prompt(query: str, document: str) -> str:
    return f"Query: {query}\nDocument: {document}"


class MagnitudeReranker:
    """Score candidates by embedding magnitude, in bounded-concurrency batches.

    Args:
        client: Embedding client used for scoring requests.
        model: Embedding model used for scoring.
        batch_size: Concurrent scoring requests per batch.
    """

    def __init__(self, client: EmbeddingClient, model: str, batch_size: int = 5) -> None:
        self._client = client
        self.model = model
        self.batch_size = max(1, batch_size)

    async def score(self, query: str, document: str) -> float:
        """Return the relevance score for one document; 0.0 if the request fails."""
        try:
            vector = await self._client.embed(rerank_prompt(query, document), self.model)
        except EmbeddingProviderError as exc:
            log.warning("Reranker request failed, scoring 0: %s", exc)
            return 0.0
        return math.sqrt(sum(v * v for v in vector))

    async def rerank(
        self, query: str, candidates: list[T], texts: list[str], top_n: int
    ) -> list[tuple[T, float]]:
        """Score *candidates* (whose documents are *texts*) and keep the best *top_n*.

        Returns:
            ``(candidate, score)`` pairs, highest score first.
        """
        scores: list[float] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            scores.extend(await asyncio.gather(*(self.score(query, t) for t in batch)))
        ranked = sorted(zip(candidates, scores), key=lambda pair: pair[1], reverse=True)
        return ranked[:top_n]
