"""Dual-embedding retriever: two vector searches, merged, boosted, optionally reranked.

Pipeline for one query:

1. Dimension gate: the text model must still produce vectors of the
   recorded dimension; otherwise an error result is returned and the store
   is not touched.
2. An empty store yields an empty, non-error result.
3. The query is embedded with the code and the text model concurrently, and
   both vectors are searched concurrently (top-K each).
4. Hits are merged on ``(file_path, first 100 chars)``, keeping the lower
   distance, then scored ``clamp(1 - distance + score_boost, 0, 1)``.
5. Optional reranking keeps the top-N by rerank score; otherwise the
   top-N by boosted score are returned.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from dualrag.config import IndexConfig, IndexingCfg
from dualrag.db.models import Hit, IndexRecord
from dualrag.db.store import VectorStore
from dualrag.errors import DimensionMismatchError, DualragError
from dualrag.rag.embedding_client import EmbeddingClient
from dualrag.rag.reranker import MagnitudeReranker

log = logging.getLogger(__name__)

DIMENSION_PROBE_TEXT = "runtime dimension validation"
EMPTY_STORE_MESSAGE = (
    "RAG database is empty. Please index documents from the working directory first."
)

# Hits whose file path and first DEDUP_PREFIX chars agree are the same passage.
DEDUP_PREFIX = 100


# ------------------------------------------------------------------
# Result types
# ------------------------------------------------------------------


@dataclass
class PassageMetadata:
    type: str = ""
    source: str = ""
    priority: str = ""
    score_boost: float = 0.0
    indexed_at: float = 0.0
    message_id: str = ""
    tags: list[str] = field(default_factory=list)


@dataclass
class Passage:
    """A retrieved passage.

    Attributes:
        score: Boosted similarity, always within [0, 1].
        search_source: ``code`` or ``text`` when only one space found it;
            ``code-better`` / ``text-better`` when both did, naming the
            space with the lower distance.
        rerank_score: Stage-2 score, None when reranking is off.
    """

    text: str
    file_path: str
    score: float
    metadata: PassageMetadata
    search_source: str = ""
    base_score: float = 0.0
    rerank_score: float | None = None


@dataclass
class SearchResult:
    results: list[Passage] = field(default_factory=list)
    duration: float = 0.0
    sources_count: int = 0
    chunks_count: int = 0
    error: bool = False
    error_message: str = ""
    message: str = ""


@dataclass
class MergedHit:
    """One deduplicated candidate with the distances seen in each space."""

    record: IndexRecord
    distance: float
    search_source: str
    code_distance: float | None = None
    text_distance: float | None = None


# ------------------------------------------------------------------
# Pure ranking steps
# ------------------------------------------------------------------


def dedup_key(record: IndexRecord) -> tuple[str, str]:
    return (record.file_path, record.text[:DEDUP_PREFIX])


def merge_hits(code_hits: list[Hit], text_hits: list[Hit]) -> list[MergedHit]:
    """Merge the two result sets, one entry per dedup key, lower distance wins."""
    merged: dict[tuple[str, str], MergedHit] = {}

    for hit in code_hits:
        key = dedup_key(hit.record)
        existing = merged.get(key)
        if existing is None or hit.distance < existing.distance:
            merged[key] = MergedHit(
                record=hit.record,
                distance=hit.distance,
                search_source="code",
                code_distance=hit.distance,
            )

    for hit in text_hits:
        key = dedup_key(hit.record)
        existing = merged.get(key)
        if existing is None:
            merged[key] = MergedHit(
                record=hit.record,
                distance=hit.distance,
                search_source="text",
                text_distance=hit.distance,
            )
        elif existing.search_source in ("text", "text-better"):
            if hit.distance < existing.distance:
                existing.record = hit.record
                existing.distance = existing.text_distance = hit.distance
        elif hit.distance < existing.distance:
            merged[key] = MergedHit(
                record=hit.record,
                distance=hit.distance,
                search_source="text-better",
                code_distance=existing.code_distance,
                text_distance=hit.distance,
            )
        else:
            if existing.text_distance is None or hit.distance < existing.text_distance:
                existing.text_distance = hit.distance
            existing.search_source = "code-better"

    return list(merged.values())


def boost_and_rank(merged: list[MergedHit]) -> list[Passage]:
    """Score every candidate and sort best first. Scores are clamped to [0, 1]."""
    passages: list[Passage] = []
    for item in merged:
        meta = item.record.metadata
        base = 1.0 - item.distance
        score = min(1.0, max(0.0, base + meta.score_boost))
        passages.append(
            Passage(
                text=item.record.text,
                file_path=item.record.file_path,
                score=score,
                base_score=base,
                search_source=item.search_source,
                metadata=PassageMetadata(
                    type=meta.type,
                    source=meta.source,
                    priority=meta.priority,
                    score_boost=meta.score_boost,
                    indexed_at=meta.indexed_at,
                    message_id=meta.message_id,
                    tags=list(meta.tags),
                ),
            )
        )
    passages.sort(key=lambda p: p.score, reverse=True)
    return passages


# ------------------------------------------------------------------
# Retriever
# ------------------------------------------------------------------


class Retriever:
    """Runs the dual-embedding search pipeline against one store.

    Args:
        store: Open vector store.
        client: Embedding client.
        config: Active index configuration.
        indexing: Tunables (reranker batch size).
        recorded_dimension: Dimension the store was built with, checked
            against the live text model before searching. None skips the gate.
    """

    def __init__(
        self,
        store: VectorStore,
        client: EmbeddingClient,
        config: IndexConfig,
        indexing: IndexingCfg | None = None,
        recorded_dimension: int | None = None,
    ) -> None:
        self._store = store
        self._client = client
        self._config = config
        self._indexing = indexing or IndexingCfg()
        self._recorded_dimension = recorded_dimension

    async def search(self, query: str) -> SearchResult:
        """Run the full pipeline. Never raises for dualrag errors; see ``SearchResult.error``."""
        started = time.monotonic()
        try:
            return await self._search(query, started)
        except DualragError as exc:
            log.error("RAG search failed: %s", exc)
            return SearchResult(error=True, error_message=str(exc))

    async def _search(self, query: str, started: float) -> SearchResult:
        cfg = self._config

        await self._check_dimension()

        if await asyncio.to_thread(self._store.count) == 0:
            return SearchResult(
                duration=time.monotonic() - started, message=EMPTY_STORE_MESSAGE
            )

        code_vec, text_vec = await asyncio.gather(
            self._client.embed(query, cfg.code_embedding_model),
            self._client.embed(query, cfg.text_embedding_model),
        )
        code_hits, text_hits = await asyncio.gather(
            asyncio.to_thread(self._store.search, code_vec, cfg.retrieve_top_k),
            asyncio.to_thread(self._store.search, text_vec, cfg.retrieve_top_k),
        )

        merged = merge_hits(code_hits, text_hits)
        log.debug(
            "Merged %d code + %d text hits into %d candidates",
            len(code_hits),
            len(text_hits),
            len(merged),
        )
        passages = boost_and_rank(merged)

        if cfg.use_reranking and passages:
            passages = await self._rerank(query, passages)
        else:
            passages = passages[: cfg.rerank_top_n]

        duration = time.monotonic() - started
        sources = {p.file_path for p in passages}
        log.info(
            "Search finished in %.2fs: %d chunks from %d files",
            duration,
            len(passages),
            len(sources),
        )
        return SearchResult(
            results=passages,
            duration=duration,
            sources_count=len(sources),
            chunks_count=len(passages),
        )

    async def _check_dimension(self) -> None:
        expected = self._recorded_dimension
        if expected is None:
            return
        probe = await self._client.embed(DIMENSION_PROBE_TEXT, self._config.text_embedding_model)
        if len(probe) != expected:
            raise DimensionMismatchError(
                expected,
                len(probe),
                context=(
                    "clear the database and re-index, or revert to "
                    f"code model '{self._config.code_embedding_model}' and "
                    f"text model '{self._config.text_embedding_model}'"
                ),
            )

    async def _rerank(self, query: str, passages: list[Passage]) -> list[Passage]:
        cfg = self._config
        model = cfg.reranker_model or cfg.text_embedding_model
        reranker = MagnitudeReranker(self._client, model, self._indexing.rerank_batch_size)
        ranked = await reranker.rerank(
            query, passages, [p.text for p in passages], cfg.rerank_top_n
        )
        for passage, score in ranked:
            passage.rerank_score = score
        return [passage for passage, _ in ranked]

