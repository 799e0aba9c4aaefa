"""
Dense retriever: cosine similarity over the corpus with threshold + top-K.

Linear scan over a read-only corpus snapshot. Results are sorted by
similarity descending with a stable sort, so chunks that tie keep their
corpus order and identical inputs always give identical rankings.
"""

import logging
import math
from typing import Iterable, List, Optional, Sequence

from athena.config import settings
from athena.core.exceptions import CorpusConfigurationError, RetrievalFailure
from athena.services.rag.corpus import CorpusStore
from athena.services.rag.models import Chunk, ScoredChunk

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), defined as 0.0 when either vector is all zeros."""
    if len(a) != len(b):
        raise CorpusConfigurationError(
            f"embedding dimension mismatch: {len(a)} != {len(b)}"
        )

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    sim = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # rounding can push |sim| slightly past 1
    return max(-1.0, min(1.0, sim))


def retrieve(
    query_embedding: Sequence[float],
    corpus: Iterable[Chunk],
    threshold: float = 0.7,
    top_k: int = 5,
    query_model: Optional[str] = None,
    allow_mixed_models: bool = False,
) -> List[ScoredChunk]:
    """
    Score every chunk, keep similarity > threshold, return the best top_k.

    When query_model is given, every chunk must carry the same embedding
    model tag unless allow_mixed_models is set (migration window).
    """
    if top_k <= 0:
        return []

    scored: List[ScoredChunk] = []
    mixed = 0
    for chunk in corpus:
        if query_model is not None and chunk.embedding_model != query_model:
            if not allow_mixed_models:
                raise CorpusConfigurationError(
                    f"chunk {chunk.id} was embedded with '{chunk.embedding_model}', "
                    f"query uses '{query_model}'"
                )
            mixed += 1
        if chunk.dimension != len(query_embedding):
            raise CorpusConfigurationError(
                f"chunk {chunk.id} has {chunk.dimension} dimensions, "
                f"query has {len(query_embedding)}"
            )
        similarity = cosine_similarity(query_embedding, chunk.embedding)
        if similarity > threshold:
            scored.append(ScoredChunk(chunk=chunk, similarity=similarity))

    if mixed:
        logger.warning(
            "Scored %d chunks embedded with a model other than %s", mixed, query_model
        )

    scored.sort(key=lambda s: s.similarity, reverse=True)
    return scored[:top_k]


class VectorRetriever:
    """Reads a corpus snapshot from the store and ranks it against a query vector."""

    def __init__(
        self,
        store: CorpusStore,
        threshold: Optional[float] = None,
        top_k: Optional[int] = None,
        allow_mixed_models: Optional[bool] = None,
    ) -> None:
        self.store = store
        self.threshold = (
            settings.RAG_RELEVANCE_THRESHOLD if threshold is None else threshold
        )
        self.top_k = settings.RAG_TOP_K if top_k is None else top_k
        self.allow_mixed_models = (
            settings.RAG_ALLOW_MIXED_EMBEDDING_MODELS
            if allow_mixed_models is None
            else allow_mixed_models
        )

    async def retrieve(
        self,
        query_embedding: Sequence[float],
        query_model: Optional[str] = None,
    ) -> List[ScoredChunk]:
        try:
            chunks = await self.store.list_chunks_with_embeddings()
        except RetrievalFailure:
            raise
        except Exception as e:
            logger.error("Corpus store unavailable: %s", e)
            raise RetrievalFailure(f"corpus store unavailable: {e}") from e

        results = retrieve(
            query_embedding,
            chunks,
            threshold=self.threshold,
            top_k=self.top_k,
            query_model=query_model,
            allow_mixed_models=self.allow_mixed_models,
        )
        logger.debug(
            "Retrieved %d/%d chunks above %.2f", len(results), len(chunks), self.threshold
        )
        return results
