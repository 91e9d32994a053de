"""
RAG Retriever
=============

Query-time retrieval:
1. Embed the query
2. One similarity search against the vector store (threshold + limit)

The store ranks and limits. Results are still checked at this boundary so a
misbehaving backend cannot leak below-threshold rows.
"""

import logging
from typing import List

from .embedder import RAGEmbedder
from .exceptions import RetrievalError
from .models import RetrievedContext
from .store import VectorStore

logger = logging.getLogger(__name__)


DEFAULT_MATCH_COUNT = 5
DEFAULT_MATCH_THRESHOLD = 0.7


class RAGRetriever:
    """Retrieves relevant chunks from the knowledge base."""

    def __init__(
        self,
        embedder: RAGEmbedder,
        store: VectorStore,
        default_limit: int = DEFAULT_MATCH_COUNT,
        default_threshold: float = DEFAULT_MATCH_THRESHOLD,
    ):
        self.embedder = embedder
        self.store = store
        self.default_limit = default_limit
        self.default_threshold = default_threshold

    async def retrieve(
        self,
        query: str,
        limit: int = None,
        threshold: float = None,
    ) -> List[RetrievedContext]:
        """
        Search for relevant chunks.

        Args:
            query: Free-text query
            limit: Max results (default 5)
            threshold: Minimum similarity, 0-1 (default 0.7)

        Returns:
            RetrievedContext list, most similar first

        Raises:
            RetrievalError: embedding or search failed
            ValueError: limit below 1 or threshold outside [0, 1] (non-blank query)
        """
        limit = self.default_limit if limit is None else limit
        threshold = self.default_threshold if threshold is None else threshold

        if not query or not query.strip():
            return []

        if limit < 1:
            raise ValueError("limit must be at least 1")
        if not 0.0 <= threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")

        try:
            query_embedding = await self.embedder.embed_query(query)
            results = await self.store.similarity_search(query_embedding, threshold, limit)
        except Exception as e:
            logger.error(f"Error retrieving context: {e}")
            raise RetrievalError(f"Failed to retrieve context: {e}") from e

        results = self._check_results(results, threshold, limit)

        logger.info(f"RAG search returned {len(results)} results for query: {query[:50]}...")
        return results

    def _check_results(
        self,
        results: List[RetrievedContext],
        threshold: float,
        limit: int,
    ) -> List[RetrievedContext]:
        kept = [r for r in results if r.similarity >= threshold]
        if len(kept) != len(results):
            logger.warning(
                f"Vector store returned {len(results) - len(kept)} results below threshold {threshold}"
            )

        if any(a.similarity < b.similarity for a, b in zip(kept, kept[1:])):
            logger.warning("Vector store results were not ranked by similarity")

        if len(kept) > limit:
            logger.warning(f"Vector store returned {len(kept)} results for limit {limit}")
            kept = kept[:limit]

        return kept
