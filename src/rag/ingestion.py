"""
RAG Ingestion Pipeline
======================

Pipeline for ingesting documents into the knowledge base.

Flow:
1. Validate content
2. Chunk into overlapping pieces
3. Generate embeddings (bounded retry with exponential backoff)
4. Single bulk write to the vector store

All-or-nothing: nothing is written unless every chunk has an embedding.
"""

import logging
import time
from typing import Any, Dict, List, Optional

from .chunker import RAGChunker
from .embedder import RAGEmbedder
from .exceptions import (
    BlankChunkError,
    EmbeddingFailedError,
    EmptyDocumentError,
    NoChunksProducedError,
    PersistenceError,
    ProviderError,
)
from .models import Chunk, EmbeddingVector, IngestionResult, StoredDocumentRecord
from .retry import RetryExhaustedError, RetryPolicy, SleepFunc, execute_with_retry
from .store import VectorStore

logger = logging.getLogger(__name__)


class RAGIngestion:
    """
    Ingestion pipeline for the knowledge base.

    Handles:
    - Chunking
    - Embedding generation with retry
    - Bulk insert with per-chunk positional metadata
    """

    def __init__(
        self,
        embedder: RAGEmbedder,
        store: VectorStore,
        chunker: Optional[RAGChunker] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[SleepFunc] = None,
    ):
        self.embedder = embedder
        self.store = store
        self.chunker = chunker or RAGChunker()
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep

        self._documents_ingested = 0
        self._chunks_created = 0

    async def ingest(
        self,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        actor: Optional[str] = None,
    ) -> IngestionResult:
        """
        Ingest a single document.

        Args:
            content: Raw document text
            metadata: Caller metadata copied onto every chunk
            actor: User reference recorded as created_by

        Returns:
            IngestionResult with the number of chunks stored

        Raises:
            EmptyDocumentError: content is blank
            NoChunksProducedError: chunker returned nothing
            BlankChunkError: a chunk is only whitespace (long whitespace run)
            EmbeddingFailedError: embeddings still failing after all attempts
            PersistenceError: bulk insert failed
        """
        if not content or not content.strip():
            raise EmptyDocumentError()

        started = time.monotonic()

        chunks = self.chunker.chunk(content)
        if not chunks:
            raise NoChunksProducedError()

        blank = [c.index for c in chunks if not c.content.strip()]
        if blank:
            raise BlankChunkError(blank)

        embeddings = await self._embed_chunks(chunks)

        records = self._build_records(chunks, embeddings, content, metadata or {}, actor)

        try:
            await self.store.insert_documents(records)
        except Exception as e:
            logger.error(f"Error inserting documents: {e}")
            raise PersistenceError(f"Database error: {e}") from e

        self._documents_ingested += 1
        self._chunks_created += len(records)

        logger.info(
            f"Ingested document into {len(records)} chunks ({len(content)} chars)",
            extra={
                "chunks": len(records),
                "actor": actor,
                "duration": round(time.monotonic() - started, 3),
            },
        )
        return IngestionResult(chunks_processed=len(chunks))

    async def _embed_chunks(self, chunks: List[Chunk]) -> List[EmbeddingVector]:
        texts = [c.content for c in chunks]

        try:
            embeddings = await execute_with_retry(
                lambda: self.embedder.embed_many(texts),
                self.retry_policy,
                sleep=self._sleep,
                description="Embedding generation",
            )
        except RetryExhaustedError as e:
            cause = e.last_error
            raise EmbeddingFailedError(
                attempts=e.attempts,
                cause_message=str(cause),
                transient=isinstance(cause, ProviderError) and cause.transient,
            ) from cause

        missing = [i for i, emb in enumerate(embeddings) if emb is None]
        if missing or len(embeddings) != len(chunks):
            raise EmbeddingFailedError(
                attempts=1,
                cause_message=f"No embedding for chunks {missing}",
            )

        return embeddings

    def _build_records(
        self,
        chunks: List[Chunk],
        embeddings: List[EmbeddingVector],
        content: str,
        metadata: Dict[str, Any],
        actor: Optional[str],
    ) -> List[StoredDocumentRecord]:
        records = []
        for chunk, embedding in zip(chunks, embeddings):
            records.append(StoredDocumentRecord(
                content=chunk.content,
                embedding=embedding,
                metadata={
                    **metadata,
                    "chunkIndex": chunk.index,
                    "startChar": chunk.start_char,
                    "endChar": chunk.end_char,
                    "originalDocumentLength": len(content),
                },
                created_by=actor,
            ))
        return records

    @property
    def stats(self) -> Dict[str, Any]:
        """Get ingestion statistics."""
        return {
            "documents_ingested": self._documents_ingested,
            "chunks_created": self._chunks_created,
            "embedding_tokens": self.embedder.total_tokens,
            "embedding_cost_usd": self.embedder.estimated_cost,
        }
