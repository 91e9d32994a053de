"""
RAG Vector Store
================

Storage collaborator for embedded chunks.

- PgVectorStore: PostgreSQL + pgvector (documents table, match_documents function)
- InMemoryVectorStore: cosine similarity over a Python list, for tests and local runs

Rows coming back from the database are validated into RetrievedContext
immediately; malformed rows fail the search instead of leaking downstream.
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence
from uuid import uuid4

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values

from .models import EmbeddingVector, RetrievedContext, StoredDocumentRecord

logger = logging.getLogger(__name__)


class VectorStore(ABC):
    """Similarity search and bulk insert over embedded chunks."""

    @abstractmethod
    async def similarity_search(
        self,
        query_vector: EmbeddingVector,
        threshold: float,
        limit: int,
    ) -> List[RetrievedContext]:
        """Return up to `limit` rows with similarity >= threshold, best first."""
        pass

    @abstractmethod
    async def insert_documents(self, records: Sequence[StoredDocumentRecord]) -> int:
        """Insert all records in one batch. Returns the number written."""
        pass


def parse_search_row(row: Dict[str, Any]) -> RetrievedContext:
    """
    Validate one search row.

    Raises:
        ValueError: missing content, non-numeric or out-of-range similarity,
            or non-mapping metadata
    """
    content = row.get("content")
    if not isinstance(content, str):
        raise ValueError(f"Search row has no text content: {row!r}")

    try:
        similarity = float(row.get("similarity"))
    except (TypeError, ValueError):
        raise ValueError(f"Search row has invalid similarity: {row.get('similarity')!r}")
    if math.isnan(similarity) or not -1e-6 <= similarity <= 1.0 + 1e-6:
        raise ValueError(f"Search row similarity out of range: {similarity}")

    metadata = row.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise ValueError(f"Search row metadata is not a mapping: {metadata!r}")

    return RetrievedContext(
        content=content,
        similarity=min(max(similarity, 0.0), 1.0),
        metadata=metadata,
    )


def to_vector_literal(vector: EmbeddingVector) -> str:
    """Format a vector as a pgvector text literal."""
    return "[" + ",".join(repr(float(x)) for x in vector) + "]"


class PgVectorStore(VectorStore):
    """
    pgvector-backed store.

    Schema: database/migrations/001_documents_pgvector.sql
    psycopg2 is blocking; each call runs in a worker thread.
    """

    def __init__(self, db_url: Optional[str], connect_timeout: int = 10):
        if not db_url:
            raise ValueError("DATABASE_URL required for the vector store")
        self.db_url = db_url
        self.connect_timeout = connect_timeout

    def _get_connection(self):
        """Get database connection."""
        return psycopg2.connect(self.db_url, connect_timeout=self.connect_timeout)

    async def similarity_search(
        self,
        query_vector: EmbeddingVector,
        threshold: float,
        limit: int,
    ) -> List[RetrievedContext]:
        rows = await asyncio.to_thread(self._search_sync, query_vector, threshold, limit)
        return [parse_search_row(row) for row in rows]

    def _search_sync(self, query_vector: EmbeddingVector, threshold: float, limit: int):
        conn = self._get_connection()
        try:
            with conn:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute("""
                        SELECT id, content, metadata, similarity
                        FROM match_documents(%s::vector, %s, %s)
                    """, (to_vector_literal(query_vector), threshold, limit))
                    return cur.fetchall()
        finally:
            conn.close()

    async def insert_documents(self, records: Sequence[StoredDocumentRecord]) -> int:
        if not records:
            return 0
        ids = await asyncio.to_thread(self._insert_sync, list(records))
        for record, record_id in zip(records, ids):
            record.id = str(record_id)
        return len(ids)

    def _insert_sync(self, records: List[StoredDocumentRecord]) -> List[Any]:
        rows = [
            (
                r.content,
                to_vector_literal(r.embedding),
                Json(r.metadata),
                r.created_by,
            )
            for r in records
        ]

        conn = self._get_connection()
        try:
            # Single transaction: commit on success, rollback on error
            with conn:
                with conn.cursor() as cur:
                    returned = execute_values(
                        cur,
                        """
                        INSERT INTO documents (content, embedding, metadata, created_by)
                        VALUES %s
                        RETURNING id
                        """,
                        rows,
                        template="(%s, %s::vector, %s, %s)",
                        page_size=len(rows),
                        fetch=True,
                    )
            return [r[0] for r in returned]
        finally:
            conn.close()

    def apply_migration(self, migration_sql: str):
        """Run a schema migration script."""
        conn = self._get_connection()
        try:
            with conn:
                with conn.cursor() as cur:
                    cur.execute(migration_sql)
            logger.info("Vector store schema applied")
        finally:
            conn.close()

    def status(self) -> Dict[str, Any]:
        """Check connectivity and pgvector availability."""
        try:
            conn = self._get_connection()
        except psycopg2.Error as e:
            logger.warning(f"Vector store unreachable: {e}")
            return {"connected": False, "pgvector_available": False, "error": str(e)}

        try:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 FROM pg_extension WHERE extname = 'vector'")
                pgvector_available = cur.fetchone() is not None
                document_count = None
                if pgvector_available:
                    cur.execute("SELECT COUNT(*) FROM documents")
                    document_count = cur.fetchone()[0]
            return {
                "connected": True,
                "pgvector_available": pgvector_available,
                "document_count": document_count,
            }
        except psycopg2.Error as e:
            logger.warning(f"Vector store status check failed: {e}")
            return {"connected": True, "pgvector_available": False, "error": str(e)}
        finally:
            conn.close()


def cosine_similarity(a: EmbeddingVector, b: EmbeddingVector) -> float:
    """Cosine similarity; 0.0 when either vector is all zeros."""
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


class InMemoryVectorStore(VectorStore):
    """
    Process-local store with the same ranking contract as match_documents.

    Similarity is cosine similarity; negative scores are clipped to 0.
    """

    def __init__(self):
        self.records: List[StoredDocumentRecord] = []

    async def similarity_search(
        self,
        query_vector: EmbeddingVector,
        threshold: float,
        limit: int,
    ) -> List[RetrievedContext]:
        scored = []
        for record in self.records:
            similarity = max(0.0, min(1.0, cosine_similarity(query_vector, record.embedding)))
            if similarity >= threshold:
                scored.append(RetrievedContext(
                    content=record.content,
                    similarity=similarity,
                    metadata=dict(record.metadata),
                ))
        scored.sort(key=lambda c: c.similarity, reverse=True)
        return scored[:limit]

    async def insert_documents(self, records: Sequence[StoredDocumentRecord]) -> int:
        for record in records:
            if record.id is None:
                record.id = str(uuid4())
        self.records.extend(records)
        return len(records)
