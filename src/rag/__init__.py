"""
Knowledge Base RAG Module
=========================

Retrieval-Augmented Generation over a private document corpus.

Pipeline:
- Ingestion: document → chunker → embedder (with retry) → vector store
- Query: question → embedder → similarity search → ranked context → system prompt

Architecture:
- pgvector for vector storage (documents table, match_documents function)
- OpenAI text-embedding-3-small at 768 dimensions for embeddings
"""

from .chunker import RAGChunker, chunk_document
from .embedder import RAGEmbedder, EmbeddingProvider, EmbeddingBatch, OpenAIEmbeddingProvider
from .retriever import RAGRetriever
from .ingestion import RAGIngestion
from .store import VectorStore, PgVectorStore, InMemoryVectorStore
from .retry import RetryPolicy, execute_with_retry
from .prompts import (
    build_prompt,
    select_base_prompt,
    prepare_system_prompt,
    DEFAULT_SYSTEM_PROMPT,
    NO_CONTEXT_SYSTEM_PROMPT,
)
from .models import (
    Chunk,
    ChunkOptions,
    RetrievedContext,
    StoredDocumentRecord,
    IngestionResult,
)
from .exceptions import (
    RAGError,
    EmptyDocumentError,
    NoChunksProducedError,
    BlankChunkError,
    EmptyInputError,
    AllInputsEmptyError,
    DimensionMismatchError,
    ProviderError,
    EmbeddingFailedError,
    RetrievalError,
    PersistenceError,
)

__all__ = [
    "RAGChunker",
    "chunk_document",
    "RAGEmbedder",
    "EmbeddingProvider",
    "EmbeddingBatch",
    "OpenAIEmbeddingProvider",
    "RAGRetriever",
    "RAGIngestion",
    "VectorStore",
    "PgVectorStore",
    "InMemoryVectorStore",
    "RetryPolicy",
    "execute_with_retry",
    "build_prompt",
    "select_base_prompt",
    "prepare_system_prompt",
    "DEFAULT_SYSTEM_PROMPT",
    "NO_CONTEXT_SYSTEM_PROMPT",
    "Chunk",
    "ChunkOptions",
    "RetrievedContext",
    "StoredDocumentRecord",
    "IngestionResult",
    "RAGError",
    "EmptyDocumentError",
    "NoChunksProducedError",
    "BlankChunkError",
    "EmptyInputError",
    "AllInputsEmptyError",
    "DimensionMismatchError",
    "ProviderError",
    "EmbeddingFailedError",
    "RetrievalError",
    "PersistenceError",
]
