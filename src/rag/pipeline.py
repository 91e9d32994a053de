"""
RAG Pipeline Assembly
=====================

Wires the components from explicit configuration. Used by the API lifespan
and the CLI; components themselves never read global settings.
"""

from dataclasses import dataclass
from typing import Optional

from .chunker import RAGChunker
from .embedder import OpenAIEmbeddingProvider, RAGEmbedder
from .ingestion import RAGIngestion
from .retriever import RAGRetriever
from .store import PgVectorStore, VectorStore


@dataclass
class RAGPipeline:
    """Components sharing one embedder and one store."""
    embedder: RAGEmbedder
    store: VectorStore
    retriever: RAGRetriever
    ingestion: RAGIngestion


def build_pipeline(settings, store: Optional[VectorStore] = None) -> RAGPipeline:
    """
    Build the pipeline from a Settings object.

    Args:
        settings: src.config.Settings
        store: Override the pgvector store (tests, local runs)
    """
    provider = OpenAIEmbeddingProvider(
        api_key=settings.embedding.api_key,
        model=settings.embedding.model,
        dimensions=settings.embedding.dimensions,
        timeout=settings.embedding.timeout,
    )
    embedder = RAGEmbedder(
        provider,
        dimensions=settings.embedding.dimensions,
        batch_size=settings.embedding.batch_size,
    )

    if store is None:
        store = PgVectorStore(
            settings.database.url,
            connect_timeout=settings.database.connect_timeout,
        )

    retriever = RAGRetriever(
        embedder,
        store,
        default_limit=settings.retrieval.limit,
        default_threshold=settings.retrieval.threshold,
    )
    ingestion = RAGIngestion(
        embedder,
        store,
        chunker=RAGChunker(settings.chunking.to_options()),
        retry_policy=settings.ingestion.to_retry_policy(),
    )

    return RAGPipeline(embedder=embedder, store=store, retriever=retriever, ingestion=ingestion)
