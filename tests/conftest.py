"""
Shared test fixtures.

Provides an in-memory pipeline built on the doubles in fakes.py.
"""

import pytest

from src.rag.embedder import RAGEmbedder
from src.rag.ingestion import RAGIngestion
from src.rag.pipeline import RAGPipeline
from src.rag.retriever import RAGRetriever
from src.rag.retry import RetryPolicy
from src.rag.store import InMemoryVectorStore

from fakes import TEST_DIMENSIONS, FakeEmbeddingProvider, RecordingSleep


@pytest.fixture
def provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def embedder(provider):
    return RAGEmbedder(provider, dimensions=TEST_DIMENSIONS)


@pytest.fixture
def store():
    return InMemoryVectorStore()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def pipeline(embedder, store, sleep):
    retriever = RAGRetriever(embedder, store)
    ingestion = RAGIngestion(embedder, store, retry_policy=RetryPolicy(), sleep=sleep)
    return RAGPipeline(embedder=embedder, store=store, retriever=retriever, ingestion=ingestion)
