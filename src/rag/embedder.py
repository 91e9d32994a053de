"""
RAG Embedder
============

Generates embeddings through a pluggable provider.
Default provider: OpenAI text-embedding-3-small reduced to 768 dimensions.

The embedder validates shape and keeps input/output positions aligned.
It never retries: retry policy belongs to the caller (see ingestion).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .exceptions import (
    AllInputsEmptyError,
    DimensionMismatchError,
    EmptyInputError,
    ProviderError,
    RAGError,
)
from .models import EmbeddingVector

logger = logging.getLogger(__name__)


DEFAULT_DIMENSIONS = 768
DEFAULT_MODEL = "text-embedding-3-small"


@dataclass
class EmbeddingBatch:
    """Raw provider response: one vector per input, same order."""
    vectors: List[EmbeddingVector]
    token_count: int = 0


class EmbeddingProvider(ABC):
    """External embedding model."""

    @abstractmethod
    async def embed(self, texts: List[str]) -> EmbeddingBatch:
        """Embed a batch of non-blank texts, preserving order."""
        pass


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Embeddings via the OpenAI API.

    text-embedding-3-small accepts a `dimensions` parameter, so the
    768-dimension vector column works without a model change.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        timeout: float = 30.0,
    ):
        if not api_key:
            raise ValueError("OpenAI API key required for embeddings")

        self.api_key = api_key
        self.model = model
        self.dimensions = dimensions
        self.timeout = timeout
        self._client = None

    @property
    def client(self):
        if self._client is None:
            from openai import AsyncOpenAI
            self._client = AsyncOpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    async def embed(self, texts: List[str]) -> EmbeddingBatch:
        import openai

        try:
            response = await self.client.embeddings.create(
                model=self.model,
                input=texts,
                dimensions=self.dimensions,
            )
        except (openai.RateLimitError, openai.APITimeoutError, openai.APIConnectionError) as e:
            raise ProviderError(f"Embedding provider unavailable: {e}", transient=True) from e
        except openai.APIStatusError as e:
            raise ProviderError(
                f"Embedding provider error: {e}",
                transient=e.status_code >= 500,
                status_code=e.status_code,
            ) from e
        except openai.OpenAIError as e:
            raise ProviderError(f"Embedding provider error: {e}") from e

        # The API reports an index per item; do not rely on list order
        data = sorted(response.data, key=lambda d: d.index)
        token_count = response.usage.total_tokens if response.usage else 0
        return EmbeddingBatch(vectors=[d.embedding for d in data], token_count=token_count)


class RAGEmbedder:
    """
    Turns text into fixed-dimension vectors.

    Cost: ~$0.00002 per 1K tokens (text-embedding-3-small)
    """

    COST_PER_1K_TOKENS = 0.00002

    def __init__(
        self,
        provider: EmbeddingProvider,
        dimensions: int = DEFAULT_DIMENSIONS,
        batch_size: int = 100,
    ):
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")

        self.provider = provider
        self.dimensions = dimensions
        self.batch_size = batch_size

        self._total_tokens = 0
        self._total_requests = 0

    async def embed_one(self, text: str) -> EmbeddingVector:
        """
        Generate the embedding for a single text.

        Raises:
            EmptyInputError: text is blank
            DimensionMismatchError: provider vector has the wrong length
            ProviderError: provider call failed
        """
        if not text or not text.strip():
            raise EmptyInputError()

        batch = await self._call_provider([text])
        vector = batch.vectors[0]
        self._check_dimension(0, vector)
        return vector

    # Alias kept for retriever readability
    embed_query = embed_one

    async def embed_many(self, texts: List[str]) -> List[Optional[EmbeddingVector]]:
        """
        Generate embeddings for a batch of texts.

        Blank entries are not sent to the provider. The result has the same
        length as `texts`; blank positions hold None.

        Raises:
            AllInputsEmptyError: every entry is blank
            DimensionMismatchError: a vector has the wrong length (original index)
            ProviderError: provider call failed
        """
        if not texts:
            return []

        valid: List[Tuple[int, str]] = [
            (i, t) for i, t in enumerate(texts) if t and t.strip()
        ]
        if not valid:
            raise AllInputsEmptyError()

        results: List[Optional[EmbeddingVector]] = [None] * len(texts)

        for start in range(0, len(valid), self.batch_size):
            window = valid[start:start + self.batch_size]
            batch = await self._call_provider([t for _, t in window])

            for (original_index, _), vector in zip(window, batch.vectors):
                self._check_dimension(original_index, vector)
                results[original_index] = vector

        skipped = len(texts) - len(valid)
        if skipped:
            logger.debug(f"Skipped {skipped} blank texts out of {len(texts)}")

        return results

    async def _call_provider(self, texts: List[str]) -> EmbeddingBatch:
        try:
            batch = await self.provider.embed(texts)
        except RAGError:
            raise
        except Exception as e:
            raise ProviderError(f"Embedding provider error: {e}") from e

        if len(batch.vectors) != len(texts):
            raise ProviderError(
                f"Provider returned {len(batch.vectors)} embeddings for {len(texts)} texts"
            )

        self._total_tokens += batch.token_count
        self._total_requests += 1
        logger.debug(f"Embedded batch of {len(texts)} texts ({batch.token_count} tokens)")
        return batch

    def _check_dimension(self, index: int, vector: EmbeddingVector):
        if len(vector) != self.dimensions:
            raise DimensionMismatchError(index, self.dimensions, len(vector))

    @property
    def total_tokens(self) -> int:
        return self._total_tokens

    @property
    def total_requests(self) -> int:
        return self._total_requests

    @property
    def estimated_cost(self) -> float:
        """Estimated cost in USD."""
        return (self._total_tokens / 1000) * self.COST_PER_1K_TOKENS
