"""
Tests for the embedder and the OpenAI provider.

Note: These tests use fakes and mocks to avoid actual API calls.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from src.rag.embedder import EmbeddingBatch, OpenAIEmbeddingProvider, RAGEmbedder
from src.rag.exceptions import (
    AllInputsEmptyError,
    DimensionMismatchError,
    EmptyInputError,
    ProviderError,
)

from fakes import TEST_DIMENSIONS, FakeEmbeddingProvider, vector_for


class TestEmbedOne:
    """Single text embedding."""

    @pytest.mark.asyncio
    async def test_returns_vector(self, embedder, provider):
        vector = await embedder.embed_one("hello")

        assert vector == vector_for("hello")
        assert provider.calls == [["hello"]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    async def test_blank_text_rejected(self, embedder, provider, text):
        with pytest.raises(EmptyInputError):
            await embedder.embed_one(text)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_dimension_mismatch(self):
        provider = FakeEmbeddingProvider(dimension_overrides={"odd": 5})
        embedder = RAGEmbedder(provider, dimensions=TEST_DIMENSIONS)

        with pytest.raises(DimensionMismatchError) as exc_info:
            await embedder.embed_one("odd")

        assert exc_info.value.index == 0
        assert exc_info.value.expected == TEST_DIMENSIONS
        assert exc_info.value.actual == 5


class TestEmbedMany:
    """Batch embedding with blank filtering."""

    @pytest.mark.asyncio
    async def test_empty_list(self, embedder, provider):
        assert await embedder.embed_many([]) == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_blank_entries_keep_positions(self, embedder, provider):
        """Blanks are not sent but keep their slot as None."""
        result = await embedder.embed_many(["", "hello", "   "])

        assert len(result) == 3
        assert result[0] is None
        assert result[1] == vector_for("hello")
        assert result[2] is None
        assert provider.calls == [["hello"]]

    @pytest.mark.asyncio
    async def test_all_blank(self, embedder, provider):
        with pytest.raises(AllInputsEmptyError):
            await embedder.embed_many(["", "  ", "\n"])
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_order_preserved_across_batches(self, provider):
        """Output i matches input i with interleaved blanks and several batches."""
        embedder = RAGEmbedder(provider, dimensions=TEST_DIMENSIONS, batch_size=2)
        texts = ["alpha", "", "beta", "gamma", " ", "delta", "epsilon"]

        result = await embedder.embed_many(texts)

        assert len(result) == len(texts)
        for text, vector in zip(texts, result):
            if text.strip():
                assert vector == vector_for(text)
            else:
                assert vector is None
        assert provider.calls == [["alpha", "beta"], ["gamma", "delta"], ["epsilon"]]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_reports_original_index(self):
        provider = FakeEmbeddingProvider(dimension_overrides={"bad": 3})
        embedder = RAGEmbedder(provider, dimensions=TEST_DIMENSIONS)

        with pytest.raises(DimensionMismatchError) as exc_info:
            await embedder.embed_many(["good", "", "bad"])

        assert exc_info.value.index == 2
        assert "index 2" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_provider_count_mismatch(self):
        provider = MagicMock()
        provider.embed = AsyncMock(return_value=EmbeddingBatch(vectors=[vector_for("a")]))
        embedder = RAGEmbedder(provider, dimensions=TEST_DIMENSIONS)

        with pytest.raises(ProviderError):
            await embedder.embed_many(["a", "b"])

    @pytest.mark.asyncio
    async def test_provider_failure_wrapped(self):
        provider = FakeEmbeddingProvider(fail_times=1, error=RuntimeError("boom"))
        embedder = RAGEmbedder(provider, dimensions=TEST_DIMENSIONS)

        with pytest.raises(ProviderError) as exc_info:
            await embedder.embed_many(["a"])

        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_provider_error_not_rewrapped(self):
        original = ProviderError("rate limited", transient=True)
        provider = FakeEmbeddingProvider(fail_times=1, error=original)
        embedder = RAGEmbedder(provider, dimensions=TEST_DIMENSIONS)

        with pytest.raises(ProviderError) as exc_info:
            await embedder.embed_many(["a"])

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_usage_tracking(self, embedder):
        await embedder.embed_many(["a", "b", "c"])
        await embedder.embed_one("d")

        assert embedder.total_requests == 2
        assert embedder.total_tokens == 4
        assert embedder.estimated_cost == pytest.approx(4 / 1000 * 0.00002)

    def test_invalid_batch_size(self, provider):
        with pytest.raises(ValueError):
            RAGEmbedder(provider, batch_size=0)


def _openai_response(vectors, tokens=5):
    data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    return SimpleNamespace(data=list(reversed(data)), usage=SimpleNamespace(total_tokens=tokens))


def _status_error(cls, status_code):
    request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
    response = httpx.Response(status_code, request=request)
    return cls(message=f"status {status_code}", response=response, body=None)


class TestOpenAIEmbeddingProvider:
    """OpenAI client wrapper (mocked client)."""

    def setup_method(self):
        self.provider = OpenAIEmbeddingProvider(api_key="sk-test", dimensions=4)
        self.client = MagicMock()
        self.client.embeddings.create = AsyncMock()
        self.provider._client = self.client

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            OpenAIEmbeddingProvider(api_key=None)

    @pytest.mark.asyncio
    async def test_embed_sorts_by_index(self):
        self.client.embeddings.create.return_value = _openai_response(
            [[0.1] * 4, [0.2] * 4], tokens=9,
        )

        batch = await self.provider.embed(["first", "second"])

        assert batch.vectors == [[0.1] * 4, [0.2] * 4]
        assert batch.token_count == 9
        self.client.embeddings.create.assert_awaited_once_with(
            model="text-embedding-3-small",
            input=["first", "second"],
            dimensions=4,
        )

    @pytest.mark.asyncio
    async def test_rate_limit_is_transient(self):
        self.client.embeddings.create.side_effect = _status_error(openai.RateLimitError, 429)

        with pytest.raises(ProviderError) as exc_info:
            await self.provider.embed(["x"])

        assert exc_info.value.transient is True

    @pytest.mark.asyncio
    async def test_server_error_is_transient(self):
        self.client.embeddings.create.side_effect = _status_error(openai.InternalServerError, 500)

        with pytest.raises(ProviderError) as exc_info:
            await self.provider.embed(["x"])

        assert exc_info.value.transient is True
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_bad_request_is_not_transient(self):
        self.client.embeddings.create.side_effect = _status_error(openai.BadRequestError, 400)

        with pytest.raises(ProviderError) as exc_info:
            await self.provider.embed(["x"])

        assert exc_info.value.transient is False
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_connection_error_is_transient(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/embeddings")
        self.client.embeddings.create.side_effect = openai.APIConnectionError(request=request)

        with pytest.raises(ProviderError) as exc_info:
            await self.provider.embed(["x"])

        assert exc_info.value.transient is True
