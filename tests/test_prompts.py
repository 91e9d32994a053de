"""
Tests for prompt augmentation.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.rag.exceptions import RetrievalError
from src.rag.models import RetrievedContext
from src.rag.prompts import (
    CONTEXT_HEADER,
    DEFAULT_SYSTEM_PROMPT,
    INSTRUCTIONS_SUFFIX,
    NO_CONTEXT_SYSTEM_PROMPT,
    build_prompt,
    prepare_system_prompt,
    select_base_prompt,
)


BASE = "You are a helpful assistant."


class TestBuildPrompt:
    """Context injection."""

    def test_empty_context_returns_base(self):
        assert build_prompt(BASE, []) == BASE

    def test_single_context(self):
        context = [RetrievedContext(content="X is Y.", similarity=0.85)]

        prompt = build_prompt(BASE, context)

        assert prompt.startswith(BASE + "\n\n" + CONTEXT_HEADER)
        assert "[Context 1] (Relevance: 85.0%)\nX is Y." in prompt
        assert prompt.endswith(INSTRUCTIONS_SUFFIX)

    def test_exact_layout(self):
        context = [
            RetrievedContext(content="first", similarity=0.9),
            RetrievedContext(content="second", similarity=0.812),
        ]

        expected = (
            f"{BASE}\n\n{CONTEXT_HEADER}\n\n"
            "[Context 1] (Relevance: 90.0%)\nfirst\n\n"
            "[Context 2] (Relevance: 81.2%)\nsecond\n\n"
            f"{INSTRUCTIONS_SUFFIX}"
        )
        assert build_prompt(BASE, context) == expected

    def test_order_follows_input(self):
        """Blocks keep the given order even if not sorted."""
        context = [
            RetrievedContext(content="low", similarity=0.71),
            RetrievedContext(content="high", similarity=0.99),
        ]

        prompt = build_prompt(BASE, context)

        assert prompt.index("[Context 1] (Relevance: 71.0%)\nlow") < prompt.index("[Context 2]")

    def test_content_not_escaped(self):
        content = "## Heading\n[Context 9] literal"
        prompt = build_prompt(BASE, [RetrievedContext(content=content, similarity=1.0)])
        assert "(Relevance: 100.0%)\n" + content in prompt

    def test_pure(self):
        context = [RetrievedContext(content="a", similarity=0.8)]
        assert build_prompt(BASE, context) == build_prompt(BASE, context)


class TestSelectBasePrompt:

    def test_with_context(self):
        assert select_base_prompt([RetrievedContext(content="a", similarity=0.8)]) == DEFAULT_SYSTEM_PROMPT

    def test_without_context(self):
        assert select_base_prompt([]) == NO_CONTEXT_SYSTEM_PROMPT


class TestPrepareSystemPrompt:
    """Chat-turn helper."""

    @pytest.mark.asyncio
    async def test_grounded_prompt(self):
        context = [RetrievedContext(content="facts", similarity=0.9)]
        retriever = MagicMock()
        retriever.retrieve = AsyncMock(return_value=context)

        prompt, used = await prepare_system_prompt(retriever, "question", limit=3, threshold=0.8)

        assert used == context
        assert prompt.startswith(DEFAULT_SYSTEM_PROMPT)
        assert "[Context 1] (Relevance: 90.0%)\nfacts" in prompt
        retriever.retrieve.assert_awaited_once_with("question", limit=3, threshold=0.8)

    @pytest.mark.asyncio
    async def test_no_context(self):
        retriever = MagicMock()
        retriever.retrieve = AsyncMock(return_value=[])

        prompt, used = await prepare_system_prompt(retriever, "question")

        assert used == []
        assert prompt == NO_CONTEXT_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_retrieval_failure_degrades(self):
        retriever = MagicMock()
        retriever.retrieve = AsyncMock(side_effect=RetrievalError("db down"))

        prompt, used = await prepare_system_prompt(retriever, "question")

        assert used == []
        assert prompt == NO_CONTEXT_SYSTEM_PROMPT
