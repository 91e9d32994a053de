"""
RAG Prompts
===========

System prompt templates and context injection.

build_prompt() is pure: same inputs, same output, no I/O.
prepare_system_prompt() is the chat-turn helper: it retrieves, degrades to an
ungrounded prompt if retrieval fails, and picks the matching template.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from .exceptions import RetrievalError
from .models import RetrievedContext

logger = logging.getLogger(__name__)


DEFAULT_SYSTEM_PROMPT = """You are a helpful AI assistant with access to a knowledge base. Your role is to provide accurate, helpful, and contextual responses based on the information available to you.

Key behaviors:
- Be accurate and factual in your responses
- Acknowledge when you don't have enough information to answer
- Be concise but thorough
- Maintain a friendly and professional tone"""

NO_CONTEXT_SYSTEM_PROMPT = """You are a helpful AI assistant. The knowledge base does not contain relevant information for this query.

Key behaviors:
- Acknowledge that you don't have specific information from the knowledge base
- Provide helpful general information if possible
- Suggest that the user may want to ask about topics that are in the knowledge base
- Be honest about the limitations of your knowledge
- Maintain a friendly and professional tone"""

CONTEXT_HEADER = """## Relevant Knowledge Base Context

The following context has been retrieved from the knowledge base to help answer the user's question. Use this information to provide accurate and helpful responses."""

INSTRUCTIONS_SUFFIX = """## Instructions

- Use the provided context to answer the user's question accurately
- If the context doesn't contain relevant information, acknowledge this and provide the best response you can
- Always cite or reference the context when using information from it
- Be helpful, clear, and concise in your responses"""


def format_context_block(position: int, context: RetrievedContext) -> str:
    """One labelled block: ordinal, relevance percentage, raw content."""
    return f"[Context {position}] (Relevance: {context.similarity * 100:.1f}%)\n{context.content}"


def build_prompt(base_prompt: str, context: Sequence[RetrievedContext]) -> str:
    """
    Inject retrieved context into a system prompt.

    Args:
        base_prompt: Template chosen by the caller
        context: Retrieved chunks, already ranked

    Returns:
        base_prompt unchanged when context is empty, else the augmented prompt
    """
    if not context:
        return base_prompt

    context_section = "\n\n".join(
        format_context_block(i, ctx) for i, ctx in enumerate(context, 1)
    )

    return f"{base_prompt}\n\n{CONTEXT_HEADER}\n\n{context_section}\n\n{INSTRUCTIONS_SUFFIX}"


def select_base_prompt(context: Sequence[RetrievedContext]) -> str:
    """Grounded template when there is context, fallback template otherwise."""
    return DEFAULT_SYSTEM_PROMPT if context else NO_CONTEXT_SYSTEM_PROMPT


async def prepare_system_prompt(
    retriever,
    query: str,
    limit: Optional[int] = None,
    threshold: Optional[float] = None,
) -> Tuple[str, List[RetrievedContext]]:
    """
    Build the system prompt for a chat turn.

    Retrieval failures are logged and treated as "no context"; the chat
    turn always gets a prompt.

    Returns:
        (system_prompt, context used)
    """
    try:
        context = await retriever.retrieve(query, limit=limit, threshold=threshold)
    except RetrievalError as e:
        logger.warning(f"Context retrieval failed, continuing without context: {e}")
        context = []

    return build_prompt(select_base_prompt(context), context), context
