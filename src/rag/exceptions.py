"""
RAG Exceptions
==============

Error taxonomy for the retrieval pipeline.

- Input errors (empty document, blank query/batch): also ValueError, never retried
- Shape errors (embedding dimension mismatch): fatal, carry the offending index
- Provider errors: may be transient (rate limit, timeout, 5xx)
- Composite errors raised at component boundaries (ingestion, retrieval, storage)
"""

from typing import Optional


class RAGError(Exception):
    """Base exception for the RAG layer."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class EmptyDocumentError(RAGError, ValueError):
    """Document content is blank."""

    def __init__(self, message: str = "Document content cannot be empty"):
        super().__init__(message)


class NoChunksProducedError(RAGError, ValueError):
    """Chunker returned nothing for a non-blank document."""

    def __init__(self, message: str = "Document produced no chunks"):
        super().__init__(message)


class InvalidChunkOptionsError(RAGError, ValueError):
    """Chunk size bounds are inconsistent."""
    pass


class BlankChunkError(RAGError, ValueError):
    """Document splits into a chunk that is only whitespace."""

    def __init__(self, indices):
        self.indices = list(indices)
        super().__init__(
            f"Document has whitespace-only chunks at indices {self.indices}"
        )


class EmptyInputError(RAGError, ValueError):
    """Blank text given to the single-text embedder."""

    def __init__(self, message: str = "Cannot generate embedding for empty text"):
        super().__init__(message)


class AllInputsEmptyError(RAGError, ValueError):
    """Every entry of a batch is blank."""

    def __init__(self, message: str = "All provided texts are empty"):
        super().__init__(message)


class DimensionMismatchError(RAGError):
    """Provider returned a vector of unexpected length."""

    def __init__(self, index: int, expected: int, actual: int):
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Unexpected embedding dimension at index {index}: "
            f"expected {expected}, got {actual}"
        )


class ProviderError(RAGError):
    """Embedding provider call failed."""

    def __init__(self, message: str, transient: bool = False, status_code: Optional[int] = None):
        self.transient = transient
        self.status_code = status_code
        super().__init__(message)


class EmbeddingFailedError(RAGError):
    """Embedding still failing after every retry attempt."""

    def __init__(self, attempts: int, cause_message: str, transient: bool = False):
        self.attempts = attempts
        self.cause_message = cause_message
        self.transient = transient
        super().__init__(
            f"Embedding generation failed after {attempts} attempts: {cause_message}"
        )


class RetrievalError(RAGError):
    """Query embedding or similarity search failed."""
    pass


class PersistenceError(RAGError):
    """Vector store write failed."""
    pass
