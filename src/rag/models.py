"""
RAG Data Models
===============

Dataclasses shared by the chunker, embedder, retriever and ingestion pipeline.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any


EmbeddingVector = List[float]


@dataclass(frozen=True)
class ChunkOptions:
    """Chunk size bounds, in characters."""
    min_size: int = 500
    max_size: int = 1000
    overlap: int = 100


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of a source document."""
    content: str
    index: int
    start_char: int
    end_char: int

    @property
    def length(self) -> int:
        return self.end_char - self.start_char


@dataclass
class StoredDocumentRecord:
    """A chunk row as written to the documents table."""
    content: str
    embedding: EmbeddingVector
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_by: Optional[str] = None

    # Assigned by the store
    id: Optional[str] = None


@dataclass(frozen=True)
class RetrievedContext:
    """A search hit, ranked by similarity (0-1)."""
    content: str
    similarity: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "similarity": self.similarity,
            "metadata": dict(self.metadata),
        }


@dataclass
class IngestionResult:
    """Outcome of a successful ingestion."""
    chunks_processed: int
