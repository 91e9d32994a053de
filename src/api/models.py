"""
Knowledge Base API Models
=========================

Pydantic models for API request/response serialization.
Field names are camelCase to match the chat frontend.
"""

from pydantic import BaseModel, Field
from typing import List, Dict, Optional, Any


class IngestRequest(BaseModel):
    """Document ingestion request."""
    content: Optional[str] = Field(None, description="Raw document text")
    metadata: Optional[Dict[str, Any]] = Field(None, description="Metadata copied onto every chunk")


class IngestResponse(BaseModel):
    """Document ingestion result."""
    success: bool
    chunksProcessed: Optional[int] = None
    error: Optional[str] = None


class SearchRequest(BaseModel):
    """Context retrieval request."""
    query: str = Field(..., description="Free-text query")
    limit: Optional[int] = Field(None, ge=1, le=50, description="Max results")
    threshold: Optional[float] = Field(None, ge=0.0, le=1.0, description="Minimum similarity")


class ContextItem(BaseModel):
    """One retrieved chunk."""
    content: str
    similarity: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SearchResponse(BaseModel):
    """Ranked context for a query."""
    query: str
    results: List[ContextItem]


class PromptResponse(BaseModel):
    """System prompt prepared for a chat turn."""
    systemPrompt: str
    contextCount: int
    context: List[ContextItem]


class RAGStatusResponse(BaseModel):
    """Configuration and store availability."""
    ragAvailable: bool
    databaseConfigured: bool
    embeddingsConfigured: bool
    pgvectorAvailable: bool
    documentCount: Optional[int] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
