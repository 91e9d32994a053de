"""
Knowledge Base RAG API Routes
=============================

Endpoints for document ingestion and context retrieval.

User identity comes from the X-User-Id header set by the upstream auth proxy.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..rag.exceptions import (
    EmbeddingFailedError,
    PersistenceError,
    RAGError,
    RetrievalError,
)
from ..rag.pipeline import RAGPipeline
from ..rag.prompts import prepare_system_prompt
from .models import (
    ContextItem,
    IngestRequest,
    IngestResponse,
    PromptResponse,
    RAGStatusResponse,
    SearchRequest,
    SearchResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/rag", tags=["RAG"])


RETRY_AFTER_SECONDS = "30"


def get_pipeline(request: Request) -> RAGPipeline:
    """RAG components built at startup."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="RAG not configured")
    return pipeline


def get_actor(x_user_id: Optional[str] = Header(None)) -> str:
    """Authenticated user reference."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized: Authentication required")
    return x_user_id.strip()


def _describe_errors(error: ValidationError) -> str:
    """Flatten pydantic errors into "field: message" pairs."""
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
        for err in error.errors()
    )


def _failure(status_code: int, error: str, headers: Optional[dict] = None) -> JSONResponse:
    body = IngestResponse(success=False, error=error).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


# =============================================================================
# INGEST ENDPOINT
# =============================================================================

@router.post(
    "/ingest",
    response_model=IngestResponse,
    response_model_exclude_none=True,
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": IngestRequest.model_json_schema()}},
        },
    },
)
async def ingest_document(
    request: Request,
    actor: str = Depends(get_actor),
    pipeline: RAGPipeline = Depends(get_pipeline),
):
    """
    Ingest a document into the knowledge base.

    The document is:
    1. Chunked (500-1000 characters, 100 overlap)
    2. Embedded (up to 3 attempts with backoff)
    3. Stored in one bulk insert

    Malformed bodies get the same {success, error} shape as other failures.
    """
    try:
        payload = await request.json()
    except ValueError:
        return _failure(400, "Bad Request: Invalid JSON body")

    try:
        body = IngestRequest.model_validate(payload)
    except ValidationError as e:
        return _failure(400, f"Bad Request: {_describe_errors(e)}")

    if body.content is None:
        return _failure(400, "Bad Request: Document content is required")

    try:
        result = await pipeline.ingestion.ingest(body.content, body.metadata or {}, actor)
    except ValueError as e:
        return _failure(400, f"Bad Request: {e}")
    except EmbeddingFailedError as e:
        logger.error(f"RAG ingestion failed: {e}", extra={"actor": actor})
        if e.transient:
            return _failure(503, str(e), headers={"Retry-After": RETRY_AFTER_SECONDS})
        return _failure(500, str(e))
    except PersistenceError as e:
        logger.error(f"RAG ingestion failed: {e}", extra={"actor": actor})
        return _failure(500, str(e))
    except RAGError as e:
        logger.error(f"RAG ingestion failed: {e}", extra={"actor": actor})
        return _failure(500, f"Ingestion failed: {e}")

    return IngestResponse(success=True, chunksProcessed=result.chunks_processed)


# =============================================================================
# SEARCH ENDPOINT
# =============================================================================

@router.post("/search", response_model=SearchResponse)
async def search_knowledge(
    request: SearchRequest,
    pipeline: RAGPipeline = Depends(get_pipeline),
):
    """
    Retrieve ranked context for a query.

    Callers should fall back to a context-free prompt on error.
    """
    try:
        results = await pipeline.retriever.retrieve(
            request.query,
            limit=request.limit,
            threshold=request.threshold,
        )
    except RetrievalError as e:
        logger.error(f"RAG search failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return SearchResponse(
        query=request.query,
        results=[ContextItem(**r.to_dict()) for r in results],
    )


# =============================================================================
# PROMPT ENDPOINT
# =============================================================================

@router.post("/prompt", response_model=PromptResponse)
async def build_system_prompt(
    request: SearchRequest,
    pipeline: RAGPipeline = Depends(get_pipeline),
):
    """
    Build the system prompt for a chat turn.

    Never fails because of retrieval: falls back to the no-context template.
    """
    system_prompt, context = await prepare_system_prompt(
        pipeline.retriever,
        request.query,
        limit=request.limit,
        threshold=request.threshold,
    )
    return PromptResponse(
        systemPrompt=system_prompt,
        contextCount=len(context),
        context=[ContextItem(**c.to_dict()) for c in context],
    )


# =============================================================================
# STATUS ENDPOINT
# =============================================================================

@router.get("/status", response_model=RAGStatusResponse)
async def rag_status(request: Request):
    """Check the RAG system status."""
    settings = request.app.state.settings
    pipeline = getattr(request.app.state, "pipeline", None)

    db_configured = bool(settings.database.url)
    embeddings_configured = bool(settings.embedding.api_key)

    store_status = {}
    status_fn = getattr(pipeline.store, "status", None) if pipeline else None
    if status_fn is not None:
        store_status = await asyncio.to_thread(status_fn)

    pgvector_available = bool(store_status.get("pgvector_available"))

    return RAGStatusResponse(
        ragAvailable=pipeline is not None and embeddings_configured and pgvector_available,
        databaseConfigured=db_configured,
        embeddingsConfigured=embeddings_configured,
        pgvectorAvailable=pgvector_available,
        documentCount=store_status.get("document_count"),
    )
