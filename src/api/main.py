"""
Knowledge Base FastAPI Application
==================================

REST API for the retrieval-augmented chat backend.

Endpoints:
    GET  /api/health          - Health check
    POST /api/rag/ingest      - Ingest a document
    POST /api/rag/search      - Retrieve ranked context
    POST /api/rag/prompt      - Build a chat-turn system prompt
    GET  /api/rag/status      - RAG configuration / store status

Usage:
    uvicorn src.api.main:app --reload --port 8000

    Or with CLI:
    python -m src.api.main
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings, get_settings
from ..logging_config import setup_logging
from ..rag.pipeline import RAGPipeline, build_pipeline
from .models import HealthResponse
from .rag_routes import router as rag_router

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[RAGPipeline] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        settings: Defaults to the environment settings
        pipeline: Prebuilt components; built from settings at startup otherwise
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        setup_logging(settings.logging)
        logger.info("Starting knowledge base API...")

        if app.state.pipeline is None:
            missing = settings.missing_required()
            if missing:
                logger.warning(f"RAG disabled, missing configuration: {', '.join(missing)}")
            else:
                app.state.pipeline = build_pipeline(settings)
                logger.info("RAG pipeline initialized")

        yield

        logger.info("Shutting down knowledge base API...")

    app = FastAPI(
        title="Knowledge Base RAG API",
        description="Retrieval-augmented context for grounded chat responses",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    # CORS configuration
    # In production, set CORS_ORIGINS env var (comma-separated)
    origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    extra_origins = os.getenv("CORS_ORIGINS", "")
    if extra_origins:
        origins.extend([o.strip() for o in extra_origins.split(",") if o.strip()])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rag_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check():
        """Liveness probe."""
        status = "healthy" if app.state.pipeline is not None else "degraded"
        return HealthResponse(status=status, version=settings.app_version)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.api.main:app",
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=False,
    )
