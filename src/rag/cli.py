"""
RAG CLI
=======

Command-line interface for knowledge base management.

Usage:
    python -m src.rag.cli init                    # Initialize database schema
    python -m src.rag.cli ingest notes.md         # Ingest a text file
    python -m src.rag.cli search "query"          # Test search
    python -m src.rag.cli prompt "query"          # Show the system prompt a chat turn would get
    python -m src.rag.cli status                  # Check store + provider configuration
"""

import argparse
import asyncio
import json
import logging
import os
import sys

from src.config import get_settings
from src.logging_config import setup_logging
from src.rag.exceptions import RAGError
from src.rag.pipeline import build_pipeline
from src.rag.prompts import prepare_system_prompt
from src.rag.store import PgVectorStore

logger = logging.getLogger(__name__)


MIGRATION_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "database", "migrations", "001_documents_pgvector.sql",
)


def init_schema() -> bool:
    """Initialize the documents table and match_documents function."""
    settings = get_settings()
    if not settings.database.url:
        logger.error("DATABASE_URL not set")
        return False

    if not os.path.exists(MIGRATION_PATH):
        logger.error(f"Migration file not found: {MIGRATION_PATH}")
        return False

    with open(MIGRATION_PATH, "r") as f:
        migration_sql = f.read()

    store = PgVectorStore(settings.database.url, settings.database.connect_timeout)
    try:
        store.apply_migration(migration_sql)
    except Exception as e:
        logger.error(f"Failed to initialize schema: {e}")
        return False
    return True


def ingest_file(path: str, metadata: dict, actor: str) -> bool:
    """Ingest one text file."""
    settings = get_settings()
    settings.validate_required()

    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    pipeline = build_pipeline(settings)
    metadata = {"source": os.path.basename(path), **metadata}

    try:
        result = asyncio.run(pipeline.ingestion.ingest(content, metadata, actor))
    except RAGError as e:
        logger.error(f"Failed to ingest '{path}': {e}")
        return False

    stats = pipeline.ingestion.stats
    logger.info(
        f"Ingested {path}: {result.chunks_processed} chunks, "
        f"{stats['embedding_tokens']} tokens (${stats['embedding_cost_usd']:.6f})"
    )
    return True


def run_search(query: str, limit: int, threshold: float) -> bool:
    """Run a search and print the ranked context."""
    settings = get_settings()
    settings.validate_required()
    pipeline = build_pipeline(settings)

    try:
        results = asyncio.run(pipeline.retriever.retrieve(query, limit=limit, threshold=threshold))
    except RAGError as e:
        logger.error(f"Search failed: {e}")
        return False

    print(f"\n{'='*60}")
    print(f"Query: {query}")
    print(f"Results: {len(results)}")
    print('='*60)

    for i, r in enumerate(results, 1):
        print(f"\n[{i}] Similarity: {r.similarity:.3f}")
        print(f"    Metadata: {json.dumps(r.metadata, default=str)}")
        print(f"    Content: {r.content[:200]}...")

    return True


def show_prompt(query: str, limit: int, threshold: float) -> bool:
    """Print the system prompt a chat turn would be given."""
    settings = get_settings()
    settings.validate_required()
    pipeline = build_pipeline(settings)

    system_prompt, context = asyncio.run(
        prepare_system_prompt(pipeline.retriever, query, limit=limit, threshold=threshold)
    )

    print(f"\n{'='*60}")
    print(f"SYSTEM PROMPT ({len(context)} context chunks)")
    print('='*60)
    print(system_prompt)
    return True


def show_status() -> bool:
    """Show configuration and store status."""
    settings = get_settings()
    missing = settings.missing_required()

    print(f"\n{'='*60}")
    print("RAG STATUS")
    print('='*60)
    print(f"Embedding model: {settings.embedding.model} ({settings.embedding.dimensions} dims)")
    print(f"Missing configuration: {', '.join(missing) or 'none'}")

    if settings.database.url:
        status = PgVectorStore(settings.database.url, settings.database.connect_timeout).status()
        for key, value in status.items():
            print(f"  {key}: {value}")

    return not missing


def positive_int(value: str) -> int:
    """argparse type: integer >= 1."""
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {value}")
    return number


def similarity(value: str) -> float:
    """argparse type: float in [0, 1]."""
    number = float(value)
    if not 0.0 <= number <= 1.0:
        raise argparse.ArgumentTypeError(f"must be between 0 and 1, got {value}")
    return number


def main():
    parser = argparse.ArgumentParser(description="RAG Knowledge Base CLI")
    subparsers = parser.add_subparsers(dest="command", help="Command")

    subparsers.add_parser("init", help="Initialize database schema")

    ingest_parser = subparsers.add_parser("ingest", help="Ingest a text file")
    ingest_parser.add_argument("path", help="Path to a UTF-8 text file")
    ingest_parser.add_argument("--metadata", default="{}", help="JSON metadata for every chunk")
    ingest_parser.add_argument("--actor", default="cli", help="User reference recorded as created_by")

    for name, help_text in (("search", "Test search"), ("prompt", "Show augmented system prompt")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("query", help="Search query")
        sub.add_argument("-k", "--limit", type=positive_int, default=None, help="Number of results")
        sub.add_argument("--threshold", type=similarity, default=None, help="Minimum similarity")

    subparsers.add_parser("status", help="Show configuration and store status")

    args = parser.parse_args()

    settings = get_settings()
    setup_logging(settings.logging)

    if args.command == "init":
        success = init_schema()
    elif args.command == "ingest":
        success = ingest_file(args.path, json.loads(args.metadata), args.actor)
    elif args.command == "search":
        success = run_search(args.query, args.limit, args.threshold)
    elif args.command == "prompt":
        success = show_prompt(args.query, args.limit, args.threshold)
    elif args.command == "status":
        success = show_status()
    else:
        parser.print_help()
        return

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
