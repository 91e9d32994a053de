"""
Knowledge Base Configuration Module
===================================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    OPENAI_API_KEY: OpenAI API key for embeddings (required)
    EMBEDDING_MODEL: Embedding model name (default: text-embedding-3-small)
    EMBEDDING_DIMENSIONS: Vector dimension (default: 768)
    EMBEDDING_BATCH_SIZE: Max texts per provider call (default: 100)
    EMBEDDING_TIMEOUT: Provider request timeout in seconds (default: 30)

    DATABASE_URL: PostgreSQL connection string with pgvector (required)
    DATABASE_CONNECT_TIMEOUT: Connection timeout in seconds (default: 10)

    CHUNK_MIN_SIZE: Minimum chunk size in characters (default: 500)
    CHUNK_MAX_SIZE: Maximum chunk size in characters (default: 1000)
    CHUNK_OVERLAP: Overlap between chunks in characters (default: 100)

    RETRIEVAL_LIMIT: Max context chunks per query (default: 5)
    RETRIEVAL_THRESHOLD: Minimum similarity 0-1 (default: 0.7)

    EMBEDDING_MAX_ATTEMPTS: Ingestion embedding attempts (default: 3)
    EMBEDDING_RETRY_BASE_DELAY: First backoff delay in seconds (default: 1.0)
    EMBEDDING_RETRY_BACKOFF: Backoff multiplier (default: 2.0)

    LOG_LEVEL, LOG_JSON, LOG_FILE: Logging options
    LOG_MAX_BYTES, LOG_BACKUP_COUNT: Rotation for LOG_FILE (default: 10 MB, 5 files)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .rag.models import ChunkOptions
from .rag.retry import RetryPolicy


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class EmbeddingConfig:
    """Embedding provider configuration."""

    api_key: Optional[str] = field(
        default_factory=lambda: get_env("OPENAI_API_KEY") or get_env("GPT_API_KEY")
    )
    model: str = field(default_factory=lambda: get_env("EMBEDDING_MODEL", "text-embedding-3-small"))
    dimensions: int = field(default_factory=lambda: get_env_int("EMBEDDING_DIMENSIONS", 768))
    batch_size: int = field(default_factory=lambda: get_env_int("EMBEDDING_BATCH_SIZE", 100))
    timeout: float = field(default_factory=lambda: get_env_float("EMBEDDING_TIMEOUT", 30.0))

    def __post_init__(self):
        if self.dimensions <= 0:
            raise ValueError("dimensions must be positive")
        if self.batch_size <= 0:
            raise ValueError("batch_size must be positive")


@dataclass
class DatabaseConfig:
    """PostgreSQL + pgvector configuration."""

    url: Optional[str] = field(default_factory=lambda: get_env("DATABASE_URL"))
    connect_timeout: int = field(default_factory=lambda: get_env_int("DATABASE_CONNECT_TIMEOUT", 10))


@dataclass
class ChunkingConfig:
    """Document chunking configuration (characters)."""

    min_size: int = field(default_factory=lambda: get_env_int("CHUNK_MIN_SIZE", 500))
    max_size: int = field(default_factory=lambda: get_env_int("CHUNK_MAX_SIZE", 1000))
    overlap: int = field(default_factory=lambda: get_env_int("CHUNK_OVERLAP", 100))

    def to_options(self) -> ChunkOptions:
        return ChunkOptions(min_size=self.min_size, max_size=self.max_size, overlap=self.overlap)


@dataclass
class RetrievalConfig:
    """Query-time retrieval defaults."""

    limit: int = field(default_factory=lambda: get_env_int("RETRIEVAL_LIMIT", 5))
    threshold: float = field(default_factory=lambda: get_env_float("RETRIEVAL_THRESHOLD", 0.7))

    def __post_init__(self):
        if self.limit < 1:
            raise ValueError("limit must be at least 1")
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError("threshold must be between 0 and 1")


@dataclass
class IngestionConfig:
    """Embedding retry policy used during ingestion."""

    max_attempts: int = field(default_factory=lambda: get_env_int("EMBEDDING_MAX_ATTEMPTS", 3))
    retry_base_delay: float = field(default_factory=lambda: get_env_float("EMBEDDING_RETRY_BASE_DELAY", 1.0))
    retry_backoff: float = field(default_factory=lambda: get_env_float("EMBEDDING_RETRY_BACKOFF", 2.0))

    def to_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            backoff_multiplier=self.retry_backoff,
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))

    # Structured logging
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))

    # Rotation for LOG_FILE
    max_bytes: int = field(default_factory=lambda: get_env_int("LOG_MAX_BYTES", 10 * 1024 * 1024))
    backup_count: int = field(default_factory=lambda: get_env_int("LOG_BACKUP_COUNT", 5))


@dataclass
class Settings:
    """Main application settings container."""

    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    app_version: str = "0.1.0"

    def missing_required(self) -> List[str]:
        """Names of required variables that are not set."""
        missing = []
        if not self.embedding.api_key:
            missing.append("OPENAI_API_KEY")
        if not self.database.url:
            missing.append("DATABASE_URL")
        return missing

    def validate_required(self):
        """
        Raises:
            ValueError: listing every missing required variable
        """
        missing = self.missing_required()
        if missing:
            plural = "s" if len(missing) > 1 else ""
            raise ValueError(f"Missing required environment variable{plural}: {', '.join(missing)}")


def load_settings() -> Settings:
    """
    Load and validate all application settings.

    Raises:
        ValueError: If configuration values are invalid
    """
    return Settings()


# Global settings instance (lazy-loaded, composition root only)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings():
    """Drop the cached settings (tests, env reloads)."""
    global _settings
    _settings = None
