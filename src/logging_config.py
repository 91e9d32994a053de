"""
RAG Logging Setup
=================

One call wires logging for the API and the CLI from a LoggingConfig:

    from src.logging_config import setup_logging

    setup_logging(settings.logging)

Output is either JSON lines (LOG_JSON=true) or a single-line text format.
Ingestion and retrieval pass structured context through `extra=`
(chunks, attempt, delay, duration, actor, status_code); both formats
surface it.

Provider errors and psycopg2 messages can echo credentials, so every
handler redacts OpenAI keys and database URL passwords before writing.
"""

import json
import logging
import logging.handlers
import os
import re
import sys
from datetime import datetime, timezone
from typing import Dict, Iterable, List

from .config import LoggingConfig


CONTEXT_FIELDS = ("chunks", "attempt", "delay", "duration", "actor", "status_code")

NOISY_LOGGERS = ("httpx", "httpcore", "openai")

_SECRET_PATTERNS = (
    (re.compile(r"sk-[A-Za-z0-9_\-]{8,}"), "sk-***"),
    (re.compile(r"(postgres(?:ql)?://[^:/@\s]+:)[^@\s]+@"), r"\1***@"),
)


def redact(text: str) -> str:
    """Mask API keys and connection-string passwords."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def component_of(logger_name: str) -> str:
    """'src.rag.ingestion' -> 'ingestion'; other names pass through."""
    if logger_name.startswith("src."):
        return logger_name.rsplit(".", 1)[-1]
    return logger_name


def record_context(record: logging.LogRecord) -> Dict[str, object]:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class RedactingFilter(logging.Filter):
    """Rewrites the record message with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

        {"ts": "...", "level": "WARNING", "component": "retry",
         "logger": "src.rag.retry", "msg": "...", "attempt": 1, "delay": 1.0}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": component_of(record.name),
            "logger": record.name,
            "msg": record.getMessage(),
        }
        entry.update(record_context(record))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = redact(self.formatException(record.exc_info))

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable line with the structured context appended as key=value."""

    def __init__(self):
        super().__init__(
            "%(asctime)s %(levelname)-7s %(component)-10s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        record.component = component_of(record.name)
        line = super().format(record)
        context = record_context(record)
        if context:
            line += " | " + " ".join(f"{k}={v}" for k, v in context.items())
        return line


def build_handlers(config: LoggingConfig) -> List[logging.Handler]:
    """Console handler plus an optional rotating file handler."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.log_file:
        os.makedirs(os.path.dirname(config.log_file) or ".", exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            config.log_file,
            maxBytes=config.max_bytes,
            backupCount=config.backup_count,
            encoding="utf-8",
        ))

    formatter = JSONFormatter() if config.json_logs else TextFormatter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(RedactingFilter())
    return handlers


def setup_logging(config: LoggingConfig, quiet: Iterable[str] = NOISY_LOGGERS):
    """
    Replace the root handlers according to `config`.

    Args:
        config: Level, format and file settings
        quiet: Library loggers capped at WARNING
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    root.handlers.clear()
    for handler in build_handlers(config):
        root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(
        f"Logging configured: level={config.level} json={config.json_logs} "
        f"file={config.log_file or 'none'}"
    )
