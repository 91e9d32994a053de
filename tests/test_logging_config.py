"""
Tests for logging setup.
"""

import json
import logging
import sys

import pytest

from src.config import LoggingConfig
from src.logging_config import (
    JSONFormatter,
    RedactingFilter,
    TextFormatter,
    component_of,
    redact,
    setup_logging,
)


def make_record(msg, args=(), name="src.rag.ingestion", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord(name, level, __file__, 1, msg, args, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def logging_config(**overrides):
    values = dict(level="INFO", log_file=None, json_logs=False, max_bytes=1024, backup_count=1)
    values.update(overrides)
    return LoggingConfig(**values)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestRedaction:

    def test_openai_key(self):
        assert redact("auth failed for sk-proj-abcdef123456") == "auth failed for sk-***"

    def test_database_password(self):
        url = "could not connect to postgresql://kb:s3cret@db:5432/kb"
        assert redact(url) == "could not connect to postgresql://kb:***@db:5432/kb"

    def test_plain_text_untouched(self):
        assert redact("Ingested document into 3 chunks") == "Ingested document into 3 chunks"

    def test_filter_rewrites_formatted_message(self):
        record = make_record("connecting to %s", ("postgres://kb:pw@db/kb",))

        assert RedactingFilter().filter(record) is True
        assert record.getMessage() == "connecting to postgres://kb:***@db/kb"


class TestFormatters:

    def test_component(self):
        assert component_of("src.rag.retry") == "retry"
        assert component_of("uvicorn.error") == "uvicorn.error"

    def test_json_includes_context(self):
        record = make_record("Ingested %d", (3,), chunks=3, actor="user-1")

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["component"] == "ingestion"
        assert entry["logger"] == "src.rag.ingestion"
        assert entry["msg"] == "Ingested 3"
        assert entry["chunks"] == 3
        assert entry["actor"] == "user-1"
        assert "attempt" not in entry

    def test_json_exception(self):
        try:
            raise RuntimeError("boom sk-abcdefghijkl")
        except RuntimeError:
            record = make_record("failed", level=logging.ERROR, exc_info=sys.exc_info())

        entry = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom sk-***" in entry["exception"]

    def test_text_appends_context(self):
        record = make_record("retrying", name="src.rag.retry", attempt=1, delay=1.0)

        line = TextFormatter().format(record)

        assert "retry" in line
        assert line.endswith("retrying | attempt=1 delay=1.0")


class TestSetupLogging:

    def test_json_file_output(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "logs" / "rag.log"

        setup_logging(logging_config(level="DEBUG", json_logs=True, log_file=str(log_file)))
        logging.getLogger("src.rag.test").info(
            "db at postgresql://kb:pw@db/kb", extra={"attempt": 2},
        )
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert restore_root_logger.level == logging.DEBUG
        last = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert last["msg"] == "db at postgresql://kb:***@db/kb"
        assert last["attempt"] == 2

    def test_replaces_handlers(self, restore_root_logger):
        setup_logging(logging_config())
        setup_logging(logging_config())

        assert len(restore_root_logger.handlers) == 1
        assert isinstance(restore_root_logger.handlers[0].formatter, TextFormatter)

    def test_quiets_http_libraries(self, restore_root_logger):
        setup_logging(logging_config())

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("openai").level == logging.WARNING
