"""
Tests for structured logging configuration and JSON formatter.
"""
import json
import logging
import sys
from unittest.mock import patch

import pytest

from dailyquiz.core.logging_config import JSONFormatter, run_id_context, setup_logging


def _record(level=logging.INFO, msg="Composed quiz", **extra):
    record = logging.LogRecord(
        name="dailyquiz.test",
        level=level,
        pathname="composer.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    """Tests for the JSONFormatter class."""

    def test_basic_log_entry(self):
        """Basic entries carry timestamp, level, logger and message."""
        log_entry = json.loads(JSONFormatter().format(_record()))

        assert "timestamp" in log_entry
        assert log_entry["level"] == "INFO"
        assert log_entry["logger"] == "dailyquiz.test"
        assert log_entry["message"] == "Composed quiz"
        assert "run_id" not in log_entry
        assert "source" not in log_entry

    def test_run_id_from_context(self):
        """run_id is included while set in context."""
        token = run_id_context.set("run-123")
        try:
            log_entry = json.loads(JSONFormatter().format(_record()))
        finally:
            run_id_context.reset(token)

        assert log_entry["run_id"] == "run-123"

    def test_structured_extras(self):
        """Known composition fields passed via extra are copied."""
        record = _record(target_date="2025-03-12", quiz_id="q-1", relaxation_level=2, unrelated="x")

        log_entry = json.loads(JSONFormatter().format(record))

        assert log_entry["target_date"] == "2025-03-12"
        assert log_entry["quiz_id"] == "q-1"
        assert log_entry["relaxation_level"] == 2
        assert "unrelated" not in log_entry

    def test_error_includes_source_and_exception(self):
        """Errors carry their source location and traceback."""
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record(level=logging.ERROR)
            record.exc_info = sys.exc_info()

        log_entry = json.loads(JSONFormatter().format(record))

        assert log_entry["source"] == "composer.py:42"
        assert "ValueError: boom" in log_entry["exception"]


@pytest.fixture
def restore_logging():
    """Undo the dictConfig changes setup_logging makes to package loggers."""
    yield
    for name in ("dailyquiz", "httpx", "sqlalchemy.engine"):
        logger = logging.getLogger(name)
        logger.handlers.clear()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)


@pytest.mark.usefixtures("restore_logging")
class TestSetupLogging:
    """Tests for setup_logging."""

    def test_production_uses_json(self):
        """Production output is JSON formatted."""
        with patch("dailyquiz.core.logging_config.settings") as mock_settings:
            mock_settings.LOG_LEVEL = "WARNING"
            mock_settings.ENV = "production"
            mock_settings.DEBUG = False
            setup_logging()

        logger = logging.getLogger("dailyquiz")
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_development_uses_plain_text(self):
        """Development output is human readable."""
        with patch("dailyquiz.core.logging_config.settings") as mock_settings:
            mock_settings.LOG_LEVEL = "DEBUG"
            mock_settings.ENV = "development"
            mock_settings.DEBUG = False
            setup_logging()

        logger = logging.getLogger("dailyquiz")
        assert logger.level == logging.DEBUG
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
