"""
Centralized logging configuration with structured logging support.
"""
import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dailyquiz.core.config import settings

# Context variable for composition run correlation. Set by each job run (in
# the worker thread that executes it) so every entry it emits carries the
# same run_id.
run_id_context: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

# Structured extras copied verbatim into JSON entries when present on a record
STRUCTURED_FIELDS = (
    "target_date",
    "quiz_id",
    "mode",
    "difficulty",
    "relaxation_level",
    "template_key",
    "duration_ms",
)


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for production logging.

    Produces structured log entries with consistent fields for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_entry: Dict[str, Any] = {
            "timestamp": timestamp.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        run_id = run_id_context.get()
        if run_id:
            log_entry["run_id"] = run_id

        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        # Add source location for error-level logs
        if record.levelno >= logging.ERROR:
            log_entry["source"] = f"{record.pathname}:{record.lineno}"

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging() -> None:
    """
    Configure process-wide logging with structured output.

    Configures:
    - Log levels based on settings
    - JSON formatting for production (structured for log aggregators)
    - Human-readable format for development
    - Run ID correlation via context variables
    """
    log_level_name = getattr(settings, "LOG_LEVEL", "INFO")
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)

    is_production = settings.ENV == "production"

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": JSONFormatter,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": "json" if is_production else "default",
                "stream": sys.stdout,
            },
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
        "loggers": {
            "dailyquiz": {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False,
            },
            "httpx": {
                "level": logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
            "sqlalchemy.engine": {
                "level": logging.INFO if settings.DEBUG else logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)
