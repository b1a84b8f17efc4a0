"""
Graceful failure utilities.

Reusable context manager for non-critical operations that should not block
a composition run: persisting the composition log, deleting a superseded
artifact, recording metrics. It centralizes the pattern of:
1. Attempting an operation
2. Logging any exception with context
3. Continuing execution without raising

Usage:
    from dailyquiz.core.graceful_failure import graceful_failure

    with graceful_failure("save composition log", logger):
        save_composition_log(db, log)

    with graceful_failure("delete previous artifact", logger, context={"key": key}):
        publisher.delete(key)
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from dailyquiz.observability import metrics


@contextmanager
def graceful_failure(
    operation_name: str,
    logger: logging.Logger,
    *,
    log_level: int = logging.WARNING,
    exc_info: bool = False,
    context: Optional[dict[str, Any]] = None,
) -> Generator[None, None, None]:
    """Context manager for non-critical operations that should not block execution.

    Args:
        operation_name: Human-readable name of the operation for logging
            (e.g., "save composition log").
        logger: The logger instance to use for logging errors.
        log_level: Logging level for error messages. Defaults to WARNING.
        exc_info: Whether to include exception traceback in log.
        context: Optional dictionary of additional context to include in the
            log message (e.g., {"target_date": "2025-06-01"}).

    Yields:
        None - the context manager is used for its side effects only.
    """
    try:
        yield
    except Exception as e:
        if context:
            context_str = ", ".join(f"{k}={v}" for k, v in context.items())
            message = f"Failed to {operation_name} ({context_str}): {e}"
        else:
            message = f"Failed to {operation_name}: {e}"

        logger.log(log_level, message, exc_info=exc_info)

        try:
            metrics.record_error(error_type="GracefulFailure")
        except Exception:
            pass  # Metrics recording should not break graceful failure handling
