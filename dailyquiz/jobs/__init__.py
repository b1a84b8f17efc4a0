"""
Stateless job entry points for external schedulers.
"""
from .daily_composition import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_SKIPPED,
    JobOutcome,
    compute_drop_time,
    republish_template,
    retry_unpublished,
    run,
    run_many,
)

__all__ = [
    "STATUS_COMPLETED",
    "STATUS_FAILED",
    "STATUS_SKIPPED",
    "JobOutcome",
    "compute_drop_time",
    "republish_template",
    "retry_unpublished",
    "run",
    "run_many",
]
