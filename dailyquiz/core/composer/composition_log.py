"""
Composition log construction and persistence.

The log is a plain record (CompositionLogRecord); everything derived from it
is a free function here. Persisting a log is best effort: a failed write is
logged and never fails the run that produced it.
"""
import logging
from collections import Counter
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from dailyquiz.core.datetime_utils import ensure_timezone_aware
from dailyquiz.core.graceful_failure import graceful_failure
from dailyquiz.models import CompositionLog
from dailyquiz.schemas.composition_log import (
    CompositionLogRecord,
    DifficultySelection,
    FinalSelection,
    Performance,
)
from libs.domain_types import DIFFICULTY_ORDER, DifficultyLevel, QuizMode

logger = logging.getLogger(__name__)


def _key(value: Any) -> str:
    return str(getattr(value, "value", value))


def build_final_selection(
    questions: Sequence[Any], target: Mapping[DifficultyLevel, int]
) -> FinalSelection:
    """Aggregate figures over the selected questions."""
    difficulty_actual = {d.value: 0 for d in DIFFICULTY_ORDER}
    themes: Counter = Counter()
    subjects: Counter = Counter()
    last_used = []
    for question in questions:
        difficulty_actual[_key(question.difficulty)] += 1
        themes.update(_key(t) for t in (question.themes or []))
        subjects.update(_key(s) for s in (question.subjects or []))
        if question.last_used_at is not None:
            last_used.append(ensure_timezone_aware(question.last_used_at))

    average_exposure = 0.0
    if questions:
        average_exposure = sum(q.exposure_count or 0 for q in questions) / len(questions)

    return FinalSelection(
        total_questions=len(questions),
        difficulty_actual=difficulty_actual,
        difficulty_target={_key(d): count for d, count in target.items()},
        theme_distribution=dict(themes),
        subject_distribution=dict(subjects),
        average_exposure=average_exposure,
        oldest_last_used=min(last_used) if last_used else None,
        newest_last_used=max(last_used) if last_used else None,
    )


def build_success_log(
    *,
    target_date: date,
    mode: QuizMode,
    theme_plan: Dict[str, Any],
    selection_process: List[DifficultySelection],
    final_selection: FinalSelection,
    warnings: List[str],
    fallbacks: List[str],
    performance: Performance,
    daily_quiz_id: Optional[str] = None,
) -> CompositionLogRecord:
    return CompositionLogRecord(
        target_date=target_date,
        mode=_key(mode),
        theme_plan=theme_plan,
        selection_process=selection_process,
        final_selection=final_selection,
        warnings=list(warnings),
        fallbacks=list(fallbacks),
        performance=performance,
        has_errors=False,
        daily_quiz_id=daily_quiz_id,
    )


def build_error_log(
    *,
    target_date: date,
    mode: QuizMode,
    error: BaseException,
    performance: Performance,
    theme_plan: Optional[Dict[str, Any]] = None,
    selection_process: Optional[List[DifficultySelection]] = None,
    warnings: Optional[List[str]] = None,
    fallbacks: Optional[List[str]] = None,
    daily_quiz_id: Optional[str] = None,
) -> CompositionLogRecord:
    """Log for a failed run. Keeps whatever was gathered before the failure."""
    return CompositionLogRecord(
        target_date=target_date,
        mode=_key(mode),
        theme_plan=theme_plan,
        selection_process=selection_process or [],
        final_selection=None,
        warnings=list(warnings or []),
        fallbacks=list(fallbacks or []),
        performance=performance,
        has_errors=True,
        error_message=str(error) or type(error).__name__,
        daily_quiz_id=daily_quiz_id,
    )


def max_relaxation_level(log: CompositionLogRecord) -> int:
    """Highest relaxation level any difficulty needed (0 if none ran)."""
    return max((step.relaxation_level for step in log.selection_process), default=0)


def log_average_exposure(log: CompositionLogRecord) -> float:
    if log.final_selection is None:
        return 0.0
    return log.final_selection.average_exposure


def log_theme_distribution(log: CompositionLogRecord) -> Dict[str, int]:
    if log.final_selection is None:
        return {}
    return dict(log.final_selection.theme_distribution)


def to_model(log: CompositionLogRecord) -> CompositionLog:
    data = log.model_dump(mode="json")
    return CompositionLog(
        target_date=log.target_date,
        mode=QuizMode(log.mode),
        theme_plan=data["theme_plan"],
        selection_process=data["selection_process"],
        final_selection=data["final_selection"],
        warnings=data["warnings"],
        fallbacks=data["fallbacks"],
        performance=data["performance"],
        has_errors=log.has_errors,
        error_message=log.error_message,
        daily_quiz_id=log.daily_quiz_id,
    )


def from_model(row: CompositionLog) -> CompositionLogRecord:
    return CompositionLogRecord(
        target_date=row.target_date,
        mode=_key(row.mode),
        theme_plan=row.theme_plan,
        selection_process=row.selection_process or [],
        final_selection=row.final_selection,
        warnings=row.warnings or [],
        fallbacks=row.fallbacks or [],
        performance=row.performance or {},
        has_errors=bool(row.has_errors),
        error_message=row.error_message,
        daily_quiz_id=row.daily_quiz_id,
    )


def save_composition_log(db: Session, log: CompositionLogRecord) -> Optional[CompositionLog]:
    """Persist ``log``. Returns the row, or None if the write failed."""
    row = None
    with graceful_failure(
        "save composition log",
        logger,
        log_level=logging.ERROR,
        context={"target_date": log.target_date.isoformat()},
    ):
        try:
            row = to_model(log)
            db.add(row)
            db.commit()
        except Exception:
            db.rollback()
            row = None
            raise
    return row
