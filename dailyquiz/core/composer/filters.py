"""
Pool filtering and candidate ordering.

build_filter turns selection criteria plus a relaxation level into a typed,
immutable FilterSpec. The same spec drives both the SQL query in the pool
adapter and the pure question_matches predicate, so the two can never
disagree about eligibility.
"""
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, FrozenSet, Iterable, List, Optional, Sequence, Set, Tuple

from dailyquiz.core.composer.config import (
    DEFAULT_MAX_EXPOSURE_COUNT,
    DEFAULT_RELAXATION_SCHEDULE,
    day_threshold,
)
from dailyquiz.core.datetime_utils import ensure_timezone_aware
from libs.domain_types import DifficultyLevel


@dataclass
class SelectionCriteria:
    """What the orchestrator asks the pool for at one step."""

    difficulty: DifficultyLevel
    exclude_question_ids: Set[str] = field(default_factory=set)
    preferred_themes: Optional[List[str]] = None
    subject_diversity: Optional[List[str]] = None
    max_exposure_count: Optional[int] = None


@dataclass(frozen=True)
class FilterSpec:
    """Pool predicate for one query. None/empty fields do not filter."""

    difficulty: DifficultyLevel
    exclude_ids: FrozenSet[str] = frozenset()
    last_used_cutoff: Optional[datetime] = None
    max_exposure_count: Optional[int] = None
    any_of_themes: FrozenSet[str] = frozenset()
    none_of_subjects: FrozenSet[str] = frozenset()
    approved: bool = True
    disabled: bool = False


def build_filter(
    criteria: SelectionCriteria,
    relaxation_level: int,
    reference_time: datetime,
    *,
    schedule: Tuple[int, ...] = DEFAULT_RELAXATION_SCHEDULE,
    default_max_exposure: int = DEFAULT_MAX_EXPOSURE_COUNT,
) -> FilterSpec:
    """Build the pool filter for a relaxation level.

    A question last used exactly ``threshold`` days before the reference time
    passes the cutoff; anything more recent does not. The exposure cap only
    applies at level 0.
    """
    threshold = day_threshold(relaxation_level, schedule)
    cutoff = None
    if threshold:
        cutoff = ensure_timezone_aware(reference_time) - timedelta(days=threshold)

    max_exposure = None
    if relaxation_level == 0:
        max_exposure = (
            criteria.max_exposure_count
            if criteria.max_exposure_count is not None
            else default_max_exposure
        )

    return FilterSpec(
        difficulty=DifficultyLevel(criteria.difficulty),
        exclude_ids=frozenset(criteria.exclude_question_ids),
        last_used_cutoff=cutoff,
        max_exposure_count=max_exposure,
        any_of_themes=frozenset(criteria.preferred_themes or ()),
        none_of_subjects=frozenset(criteria.subject_diversity or ()),
    )


def _as_strings(values: Optional[Iterable[Any]]) -> Set[str]:
    return {str(getattr(v, "value", v)) for v in (values or ())}


def question_matches(spec: FilterSpec, question: Any) -> bool:
    """Pure predicate equivalent of the pool query for ``spec``."""
    if bool(question.approved) != spec.approved:
        return False
    if bool(question.disabled) != spec.disabled:
        return False
    if DifficultyLevel(question.difficulty) != spec.difficulty:
        return False
    if question.id in spec.exclude_ids:
        return False
    if spec.last_used_cutoff is not None and question.last_used_at is not None:
        if ensure_timezone_aware(question.last_used_at) > spec.last_used_cutoff:
            return False
    if spec.max_exposure_count is not None:
        if (question.exposure_count or 0) > spec.max_exposure_count:
            return False
    if spec.any_of_themes and not (_as_strings(question.themes) & spec.any_of_themes):
        return False
    if spec.none_of_subjects and (_as_strings(question.subjects) & spec.none_of_subjects):
        return False
    return True


def order_candidates(
    questions: Sequence[Any], rng: Optional[random.Random] = None
) -> List[Any]:
    """Order eligible questions for selection.

    exposure_count ascending, then last_used_at ascending with never-used
    questions first, then a random tiebreak drawn from ``rng``. With a seeded
    rng and the same input order the result is identical across calls.
    """
    rng = rng or random.Random()
    keyed = []
    for index, question in enumerate(questions):
        last_used = question.last_used_at
        key = (
            question.exposure_count or 0,
            last_used is not None,
            ensure_timezone_aware(last_used).timestamp() if last_used is not None else 0.0,
            rng.random(),
            index,
        )
        keyed.append((key, question))
    keyed.sort(key=lambda pair: pair[0])
    return [question for _, question in keyed]
