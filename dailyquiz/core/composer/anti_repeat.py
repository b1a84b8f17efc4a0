"""
Anti-repeat selection with progressive relaxation.

Questions used recently are held back for a number of days that shrinks with
each relaxation level (30, 21, 14, 10, 7 by default). Past the end of the
schedule there is no day threshold at all: that is the emergency level. At
the strict level (0) overexposed questions are also held back.

Within the eligible pool candidates are ordered least exposed first, then
least recently used (never-used first), then randomly. The random tiebreak
comes from an injectable random.Random so runs can be made deterministic.
"""
import logging
import random
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from dailyquiz.core.composer.config import (
    DEFAULT_MAX_EXPOSURE_COUNT,
    DEFAULT_RELAXATION_SCHEDULE,
    day_threshold,
)
from dailyquiz.core.composer.filters import (
    SelectionCriteria,
    build_filter,
    order_candidates,
)
from dailyquiz.core.datetime_utils import start_of_day_utc, whole_days_between
from dailyquiz.repositories.question_pool import QuestionPool
from libs.domain_types import DifficultyLevel

logger = logging.getLogger(__name__)


@dataclass
class AntiRepeatInfo:
    """Eligibility of one question at one relaxation level."""

    days_since_last_used: Optional[int]
    exposure_count: int
    is_eligible: bool
    relaxation_level: int
    reason: Optional[str] = None


def reference_time_for(target: Union[date, datetime]) -> datetime:
    """Anti-repeat reference point: midnight UTC of the target date."""
    if isinstance(target, datetime):
        return target
    return start_of_day_utc(target)


def eligibility(
    question: Any,
    target_date: Union[date, datetime],
    relaxation_level: int = 0,
    *,
    schedule: Tuple[int, ...] = DEFAULT_RELAXATION_SCHEDULE,
    max_exposure_count: Optional[int] = None,
) -> AntiRepeatInfo:
    """Decide whether ``question`` may be used on ``target_date`` at a level.

    Args:
        question: Anything with last_used_at and exposure_count attributes.
        target_date: Quiz date (midnight UTC) or an explicit reference time.
        relaxation_level: 0 is strictest; levels past the schedule have no
            day threshold.
        schedule: Day thresholds per level.
        max_exposure_count: Strict-level exposure cap (defaults to 10).
    """
    reference = reference_time_for(target_date)
    exposure = question.exposure_count or 0
    days_since = None
    if question.last_used_at is not None:
        days_since = whole_days_between(question.last_used_at, reference)

    threshold = day_threshold(relaxation_level, schedule) or 0
    cap = DEFAULT_MAX_EXPOSURE_COUNT if max_exposure_count is None else max_exposure_count

    if days_since is not None and days_since < threshold:
        return AntiRepeatInfo(
            days_since_last_used=days_since,
            exposure_count=exposure,
            is_eligible=False,
            relaxation_level=relaxation_level,
            reason=f"Used {days_since} days ago, threshold is {threshold} days",
        )

    if relaxation_level == 0 and exposure > cap:
        return AntiRepeatInfo(
            days_since_last_used=days_since,
            exposure_count=exposure,
            is_eligible=False,
            relaxation_level=relaxation_level,
            reason=f"Overexposed ({exposure} times), prefer less exposed questions",
        )

    return AntiRepeatInfo(
        days_since_last_used=days_since,
        exposure_count=exposure,
        is_eligible=True,
        relaxation_level=relaxation_level,
    )


class AntiRepeatSelector:
    """Eligible-pool queries and usage commits over a QuestionPool."""

    def __init__(
        self,
        pool: QuestionPool,
        *,
        schedule: Tuple[int, ...] = DEFAULT_RELAXATION_SCHEDULE,
        max_exposure_count: int = DEFAULT_MAX_EXPOSURE_COUNT,
        rng: Optional[random.Random] = None,
    ):
        self.pool = pool
        self.schedule = tuple(schedule)
        self.max_exposure_count = max_exposure_count
        self.rng = rng or random.Random()

    @property
    def emergency_level(self) -> int:
        return len(self.schedule)

    def eligible_pool(
        self,
        criteria: SelectionCriteria,
        relaxation_level: int,
        reference_time: datetime,
    ) -> List[Any]:
        """Eligible questions for ``criteria`` at a level, in selection order."""
        spec = build_filter(
            criteria,
            relaxation_level,
            reference_time,
            schedule=self.schedule,
            default_max_exposure=self.max_exposure_count,
        )
        candidates = order_candidates(self.pool.find(spec), self.rng)
        logger.debug(
            f"Found {len(candidates)} eligible questions for difficulty "
            f"{spec.difficulty.value} at relaxation level {relaxation_level} "
            f"({day_threshold(relaxation_level, self.schedule) or 0} day threshold)"
        )
        return candidates

    def commit_usage(self, question_ids: Iterable[str], used_at: datetime) -> int:
        return self.pool.commit_usage(question_ids, used_at)

    def availability_stats(
        self, difficulty: DifficultyLevel, reference_time: datetime
    ) -> Dict[str, object]:
        return self.pool.availability_stats(difficulty, reference_time, self.schedule)
