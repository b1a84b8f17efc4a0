"""
Question pool adapter.

Translates a FilterSpec into a SQL query for the columnar predicates
(approval, difficulty, exclusions, anti-repeat cutoff, exposure cap) and
applies the JSON membership predicates (themes, subjects) in Python with the
same question_matches used everywhere else. Rows come back ordered by id so
that candidate ordering downstream depends only on the injected rng.
"""
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from dailyquiz.core.composer.config import DEFAULT_RELAXATION_SCHEDULE
from dailyquiz.core.composer.filters import FilterSpec, question_matches
from dailyquiz.core.datetime_utils import days_before, ensure_timezone_aware
from dailyquiz.models import Question
from libs.domain_types import DIFFICULTY_ORDER, DifficultyLevel

logger = logging.getLogger(__name__)


class QuestionPool:
    """Read access to the shared pool plus the post-publish usage update.

    Attributes:
        query_count: Number of statements issued through this adapter, reported
            as db_queries in the composition log.
    """

    def __init__(self, db: Session):
        self.db = db
        self.query_count = 0

    def _eligible_base(self, difficulty: DifficultyLevel):
        return self.db.query(Question).filter(
            Question.approved == True,  # noqa: E712
            Question.disabled == False,  # noqa: E712
            Question.difficulty == DifficultyLevel(difficulty),
        )

    def find(self, spec: FilterSpec) -> List[Question]:
        """Return every question matching ``spec``, ordered by id."""
        query = self.db.query(Question).filter(
            Question.approved == spec.approved,
            Question.disabled == spec.disabled,
            Question.difficulty == spec.difficulty,
        )
        if spec.exclude_ids:
            query = query.filter(~Question.id.in_(sorted(spec.exclude_ids)))
        if spec.last_used_cutoff is not None:
            query = query.filter(
                or_(
                    Question.last_used_at.is_(None),
                    Question.last_used_at <= spec.last_used_cutoff,
                )
            )
        if spec.max_exposure_count is not None:
            query = query.filter(Question.exposure_count <= spec.max_exposure_count)

        self.query_count += 1
        rows = query.order_by(Question.id).all()
        return [q for q in rows if question_matches(spec, q)]

    def count_available(self, difficulty: DifficultyLevel) -> int:
        """Approved, enabled questions of one difficulty, ignoring anti-repeat."""
        self.query_count += 1
        return self._eligible_base(difficulty).count()

    def count_by_difficulty(self) -> Dict[DifficultyLevel, int]:
        """Approved, enabled questions per difficulty (zero-filled)."""
        self.query_count += 1
        rows = (
            self.db.query(Question.difficulty, func.count(Question.id))
            .filter(
                Question.approved == True,  # noqa: E712
                Question.disabled == False,  # noqa: E712
            )
            .group_by(Question.difficulty)
            .all()
        )
        counts = {difficulty: 0 for difficulty in DIFFICULTY_ORDER}
        for difficulty, count in rows:
            counts[DifficultyLevel(difficulty)] = count
        return counts

    def get_by_ids(self, question_ids: Sequence[str]) -> List[Question]:
        """Load questions by id, preserving the order of ``question_ids``.

        Missing ids are skipped.
        """
        if not question_ids:
            return []
        self.query_count += 1
        rows = self.db.query(Question).filter(Question.id.in_(list(question_ids))).all()
        by_id = {q.id: q for q in rows}
        return [by_id[qid] for qid in question_ids if qid in by_id]

    def commit_usage(self, question_ids: Iterable[str], used_at: datetime) -> int:
        """Bump exposure and stamp last use for exactly ``question_ids``.

        Issues a single UPDATE. The caller owns the transaction so this can be
        committed together with the quiz bookkeeping.

        Returns:
            Number of rows updated.
        """
        ids = sorted(set(question_ids))
        if not ids:
            return 0
        self.query_count += 1
        result = self.db.execute(
            update(Question)
            .where(Question.id.in_(ids))
            .values(
                exposure_count=Question.exposure_count + 1,
                last_used_at=ensure_timezone_aware(used_at),
            )
            .execution_options(synchronize_session="fetch")
        )
        logger.debug(f"Updated usage tracking for {result.rowcount} questions")
        return result.rowcount

    def availability_stats(
        self,
        difficulty: DifficultyLevel,
        reference_time: datetime,
        schedule: Tuple[int, ...] = DEFAULT_RELAXATION_SCHEDULE,
    ) -> Dict[str, object]:
        """Debugging aid: pool depth for one difficulty at each relaxation level."""
        self.query_count += 1
        total, avg_exposure, oldest = (
            self.db.query(
                func.count(Question.id),
                func.avg(Question.exposure_count),
                func.min(Question.last_used_at),
            )
            .filter(
                Question.approved == True,  # noqa: E712
                Question.disabled == False,  # noqa: E712
                Question.difficulty == DifficultyLevel(difficulty),
            )
            .one()
        )

        available: Dict[int, int] = {}
        for level, threshold in enumerate(schedule):
            cutoff = days_before(reference_time, threshold)
            self.query_count += 1
            available[level] = (
                self._eligible_base(difficulty)
                .filter(
                    or_(
                        Question.last_used_at.is_(None),
                        Question.last_used_at <= cutoff,
                    )
                )
                .count()
            )

        return {
            "total": total or 0,
            "available": available,
            "average_exposure": float(avg_exposure or 0.0),
            "oldest_last_used": ensure_timezone_aware(oldest) if oldest else None,
        }
