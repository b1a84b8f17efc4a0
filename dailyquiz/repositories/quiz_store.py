"""
Persistence for daily quizzes, per-date claims and composition logs.

Write methods commit their own transaction unless noted; the usage commit is
the exception and is bundled with quiz and claim bookkeeping so the three
change together or not at all.
"""
import logging
from datetime import date, datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dailyquiz.core.datetime_utils import utc_now
from dailyquiz.core.errors import CompositionAlreadyClaimedError, QuizNotFoundError
from dailyquiz.models import (
    CompositionClaim,
    CompositionLog,
    DailyQuiz,
    DailyQuizQuestion,
    Question,
)
from dailyquiz.repositories.question_pool import QuestionPool
from libs.domain_types import ClaimStatus, QuizMode

logger = logging.getLogger(__name__)


class QuizStore:
    def __init__(self, db: Session):
        self.db = db

    # --- Claims ---------------------------------------------------------

    def claim(self, target_date: date, run_id: str) -> CompositionClaim:
        """Insert the claim row for ``target_date`` or fail if one exists.

        Raises:
            CompositionAlreadyClaimedError: Another run holds (or held) the date.
        """
        existing = self.get_claim(target_date)
        if existing is not None:
            raise CompositionAlreadyClaimedError(target_date, existing.run_id)

        claim = CompositionClaim(
            target_date=target_date,
            run_id=run_id,
            status=ClaimStatus.CLAIMED,
            claimed_at=utc_now(),
        )
        self.db.add(claim)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost the race to a concurrent run between the check and the insert
            self.db.rollback()
            existing = self.get_claim(target_date)
            raise CompositionAlreadyClaimedError(
                target_date, existing.run_id if existing else None
            )
        logger.info(f"Claimed composition for {target_date.isoformat()} (run {run_id})")
        return claim

    def get_claim(self, target_date: date) -> Optional[CompositionClaim]:
        return self.db.get(CompositionClaim, target_date)

    def release_claim(self, target_date: date) -> None:
        """Delete the claim so the date can be composed again."""
        claim = self.get_claim(target_date)
        if claim is not None:
            self.db.delete(claim)
            self.db.commit()
            logger.info(f"Released composition claim for {target_date.isoformat()}")

    def finish_claim(
        self, target_date: date, status: ClaimStatus, *, commit: bool = True
    ) -> None:
        claim = self.get_claim(target_date)
        if claim is None:
            return
        claim.status = status
        claim.finished_at = utc_now()
        if commit:
            self.db.commit()

    # --- Quizzes --------------------------------------------------------

    def get_quiz(self, quiz_id: str) -> DailyQuiz:
        quiz = self.db.get(DailyQuiz, quiz_id)
        if quiz is None:
            raise QuizNotFoundError(quiz_id)
        return quiz

    def get_quiz_by_date(self, target_date: date) -> Optional[DailyQuiz]:
        return (
            self.db.query(DailyQuiz).filter(DailyQuiz.target_date == target_date).first()
        )

    def create_quiz(
        self,
        *,
        quiz_id: str,
        target_date: date,
        drop_at_utc: datetime,
        mode: QuizMode,
        theme_plan: dict,
        questions: Sequence[Question],
    ) -> DailyQuiz:
        """Store the quiz and its selected question set (unpublished)."""
        quiz = DailyQuiz(
            id=quiz_id,
            target_date=target_date,
            drop_at_utc=drop_at_utc,
            mode=QuizMode(mode),
            theme_plan=theme_plan,
            template_version=1,
        )
        for index, question in enumerate(questions):
            quiz.questions.append(
                DailyQuizQuestion(
                    question_id=question.id,
                    difficulty=question.difficulty,
                    question_type=question.question_type,
                    selection_index=index,
                )
            )
        self.db.add(quiz)
        self.db.commit()
        return quiz

    def selected_question_ids(self, quiz: DailyQuiz) -> List[str]:
        return [
            row.question_id
            for row in sorted(quiz.questions, key=lambda r: r.selection_index)
        ]

    def mark_published(
        self,
        quiz: DailyQuiz,
        *,
        version: int,
        key: str,
        url: str,
        published_at: datetime,
    ) -> None:
        quiz.template_version = version
        quiz.template_key = key
        quiz.template_url = url
        quiz.published_at = published_at
        self.db.commit()

    def commit_usage(
        self, quiz: DailyQuiz, pool: QuestionPool, used_at: datetime
    ) -> bool:
        """Apply the usage update for the quiz's question set exactly once.

        Updates exposure, stamps usage_committed_at and completes the claim
        in one transaction.

        Returns:
            True if usage was committed now, False if it already had been.
        """
        if quiz.usage_committed_at is not None:
            self.finish_claim(quiz.target_date, ClaimStatus.COMPLETED)
            return False
        try:
            pool.commit_usage(self.selected_question_ids(quiz), used_at)
            quiz.usage_committed_at = used_at
            self.finish_claim(quiz.target_date, ClaimStatus.COMPLETED, commit=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return True

    def list_unpublished(self, since: datetime) -> List[DailyQuiz]:
        """Unpublished quizzes whose drop time is at or after ``since``."""
        return (
            self.db.query(DailyQuiz)
            .filter(
                DailyQuiz.published_at.is_(None),
                DailyQuiz.drop_at_utc >= since,
            )
            .order_by(DailyQuiz.drop_at_utc)
            .all()
        )

    def list_usage_pending(self) -> List[DailyQuiz]:
        """Published quizzes whose usage update never went through."""
        return (
            self.db.query(DailyQuiz)
            .filter(
                DailyQuiz.published_at.isnot(None),
                DailyQuiz.usage_committed_at.is_(None),
            )
            .order_by(DailyQuiz.drop_at_utc)
            .all()
        )

    def count_quizzes(self) -> int:
        return self.db.query(DailyQuiz).count()

    def recent_quizzes(self, since: datetime, limit: int = 20) -> List[DailyQuiz]:
        return (
            self.db.query(DailyQuiz)
            .filter(DailyQuiz.drop_at_utc > since)
            .order_by(DailyQuiz.drop_at_utc.desc())
            .limit(limit)
            .all()
        )

    def list_quizzes(self, limit: int = 10, offset: int = 0) -> List[DailyQuiz]:
        return (
            self.db.query(DailyQuiz)
            .order_by(DailyQuiz.created_at.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    # --- Logs -----------------------------------------------------------

    def recent_logs(self, since: datetime, limit: int = 100) -> List[CompositionLog]:
        return (
            self.db.query(CompositionLog)
            .filter(CompositionLog.created_at > since)
            .order_by(CompositionLog.created_at.desc(), CompositionLog.id.desc())
            .limit(limit)
            .all()
        )

    def logs_for_date(self, target_date: date) -> List[CompositionLog]:
        return (
            self.db.query(CompositionLog)
            .filter(CompositionLog.target_date == target_date)
            .order_by(CompositionLog.id)
            .all()
        )
