"""
Database models for the daily quiz composer.

The question pool is owned by the admin flow; the composer only reads it and,
after a successful publish, bumps exposure_count / last_used_at. Everything
else here is written by composition runs.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from libs.domain_types import ClaimStatus, DifficultyLevel, QuestionType, QuizMode

from .base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Question(Base):
    """A trivia question in the shared pool."""

    __tablename__ = "questions"

    id = Column(String(36), primary_key=True, default=_new_id)
    question_type = Column(Enum(QuestionType), nullable=False)
    difficulty = Column(Enum(DifficultyLevel), nullable=False, index=True)
    themes = Column(JSON, nullable=False, default=list)  # Unordered theme tags
    subjects = Column(JSON, nullable=False, default=list)  # Albums, eras, people...

    # Client-visible content; shape of prompt depends on question_type
    prompt = Column(JSON, nullable=False)
    choices = Column(JSON, nullable=True)
    media = Column(JSON, nullable=True)

    # Correctness data: read by scorers by id, never published
    correct_answer = Column(JSON, nullable=True)
    explanation = Column(Text, nullable=True)

    approved = Column(Boolean, default=False, nullable=False)
    disabled = Column(Boolean, default=False, nullable=False)

    # Anti-repeat bookkeeping, updated only by the post-publish usage commit
    exposure_count = Column(Integer, default=0, nullable=False)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now, nullable=False
    )

    __table_args__ = (
        CheckConstraint("exposure_count >= 0", name="ck_questions_exposure_nonneg"),
        Index("ix_questions_pool", "difficulty", "approved", "disabled"),
    )

    def __repr__(self) -> str:
        return (
            f"<Question(id={self.id}, type={self.question_type}, "
            f"difficulty={self.difficulty}, exposure={self.exposure_count})>"
        )


class DailyQuiz(Base):
    """The quiz for one calendar date."""

    __tablename__ = "daily_quizzes"

    id = Column(String(36), primary_key=True, default=_new_id)
    target_date = Column(Date, nullable=False, unique=True)
    drop_at_utc = Column(DateTime(timezone=True), nullable=False)
    mode = Column(Enum(QuizMode), nullable=False)
    theme_plan = Column(JSON, nullable=False)

    # Artifact bookkeeping. version counts successful publishes; the key/url
    # stay NULL until the first one succeeds.
    template_version = Column(Integer, default=1, nullable=False)
    template_key = Column(String(500), nullable=True)
    template_url = Column(String(1000), nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    # Set once, in the same transaction as the exposure update
    usage_committed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)

    questions = relationship(
        "DailyQuizQuestion",
        back_populates="daily_quiz",
        cascade="all, delete-orphan",
        order_by="DailyQuizQuestion.selection_index",
    )

    __table_args__ = (
        CheckConstraint("template_version >= 1", name="ck_daily_quizzes_version_pos"),
    )

    def __repr__(self) -> str:
        return (
            f"<DailyQuiz(id={self.id}, date={self.target_date}, "
            f"version={self.template_version})>"
        )


class DailyQuizQuestion(Base):
    """Membership of a question in a daily quiz (the selected set)."""

    __tablename__ = "daily_quiz_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    daily_quiz_id = Column(
        String(36), ForeignKey("daily_quizzes.id", ondelete="CASCADE"), nullable=False
    )
    question_id = Column(String(36), ForeignKey("questions.id"), nullable=False)
    difficulty = Column(Enum(DifficultyLevel), nullable=False)
    question_type = Column(Enum(QuestionType), nullable=False)
    selection_index = Column(Integer, nullable=False)

    daily_quiz = relationship("DailyQuiz", back_populates="questions")
    question = relationship("Question")

    __table_args__ = (
        UniqueConstraint("daily_quiz_id", "question_id", name="uq_daily_quiz_question"),
    )


class CompositionClaim(Base):
    """Per-date single-writer claim. Inserted before any work starts."""

    __tablename__ = "composition_claims"

    target_date = Column(Date, primary_key=True)
    run_id = Column(String(64), nullable=False)
    status = Column(Enum(ClaimStatus), nullable=False, default=ClaimStatus.CLAIMED)
    claimed_at = Column(DateTime(timezone=True), default=_utc_now, nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=True)


class CompositionLog(Base):
    """Audit record of one composition run, successful or not."""

    __tablename__ = "composition_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    target_date = Column(Date, nullable=False, index=True)
    mode = Column(Enum(QuizMode), nullable=False)
    theme_plan = Column(JSON, nullable=True)
    selection_process = Column(JSON, nullable=False, default=list)
    final_selection = Column(JSON, nullable=True)
    warnings = Column(JSON, nullable=False, default=list)
    fallbacks = Column(JSON, nullable=False, default=list)
    performance = Column(JSON, nullable=False, default=dict)
    has_errors = Column(Boolean, default=False, nullable=False)
    error_message = Column(Text, nullable=True)
    daily_quiz_id = Column(
        String(36), ForeignKey("daily_quizzes.id", ondelete="SET NULL"), nullable=True
    )
    created_at = Column(
        DateTime(timezone=True), default=_utc_now, nullable=False, index=True
    )
