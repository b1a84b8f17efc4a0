"""
Pytest configuration and shared fixtures for testing.
"""
import random
import uuid
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dailyquiz.core.composer.config import ComposerConfig
from dailyquiz.core.errors import PublishError
from dailyquiz.models import Base, Question
from dailyquiz.publishing.base import ArtifactPublisher, HealthStatus, PublishResult
from libs.domain_types import DifficultyLevel, QuestionType

# Use SQLite for tests. The path is relative to this file so the .db lands
# inside tests/ regardless of the working directory.
_TEST_DB = Path(__file__).parent / "test.db"
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DB}"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixed quiz date used across tests (a Wednesday)
TARGET_DATE = date(2025, 3, 12)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database for each test.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(db_session):
    """Session factory bound to the test database (for jobs)."""
    return TestingSessionLocal


@pytest.fixture
def target_date() -> date:
    return TARGET_DATE


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source for deterministic selection."""
    return random.Random(1234)


@pytest.fixture
def composer_config() -> ComposerConfig:
    return ComposerConfig()


@pytest.fixture
def make_question(db_session):
    """
    Factory for stored questions.

    Defaults produce an approved, never-used guess-by-lyric question carrying
    answer data that must never reach a template.
    """

    def _make(
        difficulty: DifficultyLevel = DifficultyLevel.EASY,
        *,
        question_id: Optional[str] = None,
        question_type: QuestionType = QuestionType.GUESS_BY_LYRIC,
        themes: Optional[List[str]] = None,
        subjects: Optional[List[str]] = None,
        prompt: Optional[Dict] = None,
        choices: Optional[List] = None,
        approved: bool = True,
        disabled: bool = False,
        exposure_count: int = 0,
        last_used_at: Optional[datetime] = None,
        commit: bool = True,
    ) -> Question:
        question = Question(
            id=question_id or str(uuid.uuid4()),
            question_type=question_type,
            difficulty=difficulty,
            themes=themes if themes is not None else ["lyrics"],
            subjects=subjects if subjects is not None else [],
            prompt=prompt
            or {
                "task": "Which song is this lyric from?",
                "lyric": "We are never ever getting back together",
                "internalNotes": "easy one",
                "scoringHints": {"partial": False},
            },
            choices=choices if choices is not None else ["A", "B", "C", "D"],
            correct_answer={"correct": "A"},
            explanation="It is from Red.",
            approved=approved,
            disabled=disabled,
            exposure_count=exposure_count,
            last_used_at=last_used_at,
        )
        db_session.add(question)
        if commit:
            db_session.commit()
        return question

    return _make


@pytest.fixture
def make_pool(make_question, db_session):
    """Factory for a pool with the given number of questions per difficulty."""

    def _make(easy: int = 0, medium: int = 0, hard: int = 0, **kwargs) -> List[Question]:
        created = []
        for difficulty, count in (
            (DifficultyLevel.EASY, easy),
            (DifficultyLevel.MEDIUM, medium),
            (DifficultyLevel.HARD, hard),
        ):
            for index in range(count):
                created.append(
                    make_question(
                        difficulty,
                        question_id=f"{difficulty.value}-{index:03d}",
                        commit=False,
                        **kwargs,
                    )
                )
        db_session.commit()
        return created

    return _make


def _days_ago(reference: date, days: int) -> datetime:
    midnight = datetime(reference.year, reference.month, reference.day, tzinfo=timezone.utc)
    return midnight - timedelta(days=days)


class RecordingPublisher(ArtifactPublisher):
    """In-memory publisher that records uploads and deletes."""

    def __init__(self, healthy: bool = True, fail_uploads: bool = False):
        super().__init__("https://cdn.test")
        self.healthy = healthy
        self.fail_uploads = fail_uploads
        self.uploads: Dict[str, bytes] = {}
        self.deleted: List[str] = []
        self._counter = 0

    def generate_key(self, quiz_id, version, on=None):
        # Millisecond timestamps can collide within one test
        self._counter += 1
        return f"{super().generate_key(quiz_id, version, on)}.{self._counter}"

    def upload(self, key: str, content: bytes) -> PublishResult:
        if self.fail_uploads:
            raise PublishError(key, ConnectionError("object store unreachable"))
        self.uploads[key] = content
        return PublishResult(url=self.public_url(key), key=key)

    def health_check(self) -> HealthStatus:
        if self.healthy:
            return HealthStatus(is_healthy=True, message="ok")
        return HealthStatus(is_healthy=False, message="store down")

    def _delete(self, key: str) -> None:
        self.uploads.pop(key)
        self.deleted.append(key)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def failing_publisher() -> RecordingPublisher:
    return RecordingPublisher(fail_uploads=True)


@pytest.fixture
def unhealthy_publisher() -> RecordingPublisher:
    return RecordingPublisher(healthy=False)


@pytest.fixture
def days_ago():
    """Midnight UTC ``days`` before a reference date."""
    return _days_ago
