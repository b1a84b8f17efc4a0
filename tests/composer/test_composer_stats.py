"""
Tests for composition stats and system health.
"""
import random
from datetime import datetime, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from dailyquiz.core.composer.config import ComposerConfig
from dailyquiz.core.composer.orchestrator import CompositionOrchestrator
from dailyquiz.core.composer.stats import (
    get_composition_stats,
    get_system_health,
    list_recent_compositions,
)

# Noon on the composed date: the quiz counts as recent
NOW = datetime(2025, 3, 12, 12, tzinfo=timezone.utc)


def _compose(db_session, publisher, target_date):
    return CompositionOrchestrator(
        db_session, publisher, config=ComposerConfig(), rng=random.Random(5)
    ).compose_daily_quiz(target_date)


class TestCompositionStats:
    """Tests for get_composition_stats."""

    def test_empty_database(self, db_session):
        """No quizzes and no logs give zeroed stats."""
        stats = get_composition_stats(db_session)

        assert stats == {
            "total_quizzes": 0,
            "average_relaxation_level": 0.0,
            "theme_distribution": {},
            "recent_warnings": [],
            "by_difficulty": {"easy": 0, "medium": 0, "hard": 0},
        }

    def test_warnings_collected_from_recent_logs(self, db_session, make_pool, publisher, target_date):
        """Warnings of recent logs are surfaced."""
        make_pool(10, 8, 0)
        _compose(db_session, publisher, target_date)

        stats = get_composition_stats(db_session)

        assert any("hard" in w for w in stats["recent_warnings"])
        assert stats["by_difficulty"]["hard"] == 0

    def test_unapproved_questions_not_counted(self, db_session, make_question):
        """Pool counts only include approved, enabled questions."""
        make_question(question_id="a")
        make_question(question_id="b", approved=False)

        stats = get_composition_stats(db_session)

        assert stats["by_difficulty"]["easy"] == 1


class TestSystemHealth:
    """Tests for get_system_health."""

    def test_healthy_system(self, db_session, make_pool, publisher, target_date):
        """A deep pool, a recent quiz and a reachable store are healthy."""
        make_pool(10, 6, 3)
        _compose(db_session, publisher, target_date)

        health = get_system_health(db_session, publisher, now=NOW)

        assert health["healthy"] is True
        assert health["issues"] == []
        assert health["question_pool_stats"]["total_quizzes"] == 1
        assert len(health["recent_compositions"]) == 1
        assert health["recent_compositions"][0]["question_count"] == 6

    def test_no_recent_quiz_is_an_issue(self, db_session, make_pool, publisher):
        """Missing compositions in the last week are flagged."""
        make_pool(10, 6, 3)

        health = get_system_health(db_session, publisher, now=NOW)

        assert health["healthy"] is False
        assert health["issues"] == ["No recent quiz compositions found"]
        assert health["recommendations"] == ["Ensure daily quiz composition is running"]

    def test_thin_pool_is_an_issue(self, db_session, make_pool):
        """Each difficulty below its minimum is reported."""
        make_pool(9, 5, 2)

        health = get_system_health(db_session, now=NOW)

        assert "Low easy question count: 9 (minimum: 10)" in health["issues"]
        assert "Low medium question count: 5 (minimum: 6)" in health["issues"]
        assert "Low hard question count: 2 (minimum: 3)" in health["issues"]

    def test_unhealthy_publisher_is_an_issue(
        self, db_session, make_pool, publisher, unhealthy_publisher, target_date
    ):
        """A failing publisher health check makes the system unhealthy."""
        make_pool(10, 6, 3)
        _compose(db_session, publisher, target_date)

        health = get_system_health(db_session, unhealthy_publisher, now=NOW)

        assert health["healthy"] is False
        assert health["issues"] == ["Publisher unhealthy: store down"]

    def test_database_error_reported_not_raised(self):
        """Database failures come back as an unhealthy report."""
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("connection refused"))

        health = get_system_health(db, now=NOW)

        assert health["healthy"] is False
        assert health["issues"][0].startswith("Health check failed:")
        assert health["question_pool_stats"] is None
        assert health["recent_compositions"] == []


class TestRecentCompositions:
    """Tests for list_recent_compositions."""

    def test_lists_newest_first_with_paging(self, db_session, make_pool, publisher, target_date):
        """Summaries include publish state and question counts."""
        make_pool(10, 8, 5)
        result = _compose(db_session, publisher, target_date)

        listed = list_recent_compositions(db_session, limit=5)

        assert [c["id"] for c in listed] == [result.daily_quiz.id]
        assert listed[0]["published"] is True
        assert list_recent_compositions(db_session, limit=5, offset=1) == []
