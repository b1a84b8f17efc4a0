"""
Composition monitoring: aggregate stats and a system health report.

Both read from the composition logs, the quiz table and the question pool.
The health report never raises; database and publisher problems come back
as issues on an unhealthy report.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dailyquiz.core.composer.composition_log import (
    from_model,
    log_theme_distribution,
    max_relaxation_level,
)
from dailyquiz.core.config import Settings, settings as app_settings
from dailyquiz.core.datetime_utils import ensure_timezone_aware, utc_now
from dailyquiz.publishing.base import ArtifactPublisher
from dailyquiz.repositories.question_pool import QuestionPool
from dailyquiz.repositories.quiz_store import QuizStore
from libs.domain_types import DifficultyLevel

logger = logging.getLogger(__name__)

RECENT_LOG_LIMIT = 100
WARNING_LOG_COUNT = 10
MAX_RECENT_WARNINGS = 20
RECENT_QUIZ_LIMIT = 20


def get_composition_stats(
    db: Session, now: Optional[datetime] = None, source: Optional[Settings] = None
) -> Dict[str, Any]:
    """Totals and trends over recent composition runs.

    Returns:
        Dict with total_quizzes, average_relaxation_level (over up to 100 logs
        from the lookback window, 2 dp), theme_distribution (summed),
        recent_warnings (up to 20, from the 10 newest logs) and by_difficulty
        (approved, enabled pool size per difficulty).
    """
    source = source or app_settings
    now = ensure_timezone_aware(now or utc_now())
    store = QuizStore(db)
    pool = QuestionPool(db)

    total_quizzes = store.count_quizzes()
    by_difficulty = {
        difficulty.value: count for difficulty, count in pool.count_by_difficulty().items()
    }

    since = now - timedelta(days=source.STATS_LOOKBACK_DAYS)
    recent_logs = [from_model(row) for row in store.recent_logs(since, limit=RECENT_LOG_LIMIT)]

    average_relaxation_level = 0.0
    if recent_logs:
        total = sum(max_relaxation_level(log) for log in recent_logs)
        average_relaxation_level = round(total / len(recent_logs), 2)

    theme_distribution: Dict[str, int] = {}
    for log in recent_logs:
        for theme, count in log_theme_distribution(log).items():
            theme_distribution[theme] = theme_distribution.get(theme, 0) + count

    recent_warnings: List[str] = []
    for log in recent_logs[:WARNING_LOG_COUNT]:
        recent_warnings.extend(log.warnings)

    return {
        "total_quizzes": total_quizzes,
        "average_relaxation_level": average_relaxation_level,
        "theme_distribution": theme_distribution,
        "recent_warnings": recent_warnings[:MAX_RECENT_WARNINGS],
        "by_difficulty": by_difficulty,
    }


def _composition_summary(quiz) -> Dict[str, Any]:
    return {
        "id": quiz.id,
        "target_date": quiz.target_date.isoformat(),
        "drop_at_utc": ensure_timezone_aware(quiz.drop_at_utc).isoformat(),
        "mode": quiz.mode.value,
        "question_count": len(quiz.questions),
        "template_version": quiz.template_version,
        "published": quiz.published_at is not None,
    }


def list_recent_compositions(db: Session, limit: int = 10, offset: int = 0) -> List[Dict[str, Any]]:
    """Newest quizzes first, for dashboards."""
    return [_composition_summary(quiz) for quiz in QuizStore(db).list_quizzes(limit, offset)]


def get_system_health(
    db: Session,
    publisher: Optional[ArtifactPublisher] = None,
    now: Optional[datetime] = None,
    source: Optional[Settings] = None,
) -> Dict[str, Any]:
    """Pool depth, recent activity and publisher reachability."""
    source = source or app_settings
    now = ensure_timezone_aware(now or utc_now())
    issues: List[str] = []
    recommendations: List[str] = []

    try:
        stats = get_composition_stats(db, now=now, source=source)

        minimums = {
            DifficultyLevel.EASY: source.HEALTH_MIN_EASY,
            DifficultyLevel.MEDIUM: source.HEALTH_MIN_MEDIUM,
            DifficultyLevel.HARD: source.HEALTH_MIN_HARD,
        }
        for difficulty, minimum in minimums.items():
            count = stats["by_difficulty"].get(difficulty.value, 0)
            if count < minimum:
                issues.append(
                    f"Low {difficulty.value} question count: {count} (minimum: {minimum})"
                )
                recommendations.append(f"Add more {difficulty.value} questions to the pool")

        since = now - timedelta(days=source.HEALTH_RECENT_DAYS)
        recent_quizzes = QuizStore(db).recent_quizzes(since, limit=RECENT_QUIZ_LIMIT)
        if not recent_quizzes:
            issues.append("No recent quiz compositions found")
            recommendations.append("Ensure daily quiz composition is running")
        recent_compositions = [_composition_summary(quiz) for quiz in recent_quizzes]
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        db.rollback()
        return {
            "healthy": False,
            "issues": issues + [f"Health check failed: {e}"],
            "recommendations": ["Check database connectivity and service configuration"],
            "last_check": now.isoformat(),
            "question_pool_stats": None,
            "recent_compositions": [],
        }

    if publisher is not None:
        health = publisher.health_check()
        if not health.is_healthy:
            issues.append(f"Publisher unhealthy: {health.message}")
            recommendations.append("Check object store credentials and connectivity")

    return {
        "healthy": not issues,
        "issues": issues,
        "recommendations": recommendations,
        "last_check": now.isoformat(),
        "question_pool_stats": stats,
        "recent_compositions": recent_compositions,
    }
