"""
Scheduled entry points for daily quiz composition.

Every function here is stateless: it opens its own session, does one unit of
work and returns JobOutcome values. Scheduling belongs to the caller (cron
invoking scripts/run_daily_composition.py and scripts/run_template_retry.py).
"""
import logging
import random
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from dailyquiz.core.composer.anti_repeat import reference_time_for
from dailyquiz.core.composer.config import ComposerConfig
from dailyquiz.core.composer.orchestrator import CompositionOrchestrator
from dailyquiz.core.composer.theme_plan import ThemePlan
from dailyquiz.core.config import Settings, settings as app_settings
from dailyquiz.core.datetime_utils import ensure_timezone_aware, utc_now
from dailyquiz.core.errors import (
    CompositionAlreadyClaimedError,
    CompositionError,
    TemplateValidationError,
)
from dailyquiz.core.logging_config import run_id_context
from dailyquiz.core.templates.builder import QuizMeta, generate_template
from dailyquiz.core.templates.validator import validate_template
from dailyquiz.models import DailyQuiz, SessionLocal
from dailyquiz.observability import capture_error, metrics
from dailyquiz.publishing import ArtifactPublisher, get_publisher
from dailyquiz.repositories.question_pool import QuestionPool
from dailyquiz.repositories.quiz_store import QuizStore
from libs.domain_types import QuizMode

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_SKIPPED = "skipped"
STATUS_FAILED = "failed"

SessionFactory = Callable[[], Session]


@dataclass
class JobOutcome:
    """Result of one job step, suitable for a heartbeat line."""

    target_date: date
    status: str
    quiz_id: Optional[str] = None
    template_url: Optional[str] = None
    template_version: Optional[int] = None
    question_count: int = 0
    usage_committed: bool = False
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != STATUS_FAILED

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["target_date"] = self.target_date.isoformat()
        return data


def compute_drop_time(
    target_date: date,
    rng: Optional[random.Random] = None,
    source: Optional[Settings] = None,
) -> datetime:
    """Random minute inside the local drop window on ``target_date``, in UTC.

    The window is [DROP_WINDOW_START_HOUR, DROP_WINDOW_END_HOUR) in
    DROP_TIMEZONE, so daylight saving is handled by the zone.
    """
    source = source or app_settings
    rng = rng or random.Random()
    window_minutes = (source.DROP_WINDOW_END_HOUR - source.DROP_WINDOW_START_HOUR) * 60
    start = datetime.combine(
        target_date,
        time(hour=source.DROP_WINDOW_START_HOUR),
        tzinfo=ZoneInfo(source.DROP_TIMEZONE),
    )
    local = start + timedelta(minutes=rng.randrange(window_minutes))
    return local.astimezone(timezone.utc)


def run(
    target_date: date,
    mode: Optional[QuizMode] = None,
    *,
    session_factory: SessionFactory = SessionLocal,
    publisher: Optional[ArtifactPublisher] = None,
    config: Optional[ComposerConfig] = None,
    rng: Optional[random.Random] = None,
    run_id: Optional[str] = None,
) -> JobOutcome:
    """Compose and publish the quiz for ``target_date``.

    A date another run already claimed comes back as ``skipped``. Composition
    failures come back as ``failed``; they are already logged, recorded in
    the composition log and sent to Sentry by the orchestrator.
    """
    rng = rng or random.Random()
    publisher = publisher or get_publisher()
    db = session_factory()
    orchestrator = CompositionOrchestrator(
        db, publisher, config=config, rng=rng, run_id=run_id
    )
    token = run_id_context.set(orchestrator.run_id)
    try:
        drop_at = compute_drop_time(target_date, rng)
        result = orchestrator.compose_daily_quiz(target_date, mode, drop_at_utc=drop_at)
        quiz = result.daily_quiz
        return JobOutcome(
            target_date=target_date,
            status=STATUS_COMPLETED,
            quiz_id=quiz.id,
            template_url=quiz.template_url,
            template_version=quiz.template_version,
            question_count=len(result.questions),
            usage_committed=quiz.usage_committed_at is not None,
            warnings=list(result.composition_log.warnings),
        )
    except CompositionAlreadyClaimedError as e:
        logger.info(f"Skipping {target_date.isoformat()}: {e}")
        return JobOutcome(target_date=target_date, status=STATUS_SKIPPED, error=str(e))
    except CompositionError as e:
        return JobOutcome(target_date=target_date, status=STATUS_FAILED, error=str(e))
    finally:
        run_id_context.reset(token)
        db.close()


def run_many(
    target_dates: Sequence[date],
    mode: Optional[QuizMode] = None,
    *,
    max_workers: Optional[int] = None,
    session_factory: SessionFactory = SessionLocal,
    publisher: Optional[ArtifactPublisher] = None,
    config: Optional[ComposerConfig] = None,
    seed: Optional[int] = None,
) -> List[JobOutcome]:
    """Compose several dates concurrently, one session per worker.

    Outcomes are returned in the order of ``target_dates``. With ``seed`` set
    every date gets its own deterministic random source.
    """
    if not target_dates:
        return []
    publisher = publisher or get_publisher()
    workers = max(1, min(max_workers or app_settings.JOB_MAX_WORKERS, len(target_dates)))

    def _run_one(target_date: date) -> JobOutcome:
        rng = random.Random(seed + target_date.toordinal()) if seed is not None else None
        try:
            return run(
                target_date,
                mode,
                session_factory=session_factory,
                publisher=publisher,
                config=config,
                rng=rng,
            )
        except Exception as e:
            logger.exception(f"Unexpected error composing {target_date.isoformat()}")
            return JobOutcome(target_date=target_date, status=STATUS_FAILED, error=str(e))

    logger.info(f"Composing {len(target_dates)} dates with {workers} workers")
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(_run_one, target_dates))


def _rebuild_template(
    quiz: DailyQuiz, store: QuizStore, pool: QuestionPool, version: int
):
    """Template from the quiz's stored question set. Never reselects."""
    questions = pool.get_by_ids(store.selected_question_ids(quiz))
    template = generate_template(
        QuizMeta.from_quiz(quiz, version=version),
        questions,
        ThemePlan.from_dict(quiz.theme_plan),
    )
    validation = validate_template(template)
    if not validation.is_valid:
        raise TemplateValidationError(validation.issues, target_date=quiz.target_date)
    return template, questions


def _retry_quiz(
    orchestrator: CompositionOrchestrator, quiz: DailyQuiz
) -> JobOutcome:
    store = orchestrator.store
    pool = orchestrator.pool
    template, questions = _rebuild_template(quiz, store, pool, quiz.template_version)
    orchestrator.publish(quiz, template)
    committed = store.commit_usage(quiz, pool, reference_time_for(quiz.target_date))
    logger.info(
        f"Retry published quiz {quiz.id} (usage committed now: {committed})",
        extra={"quiz_id": quiz.id, "target_date": quiz.target_date.isoformat()},
    )
    return JobOutcome(
        target_date=quiz.target_date,
        status=STATUS_COMPLETED,
        quiz_id=quiz.id,
        template_url=quiz.template_url,
        template_version=quiz.template_version,
        question_count=len(questions),
        usage_committed=committed,
    )


def _commit_pending_usage(
    orchestrator: CompositionOrchestrator, quiz: DailyQuiz
) -> JobOutcome:
    """Usage-only repair for a quiz that went live without its usage update."""
    store = orchestrator.store
    committed = store.commit_usage(
        quiz, orchestrator.pool, reference_time_for(quiz.target_date)
    )
    logger.warning(
        f"Committed pending usage for published quiz {quiz.id}",
        extra={"quiz_id": quiz.id, "target_date": quiz.target_date.isoformat()},
    )
    return JobOutcome(
        target_date=quiz.target_date,
        status=STATUS_COMPLETED,
        quiz_id=quiz.id,
        template_url=quiz.template_url,
        template_version=quiz.template_version,
        question_count=len(quiz.questions),
        usage_committed=committed,
    )


def retry_unpublished(
    now: Optional[datetime] = None,
    *,
    session_factory: SessionFactory = SessionLocal,
    publisher: Optional[ArtifactPublisher] = None,
    source: Optional[Settings] = None,
) -> List[JobOutcome]:
    """Publish stored quizzes whose earlier upload failed.

    Only quizzes whose drop time is at most RETRY_LOOKBACK_HOURS in the past
    are retried. Usage is committed only if it never was.

    Quizzes that were published but whose usage update failed are also
    picked up, regardless of the lookback. For those only usage is
    committed: nothing is uploaded or reselected.
    """
    source = source or app_settings
    now = ensure_timezone_aware(now or utc_now())
    publisher = publisher or get_publisher()
    since = now - timedelta(hours=source.RETRY_LOOKBACK_HOURS)

    db = session_factory()
    orchestrator = CompositionOrchestrator(db, publisher)
    token = run_id_context.set(orchestrator.run_id)
    outcomes: List[JobOutcome] = []
    try:
        pending = orchestrator.store.list_unpublished(since)
        logger.info(f"Found {len(pending)} unpublished quizzes to retry")
        for quiz in pending:
            try:
                outcomes.append(_retry_quiz(orchestrator, quiz))
            except CompositionError as e:
                db.rollback()
                logger.error(
                    f"Retry failed for quiz {quiz.id}: {e}",
                    extra={"quiz_id": quiz.id, "target_date": quiz.target_date.isoformat()},
                )
                capture_error(
                    e,
                    context={"quiz_id": quiz.id, "target_date": quiz.target_date.isoformat()},
                    tags={"component": "template_retry", "error_type": type(e).__name__},
                )
                metrics.record_error(type(e).__name__)
                outcomes.append(
                    JobOutcome(
                        target_date=quiz.target_date,
                        status=STATUS_FAILED,
                        quiz_id=quiz.id,
                        error=str(e),
                    )
                )

        usage_pending = orchestrator.store.list_usage_pending()
        if usage_pending:
            logger.info(f"Found {len(usage_pending)} published quizzes with pending usage")
        for quiz in usage_pending:
            outcomes.append(_commit_pending_usage(orchestrator, quiz))
    finally:
        run_id_context.reset(token)
        db.close()
    return outcomes


def republish_template(
    quiz_id: str,
    *,
    session_factory: SessionFactory = SessionLocal,
    publisher: Optional[ArtifactPublisher] = None,
) -> JobOutcome:
    """Publish a new version of an already published quiz.

    Bumps the version, uploads under a new key and deletes the previous
    artifact on a best-effort basis. Usage is not touched.

    Raises:
        QuizNotFoundError: No quiz with ``quiz_id``.
        CompositionError: The quiz was never published (use the retry sweep).
        TemplateValidationError: The rebuilt template failed validation.
        PublishError: The upload failed.
    """
    publisher = publisher or get_publisher()
    db = session_factory()
    try:
        orchestrator = CompositionOrchestrator(db, publisher)
        quiz = orchestrator.store.get_quiz(quiz_id)
        if quiz.published_at is None:
            raise CompositionError(
                f"Quiz {quiz_id} has not been published yet; run the retry sweep instead",
                target_date=quiz.target_date,
            )
        previous_key = quiz.template_key
        template, questions = _rebuild_template(
            quiz, orchestrator.store, orchestrator.pool, quiz.template_version + 1
        )
        result = orchestrator.publish(quiz, template)
        if previous_key and previous_key != result.key:
            publisher.delete(previous_key)

        logger.info(
            f"Republished quiz {quiz.id} as v{quiz.template_version}",
            extra={"quiz_id": quiz.id, "template_key": result.key},
        )
        return JobOutcome(
            target_date=quiz.target_date,
            status=STATUS_COMPLETED,
            quiz_id=quiz.id,
            template_url=result.url,
            template_version=quiz.template_version,
            question_count=len(questions),
            usage_committed=False,
        )
    finally:
        db.close()
