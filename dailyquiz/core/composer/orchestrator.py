"""
Daily quiz composition orchestrator.

Composes one quiz per target date:

1. Claim the date (single writer per date) and reject dates that already
   have a quiz.
2. Build the theme plan, count the pool and plan the difficulty
   distribution.
3. Fill each difficulty (easy, medium, hard) starting at the strictest
   anti-repeat level and escalating only for the shortfall. Every level is
   queried with theme and subject preferences first, then topped up without
   them. Questions whose stored content has no valid client shape are
   skipped and reported as warnings.
4. Build and validate the answer-free template, store the quiz, upload the
   artifact.
5. Commit question usage last, in the same transaction that completes the
   claim, and write the composition log.

Preview runs the same computation with no claim, no writes, no upload and no
usage commit.
"""
import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from dailyquiz.core.composer import stats
from dailyquiz.core.composer.anti_repeat import AntiRepeatSelector, reference_time_for
from dailyquiz.core.composer.composition_log import (
    build_error_log,
    build_final_selection,
    build_success_log,
    max_relaxation_level,
    save_composition_log,
)
from dailyquiz.core.composer.config import ComposerConfig, day_threshold
from dailyquiz.core.composer.distribution import (
    DistributionPlan,
    distribution_with_fallbacks,
    validate_distribution,
)
from dailyquiz.core.composer.filters import SelectionCriteria
from dailyquiz.core.composer.theme_plan import ThemePlan, generate_theme_plan
from dailyquiz.core.datetime_utils import ensure_timezone_aware, start_of_day_utc, utc_now
from dailyquiz.core.errors import (
    CompositionError,
    NoQuestionsAvailableError,
    PublishError,
    QuizAlreadyExistsError,
    TemplateValidationError,
)
from dailyquiz.core.templates.builder import (
    PREVIEW_ID_PREFIX,
    QuizMeta,
    content_issue,
    generate_template,
    serialize_document,
    to_cdn_document,
)
from dailyquiz.core.templates.validator import validate_template
from dailyquiz.models import DailyQuiz, Question
from dailyquiz.observability import capture_error, metrics
from dailyquiz.publishing.base import ArtifactPublisher, PublishResult
from dailyquiz.repositories.question_pool import QuestionPool
from dailyquiz.repositories.quiz_store import QuizStore
from dailyquiz.schemas.composition_log import (
    CompositionLogRecord,
    DifficultySelection,
    Performance,
    SelectionAttempt,
)
from dailyquiz.schemas.template import QuizTemplate
from libs.domain_types import DIFFICULTY_ORDER, ClaimStatus, DifficultyLevel, QuizMode

logger = logging.getLogger(__name__)


@dataclass
class CompositionResult:
    """Outcome of a composition or preview run.

    Attributes:
        daily_quiz: Stored quiz (None for previews)
        questions: Selected questions in selection order
        template: The validated template
        composition_log: Audit record of the run
        published: Where the artifact was uploaded (None for previews)
    """

    daily_quiz: Optional[DailyQuiz]
    questions: List[Question]
    template: QuizTemplate
    composition_log: CompositionLogRecord
    published: Optional[PublishResult] = None


@dataclass
class _Selection:
    questions: List[Question] = field(default_factory=list)
    steps: List[DifficultySelection] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    # question id -> why its content cannot be published
    rejected: Dict[str, str] = field(default_factory=dict)


@dataclass
class _RunState:
    """What a run has gathered so far, kept for the error log."""

    target_date: date
    mode: QuizMode
    started: float
    theme_plan: Optional[ThemePlan] = None
    plan: Optional[DistributionPlan] = None
    selection: Optional[_Selection] = None
    daily_quiz_id: Optional[str] = None

    def duration_ms(self) -> int:
        return int((time.perf_counter() - self.started) * 1000)


class CompositionOrchestrator:
    """Runs compositions against one database session and one publisher.

    Args:
        db: SQLAlchemy session (the caller owns its lifecycle)
        publisher: Artifact publisher for uploads and health checks
        config: Default per-run configuration (settings when omitted)
        rng: Random source for candidate tiebreaks; seed it for reproducible runs
        run_id: Identifier recorded on the claim row
    """

    def __init__(
        self,
        db: Session,
        publisher: ArtifactPublisher,
        *,
        config: Optional[ComposerConfig] = None,
        rng: Optional[random.Random] = None,
        run_id: Optional[str] = None,
    ):
        self.db = db
        self.publisher = publisher
        self.config = config or ComposerConfig.from_settings()
        self.rng = rng or random.Random()
        self.run_id = run_id or uuid.uuid4().hex
        self.pool = QuestionPool(db)
        self.store = QuizStore(db)

    # --- Public operations ----------------------------------------------

    def compose_daily_quiz(
        self,
        target_date: date,
        mode: Optional[QuizMode] = None,
        config: Optional[ComposerConfig] = None,
        *,
        drop_at_utc: Optional[datetime] = None,
    ) -> CompositionResult:
        """Compose, publish and record the quiz for ``target_date``.

        Args:
            target_date: Calendar date of the quiz
            mode: Theme mode (defaults to the config's mode)
            config: Per-run overrides of the orchestrator's config
            drop_at_utc: When the quiz goes live (midnight UTC of the date if omitted)

        Raises:
            CompositionAlreadyClaimedError: Another run holds the date.
            QuizAlreadyExistsError: A quiz is already stored for the date.
            NoQuestionsAvailableError: The pool cannot supply any question.
            TemplateValidationError: The built template failed validation.
            PublishError: The upload failed. The quiz is kept unpublished for
                the retry sweep and usage is not committed.
        """
        config = (config or self.config).with_mode(mode)
        drop_at = ensure_timezone_aware(drop_at_utc or start_of_day_utc(target_date))
        state = _RunState(target_date=target_date, mode=config.mode, started=time.perf_counter())
        self.pool.query_count = 0

        logger.info(
            f"Starting daily quiz composition for {target_date.isoformat()}",
            extra={"target_date": target_date.isoformat(), "mode": config.mode.value},
        )

        # Nothing is written for a date someone else holds, not even a log
        self.store.claim(target_date, self.run_id)

        try:
            if self.store.get_quiz_by_date(target_date) is not None:
                raise QuizAlreadyExistsError(target_date)

            questions = self._compose(state, config)

            quiz_id = str(uuid.uuid4())
            template = self._build_template(
                QuizMeta(id=quiz_id, drop_at_utc=drop_at, mode=config.mode.value),
                questions,
                state,
            )

            quiz = self.store.create_quiz(
                quiz_id=quiz_id,
                target_date=target_date,
                drop_at_utc=drop_at,
                mode=config.mode,
                theme_plan=state.theme_plan.to_dict(),
                questions=questions,
            )
            state.daily_quiz_id = quiz.id
            self.pool.query_count += 1

            published = self.publish(quiz, template)

            self.store.commit_usage(quiz, self.pool, reference_time_for(target_date))
            self.pool.query_count += 1
        except CompositionError as e:
            self._handle_failure(state, e)
            raise
        except Exception as e:
            self.db.rollback()
            self._handle_failure(state, e)
            raise

        log = self._success_log(state, config, questions)
        save_composition_log(self.db, log)

        duration_seconds = state.duration_ms() / 1000
        metrics.record_composition(
            "success",
            duration_seconds=duration_seconds,
            relaxation_level=max_relaxation_level(log),
            emergency=state.plan.emergency,
        )
        logger.info(
            f"Successfully composed daily quiz {quiz.id} with {len(questions)} questions "
            f"(relaxation level: {max_relaxation_level(log)})",
            extra={
                "target_date": target_date.isoformat(),
                "quiz_id": quiz.id,
                "relaxation_level": max_relaxation_level(log),
                "duration_ms": log.performance.duration_ms,
            },
        )
        return CompositionResult(
            daily_quiz=quiz,
            questions=questions,
            template=template,
            composition_log=log,
            published=published,
        )

    def preview_composition(
        self,
        target_date: date,
        mode: Optional[QuizMode] = None,
        config: Optional[ComposerConfig] = None,
        *,
        drop_at_utc: Optional[datetime] = None,
    ) -> CompositionResult:
        """Run the composition without claiming, persisting, uploading or
        committing usage. The returned log is not written anywhere.

        Raises:
            NoQuestionsAvailableError: The pool cannot supply any question.
            TemplateValidationError: The built template failed validation.
        """
        config = (config or self.config).with_mode(mode)
        drop_at = ensure_timezone_aware(drop_at_utc or start_of_day_utc(target_date))
        state = _RunState(target_date=target_date, mode=config.mode, started=time.perf_counter())
        self.pool.query_count = 0

        questions = self._compose(state, config)
        template = self._build_template(
            QuizMeta(
                id=f"{PREVIEW_ID_PREFIX}{uuid.uuid4()}",
                drop_at_utc=drop_at,
                mode=config.mode.value,
            ),
            questions,
            state,
        )
        log = self._success_log(state, config, questions)
        logger.info(
            f"Preview composed {len(questions)} questions for {target_date.isoformat()}",
            extra={"target_date": target_date.isoformat()},
        )
        return CompositionResult(
            daily_quiz=None,
            questions=questions,
            template=template,
            composition_log=log,
        )

    def publish(self, quiz: DailyQuiz, template: QuizTemplate) -> PublishResult:
        """Upload ``template`` for ``quiz`` and record where it went.

        The template's version is the version recorded on success.

        Raises:
            PublishError: Health check or upload failed.
        """
        key = self.publisher.generate_key(quiz.id, template.version, on=quiz.target_date)
        health = self.publisher.health_check()
        if not health.is_healthy:
            raise PublishError(
                key,
                RuntimeError(health.message),
                message=f"Publisher unhealthy, not uploading {key}: {health.message}",
            )

        content = serialize_document(to_cdn_document(template))
        result = self.publisher.upload(key, content)
        self.store.mark_published(
            quiz,
            version=template.version,
            key=result.key,
            url=result.url,
            published_at=utc_now(),
        )
        logger.info(
            f"Published template v{template.version} for quiz {quiz.id}: {result.url}",
            extra={"quiz_id": quiz.id, "template_key": result.key},
        )
        return result

    def get_composition_stats(self) -> Dict[str, Any]:
        return stats.get_composition_stats(self.db, now=utc_now())

    def get_system_health(self) -> Dict[str, Any]:
        return stats.get_system_health(self.db, self.publisher, now=utc_now())

    # --- Steps ----------------------------------------------------------

    def _compose(self, state: _RunState, config: ComposerConfig) -> List[Question]:
        """Theme plan, distribution and selection. Reads only."""
        state.theme_plan = generate_theme_plan(config.mode, state.target_date)

        available = self.pool.count_by_difficulty()
        plan = distribution_with_fallbacks(config, available)
        state.plan = plan
        for warning in plan.warnings:
            logger.warning(warning, extra={"target_date": state.target_date.isoformat()})

        validation = validate_distribution(plan.distribution, available)
        if not validation.is_valid:
            raise NoQuestionsAvailableError(
                f"No viable difficulty distribution: {'; '.join(validation.issues)}",
                target_date=state.target_date,
            )

        selection = self._select(state, config, plan)
        state.selection = selection
        if not selection.questions:
            raise NoQuestionsAvailableError(
                "No questions could be selected for daily quiz",
                target_date=state.target_date,
            )
        return selection.questions

    def _select(
        self, state: _RunState, config: ComposerConfig, plan: DistributionPlan
    ) -> _Selection:
        selector = AntiRepeatSelector(
            self.pool,
            schedule=config.relaxation_schedule,
            max_exposure_count=config.max_exposure_count,
            rng=self.rng,
        )
        reference_time = reference_time_for(state.target_date)
        selection = _Selection()
        selected_ids: Set[str] = set()
        used_subjects: Set[str] = set()

        for difficulty in DIFFICULTY_ORDER:
            count = plan.distribution.get(difficulty, 0)
            picked, detail = self._select_difficulty(
                selector,
                difficulty,
                count,
                config,
                state.theme_plan,
                reference_time,
                selected_ids,
                used_subjects,
                selection.rejected,
            )
            selection.questions.extend(picked)
            selected_ids.update(q.id for q in picked)
            selection.steps.append(detail)
            selection.warnings.extend(detail.issues)
        return selection

    def _select_difficulty(
        self,
        selector: AntiRepeatSelector,
        difficulty: DifficultyLevel,
        count: int,
        config: ComposerConfig,
        theme_plan: ThemePlan,
        reference_time: datetime,
        selected_ids: Set[str],
        used_subjects: Set[str],
        rejected: Dict[str, str],
    ) -> Tuple[List[Question], DifficultySelection]:
        """Fill one difficulty slice, escalating relaxation only as needed."""
        picked: List[Question] = []
        attempts: List[SelectionAttempt] = []
        highest_level = 0
        already_rejected = set(rejected)
        use_preferences = config.apply_theme_preferences or config.apply_subject_diversity

        for level in range(config.emergency_level + 1):
            if len(picked) >= count:
                break
            for with_preferences in ((True, False) if use_preferences else (False,)):
                remaining = count - len(picked)
                if remaining <= 0:
                    break
                criteria = SelectionCriteria(
                    difficulty=difficulty,
                    exclude_question_ids=selected_ids | set(rejected) | {q.id for q in picked},
                    max_exposure_count=config.max_exposure_count,
                )
                if with_preferences and config.apply_theme_preferences:
                    criteria.preferred_themes = theme_plan.preferred_themes() or None
                if with_preferences and config.apply_subject_diversity:
                    criteria.subject_diversity = sorted(used_subjects) or None

                candidates = selector.eligible_pool(criteria, level, reference_time)
                taken = _take(
                    candidates,
                    remaining,
                    used_subjects,
                    diverse=with_preferences and config.apply_subject_diversity,
                    rejected=rejected,
                )
                picked.extend(taken)
                attempts.append(
                    SelectionAttempt(
                        level=level,
                        day_threshold=day_threshold(level, config.relaxation_schedule),
                        fetched=len(candidates),
                        taken=len(taken),
                        theme_preference_applied=with_preferences,
                    )
                )
                if taken:
                    highest_level = level

        issues: List[str] = [
            f"Skipped unpublishable question: {issue}"
            for question_id, issue in rejected.items()
            if question_id not in already_rejected
        ]
        if len(picked) < count:
            highest_level = config.emergency_level
            issues.append(
                f"Only {len(picked)} of {count} {difficulty.value} questions could be "
                f"selected after full relaxation"
            )
            logger.warning(
                issues[-1],
                extra={"difficulty": difficulty.value, "relaxation_level": highest_level},
            )
        elif highest_level > 0:
            logger.info(
                f"Selected {len(picked)} {difficulty.value} questions at relaxation "
                f"level {highest_level}",
                extra={"difficulty": difficulty.value, "relaxation_level": highest_level},
            )

        return picked, DifficultySelection(
            difficulty=difficulty.value,
            attempted=count,
            selected=len(picked),
            relaxation_level=highest_level,
            issues=issues,
            attempts=attempts,
        )

    def _build_template(
        self, meta: QuizMeta, questions: List[Question], state: _RunState
    ) -> QuizTemplate:
        template = generate_template(meta, questions, state.theme_plan)
        validation = validate_template(template)
        if not validation.is_valid:
            raise TemplateValidationError(validation.issues, target_date=state.target_date)
        return template

    # --- Logs and failures ----------------------------------------------

    def _success_log(
        self, state: _RunState, config: ComposerConfig, questions: List[Question]
    ) -> CompositionLogRecord:
        return build_success_log(
            target_date=state.target_date,
            mode=config.mode,
            theme_plan=state.theme_plan.to_dict(),
            selection_process=state.selection.steps,
            final_selection=build_final_selection(questions, state.plan.target),
            warnings=state.plan.warnings + state.selection.warnings,
            fallbacks=state.plan.fallbacks,
            performance=Performance(
                duration_ms=state.duration_ms(), db_queries=self.pool.query_count
            ),
            daily_quiz_id=state.daily_quiz_id,
        )

    def _handle_failure(self, state: _RunState, error: Exception) -> None:
        """Settle the claim, record the error log, report the failure."""
        if state.daily_quiz_id is not None:
            # Quiz stays stored; the retry sweep publishes it or commits its usage
            self.store.finish_claim(state.target_date, ClaimStatus.FAILED)
        else:
            self.store.release_claim(state.target_date)

        log = build_error_log(
            target_date=state.target_date,
            mode=state.mode,
            error=error,
            performance=Performance(
                duration_ms=state.duration_ms(), db_queries=self.pool.query_count
            ),
            theme_plan=state.theme_plan.to_dict() if state.theme_plan else None,
            selection_process=state.selection.steps if state.selection else None,
            warnings=(state.plan.warnings if state.plan else []) + [str(error)],
            fallbacks=state.plan.fallbacks if state.plan else None,
            daily_quiz_id=state.daily_quiz_id,
        )
        save_composition_log(self.db, log)

        logger.error(
            f"Failed to compose daily quiz: {error}",
            extra={"target_date": state.target_date.isoformat(), "quiz_id": state.daily_quiz_id},
        )
        capture_error(
            error,
            context={
                "target_date": state.target_date.isoformat(),
                "mode": state.mode.value,
                "daily_quiz_id": state.daily_quiz_id,
            },
            tags={"component": "composer", "error_type": type(error).__name__},
        )
        metrics.record_composition("failed", duration_seconds=state.duration_ms() / 1000)
        metrics.record_error(type(error).__name__)


def _take(
    candidates: List[Question],
    limit: int,
    used_subjects: Set[str],
    *,
    diverse: bool,
    rejected: Dict[str, str],
) -> List[Question]:
    """First ``limit`` candidates in order. With ``diverse`` set, skips any
    candidate sharing a subject with one already taken.

    Candidates whose stored content cannot be turned into a template are
    skipped and recorded in ``rejected``.
    """
    taken: List[Question] = []
    for question in candidates:
        if len(taken) >= limit:
            break
        if question.id in rejected:
            continue
        subjects = {str(getattr(s, "value", s)) for s in (question.subjects or [])}
        if diverse and subjects & used_subjects:
            continue
        issue = content_issue(question)
        if issue is not None:
            rejected[question.id] = issue
            logger.warning(f"Skipping unpublishable question: {issue}")
            continue
        taken.append(question)
        used_subjects.update(subjects)
    return taken
