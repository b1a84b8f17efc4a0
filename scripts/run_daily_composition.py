"""
Cron job: compose and publish the daily quiz.

Runs once a day, ahead of the drop window. Composes the quiz for the target
date (tomorrow in DROP_TIMEZONE by default), or for several consecutive dates
with --days. A date already claimed by another run is reported as skipped.

Exit codes:
    0 - Success (every date composed or skipped)
    1 - Database error
    2 - Composition error
    3 - Configuration/import error
"""

import argparse
import json
import logging
import sys
from datetime import date, datetime, timedelta

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("daily_composition_cron")


def _capture_sentry(error):
    """Capture an exception to Sentry if configured."""
    try:
        import sentry_sdk

        sentry_sdk.capture_exception(error)
    except Exception:
        pass  # Sentry not configured or import failed


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Compose and publish daily quizzes")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Target date (YYYY-MM-DD). Defaults to tomorrow in DROP_TIMEZONE.",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=1,
        help="Number of consecutive dates to compose, starting at --date",
    )
    parser.add_argument(
        "--mode",
        choices=["mix", "spotlight", "event"],
        default=None,
        help="Theme mode (defaults to COMPOSER_DEFAULT_MODE)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Concurrent dates (defaults to JOB_MAX_WORKERS)",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)

    # Defer imports so config/import failures produce exit code 3
    try:
        from zoneinfo import ZoneInfo

        from sqlalchemy.exc import SQLAlchemyError

        from dailyquiz.core.config import settings
        from dailyquiz.core.datetime_utils import utc_now
        from dailyquiz.core.logging_config import setup_logging
        from dailyquiz.jobs import run_many
        from dailyquiz.observability import init_sentry, metrics
        from dailyquiz.publishing import get_publisher
        from libs.domain_types import QuizMode

        setup_logging()
        try:
            init_sentry()
        except Exception as exc:
            logger.warning("Sentry initialization failed (non-fatal): %s", exc)
        metrics.initialize()
        publisher = get_publisher()
    except Exception as exc:
        logger.error("Failed to import required modules: %s", exc)
        return 3

    if args.days < 1:
        logger.error("--days must be at least 1")
        return 3

    started_at = utc_now()
    first = args.date
    if first is None:
        local_today = datetime.now(ZoneInfo(settings.DROP_TIMEZONE)).date()
        first = local_today + timedelta(days=1)
    target_dates = [first + timedelta(days=offset) for offset in range(args.days)]
    mode = QuizMode(args.mode) if args.mode else None

    try:
        outcomes = run_many(
            target_dates,
            mode,
            max_workers=args.workers,
            publisher=publisher,
        )
    except SQLAlchemyError as exc:
        logger.error("Database error during daily composition: %s", exc)
        _capture_sentry(exc)
        return 1
    except Exception as exc:
        logger.error("Unexpected error during daily composition cron: %s", exc)
        _capture_sentry(exc)
        return 2

    for outcome in outcomes:
        if outcome.ok:
            logger.info(
                "%s: %s (quiz=%s, questions=%d)",
                outcome.target_date.isoformat(),
                outcome.status,
                outcome.quiz_id,
                outcome.question_count,
            )
        else:
            logger.error(
                "%s: failed: %s", outcome.target_date.isoformat(), outcome.error
            )

    failed = [o for o in outcomes if not o.ok]
    completed_at = utc_now()

    # Emit heartbeat JSON for log monitoring
    heartbeat = {
        "type": "HEARTBEAT",
        "service": "daily_composition_cron",
        "status": "failed" if failed else "completed",
        "dates": [o.to_dict() for o in outcomes],
        "duration_seconds": round((completed_at - started_at).total_seconds(), 1),
        "completed_at": completed_at.isoformat(),
    }
    print(json.dumps(heartbeat), flush=True)

    return 2 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
