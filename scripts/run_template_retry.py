"""
Cron job: retry publishing quizzes whose upload failed.

Runs every few minutes. Rebuilds each unpublished quiz's template from its
stored question set, uploads it and commits question usage if that never
happened. Quizzes whose drop time is older than RETRY_LOOKBACK_HOURS are left
alone. With --republish QUIZ_ID, publishes a new version of one quiz instead.

Exit codes:
    0 - Success (nothing pending, or every retry published)
    1 - Database error
    2 - Publish error
    3 - Configuration/import error
"""

import argparse
import json
import logging
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("template_retry_cron")


def _capture_sentry(error):
    """Capture an exception to Sentry if configured."""
    try:
        import sentry_sdk

        sentry_sdk.capture_exception(error)
    except Exception:
        pass  # Sentry not configured or import failed


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Retry or republish quiz templates")
    parser.add_argument(
        "--republish",
        metavar="QUIZ_ID",
        default=None,
        help="Publish a new template version for this quiz",
    )
    args = parser.parse_args(argv)

    # Defer imports so config/import failures produce exit code 3
    try:
        from sqlalchemy.exc import SQLAlchemyError

        from dailyquiz.core.datetime_utils import utc_now
        from dailyquiz.core.errors import CompositionError
        from dailyquiz.core.logging_config import setup_logging
        from dailyquiz.jobs import republish_template, retry_unpublished
        from dailyquiz.observability import init_sentry
        from dailyquiz.publishing import get_publisher

        setup_logging()
        try:
            init_sentry()
        except Exception as exc:
            logger.warning("Sentry initialization failed (non-fatal): %s", exc)
        publisher = get_publisher()
    except Exception as exc:
        logger.error("Failed to import required modules: %s", exc)
        return 3

    started_at = utc_now()
    try:
        if args.republish:
            outcomes = [republish_template(args.republish, publisher=publisher)]
        else:
            outcomes = retry_unpublished(started_at, publisher=publisher)
    except SQLAlchemyError as exc:
        logger.error("Database error during template retry: %s", exc)
        _capture_sentry(exc)
        return 1
    except CompositionError as exc:
        logger.error("Template publish failed: %s", exc)
        _capture_sentry(exc)
        return 2
    except Exception as exc:
        logger.error("Unexpected error during template retry cron: %s", exc)
        _capture_sentry(exc)
        return 2

    failed = [o for o in outcomes if not o.ok]
    completed_at = utc_now()

    # Emit heartbeat JSON for log monitoring
    heartbeat = {
        "type": "HEARTBEAT",
        "service": "template_retry_cron",
        "status": "failed" if failed else "completed",
        "retried": len(outcomes),
        "published": len(outcomes) - len(failed),
        "failed": len(failed),
        "quizzes": [o.to_dict() for o in outcomes],
        "duration_seconds": round((completed_at - started_at).total_seconds(), 1),
        "completed_at": completed_at.isoformat(),
    }
    print(json.dumps(heartbeat), flush=True)

    return 2 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
