"""
Tests for the composition and retry cron runners.

Tests cover:
- Target date expansion and mode parsing
- Heartbeat output: emits valid JSON for log monitoring
- Exit codes: all four exit paths (0, 1, 2, 3)
"""

import json
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from dailyquiz.core.errors import PublishError
from dailyquiz.jobs import STATUS_COMPLETED, STATUS_FAILED, STATUS_SKIPPED, JobOutcome
from libs.domain_types import QuizMode


@pytest.fixture(autouse=True)
def quiet_setup():
    """Keep the runners from reconfiguring logging or touching a real store."""
    with patch("dailyquiz.core.logging_config.setup_logging"), patch(
        "dailyquiz.publishing.get_publisher", return_value=MagicMock()
    ):
        yield


def _heartbeat(capsys):
    lines = [line for line in capsys.readouterr().out.splitlines() if line.strip()]
    return json.loads(lines[-1])


class TestDailyCompositionCron:
    """Integration tests for run_daily_composition.main()."""

    @patch("dailyquiz.jobs.run_many")
    def test_success(self, mock_run_many, capsys):
        """Composed and skipped dates both count as success."""
        from run_daily_composition import main

        mock_run_many.return_value = [
            JobOutcome(date(2025, 3, 12), STATUS_COMPLETED, quiz_id="q1", question_count=6),
            JobOutcome(date(2025, 3, 13), STATUS_SKIPPED),
        ]

        exit_code = main(["--date", "2025-03-12", "--days", "2", "--mode", "spotlight"])

        assert exit_code == 0
        args, kwargs = mock_run_many.call_args
        assert args[0] == [date(2025, 3, 12), date(2025, 3, 13)]
        assert args[1] == QuizMode.SPOTLIGHT
        heartbeat = _heartbeat(capsys)
        assert heartbeat["type"] == "HEARTBEAT"
        assert heartbeat["service"] == "daily_composition_cron"
        assert heartbeat["status"] == "completed"
        assert [d["status"] for d in heartbeat["dates"]] == ["completed", "skipped"]

    @patch("dailyquiz.jobs.run_many")
    def test_defaults_to_one_date(self, mock_run_many, capsys):
        """Without --date a single date is composed."""
        from run_daily_composition import main

        mock_run_many.return_value = []

        assert main([]) == 0
        assert len(mock_run_many.call_args[0][0]) == 1
        assert mock_run_many.call_args[0][1] is None

    @patch("dailyquiz.jobs.run_many")
    def test_failed_date_returns_2(self, mock_run_many, capsys):
        """Any failed date fails the run."""
        from run_daily_composition import main

        mock_run_many.return_value = [
            JobOutcome(date(2025, 3, 12), STATUS_FAILED, error="pool empty")
        ]

        assert main(["--date", "2025-03-12"]) == 2
        assert _heartbeat(capsys)["status"] == "failed"

    @patch("run_daily_composition._capture_sentry")
    @patch("dailyquiz.jobs.run_many")
    def test_database_error_returns_1(self, mock_run_many, mock_sentry):
        """Database errors exit with 1 and reach Sentry."""
        from run_daily_composition import main

        error = OperationalError("SELECT", {}, Exception("db down"))
        mock_run_many.side_effect = error

        assert main(["--date", "2025-03-12"]) == 1
        mock_sentry.assert_called_once_with(error)

    @patch("dailyquiz.jobs.run_many")
    def test_unexpected_error_returns_2(self, mock_run_many):
        from run_daily_composition import main

        mock_run_many.side_effect = RuntimeError("boom")

        assert main(["--date", "2025-03-12"]) == 2

    def test_invalid_days_returns_3(self):
        """--days below one is a configuration error."""
        from run_daily_composition import main

        assert main(["--days", "0"]) == 3

    def test_setup_failure_returns_3(self):
        """A publisher that cannot be built is a configuration error."""
        from run_daily_composition import main

        with patch("dailyquiz.publishing.get_publisher", side_effect=ValueError("bad config")):
            assert main(["--date", "2025-03-12"]) == 3


class TestTemplateRetryCron:
    """Integration tests for run_template_retry.main()."""

    @patch("dailyquiz.jobs.retry_unpublished")
    def test_retry_sweep(self, mock_retry, capsys):
        """The default run sweeps unpublished quizzes."""
        from run_template_retry import main

        mock_retry.return_value = [
            JobOutcome(date(2025, 3, 12), STATUS_COMPLETED, quiz_id="q1"),
            JobOutcome(date(2025, 3, 13), STATUS_FAILED, quiz_id="q2", error="store down"),
        ]

        assert main([]) == 2
        heartbeat = _heartbeat(capsys)
        assert heartbeat["service"] == "template_retry_cron"
        assert (heartbeat["retried"], heartbeat["published"], heartbeat["failed"]) == (2, 1, 1)

    @patch("dailyquiz.jobs.retry_unpublished", return_value=[])
    def test_nothing_to_retry(self, mock_retry, capsys):
        from run_template_retry import main

        assert main([]) == 0
        assert _heartbeat(capsys)["status"] == "completed"

    @patch("dailyquiz.jobs.republish_template")
    def test_republish(self, mock_republish, capsys):
        """--republish publishes a new version of one quiz."""
        from run_template_retry import main

        mock_republish.return_value = JobOutcome(
            date(2025, 3, 12), STATUS_COMPLETED, quiz_id="q1", template_version=2
        )

        assert main(["--republish", "q1"]) == 0
        assert mock_republish.call_args[0] == ("q1",)
        assert _heartbeat(capsys)["quizzes"][0]["template_version"] == 2

    @patch("run_template_retry._capture_sentry")
    @patch("dailyquiz.jobs.republish_template")
    def test_publish_error_returns_2(self, mock_republish, mock_sentry):
        """A failed republish exits with 2."""
        from run_template_retry import main

        mock_republish.side_effect = PublishError("k", RuntimeError("store down"))

        assert main(["--republish", "q1"]) == 2
        mock_sentry.assert_called_once()

    @patch("dailyquiz.jobs.retry_unpublished")
    def test_database_error_returns_1(self, mock_retry):
        from run_template_retry import main

        mock_retry.side_effect = OperationalError("SELECT", {}, Exception("db down"))

        assert main([]) == 1
