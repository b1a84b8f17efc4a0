"""
Exception hierarchy for daily quiz composition.

Soft conditions (short pools, degraded distributions, emergency mode) are
reported as warnings on the plan and the composition log and never raise.
Everything below is a hard failure: the run stops, the error is logged,
captured to Sentry and recorded in the composition log.
"""
from datetime import date
from typing import List, Optional


class CompositionError(Exception):
    """Base class for composition failures."""

    def __init__(self, message: str, target_date: Optional[date] = None):
        self.message = message
        self.target_date = target_date
        super().__init__(message)


class CompositionAlreadyClaimedError(CompositionError):
    """Another run already holds the claim for this date."""

    def __init__(self, target_date: date, run_id: Optional[str] = None):
        self.run_id = run_id
        holder = f" by run {run_id}" if run_id else ""
        super().__init__(
            f"Composition for {target_date.isoformat()} already claimed{holder}",
            target_date=target_date,
        )


class QuizAlreadyExistsError(CompositionError):
    """A daily quiz is already stored for this date."""

    def __init__(self, target_date: date):
        super().__init__(
            f"Daily quiz already exists for {target_date.isoformat()}",
            target_date=target_date,
        )


class NoQuestionsAvailableError(CompositionError):
    """The pool cannot supply a single question for the quiz."""


class TemplateValidationError(CompositionError):
    """The built template failed validation. Carries every issue found."""

    def __init__(self, issues: List[str], target_date: Optional[date] = None):
        self.issues = list(issues)
        super().__init__(
            f"Template validation failed: {'; '.join(self.issues)}",
            target_date=target_date,
        )


class PublishError(CompositionError):
    """Uploading the template artifact failed.

    Attributes:
        key: Object key that was being written
        original_error: The underlying transport or filesystem error
    """

    def __init__(
        self,
        key: str,
        original_error: Exception,
        message: Optional[str] = None,
    ):
        self.key = key
        self.original_error = original_error
        super().__init__(message or f"Failed to publish {key}: {original_error}")


class UnsupportedQuestionTypeError(CompositionError):
    """A question kind has no registered client-visible prompt model."""

    def __init__(self, question_type: str, question_id: Optional[str] = None):
        self.question_type = question_type
        self.question_id = question_id
        suffix = f" (question {question_id})" if question_id else ""
        super().__init__(f"Unsupported question type '{question_type}'{suffix}")


class QuizNotFoundError(CompositionError):
    """No daily quiz with the given id."""

    def __init__(self, quiz_id: str):
        self.quiz_id = quiz_id
        super().__init__(f"Daily quiz {quiz_id} not found")
