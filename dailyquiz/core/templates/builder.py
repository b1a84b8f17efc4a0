"""
Quiz template construction.

Turns the selected questions into an ordered, answer-free QuizTemplate and
renders it as the CDN document clients download. Questions are ordered
easy, medium, hard and by id within a difficulty; clients shuffle locally
using the clientShuffle hint, so the published order only has to be stable.
"""
import json
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from dailyquiz.core.composer.theme_plan import ThemePlan
from dailyquiz.core.datetime_utils import ensure_timezone_aware, utc_now
from dailyquiz.core.errors import TemplateValidationError, UnsupportedQuestionTypeError
from dailyquiz.schemas.question_content import (
    sanitize_choices,
    sanitize_media,
    sanitize_prompt,
)
from dailyquiz.schemas.template import (
    CdnDocument,
    CdnMetadata,
    CdnPayload,
    CdnQuestion,
    ClientShuffle,
    QuizTemplate,
    TemplateMetadata,
    TemplateQuestion,
)
from libs.domain_types import DIFFICULTY_ORDER, DifficultyLevel

DIFFICULTY_RANK = {difficulty: rank for rank, difficulty in enumerate(DIFFICULTY_ORDER)}
PREVIEW_ID_PREFIX = "preview-"


@dataclass
class QuizMeta:
    """Identity of the quiz a template is built for."""

    id: str
    drop_at_utc: datetime
    mode: str
    version: int = 1

    @classmethod
    def from_quiz(cls, quiz: Any, version: Optional[int] = None) -> "QuizMeta":
        return cls(
            id=quiz.id,
            drop_at_utc=ensure_timezone_aware(quiz.drop_at_utc),
            mode=_key(quiz.mode),
            version=version if version is not None else quiz.template_version,
        )


def _key(value: Any) -> str:
    return str(getattr(value, "value", value))


def order_questions(questions: Sequence[Any]) -> List[Any]:
    """Easy < Medium < Hard, then id lexicographically."""
    return sorted(
        questions,
        key=lambda q: (DIFFICULTY_RANK[DifficultyLevel(q.difficulty)], str(q.id)),
    )


def _content_issue(question: Any, error: ValueError) -> str:
    if isinstance(error, ValidationError):
        detail = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'prompt'}: {err['msg']}"
            for err in error.errors()
        )
    else:
        detail = str(error)
    return f"Question {question.id} has invalid client content: {detail}"


def to_template_question(question: Any, order_index: int) -> TemplateQuestion:
    """Client-visible form of one stored question.

    Raises:
        UnsupportedQuestionTypeError: The kind has no prompt model.
        TemplateValidationError: The stored prompt, choices or media do not
            fit the kind's client shape.
    """
    try:
        prompt = sanitize_prompt(question.question_type, question.prompt, question.id)
        choices = sanitize_choices(question.choices)
        media = sanitize_media(question.media)
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        raise TemplateValidationError([_content_issue(question, e)])
    return TemplateQuestion(
        id=question.id,
        question_type=_key(question.question_type),
        difficulty=_key(question.difficulty),
        themes=[_key(t) for t in (question.themes or [])],
        subjects=[_key(s) for s in (question.subjects or [])],
        prompt=prompt,
        choices=choices,
        media=media,
        order_index=order_index,
    )


def content_issue(question: Any) -> Optional[str]:
    """Why ``question`` cannot be put into a template, or None if it can."""
    try:
        to_template_question(question, 0)
    except TemplateValidationError as e:
        return "; ".join(e.issues)
    except UnsupportedQuestionTypeError as e:
        return str(e)
    return None


def generate_template(
    quiz_meta: QuizMeta,
    questions: Sequence[Any],
    theme_plan: ThemePlan,
    *,
    generated_at: Optional[datetime] = None,
) -> QuizTemplate:
    """Build the answer-free template for ``questions``.

    Raises:
        UnsupportedQuestionTypeError: A question kind has no prompt model.
        TemplateValidationError: A question's stored content does not fit
            its kind.
    """
    ordered = order_questions(questions)

    difficulty_breakdown = {d.value: 0 for d in DIFFICULTY_ORDER}
    theme_breakdown: Counter = Counter()
    for question in ordered:
        difficulty_breakdown[_key(question.difficulty)] += 1
        theme_breakdown.update(_key(t) for t in (question.themes or []))

    return QuizTemplate(
        id=quiz_meta.id,
        drop_at_utc=quiz_meta.drop_at_utc,
        mode=_key(quiz_meta.mode),
        theme_plan=theme_plan.to_dict(),
        questions=[to_template_question(q, index) for index, q in enumerate(ordered)],
        version=quiz_meta.version,
        metadata=TemplateMetadata(
            generated_at=generated_at or utc_now(),
            total_questions=len(ordered),
            difficulty_breakdown=difficulty_breakdown,
            theme_breakdown=dict(theme_breakdown),
        ),
    )


def to_cdn_document(template: QuizTemplate) -> CdnDocument:
    return CdnDocument(
        daily_quiz_id=template.id,
        version=template.version,
        questions=[
            CdnQuestion(
                qid=q.id,
                type=q.question_type,
                payload=CdnPayload(
                    prompt=q.prompt,
                    choices=q.choices,
                    media=q.media,
                    themes=q.themes,
                    difficulty=q.difficulty,
                ),
            )
            for q in template.questions
        ],
        client_shuffle=ClientShuffle(),
        metadata=CdnMetadata(
            generated_at=template.metadata.generated_at,
            total_questions=template.metadata.total_questions,
            difficulty_breakdown=template.metadata.difficulty_breakdown,
            theme_breakdown=template.metadata.theme_breakdown,
        ),
    )


def serialize_document(document: CdnDocument) -> bytes:
    """UTF-8 JSON bytes. Key order follows the model field order."""
    return document.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


def template_stats(template: QuizTemplate) -> Dict[str, Any]:
    """Size and content figures for monitoring."""
    size = len(json.dumps(template.model_dump(mode="json")).encode("utf-8"))
    question_types: Counter = Counter()
    total_choices = 0
    media_count = 0
    for question in template.questions:
        question_types[question.question_type] += 1
        total_choices += len(question.choices or [])
        media_count += len(question.media or [])

    count = len(template.questions)
    return {
        "size": size,
        "question_types": dict(question_types),
        "media_count": media_count,
        "average_choices_per_question": total_choices / count if count else 0.0,
    }
