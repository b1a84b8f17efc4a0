"""
Tests for template generation and the CDN document.
"""
import json
from datetime import date, datetime, timezone
from types import SimpleNamespace

import pytest

from dailyquiz.core.composer.theme_plan import generate_theme_plan
from dailyquiz.core.errors import TemplateValidationError, UnsupportedQuestionTypeError
from dailyquiz.core.templates.builder import (
    QuizMeta,
    content_issue,
    generate_template,
    order_questions,
    serialize_document,
    template_stats,
    to_cdn_document,
    to_template_question,
)
from libs.domain_types import DifficultyLevel, QuestionType, QuizMode

DROP_AT = datetime(2025, 3, 12, 22, 15, tzinfo=timezone.utc)
GENERATED_AT = datetime(2025, 3, 11, 9, 0, tzinfo=timezone.utc)


def _question(qid, difficulty, **overrides):
    data = dict(
        id=qid,
        question_type=QuestionType.GUESS_BY_LYRIC,
        difficulty=difficulty,
        themes=["lyrics"],
        subjects=["red"],
        prompt={"task": "Name the song", "lyric": "Loving him is like", "internalNotes": "x"},
        choices=["Red", "22", "State of Grace", "Holy Ground"],
        media=None,
        correct_answer="Red",
        explanation="Title track",
    )
    data.update(overrides)
    return SimpleNamespace(**data)


@pytest.fixture
def questions():
    return [
        _question("q-hard", DifficultyLevel.HARD),
        _question("q-easy-b", DifficultyLevel.EASY),
        _question("q-medium", DifficultyLevel.MEDIUM, themes=["charts"]),
        _question("q-easy-a", DifficultyLevel.EASY),
    ]


@pytest.fixture
def template(questions):
    meta = QuizMeta(id="quiz-1", drop_at_utc=DROP_AT, mode=QuizMode.MIX.value)
    plan = generate_theme_plan(QuizMode.MIX, date(2025, 3, 12))
    return generate_template(meta, questions, plan, generated_at=GENERATED_AT)


class TestGenerateTemplate:
    """Tests for generate_template."""

    def test_orders_by_difficulty_then_id(self, template):
        """Easy before medium before hard, ids ascending within a difficulty."""
        assert [q.id for q in template.questions] == ["q-easy-a", "q-easy-b", "q-medium", "q-hard"]
        assert [q.order_index for q in template.questions] == [0, 1, 2, 3]

    def test_ordering_ignores_input_order(self, questions):
        """Reversed input gives the same order."""
        assert [q.id for q in order_questions(questions)] == [
            q.id for q in order_questions(list(reversed(questions)))
        ]

    def test_breakdowns_cover_full_set(self, template):
        """Metadata counts agree with the question list."""
        metadata = template.metadata
        assert metadata.total_questions == 4
        assert metadata.difficulty_breakdown == {"easy": 2, "medium": 1, "hard": 1}
        assert metadata.theme_breakdown == {"lyrics": 3, "charts": 1}
        assert metadata.generated_at == GENERATED_AT

    def test_prompt_is_sanitized(self, template):
        """Only the kind's client-visible prompt fields survive."""
        assert template.questions[0].prompt == {"task": "Name the song", "lyric": "Loving him is like"}

    def test_answer_fields_never_copied(self, template):
        """Correct answers and explanations stay in the pool."""
        dumped = json.dumps(template.model_dump(mode="json"))
        assert "Title track" not in dumped
        assert "correct_answer" not in dumped

    def test_unsupported_kind_raises(self):
        """A kind without a prompt model cannot be templated."""
        meta = QuizMeta(id="quiz-1", drop_at_utc=DROP_AT, mode="mix")
        plan = generate_theme_plan(QuizMode.MIX, date(2025, 3, 12))

        with pytest.raises(UnsupportedQuestionTypeError):
            generate_template(meta, [_question("q", DifficultyLevel.EASY, question_type="karaoke")], plan)

    def test_malformed_prompt_raises_template_error(self):
        """A prompt missing a required field names the question."""
        meta = QuizMeta(id="quiz-1", drop_at_utc=DROP_AT, mode="mix")
        plan = generate_theme_plan(QuizMode.MIX, date(2025, 3, 12))
        broken = _question("q-broken", DifficultyLevel.EASY, prompt={"task": "Name the song"})

        with pytest.raises(TemplateValidationError) as exc_info:
            generate_template(meta, [broken], plan)

        assert len(exc_info.value.issues) == 1
        assert "q-broken" in exc_info.value.issues[0]
        assert "lyric" in exc_info.value.issues[0]

    def test_unrecognized_choice_raises_template_error(self):
        """Choices that are neither strings nor media dicts are rejected."""
        with pytest.raises(TemplateValidationError, match="q-odd"):
            to_template_question(_question("q-odd", DifficultyLevel.EASY, choices=[42]), 0)

    def test_content_issue(self):
        """content_issue explains unusable questions and passes good ones."""
        assert content_issue(_question("q-ok", DifficultyLevel.EASY)) is None
        assert "q-bad" in content_issue(
            _question("q-bad", DifficultyLevel.EASY, prompt={"task": "Name the song"})
        )
        assert "karaoke" in content_issue(
            _question("q-kind", DifficultyLevel.EASY, question_type="karaoke")
        )

    def test_media_choices_keep_only_media_fields(self):
        """Dict choices are reduced to id/type/url/label."""
        meta = QuizMeta(id="quiz-1", drop_at_utc=DROP_AT, mode="mix")
        plan = generate_theme_plan(QuizMode.MIX, date(2025, 3, 12))
        question = _question(
            "q-visual",
            DifficultyLevel.EASY,
            question_type=QuestionType.AI_VISUAL,
            prompt={"task": "Which era is this?"},
            choices=[
                {"id": "a", "type": "image", "url": "https://cdn.test/a.png", "isCorrect": True},
                {"id": "b", "type": "image", "url": "https://cdn.test/b.png", "isCorrect": False},
            ],
            media=[{"type": "image", "url": "https://cdn.test/q.png", "alt": "secret"}],
        )

        template = generate_template(meta, [question], plan)

        dumped = template.questions[0].model_dump(mode="json", exclude_none=True)
        assert dumped["choices"][0] == {"id": "a", "type": "image", "url": "https://cdn.test/a.png"}
        assert dumped["media"] == [{"type": "image", "url": "https://cdn.test/q.png"}]


class TestCdnDocument:
    """Tests for to_cdn_document and serialize_document."""

    def test_wire_shape(self, template):
        """camelCase keys, qid/type/payload entries and the shuffle hint."""
        document = json.loads(serialize_document(to_cdn_document(template)))

        assert list(document) == ["dailyQuizId", "version", "questions", "clientShuffle", "metadata"]
        assert document["dailyQuizId"] == "quiz-1"
        assert document["clientShuffle"] == {"algo": "xorshift", "fields": ["questions", "choices"]}
        first = document["questions"][0]
        assert first["qid"] == "q-easy-a"
        assert first["type"] == "guess-by-lyric"
        assert set(first["payload"]) == {"prompt", "choices", "themes", "difficulty"}
        assert document["metadata"]["totalQuestions"] == 4
        assert document["metadata"]["difficultyBreakdown"] == {"easy": 2, "medium": 1, "hard": 1}

    def test_serialization_is_deterministic(self, template):
        """The same template always serializes to the same bytes."""
        assert serialize_document(to_cdn_document(template)) == serialize_document(
            to_cdn_document(template)
        )


class TestTemplateStats:
    """Tests for template_stats."""

    def test_counts(self, template):
        """Type counts, media count and average choices."""
        stats = template_stats(template)

        assert stats["question_types"] == {"guess-by-lyric": 4}
        assert stats["media_count"] == 0
        assert stats["average_choices_per_question"] == 4.0
        assert stats["size"] > 0
