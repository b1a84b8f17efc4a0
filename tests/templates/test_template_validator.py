"""
Tests for template validation.
"""
from datetime import datetime, timezone

import pytest

from dailyquiz.core.templates.validator import find_leaked_keys, validate_template
from dailyquiz.schemas.template import QuizTemplate, TemplateMetadata, TemplateQuestion


def _question(qid, index, **overrides):
    data = dict(
        id=qid,
        question_type="guess-by-lyric",
        difficulty="easy",
        themes=["lyrics"],
        prompt={"task": "Name the song", "lyric": "Long live"},
        choices=["A", "B"],
        order_index=index,
    )
    data.update(overrides)
    return TemplateQuestion(**data)


def _template(questions=None, **overrides):
    questions = questions if questions is not None else [_question("q1", 0), _question("q2", 1)]
    data = dict(
        id="quiz-1",
        drop_at_utc=datetime(2025, 3, 12, 22, tzinfo=timezone.utc),
        mode="mix",
        questions=questions,
        version=1,
        metadata=TemplateMetadata(
            generated_at=datetime(2025, 3, 11, tzinfo=timezone.utc),
            total_questions=len(questions),
            difficulty_breakdown={"easy": len(questions), "medium": 0, "hard": 0},
            theme_breakdown={"lyrics": len(questions)},
        ),
    )
    data.update(overrides)
    return QuizTemplate(**data)


class TestValidateTemplate:
    """Tests for validate_template."""

    def test_valid_template(self):
        """A well-formed template has no issues."""
        result = validate_template(_template())

        assert result.is_valid is True
        assert result.issues == []

    def test_missing_id_and_drop_time(self):
        """Id and drop time are required."""
        result = validate_template(_template(id="", drop_at_utc=None))

        assert "Template missing ID" in result.issues
        assert "Template missing drop time" in result.issues

    def test_empty_template(self):
        """A template needs at least one question."""
        result = validate_template(_template(questions=[]))

        assert result.issues == ["Template has no questions"]

    def test_version_must_be_positive(self):
        """Version 0 is invalid."""
        assert "Template version must be >= 1" in validate_template(_template(version=0)).issues

    def test_wrong_order_index(self):
        """order_index must equal the position."""
        result = validate_template(_template([_question("q1", 0), _question("q2", 5)]))

        assert result.issues == ["Question 2: incorrect order index"]

    def test_duplicate_question(self):
        """A question may appear only once."""
        result = validate_template(_template([_question("q1", 0), _question("q1", 1)]))

        assert result.issues == ["Question 2: duplicate question q1"]

    def test_missing_prompt(self):
        """Every question needs a prompt."""
        result = validate_template(_template([_question("q1", 0, prompt=None)]))

        assert result.issues == ["Question 1: missing prompt"]

    @pytest.mark.parametrize("marker", ["isCorrect", "correctAnswer", "explanation", "scoringHints"])
    def test_leaked_answer_keys(self, marker):
        """Answer data anywhere in a question fails validation."""
        prompt = {"task": "Name the song", "lyric": "Long live", marker: "x"}

        result = validate_template(_template([_question("q1", 0, prompt=prompt)]))

        assert result.is_valid is False
        assert result.issues == [
            f"Question 1: contains answer data that should be stripped ({marker})"
        ]

    def test_metadata_mismatch(self):
        """Metadata totals must match the question list."""
        template = _template()
        template.metadata.total_questions = 3

        result = validate_template(template)

        assert "Metadata total questions mismatch" in result.issues
        assert "Metadata difficulty breakdown does not sum to total questions" in result.issues


class TestFindLeakedKeys:
    """Tests for find_leaked_keys."""

    def test_values_are_not_keys(self):
        """The word 'answer' as a value is not a leak."""
        assert find_leaked_keys({"task": "answer", "choices": ["correct"]}) == []

    def test_nested_keys_found(self):
        """Keys are found at any depth."""
        assert find_leaked_keys({"choices": [{"url": "u", "is_correct": True}]}) == ["is_correct"]
