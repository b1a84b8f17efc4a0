"""Tests for shared domain types package."""

import json

from libs.domain_types import (
    ClaimStatus,
    DIFFICULTY_ORDER,
    DifficultyLevel,
    QuestionTheme,
    QuestionType,
    QuizMode,
)


class TestDifficultyLevel:
    """Tests for DifficultyLevel enum."""

    def test_values(self):
        assert [d.value for d in DifficultyLevel] == ["easy", "medium", "hard"]

    def test_processing_order_is_easy_medium_hard(self):
        assert DIFFICULTY_ORDER == (
            DifficultyLevel.EASY,
            DifficultyLevel.MEDIUM,
            DifficultyLevel.HARD,
        )


class TestQuestionType:
    """Tests for QuestionType enum."""

    def test_has_nineteen_kinds(self):
        assert len(QuestionType) == 19

    def test_values_are_kebab_case(self):
        for question_type in QuestionType:
            assert question_type.value == question_type.value.lower()
            assert "_" not in question_type.value

    def test_str_mixin_serializes_to_value(self):
        assert json.dumps({"type": QuestionType.SPEED_TAP}) == '{"type": "speed-tap"}'


class TestQuizMode:
    """Tests for QuizMode enum."""

    def test_values(self):
        assert {m.value for m in QuizMode} == {"mix", "spotlight", "event"}

    def test_lookup_by_value(self):
        assert QuizMode("spotlight") is QuizMode.SPOTLIGHT


class TestQuestionTheme:
    """Tests for QuestionTheme enum."""

    def test_values_unique(self):
        values = [t.value for t in QuestionTheme]
        assert len(values) == len(set(values))


class TestClaimStatus:
    """Tests for ClaimStatus enum."""

    def test_values(self):
        assert {s.value for s in ClaimStatus} == {"claimed", "completed", "failed"}
