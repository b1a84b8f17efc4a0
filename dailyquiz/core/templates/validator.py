"""
Template validation before upload.

A template that fails here is never published.
"""
import json
from typing import List

from dailyquiz.core.composer.distribution import ValidationResult
from dailyquiz.schemas.template import QuizTemplate

# JSON keys that would expose correctness data to clients
LEAK_MARKERS = (
    "isCorrect",
    "is_correct",
    "correct",
    "correctAnswer",
    "correct_answer",
    "correctness",
    "explanation",
    "answer",
    "scoringHints",
)


def find_leaked_keys(payload: dict) -> List[str]:
    """Leak markers present as JSON keys anywhere in ``payload``."""
    serialized = json.dumps(payload, default=str)
    return [marker for marker in LEAK_MARKERS if f'"{marker}":' in serialized]


def validate_template(template: QuizTemplate) -> ValidationResult:
    issues: List[str] = []

    if not template.id:
        issues.append("Template missing ID")
    if template.drop_at_utc is None:
        issues.append("Template missing drop time")
    if not template.questions:
        issues.append("Template has no questions")
    if template.version < 1:
        issues.append("Template version must be >= 1")

    seen_ids = set()
    for index, question in enumerate(template.questions):
        prefix = f"Question {index + 1}"
        if not question.id:
            issues.append(f"{prefix}: missing ID")
        elif question.id in seen_ids:
            issues.append(f"{prefix}: duplicate question {question.id}")
        seen_ids.add(question.id)
        if not question.question_type:
            issues.append(f"{prefix}: missing type")
        if not question.difficulty:
            issues.append(f"{prefix}: missing difficulty")
        if not question.prompt:
            issues.append(f"{prefix}: missing prompt")
        if question.order_index != index:
            issues.append(f"{prefix}: incorrect order index")

        leaked = find_leaked_keys(question.model_dump(mode="json"))
        if leaked:
            issues.append(
                f"{prefix}: contains answer data that should be stripped "
                f"({', '.join(leaked)})"
            )

    metadata = template.metadata
    if metadata.total_questions != len(template.questions):
        issues.append("Metadata total questions mismatch")
    if sum(metadata.difficulty_breakdown.values()) != metadata.total_questions:
        issues.append("Metadata difficulty breakdown does not sum to total questions")

    return ValidationResult(is_valid=not issues, issues=issues)
