"""
Pydantic schemas for published templates and composition logs.
"""
from .composition_log import (
    CompositionLogRecord,
    DifficultySelection,
    FinalSelection,
    Performance,
    SelectionAttempt,
)
from .question_content import (
    PROMPT_MODELS,
    MediaChoice,
    MediaRef,
    PromptBase,
    sanitize_choices,
    sanitize_media,
    sanitize_prompt,
)
from .template import (
    CdnDocument,
    QuizTemplate,
    TemplateMetadata,
    TemplateQuestion,
)

__all__ = [
    "CompositionLogRecord",
    "DifficultySelection",
    "FinalSelection",
    "Performance",
    "SelectionAttempt",
    "PROMPT_MODELS",
    "MediaChoice",
    "MediaRef",
    "PromptBase",
    "sanitize_choices",
    "sanitize_media",
    "sanitize_prompt",
    "CdnDocument",
    "QuizTemplate",
    "TemplateMetadata",
    "TemplateQuestion",
]
