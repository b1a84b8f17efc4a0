"""
Per-run composer configuration.

Defaults come from application settings; callers (jobs, previews, tests) may
override any field for a single run.
"""
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from dailyquiz.core.config import Settings, settings as app_settings
from libs.domain_types import QuizMode

DEFAULT_TARGET_QUESTION_COUNT = 6
DEFAULT_MAX_EXPOSURE_COUNT = 10
DEFAULT_RELAXATION_SCHEDULE: Tuple[int, ...] = (30, 21, 14, 10, 7)


@dataclass(frozen=True)
class ComposerConfig:
    """Knobs for a single composition run."""

    target_question_count: int = DEFAULT_TARGET_QUESTION_COUNT
    mode: QuizMode = QuizMode.MIX
    max_exposure_count: int = DEFAULT_MAX_EXPOSURE_COUNT
    relaxation_schedule: Tuple[int, ...] = field(
        default_factory=lambda: DEFAULT_RELAXATION_SCHEDULE
    )
    apply_theme_preferences: bool = True
    apply_subject_diversity: bool = True

    def __post_init__(self) -> None:
        if self.target_question_count < 1:
            raise ValueError(
                f"target_question_count must be positive, got {self.target_question_count}"
            )
        if self.max_exposure_count < 0:
            raise ValueError(
                f"max_exposure_count must be non-negative, got {self.max_exposure_count}"
            )
        if not self.relaxation_schedule:
            raise ValueError("relaxation_schedule must not be empty")

    @property
    def emergency_level(self) -> int:
        """First relaxation level past the schedule (no day threshold)."""
        return len(self.relaxation_schedule)

    def with_mode(self, mode: Optional[QuizMode]) -> "ComposerConfig":
        if mode is None or mode == self.mode:
            return self
        return replace(self, mode=QuizMode(mode))

    @classmethod
    def from_settings(cls, source: Optional[Settings] = None) -> "ComposerConfig":
        source = source or app_settings
        return cls(
            target_question_count=source.COMPOSER_TARGET_QUESTION_COUNT,
            mode=source.COMPOSER_DEFAULT_MODE,
            max_exposure_count=source.COMPOSER_MAX_EXPOSURE_COUNT,
            relaxation_schedule=tuple(source.COMPOSER_RELAXATION_SCHEDULE),
        )


def day_threshold(level: int, schedule: Tuple[int, ...]) -> Optional[int]:
    """Anti-repeat days for a relaxation level, or None past the schedule."""
    if 0 <= level < len(schedule):
        return schedule[level]
    return None
