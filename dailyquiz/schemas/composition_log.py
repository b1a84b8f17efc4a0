"""
Pydantic schemas for the composition audit log.

One CompositionLogRecord is produced per run. The orchestrator persists it
through dailyquiz.core.composer.composition_log; preview runs return it
without persisting. Derived figures (highest relaxation level, average
exposure) are free functions in that module, not properties here.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SelectionAttempt(BaseModel):
    """One query against the pool at a given relaxation level."""

    level: int = Field(..., ge=0)
    day_threshold: Optional[int] = Field(
        None, description="Anti-repeat days at this level (None beyond the schedule)"
    )
    fetched: int = Field(..., ge=0, description="Eligible candidates returned")
    taken: int = Field(..., ge=0, description="Candidates kept for the quiz")
    theme_preference_applied: bool


class DifficultySelection(BaseModel):
    """How one difficulty slice was filled."""

    difficulty: str
    attempted: int = Field(..., ge=0, description="Planned count for this difficulty")
    selected: int = Field(..., ge=0)
    relaxation_level: int = Field(..., ge=0, description="Highest level that was needed")
    issues: List[str] = Field(default_factory=list)
    attempts: List[SelectionAttempt] = Field(default_factory=list)


class FinalSelection(BaseModel):
    """Aggregate figures over the selected question set."""

    total_questions: int
    difficulty_actual: Dict[str, int]
    difficulty_target: Dict[str, int]
    theme_distribution: Dict[str, int]
    subject_distribution: Dict[str, int]
    average_exposure: float
    oldest_last_used: Optional[datetime] = None
    newest_last_used: Optional[datetime] = None


class Performance(BaseModel):
    duration_ms: int = Field(0, ge=0)
    db_queries: int = Field(0, ge=0)


class CompositionLogRecord(BaseModel):
    """Audit record of one composition run."""

    model_config = ConfigDict(from_attributes=True)

    target_date: date
    mode: str
    theme_plan: Optional[Dict[str, Any]] = None
    selection_process: List[DifficultySelection] = Field(default_factory=list)
    final_selection: Optional[FinalSelection] = None
    warnings: List[str] = Field(default_factory=list)
    fallbacks: List[str] = Field(default_factory=list)
    performance: Performance = Field(default_factory=Performance)
    has_errors: bool = False
    error_message: Optional[str] = None
    daily_quiz_id: Optional[str] = None
