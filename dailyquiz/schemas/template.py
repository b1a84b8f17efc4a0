"""
Pydantic schemas for quiz templates and the published CDN document.

QuizTemplate is the internal, answer-free snapshot of a daily quiz. CdnDocument
is its wire form: camelCase keys, a flat qid/type/payload list and the client
shuffle configuration. Downstream scorers read qid order and payloads only.
"""
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from dailyquiz.schemas.question_content import Choice, MediaRef


class TemplateQuestion(BaseModel):
    """A sanitized question at its final position in the quiz."""

    id: str
    question_type: str
    difficulty: str
    themes: List[str] = Field(default_factory=list)
    subjects: List[str] = Field(default_factory=list)
    prompt: Optional[Dict[str, Any]] = Field(
        None, description="Client-visible prompt fields for this kind"
    )
    choices: Optional[List[Choice]] = None
    media: Optional[List[MediaRef]] = None
    order_index: int


class TemplateMetadata(BaseModel):
    """Summary counts computed from the full question set."""

    generated_at: datetime
    total_questions: int
    difficulty_breakdown: Dict[str, int]
    theme_breakdown: Dict[str, int]


class QuizTemplate(BaseModel):
    """Immutable, answer-free snapshot of one daily quiz."""

    id: str = Field(..., description="Daily quiz id (or a preview id)")
    drop_at_utc: Optional[datetime] = None
    mode: str
    theme_plan: Dict[str, Any] = Field(default_factory=dict)
    questions: List[TemplateQuestion] = Field(default_factory=list)
    version: int = Field(..., description="Publish version, starts at 1")
    metadata: TemplateMetadata


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CdnPayload(_CamelModel):
    prompt: Optional[Dict[str, Any]] = None
    choices: Optional[List[Choice]] = None
    media: Optional[List[MediaRef]] = None
    themes: List[str]
    difficulty: str


class CdnQuestion(_CamelModel):
    qid: str
    type: str
    payload: CdnPayload


class ClientShuffle(_CamelModel):
    """Tells clients which lists to shuffle locally and how."""

    algo: Literal["xorshift"] = "xorshift"
    fields: List[str] = Field(default_factory=lambda: ["questions", "choices"])


class CdnMetadata(_CamelModel):
    generated_at: datetime
    total_questions: int
    difficulty_breakdown: Dict[str, int]
    theme_breakdown: Dict[str, int]


class CdnDocument(_CamelModel):
    """The JSON document uploaded to the object store."""

    daily_quiz_id: str
    version: int
    questions: List[CdnQuestion]
    client_shuffle: ClientShuffle = Field(default_factory=ClientShuffle)
    metadata: CdnMetadata
