"""
Client-visible question content.

Every question kind has a prompt model listing exactly the fields the client
may see. Validating a stored prompt through its model drops everything else
(internal notes, admin comments, scoring hints), so sanitization is a matter
of looking the kind up in PROMPT_MODELS and dumping the result.
"""
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from dailyquiz.core.errors import UnsupportedQuestionTypeError
from libs.domain_types import QuestionType


class PromptBase(BaseModel):
    """Fields shared by every prompt: the instruction shown to the player."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    task: str = Field(..., description="Instruction shown above the question")


class AlbumYearGuessPrompt(PromptBase):
    album: str


class SongAlbumMatchPrompt(PromptBase):
    left: List[str]
    right: List[str]


class FillBlankPrompt(PromptBase):
    text: str = Field(..., description="Lyric or sentence with the blank marked")


class GuessByLyricPrompt(PromptBase):
    lyric: str


class OddOneOutPrompt(PromptBase):
    set_rule: str = Field(..., alias="setRule")


class AiVisualPrompt(PromptBase):
    pass


class SoundAlikeSnippetPrompt(PromptBase):
    pass


class MoodMatchPrompt(PromptBase):
    mood_tags: List[str] = Field(..., alias="moodTags")
    note: Optional[str] = None


class InspirationMapPrompt(PromptBase):
    disclaimer: Optional[str] = None


class LifeTriviaPrompt(PromptBase):
    question: str


class TimelineOrderPrompt(PromptBase):
    items: List[str]


class PopularityMatchPrompt(PromptBase):
    as_of: str = Field(..., alias="asOf", description="Date the chart data refers to")


class LongestSongPrompt(PromptBase):
    pass


class TracklistOrderPrompt(PromptBase):
    album: str
    tracks: List[str]


class OutfitEraPrompt(PromptBase):
    pass


class LyricMashupPrompt(PromptBase):
    snippets: List[str]
    options_per_snippet: List[List[str]] = Field(..., alias="optionsPerSnippet")


class SpeedTapPrompt(PromptBase):
    target_rule: str = Field(..., alias="targetRule")
    round_seconds: int = Field(..., alias="roundSeconds", gt=0)
    grid: List[str]


class ReverseAudioPrompt(PromptBase):
    pass


class OneSecondPrompt(PromptBase):
    pass


PROMPT_MODELS: Dict[QuestionType, Type[PromptBase]] = {
    QuestionType.ALBUM_YEAR_GUESS: AlbumYearGuessPrompt,
    QuestionType.SONG_ALBUM_MATCH: SongAlbumMatchPrompt,
    QuestionType.FILL_BLANK: FillBlankPrompt,
    QuestionType.GUESS_BY_LYRIC: GuessByLyricPrompt,
    QuestionType.ODD_ONE_OUT: OddOneOutPrompt,
    QuestionType.AI_VISUAL: AiVisualPrompt,
    QuestionType.SOUND_ALIKE_SNIPPET: SoundAlikeSnippetPrompt,
    QuestionType.MOOD_MATCH: MoodMatchPrompt,
    QuestionType.INSPIRATION_MAP: InspirationMapPrompt,
    QuestionType.LIFE_TRIVIA: LifeTriviaPrompt,
    QuestionType.TIMELINE_ORDER: TimelineOrderPrompt,
    QuestionType.POPULARITY_MATCH: PopularityMatchPrompt,
    QuestionType.LONGEST_SONG: LongestSongPrompt,
    QuestionType.TRACKLIST_ORDER: TracklistOrderPrompt,
    QuestionType.OUTFIT_ERA: OutfitEraPrompt,
    QuestionType.LYRIC_MASHUP: LyricMashupPrompt,
    QuestionType.SPEED_TAP: SpeedTapPrompt,
    QuestionType.REVERSE_AUDIO: ReverseAudioPrompt,
    QuestionType.ONE_SECOND: OneSecondPrompt,
}


class MediaChoice(BaseModel):
    """An image or audio answer option. Carries no correctness data."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    type: Optional[Literal["image", "audio"]] = None
    url: str
    label: Optional[str] = None


class MediaRef(BaseModel):
    """Media attached to a question body."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["image", "audio"]
    url: str


Choice = Union[str, MediaChoice]


def prompt_model_for(
    question_type: Union[QuestionType, str], question_id: Optional[str] = None
) -> Type[PromptBase]:
    """Look up the prompt model for a kind.

    Raises:
        UnsupportedQuestionTypeError: If the kind is unknown or has no model.
    """
    try:
        kind = QuestionType(question_type)
    except ValueError:
        raise UnsupportedQuestionTypeError(str(question_type), question_id)
    model = PROMPT_MODELS.get(kind)
    if model is None:
        raise UnsupportedQuestionTypeError(kind.value, question_id)
    return model


def sanitize_prompt(
    question_type: Union[QuestionType, str],
    prompt: Dict[str, Any],
    question_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Reduce a stored prompt to its client-visible fields."""
    model = prompt_model_for(question_type, question_id)
    return model.model_validate(prompt or {}).model_dump(by_alias=True, exclude_none=True)


def sanitize_choices(choices: Optional[List[Any]]) -> Optional[List[Choice]]:
    """Keep plain string choices and reduce dict choices to their media fields.

    Returns None when there are no choices (free-form kinds).
    """
    if not choices:
        return None
    sanitized: List[Choice] = []
    for choice in choices:
        if isinstance(choice, str):
            sanitized.append(choice)
        elif isinstance(choice, dict):
            sanitized.append(MediaChoice.model_validate(choice))
        else:
            raise ValueError(f"Unrecognized choice shape: {type(choice).__name__}")
    return sanitized


def sanitize_media(media: Optional[List[Dict[str, Any]]]) -> Optional[List[MediaRef]]:
    """Keep only type and url of each media reference."""
    if not media:
        return None
    return [MediaRef.model_validate(item) for item in media]
