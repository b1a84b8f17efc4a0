"""Shared domain types for the daily quiz services.

This package is the single source of truth for domain enums used by the
composer, the persistence models and (indirectly via the published template)
the mobile clients.

Usage:
    from libs.domain_types import QuestionType, DifficultyLevel
"""

import enum


class DifficultyLevel(str, enum.Enum):
    """Difficulty levels for questions."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


# Fixed processing order: selection, redistribution priority and template order.
DIFFICULTY_ORDER = (DifficultyLevel.EASY, DifficultyLevel.MEDIUM, DifficultyLevel.HARD)


class QuestionType(str, enum.Enum):
    """Kinds of trivia questions. Each kind has its own prompt shape."""

    ALBUM_YEAR_GUESS = "album-year-guess"
    SONG_ALBUM_MATCH = "song-album-match"
    FILL_BLANK = "fill-blank"
    GUESS_BY_LYRIC = "guess-by-lyric"
    ODD_ONE_OUT = "odd-one-out"
    AI_VISUAL = "ai-visual"
    SOUND_ALIKE_SNIPPET = "sound-alike-snippet"
    MOOD_MATCH = "mood-match"
    INSPIRATION_MAP = "inspiration-map"
    LIFE_TRIVIA = "life-trivia"
    TIMELINE_ORDER = "timeline-order"
    POPULARITY_MATCH = "popularity-match"
    LONGEST_SONG = "longest-song"
    TRACKLIST_ORDER = "tracklist-order"
    OUTFIT_ERA = "outfit-era"
    LYRIC_MASHUP = "lyric-mashup"
    SPEED_TAP = "speed-tap"
    REVERSE_AUDIO = "reverse-audio"
    ONE_SECOND = "one-second"


class QuestionTheme(str, enum.Enum):
    """Content themes a question can be tagged with."""

    LYRICS = "lyrics"
    ALBUMS = "albums"
    TIMELINE = "timeline"
    AUDIO = "audio"
    SONGS = "songs"
    CAREER = "career"
    AESTHETIC = "aesthetic"
    OUTFITS = "outfits"
    TOURS = "tours"
    CHARTS = "charts"
    POPULARITY = "popularity"
    EVENTS = "events"
    TRIVIA = "trivia"
    INSPIRATION = "inspiration"
    MOOD = "mood"
    MASHUPS = "mashups"
    TRACKLIST = "tracklist"
    SPEED = "speed"
    VISUALS = "visuals"


class QuizMode(str, enum.Enum):
    """Daily quiz modes."""

    MIX = "mix"
    SPOTLIGHT = "spotlight"
    EVENT = "event"


class ClaimStatus(str, enum.Enum):
    """Lifecycle of a per-date composition claim."""

    CLAIMED = "claimed"
    COMPLETED = "completed"
    FAILED = "failed"
