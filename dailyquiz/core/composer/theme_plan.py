"""
Theme planning.

Each daily quiz gets a theme plan derived from its mode and date:
- mix: one of seven theme triples rotated by weekday, equal weights
- spotlight: a single theme picked by day of year
- event: a curated plan for special dates, otherwise the mix plan
"""
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from libs.domain_types import QuestionTheme, QuizMode

# Indexed by weekday with Sunday = 0
MIX_ROTATIONS: List[List[QuestionTheme]] = [
    [QuestionTheme.LYRICS, QuestionTheme.ALBUMS, QuestionTheme.TIMELINE],
    [QuestionTheme.AUDIO, QuestionTheme.SONGS, QuestionTheme.CAREER],
    [QuestionTheme.AESTHETIC, QuestionTheme.OUTFITS, QuestionTheme.TOURS],
    [QuestionTheme.CHARTS, QuestionTheme.POPULARITY, QuestionTheme.EVENTS],
    [QuestionTheme.TRIVIA, QuestionTheme.INSPIRATION, QuestionTheme.MOOD],
    [QuestionTheme.MASHUPS, QuestionTheme.TRACKLIST, QuestionTheme.SPEED],
    [QuestionTheme.VISUALS, QuestionTheme.AUDIO, QuestionTheme.ALBUMS],
]
MIX_THEME_WEIGHT = 2
SPOTLIGHT_THEME_WEIGHT = 6

# (month, day) -> (event name, weighted themes)
SPECIAL_EVENTS: Dict[tuple, tuple] = {
    (12, 13): (
        "Taylor Swift's Birthday",
        {
            QuestionTheme.CAREER: 3,
            QuestionTheme.TIMELINE: 2,
            QuestionTheme.TRIVIA: 1,
        },
    ),
}


@dataclass
class ThemePlan:
    """Theme preferences for one quiz. Stored with the quiz as JSON."""

    mode: QuizMode
    themes: List[str]
    weights: Dict[str, int] = field(default_factory=dict)
    spotlight: Optional[str] = None
    event: Optional[str] = None
    subject_restrictions: List[str] = field(default_factory=list)

    def preferred_themes(self) -> List[str]:
        """Themes the selector should prefer: the spotlight alone, if set."""
        if self.spotlight:
            return [self.spotlight]
        return list(self.themes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["mode"] = QuizMode(self.mode).value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ThemePlan":
        return cls(
            mode=QuizMode(data["mode"]),
            themes=list(data.get("themes") or []),
            weights=dict(data.get("weights") or {}),
            spotlight=data.get("spotlight"),
            event=data.get("event"),
            subject_restrictions=list(data.get("subject_restrictions") or []),
        )


def _weekday_sunday_first(day: date) -> int:
    return (day.weekday() + 1) % 7


def mix_plan(day: date) -> ThemePlan:
    themes = [t.value for t in MIX_ROTATIONS[_weekday_sunday_first(day)]]
    return ThemePlan(
        mode=QuizMode.MIX,
        themes=themes,
        weights={theme: MIX_THEME_WEIGHT for theme in themes},
    )


def spotlight_plan(day: date) -> ThemePlan:
    all_themes = list(QuestionTheme)
    theme = all_themes[day.timetuple().tm_yday % len(all_themes)].value
    return ThemePlan(
        mode=QuizMode.SPOTLIGHT,
        themes=[theme],
        spotlight=theme,
        weights={theme: SPOTLIGHT_THEME_WEIGHT},
    )


def event_plan(day: date) -> ThemePlan:
    """Curated plan for special dates. Ordinary dates fall back to mix."""
    special = SPECIAL_EVENTS.get((day.month, day.day))
    if special is None:
        return mix_plan(day)
    name, weighted = special
    return ThemePlan(
        mode=QuizMode.EVENT,
        themes=[theme.value for theme in weighted],
        event=name,
        weights={theme.value: weight for theme, weight in weighted.items()},
    )


def generate_theme_plan(mode: QuizMode, day: date) -> ThemePlan:
    mode = QuizMode(mode)
    if mode == QuizMode.SPOTLIGHT:
        return spotlight_plan(day)
    if mode == QuizMode.EVENT:
        return event_plan(day)
    return mix_plan(day)
