"""
Models package for the daily quiz composer.
"""
from .base import Base, engine, SessionLocal, get_db
from .models import (
    Question,
    DailyQuiz,
    DailyQuizQuestion,
    CompositionClaim,
    CompositionLog,
)

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "Question",
    "DailyQuiz",
    "DailyQuizQuestion",
    "CompositionClaim",
    "CompositionLog",
]
