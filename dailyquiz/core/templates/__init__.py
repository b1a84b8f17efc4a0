"""
Quiz template building and validation.
"""
from .builder import (
    QuizMeta,
    generate_template,
    serialize_document,
    template_stats,
    to_cdn_document,
)
from .validator import validate_template

__all__ = [
    "QuizMeta",
    "generate_template",
    "serialize_document",
    "template_stats",
    "to_cdn_document",
    "validate_template",
]
