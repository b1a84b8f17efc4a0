"""
Core module for configuration, logging and the composition engine.

The composer and template subpackages are not imported at package level to
avoid circular imports with dailyquiz.models. Import them directly:
from dailyquiz.core.composer import ... or from dailyquiz.core.templates import ...
"""
from .config import settings

__all__ = ["settings"]
