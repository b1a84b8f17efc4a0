"""Daily quiz composition engine."""

__version__ = "0.1.0"
