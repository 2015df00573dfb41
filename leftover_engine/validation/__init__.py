"""Input validation package."""

from leftover_engine.validation.validator import InputValidator

__all__ = ["InputValidator"]
