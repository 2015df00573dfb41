"""Engine logging package."""

from leftover_engine.audit.logger import EngineLogger, configure_logging

__all__ = ["EngineLogger", "configure_logging"]
