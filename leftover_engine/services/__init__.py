"""
Engine services: month generation, instance overrides, undo and storage.
"""

from leftover_engine.services.months import MonthGenerator
from leftover_engine.services.overrides import (
    reset_to_default,
    set_instance_amount,
    toggle_paid,
)
from leftover_engine.services.undo import UndoStack, apply_revert, revert_scope

__all__ = [
    "MonthGenerator",
    "UndoStack",
    "apply_revert",
    "reset_to_default",
    "revert_scope",
    "set_instance_amount",
    "toggle_paid",
]
