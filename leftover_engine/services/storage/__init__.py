"""
Storage Services Package

Provides the abstract storage interface and its implementations: JSON
files on disk, an in-memory store, and a debouncing wrapper.
"""

from leftover_engine.services.storage.interface import (
    BudgetStorageInterface,
    StorageError,
)
from leftover_engine.services.storage.json_files import (
    JsonFileStorage,
    write_json_atomic,
)
from leftover_engine.services.storage.memory import InMemoryBudgetStorage
from leftover_engine.services.storage.auto_save import AutoSaver

__all__ = [
    # Interfaces
    "BudgetStorageInterface",
    # Exceptions
    "StorageError",
    # Implementations
    "AutoSaver",
    "InMemoryBudgetStorage",
    "JsonFileStorage",
    "write_json_atomic",
]
