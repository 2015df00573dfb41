"""
Abstract Storage Interface

DESIGN DECISION: The engine talks to persistence through this interface
only. This allows us to:
1. Keep the engine's logic independent of the file layout
2. Use in-memory storage for testing
3. Add debounced writing transparently (see AutoSaver)

The interface is intentionally simple: whole collections and whole months
are read and written at once. Datasets are small (well under 1MB).
"""

from abc import ABC, abstractmethod
from typing import Optional

from leftover_engine.errors import StorageError
from leftover_engine.models.budget import MonthlyData, TemplateCollection


class BudgetStorageInterface(ABC):
    """
    Abstract interface for budget storage operations.

    Any storage implementation must implement these methods. Failures are
    raised as StorageError; they are never retried here.
    """

    @abstractmethod
    def load_templates(self) -> TemplateCollection:
        """
        Load bills, incomes, payment sources and categories.

        Returns:
            The collections; empty lists for anything not yet saved

        Raises:
            StorageError: If stored data cannot be read or parsed
        """
        pass

    @abstractmethod
    def save_templates(self, collection: TemplateCollection) -> None:
        """
        Persist all template and reference-data collections.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def load_month(self, month: str) -> Optional[MonthlyData]:
        """
        Load one month.

        Returns:
            The month's data, or None if the month was never created
        """
        pass

    @abstractmethod
    def save_month(self, month: str, data: MonthlyData) -> None:
        """
        Persist one month, replacing any previous version.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def month_exists(self, month: str) -> bool:
        """Check whether a month has been created."""
        pass

    @abstractmethod
    def delete_month(self, month: str) -> None:
        """
        Remove a month.

        Raises:
            StorageError: If the month cannot be removed
        """
        pass

    @abstractmethod
    def list_months(self) -> list[str]:
        """All created months, oldest first."""
        pass

    @abstractmethod
    def load_undo(self) -> list:
        """Persisted undo entries, oldest first. Empty if none."""
        pass

    @abstractmethod
    def save_undo(self, entries: list) -> None:
        """Persist the undo entries, oldest first."""
        pass


__all__ = ["BudgetStorageInterface", "StorageError"]
