"""In-memory storage, for tests and throwaway sessions."""

from typing import Optional

from leftover_engine.errors import StorageError
from leftover_engine.models.budget import MonthlyData, TemplateCollection, parse_month
from leftover_engine.services.storage.interface import BudgetStorageInterface


class InMemoryBudgetStorage(BudgetStorageInterface):
    """
    Keeps deep copies of everything it is given, so callers can never
    mutate stored state by accident.

    Set fail_writes to make every write raise StorageError.
    """

    def __init__(self, templates: Optional[TemplateCollection] = None):
        self._templates = (templates or TemplateCollection()).model_copy(deep=True)
        self._months: dict[str, MonthlyData] = {}
        self._undo: list = []
        self.fail_writes = False
        self.write_count = 0

    def _before_write(self, target: str) -> None:
        if self.fail_writes:
            raise StorageError(f"Simulated write failure for {target}", path=target)
        self.write_count += 1

    def load_templates(self) -> TemplateCollection:
        return self._templates.model_copy(deep=True)

    def save_templates(self, collection: TemplateCollection) -> None:
        self._before_write("templates")
        self._templates = collection.model_copy(deep=True)

    def load_month(self, month: str) -> Optional[MonthlyData]:
        parse_month(month)
        data = self._months.get(month)
        return data.model_copy(deep=True) if data else None

    def save_month(self, month: str, data: MonthlyData) -> None:
        parse_month(month)
        self._before_write(f"months/{month}")
        self._months[month] = data.model_copy(deep=True)

    def month_exists(self, month: str) -> bool:
        parse_month(month)
        return month in self._months

    def delete_month(self, month: str) -> None:
        self._before_write(f"months/{month}")
        if self._months.pop(month, None) is None:
            raise StorageError(f"Month {month} does not exist", path=f"months/{month}")

    def list_months(self) -> list[str]:
        return sorted(self._months)

    def load_undo(self) -> list:
        return [entry.model_copy(deep=True) for entry in self._undo]

    def save_undo(self, entries: list) -> None:
        self._before_write("undo")
        self._undo = [entry.model_copy(deep=True) for entry in entries]
