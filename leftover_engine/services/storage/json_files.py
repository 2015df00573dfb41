"""
JSON File Storage Implementation

DESIGN DECISION: Plain JSON files are used as the storage backend because:
1. The user can open and back up their data with any editor
2. No database setup is required for a single-user desktop app
3. Datasets are tiny, so whole-file rewrites are cheap

Layout under the data directory:
    entities/bills.json
    entities/incomes.json
    entities/payment-sources.json
    entities/categories.json
    entities/undo.json            (only when undo persistence is enabled)
    months/YYYY-MM.json

Every write is atomic: the new content goes to a temporary file in the
same directory, is fsynced, and then replaces the target with os.replace.
A crash mid-write leaves the previous version intact.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from leftover_engine.config import StorageSettings
from leftover_engine.errors import InvalidMonthError, StorageError
from leftover_engine.models.budget import (
    BillTemplate,
    Category,
    IncomeTemplate,
    MonthlyData,
    PaymentSource,
    TemplateCollection,
    parse_month,
)
from leftover_engine.models.undo import UNDO_ENTRIES_ADAPTER
from leftover_engine.services.storage.interface import BudgetStorageInterface


# Collection attribute -> (file name, adapter)
ENTITY_FILES = {
    "bills": ("bills.json", TypeAdapter(list[BillTemplate])),
    "incomes": ("incomes.json", TypeAdapter(list[IncomeTemplate])),
    "payment_sources": ("payment-sources.json", TypeAdapter(list[PaymentSource])),
    "categories": ("categories.json", TypeAdapter(list[Category])),
}
UNDO_FILE = "undo.json"


def write_json_atomic(path: Path, content: bytes) -> None:
    """
    Atomically replace path with content.

    Raises:
        StorageError: If any step fails; the previous file is left untouched
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as e:
        raise StorageError(f"Failed to prepare write for {path}: {e}", path=str(path))

    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise StorageError(f"Failed to write {path}: {e}", path=str(path))


def _read_bytes(path: Path) -> Optional[bytes]:
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StorageError(f"Failed to read {path}: {e}", path=str(path))


class JsonFileStorage(BudgetStorageInterface):
    """
    File-per-collection, file-per-month JSON storage.

    Corrupt files are reported as StorageError instead of being treated as
    empty, so a damaged file is never silently overwritten.
    """

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or StorageSettings()
        self._entities_dir = self._settings.entities_dir
        self._months_dir = self._settings.months_dir

    @property
    def data_dir(self) -> Path:
        return self._settings.data_dir

    def _month_path(self, month: str) -> Path:
        parse_month(month)
        return self._months_dir / f"{month}.json"

    def load_templates(self) -> TemplateCollection:
        collections = {}
        for attribute, (filename, adapter) in ENTITY_FILES.items():
            path = self._entities_dir / filename
            raw = _read_bytes(path)
            if raw is None:
                collections[attribute] = []
                continue
            try:
                collections[attribute] = adapter.validate_json(raw)
            except PydanticValidationError as e:
                raise StorageError(f"Corrupt data in {path}: {e}", path=str(path))
        return TemplateCollection(**collections)

    def save_templates(self, collection: TemplateCollection) -> None:
        for attribute, (filename, adapter) in ENTITY_FILES.items():
            content = adapter.dump_json(getattr(collection, attribute), indent=2)
            write_json_atomic(self._entities_dir / filename, content)

    def load_month(self, month: str) -> Optional[MonthlyData]:
        path = self._month_path(month)
        raw = _read_bytes(path)
        if raw is None:
            return None
        try:
            return MonthlyData.model_validate_json(raw)
        except PydanticValidationError as e:
            raise StorageError(f"Corrupt data in {path}: {e}", path=str(path))

    def save_month(self, month: str, data: MonthlyData) -> None:
        if data.month != month:
            raise StorageError(f"Refusing to save {data.month} as {month}")
        write_json_atomic(self._month_path(month), data.model_dump_json(indent=2).encode("utf-8"))

    def month_exists(self, month: str) -> bool:
        return self._month_path(month).exists()

    def delete_month(self, month: str) -> None:
        path = self._month_path(month)
        try:
            path.unlink()
        except FileNotFoundError:
            raise StorageError(f"Month {month} does not exist", path=str(path))
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}", path=str(path))

    def list_months(self) -> list[str]:
        if not self._months_dir.exists():
            return []
        months = []
        for path in self._months_dir.glob("*.json"):
            try:
                parse_month(path.stem)
            except InvalidMonthError:
                continue
            months.append(path.stem)
        return sorted(months)

    def load_undo(self) -> list:
        path = self._entities_dir / UNDO_FILE
        raw = _read_bytes(path)
        if raw is None:
            return []
        try:
            return UNDO_ENTRIES_ADAPTER.validate_json(raw)
        except PydanticValidationError as e:
            raise StorageError(f"Corrupt data in {path}: {e}", path=str(path))

    def save_undo(self, entries: list) -> None:
        content = UNDO_ENTRIES_ADAPTER.dump_json(list(entries), indent=2)
        write_json_atomic(self._entities_dir / UNDO_FILE, content)

