"""
Debounced Auto-Save

DESIGN DECISION: The engine keeps its collections in memory as the source
of truth and hands every change to the AutoSaver, which coalesces rapid
edits into one write per target after a short quiet period (500ms by
default). Callers never wait on disk, and typing an amount digit by digit
does not rewrite the month file on every keystroke.

GUARANTEES:
- Payloads are deep-copied when queued; later in-memory edits never leak
  into a write that is already scheduled
- Reads see queued-but-unwritten data (read-your-writes)
- Writes are serialized; a newer version is never overwritten by an older one
- flush() writes everything pending before returning and raises
  StorageError if any write, queued or earlier, failed. Call it (or close())
  before the process exits
- Failures are reported, never retried

With debounce_ms=0 every save is written through synchronously and its
StorageError reaches the caller directly.
"""

import threading
from typing import Callable, Optional

from leftover_engine.audit import EngineLogger
from leftover_engine.errors import StorageError
from leftover_engine.models.budget import MonthlyData, TemplateCollection
from leftover_engine.services.storage.interface import BudgetStorageInterface


class _PendingWrite:
    __slots__ = ("write", "timer")

    def __init__(self, write: Callable[[], None], timer: Optional[threading.Timer]):
        self.write = write
        self.timer = timer


class AutoSaver(BudgetStorageInterface):
    """
    Wraps another storage and debounces its writes.

    Implements the same interface, so the engine cannot tell whether it is
    writing through or debouncing.
    """

    def __init__(
        self,
        storage: BudgetStorageInterface,
        debounce_ms: int = 500,
        logger: Optional[EngineLogger] = None,
    ):
        if debounce_ms < 0:
            raise ValueError("debounce_ms cannot be negative")
        self._storage = storage
        self._delay = debounce_ms / 1000
        self._logger = logger or EngineLogger()
        self._lock = threading.RLock()
        self._pending: dict[tuple, _PendingWrite] = {}
        self._pending_months: dict[str, MonthlyData] = {}
        self._pending_templates: Optional[TemplateCollection] = None
        self._pending_undo: Optional[list] = None
        self._errors: list[StorageError] = []

    @property
    def wrapped(self) -> BudgetStorageInterface:
        return self._storage

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # -------------------------------------------------------------------------
    # Queueing
    # -------------------------------------------------------------------------

    def _queue(self, key: tuple, write: Callable[[], None]) -> None:
        if self._delay == 0:
            with self._lock:
                self._run(key, write)
            return

        with self._lock:
            existing = self._pending.get(key)
            if existing and existing.timer:
                existing.timer.cancel()
            pending = _PendingWrite(write, None)
            timer = threading.Timer(self._delay, self._fire, args=(key, pending))
            timer.daemon = True
            pending.timer = timer
            self._pending[key] = pending
            timer.start()

    def _fire(self, key: tuple, pending: _PendingWrite) -> None:
        with self._lock:
            if self._pending.get(key) is not pending:
                return
            del self._pending[key]
            try:
                self._run(key, pending.write)
            except StorageError as e:
                self._errors.append(e)
            finally:
                self._clear_shadow(key)

    def _run(self, key: tuple, write: Callable[[], None]) -> None:
        try:
            write()
        except StorageError as e:
            self._logger.log_storage_write_failed("/".join(key), str(e))
            raise

    def _clear_shadow(self, key: tuple) -> None:
        if key[0] == "month":
            self._pending_months.pop(key[1], None)
        elif key[0] == "templates":
            self._pending_templates = None
        elif key[0] == "undo":
            self._pending_undo = None

    def flush(self) -> int:
        """
        Write everything pending now.

        Returns:
            Number of writes performed

        Raises:
            StorageError: If any pending or earlier background write failed
        """
        written = 0
        with self._lock:
            pending = list(self._pending.items())
            self._pending.clear()
            for key, entry in pending:
                if entry.timer:
                    entry.timer.cancel()
                try:
                    self._run(key, entry.write)
                    written += 1
                except StorageError as e:
                    self._errors.append(e)
                finally:
                    self._clear_shadow(key)

            errors, self._errors = self._errors, []

        self._logger.log_storage_flushed(written)
        if errors:
            raise StorageError(
                f"{len(errors)} write(s) failed: " + "; ".join(str(e) for e in errors),
                path=errors[0].path,
            )
        return written

    def close(self) -> None:
        self.flush()

    # -------------------------------------------------------------------------
    # BudgetStorageInterface
    # -------------------------------------------------------------------------

    def load_templates(self) -> TemplateCollection:
        with self._lock:
            if self._pending_templates is not None:
                return self._pending_templates.model_copy(deep=True)
        return self._storage.load_templates()

    def save_templates(self, collection: TemplateCollection) -> None:
        snapshot = collection.model_copy(deep=True)
        with self._lock:
            if self._delay:
                self._pending_templates = snapshot
            self._queue(("templates",), lambda: self._storage.save_templates(snapshot))

    def load_month(self, month: str) -> Optional[MonthlyData]:
        with self._lock:
            pending = self._pending_months.get(month)
            if pending is not None:
                return pending.model_copy(deep=True)
        return self._storage.load_month(month)

    def save_month(self, month: str, data: MonthlyData) -> None:
        snapshot = data.model_copy(deep=True)
        with self._lock:
            if self._delay:
                self._pending_months[month] = snapshot
            self._queue(("month", month), lambda: self._storage.save_month(month, snapshot))

    def month_exists(self, month: str) -> bool:
        with self._lock:
            if month in self._pending_months:
                return True
        return self._storage.month_exists(month)

    def delete_month(self, month: str) -> None:
        with self._lock:
            entry = self._pending.pop(("month", month), None)
            if entry and entry.timer:
                entry.timer.cancel()
            was_pending = self._pending_months.pop(month, None) is not None
            if was_pending and not self._storage.month_exists(month):
                return
            self._storage.delete_month(month)

    def list_months(self) -> list[str]:
        with self._lock:
            pending = set(self._pending_months)
        return sorted(pending | set(self._storage.list_months()))

    def load_undo(self) -> list:
        with self._lock:
            if self._pending_undo is not None:
                return [entry.model_copy(deep=True) for entry in self._pending_undo]
        return self._storage.load_undo()

    def save_undo(self, entries: list) -> None:
        snapshot = [entry.model_copy(deep=True) for entry in entries]
        with self._lock:
            if self._delay:
                self._pending_undo = snapshot
            self._queue(("undo",), lambda: self._storage.save_undo(snapshot))
