"""
Undo Stack and Revert Dispatch

The undo stack is a bounded LIFO: it holds at most MAX_UNDO_ENTRIES (5)
entries, and pushing onto a full stack silently discards the oldest.

Undo is not selective and there is no redo: only the most recently pushed
entry can be reverted, and reverting it does not push anything.

DESIGN DECISION: Reverting is an exhaustive table lookup on the entry's
variant. Each variant names the collection its snapshots live in; the
old snapshot is written back (or the entity removed, if the original
mutation created it).

Templates and payment sources are never hard-deleted while something
still points at them: undoing the creation of one that a month or
another template references deactivates it instead.
"""

from collections import deque
from typing import Iterable, Optional, Protocol
from uuid import UUID

from leftover_engine.errors import NotFoundError, ProgrammerError
from leftover_engine.models.budget import MonthlyData, TemplateCollection, utc_now
from leftover_engine.models.undo import (
    MAX_UNDO_ENTRIES,
    BillInstanceChange,
    BillTemplateChange,
    FreeFlowingExpenseChange,
    IncomeInstanceChange,
    IncomeTemplateChange,
    PaymentSourceChange,
    UndoEntry,
    VariableExpenseChange,
)


class UndoStack:
    """Capacity-bounded LIFO of undo entries. Oldest entry first internally."""

    def __init__(
        self,
        entries: Optional[Iterable[UndoEntry]] = None,
        capacity: int = MAX_UNDO_ENTRIES,
    ):
        if not 1 <= capacity <= MAX_UNDO_ENTRIES:
            raise ValueError(f"Undo capacity must be between 1 and {MAX_UNDO_ENTRIES}")
        self._entries: deque = deque(maxlen=capacity)
        for entry in entries or ():
            self.push(entry)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def depth(self) -> int:
        return len(self._entries)

    @property
    def capacity(self) -> int:
        return self._entries.maxlen

    def push(self, entry: UndoEntry) -> Optional[UndoEntry]:
        """
        Append an entry, evicting the oldest if the stack is full.

        Returns:
            The evicted entry, if any
        """
        evicted = None
        if len(self._entries) == self._entries.maxlen:
            evicted = self._entries[0]
        self._entries.append(entry)
        return evicted

    def peek(self) -> Optional[UndoEntry]:
        return self._entries[-1] if self._entries else None

    def pop(self) -> Optional[UndoEntry]:
        return self._entries.pop() if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def discard_month(self, month: str) -> int:
        """Drop entries scoped to a month that no longer exists. Returns how many."""
        kept = [e for e in self._entries if getattr(e, "month", None) != month]
        dropped = len(self._entries) - len(kept)
        self._entries = deque(kept, maxlen=self._entries.maxlen)
        return dropped

    def entries(self) -> list[UndoEntry]:
        """Entries oldest first."""
        return list(self._entries)


class RevertTarget(Protocol):
    """What the reverter needs from the session."""

    templates: TemplateCollection

    def month_for_edit(self, month: str) -> MonthlyData:
        ...

    def template_in_use(self, template_id: UUID) -> bool:
        ...


# Variant -> (scope, collection attribute)
_REVERT_TABLE = {
    BillTemplateChange: ("templates", "bills"),
    IncomeTemplateChange: ("templates", "incomes"),
    PaymentSourceChange: ("templates", "payment_sources"),
    BillInstanceChange: ("month", "bill_instances"),
    IncomeInstanceChange: ("month", "income_instances"),
    VariableExpenseChange: ("month", "variable_expenses"),
    FreeFlowingExpenseChange: ("month", "free_flowing_expenses"),
}


def revert_scope(entry: UndoEntry) -> tuple[str, str]:
    """("templates" | "month", collection attribute) for an entry."""
    try:
        return _REVERT_TABLE[type(entry)]
    except KeyError:
        raise ProgrammerError(f"No revert rule for {type(entry).__name__}")


def apply_revert(entry: UndoEntry, target: RevertTarget):
    """
    Write the entry's old snapshot back onto the target's collections.

    Mutates the target in place. Returns the restored entity, or None when
    the entity was removed because the original mutation created it. A
    created template that is still referenced is deactivated and returned.

    Raises:
        NotFoundError: The entity (or its month) no longer exists
        ReadOnlyMonthError: The entity's month is locked
    """
    scope, attribute = revert_scope(entry)
    if scope == "templates":
        items = getattr(target.templates, attribute)
    else:
        items = getattr(target.month_for_edit(entry.month), attribute)

    index = next(
        (i for i, item in enumerate(items) if item.id == entry.entity_id),
        None,
    )

    if entry.old_value is None:
        if index is None:
            raise NotFoundError(entry.entity_type, entry.entity_id)
        if scope == "templates" and target.template_in_use(entry.entity_id):
            items[index] = items[index].model_copy(
                update={"active": False, "updated_at": utc_now()}
            )
            return items[index]
        del items[index]
        return None

    restored = entry.old_value.model_copy(deep=True)
    if index is None:
        items.append(restored)
    else:
        items[index] = restored
    return restored
