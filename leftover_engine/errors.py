"""
Error Taxonomy

DESIGN DECISION: Every failure the engine can produce belongs to one of a
small number of families, so callers can decide what to do without
inspecting messages:

1. ValidationError  - bad input, rejected before any state changes.
   The caller can re-prompt the user.
2. NotFoundError    - the month/instance/entity being addressed does not exist.
3. StorageError     - a read or write failed. Never retried automatically.
4. ProgrammerError  - the engine was called in a way that is never valid
   (e.g. regenerating an existing month). Fail fast, never ignored.
5. ReadOnlyMonthError - the month has been locked by the user.
"""

from typing import Optional


class BudgetEngineError(Exception):
    """Base exception for all engine errors."""
    pass


class ValidationError(BudgetEngineError):
    """Input failed validation. Carries the offending field name."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidMonthError(ValidationError):
    """Month string is not a valid YYYY-MM value."""

    def __init__(self, month: object):
        super().__init__(
            f"Invalid month {month!r}: expected YYYY-MM",
            field="month",
        )
        self.month = month


class InvalidBillingPeriodError(ValidationError):
    """Billing period is not one of the supported values."""

    def __init__(self, period: object):
        super().__init__(
            f"Invalid billing period {period!r}",
            field="billing_period",
        )
        self.period = period


class NotFoundError(BudgetEngineError):
    """Entity not found."""

    def __init__(self, resource: str, entity_id: Optional[object] = None):
        if entity_id is not None:
            message = f"{resource} with id {entity_id} not found"
        else:
            message = f"{resource} not found"
        super().__init__(message)
        self.resource = resource
        self.entity_id = entity_id


class StorageError(BudgetEngineError):
    """Reading or writing persisted data failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path


class ProgrammerError(BudgetEngineError):
    """The engine was used in a way that is never valid."""
    pass


class MonthAlreadyExistsError(ProgrammerError):
    """generate_month was called for a month that already has data."""

    def __init__(self, month: str):
        super().__init__(
            f"Month {month} already exists; regenerating would discard user edits"
        )
        self.month = month


class UndoDepthMismatchError(ProgrammerError):
    """The caller's view of the undo stack is out of date."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Undo stack depth mismatch: caller expected {expected}, stack holds {actual}"
        )
        self.expected = expected
        self.actual = actual


class ReadOnlyMonthError(BudgetEngineError):
    """Month is locked against edits."""

    def __init__(self, month: str):
        super().__init__(f"Month {month} is read-only. Unlock it to make changes.")
        self.month = month


def format_error_for_user(error: BaseException) -> str:
    """
    Turn an exception into a message that can be shown to the user.

    Storage and unexpected errors get a generic, actionable message;
    everything else already has a user-facing message.
    """
    if isinstance(error, StorageError):
        return "Failed to save data. Check that the data folder is writable and try again."
    if isinstance(error, ProgrammerError):
        return "Something went wrong. Please reload and try again."
    if isinstance(error, BudgetEngineError):
        return str(error)
    return "An unexpected error occurred. Please try again."


def format_error_for_dev(error: BaseException) -> dict:
    """Structured description of an error, for logs."""
    details = {
        "type": type(error).__name__,
        "message": str(error),
    }
    field = getattr(error, "field", None)
    if field:
        details["field"] = field
    path = getattr(error, "path", None)
    if path:
        details["path"] = path
    return details
