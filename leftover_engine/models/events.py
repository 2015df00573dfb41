"""
Engine Event Models

Every significant engine action is described by an EngineEvent before it
is written to the structured log. This gives:
1. One consistent shape for every log line
2. Debugging information when a month looks wrong
3. A single place to see which actions the engine reports

These events are log records only. They are not persisted and are not an
audit trail; the undo stack is the only history the engine keeps.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from leftover_engine.models.budget import utc_now


class EngineEventType(str, Enum):
    """Types of events the engine reports."""
    # Months
    MONTH_GENERATED = "month_generated"
    MONTH_DELETED = "month_deleted"
    MONTH_LOCK_TOGGLED = "month_lock_toggled"

    # Month contents
    INSTANCE_UPDATED = "instance_updated"
    EXPENSE_CHANGED = "expense_changed"
    BALANCE_UPDATED = "balance_updated"

    # Templates and reference data
    TEMPLATE_CHANGED = "template_changed"

    # Undo
    UNDO_PUSHED = "undo_pushed"
    UNDO_APPLIED = "undo_applied"
    UNDO_EMPTY = "undo_empty"

    # Storage
    STORAGE_WRITE_FAILED = "storage_write_failed"
    STORAGE_FLUSHED = "storage_flushed"

    # Errors
    VALIDATION_FAILED = "validation_failed"


class EngineSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EngineEvent(BaseModel):
    """A single engine event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=utc_now)

    event_type: EngineEventType
    severity: EngineSeverity = EngineSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    month: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "month": self.month,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class EngineEventBuilder:
    """
    Helper class to build engine events with common patterns.

    Usage:
        event = EngineEventBuilder.month_generated("2025-03", bills=4, incomes=2)
    """

    @staticmethod
    def month_generated(month: str, bills: int, incomes: int) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.MONTH_GENERATED,
            entity_type="month",
            month=month,
            description=f"Generated {month} with {bills} bill and {incomes} income instances",
            details={"bill_instances": bills, "income_instances": incomes},
        )

    @staticmethod
    def month_deleted(month: str) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.MONTH_DELETED,
            severity=EngineSeverity.WARNING,
            entity_type="month",
            month=month,
            description=f"Deleted {month}",
        )

    @staticmethod
    def month_lock_toggled(month: str, is_read_only: bool) -> EngineEvent:
        state = "read-only" if is_read_only else "editable"
        return EngineEvent(
            event_type=EngineEventType.MONTH_LOCK_TOGGLED,
            entity_type="month",
            month=month,
            description=f"{month} is now {state}",
            details={"is_read_only": is_read_only},
        )

    @staticmethod
    def instance_updated(
        entity_type: str,
        instance_id: UUID,
        month: str,
        changes: dict[str, Any],
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.INSTANCE_UPDATED,
            entity_type=entity_type,
            entity_id=instance_id,
            month=month,
            description=f"Updated {entity_type} in {month}",
            details=changes,
        )

    @staticmethod
    def expense_changed(
        entity_type: str,
        expense_id: UUID,
        month: str,
        action: str,
    ) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.EXPENSE_CHANGED,
            entity_type=entity_type,
            entity_id=expense_id,
            month=month,
            description=f"{action.capitalize()} {entity_type} in {month}",
            details={"action": action},
        )

    @staticmethod
    def balance_updated(month: str, source_id: UUID, balance: int) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.BALANCE_UPDATED,
            entity_type="payment_source",
            entity_id=source_id,
            month=month,
            description=f"Balance entered for {month}",
            details={"balance_cents": balance},
        )

    @staticmethod
    def template_changed(entity_type: str, entity_id: UUID, action: str) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.TEMPLATE_CHANGED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"{action.capitalize()} {entity_type}",
            details={"action": action},
        )

    @staticmethod
    def undo_pushed(entity_type: str, entity_id: UUID, depth: int) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.UNDO_PUSHED,
            severity=EngineSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Recorded {entity_type} change for undo",
            details={"depth": depth},
        )

    @staticmethod
    def undo_applied(entity_type: str, entity_id: UUID, depth: int) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.UNDO_APPLIED,
            entity_type=entity_type,
            entity_id=entity_id,
            description=f"Reverted {entity_type} change",
            details={"depth": depth},
        )

    @staticmethod
    def undo_empty() -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.UNDO_EMPTY,
            severity=EngineSeverity.DEBUG,
            description="Nothing to undo",
        )

    @staticmethod
    def storage_write_failed(target: str, error_message: str) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.STORAGE_WRITE_FAILED,
            severity=EngineSeverity.ERROR,
            entity_type="storage",
            description=f"Failed to write {target}",
            details={"target": target},
            error_message=error_message,
        )

    @staticmethod
    def storage_flushed(written: int) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.STORAGE_FLUSHED,
            severity=EngineSeverity.DEBUG,
            entity_type="storage",
            description=f"Flushed {written} pending writes",
            details={"written": written},
        )

    @staticmethod
    def validation_failed(field: Optional[str], message: str) -> EngineEvent:
        return EngineEvent(
            event_type=EngineEventType.VALIDATION_FAILED,
            severity=EngineSeverity.WARNING,
            description="Input rejected",
            details={"field": field},
            error_message=message,
        )
