"""
Undo Models

DESIGN DECISION: An undo entry is a tagged union keyed by entity_type.
Each variant carries strongly-typed before/after snapshots of its own
entity, so reverting is an exhaustive dispatch on the variant instead of
copying untyped fields around.

Snapshot conventions (all variants):
- old_value is None  -> the mutation created the entity
- new_value is None  -> the mutation removed the entity
- both present       -> the mutation edited the entity
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from leftover_engine.models.budget import (
    BillInstance,
    BillTemplate,
    FreeFlowingExpense,
    IncomeInstance,
    IncomeTemplate,
    PaymentSource,
    VariableExpense,
    utc_now,
)


MAX_UNDO_ENTRIES = 5


class UndoEntityType(str, Enum):
    BILL = "bill"
    INCOME = "income"
    PAYMENT_SOURCE = "payment_source"
    BILL_INSTANCE = "bill_instance"
    INCOME_INSTANCE = "income_instance"
    VARIABLE_EXPENSE = "variable_expense"
    FREE_FLOWING_EXPENSE = "free_flowing_expense"


class _UndoEntryBase(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    entity_id: UUID
    timestamp: datetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_snapshots(self):
        old_value = getattr(self, "old_value", None)
        new_value = getattr(self, "new_value", None)
        if old_value is None and new_value is None:
            raise ValueError("An undo entry needs at least one snapshot")
        for snapshot in (old_value, new_value):
            if snapshot is not None and snapshot.id != self.entity_id:
                raise ValueError("Snapshot id does not match entity_id")
        return self


class _MonthScopedEntry(_UndoEntryBase):
    month: str


class BillTemplateChange(_UndoEntryBase):
    entity_type: Literal["bill"] = "bill"
    old_value: Optional[BillTemplate] = None
    new_value: Optional[BillTemplate] = None


class IncomeTemplateChange(_UndoEntryBase):
    entity_type: Literal["income"] = "income"
    old_value: Optional[IncomeTemplate] = None
    new_value: Optional[IncomeTemplate] = None


class PaymentSourceChange(_UndoEntryBase):
    entity_type: Literal["payment_source"] = "payment_source"
    old_value: Optional[PaymentSource] = None
    new_value: Optional[PaymentSource] = None


class BillInstanceChange(_MonthScopedEntry):
    entity_type: Literal["bill_instance"] = "bill_instance"
    old_value: Optional[BillInstance] = None
    new_value: Optional[BillInstance] = None


class IncomeInstanceChange(_MonthScopedEntry):
    entity_type: Literal["income_instance"] = "income_instance"
    old_value: Optional[IncomeInstance] = None
    new_value: Optional[IncomeInstance] = None


class VariableExpenseChange(_MonthScopedEntry):
    entity_type: Literal["variable_expense"] = "variable_expense"
    old_value: Optional[VariableExpense] = None
    new_value: Optional[VariableExpense] = None


class FreeFlowingExpenseChange(_MonthScopedEntry):
    entity_type: Literal["free_flowing_expense"] = "free_flowing_expense"
    old_value: Optional[FreeFlowingExpense] = None
    new_value: Optional[FreeFlowingExpense] = None


UndoEntry = Annotated[
    Union[
        BillTemplateChange,
        IncomeTemplateChange,
        PaymentSourceChange,
        BillInstanceChange,
        IncomeInstanceChange,
        VariableExpenseChange,
        FreeFlowingExpenseChange,
    ],
    Field(discriminator="entity_type"),
]

UNDO_ENTRIES_ADAPTER = TypeAdapter(list[UndoEntry])

# Snapshot model -> entry variant, used by create_undo_entry
_VARIANT_BY_SNAPSHOT = {
    BillTemplate: BillTemplateChange,
    IncomeTemplate: IncomeTemplateChange,
    PaymentSource: PaymentSourceChange,
    BillInstance: BillInstanceChange,
    IncomeInstance: IncomeInstanceChange,
    VariableExpense: VariableExpenseChange,
    FreeFlowingExpense: FreeFlowingExpenseChange,
}

_MONTH_SCOPED = (
    BillInstanceChange,
    IncomeInstanceChange,
    VariableExpenseChange,
    FreeFlowingExpenseChange,
)


def create_undo_entry(old_value, new_value) -> UndoEntry:
    """
    Build the right undo variant for a pair of snapshots.

    The variant is picked from the snapshot type; month-scoped variants
    take their month from the snapshot itself.
    """
    snapshot = old_value if old_value is not None else new_value
    if snapshot is None:
        raise ValueError("An undo entry needs at least one snapshot")

    variant = _VARIANT_BY_SNAPSHOT.get(type(snapshot))
    if variant is None:
        raise TypeError(f"No undo entry type for {type(snapshot).__name__}")

    fields = {
        "entity_id": snapshot.id,
        "old_value": old_value,
        "new_value": new_value,
    }
    if variant in _MONTH_SCOPED:
        fields["month"] = snapshot.month
    return variant(**fields)


class RevertedEntity(BaseModel):
    """
    Result of a successful undo.

    entity is the restored snapshot, or None when undoing removed an
    entity that the original mutation had created.
    """

    entry: UndoEntry
    entity: Optional[
        Union[
            BillTemplate,
            IncomeTemplate,
            PaymentSource,
            BillInstance,
            IncomeInstance,
            VariableExpense,
            FreeFlowingExpense,
        ]
    ] = None

    @property
    def entity_type(self) -> UndoEntityType:
        return UndoEntityType(self.entry.entity_type)

    @property
    def removed(self) -> bool:
        return self.entity is None
