"""
Data Models Package

This package contains all Pydantic models used by the engine.
All data flowing through the engine must conform to these schemas.
"""

from leftover_engine.models.budget import (
    BillingPeriod,
    BillInstance,
    BillTemplate,
    Category,
    CategoryType,
    FreeFlowingExpense,
    IncomeInstance,
    IncomeTemplate,
    LeftoverBreakdown,
    MonthlyData,
    PaymentSource,
    PaymentSourceType,
    TemplateCollection,
    VariableExpense,
    format_cents,
    parse_month,
    semiannual_due_months,
    to_cents,
)
from leftover_engine.models.events import (
    EngineEvent,
    EngineEventBuilder,
    EngineEventType,
    EngineSeverity,
)
from leftover_engine.models.undo import (
    MAX_UNDO_ENTRIES,
    UNDO_ENTRIES_ADAPTER,
    BillInstanceChange,
    BillTemplateChange,
    FreeFlowingExpenseChange,
    IncomeInstanceChange,
    IncomeTemplateChange,
    PaymentSourceChange,
    RevertedEntity,
    UndoEntityType,
    UndoEntry,
    VariableExpenseChange,
    create_undo_entry,
)

__all__ = [
    # Budget models
    "BillingPeriod",
    "BillInstance",
    "BillTemplate",
    "Category",
    "CategoryType",
    "FreeFlowingExpense",
    "IncomeInstance",
    "IncomeTemplate",
    "LeftoverBreakdown",
    "MonthlyData",
    "PaymentSource",
    "PaymentSourceType",
    "TemplateCollection",
    "VariableExpense",
    "format_cents",
    "parse_month",
    "semiannual_due_months",
    "to_cents",
    # Event models
    "EngineEvent",
    "EngineEventBuilder",
    "EngineEventType",
    "EngineSeverity",
    # Undo models
    "MAX_UNDO_ENTRIES",
    "UNDO_ENTRIES_ADAPTER",
    "BillInstanceChange",
    "BillTemplateChange",
    "FreeFlowingExpenseChange",
    "IncomeInstanceChange",
    "IncomeTemplateChange",
    "PaymentSourceChange",
    "RevertedEntity",
    "UndoEntityType",
    "UndoEntry",
    "VariableExpenseChange",
    "create_undo_entry",
]
