"""
Core Data Models for the Leftover Engine

These models define the strict schemas for every entity the engine
reads, writes and reasons about. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize straight to the JSON files the storage layer writes

DESIGN DECISION: All money is stored as integer cents.
Floating point never touches an amount; conversion to a display
currency happens only in format_cents(), at the boundary.

DESIGN DECISION: Templates are referenced, never embedded. An instance
copies its template's amount at generation time and keeps only the
template's id as a back-reference, so editing a template can never
change a month that already exists.
"""

import re
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from leftover_engine.errors import InvalidMonthError


MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

# Integer cents. Strict so that floats and bools are rejected instead of coerced.
Cents = Annotated[int, Field(strict=True)]
PositiveCents = Annotated[int, Field(strict=True, gt=0)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_month(month: object) -> tuple[int, int]:
    """
    Parse a YYYY-MM month key into (year, month).

    Raises InvalidMonthError for anything else, including valid dates
    in other formats.
    """
    if not isinstance(month, str):
        raise InvalidMonthError(month)
    match = MONTH_PATTERN.match(month)
    if not match or int(match.group(1)) < 1:
        raise InvalidMonthError(month)
    return int(match.group(1)), int(match.group(2))


def _check_month_key(v: str) -> str:
    try:
        parse_month(v)
    except InvalidMonthError as e:
        raise ValueError(str(e))
    return v


def format_cents(cents: int, symbol: str = "$") -> str:
    """Format integer cents for display, e.g. -150025 -> '-$1,500.25'."""
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), 100)
    return f"{sign}{symbol}{whole:,}.{fraction:02d}"


def to_cents(value: object) -> int:
    """
    Convert a user-entered currency amount ("12.34", 12, Decimal) to cents.

    Rejects values with more than two decimal places rather than rounding them.
    """
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a currency amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a currency amount: {value!r}")
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValueError(f"Amount has more than two decimal places: {value!r}")
    return int(cents)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class BillingPeriod(str, Enum):
    """
    How often a template recurs.

    The per-month instance count is always an integer; see
    calculations.billing_period for the rules.
    """
    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    WEEKLY = "weekly"
    SEMIANNUALLY = "semiannually"


class PaymentSourceType(str, Enum):
    """
    Kind of account.

    Sign convention: bank and cash balances are funds (>= 0),
    credit card balances are debt owed (<= 0).
    """
    BANK = "bank"
    CREDIT_CARD = "credit_card"
    CASH = "cash"


class CategoryType(str, Enum):
    BILL = "bill"
    INCOME = "income"
    VARIABLE = "variable"


# =============================================================================
# REFERENCE DATA
# =============================================================================

class PaymentSource(BaseModel):
    """An account money comes from or goes to."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    type: PaymentSourceType
    balance: Cents = Field(
        default=0,
        description="Current balance in cents; per-month balances live on MonthlyData"
    )
    active: bool = True
    exclude_from_leftover: bool = Field(
        default=False,
        description="If true, this source's balance never counts towards leftover"
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_debt(self) -> bool:
        return self.type == PaymentSourceType.CREDIT_CARD


class Category(BaseModel):
    """Grouping for templates and expenses. Display-only reference data."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    color: str = Field(default="#3b82f6", pattern=r"^#[0-9a-fA-F]{6}$")
    sort_order: int = Field(default=0, ge=0)


# =============================================================================
# TEMPLATES
# =============================================================================

class _TemplateBase(BaseModel):
    """
    A recurring bill or income definition.

    Templates are never spent against directly; MonthGenerator expands
    them into instances. "Deleting" a template deactivates it so that
    existing instances keep a valid back-reference.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    amount: PositiveCents = Field(..., description="Default amount per occurrence, in cents")
    billing_period: BillingPeriod
    payment_source_id: UUID
    category_id: Optional[UUID] = None
    active: bool = True

    # Recurrence details
    day_of_month: int = Field(
        default=1,
        ge=1,
        le=31,
        description="Day used for monthly and semi-annual dates; clamped to month length"
    )
    anchor_weekday: Optional[int] = Field(
        default=None,
        ge=0,
        le=6,
        description="Weekday for weekly/bi-weekly templates (0=Monday ... 6=Sunday)"
    )
    cadence_start: Optional[date] = Field(
        default=None,
        description="First occurrence of a bi-weekly cadence; defaults to the engine epoch"
    )
    due_months: Optional[tuple[int, int]] = Field(
        default=None,
        description="The two months (1-12) a semi-annual template falls due in"
    )

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('due_months')
    @classmethod
    def validate_due_months(
        cls, v: Optional[tuple[int, int]]
    ) -> Optional[tuple[int, int]]:
        if v is None:
            return v
        first, second = v
        for m in (first, second):
            if not 1 <= m <= 12:
                raise ValueError(f"Due month must be between 1 and 12, got {m}")
        if first == second:
            raise ValueError("Semi-annual due months must be two different months")
        return (min(first, second), max(first, second))

    @model_validator(mode='after')
    def validate_recurrence(self) -> '_TemplateBase':
        """Each billing period needs its own recurrence details."""
        if self.billing_period in (BillingPeriod.WEEKLY, BillingPeriod.BIWEEKLY):
            if self.anchor_weekday is None and self.cadence_start is None:
                raise ValueError(
                    f"{self.billing_period.value} templates need an anchor weekday or a cadence start date"
                )
            if (
                self.anchor_weekday is not None
                and self.cadence_start is not None
                and self.cadence_start.weekday() != self.anchor_weekday
            ):
                raise ValueError("Cadence start date does not fall on the anchor weekday")

        if self.billing_period == BillingPeriod.SEMIANNUALLY and self.due_months is None:
            raise ValueError("Semi-annual templates need a pair of due months")

        return self

    @property
    def effective_weekday(self) -> Optional[int]:
        if self.anchor_weekday is not None:
            return self.anchor_weekday
        if self.cadence_start is not None:
            return self.cadence_start.weekday()
        return None


class BillTemplate(_TemplateBase):
    """A recurring bill."""
    pass


class IncomeTemplate(_TemplateBase):
    """A recurring income."""
    pass


def semiannual_due_months(anchor_month: int) -> tuple[int, int]:
    """The anchor month and the month six months later, e.g. 3 -> (3, 9)."""
    if not 1 <= anchor_month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {anchor_month}")
    other = (anchor_month + 5) % 12 + 1
    return (min(anchor_month, other), max(anchor_month, other))


# =============================================================================
# INSTANCES AND EXPENSES (owned by MonthlyData)
# =============================================================================

class _InstanceBase(BaseModel):
    """
    One occurrence of a template in one month.

    CRITICAL: amount is a copy, not a reference. is_default records whether
    that copy still equals the template's current default amount.
    """

    id: UUID = Field(default_factory=uuid4)
    template_id: UUID
    month: str
    amount: PositiveCents
    is_default: bool = True
    paid: bool = False
    due_date: Optional[date] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('month')
    @classmethod
    def validate_month(cls, v: str) -> str:
        return _check_month_key(v)


class BillInstance(_InstanceBase):
    pass


class IncomeInstance(_InstanceBase):
    pass


class _ExpenseBase(BaseModel):
    """A one-off expense entered directly into a month."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    amount: PositiveCents
    payment_source_id: UUID
    month: str
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('month')
    @classmethod
    def validate_month(cls, v: str) -> str:
        return _check_month_key(v)


class VariableExpense(_ExpenseBase):
    pass


class FreeFlowingExpense(_ExpenseBase):
    pass


class MonthlyData(BaseModel):
    """
    Everything that belongs to one calendar month.

    Created lazily the first time the month is visited and never
    regenerated afterwards. Owns its instance and expense lists
    exclusively; nothing is shared between months.
    """

    month: str
    bill_instances: list[BillInstance] = Field(default_factory=list)
    income_instances: list[IncomeInstance] = Field(default_factory=list)
    variable_expenses: list[VariableExpense] = Field(default_factory=list)
    free_flowing_expenses: list[FreeFlowingExpense] = Field(default_factory=list)
    bank_balances: dict[UUID, Cents] = Field(
        default_factory=dict,
        description="Balance per payment source id for this month, in cents"
    )
    is_read_only: bool = False
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('month')
    @classmethod
    def validate_month(cls, v: str) -> str:
        return _check_month_key(v)

    def find(self, collection: str, entity_id: UUID) -> Optional[int]:
        """Index of the entity with entity_id in the named list, or None."""
        for index, item in enumerate(getattr(self, collection)):
            if item.id == entity_id:
                return index
        return None

    def touch(self) -> None:
        self.updated_at = utc_now()


class TemplateCollection(BaseModel):
    """The template and reference-data collections loaded at startup."""

    bills: list[BillTemplate] = Field(default_factory=list)
    incomes: list[IncomeTemplate] = Field(default_factory=list)
    payment_sources: list[PaymentSource] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)

    def find(self, collection: str, entity_id: UUID) -> Optional[int]:
        for index, item in enumerate(getattr(self, collection)):
            if item.id == entity_id:
                return index
        return None

    def get(self, collection: str, entity_id: UUID):
        index = self.find(collection, entity_id)
        if index is None:
            return None
        return getattr(self, collection)[index]


# =============================================================================
# RESULTS
# =============================================================================

class LeftoverBreakdown(BaseModel):
    """
    The headline figure and how it was reached, all in integer cents.

    leftover = total_cash_net_worth + total_income - total_bills - total_variable
    """

    month: str
    total_cash_net_worth: int
    total_income: int
    total_bills: int
    total_variable: int
    leftover: int
    missing_balances: list[UUID] = Field(
        default_factory=list,
        description="Active sources with no balance entered for this month (counted as 0)"
    )

    @computed_field
    @property
    def total_expenses(self) -> int:
        return self.total_bills + self.total_variable

    @property
    def is_deficit(self) -> bool:
        return self.leftover < 0

    def to_display(self, symbol: str = "$") -> dict[str, str]:
        """Formatted amounts for the UI layer."""
        return {
            "total_cash_net_worth": format_cents(self.total_cash_net_worth, symbol),
            "total_income": format_cents(self.total_income, symbol),
            "total_expenses": format_cents(self.total_expenses, symbol),
            "leftover": format_cents(self.leftover, symbol),
        }
