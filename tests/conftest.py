"""Shared fixtures: a small household with one of each payment source."""

import pytest
from uuid import UUID

from leftover_engine.config import EngineSettings
from leftover_engine.models import (
    BillingPeriod,
    BillTemplate,
    IncomeTemplate,
    PaymentSource,
    PaymentSourceType,
    TemplateCollection,
)
from leftover_engine.services.storage import InMemoryBudgetStorage
from leftover_engine.session import BudgetSession


BANK_ID = UUID("00000000-0000-0000-0000-0000000000b1")
CARD_ID = UUID("00000000-0000-0000-0000-0000000000c1")
CASH_ID = UUID("00000000-0000-0000-0000-0000000000d1")


@pytest.fixture
def payment_sources() -> list[PaymentSource]:
    return [
        PaymentSource(id=BANK_ID, name="Checking", type=PaymentSourceType.BANK),
        PaymentSource(id=CARD_ID, name="Visa", type=PaymentSourceType.CREDIT_CARD),
        PaymentSource(id=CASH_ID, name="Wallet", type=PaymentSourceType.CASH),
    ]


@pytest.fixture
def rent() -> BillTemplate:
    return BillTemplate(
        name="Rent",
        amount=150000,
        billing_period=BillingPeriod.MONTHLY,
        payment_source_id=BANK_ID,
        day_of_month=1,
    )


@pytest.fixture
def groceries() -> BillTemplate:
    return BillTemplate(
        name="Groceries",
        amount=12000,
        billing_period=BillingPeriod.WEEKLY,
        payment_source_id=CARD_ID,
        anchor_weekday=5,
    )


@pytest.fixture
def salary() -> IncomeTemplate:
    return IncomeTemplate(
        name="Salary",
        amount=250000,
        billing_period=BillingPeriod.BIWEEKLY,
        payment_source_id=BANK_ID,
        anchor_weekday=4,
    )


@pytest.fixture
def templates(payment_sources, rent, groceries, salary) -> TemplateCollection:
    return TemplateCollection(
        bills=[rent, groceries],
        incomes=[salary],
        payment_sources=payment_sources,
    )


@pytest.fixture
def storage(templates) -> InMemoryBudgetStorage:
    return InMemoryBudgetStorage(templates)


@pytest.fixture
def session(storage) -> BudgetSession:
    return BudgetSession(storage, settings=EngineSettings())
