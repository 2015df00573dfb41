"""Tests for the leftover calculation."""

from uuid import uuid4

from leftover_engine.calculations import compute_leftover
from leftover_engine.models import (
    BillInstance,
    FreeFlowingExpense,
    IncomeInstance,
    MonthlyData,
    PaymentSource,
    PaymentSourceType,
    VariableExpense,
)

from tests.conftest import BANK_ID, CARD_ID, CASH_ID


MONTH = "2024-01"


def _month(bills=(), incomes=(), variable=(), free=(), balances=None) -> MonthlyData:
    return MonthlyData(
        month=MONTH,
        bill_instances=[
            BillInstance(template_id=uuid4(), month=MONTH, amount=a) for a in bills
        ],
        income_instances=[
            IncomeInstance(template_id=uuid4(), month=MONTH, amount=a) for a in incomes
        ],
        variable_expenses=[
            VariableExpense(name="Spend", amount=a, payment_source_id=BANK_ID, month=MONTH)
            for a in variable
        ],
        free_flowing_expenses=[
            FreeFlowingExpense(name="Extra", amount=a, payment_source_id=BANK_ID, month=MONTH)
            for a in free
        ],
        bank_balances=balances or {},
    )


class TestComputeLeftover:
    """Tests for compute_leftover."""

    def test_surplus(self, payment_sources):
        """Test income $5,000 + bank $3,000 + cash $500 - bills $2,000 = $6,500."""
        data = _month(
            bills=[200000],
            incomes=[500000],
            balances={BANK_ID: 300000, CASH_ID: 50000, CARD_ID: 0},
        )
        result = compute_leftover(data, payment_sources)
        assert result.total_cash_net_worth == 350000
        assert result.leftover == 650000
        assert result.is_deficit is False

    def test_credit_card_debt_gives_deficit(self, payment_sources):
        """Test card -$1,500 + bank $2,000 + income $3,000 - bills $4,000 = -$500."""
        data = _month(
            bills=[400000],
            incomes=[300000],
            balances={CARD_ID: -150000, BANK_ID: 200000, CASH_ID: 0},
        )
        result = compute_leftover(data, payment_sources)
        assert result.total_cash_net_worth == 50000
        assert result.leftover == -50000
        assert result.is_deficit is True

    def test_expenses_reduce_leftover(self, payment_sources):
        """Test variable and free-flowing expenses both count."""
        data = _month(
            incomes=[100000],
            variable=[10000, 2500],
            free=[7500],
            balances={BANK_ID: 0, CARD_ID: 0, CASH_ID: 0},
        )
        result = compute_leftover(data, payment_sources)
        assert result.total_variable == 20000
        assert result.total_expenses == 20000
        assert result.leftover == 80000

    def test_total_expenses_serialized(self, payment_sources):
        """Test total expenses is part of the dumped breakdown."""
        data = _month(bills=[30000], variable=[5000], balances={BANK_ID: 0, CARD_ID: 0, CASH_ID: 0})
        dumped = compute_leftover(data, payment_sources).model_dump()
        assert dumped["total_expenses"] == 35000
        assert dumped["leftover"] == -35000

    def test_missing_balance_counts_as_zero(self, payment_sources):
        """Test that a source without a balance contributes 0 and is reported."""
        data = _month(incomes=[100000], balances={BANK_ID: 5000})
        result = compute_leftover(data, payment_sources)
        assert result.leftover == 105000
        assert set(result.missing_balances) == {CARD_ID, CASH_ID}

    def test_excluded_source_ignored(self, payment_sources):
        """Test that sources flagged exclude_from_leftover never count."""
        savings = PaymentSource(
            name="Savings",
            type=PaymentSourceType.BANK,
            exclude_from_leftover=True,
        )
        data = _month(balances={BANK_ID: 1000, savings.id: 900000})
        result = compute_leftover(data, payment_sources + [savings])
        assert result.total_cash_net_worth == 1000
        assert savings.id not in result.missing_balances

    def test_empty_month(self):
        """Test that an empty month with no sources has zero leftover."""
        result = compute_leftover(_month(), [])
        assert result.leftover == 0
        assert result.missing_balances == []

    def test_display_formatting(self, payment_sources):
        """Test the display rendering of a deficit."""
        data = _month(bills=[400000], incomes=[300000], balances={BANK_ID: 50000})
        display = compute_leftover(data, payment_sources).to_display()
        assert display["leftover"] == "-$500.00"
