"""Tests for month generation from templates."""

import pytest
from datetime import date

from leftover_engine.errors import InvalidMonthError
from leftover_engine.models import BillingPeriod, BillTemplate, IncomeTemplate
from leftover_engine.services import MonthGenerator

from tests.conftest import BANK_ID


def _strip_generated(data):
    """Instance payloads without ids and timestamps."""
    ignore = {"id", "created_at", "updated_at"}
    return (
        [i.model_dump(exclude=ignore) for i in data.bill_instances],
        [i.model_dump(exclude=ignore) for i in data.income_instances],
    )


class TestMonthGenerator:
    """Tests for MonthGenerator.generate."""

    def test_instance_counts_follow_billing_periods(self, rent, groceries, salary):
        """Test one instance per scheduled date: rent 1, Saturdays 4, paydays 2."""
        data = MonthGenerator().generate("2024-01", [rent, groceries], [salary])
        assert [i.template_id for i in data.bill_instances].count(rent.id) == 1
        assert [i.template_id for i in data.bill_instances].count(groceries.id) == 4
        assert len(data.income_instances) == 2

    def test_instances_copy_template_defaults(self, rent):
        """Test that instances start at the template amount, default and unpaid."""
        data = MonthGenerator().generate("2024-03", [rent], [])
        instance = data.bill_instances[0]
        assert instance.amount == rent.amount
        assert instance.is_default is True
        assert instance.paid is False
        assert instance.month == "2024-03"
        assert instance.due_date == date(2024, 3, 1)

    def test_expenses_and_balances_start_empty(self, rent, salary):
        """Test a fresh month has no expenses and no balances."""
        data = MonthGenerator().generate("2024-03", [rent], [salary])
        assert data.variable_expenses == []
        assert data.free_flowing_expenses == []
        assert data.bank_balances == {}
        assert data.is_read_only is False

    def test_inactive_templates_skipped(self, rent, groceries):
        """Test that deactivated templates produce no instances."""
        retired = groceries.model_copy(update={"active": False})
        data = MonthGenerator().generate("2024-01", [rent, retired], [])
        assert [i.template_id for i in data.bill_instances] == [rent.id]

    def test_semiannual_template_only_in_due_months(self):
        """Test that a semi-annual bill appears only in its due months."""
        insurance = BillTemplate(
            name="Insurance",
            amount=60000,
            billing_period=BillingPeriod.SEMIANNUALLY,
            payment_source_id=BANK_ID,
            due_months=(3, 9),
        )
        generator = MonthGenerator()
        assert len(generator.generate("2024-03", [insurance], []).bill_instances) == 1
        assert generator.generate("2024-04", [insurance], []).bill_instances == []

    def test_generation_is_deterministic(self, rent, groceries, salary):
        """Test same templates and month give the same output apart from ids."""
        generator = MonthGenerator()
        first = generator.generate("2024-05", [rent, groceries], [salary])
        second = generator.generate("2024-05", [rent, groceries], [salary])
        assert _strip_generated(first) == _strip_generated(second)
        assert first.bill_instances[0].id != second.bill_instances[0].id

    def test_templates_not_mutated(self, rent):
        """Test that generation leaves the template untouched."""
        before = rent.model_dump()
        MonthGenerator().generate("2024-05", [rent], [])
        assert rent.model_dump() == before

    def test_income_instances(self):
        """Test that income templates become income instances."""
        bonus = IncomeTemplate(
            name="Side gig",
            amount=40000,
            billing_period=BillingPeriod.MONTHLY,
            payment_source_id=BANK_ID,
            day_of_month=20,
        )
        data = MonthGenerator().generate("2024-06", [], [bonus])
        assert data.income_instances[0].template_id == bonus.id
        assert data.income_instances[0].due_date == date(2024, 6, 20)

    def test_invalid_month_rejected(self, rent):
        """Test that a malformed month is rejected before anything is built."""
        with pytest.raises(InvalidMonthError):
            MonthGenerator().generate("2024-6", [rent], [])
