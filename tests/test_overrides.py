"""Tests for per-instance overrides and is_default tracking."""

import pytest

from leftover_engine.errors import ValidationError
from leftover_engine.models import BillInstanceChange, IncomeInstanceChange
from leftover_engine.services import (
    MonthGenerator,
    reset_to_default,
    set_instance_amount,
    toggle_paid,
)


@pytest.fixture
def instance(rent):
    return MonthGenerator().generate("2024-01", [rent], []).bill_instances[0]


class TestSetInstanceAmount:
    """Tests for overriding an instance's amount."""

    def test_override_clears_is_default(self, instance, rent):
        """Test that a different amount marks the instance as overridden."""
        updated, _ = set_instance_amount(instance, 155000, rent.amount)
        assert updated.amount == 155000
        assert updated.is_default is False

    def test_back_to_default_restores_is_default(self, instance, rent):
        """Test that editing back to the exact template amount is default again."""
        overridden, _ = set_instance_amount(instance, 155000, rent.amount)
        restored, _ = set_instance_amount(overridden, rent.amount, rent.amount)
        assert restored.is_default is True

    def test_input_not_mutated(self, instance, rent):
        """Test that the original instance is left alone."""
        set_instance_amount(instance, 155000, rent.amount)
        assert instance.amount == rent.amount
        assert instance.is_default is True

    def test_undo_entry_carries_both_snapshots(self, instance, rent):
        """Test the undo entry records the before and after state."""
        updated, entry = set_instance_amount(instance, 155000, rent.amount)
        assert isinstance(entry, BillInstanceChange)
        assert entry.entity_id == instance.id
        assert entry.month == "2024-01"
        assert entry.old_value.amount == rent.amount
        assert entry.new_value.amount == 155000

    @pytest.mark.parametrize("bad", [0, -100, 12.5, "100", True, None])
    def test_rejects_invalid_amounts(self, instance, rent, bad):
        """Test that non-positive and non-integer amounts are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            set_instance_amount(instance, bad, rent.amount)
        assert exc_info.value.field == "amount"


class TestPaidAndReset:
    """Tests for the paid flag and resetting to the template default."""

    def test_toggle_paid(self, instance):
        """Test that toggling flips paid both ways."""
        paid, _ = toggle_paid(instance)
        assert paid.paid is True
        unpaid, _ = toggle_paid(paid)
        assert unpaid.paid is False

    def test_toggle_paid_keeps_amount(self, instance):
        """Test that paid changes do not affect the amount or is_default."""
        paid, entry = toggle_paid(instance)
        assert paid.amount == instance.amount
        assert paid.is_default is True
        assert entry.old_value.paid is False

    def test_reset_uses_current_template_amount(self, instance, rent):
        """Test that reset restores the template's current default."""
        overridden, _ = set_instance_amount(instance, 99000, rent.amount)
        reset, _ = reset_to_default(overridden, 160000)
        assert reset.amount == 160000
        assert reset.is_default is True

    def test_income_instance_entry_type(self, salary):
        """Test that income instances produce income undo entries."""
        income = MonthGenerator().generate("2024-01", [], [salary]).income_instances[0]
        _, entry = toggle_paid(income)
        assert isinstance(entry, IncomeInstanceChange)
