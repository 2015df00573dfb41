"""
Instance Override Tracker

Edits a generated instance while keeping track of whether it still
matches its template.

DESIGN DECISION: is_default is a live comparison, not a one-way flag.
Editing an amount away from the template default and then back to the
exact default makes the instance default again.

Every function returns a new instance (the input is never mutated)
together with the UndoEntry describing the change. The caller pushes the
entry onto the undo stack and refreshes the leftover.
"""

from typing import TypeVar

from leftover_engine.models.budget import BillInstance, IncomeInstance, utc_now
from leftover_engine.models.undo import UndoEntry, create_undo_entry
from leftover_engine.validation import InputValidator


InstanceT = TypeVar("InstanceT", BillInstance, IncomeInstance)


def _changed(instance: InstanceT, **updates) -> tuple[InstanceT, UndoEntry]:
    before = instance.model_copy(deep=True)
    after = instance.model_copy(update={**updates, "updated_at": utc_now()}, deep=True)
    return after, create_undo_entry(before, after)


def set_instance_amount(
    instance: InstanceT,
    new_amount: int,
    template_amount: int,
) -> tuple[InstanceT, UndoEntry]:
    """
    Override an instance's amount.

    Args:
        instance: The instance being edited
        new_amount: New amount in cents, must be > 0
        template_amount: The template's current default amount in cents

    Raises:
        ValidationError: If new_amount is not a positive whole number of cents
    """
    InputValidator.check_amount(new_amount)
    return _changed(
        instance,
        amount=new_amount,
        is_default=(new_amount == template_amount),
    )


def toggle_paid(instance: InstanceT) -> tuple[InstanceT, UndoEntry]:
    """Flip the paid flag."""
    return _changed(instance, paid=not instance.paid)


def reset_to_default(instance: InstanceT, template_amount: int) -> tuple[InstanceT, UndoEntry]:
    """Put the template's current default amount back on the instance."""
    InputValidator.check_amount(template_amount, field="template_amount")
    return _changed(instance, amount=template_amount, is_default=True)

