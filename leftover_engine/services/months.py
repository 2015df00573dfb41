"""
Month Generator

Builds a month's instance collections from the active templates.

For each active template the billing period calculator decides how many
times it falls in the month; one instance is emitted per date, carrying a
copy of the template's amount, is_default=True and paid=False.

IMPORTANT: The generator does not check whether the month already exists.
Regenerating would throw away the user's edits, so the session refuses to
call it twice for the same month (MonthAlreadyExistsError).

Given the same template snapshot and month, the output is identical apart
from generated ids and timestamps.
"""

from typing import Iterable, Optional

from leftover_engine.calculations.billing_period import BillingPeriodCalculator
from leftover_engine.models.budget import (
    BillInstance,
    BillTemplate,
    IncomeInstance,
    IncomeTemplate,
    MonthlyData,
    parse_month,
    utc_now,
)


class MonthGenerator:
    """Expands templates into a fresh MonthlyData record."""

    def __init__(self, calculator: Optional[BillingPeriodCalculator] = None):
        self._calculator = calculator or BillingPeriodCalculator()

    def _expand(self, templates: Iterable, month: str, instance_cls, now) -> list:
        instances = []
        for template in templates:
            if not template.active:
                continue
            schedule = self._calculator.for_template(template, month)
            for due_date in schedule.dates:
                instances.append(instance_cls(
                    template_id=template.id,
                    month=month,
                    amount=template.amount,
                    is_default=True,
                    paid=False,
                    due_date=due_date,
                    created_at=now,
                    updated_at=now,
                ))
        return instances

    def generate(
        self,
        month: str,
        bill_templates: Iterable[BillTemplate],
        income_templates: Iterable[IncomeTemplate],
    ) -> MonthlyData:
        """
        Build the MonthlyData for a month that does not exist yet.

        Expense lists and bank balances start empty; the user fills
        balances in per month.
        """
        parse_month(month)
        now = utc_now()
        return MonthlyData(
            month=month,
            bill_instances=self._expand(bill_templates, month, BillInstance, now),
            income_instances=self._expand(income_templates, month, IncomeInstance, now),
            variable_expenses=[],
            free_flowing_expenses=[],
            bank_balances={},
            created_at=now,
            updated_at=now,
        )
