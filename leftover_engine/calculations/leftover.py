"""
Leftover Calculator

"How much money is left at the end of the month?"

    total_cash_net_worth = sum of this month's balances for bank, cash
                           and credit card sources (credit cards are <= 0)
    leftover = total_cash_net_worth + total_income - total_bills - total_variable

A source with no balance entered for the month counts as 0 and is listed
in missing_balances so the UI can prompt for it. Sources flagged
exclude_from_leftover never count.

All arithmetic is integer cents. A negative leftover is a deficit, not an error.
"""

from leftover_engine.models.budget import (
    LeftoverBreakdown,
    MonthlyData,
    PaymentSource,
)


def total_cash_net_worth(
    monthly_data: MonthlyData,
    payment_sources: list[PaymentSource],
) -> int:
    total = 0
    for source in payment_sources:
        if source.exclude_from_leftover:
            continue
        total += monthly_data.bank_balances.get(source.id, 0)
    return total


def missing_balances(
    monthly_data: MonthlyData,
    payment_sources: list[PaymentSource],
) -> list:
    return [
        source.id
        for source in payment_sources
        if source.active
        and not source.exclude_from_leftover
        and source.id not in monthly_data.bank_balances
    ]


def compute_leftover(
    monthly_data: MonthlyData,
    payment_sources: list[PaymentSource],
) -> LeftoverBreakdown:
    """Aggregate one month into the headline leftover figure and its breakdown."""
    net_worth = total_cash_net_worth(monthly_data, payment_sources)
    income = sum(instance.amount for instance in monthly_data.income_instances)
    bills = sum(instance.amount for instance in monthly_data.bill_instances)
    variable = (
        sum(expense.amount for expense in monthly_data.variable_expenses)
        + sum(expense.amount for expense in monthly_data.free_flowing_expenses)
    )

    return LeftoverBreakdown(
        month=monthly_data.month,
        total_cash_net_worth=net_worth,
        total_income=income,
        total_bills=bills,
        total_variable=variable,
        leftover=net_worth + income - bills - variable,
        missing_balances=missing_balances(monthly_data, payment_sources),
    )
