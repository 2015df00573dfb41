"""Pure budget calculations: billing periods and leftover."""

from leftover_engine.calculations.billing_period import (
    BIWEEKLY_EPOCH,
    BillingPeriodCalculator,
    InstanceSchedule,
    average_instances_per_month,
    coerce_billing_period,
    compute_instances,
    month_bounds,
)
from leftover_engine.calculations.leftover import compute_leftover

__all__ = [
    "BIWEEKLY_EPOCH",
    "BillingPeriodCalculator",
    "InstanceSchedule",
    "average_instances_per_month",
    "coerce_billing_period",
    "compute_instances",
    "compute_leftover",
    "month_bounds",
]
