"""
Billing Period Calculator

Turns a recurrence rule into the concrete dates it falls on in one month.

Rules:
- monthly       exactly 1 date, on day_of_month (clamped to the month length)
- weekly        every date in the month on the anchor weekday: 4 or 5
- biweekly      anchor weekday on a 14-day cadence from a fixed anchor date: 2 or 3
- semiannually  1 date if the month is one of the two due months, else 0

IMPORTANT: Counts are always integers. The "4.33 per month" style figures
are annual averages for display (see average_instances_per_month) and are
never used to decide how many instances a month gets.

Everything here is pure and deterministic given the same epoch.
"""

import calendar
from datetime import date, timedelta
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from leftover_engine.errors import InvalidBillingPeriodError, ValidationError
from leftover_engine.models.budget import BillingPeriod, parse_month


# Phase anchor for bi-weekly cadences that do not carry their own start date.
BIWEEKLY_EPOCH = date(2024, 1, 1)

_ANNUAL_OCCURRENCES = {
    BillingPeriod.MONTHLY: 12,
    BillingPeriod.BIWEEKLY: 26,
    BillingPeriod.WEEKLY: 52,
    BillingPeriod.SEMIANNUALLY: 2,
}


class InstanceSchedule(BaseModel):
    """The dates a recurrence falls on within one month."""
    model_config = ConfigDict(frozen=True)

    period: BillingPeriod
    month: str
    dates: tuple[date, ...] = ()

    @property
    def count(self) -> int:
        return len(self.dates)


def coerce_billing_period(period: Union[str, BillingPeriod]) -> BillingPeriod:
    if isinstance(period, BillingPeriod):
        return period
    try:
        return BillingPeriod(period)
    except ValueError:
        raise InvalidBillingPeriodError(period)


def month_bounds(month: str) -> tuple[date, date]:
    """First and last day of a YYYY-MM month."""
    year, month_number = parse_month(month)
    last_day = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, last_day)


def _clamped_day(first: date, last: date, day_of_month: int) -> date:
    if not 1 <= day_of_month <= 31:
        raise ValidationError(
            f"Day of month must be between 1 and 31, got {day_of_month}",
            field="day_of_month",
        )
    return first.replace(day=min(day_of_month, last.day))


def _require_weekday(
    period: BillingPeriod,
    anchor_weekday: Optional[int],
    cadence_start: Optional[date],
) -> int:
    if anchor_weekday is None:
        if cadence_start is None:
            raise ValidationError(
                f"{period.value} schedules need an anchor weekday",
                field="anchor_weekday",
            )
        return cadence_start.weekday()
    if not 0 <= anchor_weekday <= 6:
        raise ValidationError(
            f"Anchor weekday must be between 0 (Monday) and 6 (Sunday), got {anchor_weekday}",
            field="anchor_weekday",
        )
    return anchor_weekday


def _every(start: date, last: date, step_days: int) -> tuple[date, ...]:
    dates = []
    current = start
    while current <= last:
        dates.append(current)
        current += timedelta(days=step_days)
    return tuple(dates)


def compute_instances(
    period: Union[str, BillingPeriod],
    month: str,
    anchor_weekday: Optional[int] = None,
    *,
    day_of_month: int = 1,
    cadence_start: Optional[date] = None,
    due_months: Optional[tuple[int, int]] = None,
    epoch: date = BIWEEKLY_EPOCH,
) -> InstanceSchedule:
    """
    Compute how many times, and on which dates, a recurrence falls in a month.

    Args:
        period: Billing period (enum or its string value)
        month: YYYY-MM
        anchor_weekday: 0=Monday ... 6=Sunday, for weekly/biweekly
        day_of_month: Day used for monthly and semi-annual dates
        cadence_start: Bi-weekly phase anchor; overrides epoch
        due_months: The two months a semi-annual rule falls due in
        epoch: Default bi-weekly phase anchor

    Raises:
        InvalidBillingPeriodError: Unknown period
        InvalidMonthError: Month is not YYYY-MM
        ValidationError: Recurrence details missing for the period
    """
    period = coerce_billing_period(period)
    first, last = month_bounds(month)

    if period == BillingPeriod.MONTHLY:
        dates = (_clamped_day(first, last, day_of_month),)

    elif period == BillingPeriod.WEEKLY:
        weekday = _require_weekday(period, anchor_weekday, cadence_start)
        start = first + timedelta(days=(weekday - first.weekday()) % 7)
        dates = _every(start, last, 7)

    elif period == BillingPeriod.BIWEEKLY:
        weekday = _require_weekday(period, anchor_weekday, cadence_start)
        anchor = cadence_start or epoch
        # First anchor weekday on or after the phase anchor, then the first
        # cadence date on or after the 1st of the month (in either direction).
        phase = anchor + timedelta(days=(weekday - anchor.weekday()) % 7)
        gap = (first - phase).days
        steps = -((-gap) // 14)
        dates = _every(phase + timedelta(days=14 * steps), last, 14)

    else:
        if due_months is None:
            raise ValidationError(
                "Semi-annual schedules need a pair of due months",
                field="due_months",
            )
        if first.month in due_months:
            dates = (_clamped_day(first, last, day_of_month),)
        else:
            dates = ()

    return InstanceSchedule(period=period, month=month, dates=dates)


def average_instances_per_month(period: Union[str, BillingPeriod]) -> float:
    """
    Annualized average occurrences per month, for display copy only.

    e.g. weekly -> 52 / 12 = 4.33
    """
    return _ANNUAL_OCCURRENCES[coerce_billing_period(period)] / 12


class BillingPeriodCalculator:
    """
    Calculator bound to a bi-weekly epoch.

    Injected into MonthGenerator so tests and settings can pin the epoch.
    """

    def __init__(self, epoch: date = BIWEEKLY_EPOCH):
        self._epoch = epoch

    @property
    def epoch(self) -> date:
        return self._epoch

    def compute_instances(
        self,
        period: Union[str, BillingPeriod],
        month: str,
        anchor_weekday: Optional[int] = None,
        **kwargs,
    ) -> InstanceSchedule:
        kwargs.setdefault("epoch", self._epoch)
        return compute_instances(period, month, anchor_weekday, **kwargs)

    def for_template(self, template, month: str) -> InstanceSchedule:
        """Schedule for a bill or income template's recurrence fields."""
        return compute_instances(
            template.billing_period,
            month,
            template.anchor_weekday,
            day_of_month=template.day_of_month,
            cadence_start=template.cadence_start,
            due_months=template.due_months,
            epoch=self._epoch,
        )
