"""
Tests for the billing period calculator.

Calendar facts used below:
- 2024-01-01 is a Monday (also the default bi-weekly epoch)
- 2024 is a leap year; 2024-02 has 29 days and starts on a Thursday
"""

import pytest
from datetime import date

from leftover_engine.calculations import (
    BillingPeriodCalculator,
    average_instances_per_month,
    coerce_billing_period,
    compute_instances,
    month_bounds,
)
from leftover_engine.errors import (
    InvalidBillingPeriodError,
    InvalidMonthError,
    ValidationError,
)
from leftover_engine.models import BillingPeriod, BillTemplate


MONDAY, FRIDAY, SATURDAY = 0, 4, 5

ALL_MONTHS = [f"{year}-{month:02d}" for year in range(2020, 2031) for month in range(1, 13)]


class TestMonthly:
    """Monthly recurrences fall exactly once per month."""

    @pytest.mark.parametrize("month", ALL_MONTHS)
    def test_always_one_instance(self, month):
        """Test that monthly yields count 1 for every month."""
        assert compute_instances("monthly", month).count == 1

    def test_day_clamped_to_month_length(self):
        """Test that day 31 falls on the last day of shorter months."""
        schedule = compute_instances(BillingPeriod.MONTHLY, "2024-02", day_of_month=31)
        assert schedule.dates == (date(2024, 2, 29),)

    def test_day_of_month_used(self):
        """Test that the configured day is the due date."""
        schedule = compute_instances("monthly", "2024-05", day_of_month=15)
        assert schedule.dates == (date(2024, 5, 15),)


class TestWeekly:
    """Weekly recurrences fall on every anchor weekday in the month."""

    def test_five_mondays_in_january_2024(self):
        """Test a month with five anchor weekdays."""
        schedule = compute_instances("weekly", "2024-01", MONDAY)
        assert schedule.count == 5
        assert schedule.dates[0] == date(2024, 1, 1)
        assert schedule.dates[-1] == date(2024, 1, 29)

    def test_four_mondays_in_february_2024(self):
        """Test a month with four anchor weekdays."""
        schedule = compute_instances("weekly", "2024-02", MONDAY)
        assert schedule.dates == (
            date(2024, 2, 5),
            date(2024, 2, 12),
            date(2024, 2, 19),
            date(2024, 2, 26),
        )

    @pytest.mark.parametrize("weekday", range(7))
    def test_count_is_four_or_five(self, weekday):
        """Test that weekly yields 4 or 5 for every month and weekday."""
        for month in ALL_MONTHS:
            assert compute_instances("weekly", month, weekday).count in (4, 5)

    def test_weekday_from_cadence_start(self):
        """Test that a cadence start date supplies the weekday."""
        schedule = compute_instances("weekly", "2024-01", cadence_start=date(2024, 1, 6))
        assert all(d.weekday() == SATURDAY for d in schedule.dates)

    def test_missing_weekday_rejected(self):
        """Test that a weekly schedule without an anchor is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            compute_instances("weekly", "2024-01")
        assert exc_info.value.field == "anchor_weekday"

    def test_out_of_range_weekday_rejected(self):
        """Test that weekday 7 is rejected."""
        with pytest.raises(ValidationError):
            compute_instances("weekly", "2024-01", 7)


class TestBiweekly:
    """Bi-weekly recurrences follow a fixed 14-day cadence across months."""

    def test_epoch_month(self):
        """Test the month containing the epoch: three Mondays on the cadence."""
        schedule = compute_instances("biweekly", "2024-01", MONDAY)
        assert schedule.dates == (date(2024, 1, 1), date(2024, 1, 15), date(2024, 1, 29))

    def test_cadence_continues_into_next_month(self):
        """Test that February picks up 14 days after the last January date."""
        schedule = compute_instances("biweekly", "2024-02", MONDAY)
        assert schedule.dates == (date(2024, 2, 12), date(2024, 2, 26))

    def test_months_before_epoch(self):
        """Test that the cadence extends backwards from the epoch."""
        schedule = compute_instances("biweekly", "2023-12", MONDAY)
        assert schedule.dates == (date(2023, 12, 4), date(2023, 12, 18))

    def test_phase_from_anchor_weekday(self):
        """Test that the first Friday on or after the epoch sets the phase."""
        schedule = compute_instances("biweekly", "2024-01", FRIDAY)
        assert schedule.dates == (date(2024, 1, 5), date(2024, 1, 19))

    def test_cadence_start_overrides_epoch(self):
        """Test that a template's cadence start shifts the phase."""
        schedule = compute_instances(
            "biweekly", "2024-01", MONDAY, cadence_start=date(2024, 1, 8)
        )
        assert schedule.dates == (date(2024, 1, 8), date(2024, 1, 22))

    @pytest.mark.parametrize("weekday", range(7))
    def test_count_is_two_or_three(self, weekday):
        """Test that bi-weekly yields 2 or 3 for every month and weekday."""
        for month in ALL_MONTHS:
            assert compute_instances("biweekly", month, weekday).count in (2, 3)

    def test_consecutive_dates_are_fourteen_days_apart(self):
        """Test that the cadence is unbroken across a whole year."""
        dates = []
        for month in range(1, 13):
            dates.extend(compute_instances("biweekly", f"2025-{month:02d}", FRIDAY).dates)
        gaps = {(b - a).days for a, b in zip(dates, dates[1:])}
        assert gaps == {14}

    def test_calculator_epoch(self):
        """Test that the calculator's epoch is used when no cadence start is given."""
        calculator = BillingPeriodCalculator(epoch=date(2024, 1, 8))
        schedule = calculator.compute_instances("biweekly", "2024-01", MONDAY)
        assert schedule.dates == (date(2024, 1, 8), date(2024, 1, 22))


class TestSemiannual:
    """Semi-annual recurrences fall in two configured months a year."""

    def test_due_month(self):
        """Test a due month yields one instance."""
        schedule = compute_instances("semiannually", "2024-03", due_months=(3, 9), day_of_month=10)
        assert schedule.dates == (date(2024, 3, 10),)

    def test_other_month(self):
        """Test a non-due month yields nothing."""
        assert compute_instances("semiannually", "2024-04", due_months=(3, 9)).count == 0

    def test_year_total_is_two(self):
        """Test that a year holds exactly two instances."""
        total = sum(
            compute_instances("semiannually", f"2024-{m:02d}", due_months=(3, 9)).count
            for m in range(1, 13)
        )
        assert total == 2

    def test_missing_due_months_rejected(self):
        """Test that a semi-annual schedule needs due months."""
        with pytest.raises(ValidationError) as exc_info:
            compute_instances("semiannually", "2024-03")
        assert exc_info.value.field == "due_months"


class TestInputs:
    """Tests for period and month parsing."""

    def test_unknown_period(self):
        """Test that an unknown period raises InvalidBillingPeriodError."""
        with pytest.raises(InvalidBillingPeriodError):
            compute_instances("quarterly", "2024-01")

    def test_period_is_a_validation_error(self):
        """Test that a bad period is reported against the billing_period field."""
        with pytest.raises(ValidationError) as exc_info:
            coerce_billing_period("yearly")
        assert exc_info.value.field == "billing_period"

    @pytest.mark.parametrize("month", ["2024-13", "2024-00", "2024-1", "24-01", "2024/01", "", None])
    def test_invalid_month(self, month):
        """Test that malformed months raise InvalidMonthError."""
        with pytest.raises(InvalidMonthError):
            compute_instances("monthly", month)

    def test_month_bounds(self):
        """Test first and last day of a leap February."""
        assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))

    def test_average_instances_per_month(self):
        """Test the display-only annualized averages."""
        assert average_instances_per_month("monthly") == 1
        assert average_instances_per_month("weekly") == pytest.approx(52 / 12)
        assert average_instances_per_month("biweekly") == pytest.approx(26 / 12)
        assert average_instances_per_month("semiannually") == pytest.approx(2 / 12)


class TestForTemplate:
    """Tests for schedules computed from template fields."""

    def test_weekly_template(self):
        """Test that the template's anchor weekday is used."""
        template = BillTemplate(
            name="Cleaner",
            amount=5000,
            billing_period="weekly",
            payment_source_id="00000000-0000-0000-0000-0000000000b1",
            anchor_weekday=MONDAY,
        )
        assert BillingPeriodCalculator().for_template(template, "2024-01").count == 5

    def test_semiannual_template(self):
        """Test that the template's due months are used."""
        template = BillTemplate(
            name="Car insurance",
            amount=60000,
            billing_period="semiannually",
            payment_source_id="00000000-0000-0000-0000-0000000000b1",
            due_months=(9, 3),
        )
        calculator = BillingPeriodCalculator()
        assert calculator.for_template(template, "2024-09").count == 1
        assert calculator.for_template(template, "2024-10").count == 0
