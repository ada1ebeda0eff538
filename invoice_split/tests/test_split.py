from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from math import isclose

import pytest

from invoice_split.core import split as split_module
from invoice_split.core.split import calculate_invoice_split, split_amount
from invoice_split.domain.errors import ErrorKind, InputValidationError
from invoice_split.schemas.split import CalculationInput, PeriodSegment, PeriodSplit


def make_input(start: str, end: str, amounts, include_end: bool = False, period: str = "yearly"):
    return CalculationInput(
        startDate=start,
        endDate=end,
        includeEndDate=include_end,
        amounts=amounts,
        splitPeriod=period,
    )


def by_period(result) -> dict:
    return {split.periodIdentifier: split for split in result.aggregatedSplits}


def test_single_year_exclusive():
    result = calculate_invoice_split(make_input("2023-01-15", "2023-03-15", [1000, 100]))

    assert result.ok
    assert result.totalDays == 59
    assert len(result.aggregatedSplits) == 1
    only = result.aggregatedSplits[0]
    assert only.periodIdentifier == "2023"
    assert only.daysInPeriod == 59
    assert only.proportion == 1.0
    assert only.totalSplitAmount == 1100.00
    assert result.originalTotalAmount == 1100.00
    assert result.adjustedTotalAmount == 1100.00
    assert result.splitPeriodUsed == "yearly"


def test_single_year_inclusive_counts_end_day():
    result = calculate_invoice_split(make_input("2023-01-15", "2023-03-15", [1100], include_end=True))

    assert result.totalDays == 60
    assert result.aggregatedSplits[0].daysInPeriod == 60
    assert result.resultsPerAmount[0].splits["2023"].splitAmount == 1100.00


def test_two_years_exclusive_even_split():
    result = calculate_invoice_split(make_input("2023-12-01", "2024-02-01", [1000, 80]))

    assert result.totalDays == 62
    splits = by_period(result)
    assert list(splits) == ["2023", "2024"]
    assert splits["2023"].daysInPeriod == 31
    assert splits["2024"].daysInPeriod == 31
    assert splits["2023"].totalSplitAmount == 540.00
    assert splits["2024"].totalSplitAmount == 540.00
    assert result.adjustedTotalAmount == 1080.00
    assert result.originalTotalAmount == 1080.00


def test_leap_year_inclusive_reconciles_each_amount():
    result = calculate_invoice_split(
        make_input("2023-12-15", "2024-03-15", [10000, 816], include_end=True)
    )

    assert result.totalDays == 92
    splits = by_period(result)
    assert splits["2023"].daysInPeriod == 17
    assert splits["2024"].daysInPeriod == 75

    first, second = result.resultsPerAmount
    assert first.splits["2023"].splitAmount == 1847.83
    assert first.splits["2024"].splitAmount == 8152.17
    assert first.adjustedTotalAmount == 10000.00
    assert second.splits["2023"].splitAmount == 150.78
    assert second.splits["2024"].splitAmount == 665.22
    assert second.adjustedTotalAmount == 816.00

    assert splits["2023"].totalSplitAmount == 1998.61
    assert splits["2024"].totalSplitAmount == 8817.39
    assert result.adjustedTotalAmount == 10816.00


def test_year_boundary_inclusive_detailed():
    result = calculate_invoice_split(
        make_input("2023-12-15", "2024-01-15", [1000, 80], include_end=True)
    )

    assert result.totalDays == 32
    splits = by_period(result)
    assert splits["2023"].daysInPeriod == 17
    assert splits["2024"].daysInPeriod == 15
    assert isclose(splits["2023"].proportion, 17 / 32)
    assert isclose(splits["2024"].proportion, 15 / 32)
    assert splits["2023"].totalSplitAmount == 573.75
    assert splits["2024"].totalSplitAmount == 506.25

    first, second = result.resultsPerAmount
    assert first.originalAmount == 1000
    assert first.splits["2023"].splitAmount == 531.25
    assert first.splits["2024"].splitAmount == 468.75
    assert second.originalAmount == 80
    assert second.splits["2023"].splitAmount == 42.50
    assert second.splits["2024"].splitAmount == 37.50
    assert result.adjustedTotalAmount == 1080.00


def test_amount_order_is_preserved():
    result = calculate_invoice_split(make_input("2023-12-01", "2024-02-01", [500, 300, 280]))

    assert [r.originalAmount for r in result.resultsPerAmount] == [500, 300, 280]
    assert [c.originalAmount for c in result.calculationSteps.amountCalculations] == [500, 300, 280]
    assert result.adjustedTotalAmount == 1080.00


def test_rounding_discrepancy_goes_to_first_of_tied_largest_periods():
    # Jan and Mar both hold 31 of 90 days: 34.44 + 31.11 + 34.44 = 99.99.
    result = calculate_invoice_split(
        make_input("2023-01-01", "2023-03-31", [100], include_end=True, period="monthly")
    )

    only = result.resultsPerAmount[0]
    assert only.splits["2023-01"].splitAmount == 34.45
    assert only.splits["2023-02"].splitAmount == 31.11
    assert only.splits["2023-03"].splitAmount == 34.44
    assert only.adjustedTotalAmount == 100.00

    step = result.calculationSteps.amountCalculations[0]
    assert step.discrepancy == 0.01
    assert step.adjustmentAppliedToPeriod == "2023-01"
    adjustments = {s.periodIdentifier: s.adjustment for s in step.periodSplits}
    assert adjustments == {"2023-01": 0.01, "2023-02": 0.0, "2023-03": 0.0}
    rounded = {s.periodIdentifier: s.roundedSplit for s in step.periodSplits}
    assert rounded["2023-01"] == 34.45


def test_discrepancy_goes_to_largest_raw_split():
    segments = [
        PeriodSegment(periodIdentifier="2023-Q1", days=2, proportion=2 / 7),
        PeriodSegment(periodIdentifier="2023-Q2", days=2, proportion=2 / 7),
        PeriodSegment(periodIdentifier="2023-Q3", days=3, proportion=3 / 7),
    ]
    # 0.29 + 0.29 + 0.43 overshoots by a cent.
    result, step = split_amount(1.0, segments)

    assert step.discrepancy == -0.01
    assert step.adjustmentAppliedToPeriod == "2023-Q3"
    assert result.splits["2023-Q1"].splitAmount == 0.29
    assert result.splits["2023-Q2"].splitAmount == 0.29
    assert result.splits["2023-Q3"].splitAmount == 0.42
    assert result.adjustedTotalAmount == 1.00
    assert step.finalSum == 1.00


def test_split_amount_without_segments_keeps_nothing():
    result, step = split_amount(10.0, [])

    assert result.splits == {}
    assert step.adjustmentAppliedToPeriod is None


def test_amount_with_half_cent_reconciles_to_rounded_amount():
    result = calculate_invoice_split(make_input("2023-12-01", "2024-02-01", [1.005]))

    only = result.resultsPerAmount[0]
    assert only.splits["2023"].splitAmount == 0.51
    assert only.splits["2024"].splitAmount == 0.50
    assert only.adjustedTotalAmount == 1.01
    assert result.originalTotalAmount == 1.01
    assert result.adjustedTotalAmount == 1.01


def test_zero_amount_is_allowed():
    result = calculate_invoice_split(make_input("2023-12-01", "2024-02-01", [0, 100]))

    assert result.ok
    assert result.resultsPerAmount[0].splits["2023"].splitAmount == 0.0
    assert result.resultsPerAmount[0].splits["2024"].splitAmount == 0.0
    assert result.resultsPerAmount[0].adjustedTotalAmount == 0.0
    assert result.adjustedTotalAmount == 100.00


def test_quarterly_split_of_a_full_year():
    result = calculate_invoice_split(
        make_input("2023-01-01", "2023-12-31", [3650], include_end=True, period="quarterly")
    )

    assert result.totalDays == 365
    assert [(s.periodIdentifier, s.daysInPeriod) for s in result.aggregatedSplits] == [
        ("2023-Q1", 90),
        ("2023-Q2", 91),
        ("2023-Q3", 92),
        ("2023-Q4", 92),
    ]
    assert [s.totalSplitAmount for s in result.aggregatedSplits] == [900.0, 910.0, 920.0, 920.0]
    assert result.splitPeriodUsed == "quarterly"


def test_monthly_split_across_year_end():
    result = calculate_invoice_split(
        make_input("2023-11-15", "2024-02-10", [870], period="monthly")
    )

    assert result.totalDays == 87
    assert [(s.periodIdentifier, s.daysInPeriod) for s in result.aggregatedSplits] == [
        ("2023-11", 16),
        ("2023-12", 31),
        ("2024-01", 31),
        ("2024-02", 9),
    ]
    assert [s.totalSplitAmount for s in result.aggregatedSplits] == [160.0, 310.0, 310.0, 90.0]


def test_full_leap_year_is_one_segment():
    result = calculate_invoice_split(make_input("2024-01-01", "2024-12-31", [366], include_end=True))

    assert result.totalDays == 366
    assert len(result.aggregatedSplits) == 1
    assert result.aggregatedSplits[0].daysInPeriod == 366


def test_leap_day_counted_once_in_monthly_mode():
    result = calculate_invoice_split(
        make_input("2024-02-01", "2024-03-01", [290], period="monthly")
    )

    assert result.totalDays == 29
    assert [(s.periodIdentifier, s.daysInPeriod) for s in result.aggregatedSplits] == [("2024-02", 29)]


def test_single_day_inclusive_range():
    result = calculate_invoice_split(make_input("2023-06-30", "2023-06-30", [42], include_end=True))

    assert result.ok
    assert result.totalDays == 1
    assert result.adjustedTotalAmount == 42.0


def test_datetimes_are_normalized_to_calendar_days():
    calc_input = CalculationInput(
        startDate=datetime(2023, 12, 1, 17, 45),
        endDate="2024-02-01T00:00:00Z",
        amounts=[1080],
    )
    result = calculate_invoice_split(calc_input)

    assert calc_input.startDate == date(2023, 12, 1)
    assert calc_input.endDate == date(2024, 2, 1)
    assert result.totalDays == 62


def test_aware_datetimes_use_utc_day():
    plus_two = timezone(timedelta(hours=2))
    calc_input = CalculationInput(
        startDate=datetime(2024, 1, 1, 1, 0, tzinfo=plus_two),
        endDate=datetime(2024, 1, 11, 1, 0, tzinfo=plus_two),
        amounts=[100],
    )

    assert calc_input.startDate == date(2023, 12, 31)
    assert calc_input.endDate == date(2024, 1, 10)
    result = calculate_invoice_split(calc_input)
    assert [s.periodIdentifier for s in result.aggregatedSplits] == ["2023", "2024"]


def test_calculation_steps_trace():
    result = calculate_invoice_split(make_input("2023-12-15", "2024-01-15", [1000], include_end=True))

    steps = result.calculationSteps
    assert steps.error is None
    assert steps.errorCode is None
    assert steps.totalDuration.days == 32
    assert steps.totalDuration.start == "2023-12-15"
    assert steps.totalDuration.end == "2024-01-15"
    assert steps.totalDuration.effectiveEnd == "2024-01-16"
    assert steps.totalDuration.included is True
    assert [(s.periodIdentifier, s.days) for s in steps.periodSegments] == [("2023", 17), ("2024", 15)]

    calc = steps.amountCalculations[0]
    assert calc.originalAmount == 1000
    assert [s.rawSplit for s in calc.periodSplits] == [1000 * 17 / 32, 1000 * 15 / 32]
    assert [s.roundedSplit for s in calc.periodSplits] == [531.25, 468.75]
    assert calc.discrepancy == 0.0
    assert calc.adjustmentAppliedToPeriod is None
    assert calc.finalSum == 1000.00


def test_calculation_is_deterministic():
    calc_input = make_input("2023-03-03", "2025-07-19", [1234.56, 0.99, 77], period="monthly")

    first = calculate_invoice_split(calc_input)
    second = calculate_invoice_split(calc_input)

    assert first.model_dump() == second.model_dump()


def test_no_amounts_returns_error_result():
    result = calculate_invoice_split(make_input("2023-01-01", "2023-02-01", []))

    assert not result.ok
    assert "At least one amount is required." in result.calculationSteps.error
    assert result.calculationSteps.errorCode is ErrorKind.NO_AMOUNTS
    assert result.failure.kind is ErrorKind.NO_AMOUNTS
    assert result.aggregatedSplits == []
    assert result.resultsPerAmount == []
    assert result.totalDays == 0


@pytest.mark.parametrize("bad", [None, float("nan"), float("inf"), float("-inf")])
def test_non_numeric_amount_returns_error_result(bad):
    result = calculate_invoice_split(make_input("2023-01-01", "2023-02-01", [100, bad]))

    assert result.calculationSteps.error == "Invalid non-numeric amount provided."
    assert result.failure.kind is ErrorKind.INVALID_AMOUNT
    assert result.originalTotalAmount == 0.0
    assert result.adjustedTotalAmount == 0.0


def test_start_after_end_returns_error_result():
    result = calculate_invoice_split(make_input("2024-02-01", "2023-12-01", [1000]))

    assert not result.ok
    assert "Start date must be before" in result.calculationSteps.error
    assert result.failure.kind is ErrorKind.INVALID_DATE_ORDER
    assert result.totalDays == 0
    assert result.aggregatedSplits == []
    assert result.resultsPerAmount == []
    assert result.calculationSteps.periodSegments == []


def test_single_day_exclusive_range_is_rejected():
    result = calculate_invoice_split(make_input("2023-06-30", "2023-06-30", [42]))

    assert not result.ok
    assert result.totalDays == 0
    assert result.failure.kind is ErrorKind.INVALID_DATE_ORDER


def test_raise_for_error():
    good = calculate_invoice_split(make_input("2023-01-01", "2023-02-01", [10]))
    assert good.raise_for_error() is good

    bad = calculate_invoice_split(make_input("2023-01-01", "2023-02-01", []))
    with pytest.raises(InputValidationError) as excinfo:
        bad.raise_for_error()
    assert excinfo.value.kind is ErrorKind.NO_AMOUNTS
    assert str(excinfo.value) == "At least one amount is required."


def test_amounts_beyond_28_significant_digits_are_split():
    result = calculate_invoice_split(make_input("2023-01-01", "2023-06-01", [1e27]))

    assert result.ok
    assert result.aggregatedSplits[0].totalSplitAmount == 1e27
    assert result.adjustedTotalAmount == 1e27

    monthly = calculate_invoice_split(make_input("2023-01-01", "2023-06-01", [1e27], period="monthly"))
    assert monthly.ok
    assert isclose(monthly.adjustedTotalAmount, 1e27, rel_tol=1e-12)


def test_totals_beyond_the_float_range_return_error_result():
    result = calculate_invoice_split(make_input("2023-01-01", "2023-06-01", [1e308, 1e308]))

    assert not result.ok
    assert result.failure.kind is ErrorKind.UNEXPECTED
    assert result.calculationSteps.errorCode.code == "ERR_UNEXPECTED"
    assert result.totalDays == 0
    assert result.aggregatedSplits == []
    assert result.resultsPerAmount == []
    assert result.calculationSteps.totalDuration.start == "2023-01-01"


@pytest.mark.parametrize("period", ["yearly", "quarterly", "monthly"])
def test_ranges_in_the_last_representable_year(period):
    exclusive = calculate_invoice_split(make_input("9999-01-01", "9999-12-31", [3650], period=period))
    assert exclusive.ok
    assert exclusive.totalDays == 364
    assert exclusive.adjustedTotalAmount == 3650.0

    to_the_end = calculate_invoice_split(make_input("9999-10-01", "9999-12-31", [92], period=period))
    assert to_the_end.ok
    assert to_the_end.calculationSteps.totalDuration.end == "9999-12-30"


def test_included_last_representable_day_is_rejected():
    result = calculate_invoice_split(make_input("9999-01-01", "9999-12-31", [100], include_end=True))

    assert not result.ok
    assert result.failure.kind is ErrorKind.DATE_OUT_OF_RANGE
    assert result.calculationSteps.errorCode.code == "ERR_INVALID_DATES"
    assert result.totalDays == 0
    duration = result.calculationSteps.totalDuration
    assert (duration.start, duration.end, duration.effectiveEnd) == ("9999-01-01", "9999-12-31", "")


def test_residual_total_discrepancy_is_logged(monkeypatch, caplog):
    real_split_amount = split_module.split_amount

    def skewed_split_amount(amount, segments):
        result, step = real_split_amount(amount, segments)
        first = next(iter(result.splits))
        result.splits[first] = PeriodSplit(splitAmount=result.splits[first].splitAmount + 1)
        return result, step

    monkeypatch.setattr(split_module, "split_amount", skewed_split_amount)
    monkeypatch.setattr(logging.getLogger("invoice_split"), "propagate", True)

    with caplog.at_level(logging.WARNING, logger="invoice_split.core.split"):
        result = calculate_invoice_split(make_input("2023-01-01", "2023-02-01", [100]))

    assert result.ok
    assert result.adjustedTotalAmount == 101.0
    assert "Potential rounding discrepancy" in caplog.text
