"""Split amounts across calendar periods in proportion to the days they cover.

Pipeline for one call of ``calculate_invoice_split``:

  1) Validate the input (amounts present and finite, non-empty date range).
  2) Segment [start, effective end) into year / quarter / month periods.
  3) For every amount: raw split = amount * proportion, round each split to
     cents, then push the rounding discrepancy into the period with the
     largest raw split so the rounded splits add up to the rounded amount.
  4) Sum the per-amount splits per period.

Failures never raise; they come back as a zeroed ``CalculationResult`` whose
``calculationSteps.error`` is set. Arithmetic that still overflows (totals beyond
the float range) is reported as ``ErrorKind.UNEXPECTED``.
"""

from __future__ import annotations

import math
from datetime import date
from typing import List, Optional, Sequence, Tuple

from invoice_split.core.dates import (
    add_days,
    difference_in_days,
    format_date,
    normalize_to_midnight,
)
from invoice_split.core.periods import segment_periods
from invoice_split.core.rounding import round_sum, round_to_decimals
from invoice_split.domain.errors import CalculationFailure, ErrorKind
from invoice_split.logging_setup import get_logger
from invoice_split.schemas.split import (
    AggregatedPeriodSplit,
    AmountCalculationStep,
    AmountSplitResult,
    CalculationInput,
    CalculationResult,
    CalculationStepDetails,
    PeriodSegment,
    PeriodSplit,
    PeriodSplitStep,
    TotalDuration,
)

_logger = get_logger("invoice_split.core.split")


def effective_end_date(calc_input: CalculationInput) -> date:
    """Exclusive end boundary: the end date, or the day after it when included."""
    end = normalize_to_midnight(calc_input.endDate)
    return add_days(end, 1) if calc_input.includeEndDate else end


def _is_finite_number(value: object) -> bool:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_input(calc_input: CalculationInput) -> Optional[CalculationFailure]:
    """Return the first failing check, or ``None`` when the input can be split."""
    amounts = calc_input.amounts
    if not amounts:
        return CalculationFailure.of(ErrorKind.NO_AMOUNTS)

    invalid = [a for a in amounts if not _is_finite_number(a)]
    if invalid:
        return CalculationFailure.of(ErrorKind.INVALID_AMOUNT, invalidAmounts=invalid)

    start = normalize_to_midnight(calc_input.startDate)
    try:
        effective_end = effective_end_date(calc_input)
    except OverflowError:
        # An included end of date.max has no exclusive boundary.
        return CalculationFailure.of(
            ErrorKind.DATE_OUT_OF_RANGE,
            endDate=format_date(normalize_to_midnight(calc_input.endDate)),
            includeEndDate=calc_input.includeEndDate,
        )
    if start >= effective_end:
        return CalculationFailure.of(
            ErrorKind.INVALID_DATE_ORDER,
            startDate=format_date(start),
            effectiveEndDate=format_date(effective_end),
            includeEndDate=calc_input.includeEndDate,
        )

    total_days = difference_in_days(effective_end, start)
    if total_days <= 0:
        return CalculationFailure.of(ErrorKind.ZERO_DURATION, calculatedDays=total_days)
    return None


def _error_result(
    calc_input: CalculationInput,
    steps: CalculationStepDetails,
    failure: CalculationFailure,
) -> CalculationResult:
    _logger.info("Rejected split input: %s (%s)", failure.message, failure.kind.code)
    steps.totalDuration.days = 0
    steps.error = failure.message
    steps.errorCode = failure.kind
    return CalculationResult(
        calculationSteps=steps,
        splitPeriodUsed=calc_input.splitPeriod,
    )


def split_amount(
    amount: float,
    segments: Sequence[PeriodSegment],
) -> Tuple[AmountSplitResult, AmountCalculationStep]:
    """Split one amount over ``segments`` so the rounded splits sum to ``round(amount, 2)``."""
    raw_splits = [(segment.periodIdentifier, amount * segment.proportion) for segment in segments]
    rounded = {identifier: round_to_decimals(raw) for identifier, raw in raw_splits}

    current_total = round_sum(rounded.values())
    discrepancy = round_to_decimals(round_to_decimals(amount) - current_total)

    adjusted_period: Optional[str] = None
    if discrepancy != 0 and raw_splits:
        # max() keeps the first of equal candidates, so ties go to the earliest period.
        adjusted_period = max(raw_splits, key=lambda item: abs(item[1]))[0]
        rounded[adjusted_period] = round_to_decimals(rounded[adjusted_period] + discrepancy)
        _logger.debug(
            "Applied rounding adjustment %.2f to %s for amount %s",
            discrepancy,
            adjusted_period,
            amount,
        )

    final_sum = round_sum(rounded.values())
    step = AmountCalculationStep(
        originalAmount=amount,
        periodSplits=[
            PeriodSplitStep(
                periodIdentifier=identifier,
                rawSplit=raw,
                roundedSplit=rounded[identifier],
                adjustment=discrepancy if identifier == adjusted_period else 0.0,
            )
            for identifier, raw in raw_splits
        ],
        adjustmentAppliedToPeriod=adjusted_period,
        discrepancy=discrepancy,
        finalSum=final_sum,
    )
    result = AmountSplitResult(
        originalAmount=amount,
        adjustedTotalAmount=final_sum,
        splits={identifier: PeriodSplit(splitAmount=value) for identifier, value in rounded.items()},
    )
    return result, step


def aggregate_splits(
    results: Sequence[AmountSplitResult],
    segments: Sequence[PeriodSegment],
) -> Tuple[List[AggregatedPeriodSplit], float]:
    """Per-period totals across all amounts, plus their overall rounded sum."""
    aggregated = [
        AggregatedPeriodSplit(
            periodIdentifier=segment.periodIdentifier,
            daysInPeriod=segment.days,
            proportion=segment.proportion,
            totalSplitAmount=round_sum(
                result.splits[segment.periodIdentifier].splitAmount
                for result in results
                if segment.periodIdentifier in result.splits
            ),
        )
        for segment in sorted(segments, key=lambda s: s.periodIdentifier)
    ]
    adjusted_total = round_sum(split.totalSplitAmount for split in aggregated)
    return aggregated, adjusted_total


def calculate_invoice_split(calc_input: CalculationInput) -> CalculationResult:
    """Allocate every amount of ``calc_input`` across its calendar periods."""
    start = normalize_to_midnight(calc_input.startDate)
    failure = validate_input(calc_input)
    if failure is not None:
        return _error_result(calc_input, _describe_duration(calc_input, start), failure)

    try:
        return _calculate(calc_input, start)
    except ArithmeticError as exc:
        # decimal.InvalidOperation when totals overflow the float range.
        _logger.warning("Split calculation failed: %s", exc, exc_info=True)
        failure = CalculationFailure.of(ErrorKind.UNEXPECTED, error=str(exc))
        return _error_result(calc_input, _describe_duration(calc_input, start), failure)


def _describe_duration(calc_input: CalculationInput, start: date) -> CalculationStepDetails:
    """Empty step details carrying whatever of the range can be described."""
    end = normalize_to_midnight(calc_input.endDate)
    duration = TotalDuration(start=format_date(start), included=calc_input.includeEndDate)
    if calc_input.includeEndDate:
        duration.end = format_date(end)
        if end < date.max:
            duration.effectiveEnd = format_date(add_days(end, 1))
    else:
        duration.effectiveEnd = format_date(end)
        if end > date.min:
            duration.end = format_date(add_days(end, -1))
    return CalculationStepDetails(totalDuration=duration)


def _calculate(calc_input: CalculationInput, start: date) -> CalculationResult:
    effective_end = effective_end_date(calc_input)
    steps = _describe_duration(calc_input, start)

    amounts = [float(a) for a in calc_input.amounts]
    segments, total_days = segment_periods(start, effective_end, calc_input.splitPeriod)
    steps.totalDuration.days = total_days
    steps.periodSegments = segments
    _logger.debug(
        "Segmented %s..%s (%d days) into %d %s period(s)",
        steps.totalDuration.start,
        steps.totalDuration.effectiveEnd,
        total_days,
        len(segments),
        calc_input.splitPeriod,
    )

    results_per_amount: List[AmountSplitResult] = []
    for amount in amounts:
        result, step = split_amount(amount, segments)
        results_per_amount.append(result)
        steps.amountCalculations.append(step)

    aggregated, adjusted_total = aggregate_splits(results_per_amount, segments)
    original_total = round_sum(amounts)

    # Each amount reconciles to its own rounded value, so the residual stays
    # within half a cent per amount; this only fires if that stops holding.
    residual = round_to_decimals(original_total - adjusted_total)
    if abs(residual) > 0.01 * len(amounts):
        _logger.warning(
            "Potential rounding discrepancy: original %.2f, adjusted %.2f, diff %.2f",
            original_total,
            adjusted_total,
            residual,
        )

    return CalculationResult(
        totalDays=total_days,
        originalTotalAmount=original_total,
        adjustedTotalAmount=adjusted_total,
        resultsPerAmount=results_per_amount,
        aggregatedSplits=aggregated,
        calculationSteps=steps,
        splitPeriodUsed=calc_input.splitPeriod,
    )
