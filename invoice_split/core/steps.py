"""Plain-text rendering of a calculation trace."""

from __future__ import annotations

from typing import List

from invoice_split.schemas.split import CalculationResult


def _money(value: float) -> str:
    return f"{value:,.2f}"


def render_calculation_steps(result: CalculationResult) -> List[str]:
    steps = result.calculationSteps
    if steps.error is not None:
        return [f"Error: {steps.error}"]

    duration = steps.totalDuration
    lines = [
        f"Total duration: {duration.days} days "
        f"({duration.start} to {duration.end}, end date {'included' if duration.included else 'excluded'})",
        f"Period segments ({result.splitPeriodUsed}):",
    ]
    for segment in steps.periodSegments:
        lines.append(
            f"  {segment.periodIdentifier}: {segment.days} days "
            f"({segment.days}/{duration.days} = {segment.proportion:.2%})"
        )

    proportions = {s.periodIdentifier: s.proportion for s in steps.periodSegments}
    for index, calc in enumerate(steps.amountCalculations, start=1):
        lines.append(f"Amount {index}: {_money(calc.originalAmount)}")
        for split in calc.periodSplits:
            line = (
                f"  {split.periodIdentifier}: {_money(calc.originalAmount)} x "
                f"{proportions.get(split.periodIdentifier, 0.0):.6f} = {split.rawSplit:.6f}"
                f" -> {_money(split.roundedSplit)}"
            )
            if split.adjustment:
                line += f" (adjusted by {split.adjustment:+.2f})"
            lines.append(line)
        if calc.adjustmentAppliedToPeriod is not None:
            lines.append(
                f"  Rounding discrepancy {calc.discrepancy:+.2f} applied to {calc.adjustmentAppliedToPeriod}"
            )
        else:
            lines.append("  No rounding discrepancy")
        lines.append(f"  Final sum: {_money(calc.finalSum)}")

    lines.append(
        f"Total: {_money(result.originalTotalAmount)} original, "
        f"{_money(result.adjustedTotalAmount)} allocated"
    )
    return lines
