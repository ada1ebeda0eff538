"""Data contracts for the period split calculation."""

from __future__ import annotations

from datetime import date
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from invoice_split.core.dates import normalize_to_midnight
from invoice_split.domain.errors import (
    CalculationFailure,
    ErrorKind,
    InputValidationError,
)

SplitPeriod = Literal["yearly", "quarterly", "monthly"]


class CalculationInput(BaseModel):
    """Date range, amounts and period granularity for one calculation."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    startDate: date
    endDate: date
    includeEndDate: bool = False
    amounts: List[Optional[float]] = Field(
        ...,
        description="Amounts to split; each one is reconciled independently.",
    )
    splitPeriod: SplitPeriod = "yearly"

    @field_validator("startDate", "endDate", mode="before")
    @classmethod
    def _normalize_dates(cls, value):
        if isinstance(value, (str, date)):
            try:
                return normalize_to_midnight(value)
            except (ValueError, OverflowError):
                # Let pydantic report the malformed value in its own format.
                return value
        return value


class PeriodSegment(BaseModel):
    periodIdentifier: str
    days: int = Field(..., ge=0)
    proportion: float


class PeriodSplit(BaseModel):
    splitAmount: float


class AmountSplitResult(BaseModel):
    originalAmount: float
    adjustedTotalAmount: float
    splits: Dict[str, PeriodSplit]


class AggregatedPeriodSplit(BaseModel):
    periodIdentifier: str
    daysInPeriod: int
    proportion: float
    totalSplitAmount: float


class TotalDuration(BaseModel):
    days: int = 0
    start: str = ""
    end: str = Field("", description="Last calendar day counted in the range.")
    effectiveEnd: str = Field("", description="Exclusive end boundary used for day math.")
    included: bool = False


class PeriodSplitStep(BaseModel):
    periodIdentifier: str
    rawSplit: float
    roundedSplit: float
    adjustment: float = 0.0


class AmountCalculationStep(BaseModel):
    originalAmount: float
    periodSplits: List[PeriodSplitStep] = Field(default_factory=list)
    adjustmentAppliedToPeriod: Optional[str] = None
    discrepancy: float = 0.0
    finalSum: float = 0.0


class CalculationStepDetails(BaseModel):
    totalDuration: TotalDuration = Field(default_factory=TotalDuration)
    periodSegments: List[PeriodSegment] = Field(default_factory=list)
    amountCalculations: List[AmountCalculationStep] = Field(default_factory=list)
    error: Optional[str] = None
    errorCode: Optional[ErrorKind] = None


class CalculationResult(BaseModel):
    """Outcome of ``calculate_invoice_split``; check ``ok`` before trusting the numbers."""

    totalDays: int = 0
    originalTotalAmount: float = 0.0
    adjustedTotalAmount: float = 0.0
    resultsPerAmount: List[AmountSplitResult] = Field(default_factory=list)
    aggregatedSplits: List[AggregatedPeriodSplit] = Field(default_factory=list)
    calculationSteps: CalculationStepDetails = Field(default_factory=CalculationStepDetails)
    splitPeriodUsed: SplitPeriod = "yearly"

    @property
    def ok(self) -> bool:
        return self.calculationSteps.error is None

    @property
    def failure(self) -> Optional[CalculationFailure]:
        steps = self.calculationSteps
        if steps.error is None:
            return None
        return CalculationFailure(kind=ErrorKind(steps.errorCode), message=steps.error)

    def raise_for_error(self) -> "CalculationResult":
        failure = self.failure
        if failure is not None:
            raise InputValidationError(failure)
        return self
