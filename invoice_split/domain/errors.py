"""Closed error taxonomy for the split calculation.

Every failure the engine can report is one of the ``ErrorKind`` members below.
All but ``UNEXPECTED`` are input validation failures; ``UNEXPECTED`` covers
arithmetic that overflows while the calculation runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class ErrorKind(str, Enum):
    NO_AMOUNTS = "ERR_NO_AMOUNTS"
    INVALID_AMOUNT = "ERR_INVALID_AMOUNT"
    INVALID_DATE_ORDER = "ERR_END_BEFORE_START"
    ZERO_DURATION = "ERR_ZERO_DURATION"
    DATE_OUT_OF_RANGE = "ERR_INVALID_DATES"
    UNEXPECTED = "ERR_UNEXPECTED"

    @property
    def code(self) -> str:
        return self.value

    @property
    def message(self) -> str:
        return _MESSAGES[self]


_MESSAGES = {
    ErrorKind.NO_AMOUNTS: "At least one amount is required.",
    ErrorKind.INVALID_AMOUNT: "Invalid non-numeric amount provided.",
    ErrorKind.INVALID_DATE_ORDER: "Start date must be before the effective end date.",
    ErrorKind.ZERO_DURATION: "Calculated duration is zero or negative.",
    ErrorKind.DATE_OUT_OF_RANGE: "Dates must fall within the supported calendar range.",
    ErrorKind.UNEXPECTED: "An unexpected error occurred during calculation.",
}


@dataclass(frozen=True)
class CalculationFailure:
    kind: ErrorKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def of(cls, kind: ErrorKind, **details: Any) -> "CalculationFailure":
        return cls(kind=kind, message=kind.message, details=details)


class InputValidationError(ValueError):
    """Raised by ``CalculationResult.raise_for_error`` for callers that want exceptions."""

    def __init__(self, failure: CalculationFailure):
        super().__init__(failure.message)
        self.failure = failure

    @property
    def kind(self) -> ErrorKind:
        return self.failure.kind
