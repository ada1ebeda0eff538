"""Decimal-safe currency rounding."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Iterable

CURRENCY_DECIMALS = 2

# Wide enough for every finite float (up to 309 integer digits) plus cents,
# and for sums of many of them.
_CONTEXT = Context(prec=400)


def _to_decimal(value: float) -> Decimal:
    # The shortest repr is what the caller wrote: 1.005, not 1.00499999...
    return Decimal(repr(float(value)))


def _quantize(value: Decimal, decimals: int) -> float:
    rounded = float(
        value.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP, context=_CONTEXT)
    )
    # Normalize -0.0 so equality checks and JSON output stay clean.
    return 0.0 if rounded == 0 else rounded


def round_to_decimals(value: float, decimals: int = CURRENCY_DECIMALS) -> float:
    """Round half away from zero at ``decimals`` places.

    >>> round_to_decimals(1.005)
    1.01
    >>> round_to_decimals(-2.675)
    -2.68

    Non-finite values raise ``decimal.InvalidOperation``.
    """
    return _quantize(_to_decimal(value), decimals)


def round_sum(values: Iterable[float], decimals: int = CURRENCY_DECIMALS) -> float:
    """Sum ``values`` without binary drift and round once."""
    with localcontext(_CONTEXT):
        total = sum((_to_decimal(v) for v in values), Decimal(0))
    return _quantize(total, decimals)
