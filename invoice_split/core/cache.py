"""In-memory LRU cache for split calculations.

The engine stays pure; a ``CalculationCache`` instance wraps it from the
outside and is owned by whoever creates it (the Flask app keeps one in
``app.extensions``). Keys are built from a canonical form of the input:
ISO dates, the inclusion flag, the period mode and the amounts sorted, so the
same set of amounts entered in a different order hits the same entry.
"""

from __future__ import annotations

import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from invoice_split.core.dates import format_date, normalize_to_midnight
from invoice_split.core.split import calculate_invoice_split, validate_input
from invoice_split.logging_setup import get_logger
from invoice_split.schemas.split import CalculationInput, CalculationResult

# Bump when the calculation logic changes so stale entries stop matching.
CACHE_VERSION = "v1.0"

_logger = get_logger("invoice_split.core.cache")


def make_cache_key(calc_input: CalculationInput) -> str:
    normalized = {
        "startDate": format_date(normalize_to_midnight(calc_input.startDate)),
        "endDate": format_date(normalize_to_midnight(calc_input.endDate)),
        "includeEndDate": calc_input.includeEndDate,
        "amounts": sorted(float(a) for a in calc_input.amounts),
        "splitPeriod": calc_input.splitPeriod,
    }
    return f"{CACHE_VERSION}:{json.dumps(normalized, sort_keys=True)}"


def _reorder_for(calc_input: CalculationInput, cached: CalculationResult) -> CalculationResult:
    """Return ``cached`` with per-amount entries in ``calc_input``'s amount order."""
    requested = [float(a) for a in calc_input.amounts]
    stored = [r.originalAmount for r in cached.resultsPerAmount]
    if stored == requested:
        return cached

    pending: Dict[float, List[int]] = {}
    for index, amount in enumerate(stored):
        pending.setdefault(amount, []).append(index)
    order = [pending[amount].pop(0) for amount in requested]

    steps = cached.calculationSteps.model_copy(
        update={"amountCalculations": [cached.calculationSteps.amountCalculations[i] for i in order]}
    )
    return cached.model_copy(
        update={
            "resultsPerAmount": [cached.resultsPerAmount[i] for i in order],
            "calculationSteps": steps,
        }
    )


@dataclass
class _Entry:
    result: CalculationResult
    stored_at: float
    ttl: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    capacity: int
    hits: int
    misses: int


class CalculationCache:
    """Thread-safe LRU of successful results with a per-entry time-to-live.

    Results are copied on the way in and on the way out, so mutating a returned
    result never changes what later lookups see.
    """

    def __init__(
        self,
        max_size: int = 20,
        ttl_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def get(self, calc_input: CalculationInput) -> Optional[CalculationResult]:
        if validate_input(calc_input) is not None:
            # Invalid inputs are never stored.
            return None
        key = make_cache_key(calc_input)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() - entry.stored_at > entry.ttl:
                del self._entries[key]
                self._misses += 1
                return None
            self._entries.move_to_end(key)
            self._hits += 1
            cached = entry.result
        return _reorder_for(calc_input, cached.model_copy(deep=True))

    def put(
        self,
        calc_input: CalculationInput,
        result: CalculationResult,
        ttl: Optional[float] = None,
    ) -> None:
        if not result.ok:
            return
        key = make_cache_key(calc_input)
        with self._lock:
            self._entries[key] = _Entry(
                result=result.model_copy(deep=True),
                stored_at=self._clock(),
                ttl=self.ttl_seconds if ttl is None else ttl,
            )
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                _logger.debug("Evicted cache entry %s", evicted)

    def get_or_calculate(
        self,
        calc_input: CalculationInput,
        calculate: Callable[[CalculationInput], CalculationResult] = calculate_invoice_split,
    ) -> CalculationResult:
        cached = self.get(calc_input)
        if cached is not None:
            return cached
        result = calculate(calc_input)
        self.put(calc_input, result)
        return result

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                capacity=self.max_size,
                hits=self._hits,
                misses=self._misses,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
