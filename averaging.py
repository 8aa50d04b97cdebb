"""Outlier policies for per-category history.

``IqrTrim`` backs the current-month budget comparison and ``ThresholdTrim``
backs the history views. Reports pick one explicitly; they are not
interchangeable and give different answers on the same data.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from amounts import ZERO


def mean(values: Sequence[Decimal]) -> Decimal:
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


@dataclass(frozen=True)
class TrimResult:
    mean: Decimal
    average: Decimal
    kept: tuple[Decimal, ...]
    excluded: tuple[Decimal, ...]


class IqrTrim:
    """Drop values outside ``[Q1 - 1.5*IQR, Q3 + 1.5*IQR]`` and average the rest.

    Quartiles are read straight off the sorted list at ``n // 4`` and
    ``3n // 4``; there is no interpolation. With two values or fewer
    nothing is trimmed.
    """

    fence = Decimal("1.5")

    def apply(self, values: Sequence[Decimal]) -> TrimResult:
        values = tuple(values)
        if len(values) <= 2:
            return TrimResult(mean(values), mean(values), values, ())
        ordered = sorted(values)
        n = len(ordered)
        q1 = ordered[n // 4]
        q3 = ordered[(3 * n) // 4]
        iqr = q3 - q1
        low = q1 - self.fence * iqr
        high = q3 + self.fence * iqr
        kept = tuple(v for v in values if low <= v <= high)
        excluded = tuple(v for v in values if not low <= v <= high)
        return TrimResult(mean(values), mean(kept), kept, excluded)


class ThresholdTrim:
    """Average again after dropping anything above ``factor`` times the mean.

    Single pass: the threshold comes from the full series and is not
    recomputed after the drop.
    """

    def __init__(self, factor: Decimal = Decimal("2")) -> None:
        self.factor = factor

    def apply(self, values: Sequence[Decimal]) -> TrimResult:
        values = tuple(values)
        full = mean(values)
        threshold = full * self.factor
        kept = tuple(v for v in values if v <= threshold)
        excluded = tuple(v for v in values if v > threshold)
        average = mean(kept) if kept else full
        return TrimResult(full, average, kept, excluded)


IQR_TRIM = IqrTrim()
THRESHOLD_TRIM = ThresholdTrim()
