"""
Descriptive statistics for layout heuristics.

Every threshold in the pipeline is derived from a small set of summary
statistics over coordinates, gaps and font sizes. They are computed here once,
with numpy, so the stages agree on the exact definitions.

Percentiles follow index semantics rather than interpolation:
``sorted[floor(n * q)]``. The thresholds were tuned against that definition,
so interpolated percentiles would shift every boundary slightly.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np


@dataclass(frozen=True)
class SeriesStats:
    """
    Summary statistics over a series of numbers.

    Attributes:
        count: Number of values.
        min: Smallest value (0 when empty).
        max: Largest value (0 when empty).
        avg: Arithmetic mean.
        median: Value at index floor(n/2) of the sorted series.
        p75: Value at index floor(n*0.75).
        p90: Value at index floor(n*0.9).
        std: Population standard deviation.
    """

    count: int = 0
    min: float = 0.0
    max: float = 0.0
    avg: float = 0.0
    median: float = 0.0
    p75: float = 0.0
    p90: float = 0.0
    std: float = 0.0

    @property
    def empty(self) -> bool:
        return self.count == 0


def percentile_at(sorted_values: Sequence[float], q: float) -> float:
    """
    Index-based percentile of an already sorted sequence.

    Args:
        sorted_values: Values sorted ascending.
        q: Fraction in [0, 1].

    Returns:
        ``sorted_values[floor(n*q)]`` clamped to the last index, 0 when empty.

    Example:
        >>> percentile_at([1, 2, 3, 4], 0.75)
        4
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = min(int(np.floor(n * q)), n - 1)
    return sorted_values[idx]


def describe(values: Iterable[float]) -> SeriesStats:
    """
    Compute SeriesStats for finite values.

    Args:
        values: Any iterable of numbers; NaN/inf are ignored.

    Returns:
        SeriesStats (all zeros when no finite value remains).

    Example:
        >>> s = describe([5, 1, 3])
        >>> (s.min, s.median, s.max)
        (1.0, 3.0, 5.0)
    """
    arr = np.asarray(list(values), dtype=float)
    arr = arr[np.isfinite(arr)] if arr.size else arr
    if arr.size == 0:
        return SeriesStats()
    arr = np.sort(arr)
    return SeriesStats(
        count=int(arr.size),
        min=float(arr[0]),
        max=float(arr[-1]),
        avg=float(arr.mean()),
        median=float(percentile_at(arr, 0.5)),
        p75=float(percentile_at(arr, 0.75)),
        p90=float(percentile_at(arr, 0.9)),
        std=float(arr.std()),
    )


def positive_gaps(values: Iterable[float]) -> List[float]:
    """Positive differences between consecutive values after sorting."""
    arr = np.sort(np.asarray(list(values), dtype=float))
    if arr.size < 2:
        return []
    diffs = np.diff(arr)
    return [float(d) for d in diffs if d > 0]


def gap_statistics(values: Iterable[float]) -> SeriesStats:
    """Statistics over the positive consecutive gaps of sorted values."""
    return describe(positive_gaps(values))


def mode_of(values: Iterable[float], resolution: float = 1.0) -> Optional[float]:
    """
    Most frequent value after rounding to ``resolution``.

    Ties go to the value seen first, matching insertion-ordered counting.

    Example:
        >>> mode_of([12.1, 11.9, 14.2], resolution=0.5)
        12.0
    """
    arr = np.asarray(list(values), dtype=float)
    if arr.size == 0:
        return None
    rounded = np.round(arr / resolution) * resolution
    counts = {}
    for v in rounded.tolist():
        counts[v] = counts.get(v, 0) + 1
    best, best_count = None, 0
    for value, count in counts.items():
        if count > best_count:
            best, best_count = value, count
    return float(best)


def mean(values: Iterable[float], default: float = 0.0) -> float:
    """Arithmetic mean with a default for empty input."""
    arr = np.asarray(list(values), dtype=float)
    return float(arr.mean()) if arr.size else default
