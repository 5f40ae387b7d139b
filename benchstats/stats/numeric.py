"""Elementary descriptive helpers shared by every test in the engine."""

from __future__ import annotations

import math
from collections import Counter
from typing import List, Sequence

import numpy as np
from scipy import stats as scipy_stats


def _as_array(values: Sequence[float]) -> np.ndarray:
    return np.asarray(values, dtype=float).reshape(-1)


def mean(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return math.nan
    return float(np.mean(arr))


def median(values: Sequence[float]) -> float:
    arr = _as_array(values)
    if arr.size == 0:
        return math.nan
    return float(np.median(arr))


def modes(values: Sequence[float]) -> List[float]:
    """Return every value tied at the highest repeat count, ascending.

    An empty list is returned when no value occurs more than once.
    """
    arr = _as_array(values)
    if arr.size == 0:
        return []
    counts = Counter(float(v) for v in arr)
    top = max(counts.values())
    if top <= 1:
        return []
    return sorted(v for v, c in counts.items() if c == top)


def variance(values: Sequence[float], convention: str = "sample") -> float:
    """Variance with an explicit divisor convention.

    Args:
        values: Numeric sample.
        convention: ``"sample"`` divides by ``n - 1`` and returns 0 for
            ``n <= 1``; ``"population"`` divides by ``n``.

    Raises:
        ValueError: If ``convention`` is not recognised.
    """
    arr = _as_array(values)
    n = int(arr.size)
    if convention == "sample":
        if n <= 1:
            return 0.0
        return float(np.var(arr, ddof=1))
    if convention == "population":
        if n == 0:
            return 0.0
        return float(np.var(arr, ddof=0))
    raise ValueError("convention must be 'sample' or 'population'")


def std(values: Sequence[float], convention: str = "sample") -> float:
    return math.sqrt(max(variance(values, convention), 0.0))


def quantile(sorted_values: Sequence[float], p: float) -> float:
    """Linear-interpolation quantile of an already-sorted sequence."""
    arr = _as_array(sorted_values)
    if arr.size == 0:
        return math.nan
    if not 0.0 <= p <= 1.0:
        raise ValueError("p must lie in [0, 1]")
    h = (arr.size - 1) * float(p)
    lo = int(math.floor(h))
    hi = min(lo + 1, arr.size - 1)
    return float(arr[lo] + (h - lo) * (arr[hi] - arr[lo]))


def rank(values: Sequence[float]) -> np.ndarray:
    """Mid-ranks (1-based) with tied values sharing their average rank."""
    arr = _as_array(values)
    if arr.size == 0:
        return arr
    return scipy_stats.rankdata(arr, method="average").astype(float)


def inverse_normal(p: float | np.ndarray) -> float | np.ndarray:
    """Standard normal quantile function."""
    out = scipy_stats.norm.ppf(p)
    return float(out) if np.ndim(out) == 0 else np.asarray(out, dtype=float)


def t_critical(df: float, confidence: float = 0.95) -> float:
    """Two-sided Student-t critical value."""
    return float(scipy_stats.t.ppf(0.5 + confidence / 2.0, df))
