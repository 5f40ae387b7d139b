"""Percentile bootstrap intervals for location differences."""

from __future__ import annotations

import math
from typing import Optional, Tuple, Union

import numpy as np

RandomSource = Union[None, int, np.random.Generator]

DEFAULT_RESAMPLES = 2000


def as_generator(rng: RandomSource) -> np.random.Generator:
    """Return ``rng`` unchanged or wrap an integer seed in a new generator."""
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def bootstrap_difference_ci(
    a: np.ndarray,
    b: np.ndarray,
    *,
    paired: bool = False,
    statistic: str = "mean",
    n_resamples: int = DEFAULT_RESAMPLES,
    confidence: float = 0.95,
    rng: RandomSource = None,
) -> Optional[Tuple[float, float]]:
    """Percentile bootstrap CI for ``stat(a) - stat(b)``.

    Paired designs resample pair indices so each difference keeps its partner;
    independent designs resample each arm separately.

    Args:
        a: First arm.
        b: Second arm (same length as ``a`` when ``paired``).
        paired: Resample pairs instead of arms.
        statistic: ``"mean"`` or ``"median"``.
        n_resamples: Number of bootstrap replicates.
        confidence: Central coverage of the interval.
        rng: Generator or seed; ``None`` draws fresh entropy.

    Returns:
        tuple[float, float] | None: ``(low, high)``, or ``None`` when either
        arm is empty.

    Raises:
        ValueError: If ``statistic`` is unknown or paired arms differ in length.
    """
    if statistic == "mean":
        reducer = np.mean
    elif statistic == "median":
        reducer = np.median
    else:
        raise ValueError("statistic must be 'mean' or 'median'")

    a_arr = np.asarray(a, dtype=float)
    b_arr = np.asarray(b, dtype=float)
    if a_arr.size == 0 or b_arr.size == 0:
        return None
    gen = as_generator(rng)

    if paired:
        if a_arr.size != b_arr.size:
            raise ValueError("Paired bootstrap requires arms of equal length.")
        diffs = a_arr - b_arr
        idx = gen.integers(0, diffs.size, size=(n_resamples, diffs.size))
        boot = reducer(diffs[idx], axis=1)
    else:
        idx_a = gen.integers(0, a_arr.size, size=(n_resamples, a_arr.size))
        idx_b = gen.integers(0, b_arr.size, size=(n_resamples, b_arr.size))
        boot = reducer(a_arr[idx_a], axis=1) - reducer(b_arr[idx_b], axis=1)

    tail = 100.0 * (1.0 - confidence) / 2.0
    low, high = np.percentile(boot, [tail, 100.0 - tail])
    if not (math.isfinite(low) and math.isfinite(high)):
        return None
    return float(low), float(high)
