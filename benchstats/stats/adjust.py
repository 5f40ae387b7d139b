"""Multiple-comparison corrections over a family of p-values.

Every adjusted family keeps the caller's input order. A family must be
adjusted in one call; adjusting subsets separately understates the number of
comparisons ``m``.
"""

from __future__ import annotations

import dataclasses
from typing import List, Sequence

import numpy as np

from ..schema import P_ADJUST_METHODS, PairwiseComparison


def adjust_p_values(p_values: Sequence[float], method: str = "holm") -> np.ndarray:
    """Adjust raw p-values for multiplicity.

    Args:
        p_values: Raw p-values in any order.
        method: ``"none"``, ``"bonferroni"``, ``"holm"`` (step-down) or
            ``"bh"`` (Benjamini-Hochberg step-up).

    Returns:
        numpy.ndarray: Adjusted p-values aligned with the input order and
        capped at 1.

    Raises:
        ValueError: If ``method`` is not recognised.
    """
    if method not in P_ADJUST_METHODS:
        raise ValueError(f"method must be one of {P_ADJUST_METHODS}, got {method!r}")

    p = np.asarray(p_values, dtype=float).reshape(-1)
    m = int(p.size)
    if m == 0 or method == "none":
        return p.copy()

    if method == "bonferroni":
        return np.minimum(p * m, 1.0)

    order = np.argsort(p, kind="mergesort")
    sorted_p = p[order]
    ranks = np.arange(1, m + 1, dtype=float)

    if method == "holm":
        stepped = (m - ranks + 1.0) * sorted_p
        stepped = np.maximum.accumulate(stepped)
    else:
        stepped = (m / ranks) * sorted_p
        stepped = np.minimum.accumulate(stepped[::-1])[::-1]

    adjusted = np.empty(m, dtype=float)
    adjusted[order] = np.minimum(stepped, 1.0)
    return adjusted


def adjust_comparisons(
    comparisons: Sequence[PairwiseComparison], method: str = "holm"
) -> List[PairwiseComparison]:
    """Return the family with ``adjusted_p`` filled from one joint adjustment."""
    family = list(comparisons)
    if not family:
        return []
    adjusted = adjust_p_values([c.raw_p for c in family], method)
    return [
        dataclasses.replace(c, adjusted_p=float(a)) for c, a in zip(family, adjusted)
    ]
