"""Provide correlation and straight-line regression utilities.

This module supports:
- Pearson and Spearman correlation with a t-test on ``n - 2`` df,
- ordinary least-squares line fits with 95% confidence intervals, and
- pairwise slope-heterogeneity tests between groups.
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import t as student_t

from ..schema import PairwiseComparison
from .adjust import adjust_comparisons
from .numeric import rank

logger = logging.getLogger(__name__)

MIN_POINTS = 3


@dataclass(frozen=True)
class CorrelationResult:
    method: str
    r: float
    t_statistic: float
    df: int
    p_value: float
    n: int
    notes: str = ""


@dataclass(frozen=True)
class LinearFit:
    """Ordinary least-squares fit ``y = slope * x + intercept``."""

    slope: float
    intercept: float
    r2: float
    se_slope: float
    se_intercept: float
    ci95_slope: Tuple[float, float]
    ci95_intercept: Tuple[float, float]
    p_slope: float
    n: int
    dof: int
    mse: float


@dataclass(frozen=True)
class SlopeHeterogeneityResult:
    fits: Tuple[Tuple[str, LinearFit], ...]
    comparisons: Tuple[PairwiseComparison, ...]
    warnings: Tuple[str, ...] = ()


def _finite_pairs(x, y) -> Tuple[np.ndarray, np.ndarray]:
    x_arr = np.asarray(x, dtype=float).reshape(-1)
    y_arr = np.asarray(y, dtype=float).reshape(-1)
    if x_arr.size != y_arr.size:
        raise ValueError("x and y must have the same length.")
    mask = np.isfinite(x_arr) & np.isfinite(y_arr)
    return x_arr[mask], y_arr[mask]


def _correlation_t(r: float, n: int) -> Tuple[float, float]:
    dof = n - 2
    if abs(r) >= 1.0:
        return math.copysign(math.inf, r), 0.0
    t_stat = r * math.sqrt(dof / (1.0 - r**2))
    return float(t_stat), float(2.0 * student_t.sf(abs(t_stat), dof))


def pearson_correlation(x, y) -> Optional[CorrelationResult]:
    """Product-moment correlation on finite pairs.

    Returns:
        CorrelationResult | None: ``None`` with fewer than three pairs. A
        constant variable yields ``r = 0`` and ``p = 1``.
    """
    x_arr, y_arr = _finite_pairs(x, y)
    n = int(x_arr.size)
    if n < MIN_POINTS:
        return None
    dx = x_arr - x_arr.mean()
    dy = y_arr - y_arr.mean()
    denom = math.sqrt(float(np.sum(dx**2)) * float(np.sum(dy**2)))
    if denom <= 0:
        return CorrelationResult(
            "pearson", 0.0, 0.0, n - 2, 1.0, n, notes="Zero variance; r undefined."
        )
    r = float(np.clip(np.sum(dx * dy) / denom, -1.0, 1.0))
    t_stat, p_value = _correlation_t(r, n)
    return CorrelationResult("pearson", r, t_stat, n - 2, p_value, n)


def spearman_correlation(x, y) -> Optional[CorrelationResult]:
    """Rank correlation: Pearson's formula applied to mid-ranks."""
    x_arr, y_arr = _finite_pairs(x, y)
    res = pearson_correlation(rank(x_arr), rank(y_arr))
    if res is None:
        return None
    return CorrelationResult(
        "spearman", res.r, res.t_statistic, res.df, res.p_value, res.n, res.notes
    )


def linear_regression(x, y, min_points: int = MIN_POINTS) -> Optional[LinearFit]:
    """Fit an ordinary least-squares straight line to finite data pairs.

    Args:
        x (numpy.ndarray): Independent variable.
        y (numpy.ndarray): Dependent variable.
        min_points (int, optional): Minimum number of finite paired
            observations required. Defaults to ``3``.

    Returns:
        LinearFit | None: Slope, intercept, ``r2``, standard errors, 95%
        confidence intervals from the t critical value at ``n - 2`` df and the
        slope p-value; ``None`` with too few points or no spread in ``x``.

    Note:
        A constant ``y`` gives ``r2 = 0``. A perfect fit gives zero standard
        errors, a degenerate CI and ``p_slope = 0`` for a non-zero slope.
    """
    x_arr, y_arr = _finite_pairs(x, y)
    n = int(len(x_arr))
    if n < max(min_points, MIN_POINTS):
        return None

    xbar = float(np.mean(x_arr))
    ssxx = float(np.sum((x_arr - xbar) ** 2))
    if ssxx <= 0:
        logger.debug("Regression skipped: x has no spread")
        return None

    m, b = np.polyfit(x_arr, y_arr, 1)
    yhat = m * x_arr + b
    resid = y_arr - yhat

    sse = float(np.sum(resid**2))
    sst = float(np.sum((y_arr - y_arr.mean()) ** 2))
    r2 = 1.0 - sse / sst if sst > 0 else 0.0

    dof = n - 2
    mse = sse / dof
    se_m = float(np.sqrt(mse / ssxx))
    se_b = float(np.sqrt(mse * (1.0 / n + (xbar**2) / ssxx)))

    if se_m > 0:
        t_stat = m / se_m
        p_m = float(2.0 * student_t.sf(abs(t_stat), dof))
    else:
        p_m = 0.0 if m != 0 else 1.0

    t_crit = float(student_t.ppf(0.975, dof))
    return LinearFit(
        slope=float(m),
        intercept=float(b),
        r2=float(r2),
        se_slope=se_m,
        se_intercept=se_b,
        ci95_slope=(float(m - t_crit * se_m), float(m + t_crit * se_m)),
        ci95_intercept=(float(b - t_crit * se_b), float(b + t_crit * se_b)),
        p_slope=p_m,
        n=n,
        dof=dof,
        mse=float(mse),
    )


def compare_slopes(
    groups: Mapping[str, Tuple[Sequence[float], Sequence[float]]],
    method: str = "holm",
) -> SlopeHeterogeneityResult:
    """Compare per-group regression slopes pairwise.

    For groups ``a`` and ``b``:
    ``t = (slope_a - slope_b) / sqrt(se_a**2 + se_b**2)`` on
    ``min(df_a, df_b)`` degrees of freedom. Groups without a fit (fewer than
    three points) are named in ``warnings`` and every pair involving them is
    skipped. The remaining pairs are adjusted as one family.
    """
    fits: Dict[str, LinearFit] = {}
    warnings: List[str] = []
    for name, (x, y) in groups.items():
        fit = linear_regression(x, y)
        if fit is None:
            warnings.append(
                f"Group '{name}' has fewer than {MIN_POINTS} usable points; "
                "slope comparisons involving it were skipped."
            )
            logger.warning("Slope comparison skipped for group %s", name)
            continue
        fits[str(name)] = fit

    comparisons = []
    for (ga, fa), (gb, fb) in itertools.combinations(fits.items(), 2):
        diff = fa.slope - fb.slope
        se = math.sqrt(fa.se_slope**2 + fb.se_slope**2)
        dof = min(fa.dof, fb.dof)
        if se > 0:
            t_stat = diff / se
            p_value = float(2.0 * student_t.sf(abs(t_stat), dof))
        else:
            t_stat, p_value = 0.0, 1.0
        comparisons.append(
            PairwiseComparison(
                pair_label=f"{ga} vs {gb}",
                raw_p=p_value,
                statistic=float(t_stat),
                estimate=float(diff),
                df=float(dof),
            )
        )

    return SlopeHeterogeneityResult(
        fits=tuple(fits.items()),
        comparisons=tuple(adjust_comparisons(comparisons, method)),
        warnings=tuple(warnings),
    )
