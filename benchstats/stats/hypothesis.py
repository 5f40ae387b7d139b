"""Two-sample hypothesis tests with effect sizes.

Each function is stateless and returns ``None`` when its sample-size
precondition is not met instead of reporting a misleading statistic.
Zero-variance inputs return the sentinel ``statistic=0``, ``p=1``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy import stats as scipy_stats

from .bootstrap import DEFAULT_RESAMPLES, RandomSource, bootstrap_difference_ci
from .numeric import rank

logger = logging.getLogger(__name__)

MIN_PER_GROUP = 2
MIN_WILCOXON_PAIRS = 3


@dataclass(frozen=True)
class TTestResult:
    test_name: str
    statistic: float
    df: float
    p_value: float
    mean_difference: float
    cohens_d: float
    hedges_g: float
    ci: Optional[Tuple[float, float]]
    n1: int
    n2: int
    paired: bool = False
    notes: str = ""


@dataclass(frozen=True)
class MannWhitneyResult:
    test_name: str
    u: float
    u1: float
    u2: float
    z: float
    p_value: float
    rank_biserial: float
    n1: int
    n2: int


@dataclass(frozen=True)
class WilcoxonResult:
    test_name: str
    statistic: float
    w_plus: float
    w_minus: float
    z: float
    p_value: float
    rank_biserial: float
    n_nonzero: int
    n_zero_dropped: int


def _clean(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float).reshape(-1)
    return arr[np.isfinite(arr)]


def _hedges_factor(n_total: int) -> float:
    denom = 4.0 * n_total - 9.0
    if denom <= 0:
        return math.nan
    return 1.0 - 3.0 / denom


def _two_sided_t(t_stat: float, df: float) -> float:
    return float(2.0 * scipy_stats.t.sf(abs(t_stat), df))


def _pooled_sd(a: np.ndarray, b: np.ndarray) -> float:
    n1, n2 = a.size, b.size
    pooled_var = ((n1 - 1) * np.var(a, ddof=1) + (n2 - 1) * np.var(b, ddof=1)) / (
        n1 + n2 - 2
    )
    return float(math.sqrt(max(pooled_var, 0.0)))


def _independent_t(
    a, b, *, welch: bool, n_resamples: int, rng: RandomSource, bootstrap: bool
) -> Optional[TTestResult]:
    x = _clean(a)
    y = _clean(b)
    n1, n2 = int(x.size), int(y.size)
    name = "Welch's t-test" if welch else "Student's t-test"
    if n1 < MIN_PER_GROUP or n2 < MIN_PER_GROUP:
        logger.debug("%s skipped: n1=%d, n2=%d", name, n1, n2)
        return None

    diff = float(np.mean(x) - np.mean(y))
    v1 = float(np.var(x, ddof=1))
    v2 = float(np.var(y, ddof=1))
    sp = _pooled_sd(x, y)

    if welch:
        se2 = v1 / n1 + v2 / n2
        denom = (v1 / n1) ** 2 / (n1 - 1) + (v2 / n2) ** 2 / (n2 - 1)
        df = se2**2 / denom if denom > 0 else float(n1 + n2 - 2)
    else:
        se2 = sp**2 * (1.0 / n1 + 1.0 / n2)
        df = float(n1 + n2 - 2)

    notes = ""
    if se2 <= 0:
        t_stat, p_value = 0.0, 1.0
        notes = "Zero variance in both groups; t-test undefined."
    else:
        t_stat = diff / math.sqrt(se2)
        p_value = _two_sided_t(t_stat, df)

    cohens_d = diff / sp if sp > 0 else 0.0
    hedges_g = cohens_d * _hedges_factor(n1 + n2)
    ci = (
        bootstrap_difference_ci(x, y, paired=False, n_resamples=n_resamples, rng=rng)
        if bootstrap
        else None
    )
    return TTestResult(
        test_name=name,
        statistic=float(t_stat),
        df=float(df),
        p_value=float(p_value),
        mean_difference=diff,
        cohens_d=float(cohens_d),
        hedges_g=float(hedges_g),
        ci=ci,
        n1=n1,
        n2=n2,
        paired=False,
        notes=notes,
    )


def student_t_test(
    a,
    b,
    *,
    n_resamples: int = DEFAULT_RESAMPLES,
    rng: RandomSource = None,
    bootstrap: bool = True,
) -> Optional[TTestResult]:
    """Pooled-variance two-sample t-test."""
    return _independent_t(
        a, b, welch=False, n_resamples=n_resamples, rng=rng, bootstrap=bootstrap
    )


def welch_t_test(
    a,
    b,
    *,
    n_resamples: int = DEFAULT_RESAMPLES,
    rng: RandomSource = None,
    bootstrap: bool = True,
) -> Optional[TTestResult]:
    """Unequal-variance two-sample t-test with Satterthwaite degrees of freedom.

    Args:
        a: First group.
        b: Second group.
        n_resamples: Bootstrap replicates for the mean-difference CI.
        rng: Generator or seed for the bootstrap.
        bootstrap: Skip the CI when ``False``.

    Returns:
        TTestResult | None: ``None`` when either group has fewer than two
        finite values.

    Note:
        Cohen's d uses the pooled SD; Hedges' g applies the small-sample factor
        ``1 - 3 / (4 * (n1 + n2) - 9)``.
    """
    return _independent_t(
        a, b, welch=True, n_resamples=n_resamples, rng=rng, bootstrap=bootstrap
    )


def paired_t_test(
    a,
    b,
    *,
    n_resamples: int = DEFAULT_RESAMPLES,
    rng: RandomSource = None,
    bootstrap: bool = True,
) -> Optional[TTestResult]:
    """Paired t-test on ``a - b``.

    Raises:
        ValueError: If the arms differ in length.
    """
    x = np.asarray(a, dtype=float).reshape(-1)
    y = np.asarray(b, dtype=float).reshape(-1)
    if x.size != y.size:
        raise ValueError("Paired arms must have the same length.")
    keep = np.isfinite(x) & np.isfinite(y)
    x, y = x[keep], y[keep]
    diffs = x - y
    n = int(diffs.size)
    if n < MIN_PER_GROUP:
        logger.debug("Paired t-test skipped: %d complete pairs", n)
        return None

    mean_d = float(np.mean(diffs))
    sd_d = float(np.std(diffs, ddof=1))
    df = float(n - 1)
    notes = ""
    if sd_d <= 0:
        t_stat, p_value = 0.0, 1.0
        notes = "All paired differences are identical; t-test undefined."
        cohens_d = 0.0
    else:
        t_stat = mean_d / (sd_d / math.sqrt(n))
        p_value = _two_sided_t(t_stat, df)
        cohens_d = mean_d / sd_d

    ci = (
        bootstrap_difference_ci(x, y, paired=True, n_resamples=n_resamples, rng=rng)
        if bootstrap
        else None
    )
    return TTestResult(
        test_name="Paired t-test",
        statistic=float(t_stat),
        df=df,
        p_value=float(p_value),
        mean_difference=mean_d,
        cohens_d=float(cohens_d),
        hedges_g=float(cohens_d * _hedges_factor(2 * n)),
        ci=ci,
        n1=n,
        n2=n,
        paired=True,
        notes=notes,
    )


def mann_whitney_u(a, b) -> Optional[MannWhitneyResult]:
    """Mann-Whitney U with mid-ranks and a normal approximation.

    No continuity or tie correction is applied to the variance; the
    rank-biserial effect size is ``1 - 2U / (n1 * n2)``.
    """
    x = _clean(a)
    y = _clean(b)
    n1, n2 = int(x.size), int(y.size)
    if n1 < MIN_PER_GROUP or n2 < MIN_PER_GROUP:
        return None

    ranks = rank(np.concatenate([x, y]))
    r1 = float(np.sum(ranks[:n1]))
    u1 = r1 - n1 * (n1 + 1) / 2.0
    u2 = n1 * n2 - u1
    u = min(u1, u2)

    mu = n1 * n2 / 2.0
    sigma = math.sqrt(n1 * n2 * (n1 + n2 + 1) / 12.0)
    z = (u - mu) / sigma
    p_value = float(2.0 * scipy_stats.norm.sf(abs(z)))

    return MannWhitneyResult(
        test_name="Mann-Whitney U test",
        u=float(u),
        u1=float(u1),
        u2=float(u2),
        z=float(z),
        p_value=min(p_value, 1.0),
        rank_biserial=float(1.0 - 2.0 * u / (n1 * n2)),
        n1=n1,
        n2=n2,
    )


def wilcoxon_signed_rank(a, b) -> Optional[WilcoxonResult]:
    """Wilcoxon signed-rank test on paired differences.

    Zero differences are dropped before ranking and at least three non-zero
    differences are required. The p-value uses the normal approximation.

    Raises:
        ValueError: If the arms differ in length.
    """
    x = np.asarray(a, dtype=float).reshape(-1)
    y = np.asarray(b, dtype=float).reshape(-1)
    if x.size != y.size:
        raise ValueError("Paired arms must have the same length.")
    keep = np.isfinite(x) & np.isfinite(y)
    diffs = x[keep] - y[keep]
    nonzero = diffs[diffs != 0]
    n = int(nonzero.size)
    dropped = int(diffs.size - n)
    if n < MIN_WILCOXON_PAIRS:
        logger.debug("Wilcoxon skipped: %d non-zero differences", n)
        return None

    ranks = rank(np.abs(nonzero))
    w_plus = float(np.sum(ranks[nonzero > 0]))
    w_minus = float(np.sum(ranks[nonzero < 0]))
    t_stat = min(w_plus, w_minus)

    mu = n * (n + 1) / 4.0
    sigma = math.sqrt(n * (n + 1) * (2 * n + 1) / 24.0)
    z = (t_stat - mu) / sigma
    p_value = float(2.0 * scipy_stats.norm.sf(abs(z)))
    total = n * (n + 1) / 2.0

    return WilcoxonResult(
        test_name="Wilcoxon signed-rank test",
        statistic=float(t_stat),
        w_plus=w_plus,
        w_minus=w_minus,
        z=float(z),
        p_value=min(p_value, 1.0),
        rank_biserial=float((w_plus - w_minus) / total),
        n_nonzero=n,
        n_zero_dropped=dropped,
    )
