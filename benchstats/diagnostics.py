"""Assumption diagnostics feeding the test-selection decision tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

import numpy as np
from scipy import stats as scipy_stats

from .reporting import format_p_value
from .schema import DEFAULT_ALPHA

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeveneResult:
    """Median-centred Levene (Brown-Forsythe) outcome."""

    statistic: float
    p_value: float
    df_between: int
    df_within: int
    notes: str = ""


@dataclass(frozen=True)
class Diagnostics:
    """Normality and variance-homogeneity verdicts at a fixed alpha.

    Attributes:
        normality_p: Smallest Shapiro-Wilk p across assessable groups (or the
            p of the paired differences); ``None`` when nothing could be
            assessed.
        normal: ``True`` unless ``normality_p <= alpha``.
        transformed_normality_p: Same check after a candidate log10
            transform; ``None`` when the transform is not applicable.
        variance_p: Levene p-value; ``None`` with fewer than two groups.
        equal_variance: ``True`` unless ``variance_p <= alpha``.
    """

    normality_p: Optional[float]
    normal: bool
    transformed_normality_p: Optional[float] = None
    variance_p: Optional[float] = None
    equal_variance: bool = True
    alpha: float = DEFAULT_ALPHA

    @property
    def transform_would_help(self) -> bool:
        return (
            not self.normal
            and self.transformed_normality_p is not None
            and self.transformed_normality_p > self.alpha
        )


def _finite(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float).reshape(-1)
    return arr[np.isfinite(arr)]


def levene_test(samples: Mapping[str, Sequence[float]]) -> Optional[LeveneResult]:
    """Median-centred Levene test across groups.

    Each value becomes ``z = |x - median(group)|`` and a one-way F-test is run
    on the ``z`` values with ``k - 1`` and ``N - k`` degrees of freedom.

    Args:
        samples: Mapping of group label to (post-transform) values.

    Returns:
        LeveneResult | None: ``None`` with fewer than two non-empty groups or
        no within-group degrees of freedom. Identical deviations in every
        group give ``F = 0`` and ``p = 1``.
    """
    groups = [g for g in (_finite(v) for v in samples.values()) if g.size > 0]
    k = len(groups)
    n_total = int(sum(len(g) for g in groups))
    if k < 2 or n_total <= k:
        return None

    centered = [np.abs(g - np.median(g)) for g in groups]
    zbar_groups = np.array([float(np.mean(z)) for z in centered], dtype=float)
    n_groups = np.array([len(z) for z in centered], dtype=float)
    zbar = float(np.sum([np.sum(z) for z in centered]) / n_total)

    ss_between = float(np.sum(n_groups * (zbar_groups - zbar) ** 2))
    ss_within = float(np.sum([np.sum((z - np.mean(z)) ** 2) for z in centered]))
    df1 = k - 1
    df2 = n_total - k
    ms_between = ss_between / df1
    ms_within = ss_within / df2

    if ms_within <= 0:
        return LeveneResult(
            0.0, 1.0, df1, df2, notes="Zero within-group spread of deviations."
        )
    stat = ms_between / ms_within
    return LeveneResult(float(stat), float(scipy_stats.f.sf(stat, df1, df2)), df1, df2)


def normality_p_value(values: Sequence[float]) -> Optional[float]:
    """Shapiro-Wilk p-value, or ``None`` when ``n < 3`` or the sample is constant."""
    x = _finite(values)
    if x.size < 3 or float(np.ptp(x)) == 0.0:
        return None
    return float(scipy_stats.shapiro(x).pvalue)


def _min_p(values_list) -> Optional[float]:
    ps = [p for p in (normality_p_value(v) for v in values_list) if p is not None]
    return min(ps) if ps else None


def _log10_candidates(values_list) -> Optional[list]:
    arrays = [_finite(v) for v in values_list]
    if not arrays or any(np.any(a <= 0) for a in arrays):
        return None
    return [np.log10(a) for a in arrays]


def compute_diagnostics(
    samples: Mapping[str, Sequence[float]],
    *,
    paired: bool = False,
    pairs: Optional[tuple] = None,
    alpha: float = DEFAULT_ALPHA,
    try_log_transform: bool = True,
) -> Diagnostics:
    """Assess normality and variance homogeneity for the decision tree.

    Args:
        samples: Group label to values.
        paired: Assess the paired differences instead of each group.
        pairs: Aligned ``(a, b)`` arrays for a paired design.
        alpha: Significance threshold for both verdicts.
        try_log_transform: Also evaluate a log10 candidate transform so the
            engine can recommend transforming when it restores normality.

    Returns:
        Diagnostics: Verdicts plus the p-values they were based on.
    """
    if paired and pairs is not None:
        a, b = (np.asarray(p, dtype=float) for p in pairs)
        normality_p = normality_p_value(a - b)
        transformed_p = None
        if try_log_transform:
            logs = _log10_candidates([a, b])
            if logs is not None and logs[0].size == logs[1].size:
                transformed_p = normality_p_value(logs[0] - logs[1])
    else:
        values_list = list(samples.values())
        normality_p = _min_p(values_list)
        transformed_p = None
        if try_log_transform:
            logs = _log10_candidates(values_list)
            if logs is not None:
                transformed_p = _min_p(logs)

    levene = levene_test(samples)
    variance_p = levene.p_value if levene is not None else None

    diagnostics = Diagnostics(
        normality_p=normality_p,
        normal=normality_p is None or normality_p > alpha,
        transformed_normality_p=transformed_p,
        variance_p=variance_p,
        equal_variance=variance_p is None or variance_p > alpha,
        alpha=alpha,
    )
    logger.debug("Diagnostics: %s", diagnostics)
    return diagnostics


def format_normality(diagnostics: Diagnostics) -> str:
    """Short phrase describing the normality verdict for rationales."""
    if diagnostics.normality_p is None:
        return "normality could not be assessed"
    verdict = "consistent with normality" if diagnostics.normal else "non-normal"
    return f"{verdict} (Shapiro-Wilk p={format_p_value(diagnostics.normality_p)})"
