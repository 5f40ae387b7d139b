"""k-sample location tests and their post-hoc comparison families.

Every pairwise family returned here has already been adjusted as a whole by
:func:`benchstats.stats.adjust.adjust_comparisons`.
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np
from scipy import stats as scipy_stats

from ..schema import PairwiseComparison
from .adjust import adjust_comparisons
from .hypothesis import welch_t_test
from .numeric import rank

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnovaResult:
    f_statistic: float
    p_value: float
    df_between: int
    df_within: int
    ss_between: float
    ss_within: float
    ms_within: float
    eta_squared: float
    omega_squared: float
    group_means: Tuple[Tuple[str, float], ...]
    group_sizes: Tuple[Tuple[str, int], ...]
    notes: str = ""


@dataclass(frozen=True)
class KruskalWallisResult:
    h_statistic: float
    p_value: float
    df: int
    epsilon_squared: float
    mean_ranks: Tuple[Tuple[str, float], ...]
    n_total: int
    notes: str = "Tie correction omitted; H is conservative when ties are present."


def _clean_groups(groups: Mapping[str, np.ndarray]) -> Dict[str, np.ndarray]:
    cleaned: Dict[str, np.ndarray] = {}
    for name, values in groups.items():
        arr = np.asarray(values, dtype=float).reshape(-1)
        arr = arr[np.isfinite(arr)]
        if arr.size > 0:
            cleaned[str(name)] = arr
    return cleaned


def _pair_label(a: str, b: str) -> str:
    return f"{a} vs {b}"


def one_way_anova(groups: Mapping[str, np.ndarray]) -> Optional[AnovaResult]:
    """Classic one-way ANOVA by sum-of-squares decomposition.

    Args:
        groups: Mapping of group label to values. Empty groups are ignored.

    Returns:
        AnovaResult | None: ``None`` with fewer than two non-empty groups or
        no within-group degrees of freedom.

    Note:
        ``omega_squared`` is reported as computed and may be negative.
        A zero within-group mean square yields ``F = 0`` and ``p = 1``.
    """
    data = _clean_groups(groups)
    k = len(data)
    n_total = int(sum(v.size for v in data.values()))
    if k < 2 or n_total - k <= 0:
        return None

    grand = float(np.mean(np.concatenate(list(data.values()))))
    ss_between = float(
        sum(v.size * (float(np.mean(v)) - grand) ** 2 for v in data.values())
    )
    ss_within = float(sum(float(np.sum((v - np.mean(v)) ** 2)) for v in data.values()))
    ss_total = ss_between + ss_within
    df_between = k - 1
    df_within = n_total - k
    ms_between = ss_between / df_between
    ms_within = ss_within / df_within

    notes = ""
    if ms_within <= 0:
        f_stat, p_value = 0.0, 1.0
        notes = "Zero within-group variance; F-test undefined."
    else:
        f_stat = ms_between / ms_within
        p_value = float(scipy_stats.f.sf(f_stat, df_between, df_within))

    eta_sq = ss_between / ss_total if ss_total > 0 else 0.0
    omega_denom = ss_total + ms_within
    omega_sq = (
        (ss_between - df_between * ms_within) / omega_denom if omega_denom > 0 else 0.0
    )

    return AnovaResult(
        f_statistic=float(f_stat),
        p_value=float(p_value),
        df_between=df_between,
        df_within=df_within,
        ss_between=ss_between,
        ss_within=ss_within,
        ms_within=float(ms_within),
        eta_squared=float(eta_sq),
        omega_squared=float(omega_sq),
        group_means=tuple((g, float(np.mean(v))) for g, v in data.items()),
        group_sizes=tuple((g, int(v.size)) for g, v in data.items()),
        notes=notes,
    )


def tukey_hsd(
    groups: Mapping[str, np.ndarray],
    anova: Optional[AnovaResult] = None,
    method: str = "holm",
) -> List[PairwiseComparison]:
    """Pairwise comparisons against the pooled within-group mean square.

    Each pair gets ``t = (mean_i - mean_j) / sqrt(MSW * (1/n_i + 1/n_j))``
    evaluated on ``df_within``; the family is then adjusted with ``method``.
    """
    data = _clean_groups(groups)
    if anova is None:
        anova = one_way_anova(data)
    if anova is None:
        return []

    msw = anova.ms_within
    dfw = anova.df_within
    comparisons = []
    for (ga, va), (gb, vb) in itertools.combinations(data.items(), 2):
        diff = float(np.mean(va) - np.mean(vb))
        se = math.sqrt(msw * (1.0 / va.size + 1.0 / vb.size)) if msw > 0 else 0.0
        if se > 0:
            t_stat = diff / se
            p_raw = float(2.0 * scipy_stats.t.sf(abs(t_stat), dfw))
        else:
            t_stat, p_raw = 0.0, 1.0
        comparisons.append(
            PairwiseComparison(
                pair_label=_pair_label(ga, gb),
                raw_p=p_raw,
                statistic=float(t_stat),
                estimate=diff,
                df=float(dfw),
            )
        )
    return adjust_comparisons(comparisons, method)


def pairwise_welch(
    groups: Mapping[str, np.ndarray], method: str = "holm"
) -> List[PairwiseComparison]:
    """All-pairs Welch t-tests adjusted as one family."""
    data = _clean_groups(groups)
    comparisons = []
    for (ga, va), (gb, vb) in itertools.combinations(data.items(), 2):
        res = welch_t_test(va, vb, bootstrap=False)
        if res is None:
            logger.debug("Pair %s skipped: insufficient data", _pair_label(ga, gb))
            continue
        comparisons.append(
            PairwiseComparison(
                pair_label=_pair_label(ga, gb),
                raw_p=res.p_value,
                statistic=res.statistic,
                estimate=res.mean_difference,
                df=res.df,
            )
        )
    return adjust_comparisons(comparisons, method)


def compare_to_control(
    groups: Mapping[str, np.ndarray], control: str, method: str = "holm"
) -> Optional[List[PairwiseComparison]]:
    """Dunnett-style treatment-vs-control family using Welch t-tests.

    Returns:
        list[PairwiseComparison] | None: ``None`` when ``control`` is not one
        of the non-empty groups.
    """
    data = _clean_groups(groups)
    if control not in data:
        return None
    ref = data[control]
    comparisons = []
    for name, values in data.items():
        if name == control:
            continue
        res = welch_t_test(values, ref, bootstrap=False)
        if res is None:
            continue
        comparisons.append(
            PairwiseComparison(
                pair_label=_pair_label(name, control),
                raw_p=res.p_value,
                statistic=res.statistic,
                estimate=res.mean_difference,
                df=res.df,
            )
        )
    return adjust_comparisons(comparisons, method)


def kruskal_wallis(groups: Mapping[str, np.ndarray]) -> Optional[KruskalWallisResult]:
    """Kruskal-Wallis H on mid-ranks.

    The tie-correction divisor is omitted, so H is slightly
    smaller than reference implementations when ties are present.
    """
    data = _clean_groups(groups)
    k = len(data)
    n_total = int(sum(v.size for v in data.values()))
    if k < 2 or n_total <= k:
        return None

    ranks = rank(np.concatenate(list(data.values())))
    mean_ranks = []
    rank_term = 0.0
    start = 0
    for name, values in data.items():
        r = ranks[start : start + values.size]
        start += values.size
        rank_term += float(np.sum(r)) ** 2 / values.size
        mean_ranks.append((name, float(np.mean(r))))

    h = 12.0 / (n_total * (n_total + 1)) * rank_term - 3.0 * (n_total + 1)
    h = max(h, 0.0)
    df = k - 1
    return KruskalWallisResult(
        h_statistic=float(h),
        p_value=float(scipy_stats.chi2.sf(h, df)),
        df=df,
        epsilon_squared=float(h / (n_total - 1)),
        mean_ranks=tuple(mean_ranks),
        n_total=n_total,
    )


def dunn_test(
    groups: Mapping[str, np.ndarray], method: str = "holm"
) -> List[PairwiseComparison]:
    """Dunn pairwise z-tests on mean ranks using the pooled rank variance."""
    data = _clean_groups(groups)
    n_total = int(sum(v.size for v in data.values()))
    if len(data) < 2:
        return []

    ranks = rank(np.concatenate(list(data.values())))
    mean_ranks: Dict[str, float] = {}
    start = 0
    for name, values in data.items():
        mean_ranks[name] = float(np.mean(ranks[start : start + values.size]))
        start += values.size

    pooled = n_total * (n_total + 1) / 12.0
    comparisons = []
    for ga, gb in itertools.combinations(data.keys(), 2):
        diff = mean_ranks[ga] - mean_ranks[gb]
        se = math.sqrt(pooled * (1.0 / data[ga].size + 1.0 / data[gb].size))
        z = diff / se if se > 0 else 0.0
        comparisons.append(
            PairwiseComparison(
                pair_label=_pair_label(ga, gb),
                raw_p=float(2.0 * scipy_stats.norm.sf(abs(z))),
                statistic=float(z),
                estimate=float(diff),
            )
        )
    return adjust_comparisons(comparisons, method)
