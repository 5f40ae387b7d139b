"""Two-factor ANOVA with interaction and simple-effects decomposition."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats as scipy_stats

from ..schema import DEFAULT_ALPHA, PairwiseComparison
from .adjust import adjust_comparisons
from .anova import one_way_anova

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectRow:
    source: str
    ss: float
    df: int
    ms: float
    f_statistic: float
    p_value: float


@dataclass(frozen=True)
class SimpleEffect:
    """One-way ANOVA of one factor restricted to a level of the other."""

    factor: str
    within: str
    level: str
    f_statistic: float
    p_value: float
    adjusted_p: Optional[float]
    df_between: int
    df_within: int


@dataclass(frozen=True)
class FactorialAnovaResult:
    factor_a: EffectRow
    factor_b: EffectRow
    interaction: EffectRow
    ss_error: float
    df_error: int
    ms_error: float
    cell_means: Tuple[Tuple[str, str, float], ...]
    simple_effects: Tuple[SimpleEffect, ...] = ()
    notes: str = ""


def two_way_anova(
    factor_a: Sequence,
    factor_b: Sequence,
    values: Sequence[float],
    *,
    names: Tuple[str, str] = ("A", "B"),
    p_adjust_method: str = "holm",
    alpha: float = DEFAULT_ALPHA,
) -> Optional[FactorialAnovaResult]:
    """Fit the two-factor model with interaction by cell-mean decomposition.

    Args:
        factor_a: Level of the first factor for each observation.
        factor_b: Level of the second factor for each observation.
        values: Response values; non-finite rows are dropped.
        names: Display names for the two factors.
        p_adjust_method: Correction applied jointly to every simple effect.
        alpha: Interaction threshold that triggers simple effects.

    Returns:
        FactorialAnovaResult | None: ``None`` when the error term has no
        degrees of freedom (``n - |A| * |B| <= 0``) or a factor has a single
        level.

    Raises:
        ValueError: If the three sequences differ in length.

    Note:
        Marginal means are observation-weighted, so unbalanced designs are
        accepted; the interaction sum of squares uses
        ``cell - row - column + grand`` residuals weighted by cell size.
    """
    if not (len(factor_a) == len(factor_b) == len(values)):
        raise ValueError("factor_a, factor_b and values must have equal length.")

    frame = pd.DataFrame(
        {
            "a": [str(v) for v in factor_a],
            "b": [str(v) for v in factor_b],
            "y": pd.to_numeric(pd.Series(list(values), dtype=object), errors="coerce"),
        }
    )
    frame = frame[np.isfinite(frame["y"].to_numpy(dtype=float))].reset_index(drop=True)

    n = int(len(frame))
    levels_a = list(dict.fromkeys(frame["a"]))
    levels_b = list(dict.fromkeys(frame["b"]))
    df_a = len(levels_a) - 1
    df_b = len(levels_b) - 1
    df_ab = df_a * df_b
    df_e = n - len(levels_a) * len(levels_b)
    if df_a < 1 or df_b < 1 or df_e <= 0:
        logger.debug(
            "Two-way ANOVA skipped: n=%d, |A|=%d, |B|=%d", n, len(levels_a), len(levels_b)
        )
        return None

    grand = float(frame["y"].mean())
    row_means = frame.groupby("a", sort=False)["y"].mean()
    col_means = frame.groupby("b", sort=False)["y"].mean()
    cells = frame.groupby(["a", "b"], sort=False)["y"].agg(["mean", "size"]).reset_index()

    ss_a = float(
        sum(
            (frame["a"] == lvl).sum() * (row_means[lvl] - grand) ** 2
            for lvl in levels_a
        )
    )
    ss_b = float(
        sum(
            (frame["b"] == lvl).sum() * (col_means[lvl] - grand) ** 2
            for lvl in levels_b
        )
    )
    interaction_resid = (
        cells["mean"]
        - cells["a"].map(row_means)
        - cells["b"].map(col_means)
        + grand
    )
    ss_ab = float(np.sum(cells["size"] * interaction_resid**2))
    cell_fit = frame.groupby(["a", "b"], sort=False)["y"].transform("mean")
    ss_e = float(np.sum((frame["y"] - cell_fit) ** 2))
    ms_e = ss_e / df_e

    notes = ""
    if ms_e <= 0:
        notes = "Zero residual variance; F-tests undefined."

    def effect(source: str, ss: float, df: int) -> EffectRow:
        ms = ss / df if df > 0 else math.nan
        if df <= 0 or ms_e <= 0:
            return EffectRow(source, ss, df, float(ms), 0.0, 1.0)
        f_stat = ms / ms_e
        return EffectRow(
            source, ss, df, float(ms), float(f_stat), float(scipy_stats.f.sf(f_stat, df, df_e))
        )

    name_a, name_b = names
    row_a = effect(name_a, ss_a, df_a)
    row_b = effect(name_b, ss_b, df_b)
    row_ab = effect(f"{name_a} x {name_b}", ss_ab, df_ab)

    simple: Tuple[SimpleEffect, ...] = ()
    if row_ab.p_value < alpha:
        simple = _simple_effects(frame, names, p_adjust_method)

    return FactorialAnovaResult(
        factor_a=row_a,
        factor_b=row_b,
        interaction=row_ab,
        ss_error=ss_e,
        df_error=df_e,
        ms_error=float(ms_e),
        cell_means=tuple(
            (str(r.a), str(r.b), float(r.mean)) for r in cells.itertuples(index=False)
        ),
        simple_effects=simple,
        notes=notes,
    )


def _simple_effects(
    frame: pd.DataFrame, names: Tuple[str, str], method: str
) -> Tuple[SimpleEffect, ...]:
    raw = []
    for factor_col, within_col, factor_name, within_name in (
        ("a", "b", names[0], names[1]),
        ("b", "a", names[1], names[0]),
    ):
        for level, subset in frame.groupby(within_col, sort=False):
            groups: Dict[str, np.ndarray] = {
                str(k): g["y"].to_numpy(dtype=float)
                for k, g in subset.groupby(factor_col, sort=False)
            }
            res = one_way_anova(groups)
            if res is None:
                logger.debug(
                    "Simple effect of %s within %s=%s skipped", factor_name, within_name, level
                )
                continue
            raw.append((factor_name, within_name, str(level), res))

    family = adjust_comparisons(
        [
            PairwiseComparison(pair_label=f"{f} within {w}={lvl}", raw_p=res.p_value)
            for f, w, lvl, res in raw
        ],
        method,
    )
    return tuple(
        SimpleEffect(
            factor=f,
            within=w,
            level=lvl,
            f_statistic=res.f_statistic,
            p_value=res.p_value,
            adjusted_p=cmp.adjusted_p,
            df_between=res.df_between,
            df_within=res.df_within,
        )
        for (f, w, lvl, res), cmp in zip(raw, family)
    )
