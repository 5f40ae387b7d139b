"""Kaplan-Meier survival curves and the log-rank test."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np
from scipy import stats as scipy_stats

from ..schema import SurvivalCurve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogRankResult:
    chi_square: float
    df: int
    p_value: float
    observed: Tuple[Tuple[str, float], ...]
    expected: Tuple[Tuple[str, float], ...]


def _clean_records(times, events) -> Tuple[np.ndarray, np.ndarray]:
    t = np.asarray(times, dtype=float).reshape(-1)
    e = np.asarray([bool(v) for v in events], dtype=bool).reshape(-1)
    if t.size != e.size:
        raise ValueError("times and events must have the same length.")
    keep = np.isfinite(t) & (t >= 0)
    dropped = int(t.size - keep.sum())
    if dropped:
        logger.warning("Dropped %d record(s) with missing or negative times", dropped)
    return t[keep], e[keep]


def kaplan_meier(times: Sequence[float], events: Sequence, group: str = "") -> SurvivalCurve:
    """Kaplan-Meier product-limit estimate for one group.

    Records are processed in ascending time; at tied times events come
    before censorings. Each event multiplies survival by ``1 - 1/at_risk``
    and every record, event or censored, then leaves the risk set.

    Args:
        times: Follow-up times.
        events: Truthy for an observed event, falsy for censoring.
        group: Label stored on the curve.

    Returns:
        SurvivalCurve: Step points starting at ``(0, 1.0)`` with one point per
        distinct event time, censor marks at the survival in force, and the
        median survival (first time survival drops to 0.5 or below).

    Raises:
        ValueError: If ``times`` and ``events`` differ in length.
    """
    t, e = _clean_records(times, events)
    order = np.lexsort((~e, t))
    t, e = t[order], e[order]

    at_risk = int(t.size)
    surv = 1.0
    step_times = [0.0]
    step_surv = [1.0]
    censor_times = []
    censor_surv = []
    for time, is_event in zip(t, e):
        if is_event:
            surv *= 1.0 - 1.0 / at_risk
            if step_times[-1] == time:
                step_surv[-1] = surv
            else:
                step_times.append(float(time))
                step_surv.append(surv)
        else:
            censor_times.append(float(time))
            censor_surv.append(surv)
        at_risk -= 1

    median = next((tm for tm, s in zip(step_times, step_surv) if s <= 0.5), None)
    return SurvivalCurve(
        group=str(group),
        times=tuple(step_times),
        survival=tuple(float(s) for s in step_surv),
        censor_times=tuple(censor_times),
        censor_survival=tuple(float(s) for s in censor_surv),
        n_subjects=int(t.size),
        n_events=int(e.sum()),
        median_survival=median,
    )


def log_rank_test(groups: Mapping[str, Tuple[Sequence[float], Sequence]]) -> Optional[LogRankResult]:
    """Log-rank test comparing survival across groups.

    At each distinct event time the expected events per group are
    ``d * n_g / n``; the statistic is ``(O - E)' V^-1 (O - E)`` over the
    first ``k - 1`` groups, chi-square on ``k - 1`` df. With two groups this
    is the usual ``(O - E)^2 / Var``.

    Args:
        groups: Group label to ``(times, events)``.

    Returns:
        LogRankResult | None: ``None`` unless at least two groups each have
        at least one event.
    """
    data = {}
    for name, (times, events) in groups.items():
        t, e = _clean_records(times, events)
        if t.size:
            data[str(name)] = (t, e)
    if sum(1 for _, e in data.values() if e.any()) < 2:
        logger.debug("Log-rank skipped: fewer than two groups with events")
        return None

    names = list(data.keys())
    k = len(names)
    all_times = np.concatenate([t for t, _ in data.values()])
    all_events = np.concatenate([e for _, e in data.values()])
    event_times = np.unique(all_times[all_events])

    observed = np.zeros(k)
    expected = np.zeros(k)
    cov = np.zeros((k, k))
    for tm in event_times:
        n_g = np.array([np.sum(t >= tm) for t, _ in data.values()], dtype=float)
        d_g = np.array([np.sum((t == tm) & e) for t, e in data.values()], dtype=float)
        n = n_g.sum()
        d = d_g.sum()
        observed += d_g
        expected += d * n_g / n
        if n > 1:
            scale = d * (n - d) / (n - 1)
            share = n_g / n
            cov += scale * (np.diag(share) - np.outer(share, share))

    diff = (observed - expected)[: k - 1]
    v = cov[: k - 1, : k - 1]
    try:
        chi = float(diff @ np.linalg.solve(v, diff))
    except np.linalg.LinAlgError:
        chi = float(diff @ np.linalg.pinv(v) @ diff)
    if not math.isfinite(chi):
        chi = 0.0
    df = k - 1
    return LogRankResult(
        chi_square=chi,
        df=df,
        p_value=float(scipy_stats.chi2.sf(chi, df)),
        observed=tuple(zip(names, (float(o) for o in observed))),
        expected=tuple(zip(names, (float(x) for x in expected))),
    )
