"""Four-parameter logistic dose-response fitting.

Model:
    ``y = bottom + (top - bottom) / (1 + (x / ec50) ** hill)``

``top`` is the response as dose approaches 0 and ``bottom`` the response as
dose grows without bound, so an increasing curve has ``top < bottom`` with
``hill > 0``. EC50 is fitted on a log10 scale to keep it positive.

Fitting uses Levenberg-Marquardt least squares. Caller-fixed asymptotes are
held constant; caller-supplied asymptote bounds are enforced as hard box
constraints with a bounded trust-region solver. Optional ROUT-style outlier
rejection refits once after dropping residuals flagged at a false-discovery
rate of ``Q = 1%``. The EC50 interval is a percentile bootstrap over
resampled observation indices.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy import stats as scipy_stats
from scipy.optimize import least_squares

from ..schema import CurveFitResult
from ..stats.adjust import adjust_p_values
from ..stats.bootstrap import RandomSource, as_generator

logger = logging.getLogger(__name__)

MIN_POINTS = 4
MIN_POINTS_AFTER_REJECTION = 3
ROUT_Q = 0.01
MAX_NFEV = 2000
BOOTSTRAP_MIN = 40
BOOTSTRAP_MAX = 150
_RESIDUAL_CAP = 1e6
_PARAMS = ("top", "bottom", "log_ec50", "hill")


def four_parameter_logistic(x, top: float, bottom: float, ec50: float, hill: float):
    """Evaluate the 4PL curve at ``x`` (doses must be non-negative)."""
    x_arr = np.asarray(x, dtype=float)
    with np.errstate(all="ignore"):
        return bottom + (top - bottom) / (1.0 + np.power(x_arr / ec50, hill))


def _ec50(log_ec50: float) -> float:
    with np.errstate(over="ignore"):
        return float(np.power(10.0, log_ec50))


def _bootstrap_count(n_points: int) -> int:
    return int(min(BOOTSTRAP_MAX, max(BOOTSTRAP_MIN, 10 * n_points)))


def _initial_guess(x: np.ndarray, y: np.ndarray) -> Optional[Dict[str, float]]:
    positive = x[x > 0]
    if positive.size == 0:
        return None
    lo = float(np.mean(y[x == x.min()]))
    hi = float(np.mean(y[x == x.max()]))
    return {
        "top": lo,
        "bottom": hi,
        "log_ec50": float(np.mean(np.log10(positive))),
        "hill": 1.0,
    }


def _fit(
    x: np.ndarray,
    y: np.ndarray,
    start: Dict[str, float],
    fixed: Dict[str, float],
    bounds: Dict[str, Tuple[float, float]],
) -> Optional[Dict[str, float]]:
    free = [p for p in _PARAMS if p not in fixed]
    if x.size < len(free):
        return None

    def unpack(theta) -> Dict[str, float]:
        params = dict(fixed)
        params.update(zip(free, (float(t) for t in theta)))
        return params

    def residuals(theta):
        p = unpack(theta)
        pred = four_parameter_logistic(
            x, p["top"], p["bottom"], _ec50(p["log_ec50"]), p["hill"]
        )
        return np.nan_to_num(
            pred - y, nan=_RESIDUAL_CAP, posinf=_RESIDUAL_CAP, neginf=-_RESIDUAL_CAP
        )

    x0 = np.array([start[p] for p in free], dtype=float)
    if bounds:
        lower = np.array([bounds.get(p, (-np.inf, np.inf))[0] for p in free])
        upper = np.array([bounds.get(p, (-np.inf, np.inf))[1] for p in free])
        span = np.where(np.isfinite(upper - lower), upper - lower, 1.0)
        x0 = np.clip(x0, lower + 1e-9 * span, upper - 1e-9 * span)
        solver = {"method": "trf", "bounds": (lower, upper)}
    else:
        solver = {"method": "lm"}

    try:
        with np.errstate(all="ignore"):
            sol = least_squares(residuals, x0, max_nfev=MAX_NFEV, **solver)
    except (ValueError, np.linalg.LinAlgError) as exc:
        logger.debug("4PL optimiser failed: %s", exc)
        return None
    if not sol.success or not np.all(np.isfinite(sol.x)):
        return None
    return unpack(sol.x)


def _rout_flags(x: np.ndarray, y: np.ndarray, params: Dict[str, float]) -> np.ndarray:
    pred = four_parameter_logistic(
        x, params["top"], params["bottom"], _ec50(params["log_ec50"]), params["hill"]
    )
    resid = y - pred
    sd = float(np.std(resid, ddof=1)) if resid.size > 1 else 0.0
    if not math.isfinite(sd) or sd <= 0:
        return np.zeros(resid.size, dtype=bool)
    z = (resid - resid.mean()) / sd
    p = 2.0 * scipy_stats.norm.sf(np.abs(z))
    return adjust_p_values(p, "bh") <= ROUT_Q


def _r_squared(x: np.ndarray, y: np.ndarray, params: Dict[str, float]) -> float:
    pred = four_parameter_logistic(
        x, params["top"], params["bottom"], _ec50(params["log_ec50"]), params["hill"]
    )
    sst = float(np.sum((y - y.mean()) ** 2))
    if sst <= 0:
        return math.nan
    return float(1.0 - np.sum((y - pred) ** 2) / sst)


def fit_four_parameter_logistic(
    x,
    y,
    *,
    fixed_top: Optional[float] = None,
    fixed_bottom: Optional[float] = None,
    top_bounds: Optional[Tuple[float, float]] = None,
    bottom_bounds: Optional[Tuple[float, float]] = None,
    outlier_rejection: bool = False,
    bootstrap: bool = True,
    rng: RandomSource = None,
) -> Optional[CurveFitResult]:
    """Fit a 4PL curve to dose-response data.

    Args:
        x: Doses (concentrations). Negative or non-finite doses are excluded
            with a warning.
        y: Responses aligned with ``x``.
        fixed_top: Hold the zero-dose asymptote at this value.
        fixed_bottom: Hold the high-dose asymptote at this value.
        top_bounds: ``(low, high)`` box constraint on ``top``.
        bottom_bounds: ``(low, high)`` box constraint on ``bottom``.
        outlier_rejection: Drop residual outliers (BH at ``Q = 0.01``) and
            refit once. The refit needs at least three remaining points
            and no fewer than the free parameters, so four when neither
            asymptote is fixed.
        bootstrap: Compute the percentile bootstrap EC50 interval.
        rng: Generator or seed for the bootstrap.

    Returns:
        CurveFitResult | None: ``None`` with fewer than four usable points or
        when the optimiser fails. ``dropped_indices`` are positions in the
        original ``x``/``y`` inputs.

    Raises:
        ValueError: If ``x`` and ``y`` differ in length.
    """
    x_arr = np.asarray(x, dtype=float).reshape(-1)
    y_arr = np.asarray(y, dtype=float).reshape(-1)
    if x_arr.size != y_arr.size:
        raise ValueError("x and y must have the same length.")

    warnings: List[str] = []
    finite = np.isfinite(x_arr) & np.isfinite(y_arr)
    negative = finite & (x_arr < 0)
    if negative.any():
        msg = f"{int(negative.sum())} point(s) with negative dose excluded from the fit."
        warnings.append(msg)
        logger.warning(msg)
    usable = finite & ~negative
    index = np.flatnonzero(usable)
    xs, ys = x_arr[usable], y_arr[usable]
    if xs.size < MIN_POINTS:
        logger.debug("4PL fit skipped: %d usable points", xs.size)
        return None

    fixed: Dict[str, float] = {}
    if fixed_top is not None:
        fixed["top"] = float(fixed_top)
    if fixed_bottom is not None:
        fixed["bottom"] = float(fixed_bottom)
    bounds: Dict[str, Tuple[float, float]] = {}
    if top_bounds is not None and "top" not in fixed:
        bounds["top"] = (float(top_bounds[0]), float(top_bounds[1]))
    if bottom_bounds is not None and "bottom" not in fixed:
        bounds["bottom"] = (float(bottom_bounds[0]), float(bottom_bounds[1]))

    start = _initial_guess(xs, ys)
    if start is None:
        return None
    params = _fit(xs, ys, start, fixed, bounds)
    if params is None:
        return None

    dropped: Tuple[int, ...] = ()
    if outlier_rejection:
        flags = _rout_flags(xs, ys, params)
        n_flagged = int(flags.sum())
        remaining = xs.size - n_flagged
        min_remaining = max(MIN_POINTS_AFTER_REJECTION, len(_PARAMS) - len(fixed))
        if n_flagged > 0 and remaining >= min_remaining:
            refit = _fit(xs[~flags], ys[~flags], params, fixed, bounds)
            if refit is None:
                warnings.append(
                    f"Refit without {n_flagged} flagged outlier(s) failed; "
                    "kept the fit on all points."
                )
            else:
                dropped = tuple(int(i) for i in index[flags])
                params = refit
                xs, ys = xs[~flags], ys[~flags]
                logger.info("Dropped %d outlier(s) before refitting", n_flagged)
        elif n_flagged > 0:
            warnings.append(
                f"Outlier rejection flagged {n_flagged} point(s) but would leave "
                f"{remaining}; refit refused."
            )

    ci = (math.nan, math.nan)
    if bootstrap:
        ci = _bootstrap_ec50(xs, ys, params, fixed, bounds, rng)
        if not all(math.isfinite(c) for c in ci):
            warnings.append("Too few bootstrap refits converged for an EC50 interval.")

    return CurveFitResult(
        top=float(params["top"]),
        hill=float(params["hill"]),
        ec50=_ec50(params["log_ec50"]),
        bottom=float(params["bottom"]),
        ci=ci,
        used_point_count=int(xs.size),
        dropped_indices=dropped,
        r_squared=_r_squared(xs, ys, params),
        warnings=tuple(warnings),
    )


def _bootstrap_ec50(
    x: np.ndarray,
    y: np.ndarray,
    params: Dict[str, float],
    fixed: Dict[str, float],
    bounds: Dict[str, Tuple[float, float]],
    rng: RandomSource,
) -> Tuple[float, float]:
    gen = as_generator(rng)
    n = int(x.size)
    estimates = []
    for _ in range(_bootstrap_count(n)):
        idx = gen.integers(0, n, size=n)
        refit = _fit(x[idx], y[idx], params, fixed, bounds)
        if refit is None:
            continue
        ec50 = _ec50(refit["log_ec50"])
        if math.isfinite(ec50):
            estimates.append(ec50)
    if len(estimates) < 2:
        return math.nan, math.nan
    low, high = np.percentile(estimates, [2.5, 97.5])
    return float(low), float(high)
