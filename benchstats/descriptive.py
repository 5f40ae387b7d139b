"""Per-group descriptive statistics for bench replicate data.

This module summarises each experimental group after replicate collapsing and
transforming:
- location and spread (mean, median, modes, SD, variance, SEM, CV),
- a t-based 95% confidence interval on ``n_bio - 1`` df,
- interquartile-fence outlier flags (flagged, never removed), and
- an approximate Shapiro-Wilk-style normality label.

The normality label is a heuristic for display. It is not an inferential
test and carries no p-value; the decision tree uses
:mod:`benchstats.diagnostics` instead.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .data_processing import build_samples
from .schema import (
    ComputeOptions,
    ConfidenceInterval,
    FoldChange,
    GroupStatistics,
    IqrFlags,
    NormalityCheck,
    Observation,
    Sample,
)
from .stats.numeric import inverse_normal, modes, quantile, t_critical, variance

logger = logging.getLogger(__name__)

NORMALITY_W_THRESHOLD = 0.97
LABEL_NORMAL = "looks roughly normal"
LABEL_NON_NORMAL = "possibly non-normal"
LABEL_UNRELIABLE = "not reliable"


@dataclass(frozen=True)
class ComputeResult:
    stats: Tuple[GroupStatistics, ...]
    warnings: Tuple[str, ...]


def approximate_normality(values: Sequence[float]) -> NormalityCheck:
    """Classify a sample with an approximate Shapiro-Wilk W.

    ``W = (sum(a_i * x_(i)))**2 / sum((x_i - mean)**2)`` where ``a`` are the
    normalised Blom scores ``inverse_normal((i - 0.375) / (n + 0.25))``.

    Args:
        values: Sample values in any order.

    Returns:
        NormalityCheck: ``W >= 0.97`` is labelled "looks roughly normal",
        lower values "possibly non-normal"; ``n < 3`` gives "not reliable"
        with ``w=None``. A constant sample has ``W = 1``.
    """
    x = np.sort(np.asarray(values, dtype=float).reshape(-1))
    n = int(x.size)
    if n < 3:
        return NormalityCheck(w=None, label=LABEL_UNRELIABLE)

    ss = float(np.sum((x - x.mean()) ** 2))
    if ss == 0:
        return NormalityCheck(w=1.0, label=LABEL_NORMAL)

    scores = inverse_normal((np.arange(1, n + 1) - 0.375) / (n + 0.25))
    weights = scores / math.sqrt(float(np.sum(scores**2)))
    w = float(np.dot(weights, x)) ** 2 / ss
    if not math.isfinite(w):
        return NormalityCheck(w=None, label=LABEL_UNRELIABLE)
    label = LABEL_NORMAL if w >= NORMALITY_W_THRESHOLD else LABEL_NON_NORMAL
    return NormalityCheck(w=w, label=label)


def iqr_outlier_flags(sorted_values: Sequence[float], multiplier: float) -> IqrFlags:
    """Flag values outside ``[q1 - k*IQR, q3 + k*IQR]``."""
    x = np.asarray(sorted_values, dtype=float)
    q1 = quantile(x, 0.25)
    q3 = quantile(x, 0.75)
    iqr = q3 - q1
    lower = q1 - multiplier * iqr
    upper = q3 + multiplier * iqr
    low_idx = [i for i, v in enumerate(x) if v < lower]
    high_idx = [i for i, v in enumerate(x) if v > upper]
    indices = tuple(sorted(low_idx + high_idx))
    return IqrFlags(
        lower_fence=float(lower),
        upper_fence=float(upper),
        low=len(low_idx),
        high=len(high_idx),
        count=len(indices),
        indices=indices,
    )


def summarize_sample(
    sample: Sample, options: Optional[ComputeOptions] = None
) -> Optional[GroupStatistics]:
    """Summarise one transformed sample; ``None`` when it is empty."""
    options = options or ComputeOptions()
    x = np.sort(np.asarray(sample.values, dtype=float))
    if x.size == 0:
        return None

    n_bio = int(sample.n_bio) if sample.n_bio else int(x.size)
    mean = float(np.mean(x))
    var = variance(x, options.variance_convention)
    sd = math.sqrt(max(var, 0.0))
    sem = sd / math.sqrt(max(n_bio, 1))
    cv = 0.0 if mean == 0 else 100.0 * sd / abs(mean)

    ci = None
    if options.ci_method == "t95" and n_bio > 1 and x.size > 1:
        df = n_bio - 1
        half = t_critical(df) * sem
        ci = ConfidenceInterval(low=mean - half, high=mean + half, df=df)

    return GroupStatistics(
        group=sample.name,
        n_bio=n_bio,
        n_tech=int(sample.n_tech),
        mean=mean,
        median=float(np.median(x)),
        modes=tuple(modes(x)),
        sd=sd,
        variance=var,
        sem=sem,
        cv=cv,
        min=float(x[0]),
        max=float(x[-1]),
        range=float(x[-1] - x[0]),
        ci95=ci,
        normality=approximate_normality(x),
        iqr_flags=iqr_outlier_flags(x, options.iqr_multiplier),
        values_used=tuple(float(v) for v in x),
        iqr_multiplier=float(options.iqr_multiplier),
    )


def compute_group_statistics(
    observations: Iterable[Observation], options: Optional[ComputeOptions] = None
) -> ComputeResult:
    """Compute a :class:`GroupStatistics` record for every non-empty group.

    Args:
        observations: Tidy input rows.
        options: Replicate, transform and summary options.

    Returns:
        ComputeResult: Records in first-appearance group order plus warnings
        from the missing-value policy and transforms. Groups with no usable
        values are skipped silently.
    """
    options = options or ComputeOptions()
    samples, warnings = build_samples(observations, options)
    stats: List[GroupStatistics] = []
    for sample in samples.values():
        record = summarize_sample(sample, options)
        if record is not None:
            stats.append(record)
    logger.debug("Summarised %d group(s)", len(stats))
    return ComputeResult(stats=tuple(stats), warnings=tuple(warnings))


def compute_fold_changes(
    stats: Sequence[GroupStatistics], reference: str
) -> List[FoldChange]:
    """Percent and fold change of each group mean against ``reference``.

    Returns an empty list when the reference is absent or its mean is 0.
    ``log2_fold_change`` is ``None`` unless the fold change is positive.
    """
    ref = next((g for g in stats if g.group == reference), None)
    if ref is None:
        return []
    if ref.mean == 0:
        logger.warning("Reference group '%s' has mean 0; fold change undefined", reference)
        return []

    out = []
    for g in stats:
        if g.group == reference:
            continue
        fold = g.mean / ref.mean
        out.append(
            FoldChange(
                group=g.group,
                reference=reference,
                percent_change=(g.mean - ref.mean) / ref.mean * 100.0,
                fold_change=fold,
                log2_fold_change=math.log2(fold) if fold > 0 else None,
            )
        )
    return out
