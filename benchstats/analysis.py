"""
Bench data analysis pipeline.

This module wires the pieces together for one dataset:
- build per-group samples (missing values, replicate collapsing, transform),
- summarise each group,
- run the decision tree on the samples, pairing by biological replicate id
  for paired designs,
- fit a 4PL curve when a concentration axis is mapped, or
- estimate Kaplan-Meier curves with a log-rank test when time/status is
  mapped.

Dose-response and survival inputs use the raw values: a transform or
replicate collapsing applies to group comparisons only.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .data_processing import align_paired, build_samples
from .decision import DecisionOutcome, decide
from .descriptive import compute_fold_changes, summarize_sample
from .models.survival import LogRankResult, kaplan_meier, log_rank_test
from .schema import (
    DecisionOptions,
    FoldChange,
    GroupStatistics,
    Observation,
    SurvivalCurve,
)
from .stats.bootstrap import RandomSource, as_generator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnalysisResult:
    group_statistics: Tuple[GroupStatistics, ...]
    decision: Optional[DecisionOutcome]
    warnings: Tuple[str, ...]
    survival: Tuple[SurvivalCurve, ...] = ()
    log_rank: Optional[LogRankResult] = None
    fold_changes: Tuple[FoldChange, ...] = ()


def _dose_response_points(observations):
    x, y = [], []
    for obs in observations:
        if obs.dose is None or obs.value is None:
            continue
        if math.isfinite(float(obs.dose)) and math.isfinite(float(obs.value)):
            x.append(float(obs.dose))
            y.append(float(obs.value))
    return x, y


def _survival_records(observations):
    records = {}
    for obs in observations:
        if obs.value is None or obs.event is None or not math.isfinite(float(obs.value)):
            continue
        times, events = records.setdefault(str(obs.group), ([], []))
        times.append(float(obs.value))
        events.append(bool(obs.event))
    return records


def analyze(
    observations: Iterable[Observation],
    options: Optional[DecisionOptions] = None,
    rng: RandomSource = None,
) -> AnalysisResult:
    """Summarise the groups and run the matching analysis.

    Args:
        observations: Tidy input rows.
        options: Compute and design options.
        rng: Generator or seed for bootstrap routines; defaults to
            ``options.seed``.

    Returns:
        AnalysisResult: Group statistics, the decision outcome (``None`` when
        there is nothing to compare or for survival data), data warnings and,
        for survival data, the curves and log-rank result.
    """
    observations = list(observations)
    options = options or DecisionOptions()
    gen = as_generator(rng if rng is not None else options.seed)

    samples, warnings = build_samples(observations, options)
    stats = tuple(
        record
        for record in (summarize_sample(s, options) for s in samples.values())
        if record is not None
    )
    fold_changes: Tuple[FoldChange, ...] = ()
    if options.control_label is not None:
        fold_changes = tuple(compute_fold_changes(stats, options.control_label))

    if options.survival:
        records = _survival_records(observations)
        curves = tuple(
            kaplan_meier(times, events, group=name)
            for name, (times, events) in records.items()
        )
        log_rank = log_rank_test(records)
        if log_rank is None:
            warnings.append("Log-rank test needs at least two groups with events.")
        logger.info("Estimated %d survival curve(s)", len(curves))
        return AnalysisResult(
            group_statistics=stats,
            decision=None,
            warnings=tuple(warnings),
            survival=curves,
            log_rank=log_rank,
            fold_changes=fold_changes,
        )

    values = {name: s.values for name, s in samples.items()}
    if options.dose_response:
        decision = decide(
            values, options, dose_response=_dose_response_points(observations), rng=gen
        )
    else:
        pairs = None
        if options.independence == "paired" and len(samples) == 2:
            a, b, pair_warnings = align_paired(*samples.values())
            warnings.extend(pair_warnings)
            pairs = (a, b)
        decision = decide(values, options, pairs=pairs, rng=gen)

    if decision is None:
        warnings.append("At least two groups with data are needed for a comparison.")
    return AnalysisResult(
        group_statistics=stats,
        decision=decision,
        warnings=tuple(warnings),
        fold_changes=fold_changes,
    )
