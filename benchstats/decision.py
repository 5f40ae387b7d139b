"""
Test-selection decision tree.

The engine is a pure function of the group samples, their diagnostics and
the study design. It never applies a transform itself: when a log10
candidate would restore normality it returns an advisory and leaves the
re-run to the caller.

Routing:
    dose-response data   -> 4PL fit (terminal, regardless of group count)
    k < 2                -> no decision
    k == 2, paired       -> paired t-test | transform advisory | Wilcoxon
    k == 2, independent  -> Welch (+ Student when variances agree)
                            | transform advisory | Mann-Whitney U
    k > 2                -> one-way ANOVA with post-hoc families
                            | transform advisory | Kruskal-Wallis + Dunn
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .diagnostics import Diagnostics, compute_diagnostics, format_normality
from .models.dose_response import fit_four_parameter_logistic
from .reporting import format_number, format_p_value
from .schema import CurveFitResult, DecisionOptions, PairwiseComparison
from .stats.anova import (
    AnovaResult,
    KruskalWallisResult,
    compare_to_control,
    dunn_test,
    kruskal_wallis,
    one_way_anova,
    pairwise_welch,
    tukey_hsd,
)
from .stats.bootstrap import RandomSource, as_generator
from .stats.hypothesis import (
    MannWhitneyResult,
    TTestResult,
    WilcoxonResult,
    mann_whitney_u,
    paired_t_test,
    student_t_test,
    welch_t_test,
    wilcoxon_signed_rank,
)

logger = logging.getLogger(__name__)

SUGGESTED_TRANSFORM = "log10"


@dataclass(frozen=True)
class TTestOutcome:
    """Welch or paired t-test, with Student's t-test when variances agree."""

    primary: TTestResult
    student: Optional[TTestResult] = None


@dataclass(frozen=True)
class AnovaOutcome:
    anova: AnovaResult
    tukey: Tuple[PairwiseComparison, ...] = ()
    holm_pairwise: Tuple[PairwiseComparison, ...] = ()
    vs_control: Optional[Tuple[PairwiseComparison, ...]] = None


@dataclass(frozen=True)
class KruskalWallisOutcome:
    kruskal: KruskalWallisResult
    dunn: Tuple[PairwiseComparison, ...] = ()


@dataclass(frozen=True)
class Advisory:
    """Recommendation returned instead of a statistic."""

    message: str
    suggested_transform: Optional[str] = None


TestOutcome = Union[
    TTestOutcome,
    MannWhitneyResult,
    WilcoxonResult,
    AnovaOutcome,
    KruskalWallisOutcome,
    CurveFitResult,
    Advisory,
    None,
]


@dataclass(frozen=True)
class DecisionOutcome:
    """Chosen test, why it was chosen and what it found.

    Attributes:
        test_name: Name of the selected procedure.
        rationale: Plain-language reason for the choice.
        result_summary: One-line numeric summary, or why nothing was computed.
        result: Tagged result record; ``None`` when the test could not run.
        comparisons: Adjusted pairwise family shown as the primary post-hoc.
        advisories: Configuration or transform recommendations.
        warnings: Domain warnings raised while deciding.
    """

    test_name: str
    rationale: str
    result_summary: str
    result: TestOutcome = None
    comparisons: Tuple[PairwiseComparison, ...] = ()
    advisories: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()


def _finite_groups(samples: Mapping[str, Sequence[float]]) -> dict:
    groups = {}
    for name, values in samples.items():
        arr = np.asarray(values, dtype=float).reshape(-1)
        arr = arr[np.isfinite(arr)]
        if arr.size:
            groups[str(name)] = arr
    return groups


def _insufficient(test_name: str, rationale: str, advisories=(), warnings=()) -> DecisionOutcome:
    return DecisionOutcome(
        test_name=test_name,
        rationale=rationale,
        result_summary="Insufficient data: the test's sample-size requirements are not met.",
        result=None,
        advisories=tuple(advisories),
        warnings=tuple(warnings),
    )


def _transform_advisory(diagnostics: Diagnostics, test_name: str) -> DecisionOutcome:
    message = (
        f"Data are {format_normality(diagnostics)}, but a {SUGGESTED_TRANSFORM} "
        f"transform gives Shapiro-Wilk p={format_p_value(diagnostics.transformed_normality_p)}. "
        f"Re-run with transform='{SUGGESTED_TRANSFORM}' before testing."
    )
    return DecisionOutcome(
        test_name="Transform and retest",
        rationale=f"Non-normal data that a transform would normalise; {test_name} deferred.",
        result_summary="No statistic computed.",
        result=Advisory(message=message, suggested_transform=SUGGESTED_TRANSFORM),
        advisories=(message,),
    )


def _t_summary(res: TTestResult) -> str:
    text = (
        f"t({format_number(res.df)}) = {format_number(res.statistic)}, "
        f"p = {format_p_value(res.p_value)}, "
        f"mean difference = {format_number(res.mean_difference)}, "
        f"Hedges' g = {format_number(res.hedges_g)}"
    )
    if res.ci is not None:
        text += f", 95% CI [{format_number(res.ci[0])}, {format_number(res.ci[1])}]"
    return text


def decide(
    samples: Mapping[str, Sequence[float]],
    options: Optional[DecisionOptions] = None,
    *,
    diagnostics: Optional[Diagnostics] = None,
    pairs: Optional[Tuple[Sequence[float], Sequence[float]]] = None,
    dose_response: Optional[Tuple[Sequence[float], Sequence[float]]] = None,
    rng: RandomSource = None,
) -> Optional[DecisionOutcome]:
    """Choose and run the appropriate test.

    Args:
        samples: Group label to post-transform values, in display order.
        options: Study design and thresholds.
        diagnostics: Precomputed diagnostics; computed from ``samples`` when
            omitted.
        pairs: Aligned ``(first, second)`` arrays for a paired design. When
            omitted, the two groups are paired by position if their lengths
            agree. Empty arrays mean alignment was attempted and failed.
        dose_response: ``(dose, response)`` arrays; routes to the 4PL fit.
        rng: Generator or seed for bootstrap intervals. Falls back to
            ``options.seed``.

    Returns:
        DecisionOutcome | None: ``None`` when fewer than two groups have data
        and no dose-response axis is given.
    """
    options = options or DecisionOptions()
    gen = as_generator(rng if rng is not None else options.seed)

    if dose_response is not None:
        return _decide_dose_response(dose_response, options, gen)

    groups = _finite_groups(samples)
    k = len(groups)
    if k < 2:
        logger.info("No decision: %d non-empty group(s)", k)
        return None

    paired = options.independence == "paired"
    warnings = []
    if k == 2 and paired:
        first, second = groups.values()
        if pairs is None and first.size == second.size:
            pairs = (first, second)
        if pairs is None or len(pairs[0]) == 0:
            msg = "Paired design requested but the groups cannot be aligned pair-by-pair."
            return _insufficient("Paired comparison", msg, advisories=(msg,))

    if diagnostics is None:
        diagnostics = compute_diagnostics(
            groups,
            paired=paired and k == 2,
            pairs=pairs,
            alpha=options.alpha,
            try_log_transform=options.transform == "none",
        )

    if k == 2:
        if paired:
            outcome = _decide_paired(pairs, diagnostics, options, gen)
        else:
            outcome = _decide_independent(groups, diagnostics, options, gen)
    else:
        if paired:
            warnings.append(
                "Paired design applies to two groups only; groups were analysed as independent."
            )
        outcome = _decide_many(groups, diagnostics, options)

    if warnings:
        outcome = replace(outcome, warnings=outcome.warnings + tuple(warnings))
    logger.info("Decision: %s", outcome.test_name)
    return outcome


def _decide_dose_response(dose_response, options: DecisionOptions, gen) -> DecisionOutcome:
    x, y = dose_response
    test_name = "Four-parameter logistic fit"
    rationale = "A concentration axis is mapped, so the data are fitted as a dose-response curve."
    fit = fit_four_parameter_logistic(
        x,
        y,
        fixed_top=options.fixed_top,
        fixed_bottom=options.fixed_bottom,
        outlier_rejection=options.outlier_rejection,
        rng=gen,
    )
    if fit is None:
        return DecisionOutcome(
            test_name=test_name,
            rationale=rationale,
            result_summary="Fit failed: at least 4 usable points and a converging optimiser are required.",
        )
    summary = (
        f"EC50 = {format_number(fit.ec50)} "
        f"(95% CI {format_number(fit.ci[0])} to {format_number(fit.ci[1])}), "
        f"Hill = {format_number(fit.hill)}, top = {format_number(fit.top)}, "
        f"bottom = {format_number(fit.bottom)}, R² = {format_number(fit.r_squared)}"
    )
    return DecisionOutcome(
        test_name=test_name,
        rationale=rationale,
        result_summary=summary,
        result=fit,
        warnings=fit.warnings,
    )


def _decide_paired(pairs, diagnostics: Diagnostics, options: DecisionOptions, gen) -> DecisionOutcome:
    a, b = (np.asarray(p, dtype=float) for p in pairs)
    if diagnostics.normal:
        rationale = f"Paired design; differences are {format_normality(diagnostics)}."
        res = paired_t_test(a, b, n_resamples=options.n_bootstrap, rng=gen)
        if res is None:
            return _insufficient("Paired t-test", rationale)
        return DecisionOutcome(
            test_name=res.test_name,
            rationale=rationale,
            result_summary=_t_summary(res),
            result=TTestOutcome(primary=res),
            warnings=(res.notes,) if res.notes else (),
        )

    if diagnostics.transform_would_help:
        return _transform_advisory(diagnostics, "Paired t-test")

    rationale = f"Paired design; differences are {format_normality(diagnostics)}."
    res = wilcoxon_signed_rank(a, b)
    if res is None:
        return _insufficient("Wilcoxon signed-rank test", rationale)
    summary = (
        f"W = {format_number(res.statistic)}, z = {format_number(res.z)}, "
        f"p = {format_p_value(res.p_value)}, "
        f"rank-biserial r = {format_number(res.rank_biserial)}"
    )
    return DecisionOutcome(
        test_name=res.test_name, rationale=rationale, result_summary=summary, result=res
    )


def _decide_independent(groups, diagnostics: Diagnostics, options: DecisionOptions, gen) -> DecisionOutcome:
    a, b = groups.values()
    if diagnostics.normal:
        welch = welch_t_test(a, b, n_resamples=options.n_bootstrap, rng=gen)
        rationale = f"Two independent groups; data are {format_normality(diagnostics)}."
        if welch is None:
            return _insufficient("Welch's t-test", rationale)
        student = None
        if diagnostics.equal_variance:
            student = student_t_test(a, b, bootstrap=False)
            if diagnostics.variance_p is not None:
                rationale += (
                    f" Variances are homogeneous (Levene p="
                    f"{format_p_value(diagnostics.variance_p)}), so Student's t-test is also reported."
                )
        elif diagnostics.variance_p is not None:
            rationale += (
                f" Variances differ (Levene p={format_p_value(diagnostics.variance_p)})."
            )
        summary = _t_summary(welch)
        if student is not None:
            summary += (
                f"; Student's t({format_number(student.df)}) = "
                f"{format_number(student.statistic)}, p = {format_p_value(student.p_value)}"
            )
        return DecisionOutcome(
            test_name=welch.test_name,
            rationale=rationale,
            result_summary=summary,
            result=TTestOutcome(primary=welch, student=student),
            warnings=(welch.notes,) if welch.notes else (),
        )

    if diagnostics.transform_would_help:
        return _transform_advisory(diagnostics, "Welch's t-test")

    rationale = f"Two independent groups; data are {format_normality(diagnostics)}."
    res = mann_whitney_u(a, b)
    if res is None:
        return _insufficient("Mann-Whitney U test", rationale)
    summary = (
        f"U = {format_number(res.u)}, z = {format_number(res.z)}, "
        f"p = {format_p_value(res.p_value)}, "
        f"rank-biserial r = {format_number(res.rank_biserial)}"
    )
    return DecisionOutcome(
        test_name=res.test_name, rationale=rationale, result_summary=summary, result=res
    )


def _decide_many(groups, diagnostics: Diagnostics, options: DecisionOptions) -> DecisionOutcome:
    k = len(groups)
    if diagnostics.normal:
        return _decide_anova(groups, diagnostics, options)
    if diagnostics.transform_would_help:
        return _transform_advisory(diagnostics, "One-way ANOVA")

    rationale = f"{k} groups; data are {format_normality(diagnostics)}."
    kw = kruskal_wallis(groups)
    if kw is None:
        return _insufficient("Kruskal-Wallis test", rationale)
    dunn = tuple(dunn_test(groups, "holm"))
    summary = (
        f"H({kw.df}) = {format_number(kw.h_statistic)}, p = {format_p_value(kw.p_value)}, "
        f"epsilon² = {format_number(kw.epsilon_squared)}"
    )
    return DecisionOutcome(
        test_name="Kruskal-Wallis test",
        rationale=rationale,
        result_summary=summary,
        result=KruskalWallisOutcome(kruskal=kw, dunn=dunn),
        comparisons=dunn,
        warnings=(kw.notes,),
    )


def _decide_anova(groups, diagnostics: Diagnostics, options: DecisionOptions) -> DecisionOutcome:
    k = len(groups)
    rationale = f"{k} groups; data are {format_normality(diagnostics)}."
    anova = one_way_anova(groups)
    if anova is None:
        return _insufficient("One-way ANOVA", rationale)

    summary = (
        f"F({anova.df_between}, {anova.df_within}) = {format_number(anova.f_statistic)}, "
        f"p = {format_p_value(anova.p_value)}, eta² = {format_number(anova.eta_squared)}, "
        f"omega² = {format_number(anova.omega_squared)}"
    )
    advisories = []
    warnings = [anova.notes] if anova.notes else []
    if anova.p_value >= options.alpha:
        return DecisionOutcome(
            test_name="One-way ANOVA",
            rationale=rationale + " No post-hoc tests: the omnibus test is not significant.",
            result_summary=summary,
            result=AnovaOutcome(anova=anova),
            warnings=tuple(warnings),
        )

    tukey = tuple(tukey_hsd(groups, anova, options.p_adjust_method))
    holm = tuple(pairwise_welch(groups, "holm"))
    vs_control = None
    if options.control_label is not None:
        control = compare_to_control(groups, options.control_label, options.p_adjust_method)
        if control is None:
            advisories.append(
                f"Control group '{options.control_label}' has no data; "
                "comparisons against control were skipped."
            )
        else:
            vs_control = tuple(control)

    n_sig = sum(
        1 for c in tukey if c.adjusted_p is not None and c.adjusted_p < options.alpha
    )
    summary += f"; Tukey HSD: {n_sig} of {len(tukey)} pairs significant"
    return DecisionOutcome(
        test_name="One-way ANOVA",
        rationale=rationale + " The omnibus test is significant, so post-hoc comparisons follow.",
        result_summary=summary,
        result=AnovaOutcome(
            anova=anova, tukey=tukey, holm_pairwise=holm, vs_control=vs_control
        ),
        comparisons=tukey,
        advisories=tuple(advisories),
        warnings=tuple(warnings),
    )
