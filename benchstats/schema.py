"""Define the data model and configuration records shared across the engine.

Every record here is a frozen dataclass: results are plain immutable data that
the presentation layer can serialize with :func:`dataclasses.asdict`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

REPLICATE_TYPES = ("biological", "technical")
TECHNICAL_HANDLING = ("average", "separate")
MISSING_HANDLING = ("ignore", "drop-replicate")
TRANSFORMS = ("none", "log2", "log10", "sqrt", "arcsine")
VARIANCE_CONVENTIONS = ("sample", "population")
CI_METHODS = ("t95", "none")
INDEPENDENCE = ("independent", "paired")
P_ADJUST_METHODS = ("none", "bonferroni", "holm", "bh")

DEFAULT_IQR_MULTIPLIER = 1.5
DEFAULT_ALPHA = 0.05
DEFAULT_N_BOOTSTRAP = 2000


def _check_choice(name: str, value: str, choices: Tuple[str, ...]) -> None:
    if value not in choices:
        raise ValueError(f"{name} must be one of {choices}, got {value!r}")


@dataclass(frozen=True)
class Observation:
    """One tidy input row.

    Attributes:
        group: Experimental condition label.
        value: Measured response. Non-finite values are handled according to
            the ``missing_handling`` option, never coerced.
        bio_replicate_id: Independent experimental unit; the unit of n.
        technical_replicate_id: Repeated measurement within a biological unit.
        dose: Concentration for dose-response data.
        event: Event indicator for survival data (``True`` = event observed,
            ``False`` = censored). ``value`` then holds the time.
    """

    group: str
    value: Optional[float]
    bio_replicate_id: Optional[str] = None
    technical_replicate_id: Optional[str] = None
    dose: Optional[float] = None
    event: Optional[bool] = None

    @property
    def is_finite(self) -> bool:
        return self.value is not None and math.isfinite(float(self.value))


@dataclass(frozen=True)
class Sample:
    """Named, ordered values for one group after collapsing and transforming.

    ``labels`` holds the biological replicate id behind each value (``None``
    when the row carried none) and ``tech_labels`` the technical replicate
    id of values kept as separate rows, so paired designs can be aligned.
    """

    name: str
    values: Tuple[float, ...]
    labels: Tuple[Optional[str], ...] = ()
    tech_labels: Tuple[Optional[str], ...] = ()
    n_bio: int = 0
    n_tech: int = 0

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class ComputeOptions:
    """Options controlling replicate collapsing, transforms and summaries."""

    replicate_type: str = "biological"
    technical_handling: str = "average"
    missing_handling: str = "ignore"
    transform: str = "none"
    allow_non_positive_transform: bool = False
    variance_convention: str = "sample"
    iqr_multiplier: float = DEFAULT_IQR_MULTIPLIER
    ci_method: str = "t95"

    def __post_init__(self) -> None:
        _check_choice("replicate_type", self.replicate_type, REPLICATE_TYPES)
        _check_choice("technical_handling", self.technical_handling, TECHNICAL_HANDLING)
        _check_choice("missing_handling", self.missing_handling, MISSING_HANDLING)
        _check_choice("transform", self.transform, TRANSFORMS)
        _check_choice(
            "variance_convention", self.variance_convention, VARIANCE_CONVENTIONS
        )
        _check_choice("ci_method", self.ci_method, CI_METHODS)
        if not math.isfinite(self.iqr_multiplier) or self.iqr_multiplier < 0:
            raise ValueError("iqr_multiplier must be finite and non-negative.")


@dataclass(frozen=True)
class DecisionOptions(ComputeOptions):
    """Compute options plus the study design consumed by the decision tree."""

    independence: str = "independent"
    p_adjust_method: str = "holm"
    control_label: Optional[str] = None
    dose_response: bool = False
    survival: bool = False
    alpha: float = DEFAULT_ALPHA
    seed: Optional[int] = None
    n_bootstrap: int = DEFAULT_N_BOOTSTRAP
    outlier_rejection: bool = False
    fixed_top: Optional[float] = None
    fixed_bottom: Optional[float] = None

    def __post_init__(self) -> None:
        super().__post_init__()
        _check_choice("independence", self.independence, INDEPENDENCE)
        _check_choice("p_adjust_method", self.p_adjust_method, P_ADJUST_METHODS)
        if self.n_bootstrap < 1:
            raise ValueError("n_bootstrap must be >= 1")


@dataclass(frozen=True)
class ConfidenceInterval:
    low: float
    high: float
    df: Optional[int] = None


@dataclass(frozen=True)
class NormalityCheck:
    """Heuristic Shapiro-Wilk-style verdict; not backed by a p-value."""

    w: Optional[float]
    label: str


@dataclass(frozen=True)
class IqrFlags:
    """Values outside the interquartile fences. Indices refer to ``values_used``."""

    lower_fence: float
    upper_fence: float
    low: int
    high: int
    count: int
    indices: Tuple[int, ...]


@dataclass(frozen=True)
class GroupStatistics:
    """Per-group summary recomputed whole from the current rows and options."""

    group: str
    n_bio: int
    n_tech: int
    mean: float
    median: float
    modes: Tuple[float, ...]
    sd: float
    variance: float
    sem: float
    cv: float
    min: float
    max: float
    range: float
    ci95: Optional[ConfidenceInterval]
    normality: NormalityCheck
    iqr_flags: IqrFlags
    values_used: Tuple[float, ...]
    iqr_multiplier: float = DEFAULT_IQR_MULTIPLIER


@dataclass(frozen=True)
class FoldChange:
    group: str
    reference: str
    percent_change: float
    fold_change: float
    log2_fold_change: Optional[float]


@dataclass(frozen=True)
class PairwiseComparison:
    """One member of a comparison family.

    A family is always adjusted together by a single call to
    :func:`benchstats.stats.adjust.adjust_comparisons`.
    """

    pair_label: str
    raw_p: float
    adjusted_p: Optional[float] = None
    statistic: float = math.nan
    estimate: float = math.nan
    df: Optional[float] = None


@dataclass(frozen=True)
class CurveFitResult:
    """Four-parameter logistic fit.

    ``dropped_indices`` refer to positions in the caller's original input.
    """

    top: float
    hill: float
    ec50: float
    bottom: float
    ci: Tuple[float, float]
    used_point_count: int
    dropped_indices: Tuple[int, ...] = ()
    r_squared: float = math.nan
    warnings: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class SurvivalCurve:
    """Stepwise non-increasing Kaplan-Meier curve for one group."""

    group: str
    times: Tuple[float, ...]
    survival: Tuple[float, ...]
    censor_times: Tuple[float, ...]
    censor_survival: Tuple[float, ...]
    n_subjects: int
    n_events: int
    median_survival: Optional[float] = None


@dataclass(frozen=True)
class ResultColumns:
    """Standardized column labels for tabular projections of the results."""

    group: str = "Group"
    n_bio: str = "n (biological)"
    n_tech: str = "n (technical)"
    mean: str = "Mean"
    median: str = "Median"
    sd: str = "SD"
    sem: str = "SEM"
    cv: str = "CV (%)"
    ci_low: str = "95% CI low"
    ci_high: str = "95% CI high"
    normality: str = "Normality"
    outliers: str = "IQR outliers"
    pair: str = "Comparison"
    raw_p: str = "p (raw)"
    adjusted_p: str = "p (adjusted)"
