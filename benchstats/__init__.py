"""
A Python package for statistical analysis of wet-lab bench data.

Summarises replicate measurements per group, checks test assumptions and
selects the appropriate comparison, with dose-response and survival models
for the matching data shapes.

Modules:
    - data_processing: Turns tidy observations into per-group samples.
    - descriptive: Per-group summary statistics, outlier flags, fold change.
    - diagnostics: Levene and Shapiro-Wilk checks for the decision tree.
    - decision: Chooses and runs the test, with a rationale and summary.
    - analysis: Runs the whole pipeline for one dataset.
    - reporting: Number formatting and tabular projections.
    - stats: Hypothesis tests, ANOVA, p-value adjustment, regression.
    - models: Four-parameter logistic fits and survival analysis.
"""

__version__ = "1.0.0"

from .analysis import AnalysisResult, analyze
from .data_processing import build_samples, load_observations
from .decision import DecisionOutcome, decide
from .descriptive import compute_fold_changes, compute_group_statistics
from .diagnostics import compute_diagnostics, levene_test
from .reporting import (
    comparisons_to_frame,
    format_number,
    format_p_value,
    statistics_to_frame,
)
from .schema import ComputeOptions, DecisionOptions, Observation

__all__ = [
    # Pipeline
    "AnalysisResult",
    "analyze",
    # Data processing
    "build_samples",
    "load_observations",
    # Statistics
    "compute_diagnostics",
    "compute_fold_changes",
    "compute_group_statistics",
    "levene_test",
    # Decision
    "DecisionOutcome",
    "decide",
    # Reporting
    "comparisons_to_frame",
    "format_number",
    "format_p_value",
    "statistics_to_frame",
    # Schema
    "ComputeOptions",
    "DecisionOptions",
    "Observation",
]
