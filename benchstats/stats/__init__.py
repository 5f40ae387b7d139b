"""
Statistical routines for grouped bench data.

This subpackage provides the numerical core: descriptive helpers, p-value
adjustment, bootstrap intervals, two-sample and k-sample tests, factorial
ANOVA and correlation/regression. All functions operate on arrays and
primitive types; no decision logic is included.

Modules:
    numeric:
        Mean, median, modes, variance conventions, linear quantiles, mid-ranks.

    adjust:
        Bonferroni, Holm and Benjamini-Hochberg corrections over one family.

    bootstrap:
        Percentile bootstrap intervals with an injected random source.

    hypothesis:
        Student, Welch and paired t-tests, Mann-Whitney U, Wilcoxon signed-rank.

    anova:
        One-way ANOVA, Tukey HSD, Kruskal-Wallis, Dunn, Welch families.

    factorial:
        Two-way ANOVA with interaction and simple effects.

    regression:
        Pearson/Spearman correlation, line fits, slope heterogeneity.

Design Principle:
    This subpackage has no dependencies on the pipeline or models/ modules.
"""

from .adjust import adjust_comparisons, adjust_p_values
from .anova import (
    compare_to_control,
    dunn_test,
    kruskal_wallis,
    one_way_anova,
    pairwise_welch,
    tukey_hsd,
)
from .bootstrap import as_generator, bootstrap_difference_ci
from .factorial import two_way_anova
from .hypothesis import (
    mann_whitney_u,
    paired_t_test,
    student_t_test,
    welch_t_test,
    wilcoxon_signed_rank,
)
from .numeric import mean, median, modes, quantile, rank, variance
from .regression import (
    compare_slopes,
    linear_regression,
    pearson_correlation,
    spearman_correlation,
)

__all__ = [
    "adjust_comparisons",
    "adjust_p_values",
    "as_generator",
    "bootstrap_difference_ci",
    "compare_slopes",
    "compare_to_control",
    "dunn_test",
    "kruskal_wallis",
    "linear_regression",
    "mann_whitney_u",
    "mean",
    "median",
    "modes",
    "one_way_anova",
    "paired_t_test",
    "pairwise_welch",
    "pearson_correlation",
    "quantile",
    "rank",
    "spearman_correlation",
    "student_t_test",
    "tukey_hsd",
    "two_way_anova",
    "variance",
    "welch_t_test",
    "wilcoxon_signed_rank",
]
