import numpy as np
from scipy import stats as scipy_stats

from benchstats.diagnostics import (
    Diagnostics,
    compute_diagnostics,
    format_normality,
    levene_test,
    normality_p_value,
)


def test_levene_matches_scipy_median_center():
    groups = {
        "A": [4.1, 5.0, 5.9, 4.4, 6.2],
        "B": [5.0, 5.1, 4.9, 5.05],
        "C": [2.0, 8.0, 5.0, 9.5, 1.0],
    }
    res = levene_test(groups)
    ref = scipy_stats.levene(*groups.values(), center="median")
    assert np.isclose(res.statistic, ref.statistic)
    assert np.isclose(res.p_value, ref.pvalue)
    assert (res.df_between, res.df_within) == (2, 11)


def test_levene_identical_deviations_sentinel():
    res = levene_test({"A": [1.0, 1.0, 1.0], "B": [2.0, 2.0, 2.0]})
    assert res.statistic == 0.0
    assert res.p_value == 1.0
    assert levene_test({"A": [1.0, 2.0]}) is None


def test_normality_p_value_unassessable_cases():
    assert normality_p_value([1.0, 2.0]) is None
    assert normality_p_value([3.0, 3.0, 3.0, 3.0]) is None
    p = normality_p_value([1.0, 1.05, 0.95, 1.0])
    assert 0.05 < p <= 1.0


def test_compute_diagnostics_flags_lognormal_groups():
    skewed = {
        "A": [1.0, 1.2, 1.1, 1.3, 1.0, 9.0, 1.15, 1.05],
        "B": [2.0, 2.1, 2.3, 2.2, 2.05, 15.0, 2.15, 2.25],
    }
    diag = compute_diagnostics(skewed)
    assert not diag.normal
    assert diag.normality_p <= 0.05
    assert diag.transformed_normality_p is not None


def test_paired_diagnostics_use_differences():
    a = [5.0, 6.0, 7.0, 8.0, 9.0]
    b = [4.0, 5.1, 5.9, 7.0, 8.1]
    diag = compute_diagnostics({"a": a, "b": b}, paired=True, pairs=(a, b))
    expected = scipy_stats.shapiro(np.subtract(a, b)).pvalue
    assert np.isclose(diag.normality_p, expected)


def test_transform_would_help_requires_raw_failure():
    helped = Diagnostics(normality_p=0.01, normal=False, transformed_normality_p=0.4)
    assert helped.transform_would_help
    already_normal = Diagnostics(normality_p=0.3, normal=True, transformed_normality_p=0.4)
    assert not already_normal.transform_would_help
    assert "could not be assessed" in format_normality(Diagnostics(None, True))
    assert "non-normal" in format_normality(helped)
