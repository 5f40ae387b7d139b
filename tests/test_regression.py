import numpy as np
import pytest
from scipy import stats as scipy_stats

from benchstats.stats.regression import (
    compare_slopes,
    linear_regression,
    pearson_correlation,
    spearman_correlation,
)

X = np.array([0.5, 1.0, 2.0, 3.0, 4.5, 6.0])
Y = np.array([1.1, 2.3, 3.8, 6.4, 8.7, 12.5])


def test_linear_regression_matches_scipy():
    fit = linear_regression(X, Y)
    ref = scipy_stats.linregress(X, Y)
    assert np.isclose(fit.slope, ref.slope)
    assert np.isclose(fit.intercept, ref.intercept)
    assert np.isclose(fit.r2, ref.rvalue**2)
    assert np.isclose(fit.se_slope, ref.stderr)
    assert np.isclose(fit.p_slope, ref.pvalue)
    assert fit.ci95_slope[0] < fit.slope < fit.ci95_slope[1]
    assert fit.dof == 4


def test_linear_regression_degenerate_inputs():
    assert linear_regression([1.0, 2.0], [1.0, 2.0]) is None
    assert linear_regression([2.0, 2.0, 2.0], [1.0, 2.0, 3.0]) is None
    with pytest.raises(ValueError):
        linear_regression([1.0, 2.0, 3.0], [1.0, 2.0])


def test_pearson_and_spearman_match_scipy():
    r = pearson_correlation(X, Y)
    ref = scipy_stats.pearsonr(X, Y)
    assert np.isclose(r.r, ref[0])
    assert np.isclose(r.p_value, ref[1])
    assert r.df == 4

    rho = spearman_correlation(X, Y[::-1])
    ref_rho = scipy_stats.spearmanr(X, Y[::-1])
    assert rho.method == "spearman"
    assert np.isclose(rho.r, ref_rho[0])


def test_constant_variable_correlation_sentinel():
    res = pearson_correlation([1.0, 2.0, 3.0], [5.0, 5.0, 5.0])
    assert res.r == 0.0
    assert res.p_value == 1.0


def test_compare_slopes_skips_short_groups():
    groups = {
        "steep": ([0, 1, 2, 3, 4], [0.1, 2.0, 4.1, 5.9, 8.0]),
        "shallow": ([0, 1, 2, 3, 4], [0.0, 0.6, 0.9, 1.6, 2.0]),
        "short": ([0, 1], [0.0, 1.0]),
    }
    res = compare_slopes(groups)
    assert [name for name, _ in res.fits] == ["steep", "shallow"]
    assert len(res.comparisons) == 1
    assert res.comparisons[0].pair_label == "steep vs shallow"
    assert res.comparisons[0].df == 3.0
    assert res.comparisons[0].adjusted_p < 0.05
    assert len(res.warnings) == 1 and "short" in res.warnings[0]
