import math

import numpy as np
import pytest
from scipy import stats as scipy_stats

from benchstats.stats.bootstrap import bootstrap_difference_ci
from benchstats.stats.hypothesis import (
    mann_whitney_u,
    paired_t_test,
    student_t_test,
    welch_t_test,
    wilcoxon_signed_rank,
)

CONTROL = [1.0, 1.05, 0.95, 1.0]
DRUG = [1.3, 1.28, 1.35, 1.18]


def test_welch_matches_scipy():
    res = welch_t_test(DRUG, CONTROL, bootstrap=False)
    ref = scipy_stats.ttest_ind(DRUG, CONTROL, equal_var=False)
    assert res.test_name == "Welch's t-test"
    assert np.isclose(res.statistic, ref.statistic)
    assert np.isclose(res.p_value, ref.pvalue)
    assert np.isclose(res.mean_difference, 0.2775)
    assert res.ci is None


def test_student_matches_scipy_and_hedges_shrinks_d():
    res = student_t_test(DRUG, CONTROL, bootstrap=False)
    ref = scipy_stats.ttest_ind(DRUG, CONTROL, equal_var=True)
    assert np.isclose(res.statistic, ref.statistic)
    assert np.isclose(res.p_value, ref.pvalue)
    assert res.df == 6.0
    # 1 - 3 / (4 * 8 - 9)
    assert np.isclose(res.hedges_g, res.cohens_d * (1.0 - 3.0 / 23.0))


def test_paired_matches_scipy():
    before = [5.1, 4.8, 6.0, 5.5, 5.9]
    after = [5.6, 5.0, 6.4, 5.4, 6.5]
    res = paired_t_test(after, before, bootstrap=False)
    ref = scipy_stats.ttest_rel(after, before)
    assert res.paired
    assert np.isclose(res.statistic, ref.statistic)
    assert np.isclose(res.p_value, ref.pvalue)
    assert res.df == 4.0


def test_t_tests_need_two_values_per_group():
    assert welch_t_test([1.0], [2.0, 3.0]) is None
    assert student_t_test([1.0, 2.0], [float("nan"), 3.0]) is None
    assert paired_t_test([1.0], [2.0]) is None
    with pytest.raises(ValueError):
        paired_t_test([1.0, 2.0], [1.0])


def test_zero_variance_gives_sentinel():
    res = welch_t_test([2.0, 2.0, 2.0], [2.0, 2.0], bootstrap=False)
    assert res.statistic == 0.0
    assert res.p_value == 1.0
    assert res.notes


def test_bootstrap_ci_is_seeded_and_covers_estimate():
    res1 = welch_t_test(DRUG, CONTROL, n_resamples=500, rng=42)
    res2 = welch_t_test(DRUG, CONTROL, n_resamples=500, rng=42)
    assert res1.ci == res2.ci
    low, high = res1.ci
    assert low <= res1.mean_difference <= high


def test_bootstrap_rejects_unknown_statistic():
    with pytest.raises(ValueError):
        bootstrap_difference_ci(np.array([1.0, 2.0]), np.array([3.0, 4.0]), statistic="mode")


def test_mann_whitney_separated_groups():
    a = [0.4, 0.5, 0.45, 0.55]
    b = [1.2, 1.4, 1.3, 1.5]
    res = mann_whitney_u(a, b)
    assert res.u == 0.0
    assert np.isclose(res.z, -2.3094, atol=1e-3)
    assert res.p_value < 0.05
    assert np.isclose(res.rank_biserial, 1.0)
    ref = scipy_stats.mannwhitneyu(
        a, b, use_continuity=False, alternative="two-sided", method="asymptotic"
    )
    assert np.isclose(res.p_value, ref.pvalue)


def test_wilcoxon_drops_zero_differences():
    a = [10.0, 12.0, 9.0, 11.0, 14.0, 8.0]
    b = [10.0, 10.5, 7.0, 8.0, 10.0, 8.0]
    res = wilcoxon_signed_rank(a, b)
    assert res.n_zero_dropped == 2
    assert res.n_nonzero == 4
    # All non-zero differences are positive: W- = 0
    assert res.w_minus == 0.0
    assert res.w_plus == 10.0
    expected_z = (0.0 - 5.0) / math.sqrt(4 * 5 * 9 / 24.0)
    assert np.isclose(res.z, expected_z)
    assert np.isclose(res.rank_biserial, 1.0)


def test_wilcoxon_needs_three_nonzero_differences():
    assert wilcoxon_signed_rank([1.0, 2.0, 3.0], [1.0, 2.0, 4.0]) is None
