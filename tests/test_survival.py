import numpy as np
import pytest
from scipy import stats as scipy_stats

from benchstats.models.survival import kaplan_meier, log_rank_test


def test_kaplan_meier_steps_and_censor_marks():
    curve = kaplan_meier([1, 2, 2, 3, 4], [1, 1, 0, 1, 0], group="WT")
    assert curve.group == "WT"
    assert curve.times == (0.0, 1.0, 2.0, 3.0)
    assert np.allclose(curve.survival, [1.0, 0.8, 0.6, 0.3])
    assert curve.censor_times == (2.0, 4.0)
    assert np.allclose(curve.censor_survival, [0.6, 0.3])
    assert curve.n_subjects == 5
    assert curve.n_events == 3
    assert curve.median_survival == 3.0


def test_kaplan_meier_merges_tied_events_and_is_monotone():
    curve = kaplan_meier([5, 2, 2], [True, True, True])
    assert curve.times == (0.0, 2.0, 5.0)
    assert np.allclose(curve.survival, [1.0, 1.0 / 3.0, 0.0])
    assert all(a >= b for a, b in zip(curve.survival, curve.survival[1:]))


def test_kaplan_meier_without_events_has_no_median():
    curve = kaplan_meier([3, 4], [0, 0])
    assert curve.survival == (1.0,)
    assert curve.median_survival is None
    with pytest.raises(ValueError):
        kaplan_meier([1, 2], [1])


def test_log_rank_two_groups_hand_computed():
    res = log_rank_test({"early": ([1, 2, 3], [1, 1, 1]), "late": ([4, 5, 6], [1, 1, 1])})
    observed = dict(res.observed)
    expected = dict(res.expected)
    assert observed["early"] == 3.0
    assert np.isclose(expected["early"], 1.15)
    assert np.isclose(res.chi_square, 1.85**2 / 0.6775)
    assert res.df == 1
    assert np.isclose(res.p_value, scipy_stats.chi2.sf(res.chi_square, 1))
    assert res.p_value < 0.05


def test_log_rank_three_groups():
    res = log_rank_test(
        {
            "a": ([1, 3, 5, 7], [1, 1, 0, 1]),
            "b": ([2, 4, 6, 8], [1, 0, 1, 1]),
            "c": ([9, 10, 11, 12], [1, 1, 1, 0]),
        }
    )
    assert res.df == 2
    assert res.chi_square >= 0.0
    assert 0.0 <= res.p_value <= 1.0
    assert np.isclose(sum(dict(res.observed).values()), sum(dict(res.expected).values()))


def test_log_rank_needs_two_groups_with_events():
    assert log_rank_test({"a": ([1, 2], [1, 1]), "b": ([3, 4], [0, 0])}) is None
    assert log_rank_test({"a": ([1, 2], [1, 1])}) is None
