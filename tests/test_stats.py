import numpy as np
import pytest

from benchstats.stats.adjust import adjust_comparisons, adjust_p_values
from benchstats.stats.numeric import median, modes, quantile, std, variance
from benchstats.schema import PairwiseComparison


def test_modes_ties_and_empty():
    assert modes([]) == []
    assert modes([1, 1, 2, 2, 3]) == [1.0, 2.0]
    assert modes([4, 5, 6]) == []


def test_variance_conventions():
    values = [2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]
    assert np.isclose(variance(values, "population"), 4.0)
    assert np.isclose(variance(values, "sample"), 32.0 / 7.0)
    assert std(values, "sample") >= std(values, "population")
    assert variance([3.0], "sample") == 0.0
    with pytest.raises(ValueError):
        variance(values, "unbiased")


def test_quantile_matches_median():
    values = [7.0, 1.0, 3.0, 10.0, 4.0, 2.0]
    assert np.isclose(quantile(sorted(values), 0.5), median(values))
    assert np.isclose(quantile([1.0, 2.0, 3.0, 4.0], 0.25), 1.75)
    with pytest.raises(ValueError):
        quantile([1.0, 2.0], 1.5)


def test_bonferroni_scales_and_caps():
    out = adjust_p_values([0.01, 0.02, 0.03], "bonferroni")
    assert np.allclose(out, [0.03, 0.06, 0.09])
    assert adjust_p_values([0.5, 0.6], "bonferroni").max() == 1.0


def test_holm_and_bh_bounded_by_bonferroni_and_keep_order():
    raw = np.array([0.04, 0.001, 0.03, 0.2, 0.01])
    bonf = adjust_p_values(raw, "bonferroni")
    holm = adjust_p_values(raw, "holm")
    bh = adjust_p_values(raw, "bh")

    assert np.all(bonf >= raw)
    assert np.all(holm <= bonf + 1e-12)
    assert np.all(bh <= bonf + 1e-12)
    # Smallest raw p stays in position 1
    assert np.argmin(holm) == 1
    assert np.isclose(holm[1], 0.005)
    assert np.isclose(holm[4], 0.04)
    assert np.isclose(bh[3], 0.2)


def test_holm_is_monotone_in_sorted_order():
    raw = np.array([0.01, 0.011, 0.012])
    holm = adjust_p_values(raw, "holm")
    assert np.allclose(holm, [0.03, 0.03, 0.03])


def test_unknown_method_raises():
    with pytest.raises(ValueError):
        adjust_p_values([0.1], "sidak")


def test_adjust_comparisons_fills_adjusted_p():
    family = [
        PairwiseComparison(pair_label="A vs B", raw_p=0.01),
        PairwiseComparison(pair_label="A vs C", raw_p=0.04),
    ]
    out = adjust_comparisons(family, "bonferroni")
    assert [c.pair_label for c in out] == ["A vs B", "A vs C"]
    assert np.isclose(out[0].adjusted_p, 0.02)
    assert np.isclose(out[1].adjusted_p, 0.08)
    assert family[0].adjusted_p is None
