import numpy as np
from scipy import stats as scipy_stats

from benchstats.stats.anova import (
    compare_to_control,
    dunn_test,
    kruskal_wallis,
    one_way_anova,
    pairwise_welch,
    tukey_hsd,
)

SEPARATED = {
    "Low": [1.0, 1.1, 0.9, 1.05],
    "Mid": [2.0, 2.1, 1.95, 2.05],
    "High": [3.0, 3.1, 2.9, 3.05],
}


def test_one_way_anova_matches_scipy():
    res = one_way_anova(SEPARATED)
    ref = scipy_stats.f_oneway(*SEPARATED.values())
    assert np.isclose(res.f_statistic, ref.statistic)
    assert np.isclose(res.p_value, ref.pvalue)
    assert (res.df_between, res.df_within) == (2, 9)
    assert 0.0 < res.omega_squared < res.eta_squared <= 1.0


def test_one_way_anova_edge_cases():
    assert one_way_anova({"A": [1.0, 2.0]}) is None
    assert one_way_anova({"A": [1.0], "B": [2.0]}) is None
    flat = one_way_anova({"A": [1.0, 1.0], "B": [2.0, 2.0]})
    assert flat.f_statistic == 0.0
    assert flat.p_value == 1.0


def test_tukey_flags_all_pairs_after_holm():
    comparisons = tukey_hsd(SEPARATED, method="holm")
    assert [c.pair_label for c in comparisons] == [
        "Low vs Mid",
        "Low vs High",
        "Mid vs High",
    ]
    assert all(c.adjusted_p < 0.05 for c in comparisons)
    assert all(c.adjusted_p >= c.raw_p for c in comparisons)


def test_pairwise_welch_and_control_family():
    welch = pairwise_welch(SEPARATED, "holm")
    assert len(welch) == 3
    vs_control = compare_to_control(SEPARATED, "Low", "bonferroni")
    assert [c.pair_label for c in vs_control] == ["Mid vs Low", "High vs Low"]
    assert all(c.estimate > 0 for c in vs_control)
    assert compare_to_control(SEPARATED, "Vehicle") is None


def test_kruskal_matches_scipy_without_ties():
    groups = {"A": [1.0, 2.0, 3.0], "B": [4.0, 5.0, 6.0], "C": [7.0, 8.0, 9.5]}
    res = kruskal_wallis(groups)
    ref = scipy_stats.kruskal(*groups.values())
    assert np.isclose(res.h_statistic, ref.statistic)
    assert np.isclose(res.p_value, ref.pvalue)
    assert res.df == 2
    assert dict(res.mean_ranks)["B"] == 5.0
    assert np.isclose(res.epsilon_squared, res.h_statistic / 8.0)


def test_dunn_uses_pooled_rank_variance():
    groups = {"A": [1.0, 2.0, 3.0], "B": [4.0, 5.0, 6.0], "C": [7.0, 8.0, 9.0]}
    comparisons = dunn_test(groups, "none")
    first = comparisons[0]
    se = np.sqrt(9 * 10 / 12.0 * (1 / 3 + 1 / 3))
    assert first.pair_label == "A vs B"
    assert np.isclose(first.statistic, -3.0 / se)
    assert np.isclose(first.adjusted_p, first.raw_p)
