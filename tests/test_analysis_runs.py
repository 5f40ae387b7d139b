import json
import logging

import numpy as np
import pandas as pd

from benchstats.analysis import analyze
from benchstats.schema import DecisionOptions, Observation
import main


def _observations(groups, bio=False):
    out = []
    for group, values in groups.items():
        for i, v in enumerate(values):
            out.append(Observation(group, v, bio_replicate_id=f"m{i}" if bio else None))
    return out


def test_analyze_two_groups_end_to_end():
    observations = _observations(
        {"Control": [1.0, 1.05, 0.95, 1.0], "Drug": [1.3, 1.28, 1.35, 1.18]}
    )
    result = analyze(observations, DecisionOptions(seed=2, control_label="Control"))
    assert [g.group for g in result.group_statistics] == ["Control", "Drug"]
    assert np.isclose(result.group_statistics[1].mean, 1.2775)
    assert result.decision.test_name == "Welch's t-test"
    assert result.fold_changes[0].group == "Drug"
    assert result.warnings == ()


def test_analyze_paired_by_replicate_id():
    observations = [
        Observation("Before", 5.0, "m1"),
        Observation("Before", 6.0, "m2"),
        Observation("Before", 7.0, "m3"),
        Observation("After", 7.7, "m3"),
        Observation("After", 5.5, "m1"),
        Observation("After", 6.4, "m2"),
    ]
    result = analyze(observations, DecisionOptions(independence="paired", seed=4))
    assert result.decision.test_name == "Paired t-test"
    assert np.isclose(result.decision.result.primary.mean_difference, -1.6 / 3)


def test_analyze_paired_without_shared_ids_runs_no_test():
    observations = [
        Observation("Before", v, f"s{i}") for i, v in enumerate([5.0, 6.0, 7.0, 8.0])
    ] + [Observation("After", v, f"t{i}") for i, v in enumerate([5.5, 6.4, 7.7, 8.2])]
    result = analyze(observations, DecisionOptions(independence="paired", seed=4))
    assert any("without a partner" in w for w in result.warnings)
    assert result.decision.test_name == "Paired comparison"
    assert result.decision.result is None
    assert "cannot be aligned" in result.decision.advisories[0]


def test_analyze_paired_with_repeated_ids_runs_no_test():
    observations = [
        Observation("Before", 1.0, "m1"),
        Observation("Before", 2.0, "m1"),
        Observation("After", 1.5, "m1"),
        Observation("After", 2.5, "m1"),
    ]
    result = analyze(observations, DecisionOptions(independence="paired"))
    assert any("repeat within" in w for w in result.warnings)
    assert result.decision.result is None


def test_analyze_warns_when_log_transform_excludes(caplog):
    caplog.set_level(logging.WARNING)
    observations = _observations({"A": [1.0, 10.0, 0.0, 100.0], "B": [2.0, 20.0, 200.0]})
    result = analyze(observations, DecisionOptions(transform="log10", seed=1))
    assert any("non-positive" in w for w in result.warnings)
    assert "non-positive" in caplog.text
    assert result.group_statistics[0].n_bio == 3


def test_analyze_single_group_has_no_decision():
    result = analyze(_observations({"A": [1.0, 2.0, 3.0]}))
    assert result.decision is None
    assert result.warnings


def test_analyze_dose_response_uses_dose_axis():
    doses = [0.01, 0.1, 1, 10, 100]
    responses = [0.02, 0.05, 0.25, 0.74, 0.93]
    observations = [
        Observation("Series", y, dose=x) for x, y in zip(doses, responses)
    ]
    result = analyze(observations, DecisionOptions(dose_response=True, seed=9))
    assert result.decision.test_name == "Four-parameter logistic fit"
    assert 1.0 < result.decision.result.ec50 < 10.0


def test_analyze_survival_curves_and_log_rank():
    observations = [
        Observation("early", t, event=True) for t in (1.0, 2.0, 3.0)
    ] + [Observation("late", t, event=True) for t in (4.0, 5.0, 6.0)]
    result = analyze(observations, DecisionOptions(survival=True))
    assert result.decision is None
    assert [c.group for c in result.survival] == ["early", "late"]
    assert result.log_rank.df == 1
    assert result.log_rank.p_value < 0.05


def test_main_prints_json(tmp_path, capsys):
    csv_path = tmp_path / "tidy.csv"
    pd.DataFrame(
        {
            "group": ["Control"] * 4 + ["Drug"] * 4,
            "value": [1.0, 1.05, 0.95, 1.0, 1.3, 1.28, 1.35, 1.18],
        }
    ).to_csv(csv_path, index=False)
    out_dir = tmp_path / "out"

    exit_code = main.main([str(csv_path), "--seed", "1", "--output-dir", str(out_dir)])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["decision"]["test_name"] == "Welch's t-test"
    assert (out_dir / "group_statistics.csv").exists()
