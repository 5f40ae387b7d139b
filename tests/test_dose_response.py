import numpy as np
import pytest

from benchstats.models import dose_response
from benchstats.models.dose_response import (
    fit_four_parameter_logistic,
    four_parameter_logistic,
)

DOSES = np.logspace(-2, 2, 20)
CLEAN = four_parameter_logistic(DOSES, 0.0, 100.0, 1.0, 1.0)


def test_sigmoid_series_converges():
    x = [0.01, 0.1, 1, 10, 100]
    y = [0.02, 0.05, 0.25, 0.74, 0.93]
    fit = fit_four_parameter_logistic(x, y, bootstrap=False)
    assert fit is not None
    assert 1.0 < fit.ec50 < 10.0
    assert fit.hill > 0
    assert fit.used_point_count == 5
    assert fit.top < fit.bottom


def test_exact_curve_recovered_with_seeded_bootstrap():
    fit = fit_four_parameter_logistic(DOSES, CLEAN, rng=7)
    assert np.isclose(fit.ec50, 1.0, rtol=1e-3)
    assert np.isclose(fit.hill, 1.0, rtol=1e-3)
    assert np.isclose(fit.r_squared, 1.0)
    low, high = fit.ci
    assert low <= fit.ec50 <= high or np.isclose(low, high)
    again = fit_four_parameter_logistic(DOSES, CLEAN, rng=7)
    assert again.ci == fit.ci


def test_fixed_and_bounded_asymptotes():
    fixed = fit_four_parameter_logistic(DOSES, CLEAN, fixed_top=0.0, bootstrap=False)
    assert fixed.top == 0.0
    assert np.isclose(fixed.bottom, 100.0, rtol=1e-3)

    bounded = fit_four_parameter_logistic(
        DOSES, CLEAN, bottom_bounds=(0.0, 80.0), bootstrap=False
    )
    assert bounded.bottom <= 80.0 + 1e-9


def test_outlier_rejection_drops_wild_point():
    y = CLEAN.copy()
    y[10] = 500.0
    fit = fit_four_parameter_logistic(DOSES, y, outlier_rejection=True, bootstrap=False)
    assert fit.dropped_indices == (10,)
    assert fit.used_point_count == 19
    assert np.isclose(fit.ec50, 1.0, rtol=1e-2)


def test_dropped_indices_refer_to_original_rows():
    y = CLEAN.copy()
    y[10] = 500.0
    x = np.concatenate([[-1.0, 0.5], DOSES])
    y = np.concatenate([[50.0, np.nan], y])
    fit = fit_four_parameter_logistic(x, y, outlier_rejection=True, bootstrap=False)
    assert fit.dropped_indices == (12,)
    assert fit.used_point_count == 19


def test_rejection_keeps_enough_points_for_free_parameters(monkeypatch):
    x = [0.01, 0.1, 1, 10, 100]
    y = [0.02, 0.05, 0.25, 0.74, 0.93]
    flags = np.array([False, True, False, True, False])
    monkeypatch.setattr(dose_response, "_rout_flags", lambda *args: flags)

    free = fit_four_parameter_logistic(x, y, outlier_rejection=True, bootstrap=False)
    assert free.dropped_indices == ()
    assert free.used_point_count == 5
    assert any("refit refused" in w for w in free.warnings)

    fixed = fit_four_parameter_logistic(
        x, y, fixed_top=0.0, fixed_bottom=1.0, outlier_rejection=True, bootstrap=False
    )
    assert fixed.dropped_indices == (1, 3)
    assert fixed.used_point_count == 3


def test_too_few_points_and_negative_doses():
    assert fit_four_parameter_logistic([1, 2, 3], [0.1, 0.5, 0.9]) is None
    x = [-1.0, 0.01, 0.1, 1, 10, 100]
    y = [0.0, 0.02, 0.05, 0.25, 0.74, 0.93]
    fit = fit_four_parameter_logistic(x, y, bootstrap=False)
    assert fit.used_point_count == 5
    assert any("negative dose" in w for w in fit.warnings)
    with pytest.raises(ValueError):
        fit_four_parameter_logistic([1, 2], [1])
