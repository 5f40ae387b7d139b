"""Curve and time-to-event models: 4PL dose-response and survival."""

from .dose_response import fit_four_parameter_logistic, four_parameter_logistic
from .survival import LogRankResult, kaplan_meier, log_rank_test

__all__ = [
    "LogRankResult",
    "fit_four_parameter_logistic",
    "four_parameter_logistic",
    "kaplan_meier",
    "log_rank_test",
]
