"""Tests for number formatting and tabular projections."""

import math

from benchstats.descriptive import compute_group_statistics
from benchstats.reporting import (
    MISSING_TEXT,
    comparisons_to_frame,
    format_number,
    format_p_value,
    statistics_to_frame,
)
from benchstats.schema import Observation, PairwiseComparison, ResultColumns


def test_format_number_significant_figures():
    assert format_number(3.14159) == "3.14"
    assert format_number(0.012345, sig_figs=2) == "0.012"
    assert format_number(12345.6789) == "1.23e+4"


def test_format_number_automatic_scientific():
    assert format_number(123456.0) == "1.23e+5"
    assert format_number(0.0001234) == "1.23e-4"
    assert format_number(0.0) == "0.00"


def test_format_number_decimals_padding_and_separator():
    assert format_number(12.3, decimal_places=2, pad_trailing_zeros=True) == "12.30"
    assert format_number(12.3, decimal_places=0) == "12"
    assert format_number(12345.67, decimal_places=2, thousands_separator=True) == "12,345.67"
    assert format_number(2.0, sig_figs=2, scientific=True) == "2.0e+0"


def test_format_number_missing():
    assert format_number(None) == MISSING_TEXT
    assert format_number(math.nan) == MISSING_TEXT
    assert format_number(math.inf) == MISSING_TEXT


def test_format_p_value():
    assert format_p_value(0.0004) == "<0.001"
    assert format_p_value(0.04567) == "0.046"
    assert format_p_value(None) == "NaN"


def test_statistics_to_frame_columns():
    observations = [Observation("A", v) for v in (1.0, 2.0, 3.0)]
    stats = compute_group_statistics(observations).stats
    df = statistics_to_frame(stats)
    cols = ResultColumns()
    assert list(df.columns)[:3] == [cols.group, cols.n_bio, cols.n_tech]
    assert df.loc[0, cols.mean] == 2.0
    assert df.loc[0, cols.ci_low] < 2.0 < df.loc[0, cols.ci_high]


def test_comparisons_to_frame_fills_missing_adjusted_p():
    df = comparisons_to_frame([PairwiseComparison("A vs B", raw_p=0.02)])
    cols = ResultColumns()
    assert df.loc[0, cols.pair] == "A vs B"
    assert math.isnan(df.loc[0, cols.adjusted_p])
