"""Format numbers and project result records into tables.

This module is the boundary between in-memory results and human-readable
text: it builds the strings used in decision summaries and the DataFrames a
consuming layer may export. It writes no files.
"""

from __future__ import annotations

import math
import re
from typing import Iterable, Optional

import pandas as pd

from .schema import GroupStatistics, PairwiseComparison, ResultColumns

MISSING_TEXT = "—"
_THOUSANDS = re.compile(r"\B(?=(\d{3})+(?!\d))")


def _exponential(value: float, sig_figs: int) -> str:
    mantissa, exponent = f"{value:.{max(sig_figs - 1, 0)}e}".split("e")
    return f"{mantissa}e{int(exponent):+d}"


def _precision(value: float, sig_figs: int) -> str:
    text = format(value, f"#.{sig_figs}g")
    if "e" in text:
        mantissa, exponent = text.split("e")
        return f"{mantissa.rstrip('.')}e{int(exponent):+d}"
    return text.rstrip(".")


def format_number(
    value: Optional[float],
    sig_figs: int = 3,
    decimal_places: Optional[int] = None,
    scientific: bool = False,
    thousands_separator: bool = False,
    pad_trailing_zeros: bool = False,
) -> str:
    """Render a number for reports.

    Args:
        value (float | None): Number to format.
        sig_figs (int): Significant figures for precision and scientific
            output. Defaults to ``3``.
        decimal_places (int | None): Fixed decimals; overrides ``sig_figs``
            outside scientific notation.
        scientific (bool): Force scientific notation. Values with magnitude
            below 0.001 or at least 1e5 use it regardless.
        thousands_separator (bool): Group integer digits with commas.
        pad_trailing_zeros (bool): Pad the fraction to ``decimal_places``.

    Returns:
        str: Formatted text; non-finite or missing values render as a dash.

    Note:
        Exponents are written without zero padding, e.g. ``1.23e+4``.
    """
    if value is None or not math.isfinite(float(value)):
        return MISSING_TEXT
    value = float(value)
    magnitude = abs(value)

    if scientific or (magnitude != 0 and (magnitude < 0.001 or magnitude >= 1e5)):
        text = _exponential(value, sig_figs)
    elif decimal_places is not None:
        text = f"{value:.{decimal_places}f}"
    else:
        text = _precision(value, sig_figs)

    if not scientific and thousands_separator and "e" not in text:
        int_part, _, frac_part = text.partition(".")
        int_part = _THOUSANDS.sub(",", int_part)
        text = f"{int_part}.{frac_part}" if frac_part else int_part

    if pad_trailing_zeros and decimal_places is not None and "e" not in text:
        int_part, dot, frac_part = text.partition(".")
        if not dot and decimal_places > 0:
            text = f"{text}.{'0' * decimal_places}"
        elif dot and len(frac_part) < decimal_places:
            text = f"{int_part}.{frac_part}{'0' * (decimal_places - len(frac_part))}"

    return text


def format_p_value(value: Optional[float]) -> str:
    """Format p-values consistently for summaries."""
    if value is None or not math.isfinite(value):
        return "NaN"
    if value < 1e-3:
        return "<0.001"
    return f"{value:.3f}"


def statistics_to_frame(stats: Iterable[GroupStatistics]) -> pd.DataFrame:
    """Project group statistics into a DataFrame with standardized columns."""
    cols = ResultColumns()
    rows = []
    for g in stats:
        rows.append(
            {
                cols.group: g.group,
                cols.n_bio: g.n_bio,
                cols.n_tech: g.n_tech,
                cols.mean: g.mean,
                cols.median: g.median,
                cols.sd: g.sd,
                cols.sem: g.sem,
                cols.cv: g.cv,
                cols.ci_low: g.ci95.low if g.ci95 else math.nan,
                cols.ci_high: g.ci95.high if g.ci95 else math.nan,
                cols.normality: g.normality.label,
                cols.outliers: g.iqr_flags.count,
            }
        )
    columns = [
        cols.group,
        cols.n_bio,
        cols.n_tech,
        cols.mean,
        cols.median,
        cols.sd,
        cols.sem,
        cols.cv,
        cols.ci_low,
        cols.ci_high,
        cols.normality,
        cols.outliers,
    ]
    return pd.DataFrame(rows, columns=columns)


def comparisons_to_frame(comparisons: Iterable[PairwiseComparison]) -> pd.DataFrame:
    cols = ResultColumns()
    rows = [
        {
            cols.pair: c.pair_label,
            "Statistic": c.statistic,
            "Estimate": c.estimate,
            cols.raw_p: c.raw_p,
            cols.adjusted_p: c.adjusted_p if c.adjusted_p is not None else math.nan,
        }
        for c in comparisons
    ]
    return pd.DataFrame(
        rows, columns=[cols.pair, "Statistic", "Estimate", cols.raw_p, cols.adjusted_p]
    )
