#!/usr/bin/env python3
"""
Command-line entry point for analysing a tidy bench dataset.
"""

# Pipeline overview:
# 1) Load a tidy CSV (group, value and optional replicate, dose, event columns).
# 2) Collapse replicates, apply the transform and summarise each group.
# 3) Check assumptions and let the decision tree pick and run the test.
# 4) Print the result as JSON; optionally export summary tables as CSV.

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
import time

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from benchstats.analysis import analyze
from benchstats.data_processing import load_observations
from benchstats.reporting import comparisons_to_frame, statistics_to_frame
from benchstats.schema import (
    MISSING_HANDLING,
    P_ADJUST_METHODS,
    REPLICATE_TYPES,
    TECHNICAL_HANDLING,
    TRANSFORMS,
    DecisionOptions,
)


def _configure_logging(level, log_file=None):
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="w"))
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


def _build_arg_parser() -> argparse.ArgumentParser:
    """Build command-line parser for the analysis entry point."""
    parser = argparse.ArgumentParser(description="Analyse a tidy bench dataset.")
    parser.add_argument("csv", help="Tidy CSV with group and value columns")
    parser.add_argument("--replicate-type", default="biological", choices=REPLICATE_TYPES)
    parser.add_argument("--technical-handling", default="average", choices=TECHNICAL_HANDLING)
    parser.add_argument("--missing", default="ignore", choices=MISSING_HANDLING)
    parser.add_argument(
        "--transform", default="none", choices=TRANSFORMS
    )
    parser.add_argument(
        "--allow-non-positive",
        action="store_true",
        help="Keep out-of-domain values untransformed instead of excluding them.",
    )
    parser.add_argument(
        "--paired", action="store_true", help="Two groups measured on the same units."
    )
    parser.add_argument(
        "--p-adjust", default="holm", choices=P_ADJUST_METHODS
    )
    parser.add_argument("--control", default=None, help="Control group label")
    parser.add_argument(
        "--dose-response", action="store_true", help="Fit a 4PL curve against the dose column."
    )
    parser.add_argument(
        "--survival", action="store_true", help="Treat values as times and use the event column."
    )
    parser.add_argument("--outlier-rejection", action="store_true")
    parser.add_argument(
        "--seed", type=int, default=None, help="Seed for bootstrap intervals."
    )
    parser.add_argument("--output-dir", default=None, help="Write summary CSVs here")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the analysis and print the JSON result."""
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(logging.DEBUG if args.verbose else logging.INFO, args.log_file)

    start_time = time.time()
    options = DecisionOptions(
        replicate_type=args.replicate_type,
        technical_handling=args.technical_handling,
        missing_handling=args.missing,
        transform=args.transform,
        allow_non_positive_transform=args.allow_non_positive,
        independence="paired" if args.paired else "independent",
        p_adjust_method=args.p_adjust,
        control_label=args.control,
        dose_response=args.dose_response,
        survival=args.survival,
        outlier_rejection=args.outlier_rejection,
        seed=args.seed,
    )

    observations = load_observations(args.csv)
    if not observations:
        logging.error("No observations found in %s. Terminating execution.", args.csv)
        return 1

    result = analyze(observations, options)
    for warning in result.warnings:
        logging.warning(warning)
    if result.decision is not None:
        logging.info("Selected test: %s", result.decision.test_name)

    print(json.dumps(dataclasses.asdict(result), indent=2, default=str))

    if args.output_dir:
        os.makedirs(args.output_dir, exist_ok=True)
        stats_csv = os.path.join(args.output_dir, "group_statistics.csv")
        statistics_to_frame(result.group_statistics).to_csv(stats_csv, index=False)
        logging.info("  - Group statistics CSV: %s", stats_csv)
        if result.decision is not None and result.decision.comparisons:
            pairs_csv = os.path.join(args.output_dir, "pairwise_comparisons.csv")
            comparisons_to_frame(result.decision.comparisons).to_csv(pairs_csv, index=False)
            logging.info("  - Pairwise comparisons CSV: %s", pairs_csv)

    logging.info("Total execution time: %.2f seconds", time.time() - start_time)
    return 0


if __name__ == "__main__":
    sys.exit(main())
