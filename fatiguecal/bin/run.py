#!/usr/bin/env python
"""
Calibrate the built-in reference exercises.

Usage:
  fatiguecal [--output PATH] [--log-level LEVEL] [--no-file-log]

Runs the calibration pipeline on the demo calibration records against the
built-in motion catalog, prints the per-motion and merged results, and writes
the merged muscle parameters to a JSON file.
"""

import argparse
import logging
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

LOG_LEVEL_CHOICES = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    from fatiguecal import LOG_LEVEL

    parser = argparse.ArgumentParser(
        prog="fatiguecal",
        description="Estimate per-muscle MVC and fatigue coefficients from isometric exercises.",
    )
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Path of the JSON results file (default: from paths.yml).",
    )
    parser.add_argument(
        "--log-level",
        default=LOG_LEVEL,
        type=str.upper,
        choices=LOG_LEVEL_CHOICES,
        help="Console log level.",
    )
    parser.add_argument(
        "--no-file-log",
        action="store_true",
        help="Do not write a log file.",
    )
    args = parser.parse_args(argv)
    # argparse does not check defaults against `choices`
    if args.log_level not in LOG_LEVEL_CHOICES:
        parser.error(
            f"invalid log level {args.log_level!r} from FATIGUECAL_LOG_LEVEL "
            f"(choose from {', '.join(LOG_LEVEL_CHOICES)})"
        )
    return args


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    from fatiguecal._logging import enable_logging_handlers

    enable_logging_handlers(
        console_level=logging.getLevelNamesMapping()[args.log_level],
        log_to_file=not args.no_file_log,
    )

    from fatiguecal import CalibrationAggregator, CalibrationError
    from fatiguecal.calibration_data import demo_calibration_records
    from fatiguecal.export import print_calibration_report, save_muscle_parameters
    from fatiguecal.motions import default_motion_catalog

    aggregator = CalibrationAggregator(default_motion_catalog())
    try:
        result = aggregator.run(demo_calibration_records())
    except CalibrationError:
        # Already logged by the aggregator
        return 1

    print_calibration_report(result)
    save_muscle_parameters(result.parameters, args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
