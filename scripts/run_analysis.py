#!/usr/bin/env python
"""
Run the screening analysis on a plate layout and a class-count matrix.

Usage:
    python scripts/run_analysis.py --annotation plate_layout.xlsx --counts class_counts.csv
    python scripts/run_analysis.py --config configs/plate_1.yaml --output-dir outputs/plate_1

Examples:
    # Defaults: k=3, 30% held out, results printed only
    python scripts/run_analysis.py \\
        --annotation data/plate_layout.xlsx \\
        --counts data/class_counts.csv

    # Write tables, diagnostics and figures; fail on unmatched wells
    python scripts/run_analysis.py \\
        --annotation data/plate_layout.csv \\
        --counts data/class_counts.tsv \\
        --output-dir outputs/plate_1 \\
        --k 5 --test-fraction 0.25 --strict

    # Using installed CLI entry point
    phenocount-run --config configs/plate_1.yaml
"""

import argparse
import sys
from pathlib import Path

from phenocount import PhenoCountError, ScreenConfig, ScreenPipeline, load_config, logger, setup_logging


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Run the phenotype-class count analysis for one screening plate.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    # Input/Output
    parser.add_argument(
        "--annotation", "-a",
        default=None,
        help="Plate layout file (.xlsx, .csv or .tsv)",
    )
    parser.add_argument(
        "--counts", "-c",
        default=None,
        help="Class-count matrix (.csv, .tsv or .pkl)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML configuration file; command-line options override it",
    )
    parser.add_argument(
        "--output-dir", "-o",
        default=None,
        help="Directory for tables, diagnostics and figures",
    )
    parser.add_argument(
        "--no-figures",
        action="store_true",
        help="Do not render figures when writing outputs",
    )

    # Processing
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail on well identifiers that do not match the plate layout",
    )
    parser.add_argument(
        "--degenerate-policy",
        default=None,
        choices=["clip", "flag", "raise"],
        help="Handling of class percentages of exactly 0 or 1 (default: clip)",
    )
    parser.add_argument(
        "--skip-analysis",
        action="store_true",
        help="Stop after building the feature matrix",
    )

    # Modeling
    parser.add_argument(
        "--k",
        type=int,
        default=None,
        help="Number of neighbours for the classifier (default: 3)",
    )
    parser.add_argument(
        "--auto-k",
        action="store_true",
        help="Use the cross-validated best k instead of --k",
    )
    parser.add_argument(
        "--test-fraction",
        type=float,
        default=None,
        help="Fraction of wells held out for evaluation (default: 0.3)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for the train/test split (default: 42)",
    )

    # Logging
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write the log to this file",
    )

    return parser.parse_args(argv)


def build_config(args) -> ScreenConfig:
    """Merge command-line options over the (optional) YAML configuration."""
    config = load_config(args.config) if args.config else ScreenConfig()

    if args.annotation:
        config.data.annotation_path = args.annotation
    if args.counts:
        config.data.counts_path = args.counts
    if args.output_dir:
        config.output.output_dir = args.output_dir
    if args.no_figures:
        config.output.save_figures = False

    if args.strict:
        config.processing.strict_identifiers = True
    if args.degenerate_policy:
        config.processing.degenerate_policy = args.degenerate_policy

    if args.k is not None:
        config.classifier.k = args.k
    if args.auto_k:
        config.classifier.auto_select_k = True
    if args.test_fraction is not None:
        config.classifier.test_fraction = args.test_fraction
    if args.seed is not None:
        config.classifier.random_state = args.seed

    return config


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else "INFO")
    setup_logging(level=log_level, log_file=args.log_file)

    if args.config and not Path(args.config).exists():
        logger.error(f"Config file not found: {args.config}")
        return 1

    config = build_config(args)
    if not config.data.annotation_path or not config.data.counts_path:
        logger.error("Both --annotation and --counts are required (or set them in --config)")
        return 1

    pipeline = ScreenPipeline(config)

    try:
        result = pipeline.run(analyse=not args.skip_analysis)
    except PhenoCountError as exc:
        logger.error(str(exc))
        return 1

    print(result.summary())

    if config.output.output_dir:
        logger.info(f"Outputs written to {config.output.output_dir}")
    logger.info("Done!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
