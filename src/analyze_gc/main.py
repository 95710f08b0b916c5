"""
Main entry point for the analyze_gc command-line tool.
This module orchestrates the whole run, from reading the reference to writing
the GC distribution reports.
"""

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from analyze_gc.core.coordinator import AnalysisCoordinator
from analyze_gc.core.errors import AnalysisAborted
from analyze_gc.core.models import AnalysisConfig, DEFAULT_PREFIX, DEFAULT_READ_LENGTHS, DEFAULT_THRESHOLD
from analyze_gc.parsers.fasta_parser import parse_fasta
from analyze_gc.utils.logging import LOG_LEVELS, setup_logging
from analyze_gc.visualization.report_generator import generate_report

EXIT_ABORTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="analyze_gc: Expected GC-content distributions of reference genome windows.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument("input", nargs="?", help="Input FASTA file (optionally compressed); stdin if omitted")
    parser.add_argument("-o", "--output", default="./output", help="Output directory for results")
    parser.add_argument("-p", "--prefix", default=DEFAULT_PREFIX, help="Prefix for output file names")
    parser.add_argument("-i", "--identifier", help="Identifier for the reference genome")

    parser.add_argument("-T", "--threshold", type=float, default=DEFAULT_THRESHOLD,
                        help="Minimum proportion (0 <= x <= 1) of valid bases for a window to be counted")
    parser.add_argument("-r", "--read-lengths", type=int, nargs="+", default=list(DEFAULT_READ_LENGTHS),
                        help="Read lengths to analyze")
    parser.add_argument("--no-bisulfite", action="store_true",
                        help="Skip the bisulfite G vs A and C vs T distributions")
    parser.add_argument("-t", "--threads", type=int, default=os.cpu_count() or 1,
                        help="Number of CPU cores for parallel processing")

    parser.add_argument("-l", "--loglevel", choices=sorted(LOG_LEVELS), default="info", help="Console log level")
    parser.add_argument("--quiet", action="store_true", help="Silence console output (log.txt is still written)")
    return parser


def config_from_args(args: argparse.Namespace) -> AnalysisConfig:
    return AnalysisConfig(
        threshold=args.threshold,
        read_lengths=tuple(args.read_lengths),
        bisulfite=not args.no_bisulfite,
        identifier=args.identifier,
        threads=args.threads,
        input_path=Path(args.input) if args.input and args.input != "-" else None,
        output_dir=Path(args.output),
        prefix=args.prefix,
    )


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    output_dir = Path(args.output)
    log_queue, log_listener = setup_logging(output_dir, level=args.loglevel, quiet=args.quiet)

    logger = logging.getLogger(__name__)
    try:
        logger.info("Starting analyze_gc...")

        # Configuration is checked before anything is read or dispatched
        config = config_from_args(args).validate()
        coordinator = AnalysisCoordinator(config, log_queue=log_queue)

        def handle_signal(signum, frame):
            logger.warning(f"Received signal {signal.Signals(signum).name}")
            coordinator.request_abort()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        # Phase 1: Reference loading
        logger.info("Phase 1: Reading reference sequence...")
        contigs = parse_fasta(config.input_path)

        # Phase 2: Window counting
        logger.info("Phase 2: Counting windows...")
        result = coordinator.run(contigs)

        # Phase 3: Reporting
        logger.info("Phase 3: Generating reports...")
        paths = generate_report(result, config.output_dir, config.prefix)
        for path in paths.values():
            logger.info(f"Wrote {path}")

        logger.info(f"Analysis complete. Results saved in {output_dir}")
    except AnalysisAborted as e:
        logger.error(f"Run aborted: {e}")
        sys.exit(EXIT_ABORTED)
    except Exception as e:
        logger.error(f"Critical failure: {e}")
        sys.exit(1)
    finally:
        log_listener.stop()


if __name__ == "__main__":
    main()
