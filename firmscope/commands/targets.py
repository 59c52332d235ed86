"""Targets subcommand - lists the known target chips."""

import argparse
import logging

from ..exceptions import FirmscopeError
from ..targets.database import TargetDatabase

logger = logging.getLogger(__name__)


def add_targets_parser(subparsers) -> argparse.ArgumentParser:
    """Add 'targets' subcommand parser."""
    parser = subparsers.add_parser(
        'targets',
        help='List target chips known to the target database')
    parser.add_argument(
        '--targets-dir',
        action='append',
        default=[],
        help='Additional directory of target description files (repeatable)')
    parser.add_argument(
        '--filter',
        help='Only list targets whose name contains this text (case-insensitive)')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose output')
    return parser


def run_targets(args: argparse.Namespace) -> int:
    """Execute the targets subcommand."""
    try:
        database = TargetDatabase.default(extra_paths=args.targets_dir)
    except FirmscopeError as e:
        logger.error("Failed to load target database: %s", e)
        return 1

    names = database.target_names()
    if args.filter:
        wanted = args.filter.lower()
        names = [name for name in names if wanted in name.lower()]

    logger.info("Loaded %d targets", len(names))
    for name in names:
        print(name)
    return 0
