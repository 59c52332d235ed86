#!/usr/bin/env python3
"""
Command line entry point for firmscope.

Subcommands:
    analyze   Analyze an ELF image and print a JSON report or text summary
    targets   List target chips known to the target database
"""

import sys
import logging
import argparse
from importlib.metadata import PackageNotFoundError, version

from .commands.analyze import add_analyze_parser, run_analyze
from .commands.targets import add_targets_parser, run_targets

COMMANDS = {
    'analyze': run_analyze,
    'targets': run_targets,
}


def configure_logging(verbose: bool = False) -> None:
    """Configure basic logging for the CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(levelname)s: %(message)s',
        stream=sys.stderr,
    )


def _package_version() -> str:
    try:
        return version('firmscope')
    except PackageNotFoundError:
        return 'unknown'


def build_parser() -> argparse.ArgumentParser:
    """Create the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog='firmscope',
        description='Memory layout, RTT and DWARF symbol analysis for firmware ELF files')
    parser.add_argument('--version', action='version', version=f"%(prog)s {_package_version()}")

    subparsers = parser.add_subparsers(dest='command', required=True)
    add_analyze_parser(subparsers)
    add_targets_parser(subparsers)
    return parser


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(getattr(args, 'verbose', False))
    return COMMANDS[args.command](args)


if __name__ == '__main__':
    sys.exit(main())
