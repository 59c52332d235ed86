"""Analyze subcommand - analyzes a firmware ELF image."""

import json
import argparse
import logging

from jinja2 import TemplateError as Jinja2TemplateError

from ..analysis.dwarf import SkippedTagPolicy
from ..core.generator import ReportGenerator
from ..exceptions import FirmscopeError
from ..targets.database import TargetDatabase
from ..utils.formatting import render_summary

# Set up logger
logger = logging.getLogger(__name__)


def add_analyze_parser(subparsers) -> argparse.ArgumentParser:
    """
    Add 'analyze' subcommand parser.

    Args:
        subparsers: Subparsers object from argparse

    Returns:
        The analyze parser
    """
    parser = subparsers.add_parser(
        'analyze',
        help='Analyze memory layout, RTT, defmt and DWARF data of an ELF file',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
examples:
  # JSON report to stdout, no conflict detection
  firmscope analyze firmware.elf

  # Check section placement against a target memory map
  firmscope analyze firmware.elf --target STM32F407VGTx --format text
        """
    )

    parser.add_argument('elf_path', help='Path to ELF file')
    parser.add_argument(
        '-t', '--target',
        help='Target chip for memory layout (e.g., STM32F407VGTx)')
    parser.add_argument(
        '--targets-dir',
        action='append',
        default=[],
        help='Additional directory of target description files (repeatable)')
    parser.add_argument(
        '--format',
        choices=('json', 'text'),
        default='json',
        help='Output format (default: %(default)s)')
    parser.add_argument(
        '--no-dwarf',
        action='store_true',
        help='Skip building the DWARF symbol tree')
    parser.add_argument(
        '--reattach-skipped',
        action='store_true',
        help='Keep DWARF entries nested under unrecognized entries')
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose output')

    return parser


def run_analyze(args: argparse.Namespace) -> int:
    """
    Execute the analyze subcommand.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for error)
    """
    policy = (SkippedTagPolicy.REATTACH if getattr(args, 'reattach_skipped', False)
              else SkippedTagPolicy.DISCARD)

    try:
        database = None
        if args.target:
            database = TargetDatabase.default(extra_paths=args.targets_dir)
        generator = ReportGenerator(
            args.elf_path,
            target_name=args.target,
            database=database,
            include_dwarf=not args.no_dwarf,
            skipped_tag_policy=policy,
        )
        report = generator.generate_report()
    except FirmscopeError as e:
        logger.error("Failed to analyze %s: %s", args.elf_path, e)
        return 1

    if args.format == 'text':
        try:
            print(render_summary(report))
        except (FileNotFoundError, Jinja2TemplateError) as e:
            logger.error("Failed to render summary: %s", e)
            return 1
    else:
        print(json.dumps(report, indent=2))

    return 0
