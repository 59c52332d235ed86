#!/usr/bin/env python3
"""
Report generation and coordination.

This module provides the ReportGenerator class that loads a firmware image,
resolves the target memory map and assembles every analysis result into one
JSON-serializable report.
"""

import time
import logging
from typing import Any, Dict, Optional

from ..analysis.dwarf import SkippedTagPolicy
from ..analysis.elf import load_binary
from ..targets.catalog import MemoryRegionCatalog
from ..targets.database import TargetDatabase
from .analyzer import FirmwareAnalyzer

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Main class for generating firmware analysis reports"""

    def __init__(self, elf_path: str, target_name: Optional[str] = None,
                 database: Optional[TargetDatabase] = None,
                 include_dwarf: bool = True,
                 skipped_tag_policy: SkippedTagPolicy = SkippedTagPolicy.DISCARD):
        """Initialize the report generator.

        Args:
            elf_path: Path to the ELF file to analyze
            target_name: Target whose memory map is used for conflict detection
            database: Target database, the default one when omitted
            include_dwarf: Whether to build the DWARF symbol tree
            skipped_tag_policy: DWARF handling of entries that are not kept

        Raises:
            BinaryReadError: If the file cannot be read
            ELFFormatError: If the file is not a valid ELF container
            TargetNotFoundError: If the target is unknown
            EmptyMemoryMapError: If the target has no memory regions
        """
        self.elf_path = elf_path
        self.target_name = target_name
        self.include_dwarf = include_dwarf

        self.memory_regions = None
        if target_name:
            self.memory_regions = MemoryRegionCatalog(database).lookup(target_name)

        self.analyzer = FirmwareAnalyzer(
            load_binary(elf_path),
            memory_regions=self.memory_regions,
            skipped_tag_policy=skipped_tag_policy,
        )

    def generate_report(self) -> Dict[str, Any]:
        """Generate the analysis report.

        Returns:
            Dictionary containing every analysis result
        """
        report_start_time = time.time()

        segments = self.analyzer.get_segments()
        symbols = self.analyzer.get_symbols()
        dwarf_info = self.analyzer.get_dwarf_info() if self.include_dwarf else None

        report = {
            'file_path': str(self.elf_path),
            'target': self.target_name,
            **self.analyzer.get_metadata(),
            'memory_regions': [region.to_dict() for region in self.memory_regions or []],
            'segments': [segment.to_dict() for segment in segments],
            'conflict_count': sum(len(segment.conflicts) for segment in segments),
            'symbols': [symbol.__dict__ for symbol in symbols],
            'defmt': self.analyzer.get_defmt_info().to_dict(),
            'rtt': self.analyzer.get_rtt_info().to_dict(),
            'dwarf': dwarf_info.to_dict() if dwarf_info is not None else None,
        }

        perf_stats = self.analyzer.get_performance_stats()
        perf_stats['total_report_time'] = time.time() - report_start_time
        logger.debug("Performance: %s", perf_stats)

        return report
