#!/usr/bin/env python3
"""
Firmware image analysis.

This module provides the FirmwareAnalyzer class that coordinates the analysis
of an ELF image using the specialized analyzers for sections, symbols, the
RTT control block and DWARF data.
"""

import time
import logging
from typing import Any, Dict, List, Optional

from ..analysis.dwarf import DWARFTreeBuilder, SkippedTagPolicy
from ..analysis.conflicts import ConflictDetector
from ..analysis.elf import open_elf
from ..analysis.rtt import RttLocator
from ..analysis.sections import SectionAnalyzer
from ..analysis.symbols import SymbolExtractor
from ..exceptions import DWARFParsingError
from ..models import (
    DefmtInfo, DwarfInfo, ElfSymbol, MemoryRegion, MemorySegment, RttControlBlockInfo,
)

logger = logging.getLogger(__name__)


class FirmwareAnalyzer:
    """Runs every extraction once over one in-memory ELF image"""

    def __init__(self, data: bytes,
                 memory_regions: Optional[List[MemoryRegion]] = None,
                 skipped_tag_policy: SkippedTagPolicy = SkippedTagPolicy.DISCARD):
        """Initialize the analyzer.

        Args:
            data: Raw ELF image
            memory_regions: Memory map of the selected target, None for no target
            skipped_tag_policy: DWARF handling of entries that are not kept

        Raises:
            ELFFormatError: If the image is not a valid ELF container
        """
        self.data = data
        self.memory_regions = memory_regions
        self.skipped_tag_policy = skipped_tag_policy
        self._elffile = open_elf(data)

        self._section_analyzer = SectionAnalyzer(self._elffile)
        self._symbol_extractor = SymbolExtractor(self._elffile)
        self._rtt_locator = RttLocator(self._elffile)
        self._perf_stats: Dict[str, float] = {}

    def get_metadata(self) -> Dict[str, Any]:
        """Basic container metadata."""
        header = self._elffile.header
        return {
            'architecture': f"ELF{self._elffile.elfclass}",
            'machine': header['e_machine'],
            'entry_point': header['e_entry'],
            'endianness': 'little' if self._elffile.little_endian else 'big',
        }

    def get_segments(self) -> List[MemorySegment]:
        """Loadable segments with conflicts against the target memory map."""
        segments = self._section_analyzer.analyze_segments()
        if not segments:
            logger.warning("No loadable segments found in ELF file")
        ConflictDetector(self.memory_regions).detect(segments)
        return segments

    def get_symbols(self) -> List[ElfSymbol]:
        """Flat symbol table."""
        return self._symbol_extractor.extract_symbols()

    def get_defmt_info(self) -> DefmtInfo:
        """defmt section summary."""
        return self._section_analyzer.find_defmt_sections()

    def get_rtt_info(self) -> RttControlBlockInfo:
        """Decoded RTT control block."""
        return self._rtt_locator.find_control_block()

    def get_dwarf_info(self) -> DwarfInfo:
        """DWARF symbol tree; malformed debug data degrades to an empty result."""
        start_time = time.time()
        try:
            return DWARFTreeBuilder(self._elffile, self.skipped_tag_policy).build()
        except DWARFParsingError as e:
            logger.warning("Failed to parse DWARF info: %s", e)
            return DwarfInfo()
        finally:
            self._perf_stats['dwarf_parsing_time'] = time.time() - start_time

    def get_performance_stats(self) -> Dict[str, float]:
        """Get performance statistics for analysis."""
        return self._perf_stats.copy()
