#!/usr/bin/env python3
"""
ELF section analysis.

This module walks the section header table and extracts the allocated
sections that occupy target memory, plus the defmt logging sections.
"""

import logging
from typing import List, Optional

from elftools.common.exceptions import ELFError

from ..exceptions import ELFFormatError
from ..models import DefmtInfo, MemoryRegion, MemorySegment
from .conflicts import ConflictDetector
from .elf import SHF_ALLOC, SHF_EXECINSTR, SHF_WRITE, open_elf

logger = logging.getLogger(__name__)

UNNAMED_SECTION = '<unnamed>'
DEFMT_MARKER = 'defmt'


class SectionAnalyzer:
    """Handles ELF section analysis"""

    def __init__(self, elffile):
        """Initialize with ELF file handle."""
        self.elffile = elffile

    def analyze_segments(self) -> List[MemorySegment]:
        """Extract allocated sections as memory segments.

        Returns:
            Segments sorted ascending by address, with empty conflict lists
        """
        segments = []

        try:
            for section in self.elffile.iter_sections():
                address = section['sh_addr']
                size = section['sh_size']
                flags = section['sh_flags']

                if size == 0 or address == 0:
                    continue

                # Only sections with SHF_ALLOC are loaded into memory
                if not flags & SHF_ALLOC:
                    continue

                segments.append(MemorySegment(
                    name=section.name or UNNAMED_SECTION,
                    address=address,
                    size=size,
                    flags=self._describe_flags(flags),
                    # .bss and friends occupy memory but have no file bytes
                    is_load=section['sh_type'] != 'SHT_NOBITS',
                ))

        except (IOError, OSError) as e:
            raise ELFFormatError(f"Failed to read ELF sections: {e}") from e
        except ELFError as e:
            logger.error("Invalid ELF file format during section analysis: %s", e)
            raise ELFFormatError(f"Invalid ELF file format during section analysis: {e}") from e

        segments.sort(key=lambda s: s.address)
        return segments

    def find_defmt_sections(self) -> DefmtInfo:
        """Collect non-empty sections belonging to the defmt logging framework."""
        defmt_sections = []

        try:
            for section in self.elffile.iter_sections():
                name = section.name or ''
                if not (name.startswith('.' + DEFMT_MARKER) or DEFMT_MARKER in name):
                    continue
                if section['sh_size'] > 0:
                    defmt_sections.append((name, section['sh_size']))
        except ELFError as e:
            logger.error("Invalid ELF file format during defmt scan: %s", e)
            raise ELFFormatError(f"Invalid ELF file format during defmt scan: {e}") from e

        return DefmtInfo(present=bool(defmt_sections), sections=defmt_sections)

    @staticmethod
    def _describe_flags(sh_flags: int) -> str:
        """Render section flags as R, W/-, X/-. Allocated sections are always readable."""
        return "R{}{}".format(
            "W" if sh_flags & SHF_WRITE else "-",
            "X" if sh_flags & SHF_EXECINSTR else "-",
        )


def extract_segments(data: bytes,
                     regions: Optional[List[MemoryRegion]] = None) -> List[MemorySegment]:
    """Extract loadable memory segments and annotate their conflicts.

    Args:
        data: Raw ELF image
        regions: Target memory map; None means no target is selected and
            conflict detection is skipped

    Raises:
        ELFFormatError: If the container cannot be parsed
    """
    segments = SectionAnalyzer(open_elf(data)).analyze_segments()
    if not segments:
        logger.warning("No loadable segments found in ELF file")
    ConflictDetector(regions).detect(segments)
    logger.info("Extracted %d memory segments", len(segments))
    return segments


def scan_defmt_sections(data: bytes) -> DefmtInfo:
    """Find defmt sections and their sizes.

    Raises:
        ELFFormatError: If the container cannot be parsed
    """
    return SectionAnalyzer(open_elf(data)).find_defmt_sections()
