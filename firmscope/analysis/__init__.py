#!/usr/bin/env python3
"""
Binary analysis components.

Each analyzer takes the raw bytes of an ELF image and extracts one kind of
fact: memory segments, symbols, the RTT control block, defmt sections or the
DWARF symbol tree.
"""

from .conflicts import ConflictDetector
from .dwarf import DWARFTreeBuilder, SkippedTagPolicy, build_dwarf_tree
from .elf import load_binary, open_elf
from .rtt import ControlBlockDecoder, RttLocator, decode_rtt
from .sections import SectionAnalyzer, extract_segments, scan_defmt_sections
from .symbols import SymbolExtractor, demangle_name, extract_symbols

__all__ = [
    'ConflictDetector',
    'ControlBlockDecoder',
    'DWARFTreeBuilder',
    'RttLocator',
    'SectionAnalyzer',
    'SkippedTagPolicy',
    'SymbolExtractor',
    'build_dwarf_tree',
    'decode_rtt',
    'demangle_name',
    'extract_segments',
    'extract_symbols',
    'load_binary',
    'open_elf',
    'scan_defmt_sections',
]
