"""
firmscope - memory layout, RTT and DWARF symbol analysis for firmware ELF files.
"""

from .analysis import (
    build_dwarf_tree, decode_rtt, demangle_name, extract_segments, extract_symbols,
    load_binary, scan_defmt_sections,
)
from .analysis.dwarf import SkippedTagPolicy
from .core import FirmwareAnalyzer, ReportGenerator
from .exceptions import (
    BinaryReadError, DWARFParsingError, ELFFormatError, EmptyMemoryMapError,
    FirmscopeError, MemoryMapError, TargetDatabaseError, TargetNotFoundError,
)
from .models import (
    DefmtInfo, DwarfInfo, DwarfSymbolNode, DwarfTag, ElfSymbol, MemoryKind,
    MemoryRegion, MemorySegment, RttBufferDescriptor, RttControlBlockInfo,
)
from .targets import TargetDatabase, lookup_memory_map
from .utils.formatting import format_size

__version__ = "0.1.0"

__all__ = [
    'BinaryReadError',
    'DWARFParsingError',
    'DefmtInfo',
    'DwarfInfo',
    'DwarfSymbolNode',
    'DwarfTag',
    'ELFFormatError',
    'ElfSymbol',
    'EmptyMemoryMapError',
    'FirmscopeError',
    'FirmwareAnalyzer',
    'MemoryKind',
    'MemoryMapError',
    'MemoryRegion',
    'MemorySegment',
    'ReportGenerator',
    'RttBufferDescriptor',
    'RttControlBlockInfo',
    'SkippedTagPolicy',
    'TargetDatabase',
    'TargetDatabaseError',
    'TargetNotFoundError',
    'build_dwarf_tree',
    'decode_rtt',
    'demangle_name',
    'extract_segments',
    'extract_symbols',
    'format_size',
    'load_binary',
    'lookup_memory_map',
    'scan_defmt_sections',
]
