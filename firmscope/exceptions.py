#!/usr/bin/env python3
"""
Exception hierarchy for firmware binary analysis.

Every error raised by the analyzers derives from FirmscopeError so callers can
catch one type at the boundary. Absence of optional content (no RTT control
block, no defmt sections, no debug info) is never an error.
"""


class FirmscopeError(Exception):
    """Base exception for all firmscope errors"""


class BinaryReadError(FirmscopeError):
    """Raised when the firmware file cannot be read"""


class ELFFormatError(FirmscopeError):
    """Raised when the byte buffer is not a parseable ELF container"""


class MemoryMapError(FirmscopeError):
    """Base exception for memory map lookups"""


class TargetNotFoundError(MemoryMapError):
    """Raised when a target name is unknown to the target database"""


class EmptyMemoryMapError(MemoryMapError):
    """Raised when a target declares no memory regions"""


class TargetDatabaseError(FirmscopeError):
    """Raised when a target description file cannot be loaded"""


class DWARFParsingError(FirmscopeError):
    """Raised when debug sections are malformed.

    Only the DWARF tree build is aborted; segment, symbol, RTT and defmt
    extraction are independent of it.
    """
