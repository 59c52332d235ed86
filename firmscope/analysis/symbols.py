#!/usr/bin/env python3
"""
ELF symbol table extraction and symbol name demangling.
"""

import re
import logging
from typing import Callable, Iterator, List, Tuple

import cxxfilt
from rust_demangler import demangle as rust_demangle
from elftools.common.exceptions import ELFError
from elftools.elf.sections import SymbolTableSection

from ..exceptions import ELFFormatError
from ..models import ElfSymbol
from .elf import open_elf

logger = logging.getLogger(__name__)

RUST_LEGACY_PREFIXES = ('_ZN', '__ZN')
RUST_V0_PREFIXES = ('_R', '__R')
RUST_HASH_RE = re.compile(r'::h[0-9a-f]{16}(?=$|\.)')


def _is_rust_legacy(name: str) -> bool:
    """Whether name is a length-prefixed path closed by 'E' and at most a '.' suffix.

    Itanium C++ names with a parameter list after the closing 'E', or with
    non-identifier components such as ctor/dtor markers, do not qualify.
    """
    prefix = next((p for p in RUST_LEGACY_PREFIXES if name.startswith(p)), None)
    if prefix is None:
        return False

    pos = len(prefix)
    components = 0
    while pos < len(name) and name[pos] != 'E':
        match = re.match(r'\d+', name[pos:])
        if not match:
            return False
        length = int(match.group())
        pos += len(match.group())
        if length == 0 or pos + length > len(name):
            return False
        pos += length
        components += 1

    if pos >= len(name) or components == 0:
        return False
    rest = name[pos + 1:]
    return not rest or rest.startswith('.')


def _demangle_rust(name: str) -> str:
    if name.startswith(RUST_V0_PREFIXES):
        return rust_demangle(name)
    if not _is_rust_legacy(name):
        raise ValueError(f"Not a Rust symbol: {name}")
    # Drop the legacy hash component like rustc's alternate display does
    return RUST_HASH_RE.sub('', rust_demangle(name))


def _demangle_cxx(name: str) -> str:
    # external_only=False so that nested/local Itanium names are handled too
    if not name.startswith('_Z'):
        raise cxxfilt.InvalidName(name)
    return cxxfilt.demangle(name, external_only=False)


# Tried in order, first success wins. cxxfilt covers every Itanium C++ ABI
# revision (C++98 through C++20).
DEMANGLERS: Tuple[Tuple[str, Callable[[str], str]], ...] = (
    ('rust', _demangle_rust),
    ('c++', _demangle_cxx),
)


def demangle_name(name: str) -> str:
    """Demangle a Rust or C++ symbol name.

    Returns:
        The demangled name, or the input unchanged when no demangler accepts it
    """
    if not name:
        return name

    for language, demangler in DEMANGLERS:
        try:
            demangled = demangler(name)
        except Exception:  # pylint: disable=broad-exception-caught
            continue
        if demangled:
            logger.debug("Demangled %s symbol %s -> %s", language, name, demangled)
            return demangled

    return name


def iter_symbol_table(elffile) -> Iterator:
    """Yield symbols of every SHT_SYMTAB section in table order."""
    for section in elffile.iter_sections():
        if not isinstance(section, SymbolTableSection):
            continue
        if section['sh_type'] != 'SHT_SYMTAB':
            continue
        yield from section.iter_symbols()


class SymbolExtractor:
    """Handles symbol extraction from the ELF symbol table"""

    def __init__(self, elffile):
        """Initialize with ELF file handle."""
        self.elffile = elffile

    def extract_symbols(self) -> List[ElfSymbol]:
        """Extract named, addressed symbols sorted by address.

        No filtering by symbol type or binding is applied.
        """
        symbols = []

        try:
            for symbol in iter_symbol_table(self.elffile):
                name = symbol.name
                address = symbol['st_value']

                if not name or address == 0:
                    continue

                symbols.append(ElfSymbol(
                    name=name,
                    address=address,
                    size=symbol['st_size'],
                ))

        except (IOError, OSError) as e:
            raise ELFFormatError(f"Failed to read ELF file for symbols: {e}") from e
        except ELFError as e:
            logger.error("Invalid ELF file format during symbol extraction: %s", e)
            raise ELFFormatError(
                f"Invalid ELF file format during symbol extraction: {e}") from e

        symbols.sort(key=lambda s: s.address)
        return symbols


def extract_symbols(data: bytes) -> List[ElfSymbol]:
    """Extract the flat symbol list of an ELF image.

    Raises:
        ELFFormatError: If the container cannot be parsed
    """
    symbols = SymbolExtractor(open_elf(data)).extract_symbols()
    logger.info("Found %d symbols in ELF file", len(symbols))
    return symbols
