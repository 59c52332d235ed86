#!/usr/bin/env python3
"""
ELF container access shared by all analyzers.

Analyzers never touch the filesystem: they receive the raw bytes of the
firmware image and wrap them in a pyelftools ELFFile.
"""

import io
import os
import logging
from pathlib import Path
from typing import Union

from elftools.elf.elffile import ELFFile
from elftools.common.exceptions import ELFError

from ..exceptions import BinaryReadError, ELFFormatError

logger = logging.getLogger(__name__)

ELF_MAGIC = b'\x7fELF'

# sh_flags bits
SHF_WRITE = 0x1
SHF_ALLOC = 0x2
SHF_EXECINSTR = 0x4


def load_binary(path: Union[str, Path]) -> bytes:
    """Read a firmware image into memory.

    Args:
        path: Path to the ELF file

    Returns:
        Raw file contents

    Raises:
        BinaryReadError: If the file does not exist or cannot be read
    """
    elf_path = Path(path)
    if not elf_path.exists():
        raise BinaryReadError(f"ELF file not found: {elf_path}")
    if not os.access(elf_path, os.R_OK):
        raise BinaryReadError(f"Cannot read ELF file: {elf_path}")

    try:
        return elf_path.read_bytes()
    except (IOError, OSError) as e:
        logger.error("Failed to read ELF file %s: %s", elf_path, e)
        raise BinaryReadError(f"Failed to read ELF file {elf_path}: {e}") from e


def open_elf(data: bytes) -> ELFFile:
    """Parse an in-memory ELF image.

    Raises:
        ELFFormatError: If the buffer is not a valid ELF container
    """
    if len(data) < len(ELF_MAGIC) or data[:4] != ELF_MAGIC:
        raise ELFFormatError("Buffer is not an ELF file (bad magic number)")

    try:
        return ELFFile(io.BytesIO(data))
    except ELFError as e:
        logger.error("Invalid ELF file format: %s", e)
        raise ELFFormatError(f"Invalid ELF file format: {e}") from e


def section_file_data(section) -> bytes:
    """Return the file-backed bytes of a section.

    Sections without file backing (SHT_NOBITS, e.g. .bss) have no data even
    though pyelftools reports a zero-filled buffer for them.
    """
    if section['sh_type'] == 'SHT_NOBITS':
        return b''
    return section.data()
