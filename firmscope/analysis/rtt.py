#!/usr/bin/env python3
"""
SEGGER RTT control block decoding.

The control block is a fixed-layout structure placed in target RAM by the
firmware. When its symbol has initialized data in the image we decode the
buffer descriptors straight from the file bytes:

    char     acID[16];                        offset 0 (ignored)
    uint32   MaxNumUpBuffers;                 offset 16
    uint32   MaxNumDownBuffers;               offset 20
    BUFFER   aUp[MaxNumUpBuffers];            offset 24
    BUFFER   aDown[MaxNumDownBuffers];        after aUp

Each BUFFER is a name pointer, a buffer pointer, a u32 size and three u32
fields (write offset, read offset, flags).
"""

import struct
import logging
from typing import List, Optional, Tuple

from elftools.common.exceptions import ELFError

from ..exceptions import ELFFormatError
from ..models import RttBufferDescriptor, RttControlBlockInfo
from .elf import open_elf, section_file_data
from .symbols import iter_symbol_table

logger = logging.getLogger(__name__)

RTT_SYMBOL_NAMES = ('_SEGGER_RTT', 'SEGGER_RTT')

HEADER_SIZE = 24
MAX_COUNT_OFFSET = 16
MAX_BUFFERS = 16  # clamp for corrupt counts


class ControlBlockDecoder:
    """Decodes an RTT control block for a given pointer width and byte order"""

    def __init__(self, ptr_size: int, little_endian: bool):
        if ptr_size not in (4, 8):
            raise ValueError(f"Unsupported pointer size: {ptr_size}")
        self.ptr_size = ptr_size
        self.byte_order = '<' if little_endian else '>'
        self.descriptor_size = 2 * ptr_size + 16

    def decode(self, data: bytes) -> Tuple[Optional[int], Optional[int],
                                           List[RttBufferDescriptor],
                                           List[RttBufferDescriptor]]:
        """Decode control block bytes.

        Returns:
            (max_up_buffers, max_down_buffers, up_buffers, down_buffers);
            counts are None and lists empty when fewer than 24 bytes exist
        """
        if len(data) < HEADER_SIZE:
            return None, None, [], []

        max_up, max_down = struct.unpack_from(
            self.byte_order + 'II', data, MAX_COUNT_OFFSET)

        up_buffers = self._decode_array(data, HEADER_SIZE, max_up, 'Up')
        # The down array follows the full declared up array
        down_offset = HEADER_SIZE + max_up * self.descriptor_size
        down_buffers = self._decode_array(data, down_offset, max_down, 'Down')

        return max_up, max_down, up_buffers, down_buffers

    def _decode_array(self, data: bytes, start: int, count: int,
                      label: str) -> List[RttBufferDescriptor]:
        buffers = []
        pointer_format = 'I' if self.ptr_size == 4 else 'Q'

        for index in range(min(count, MAX_BUFFERS)):
            offset = start + index * self.descriptor_size
            if offset + self.descriptor_size > len(data):
                break

            # The name pointer is a target address and cannot be followed here
            buffer_address, = struct.unpack_from(
                self.byte_order + pointer_format, data, offset + self.ptr_size)
            buffer_size, = struct.unpack_from(
                self.byte_order + 'I', data, offset + 2 * self.ptr_size)

            if buffer_address == 0 or buffer_size == 0:
                continue

            buffers.append(RttBufferDescriptor(
                name=f"{label} {index}",
                buffer_address=buffer_address,
                size=buffer_size,
            ))

        return buffers


def _is_rtt_symbol(name: str) -> bool:
    return any(name == known or known in name for known in RTT_SYMBOL_NAMES)


def _read_symbol_bytes(elffile, address: int) -> bytes:
    """File-backed bytes from address to the end of its containing section."""
    for section in elffile.iter_sections():
        section_addr = section['sh_addr']
        if section_addr <= address < section_addr + section['sh_size']:
            return section_file_data(section)[address - section_addr:]
    return b''


class RttLocator:
    """Finds and decodes the RTT control block of an opened ELF file"""

    def __init__(self, elffile):
        """Initialize with ELF file handle."""
        self.elffile = elffile
        self.decoder = ControlBlockDecoder(
            ptr_size=8 if elffile.elfclass == 64 else 4,
            little_endian=elffile.little_endian,
        )

    def find_control_block(self) -> RttControlBlockInfo:
        """Decode the first RTT control block symbol.

        A missing control block is reported as present=False, not as an error.
        """
        try:
            for symbol in iter_symbol_table(self.elffile):
                name = symbol.name
                if not name or not _is_rtt_symbol(name):
                    continue
                return self._decode_symbol(name, symbol['st_value'], symbol['st_size'])

        except ELFError as e:
            logger.error("Invalid ELF file format during RTT decoding: %s", e)
            raise ELFFormatError(f"Invalid ELF file format during RTT decoding: {e}") from e

        logger.debug("No RTT control block symbol found")
        return RttControlBlockInfo()

    def _decode_symbol(self, name: str, address: int, size: int) -> RttControlBlockInfo:
        max_up, max_down, up_buffers, down_buffers = self.decoder.decode(
            _read_symbol_bytes(self.elffile, address))

        logger.info("RTT control block %s at 0x%08x (%d up, %d down buffers)",
                    name, address, len(up_buffers), len(down_buffers))
        return RttControlBlockInfo(
            present=True,
            symbol_name=name,
            address=address,
            size=size if size > 0 else None,
            max_up_buffers=max_up,
            max_down_buffers=max_down,
            up_buffers=up_buffers,
            down_buffers=down_buffers,
        )


def decode_rtt(data: bytes) -> RttControlBlockInfo:
    """Find and decode the RTT control block of an ELF image.

    Raises:
        ELFFormatError: If the container cannot be parsed
    """
    return RttLocator(open_elf(data)).find_control_block()
