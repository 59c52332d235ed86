#!/usr/bin/env python3
"""
Synthetic ELF images for tests.

ElfBuilder lays out a relocatable-free executable with arbitrary sections and
a symbol table. DwarfBuilder encodes DWARF 4 compilation units (abbreviation
table, debug info, string table and line program headers) so that debug info
handling can be tested without a cross compiler.
"""

import itertools
import struct
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from elftools.dwarf.enums import ENUM_DW_AT, ENUM_DW_FORM, ENUM_DW_TAG

SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_NOBITS = 8

SHF_WRITE = 0x1
SHF_ALLOC = 0x2
SHF_EXECINSTR = 0x4

STB_LOCAL = 0
STB_GLOBAL = 1
STT_NOTYPE = 0
STT_OBJECT = 1
STT_FUNC = 2
SHN_ABS = 0xfff1

EM_ARM = 40
EM_PPC64 = 21
EM_RISCV = 243

ET_EXEC = 2

CU_HEADER_SIZE = 11  # 32-bit DWARF 4: unit_length, version, abbrev offset, address size


def uleb128(value: int) -> bytes:
    """Encode an unsigned LEB128 number."""
    out = bytearray()
    while True:
        byte = value & 0x7f
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


class StringTable:
    """NUL separated string table with deduplication"""

    def __init__(self):
        self.data = bytearray(b'\0')
        self._offsets = {'': 0}

    def add(self, text: str) -> int:
        if text not in self._offsets:
            self._offsets[text] = len(self.data)
            self.data.extend(text.encode('utf-8') + b'\0')
        return self._offsets[text]


@dataclass
class _Section:
    name: str
    sh_type: int
    flags: int
    addr: int
    data: bytes
    size: int
    link: int = 0
    info: int = 0
    entsize: int = 0
    offset: int = 0


@dataclass
class _Symbol:
    name: str
    value: int
    size: int
    section: Optional[str]
    sym_type: int
    bind: int


class ElfBuilder:
    """Builds minimal ELF executables in memory"""

    def __init__(self, elfclass: int = 32, little_endian: bool = True,
                 machine: int = EM_ARM, entry: int = 0):
        self.elfclass = elfclass
        self.endian = '<' if little_endian else '>'
        self.machine = machine
        self.entry = entry
        self._sections: List[_Section] = []
        self._symbols: List[_Symbol] = []

    @property
    def is64(self) -> bool:
        return self.elfclass == 64

    def add_section(self, name: str, data: bytes = b'', addr: int = 0, flags: int = 0,
                    sh_type: int = SHT_PROGBITS, size: Optional[int] = None) -> 'ElfBuilder':
        """Add a section. size defaults to len(data); NOBITS sections store no bytes."""
        if size is None:
            size = len(data)
        if sh_type == SHT_NOBITS:
            data = b''
        self._sections.append(_Section(name, sh_type, flags, addr, bytes(data), size))
        return self

    def add_symbol(self, name: str, value: int, size: int = 0, section: Optional[str] = None,
                   sym_type: int = STT_OBJECT, bind: int = STB_GLOBAL) -> 'ElfBuilder':
        self._symbols.append(_Symbol(name, value, size, section, sym_type, bind))
        return self

    def add_dwarf(self, dwarf: 'DwarfBuilder') -> 'ElfBuilder':
        for name, data in dwarf.sections().items():
            self.add_section(name, data)
        return self

    def build(self) -> bytes:
        sections = list(self._sections)

        if self._symbols:
            strtab = StringTable()
            symtab = self._encode_symbols(strtab)
            symtab_index = len(sections) + 1
            sections.append(_Section(
                '.symtab', SHT_SYMTAB, 0, 0, symtab, len(symtab),
                link=symtab_index + 1, info=1, entsize=24 if self.is64 else 16))
            sections.append(_Section('.strtab', SHT_STRTAB, 0, 0, bytes(strtab.data),
                                     len(strtab.data)))

        shstrtab = StringTable()
        name_offsets = [shstrtab.add(section.name) for section in sections]
        name_offsets.append(shstrtab.add('.shstrtab'))
        sections.append(_Section('.shstrtab', SHT_STRTAB, 0, 0, bytes(shstrtab.data),
                                 len(shstrtab.data)))

        ehsize = 64 if self.is64 else 52
        shentsize = 64 if self.is64 else 40
        alignment = 8 if self.is64 else 4

        body = bytearray()
        offset = ehsize
        for section in sections:
            if section.sh_type == SHT_NOBITS:
                section.offset = offset
                continue
            padding = (-offset) % alignment
            body.extend(b'\0' * padding)
            offset += padding
            section.offset = offset
            body.extend(section.data)
            offset += len(section.data)

        padding = (-offset) % 8
        body.extend(b'\0' * padding)
        shoff = offset + padding

        headers = bytearray(b'\0' * shentsize)  # SHN_UNDEF
        for name_offset, section in zip(name_offsets, sections):
            headers.extend(self._pack_section_header(name_offset, section))

        return self._pack_header(shoff, len(sections) + 1, len(sections)) + bytes(body) + bytes(headers)

    def _section_index(self, name: Optional[str]) -> int:
        if name is None:
            return SHN_ABS
        for index, section in enumerate(self._sections, start=1):
            if section.name == name:
                return index
        raise KeyError(name)

    def _encode_symbols(self, strtab: StringTable) -> bytes:
        entry_size = 24 if self.is64 else 16
        out = bytearray(b'\0' * entry_size)
        for symbol in self._symbols:
            name = strtab.add(symbol.name)
            info = (symbol.bind << 4) | symbol.sym_type
            shndx = self._section_index(symbol.section)
            if self.is64:
                out.extend(struct.pack(self.endian + 'IBBHQQ', name, info, 0, shndx,
                                       symbol.value, symbol.size))
            else:
                out.extend(struct.pack(self.endian + 'IIIBBH', name, symbol.value,
                                       symbol.size, info, 0, shndx))
        return bytes(out)

    def _pack_header(self, shoff: int, shnum: int, shstrndx: int) -> bytes:
        ident = b'\x7fELF' + bytes([
            2 if self.is64 else 1,
            1 if self.endian == '<' else 2,
            1,  # EV_CURRENT
            0,
        ]) + b'\0' * 8
        if self.is64:
            fields = struct.pack(self.endian + 'HHIQQQIHHHHHH',
                                 ET_EXEC, self.machine, 1, self.entry, 0, shoff, 0,
                                 64, 56, 0, 64, shnum, shstrndx)
        else:
            fields = struct.pack(self.endian + 'HHIIIIIHHHHHH',
                                 ET_EXEC, self.machine, 1, self.entry, 0, shoff, 0,
                                 52, 32, 0, 40, shnum, shstrndx)
        return ident + fields

    def _pack_section_header(self, name_offset: int, section: _Section) -> bytes:
        if self.is64:
            return struct.pack(self.endian + 'IIQQQQIIQQ',
                               name_offset, section.sh_type, section.flags, section.addr,
                               section.offset, section.size, section.link, section.info,
                               1, section.entsize)
        return struct.pack(self.endian + 'IIIIIIIIII',
                           name_offset, section.sh_type, section.flags, section.addr,
                           section.offset, section.size, section.link, section.info,
                           1, section.entsize)


@dataclass(eq=False)
class Die:
    """A debug entry to encode: tag, (attribute, form, value) triples, children.

    DW_FORM_ref4 values are other Die objects of the same unit.
    """

    tag: str
    attributes: List[tuple] = field(default_factory=list)
    children: List['Die'] = field(default_factory=list)


class DwarfBuilder:
    """Encodes 32-bit DWARF 4 compilation units"""

    def __init__(self, address_size: int = 4, little_endian: bool = True):
        self.address_size = address_size
        self.endian = '<' if little_endian else '>'
        self.units: List[Die] = []
        self._strings = StringTable()
        self._line = bytearray()

    def add_unit(self, root: Die) -> Die:
        self.units.append(root)
        return root

    def add_line_program(self, files, include_dirs=()) -> int:
        """Append a line program header listing files; returns its offset."""
        e = self.endian
        header = bytearray(struct.pack(e + 'BBBbBB', 2, 1, 1, -5, 14, 13))
        header.extend(bytes([0, 1, 1, 1, 1, 0, 0, 0, 1, 0, 0, 1]))
        for directory in include_dirs:
            header.extend(directory.encode('utf-8') + b'\0')
        header.append(0)
        for name in files:
            header.extend(name.encode('utf-8') + b'\0' + uleb128(0) + uleb128(0) + uleb128(0))
        header.append(0)

        program = b'\x00\x01\x01'  # DW_LNE_end_sequence
        unit = struct.pack(e + 'HI', 4, len(header)) + bytes(header) + program

        offset = len(self._line)
        self._line.extend(struct.pack(e + 'I', len(unit)) + unit)
        return offset

    def sections(self) -> Dict[str, bytes]:
        info = bytearray()
        abbrev = bytearray()
        for root in self.units:
            unit_info, unit_abbrev = self._encode_unit(root, len(abbrev))
            info.extend(unit_info)
            abbrev.extend(unit_abbrev)

        result = {'.debug_info': bytes(info), '.debug_abbrev': bytes(abbrev)}
        if len(self._strings.data) > 1:
            result['.debug_str'] = bytes(self._strings.data)
        if self._line:
            result['.debug_line'] = bytes(self._line)
        return result

    def _encode_unit(self, root: Die, abbrev_offset: int):
        abbrev = bytearray()
        body = bytearray()
        offsets = {}
        fixups = []
        codes = itertools.count(1)

        def emit(die: Die) -> None:
            code = next(codes)
            abbrev.extend(uleb128(code) + uleb128(ENUM_DW_TAG[die.tag]))
            abbrev.append(1 if die.children else 0)
            for attr, form, _ in die.attributes:
                abbrev.extend(uleb128(ENUM_DW_AT[attr]) + uleb128(ENUM_DW_FORM[form]))
            abbrev.extend(b'\0\0')

            offsets[id(die)] = CU_HEADER_SIZE + len(body)
            body.extend(uleb128(code))
            for _, form, value in die.attributes:
                if form == 'DW_FORM_ref4':
                    fixups.append((len(body), value))
                    body.extend(b'\0' * 4)
                else:
                    body.extend(self._encode_value(form, value))

            if die.children:
                for child in die.children:
                    emit(child)
                body.append(0)

        emit(root)
        abbrev.append(0)

        for position, target in fixups:
            struct.pack_into(self.endian + 'I', body, position, offsets[id(target)])

        header = struct.pack(self.endian + 'IHIB', 7 + len(body), 4, abbrev_offset,
                             self.address_size)
        return header + bytes(body), bytes(abbrev)

    def _encode_value(self, form: str, value) -> bytes:
        e = self.endian
        if form == 'DW_FORM_addr':
            return struct.pack(e + ('I' if self.address_size == 4 else 'Q'), value)
        fixed = {
            'DW_FORM_data1': 'B', 'DW_FORM_data2': 'H', 'DW_FORM_data4': 'I',
            'DW_FORM_data8': 'Q', 'DW_FORM_sec_offset': 'I',
        }
        if form in fixed:
            return struct.pack(e + fixed[form], value)
        if form == 'DW_FORM_udata':
            return uleb128(value)
        if form == 'DW_FORM_string':
            return value.encode('utf-8') + b'\0'
        if form == 'DW_FORM_strp':
            return struct.pack(e + 'I', self._strings.add(value))
        if form == 'DW_FORM_flag_present':
            return b''
        if form == 'DW_FORM_flag':
            return bytes([1 if value else 0])
        if form == 'DW_FORM_exprloc':
            return uleb128(len(value)) + bytes(value)
        if form == 'DW_FORM_block1':
            return bytes([len(value)]) + bytes(value)
        raise ValueError(f"Unsupported form {form}")


def encode_rtt_control_block(up=(), down=(), max_up=None, max_down=None,
                             ptr_size: int = 4, little_endian: bool = True) -> bytes:
    """Encode a SEGGER RTT control block.

    up/down are (name_pointer, buffer_address, size) tuples; slots beyond
    them up to the declared maximum counts are zero filled.
    """
    e = '<' if little_endian else '>'
    pointer = 'I' if ptr_size == 4 else 'Q'
    max_up = len(up) if max_up is None else max_up
    max_down = len(down) if max_down is None else max_down

    out = bytearray(b'SEGGER RTT'.ljust(16, b'\0'))
    out.extend(struct.pack(e + 'II', max_up, max_down))
    for entries, count in ((up, max_up), (down, max_down)):
        for index in range(count):
            name_ptr, address, size = entries[index] if index < len(entries) else (0, 0, 0)
            out.extend(struct.pack(e + pointer * 2 + 'IIII', name_ptr, address, size, 0, 0, 0))
    return bytes(out)


def sample_debug_info() -> DwarfBuilder:
    """One C compilation unit with a function, a global and a base type."""
    dwarf = DwarfBuilder()
    line_offset = dwarf.add_line_program(['main.c', 'board.h'])

    int_type = Die('DW_TAG_base_type', [
        ('DW_AT_name', 'DW_FORM_string', 'int'),
        ('DW_AT_byte_size', 'DW_FORM_data1', 4),
        ('DW_AT_encoding', 'DW_FORM_data1', 5),
    ])
    dwarf.add_unit(Die('DW_TAG_compile_unit', [
        ('DW_AT_producer', 'DW_FORM_strp', 'GNU C17 12.2.1'),
        ('DW_AT_language', 'DW_FORM_data1', 0x0c),
        ('DW_AT_name', 'DW_FORM_strp', 'main.c'),
        ('DW_AT_comp_dir', 'DW_FORM_strp', '/build/app'),
        ('DW_AT_low_pc', 'DW_FORM_addr', 0x080001a8),
        ('DW_AT_high_pc', 'DW_FORM_data4', 0x40),
        ('DW_AT_stmt_list', 'DW_FORM_sec_offset', line_offset),
    ], [
        int_type,
        Die('DW_TAG_variable', [
            ('DW_AT_name', 'DW_FORM_strp', 'counter'),
            ('DW_AT_decl_file', 'DW_FORM_data1', 1),
            ('DW_AT_decl_line', 'DW_FORM_data1', 7),
            ('DW_AT_decl_column', 'DW_FORM_data1', 14),
            ('DW_AT_type', 'DW_FORM_ref4', int_type),
            ('DW_AT_external', 'DW_FORM_flag_present', True),
            ('DW_AT_location', 'DW_FORM_exprloc', [0x03, 0x00, 0x01, 0x00, 0x20]),
        ]),
        Die('DW_TAG_subprogram', [
            ('DW_AT_external', 'DW_FORM_flag_present', True),
            ('DW_AT_name', 'DW_FORM_strp', 'main'),
            ('DW_AT_decl_file', 'DW_FORM_data1', 1),
            ('DW_AT_decl_line', 'DW_FORM_data1', 21),
            ('DW_AT_type', 'DW_FORM_ref4', int_type),
            ('DW_AT_low_pc', 'DW_FORM_addr', 0x080001a8),
            ('DW_AT_high_pc', 'DW_FORM_data4', 0x40),
        ]),
    ]))
    return dwarf


def build_sample_firmware(with_dwarf: bool = True) -> bytes:
    """A small Cortex-M style image with RTT, defmt and optional debug info."""
    control_block = encode_rtt_control_block(
        up=[(0x20000060, 0x20000200, 1024)],
        down=[(0x20000070, 0x20000600, 16)],
        max_up=2, max_down=1,
    )

    builder = ElfBuilder(entry=0x08000189)
    builder.add_section('.isr_vector', b'\0' * 0x188, addr=0x08000000, flags=SHF_ALLOC)
    builder.add_section('.text', b'\0' * 0x400, addr=0x08000188,
                        flags=SHF_ALLOC | SHF_EXECINSTR)
    builder.add_section('.rodata', b'\0' * 0x80, addr=0x08000588, flags=SHF_ALLOC)
    builder.add_section('.data', control_block, addr=0x20000000,
                        flags=SHF_ALLOC | SHF_WRITE)
    builder.add_section('.bss', addr=0x20000100, flags=SHF_ALLOC | SHF_WRITE,
                        sh_type=SHT_NOBITS, size=0x800)
    builder.add_section('.defmt', b'\0' * 0x20)
    builder.add_section('.comment', b'GCC: 12.2.1\0')

    builder.add_symbol('Reset_Handler', 0x08000189, 0x20, '.text', STT_FUNC)
    builder.add_symbol('main', 0x080001a9, 0x40, '.text', STT_FUNC)
    builder.add_symbol('_ZN3foo3barE', 0x08000300, 0x8, '.text', STT_FUNC)
    builder.add_symbol('_SEGGER_RTT', 0x20000000, len(control_block), '.data')
    builder.add_symbol('counter', 0x20000100, 4, '.bss')
    builder.add_symbol('printf', 0, 0, None, STT_NOTYPE)

    if with_dwarf:
        builder.add_dwarf(sample_debug_info())
    return builder.build()
