#!/usr/bin/env python3
"""
Data models for firmware analysis results.

All result objects are plain dataclasses built once per parse. Apart from the
one-time conflict annotation of MemorySegment, nothing mutates them after the
extracting call returns.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class MemoryKind(Enum):
    """Memory region kinds"""

    FLASH = "Flash"
    RAM = "Ram"


@dataclass
class MemoryRegion:
    """A named address range declared by a target's memory map"""

    name: str
    start: int
    size: int
    kind: MemoryKind

    @property
    def end(self) -> int:
        """Exclusive end address"""
        return self.start + self.size

    def contains(self, address: int, size: int) -> bool:
        """True if [address, address + size) lies entirely inside the region"""
        return address >= self.start and address + size <= self.end

    def overlaps(self, address: int, size: int) -> bool:
        """True if [address, address + size) intersects the region at all"""
        return not (address + size <= self.start or address >= self.end)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for reports"""
        return {
            'name': self.name,
            'start': self.start,
            'size': self.size,
            'end': self.end,
            'kind': self.kind.value,
        }


@dataclass
class MemorySegment:
    """An allocated ELF section as it will be laid out in target memory"""

    name: str
    address: int
    size: int
    flags: str
    is_load: bool
    conflicts: List[str] = field(default_factory=list)

    @property
    def end(self) -> int:
        """Exclusive end address"""
        return self.address + self.size

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format for reports"""
        return {
            'name': self.name,
            'address': self.address,
            'size': self.size,
            'flags': self.flags,
            'is_load': self.is_load,
            'conflicts': list(self.conflicts),
        }


@dataclass
class ElfSymbol:
    """A flat symbol table record"""

    name: str
    address: int
    size: int


@dataclass
class DefmtInfo:
    """defmt logging sections found in the binary"""

    present: bool = False
    sections: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(size for _, size in self.sections)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'present': self.present,
            'sections': [{'name': name, 'size': size} for name, size in self.sections],
            'total_size': self.total_size,
        }


@dataclass
class RttBufferDescriptor:
    """One used slot of an RTT up/down buffer array"""

    name: str
    buffer_address: int
    size: int


@dataclass
class RttControlBlockInfo:
    """Decoded SEGGER RTT control block"""

    present: bool = False
    symbol_name: Optional[str] = None
    address: Optional[int] = None
    size: Optional[int] = None
    max_up_buffers: Optional[int] = None
    max_down_buffers: Optional[int] = None
    up_buffers: List[RttBufferDescriptor] = field(default_factory=list)
    down_buffers: List[RttBufferDescriptor] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'present': self.present,
            'symbol_name': self.symbol_name,
            'address': self.address,
            'size': self.size,
            'max_up_buffers': self.max_up_buffers,
            'max_down_buffers': self.max_down_buffers,
            'up_buffers': [buf.__dict__ for buf in self.up_buffers],
            'down_buffers': [buf.__dict__ for buf in self.down_buffers],
        }


class DwarfTag(Enum):
    """Categories of debug entries kept in the symbol tree"""

    COMPILE_UNIT = "CompileUnit"
    SUBPROGRAM = "Subprogram"
    VARIABLE = "Variable"
    FORMAL_PARAMETER = "FormalParameter"
    LEXICAL_BLOCK = "LexicalBlock"
    INLINED_SUBROUTINE = "InlinedSubroutine"
    STRUCTURE_TYPE = "StructureType"
    UNION_TYPE = "UnionType"
    ENUMERATION_TYPE = "EnumerationType"
    MEMBER = "Member"
    TYPEDEF = "Typedef"
    NAMESPACE = "Namespace"
    OTHER = "Other"

    @property
    def sort_rank(self) -> int:
        """Ordering group used when sorting sibling nodes"""
        return _TAG_SORT_RANK.get(self, 5)


_TAG_SORT_RANK = {
    DwarfTag.SUBPROGRAM: 0,
    DwarfTag.VARIABLE: 1,
    DwarfTag.STRUCTURE_TYPE: 2,
    DwarfTag.UNION_TYPE: 2,
    DwarfTag.ENUMERATION_TYPE: 2,
    DwarfTag.TYPEDEF: 3,
    DwarfTag.NAMESPACE: 4,
}


@dataclass
class DwarfSymbolNode:
    """A node of the debug symbol tree. Parents own their children."""

    id: int
    name: str
    tag: DwarfTag
    address: Optional[int] = None
    size: Optional[int] = None
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    type_name: Optional[str] = None
    children: List['DwarfSymbolNode'] = field(default_factory=list)
    attributes: List[Tuple[str, str]] = field(default_factory=list)

    def iter_preorder(self) -> Iterator['DwarfSymbolNode']:
        """Yield this node and all descendants in depth-first pre-order"""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'tag': self.tag.value,
            'address': self.address,
            'size': self.size,
            'file': self.file,
            'line': self.line,
            'column': self.column,
            'type_name': self.type_name,
            'attributes': [list(attr) for attr in self.attributes],
            'children': [child.to_dict() for child in self.children],
        }


@dataclass
class DwarfInfo:
    """Debug symbol trees for every compilation unit"""

    present: bool = False
    compile_units: List[DwarfSymbolNode] = field(default_factory=list)
    total_symbols: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'present': self.present,
            'total_symbols': self.total_symbols,
            'compile_units': [unit.to_dict() for unit in self.compile_units],
        }
