#!/usr/bin/env python3
"""
DWARF debug information processing into a browsable symbol tree.

Each compilation unit becomes a root node. Its debug entries are walked
recursively and the entries describing program entities (functions,
variables, types, ...) become nodes with demangled names, resolved types,
sizes and source locations, plus every raw attribute formatted for display.

Node ids come from a flat per-build store: a node's id is the store length
when it is created, which numbers nodes in depth-first pre-order across the
whole binary.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from elftools.common.exceptions import ELFError

from ..exceptions import DWARFParsingError
from ..models import DwarfInfo, DwarfSymbolNode, DwarfTag
from .attributes import (
    UNSIGNED_DATA_FORMS, AttributeFormatter, FileTable, FormKind, form_kind,
    referenced_die, string_attribute,
)
from .elf import open_elf
from .symbols import demangle_name

logger = logging.getLogger(__name__)

UNKNOWN_UNIT_NAME = '<unknown>'

# Debug entry tags that produce tree nodes
TAG_CATEGORIES: Dict[str, DwarfTag] = {
    'DW_TAG_subprogram': DwarfTag.SUBPROGRAM,
    'DW_TAG_variable': DwarfTag.VARIABLE,
    'DW_TAG_formal_parameter': DwarfTag.FORMAL_PARAMETER,
    'DW_TAG_lexical_block': DwarfTag.LEXICAL_BLOCK,
    'DW_TAG_inlined_subroutine': DwarfTag.INLINED_SUBROUTINE,
    'DW_TAG_structure_type': DwarfTag.STRUCTURE_TYPE,
    'DW_TAG_union_type': DwarfTag.UNION_TYPE,
    'DW_TAG_enumeration_type': DwarfTag.ENUMERATION_TYPE,
    'DW_TAG_member': DwarfTag.MEMBER,
    'DW_TAG_typedef': DwarfTag.TYPEDEF,
    'DW_TAG_namespace': DwarfTag.NAMESPACE,
    'DW_TAG_enumerator': DwarfTag.MEMBER,
}

PLACEHOLDER_NAMES = {
    DwarfTag.LEXICAL_BLOCK: '<block>',
    DwarfTag.INLINED_SUBROUTINE: '<inlined>',
}
ANONYMOUS_NAME = '<anonymous>'

LINKAGE_NAME_ATTRIBUTES = ('DW_AT_linkage_name', 'DW_AT_MIPS_linkage_name')

LINE_FORMS = frozenset(('DW_FORM_udata', 'DW_FORM_data1', 'DW_FORM_data2', 'DW_FORM_data4'))
COLUMN_FORMS = frozenset(('DW_FORM_udata', 'DW_FORM_data1', 'DW_FORM_data2'))


class SkippedTagPolicy(Enum):
    """What happens to the descendants of an entry whose tag is not kept.

    DISCARD drops the whole subtree. REATTACH hoists kept descendants into
    the nearest kept ancestor.
    """

    DISCARD = "discard"
    REATTACH = "reattach"


def _sibling_sort_key(node: DwarfSymbolNode):
    """Category rank, then addressed nodes by address, then the rest by name."""
    if node.address is not None:
        return (node.tag.sort_rank, 0, node.address, '')
    return (node.tag.sort_rank, 1, 0, node.name)


def _unsigned_value(die, name: str, forms) -> Optional[int]:
    attr = die.attributes.get(name)
    if attr is None or attr.form not in forms or not isinstance(attr.value, int):
        return None
    return attr.value


class DWARFTreeBuilder:
    """Builds DwarfSymbolNode trees from an ELF file's debug information"""

    def __init__(self, elffile, skipped_tag_policy: SkippedTagPolicy = SkippedTagPolicy.DISCARD):
        """Initialize with an open ELF file.

        Args:
            elffile: Open ELF file object from pyelftools
            skipped_tag_policy: Handling of descendants of entries that are
                not kept in the tree
        """
        self.elffile = elffile
        self.skipped_tag_policy = skipped_tag_policy
        self._nodes: List[DwarfSymbolNode] = []

    def build(self) -> DwarfInfo:
        """Build the symbol tree of every compilation unit.

        Returns:
            DwarfInfo; present=False when the binary has no debug information

        Raises:
            DWARFParsingError: If the debug sections are malformed
        """
        self._nodes = []

        try:
            if (self.elffile.get_section_by_name('.debug_info') is None and
                    self.elffile.get_section_by_name('.zdebug_info') is None):
                logger.debug("No DWARF debug information found in ELF file")
                return DwarfInfo()

            dwarfinfo = self.elffile.get_dwarf_info()
            compile_units = []
            total_symbols = 0

            for cu in dwarfinfo.iter_CUs():
                first_id = len(self._nodes)
                root = self._build_compile_unit(dwarfinfo, cu)
                if root is None:
                    continue
                compile_units.append(root)
                total_symbols += len(self._nodes) - first_id

        except (IOError, OSError) as e:
            logger.error("Failed to read ELF file for DWARF parsing: %s", e)
            raise DWARFParsingError(f"Failed to read ELF file for DWARF parsing: {e}") from e
        except ELFError as e:
            logger.error("Invalid DWARF data: %s", e)
            raise DWARFParsingError(f"Invalid DWARF data: {e}") from e
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Unexpected error during DWARF parsing: %s", e)
            raise DWARFParsingError(f"Unexpected error during DWARF parsing: {e}") from e

        logger.info("Found %d DWARF compile units with %d total symbols",
                    len(compile_units), total_symbols)
        return DwarfInfo(
            present=bool(compile_units),
            compile_units=compile_units,
            total_symbols=total_symbols,
        )

    def _allocate(self, **fields) -> DwarfSymbolNode:
        """Create a node whose id is its position in the flat store."""
        node = DwarfSymbolNode(id=len(self._nodes), **fields)
        self._nodes.append(node)
        return node

    def _build_compile_unit(self, dwarfinfo, cu) -> Optional[DwarfSymbolNode]:
        top_die = cu.get_top_DIE()
        if top_die.tag != 'DW_TAG_compile_unit':
            logger.debug("Skipping %s at offset 0x%x", top_die.tag, cu.cu_offset)
            return None

        name = string_attribute(top_die, 'DW_AT_name') or UNKNOWN_UNIT_NAME
        comp_dir = string_attribute(top_die, 'DW_AT_comp_dir')
        formatter = AttributeFormatter(FileTable(dwarfinfo.line_program_for_CU(cu)))

        root = self._allocate(
            name=name,
            tag=DwarfTag.COMPILE_UNIT,
            file=f"{comp_dir}/{name}" if comp_dir else name,
            attributes=self._capture_attributes(top_die, formatter),
        )
        root.children = self._build_children(top_die, formatter)
        logger.debug("Compile unit %s: %d symbols", name, len(self._nodes) - root.id)
        return root

    def _build_children(self, die, formatter: AttributeFormatter) -> List[DwarfSymbolNode]:
        children = []
        for child in die.iter_children():
            children.extend(self._visit(child, formatter))
        children.sort(key=_sibling_sort_key)
        return children

    def _visit(self, die, formatter: AttributeFormatter) -> List[DwarfSymbolNode]:
        """Nodes contributed by one entry to its parent's child list."""
        tag = TAG_CATEGORIES.get(die.tag)
        if tag is not None:
            return [self._build_node(die, tag, formatter)]
        return self._visit_skipped(die, formatter)

    def _visit_skipped(self, die, formatter: AttributeFormatter) -> List[DwarfSymbolNode]:
        """Apply the skipped-tag policy to an entry that is not kept."""
        if not die.has_children:
            return []

        if self.skipped_tag_policy == SkippedTagPolicy.REATTACH:
            hoisted = []
            for child in die.iter_children():
                hoisted.extend(self._visit(child, formatter))
            return hoisted

        logger.debug("Discarding descendants of %s at 0x%x", die.tag, die.offset)
        return []

    def _build_node(self, die, tag: DwarfTag, formatter: AttributeFormatter) -> DwarfSymbolNode:
        file, line, column = self._resolve_location(die, formatter.file_table)
        node = self._allocate(
            name=self._resolve_name(die, tag),
            tag=tag,
            address=self._resolve_address(die),
            size=self._resolve_size(die),
            file=file,
            line=line,
            column=column,
            type_name=self._resolve_type_name(die),
            attributes=self._capture_attributes(die, formatter),
        )
        node.children = self._build_children(die, formatter)
        return node

    @staticmethod
    def _resolve_name(die, tag: DwarfTag) -> str:
        """Linkage name, else plain name, demangled; placeholder if unnamed."""
        for attr_name in LINKAGE_NAME_ATTRIBUTES + ('DW_AT_name',):
            name = string_attribute(die, attr_name)
            if name is not None:
                return demangle_name(name)
        return PLACEHOLDER_NAMES.get(tag, ANONYMOUS_NAME)

    @staticmethod
    def _resolve_address(die) -> Optional[int]:
        attr = die.attributes.get('DW_AT_low_pc')
        if attr is None or not isinstance(attr.value, int):
            return None
        if form_kind(attr.form) == FormKind.ADDRESS or attr.form == 'DW_FORM_udata':
            return attr.value
        return None

    @classmethod
    def _resolve_size(cls, die) -> Optional[int]:
        """Explicit byte size, else the extent of the pc range."""
        byte_size = _unsigned_value(die, 'DW_AT_byte_size', UNSIGNED_DATA_FORMS)
        if byte_size is not None:
            return byte_size

        low_pc = cls._resolve_address(die)
        high_pc = die.attributes.get('DW_AT_high_pc')
        if low_pc is None or high_pc is None or not isinstance(high_pc.value, int):
            return None

        # DWARF 4+ encodes high_pc as an offset from low_pc in a constant form
        if high_pc.form in UNSIGNED_DATA_FORMS:
            return high_pc.value
        if form_kind(high_pc.form) == FormKind.ADDRESS and high_pc.value >= low_pc:
            return high_pc.value - low_pc
        return None

    @staticmethod
    def _resolve_location(die, file_table: FileTable):
        file = None
        file_index = _unsigned_value(die, 'DW_AT_decl_file', UNSIGNED_DATA_FORMS)
        if file_index:
            file = file_table.name(file_index)

        line = _unsigned_value(die, 'DW_AT_decl_line', LINE_FORMS)
        column = _unsigned_value(die, 'DW_AT_decl_column', COLUMN_FORMS)
        return file, line, column

    @staticmethod
    def _resolve_type_name(die) -> Optional[str]:
        """Plain name of the entry referenced by DW_AT_type, if any."""
        attr = die.attributes.get('DW_AT_type')
        if attr is None or form_kind(attr.form) != FormKind.UNIT_REFERENCE:
            return None
        type_die = referenced_die(die, attr)
        if type_die is None:
            return None
        return string_attribute(type_die, 'DW_AT_name')

    @staticmethod
    def _capture_attributes(die, formatter: AttributeFormatter):
        attributes = []
        for attr_name, attr in die.attributes.items():
            if not isinstance(attr_name, str):
                attr_name = f"DW_AT_0x{attr_name:x}"
            attributes.append((attr_name, formatter.format(die, attr)))
        return attributes


def build_dwarf_tree(data: bytes,
                     skipped_tag_policy: SkippedTagPolicy = SkippedTagPolicy.DISCARD) -> DwarfInfo:
    """Build the debug symbol tree of an ELF image.

    Raises:
        ELFFormatError: If the container cannot be parsed
        DWARFParsingError: If the debug sections are malformed
    """
    return DWARFTreeBuilder(open_elf(data), skipped_tag_policy).build()
