#!/usr/bin/env python3
"""
DWARF attribute value classification and formatting.

Every attribute form belongs to one FormKind. Formatting dispatches on the
kind, with a few attributes (enumerations, file indices, section bases)
rendered by attribute name instead. Formatting never raises: anything that
cannot be rendered falls back to the raw form and value.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Optional

from elftools.common.exceptions import DWARFError, ELFError
from elftools.dwarf import constants as dwarf_constants

from .symbols import demangle_name

logger = logging.getLogger(__name__)

# Errors pyelftools raises while chasing references into malformed data
LOOKUP_ERRORS = (ELFError, DWARFError, KeyError, IndexError, ValueError)
FORMAT_ERRORS = LOOKUP_ERRORS + (TypeError, AttributeError)

MAX_FULL_DUMP = 16
TRUNCATED_DUMP = 8


class FormKind(Enum):
    """Value kinds of DWARF attribute forms"""

    ADDRESS = "address"
    CONSTANT = "constant"
    BLOCK = "block"
    EXPRESSION = "exprloc"
    FLAG = "flag"
    STRING = "string"
    SUP_STRING = "sup_string"
    UNIT_REFERENCE = "unit_reference"
    INFO_REFERENCE = "info_reference"
    SUP_REFERENCE = "sup_reference"
    TYPE_SIGNATURE = "type_signature"
    SECTION_OFFSET = "section_offset"
    LOCLIST_INDEX = "loclist_index"
    RNGLIST_INDEX = "rnglist_index"
    OTHER = "other"


FORM_KINDS: Dict[str, FormKind] = {
    'DW_FORM_addr': FormKind.ADDRESS,
    'DW_FORM_addrx': FormKind.ADDRESS,
    'DW_FORM_addrx1': FormKind.ADDRESS,
    'DW_FORM_addrx2': FormKind.ADDRESS,
    'DW_FORM_addrx3': FormKind.ADDRESS,
    'DW_FORM_addrx4': FormKind.ADDRESS,
    'DW_FORM_GNU_addr_index': FormKind.ADDRESS,
    'DW_FORM_data1': FormKind.CONSTANT,
    'DW_FORM_data2': FormKind.CONSTANT,
    'DW_FORM_data4': FormKind.CONSTANT,
    'DW_FORM_data8': FormKind.CONSTANT,
    'DW_FORM_sdata': FormKind.CONSTANT,
    'DW_FORM_udata': FormKind.CONSTANT,
    'DW_FORM_implicit_const': FormKind.CONSTANT,
    'DW_FORM_block1': FormKind.BLOCK,
    'DW_FORM_block2': FormKind.BLOCK,
    'DW_FORM_block4': FormKind.BLOCK,
    'DW_FORM_block': FormKind.BLOCK,
    'DW_FORM_exprloc': FormKind.EXPRESSION,
    'DW_FORM_flag': FormKind.FLAG,
    'DW_FORM_flag_present': FormKind.FLAG,
    'DW_FORM_string': FormKind.STRING,
    'DW_FORM_strp': FormKind.STRING,
    'DW_FORM_line_strp': FormKind.STRING,
    'DW_FORM_strx': FormKind.STRING,
    'DW_FORM_strx1': FormKind.STRING,
    'DW_FORM_strx2': FormKind.STRING,
    'DW_FORM_strx3': FormKind.STRING,
    'DW_FORM_strx4': FormKind.STRING,
    'DW_FORM_GNU_str_index': FormKind.STRING,
    'DW_FORM_GNU_strp_alt': FormKind.SUP_STRING,
    'DW_FORM_strp_sup': FormKind.SUP_STRING,
    'DW_FORM_ref1': FormKind.UNIT_REFERENCE,
    'DW_FORM_ref2': FormKind.UNIT_REFERENCE,
    'DW_FORM_ref4': FormKind.UNIT_REFERENCE,
    'DW_FORM_ref8': FormKind.UNIT_REFERENCE,
    'DW_FORM_ref_udata': FormKind.UNIT_REFERENCE,
    'DW_FORM_ref_addr': FormKind.INFO_REFERENCE,
    'DW_FORM_GNU_ref_alt': FormKind.SUP_REFERENCE,
    'DW_FORM_ref_sup4': FormKind.SUP_REFERENCE,
    'DW_FORM_ref_sup8': FormKind.SUP_REFERENCE,
    'DW_FORM_ref_sig8': FormKind.TYPE_SIGNATURE,
    'DW_FORM_sec_offset': FormKind.SECTION_OFFSET,
    'DW_FORM_loclistx': FormKind.LOCLIST_INDEX,
    'DW_FORM_rnglistx': FormKind.RNGLIST_INDEX,
}

# Plain integer encodings accepted for sizes, lines and offsets
UNSIGNED_DATA_FORMS = frozenset((
    'DW_FORM_udata', 'DW_FORM_data1', 'DW_FORM_data2', 'DW_FORM_data4', 'DW_FORM_data8',
))


def form_kind(form: str) -> FormKind:
    """Classify an attribute form, OTHER for anything unknown."""
    return FORM_KINDS.get(form, FormKind.OTHER)


def _constant_names(prefix: str) -> Dict[int, str]:
    names: Dict[int, str] = {}
    for name, value in vars(dwarf_constants).items():
        if not name.startswith(prefix) or not isinstance(value, int):
            continue
        if name.endswith(('_lo_user', '_hi_user')):
            continue
        names.setdefault(value, name)
    return names


# Not provided by elftools.dwarf.constants
ENDIANITY_NAMES = {
    0x00: 'DW_END_default',
    0x01: 'DW_END_big',
    0x02: 'DW_END_little',
}

DECIMAL_SIGN_NAMES = {
    0x01: 'DW_DS_unsigned',
    0x02: 'DW_DS_leading_overpunch',
    0x03: 'DW_DS_trailing_overpunch',
    0x04: 'DW_DS_leading_separate',
    0x05: 'DW_DS_trailing_separate',
}

# Attributes whose constant value is a DWARF enumeration
ENUMERATED_ATTRIBUTES: Dict[str, Dict[int, str]] = {
    'DW_AT_encoding': _constant_names('DW_ATE_'),
    'DW_AT_language': _constant_names('DW_LANG_'),
    'DW_AT_accessibility': _constant_names('DW_ACCESS_'),
    'DW_AT_visibility': _constant_names('DW_VIS_'),
    'DW_AT_virtuality': _constant_names('DW_VIRTUALITY_'),
    'DW_AT_inline': _constant_names('DW_INL_'),
    'DW_AT_calling_convention': _constant_names('DW_CC_'),
    'DW_AT_identifier_case': _constant_names('DW_ID_'),
    'DW_AT_ordering': _constant_names('DW_ORD_'),
    'DW_AT_endianity': ENDIANITY_NAMES,
    'DW_AT_decimal_sign': DECIMAL_SIGN_NAMES,
}

# Attributes whose value is an offset into another debug section
SECTION_BASE_ATTRIBUTES = {
    'DW_AT_stmt_list': '.debug_line',
    'DW_AT_str_offsets_base': '.debug_str_offsets',
    'DW_AT_addr_base': '.debug_addr',
    'DW_AT_GNU_addr_base': '.debug_addr',
    'DW_AT_loclists_base': '.debug_loclists',
    'DW_AT_rnglists_base': '.debug_rnglists',
    'DW_AT_macro_info': '.debug_macinfo',
    'DW_AT_macros': '.debug_macro',
    'DW_AT_GNU_macros': '.debug_macro',
}

FILE_INDEX_ATTRIBUTES = frozenset(('DW_AT_decl_file', 'DW_AT_call_file'))
DWO_ID_ATTRIBUTES = frozenset(('DW_AT_dwo_id', 'DW_AT_GNU_dwo_id'))


def decode_string(value) -> Optional[str]:
    """Decode a DWARF string attribute value, replacing invalid UTF-8."""
    if isinstance(value, bytes):
        return value.decode('utf-8', errors='replace')
    if isinstance(value, str):
        return value
    return None


def hex_dump(data, prefix: str = '') -> str:
    """Space separated hex bytes, truncated after 8 bytes when longer than 16."""
    octets = [f"{byte:02x}" for byte in data]
    if len(octets) <= MAX_FULL_DUMP:
        return f"{prefix}[{' '.join(octets)}]"
    return f"{prefix}[{' '.join(octets[:TRUNCATED_DUMP])} ... ({len(octets)} bytes)]"


def string_attribute(die, name: str) -> Optional[str]:
    """Value of a string-class attribute, or None when absent or not a string."""
    attr = die.attributes.get(name)
    if attr is None or form_kind(attr.form) != FormKind.STRING:
        return None
    return decode_string(attr.value)


def referenced_die(die, attr):
    """Follow an intra-unit reference; None when it cannot be resolved."""
    try:
        return die.cu.get_DIE_from_refaddr(die.cu.cu_offset + attr.raw_value)
    except LOOKUP_ERRORS as e:
        logger.debug("Unresolvable reference 0x%x from DIE at 0x%x: %s",
                     attr.raw_value, die.offset, e)
        return None


class FileTable:
    """File names of a compilation unit's line program, by file index"""

    def __init__(self, line_program=None):
        self._names = []
        self._version = 0
        if line_program is not None:
            self._version = line_program.header['version']
            self._names = [
                decode_string(entry.name) for entry in line_program.header['file_entry']
            ]

    def name(self, index: int) -> Optional[str]:
        """File name for a decl_file style index. Index 0 means no file."""
        if index <= 0:
            return None
        # DWARF 5 file tables are 0-based, earlier versions 1-based
        position = index if self._version >= 5 else index - 1
        if position >= len(self._names):
            return None
        return self._names[position]


class AttributeFormatter:
    """Renders DIE attribute values as display strings"""

    def __init__(self, file_table: FileTable):
        self.file_table = file_table
        self._kind_formatters: Dict[FormKind, Callable] = {
            FormKind.ADDRESS: self._format_address,
            FormKind.CONSTANT: self._format_constant,
            FormKind.BLOCK: self._format_block,
            FormKind.EXPRESSION: self._format_expression,
            FormKind.FLAG: self._format_flag,
            FormKind.STRING: self._format_string,
            FormKind.SUP_STRING: lambda die, attr: f".debug_str.sup+0x{attr.raw_value:x}",
            FormKind.UNIT_REFERENCE: self._format_unit_reference,
            FormKind.INFO_REFERENCE: lambda die, attr: f".debug_info+0x{attr.raw_value:x}",
            FormKind.SUP_REFERENCE: lambda die, attr: f".debug_info.sup+0x{attr.raw_value:x}",
            FormKind.TYPE_SIGNATURE: lambda die, attr: f"type_sig 0x{attr.raw_value:016x}",
            FormKind.SECTION_OFFSET: lambda die, attr: f"offset 0x{attr.value:x}",
            FormKind.LOCLIST_INDEX: lambda die, attr: f"loclist[{attr.raw_value}]",
            FormKind.RNGLIST_INDEX: lambda die, attr: f"rnglist[{attr.raw_value}]",
        }

    def format(self, die, attr) -> str:
        """Format one attribute of a DIE. Never raises."""
        try:
            formatted = self._format_by_name(attr)
            if formatted is None:
                formatter = self._kind_formatters.get(form_kind(attr.form))
                if formatter is not None:
                    formatted = formatter(die, attr)
        except FORMAT_ERRORS as e:
            logger.debug("Cannot format %s (%s) at 0x%x: %s",
                         attr.name, attr.form, die.offset, e)
            formatted = None

        if formatted is None:
            return f"{attr.form}({attr.value!r})"
        return formatted

    def _format_by_name(self, attr) -> Optional[str]:
        """Attributes rendered by meaning rather than by form."""
        if not isinstance(attr.value, int) or isinstance(attr.value, bool):
            return None
        kind = form_kind(attr.form)

        if attr.name in ENUMERATED_ATTRIBUTES and kind == FormKind.CONSTANT:
            return ENUMERATED_ATTRIBUTES[attr.name].get(attr.value, '?')
        if attr.name in FILE_INDEX_ATTRIBUTES and kind == FormKind.CONSTANT:
            return self.file_table.name(attr.value) or f"file[{attr.value}]"
        if attr.name in SECTION_BASE_ATTRIBUTES and kind in (FormKind.SECTION_OFFSET,
                                                             FormKind.CONSTANT):
            return f"{SECTION_BASE_ATTRIBUTES[attr.name]}+0x{attr.value:x}"
        if attr.name in DWO_ID_ATTRIBUTES and kind == FormKind.CONSTANT:
            return f"dwo_id 0x{attr.value:016x}"
        if attr.name == 'DW_AT_address_class' and kind == FormKind.CONSTANT:
            return f"addr_class({attr.value})"
        return None

    @staticmethod
    def _format_address(die, attr) -> Optional[str]:
        if isinstance(attr.value, int):
            return f"0x{attr.value:08x}"
        return None

    @staticmethod
    def _format_constant(die, attr) -> Optional[str]:
        if isinstance(attr.value, int):
            return str(attr.value)
        return None

    @staticmethod
    def _format_block(die, attr) -> str:
        return hex_dump(attr.value)

    @staticmethod
    def _format_expression(die, attr) -> str:
        if not attr.value:
            return "<empty expr>"
        return hex_dump(attr.value, prefix='expr')

    @staticmethod
    def _format_flag(die, attr) -> str:
        return "true" if attr.value else "false"

    @staticmethod
    def _format_string(die, attr) -> str:
        text = decode_string(attr.value)
        if text is None:
            # Index forms left unresolved by pyelftools
            return f"str[{attr.raw_value}]"
        return text

    @staticmethod
    def _format_unit_reference(die, attr) -> str:
        target = referenced_die(die, attr)
        if target is None:
            return f"ref 0x{attr.raw_value:x}"
        name = string_attribute(target, 'DW_AT_name')
        if name is not None:
            return demangle_name(name)
        return f"<{target.tag}> @ 0x{attr.raw_value:x}"
