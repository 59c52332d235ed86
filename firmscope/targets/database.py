#!/usr/bin/env python3
"""
database.py - Target descriptor database

Target descriptions are probe-rs style YAML "family" files. Each family lists
chip variants and every variant declares a memory map whose entries are
tagged with the kind of memory they describe:

    variants:
    - name: STM32F407VGTx
      memory_map:
      - !Ram
        range: {start: 0x20000000, end: 0x20020000}
      - !Nvm
        range: {start: 0x08000000, end: 0x08100000}

A small set of targets ships with the package. Additional directories come
from the FIRMSCOPE_TARGETS_PATH environment variable (os.pathsep separated)
or are passed explicitly; later directories override earlier variants.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import yaml

from ..exceptions import TargetDatabaseError, TargetNotFoundError

logger = logging.getLogger(__name__)

BUILTIN_TARGETS_DIR = Path(__file__).parent / 'data'
TARGETS_PATH_ENV = 'FIRMSCOPE_TARGETS_PATH'
TARGET_FILE_PATTERNS = ('*.yaml', '*.yml')

# Entry kinds as tagged in target files
KIND_RAM = 'ram'
KIND_NVM = 'nvm'
KIND_GENERIC = 'generic'

_TAG_KINDS = {
    'Ram': KIND_RAM,
    'Nvm': KIND_NVM,
    'Flash': KIND_NVM,    # older probe-rs files
    'Generic': KIND_GENERIC,
}


@dataclass
class RawMemoryEntry:
    """A memory map entry exactly as declared by a target description"""

    kind: str
    start: int
    end: int
    name: Optional[str] = None


@dataclass
class _Tagged:
    """A YAML node carrying a custom '!Tag'"""

    tag: str
    value: Any


class _TargetFileLoader(yaml.SafeLoader):
    """SafeLoader that accepts the '!Tag' enum syntax used in target files"""


def _construct_tagged(loader, tag_suffix, node):
    if isinstance(node, yaml.MappingNode):
        value = loader.construct_mapping(node, deep=True)
    elif isinstance(node, yaml.SequenceNode):
        value = loader.construct_sequence(node, deep=True)
    else:
        value = loader.construct_scalar(node)
    return _Tagged(tag_suffix, value)


_TargetFileLoader.add_multi_constructor('!', _construct_tagged)


class TargetDatabase:
    """Lookup table of chip variants and their memory maps"""

    def __init__(self, variants: Optional[Dict[str, List[RawMemoryEntry]]] = None):
        self._variants: Dict[str, List[RawMemoryEntry]] = dict(variants or {})

    @classmethod
    def default(cls, extra_paths: Iterable[Union[str, Path]] = ()) -> 'TargetDatabase':
        """Built-in targets, then FIRMSCOPE_TARGETS_PATH, then extra_paths."""
        paths: List[Union[str, Path]] = [BUILTIN_TARGETS_DIR]
        env_value = os.environ.get(TARGETS_PATH_ENV, '')
        paths.extend(p for p in env_value.split(os.pathsep) if p)
        paths.extend(extra_paths)
        return cls.from_directories(paths)

    @classmethod
    def from_directories(cls, paths: Iterable[Union[str, Path]]) -> 'TargetDatabase':
        """Load every YAML family file found in the given directories."""
        database = cls()
        for directory in paths:
            directory = Path(directory)
            if not directory.is_dir():
                logger.warning("Target directory not found: %s", directory)
                continue
            files = sorted(
                f for pattern in TARGET_FILE_PATTERNS for f in directory.glob(pattern))
            for family_file in files:
                database.load_family_file(family_file)
        logger.debug("Loaded %d targets", len(database._variants))
        return database

    @classmethod
    def from_mapping(cls, mapping: Dict[str, List[Dict[str, Any]]]) -> 'TargetDatabase':
        """Build a database from plain dictionaries.

        Args:
            mapping: target name -> list of {'kind', 'start', 'end', 'name'}
        """
        variants = {}
        for target_name, entries in mapping.items():
            variants[target_name] = [
                RawMemoryEntry(
                    kind=entry['kind'],
                    start=int(entry['start']),
                    end=int(entry['end']),
                    name=entry.get('name'),
                )
                for entry in entries
            ]
        return cls(variants)

    def load_family_file(self, path: Union[str, Path]) -> None:
        """Parse one family file and register its variants.

        Raises:
            TargetDatabaseError: If the file is unreadable or malformed
        """
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                document = yaml.load(f, Loader=_TargetFileLoader)
        except (IOError, OSError) as e:
            raise TargetDatabaseError(f"Cannot read target file {path}: {e}") from e
        except yaml.YAMLError as e:
            logger.error("Invalid target file %s: %s", path, e)
            raise TargetDatabaseError(f"Invalid target file {path}: {e}") from e

        if not isinstance(document, dict):
            raise TargetDatabaseError(f"Target file {path} is not a mapping")

        for variant in document.get('variants') or []:
            try:
                name = variant['name']
                entries = [self._parse_entry(e) for e in variant.get('memory_map') or []]
            except (KeyError, TypeError, ValueError) as e:
                raise TargetDatabaseError(
                    f"Malformed variant in target file {path}: {e}") from e
            if name in self._variants:
                logger.debug("Target %s redefined by %s", name, path)
            self._variants[name] = entries

    @staticmethod
    def _parse_entry(entry: Any) -> RawMemoryEntry:
        if isinstance(entry, _Tagged):
            kind = _TAG_KINDS.get(entry.tag)
            if kind is None:
                logger.debug("Unknown memory kind !%s treated as generic", entry.tag)
                kind = KIND_GENERIC
            body = entry.value
        else:
            kind = KIND_GENERIC
            body = entry

        memory_range = body['range']
        return RawMemoryEntry(
            kind=kind,
            start=int(memory_range['start']),
            end=int(memory_range['end']),
            name=body.get('name'),
        )

    def target_names(self) -> List[str]:
        """All known target names, sorted."""
        return sorted(self._variants)

    def memory_map(self, target_name: str) -> List[RawMemoryEntry]:
        """Raw memory map of a target.

        The exact name is tried first, then a case-insensitive match.

        Raises:
            TargetNotFoundError: If the target is unknown
        """
        if target_name in self._variants:
            return list(self._variants[target_name])

        wanted = target_name.lower()
        for name, entries in self._variants.items():
            if name.lower() == wanted:
                return list(entries)

        raise TargetNotFoundError(f"Failed to find target '{target_name}' in target database")
