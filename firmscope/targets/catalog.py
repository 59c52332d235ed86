#!/usr/bin/env python3
"""
catalog.py - Memory region catalog

Turns a target's raw memory map into sorted, kind-tagged MemoryRegion objects
used for conflict detection.
"""

import logging
from typing import List, Optional

from ..exceptions import EmptyMemoryMapError
from ..models import MemoryKind, MemoryRegion
from .database import KIND_NVM, KIND_RAM, RawMemoryEntry, TargetDatabase

logger = logging.getLogger(__name__)

DEFAULT_REGION_NAMES = {
    KIND_RAM: "RAM",
    KIND_NVM: "FLASH",
}
DEFAULT_GENERIC_NAME = "GENERIC"


class RegionKindDetector:
    """Determines the memory kind of a raw memory map entry"""

    @staticmethod
    def detect_kind(entry: RawMemoryEntry) -> MemoryKind:
        """RAM entries are Ram, non-volatile entries are Flash, generic
        entries are Ram only when their name mentions "ram"."""
        if entry.kind == KIND_RAM:
            return MemoryKind.RAM
        if entry.kind == KIND_NVM:
            return MemoryKind.FLASH
        if entry.name and 'ram' in entry.name.lower():
            return MemoryKind.RAM
        return MemoryKind.FLASH


class MemoryRegionCatalog:
    """Normalizes target memory maps into MemoryRegion lists"""

    def __init__(self, database: Optional[TargetDatabase] = None):
        self.database = database if database is not None else TargetDatabase.default()

    def lookup(self, target_name: str) -> List[MemoryRegion]:
        """Memory regions of a target sorted by start address.

        Overlapping or duplicated entries are preserved; ties keep their
        declaration order.

        Raises:
            TargetNotFoundError: If the target is unknown
            EmptyMemoryMapError: If the target declares no memory
        """
        entries = self.database.memory_map(target_name)

        regions = [self._build_region(entry) for entry in entries]
        if not regions:
            raise EmptyMemoryMapError(f"No memory regions found in target '{target_name}'")

        regions.sort(key=lambda r: r.start)
        logger.info("Loaded %d memory regions for target %s", len(regions), target_name)
        return regions

    @staticmethod
    def _build_region(entry: RawMemoryEntry) -> MemoryRegion:
        name = entry.name or DEFAULT_REGION_NAMES.get(entry.kind, DEFAULT_GENERIC_NAME)
        return MemoryRegion(
            name=name,
            start=entry.start,
            size=max(entry.end - entry.start, 0),
            kind=RegionKindDetector.detect_kind(entry),
        )


def lookup_memory_map(target_name: str,
                      database: Optional[TargetDatabase] = None) -> List[MemoryRegion]:
    """Convenience function to get a target's memory regions"""
    return MemoryRegionCatalog(database).lookup(target_name)
