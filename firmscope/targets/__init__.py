"""Target descriptor database and memory region catalog."""

from .catalog import MemoryRegionCatalog, RegionKindDetector, lookup_memory_map
from .database import RawMemoryEntry, TargetDatabase

__all__ = [
    'MemoryRegionCatalog',
    'RegionKindDetector',
    'RawMemoryEntry',
    'TargetDatabase',
    'lookup_memory_map',
]
