#!/usr/bin/env python3
"""
Conflict detection between memory segments and a target's memory map.

Each segment is checked against every other segment for address overlap and
against the target's declared regions for containment.
"""

import logging
from typing import List, Optional

from ..models import MemoryRegion, MemorySegment

logger = logging.getLogger(__name__)

NOT_IN_ANY_REGION = "Not in any defined memory region"


class ConflictDetector:
    """Annotates memory segments with overlap and containment diagnostics"""

    def __init__(self, memory_regions: Optional[List[MemoryRegion]]):
        """Initialize with the catalog's regions.

        Args:
            memory_regions: Regions sorted by start address, or None when no
                target is selected
        """
        self.regions = memory_regions

    def detect(self, segments: List[MemorySegment]) -> None:
        """Populate the conflicts list of every segment.

        Overlap messages come first, in the order the other segments appear,
        followed by region diagnostics. Nothing is written when no target is
        selected.
        """
        if self.regions is None:
            return

        for segment in segments:
            conflicts = [
                f"Overlaps with {other.name}"
                for other in segments
                if other is not segment and self._ranges_intersect(segment, other)
            ]
            conflicts.extend(self._check_regions(segment))
            segment.conflicts = conflicts

            if conflicts:
                logger.debug("Segment %s: %s", segment.name, "; ".join(conflicts))

    def _check_regions(self, segment: MemorySegment) -> List[str]:
        """Check a segment against the memory map in catalog order."""
        diagnostics = []
        in_valid_region = False

        for region in self.regions:
            if region.contains(segment.address, segment.size):
                in_valid_region = True
                break
            if region.overlaps(segment.address, segment.size):
                # Partial overlap is flagged but still counts as accounted for
                diagnostics.append(f"Partially outside {region.name} region")
                in_valid_region = True

        if not in_valid_region:
            diagnostics.append(NOT_IN_ANY_REGION)

        return diagnostics

    @staticmethod
    def _ranges_intersect(first: MemorySegment, second: MemorySegment) -> bool:
        """Half-open range intersection test."""
        return not (first.end <= second.address or first.address >= second.end)
