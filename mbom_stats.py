"""
mbom_stats.py

Summary statistics over an mBOM item list: how many lines fall into each
change classification, and the mean AI confidence as a whole percentage.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import numpy as np

from mbom_models import ChangeType, parse_items


@dataclass(frozen=True)
class ConversionStats:
    total_parts: int = 0
    added_parts: int = 0
    modified_parts: int = 0
    grouped_parts: int = 0
    unchanged_parts: int = 0
    avg_confidence: int = 0

    def as_dict(self) -> Dict[str, int]:
        """Dashboard form, with the backend's camelCase keys."""
        return {
            "totalParts": self.total_parts,
            "addedParts": self.added_parts,
            "modifiedParts": self.modified_parts,
            "groupedParts": self.grouped_parts,
            "unchangedParts": self.unchanged_parts,
            "avgConfidence": self.avg_confidence,
        }


def confidence_percent(value: Optional[float]) -> int:
    """
    Convert a [0, 1] score to a whole percentage, rounding halves up.

    None counts as 0.
    """
    if value is None:
        return 0
    return int(np.floor(value * 100 + 0.5))


def aggregate(items: Iterable[Any]) -> ConversionStats:
    """
    Count items per change type and average their confidence.

    Args:
        items: ManufacturingBomItem instances or raw backend mappings

    Returns:
        ConversionStats; an empty list gives all zeros.
    """
    snapshot = parse_items(items)
    if not snapshot:
        return ConversionStats()

    counts = {change: 0 for change in ChangeType}
    for item in snapshot:
        if item.change_type is not None:
            counts[item.change_type] += 1

    confidences = np.array([item.confidence or 0.0 for item in snapshot], dtype=float)

    return ConversionStats(
        total_parts=len(snapshot),
        added_parts=counts[ChangeType.ADDED],
        modified_parts=counts[ChangeType.MODIFIED],
        grouped_parts=counts[ChangeType.GROUPED],
        unchanged_parts=counts[ChangeType.UNCHANGED],
        avg_confidence=confidence_percent(float(confidences.mean())),
    )
