"""
Tests for mBOM statistics
"""

import math
import unittest

from mbom_models import create_sample_mbom, parse_items
from mbom_stats import ConversionStats, aggregate, confidence_percent


class TestAggregate(unittest.TestCase):
    """Test cases for change-type counts and mean confidence"""

    def test_empty_list(self):
        stats = aggregate([])
        self.assertEqual(stats, ConversionStats())
        self.assertEqual(stats.as_dict(), {
            "totalParts": 0,
            "addedParts": 0,
            "modifiedParts": 0,
            "groupedParts": 0,
            "unchangedParts": 0,
            "avgConfidence": 0,
        })
        self.assertFalse(math.isnan(stats.avg_confidence))

    def test_added_and_modified(self):
        """Rows are counted whether or not they carry a part number"""
        stats = aggregate([
            {"changeType": "added", "confidence": 0.9},
            {"changeType": "modified", "confidence": 0.7},
        ])
        self.assertEqual(stats.total_parts, 2)
        self.assertEqual(stats.added_parts, 1)
        self.assertEqual(stats.modified_parts, 1)
        self.assertEqual(stats.grouped_parts, 0)
        self.assertEqual(stats.unchanged_parts, 0)
        self.assertEqual(stats.avg_confidence, 80)

    def test_missing_confidence_counts_as_zero(self):
        items = parse_items([
            {"partNumber": "A", "changeType": "grouped", "confidence": 1.0},
            {"partNumber": "B", "changeType": "unchanged"},
        ])
        stats = aggregate(items)
        self.assertEqual(stats.avg_confidence, 50)
        self.assertEqual(stats.grouped_parts, 1)
        self.assertEqual(stats.unchanged_parts, 1)

    def test_missing_change_type_is_not_counted(self):
        items = parse_items([
            {"partNumber": "A"},
            {"partNumber": "B", "changeType": "bogus"},
            {"partNumber": "C", "changeType": "ADDED"},
        ])
        stats = aggregate(items)
        self.assertEqual(stats.total_parts, 3)
        self.assertEqual(stats.added_parts, 1)
        self.assertEqual(
            stats.added_parts + stats.modified_parts + stats.grouped_parts + stats.unchanged_parts, 1
        )

    def test_sample_data(self):
        stats = aggregate(create_sample_mbom())
        self.assertEqual(stats.total_parts, 6)
        self.assertEqual(stats.added_parts, 1)
        self.assertEqual(stats.modified_parts, 1)
        self.assertEqual(stats.grouped_parts, 1)
        self.assertEqual(stats.unchanged_parts, 3)
        # (0.97 + 0.82 + 0.74 + 0.95 + 0.61 + 0.9) / 6 = 0.8317
        self.assertEqual(stats.avg_confidence, 83)

    def test_raw_mappings_are_accepted(self):
        stats = aggregate([{"partNumber": "A", "changeType": "added", "confidence": 0.5}])
        self.assertEqual(stats.added_parts, 1)
        self.assertEqual(stats.avg_confidence, 50)

    def test_aggregate_is_idempotent(self):
        items = create_sample_mbom()
        self.assertEqual(aggregate(items), aggregate(items))


class TestConfidencePercent(unittest.TestCase):

    def test_rounds_half_up(self):
        self.assertEqual(confidence_percent(0.375), 38)
        self.assertEqual(confidence_percent(0.625), 63)

    def test_none_is_zero(self):
        self.assertEqual(confidence_percent(None), 0)

    def test_bounds(self):
        self.assertEqual(confidence_percent(0.0), 0)
        self.assertEqual(confidence_percent(1.0), 100)


if __name__ == "__main__":
    unittest.main()
