#!/usr/bin/env python3
"""
Example usage script for the mBOM workbench core

This script demonstrates the dependency graph and statistics on sample data.
You can modify the rows below to match your own conversion output.
"""

from mbom_graph import resolve
from mbom_logging import configure_logging
from mbom_models import create_sample_mbom, move_item, parse_items, update_item
from mbom_stats import aggregate


def print_graph(items):
    graph = resolve(items)
    print(f"Roots: {', '.join(graph.roots)}")
    print("-" * 40)
    for node in graph.nodes:
        indent = "  " * node.level
        print(f"{indent}{node.id} @ ({node.x:.0f}, {node.y:.0f})")
    print("-" * 40)
    for edge in graph.edges:
        marker = " (sequential)" if edge.inferred else ""
        print(f"{edge.source} -> {edge.target}{marker}")


def print_stats(items):
    stats = aggregate(items)
    for key, value in stats.as_dict().items():
        print(f"{key}: {value}")


def example_sample_mbom():
    """Sample bicycle mBOM: level hierarchy plus explicit dependencies"""
    print("=" * 80)
    print("EXAMPLE 1: Sample mBOM")
    print("=" * 80)

    items = create_sample_mbom()
    print_graph(items)
    print()
    print_stats(items)
    print()


def example_flat_list():
    """A list with no hierarchy falls back to a sequential chain"""
    print("=" * 80)
    print("EXAMPLE 2: Flat List")
    print("=" * 80)

    items = parse_items([
        {"partNumber": "A", "description": "Cut", "changeType": "added", "confidence": 0.9},
        {"partNumber": "B", "description": "Bend", "changeType": "modified", "confidence": 0.7},
        {"partNumber": "C", "description": "Pack"},
    ])
    print_graph(items)
    print()
    print_stats(items)
    print()


def example_local_edits():
    """Edits produce new snapshots; the original list is untouched"""
    print("=" * 80)
    print("EXAMPLE 3: Local Edits")
    print("=" * 80)

    original = create_sample_mbom()
    edited = update_item(original, 1, change_type="unchanged", confidence=1.0)
    edited = move_item(edited, 2, 1)

    print("Before:")
    print_stats(original)
    print("\nAfter:")
    print_stats(edited)


if __name__ == "__main__":
    configure_logging()

    print("mBOM WORKBENCH - USAGE EXAMPLES")
    print("=" * 80)
    print()

    example_sample_mbom()
    example_flat_list()
    example_local_edits()

    print("\n" + "=" * 80)
    print("All examples completed successfully!")
    print("=" * 80)
