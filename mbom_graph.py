"""
mbom_graph.py

Dependency graph and hierarchical layout for a flat mBOM item list.

Hierarchy comes from two sources:
- an item's explicit `dependencies` (each referenced part number is a parent),
- otherwise its `level`: the first item in list order one level up is the parent.

The result is a plain nodes/edges structure with 2D positions, which can be
rendered directly or converted to a networkx graph for pyvis.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import networkx as nx

from mbom_models import ChangeType, ManufacturingBomItem, parse_items
from mbom_stats import confidence_percent

logger = logging.getLogger(__name__)

HORIZONTAL_SPACING = 250
VERTICAL_SPACING = 180

# Node colours per change type, used by the renderers.
CHANGE_STYLE = {
    ChangeType.ADDED:     {"color": "#86EFAC", "label": "Added"},      # Green
    ChangeType.MODIFIED:  {"color": "#FCD34D", "label": "Modified"},   # Yellow
    ChangeType.GROUPED:   {"color": "#93C5FD", "label": "Grouped"},    # Blue
    ChangeType.UNCHANGED: {"color": "#E5E7EB", "label": "Unchanged"},  # Grey
}
DEFAULT_STYLE = CHANGE_STYLE[ChangeType.UNCHANGED]


# ---------- Data Models ----------

@dataclass(frozen=True)
class PositionedNode:
    """A graph node: one mBOM item with its layout position."""
    id: str
    x: float
    y: float
    level: int
    item: ManufacturingBomItem


@dataclass(frozen=True)
class Edge:
    id: str
    source: str
    target: str
    inferred: bool = False  # True for the sequential fallback chain


@dataclass(frozen=True)
class DependencyGraph:
    nodes: Tuple[PositionedNode, ...] = ()
    edges: Tuple[Edge, ...] = ()
    roots: Tuple[str, ...] = ()

    def node_ids(self) -> List[str]:
        return [n.id for n in self.nodes]

    def dangling_edges(self) -> List[Edge]:
        """Edges whose source or target has no node."""
        ids = set(self.node_ids())
        return [e for e in self.edges if e.source not in ids or e.target not in ids]


# ---------- Core Logic ----------

def derive_connections(items: Tuple[ManufacturingBomItem, ...]) -> Tuple[Dict[str, List[str]], set]:
    """
    Derive the parent -> children adjacency from a flat item list.

    Returns:
        (connections, has_parent): connections keeps parents in first-seen
        order, children in list order; has_parent holds every part number
        that received at least one parent.
    """
    connections: Dict[str, List[str]] = {}
    has_parent = set()

    # First item seen at each level, for level-based inference
    first_at_level: Dict[int, str] = {}
    for item in items:
        first_at_level.setdefault(item.level, item.part_number)

    for item in items:
        if item.dependencies:
            for parent in item.dependencies:
                connections.setdefault(parent, []).append(item.part_number)
            has_parent.add(item.part_number)
        elif item.level > 0:
            parent = first_at_level.get(item.level - 1)
            if parent is not None:
                connections.setdefault(parent, []).append(item.part_number)
                has_parent.add(item.part_number)

    return connections, has_parent


def find_roots(items: Tuple[ManufacturingBomItem, ...], has_parent: set) -> List[str]:
    roots = [item.part_number for item in items if item.part_number not in has_parent]
    if not roots and items:
        # Every item has a parent (cycle or fully parented list)
        roots = [items[0].part_number]
    return roots


def layout_nodes(items: Tuple[ManufacturingBomItem, ...],
                 horizontal_spacing: float = HORIZONTAL_SPACING,
                 vertical_spacing: float = VERTICAL_SPACING) -> List[PositionedNode]:
    """
    Place items level by level, each level centred on x = 0.

    Items on a level keep their list order and are spaced `horizontal_spacing`
    apart; a level sits at y = level * vertical_spacing.
    """
    by_level: Dict[int, List[ManufacturingBomItem]] = {}
    for item in items:
        by_level.setdefault(item.level, []).append(item)

    nodes: List[PositionedNode] = []
    for level in sorted(by_level):
        level_items = by_level[level]
        width = (len(level_items) - 1) * horizontal_spacing
        start_x = -width / 2
        y = level * vertical_spacing
        for index, item in enumerate(level_items):
            nodes.append(
                PositionedNode(
                    id=item.part_number,
                    x=start_x + index * horizontal_spacing,
                    y=y,
                    level=level,
                    item=item,
                )
            )
    return nodes


def resolve(items: Iterable[Any],
            horizontal_spacing: float = HORIZONTAL_SPACING,
            vertical_spacing: float = VERTICAL_SPACING) -> DependencyGraph:
    """
    Build the positioned dependency graph for a flat item list.

    Args:
        items: ManufacturingBomItem instances or raw backend mappings
        horizontal_spacing: distance between neighbours on one level
        vertical_spacing: distance between consecutive levels

    Returns:
        DependencyGraph with one node per item. Edges may reference part
        numbers that have no node (dangling dependencies); renderers filter
        those out.
    """
    snapshot = parse_items(items)

    connections, has_parent = derive_connections(snapshot)
    roots = find_roots(snapshot, has_parent)
    nodes = layout_nodes(snapshot, horizontal_spacing, vertical_spacing)

    edges = [
        Edge(id=f"{parent}-{child}", source=parent, target=child)
        for parent, children in connections.items()
        for child in children
    ]

    if not edges and len(snapshot) > 1:
        # No hierarchy at all: chain items in list order
        edges = [
            Edge(id=f"{a.part_number}-{b.part_number}", source=a.part_number,
                 target=b.part_number, inferred=True)
            for a, b in zip(snapshot, snapshot[1:])
        ]

    logger.debug("Resolved %d items into %d nodes, %d edges, %d roots",
                 len(snapshot), len(nodes), len(edges), len(roots))
    return DependencyGraph(nodes=tuple(nodes), edges=tuple(edges), roots=tuple(roots))


# ---------- Rendering adapter ----------

def work_center_token(work_center: Optional[str]) -> str:
    """Short work-center label: the second '-' separated segment ('WC-ASSY-03' -> 'ASSY')."""
    if not work_center:
        return ""
    parts = work_center.split("-")
    return parts[1] if len(parts) > 1 else ""


def to_networkx(graph: DependencyGraph) -> nx.DiGraph:
    """
    Convert a resolved graph into a networkx DiGraph ready for pyvis.

    Edges pointing at part numbers without a node are dropped here.
    """
    G = nx.DiGraph()
    root_ids = set(graph.roots)

    for node in graph.nodes:
        item = node.item
        style = CHANGE_STYLE.get(item.change_type, DEFAULT_STYLE)
        conf = f"{confidence_percent(item.confidence)}% confident" if item.confidence else ""

        tooltip = "\n".join(
            line for line in (
                item.part_number,
                item.description,
                f"Level: {item.level}",
                f"Qty: {item.quantity}",
                f"Work Center: {item.work_center}" if item.work_center else "",
                conf,
                item.reasoning,
            ) if line
        )

        G.add_node(
            node.id,
            label=node.id,
            title=tooltip,
            color=style["color"],
            shape="box",
            size=25 if node.id in root_ids else 18,
            x=node.x,
            y=node.y,
            level=node.level,
            description=item.description,
            confidence=item.confidence,
            work_center=work_center_token(item.work_center),
            change_type=item.change_type.value if item.change_type else None,
        )

    for edge in graph.edges:
        if edge.source not in G or edge.target not in G:
            logger.info("Dropping dangling edge %s", edge.id)
            continue
        G.add_edge(edge.source, edge.target, id=edge.id,
                   color="#CBD5E1" if edge.inferred else "#94A3B8",
                   dashes=not edge.inferred)
    return G
