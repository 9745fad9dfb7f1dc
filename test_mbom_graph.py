"""
Tests for the dependency graph resolver
"""

import unittest

from mbom_graph import resolve, to_networkx, work_center_token
from mbom_models import create_sample_mbom, parse_items


def edge_pairs(graph):
    return [(e.source, e.target) for e in graph.edges]


class TestResolve(unittest.TestCase):
    """Test cases for edge derivation, roots and layout"""

    def setUp(self):
        """Set up test data"""
        self.items = create_sample_mbom()

    def test_empty_list(self):
        graph = resolve([])
        self.assertEqual(graph.nodes, ())
        self.assertEqual(graph.edges, ())
        self.assertEqual(graph.roots, ())

    def test_one_node_per_item(self):
        graph = resolve(self.items)
        self.assertEqual(len(graph.nodes), len(self.items))
        self.assertEqual(sorted(graph.node_ids()), sorted(i.part_number for i in self.items))

    def test_level_inference_uses_first_candidate(self):
        """Every level-2 item without dependencies hangs off the first level-1 item"""
        items = parse_items([
            {"partNumber": "TOP", "level": 0},
            {"partNumber": "L1-A", "level": 1},
            {"partNumber": "L1-B", "level": 1},
            {"partNumber": "L2-X", "level": 2},
            {"partNumber": "L2-Y", "level": 2},
        ])
        graph = resolve(items)
        self.assertEqual(
            edge_pairs(graph),
            [("TOP", "L1-A"), ("TOP", "L1-B"), ("L1-A", "L2-X"), ("L1-A", "L2-Y")],
        )
        self.assertEqual(graph.roots, ("TOP",))

    def test_first_candidate_may_come_later_in_list(self):
        items = parse_items([
            {"partNumber": "CHILD", "level": 1},
            {"partNumber": "PARENT", "level": 0},
        ])
        graph = resolve(items)
        self.assertEqual(edge_pairs(graph), [("PARENT", "CHILD")])

    def test_explicit_dependencies_take_precedence(self):
        items = parse_items([
            {"partNumber": "X", "level": 0},
            {"partNumber": "SIB", "level": 1},
            {"partNumber": "ITEM", "level": 2, "dependencies": ["X"]},
        ])
        graph = resolve(items)
        parents_of_item = [e.source for e in graph.edges if e.target == "ITEM"]
        self.assertEqual(parents_of_item, ["X"])

    def test_multiple_dependencies(self):
        items = parse_items([
            {"partNumber": "A"},
            {"partNumber": "B"},
            {"partNumber": "C", "dependencies": ["A", "B"]},
        ])
        graph = resolve(items)
        self.assertEqual(edge_pairs(graph), [("A", "C"), ("B", "C")])
        self.assertEqual(graph.roots, ("A", "B"))

    def test_empty_dependencies_and_level_zero_is_root(self):
        items = parse_items([
            {"partNumber": "R", "level": 0, "dependencies": []},
            {"partNumber": "K", "level": 1},
        ])
        graph = resolve(items)
        self.assertIn("R", graph.roots)
        self.assertNotIn("K", graph.roots)

    def test_fallback_chain(self):
        items = parse_items([
            {"partNumber": "A", "level": 0},
            {"partNumber": "B", "level": 0},
            {"partNumber": "C", "level": 0},
        ])
        graph = resolve(items)
        self.assertEqual(edge_pairs(graph), [("A", "B"), ("B", "C")])
        self.assertTrue(all(e.inferred for e in graph.edges))
        self.assertEqual(graph.roots, ("A", "B", "C"))

    def test_single_item_has_no_edges(self):
        graph = resolve(parse_items([{"partNumber": "ONLY"}]))
        self.assertEqual(graph.edges, ())
        self.assertEqual(graph.roots, ("ONLY",))

    def test_orphan_level_gets_no_parent(self):
        """A level-3 item with no level-2 item stays a root"""
        items = parse_items([
            {"partNumber": "A", "level": 0},
            {"partNumber": "B", "level": 1},
            {"partNumber": "D", "level": 3},
        ])
        graph = resolve(items)
        self.assertEqual(edge_pairs(graph), [("A", "B")])
        self.assertEqual(graph.roots, ("A", "D"))

    def test_dangling_dependency(self):
        graph = resolve(parse_items([{"partNumber": "A", "dependencies": ["GHOST"]}]))
        self.assertEqual(graph.node_ids(), ["A"])
        self.assertEqual(edge_pairs(graph), [("GHOST", "A")])
        self.assertEqual(graph.dangling_edges(), list(graph.edges))

    def test_cycle_falls_back_to_first_item_as_root(self):
        items = parse_items([
            {"partNumber": "A", "dependencies": ["B"]},
            {"partNumber": "B", "dependencies": ["A"]},
        ])
        graph = resolve(items)
        self.assertEqual(graph.roots, ("A",))
        self.assertEqual(edge_pairs(graph), [("B", "A"), ("A", "B")])

    def test_self_reference_is_a_self_loop(self):
        graph = resolve(parse_items([{"partNumber": "SELF", "dependencies": ["SELF"]}]))
        self.assertEqual(edge_pairs(graph), [("SELF", "SELF")])
        self.assertEqual(graph.roots, ("SELF",))

    def test_raw_mappings_are_accepted(self):
        """Every mapping row becomes a node; non-mapping rows are skipped"""
        graph = resolve([
            {"partNumber": "A", "level": 0},
            {"partNumber": "B", "level": 1},
            {"description": "no part number", "level": 2},
            "not a row",
        ])
        self.assertEqual(graph.node_ids(), ["A", "B", ""])
        self.assertEqual(edge_pairs(graph), [("A", "B"), ("B", "")])

    def test_item_without_part_number_gets_a_node(self):
        graph = resolve([{"partNumber": "A", "level": 0}, {"description": "x", "level": 1}])
        self.assertEqual(len(graph.nodes), 2)
        self.assertEqual(edge_pairs(graph), [("A", "")])
        self.assertEqual(graph.roots, ("A",))

    def test_id_only_rows_form_a_chain(self):
        graph = resolve([{"id": "A", "level": 0}, {"id": "B", "level": 0}, {"id": "C", "level": 0}])
        self.assertEqual(graph.node_ids(), ["A", "B", "C"])
        self.assertEqual(edge_pairs(graph), [("A", "B"), ("B", "C")])


class TestLayout(unittest.TestCase):
    """Test cases for node positions"""

    def setUp(self):
        self.items = parse_items([
            {"partNumber": "L0", "level": 0},
            {"partNumber": "L1-A", "level": 1},
            {"partNumber": "L1-B", "level": 1},
            {"partNumber": "L1-C", "level": 1},
            {"partNumber": "L2-A", "level": 2},
            {"partNumber": "L2-B", "level": 2},
        ])
        self.graph = resolve(self.items)
        self.by_id = {n.id: n for n in self.graph.nodes}

    def test_same_level_never_overlaps(self):
        for level in (0, 1, 2):
            xs = [n.x for n in self.graph.nodes if n.level == level]
            self.assertEqual(len(xs), len(set(xs)))

    def test_levels_have_distinct_y(self):
        ys = {n.level: n.y for n in self.graph.nodes}
        self.assertEqual(len(set(ys.values())), len(ys))
        self.assertLess(ys[0], ys[1])
        self.assertLess(ys[1], ys[2])

    def test_levels_are_centred(self):
        for level in (0, 1, 2):
            xs = [n.x for n in self.graph.nodes if n.level == level]
            self.assertAlmostEqual(sum(xs) / len(xs), 0.0)

    def test_default_spacing(self):
        self.assertEqual(self.by_id["L0"].x, 0)
        self.assertEqual([self.by_id[p].x for p in ("L1-A", "L1-B", "L1-C")], [-250, 0, 250])
        self.assertEqual(self.by_id["L2-A"].y, 360)

    def test_custom_spacing(self):
        graph = resolve(self.items, horizontal_spacing=100, vertical_spacing=50)
        by_id = {n.id: n for n in graph.nodes}
        self.assertEqual(by_id["L2-A"].x, -50)
        self.assertEqual(by_id["L2-B"].x, 50)
        self.assertEqual(by_id["L2-B"].y, 100)

    def test_nodes_ordered_by_level(self):
        items = parse_items([
            {"partNumber": "DEEP", "level": 2},
            {"partNumber": "TOP", "level": 0},
        ])
        graph = resolve(items)
        self.assertEqual(graph.node_ids(), ["TOP", "DEEP"])

    def test_missing_level_defaults_to_zero(self):
        graph = resolve(parse_items([{"partNumber": "A"}]))
        self.assertEqual(graph.nodes[0].level, 0)
        self.assertEqual(graph.nodes[0].y, 0)


class TestPurity(unittest.TestCase):

    def test_resolve_is_idempotent(self):
        items = create_sample_mbom()
        self.assertEqual(resolve(items), resolve(items))

    def test_input_is_not_mutated(self):
        rows = [{"partNumber": "A", "level": 0}, {"partNumber": "B", "level": 1}]
        before = [dict(r) for r in rows]
        resolve(rows)
        self.assertEqual(rows, before)


class TestNetworkx(unittest.TestCase):

    def test_dangling_edges_are_dropped(self):
        graph = resolve(parse_items([
            {"partNumber": "A"},
            {"partNumber": "B", "dependencies": ["A", "GHOST"]},
        ]))
        G = to_networkx(graph)
        self.assertEqual(sorted(G.nodes), ["A", "B"])
        self.assertEqual(list(G.edges), [("A", "B")])

    def test_node_attributes(self):
        G = to_networkx(resolve(create_sample_mbom()))
        attrs = G.nodes["FRAME-001"]
        self.assertEqual(attrs["change_type"], "modified")
        self.assertEqual(attrs["work_center"], "WELD")
        self.assertEqual(attrs["level"], 1)
        self.assertIn("82% confident", attrs["title"])

    def test_work_center_token(self):
        self.assertEqual(work_center_token("WC-ASSY-03"), "ASSY")
        self.assertEqual(work_center_token("ASSY"), "")
        self.assertEqual(work_center_token(None), "")


if __name__ == "__main__":
    unittest.main()
