"""
Test Suite for the Layout Engine

Covers spacing selection, rank placement, orientation, fallback placement
and determinism of the layered layout.
"""

import pytest

from workflow_canvas.core.constants import DecisionKind, Orientation
from workflow_canvas.schemas.workflow_models import WorkflowDocument
from workflow_canvas.visualization.layout import (
    LayeredLayoutEngine,
    apply_layout,
    calculate_layout,
    compute_spacing,
)
from workflow_canvas.workflow.graph_builder import GraphBuilder, GraphNode, decision_edge, sequential_edge


def _nodes(*ids):
    return [GraphNode(id=i, kind="bash", label=i) for i in ids]


def _positions(nodes):
    return {n.id: (n.position["x"], n.position["y"]) for n in nodes}


def _fan_out(k):
    """`root` branches to k children"""
    nodes = _nodes("root", *[f"c{i}" for i in range(k)])
    edges = [decision_edge("root", f"c{i}", f"case {i}", DecisionKind.CASE) for i in range(k)]
    return nodes, edges


@pytest.fixture
def engine():
    return LayeredLayoutEngine()


class TestSpacing:
    """Spacing adapts to the busiest decision point."""

    def test_plain_graph_uses_compact_spacing(self):
        """No branching edges: ranksep 80, nodesep 50."""
        spacing = compute_spacing([sequential_edge("a", "b")])

        assert (spacing.ranksep, spacing.nodesep, spacing.edgesep, spacing.margin) == (80, 50, 10, 20)

    def test_branching_graph_widens_spacing(self):
        """Two branch edges from one node: nodesep 120 + 40."""
        _, edges = _fan_out(2)
        spacing = compute_spacing(edges)

        assert (spacing.ranksep, spacing.nodesep, spacing.edgesep, spacing.margin) == (170, 160, 40, 60)

    def test_nodesep_monotonic_in_fan_out(self):
        """nodesep never decreases as fan-out grows."""
        seps = [compute_spacing(_fan_out(k)[1]).nodesep for k in range(0, 7)]

        assert seps == sorted(seps)
        assert seps[0] == 50

    def test_sibling_gap_grows_with_fan_out(self, engine):
        """Siblings under a busier decision sit further apart."""
        gaps = []
        for k in (2, 3, 4):
            nodes, edges = _fan_out(k)
            positions = _positions(engine.layout(nodes, edges))
            gaps.append(positions["c1"][0] - positions["c0"][0])

        assert gaps == [220 + 160, 220 + 200, 220 + 240]


class TestLayeredPlacement:
    """Ranks, alignment and top-left anchoring."""

    def test_chain_top_to_bottom(self, engine):
        """A chain stacks vertically at the left margin."""
        nodes = _nodes("_start", "a", "b", "_end")
        edges = [sequential_edge("_start", "a"), sequential_edge("a", "b"), sequential_edge("b", "_end")]

        positions = _positions(engine.layout(nodes, edges))

        assert positions == {
            "_start": (20, 20),
            "a": (20, 180),
            "b": (20, 340),
            "_end": (20, 500)
        }

    def test_chain_left_to_right(self, engine):
        """LR swaps the axes."""
        nodes = _nodes("_start", "a", "b", "_end")
        edges = [sequential_edge("_start", "a"), sequential_edge("a", "b"), sequential_edge("b", "_end")]

        positions = _positions(engine.layout(nodes, edges, Orientation.LR))

        assert positions == {
            "_start": (20, 20),
            "a": (320, 20),
            "b": (620, 20),
            "_end": (920, 20)
        }

    def test_branches_are_centred_under_parent(self, engine):
        """Two branch targets straddle their parent symmetrically."""
        nodes = _nodes("s", "a", "b", "c", "e")
        edges = [
            sequential_edge("s", "a"),
            decision_edge("a", "b", "x", DecisionKind.RULE),
            decision_edge("a", "c", "y", DecisionKind.RULE),
            sequential_edge("b", "e"),
            sequential_edge("c", "e")
        ]

        positions = _positions(engine.layout(nodes, edges))

        assert positions["b"] == (60, 560)
        assert positions["c"] == (440, 560)
        assert positions["a"] == (250, 310)
        assert positions["e"] == (250, 810)

    def test_positions_are_top_left(self, engine):
        """The first rank starts at the margin, not at half a node."""
        positioned = engine.layout(_nodes("only"), [])

        assert positioned[0].position == {"x": 20, "y": 20}

    def test_longest_path_ranking(self, engine):
        """A node reached by a short and a long path sits below the long one."""
        nodes = _nodes("a", "b", "c")
        edges = [sequential_edge("a", "b"), sequential_edge("b", "c"), sequential_edge("a", "c")]

        positions = _positions(engine.layout(nodes, edges))

        assert positions["a"][1] < positions["b"][1] < positions["c"][1]


class TestFallbackAndRobustness:
    """Every node is placed; layout never raises."""

    def test_isolated_node_goes_below_last_rank(self, engine):
        """A node with no edges lands in a row after the last rank."""
        nodes = _nodes("s", "a", "lonely")
        positions = _positions(engine.layout(nodes, [sequential_edge("s", "a")]))

        assert positions["lonely"][1] == 340
        assert positions["lonely"][1] > positions["a"][1]

    def test_no_edges_single_row(self, engine):
        """Without edges nodes form one row in input order."""
        positions = _positions(engine.layout(_nodes("n1", "n2", "n3"), []))

        assert positions == {"n1": (20, 20), "n2": (290, 20), "n3": (560, 20)}

    def test_cycle_is_laid_out(self, engine):
        """Back edges do not break ranking."""
        nodes = _nodes("s", "a", "b")
        edges = [sequential_edge("s", "a"), sequential_edge("a", "b"), sequential_edge("b", "a")]

        positioned = engine.layout(nodes, edges)

        assert len(positioned) == 3
        assert len(set(_positions(positioned).values())) == 3

    def test_self_loop_is_ignored(self, engine):
        """A decision pointing back at its owner does not move it."""
        nodes = _nodes("a")
        edges = [decision_edge("a", "a", "retry", DecisionKind.RULE)]

        assert engine.layout(nodes, edges)[0].position is not None

    def test_unknown_endpoint_is_skipped(self, engine):
        """Edges naming unknown nodes are ignored."""
        positioned = engine.layout(_nodes("a"), [sequential_edge("a", "ghost")])

        assert [n.id for n in positioned] == ["a"]

    def test_empty_input(self, engine):
        assert engine.layout([], []) == []

    def test_input_nodes_untouched(self, engine):
        """Layout returns new node objects."""
        nodes = _nodes("a", "b")
        engine.layout(nodes, [sequential_edge("a", "b")])

        assert all(n.position is None for n in nodes)


class TestCompiledGraphLayout:
    """Layout of graphs produced by the builder."""

    def test_deterministic(self, decision_document, triggered_document, flow_document):
        """Two runs give identical positions for both orientations."""
        for raw in (decision_document, triggered_document, flow_document):
            for orientation in (Orientation.TB, Orientation.LR):
                document = WorkflowDocument.from_raw(raw)
                first = calculate_layout(_graph(document), orientation)
                second = calculate_layout(_graph(document), orientation)
                assert first == second

    def test_every_node_positioned_once(self, flow_document):
        """Each node appears exactly once with a position."""
        graph = _graph(WorkflowDocument.from_raw(flow_document))
        positioned = apply_layout(graph, Orientation.TB)

        assert [n.id for n in positioned.nodes] == [n.id for n in graph.nodes]
        assert all(n.position is not None for n in positioned.nodes)
        assert positioned.metadata["orientation"] == "TB"

    def test_no_overlaps(self, flow_document):
        """Nodes on the same rank do not overlap."""
        positioned = apply_layout(_graph(WorkflowDocument.from_raw(flow_document)))
        rows = {}
        for node in positioned.nodes:
            rows.setdefault(node.position["y"], []).append(node.position["x"])

        for xs in rows.values():
            xs.sort()
            for left, right in zip(xs, xs[1:]):
                assert right - left >= 220


def _graph(document):
    return GraphBuilder().build(document).unwrap()
