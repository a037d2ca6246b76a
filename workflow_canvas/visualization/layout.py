"""
Layout Engine
Layered (Sugiyama-style) layout that positions compiled graph nodes
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Sequence, Set, Tuple
import heapq

from workflow_canvas.workflow.graph_builder import (
    GraphEdge,
    GraphNode,
    WorkflowGraph,
    max_branch_fan_out,
)
from workflow_canvas.core.constants import LayoutSpacing, Orientation
from workflow_canvas.core.logging import get_logger

logger = get_logger(__name__)

# Alternating alignment passes during coordinate assignment
ALIGNMENT_PASSES = 4


# ============================================================================
# SPACING
# ============================================================================

@dataclass(frozen=True)
class Spacing:
    """
    Separation parameters for one layout run

    Attributes:
        ranksep: Gap between consecutive ranks
        nodesep: Gap between neighbouring nodes of a rank
        edgesep: Gap next to edge bends (dummy vertices)
        margin: Outer margin on both axes
    """
    ranksep: float
    nodesep: float
    edgesep: float
    margin: float


def compute_spacing(edges: Sequence[GraphEdge]) -> Spacing:
    """
    Pick spacing for an edge set

    Branching graphs get wider ranks and a node gap that grows with the
    busiest decision point; everything else uses the compact defaults.

    Args:
        edges: Graph edges

    Returns:
        Spacing
    """
    fan_out = max_branch_fan_out(list(edges))
    if fan_out == 0:
        return Spacing(
            ranksep=LayoutSpacing.RANKSEP,
            nodesep=LayoutSpacing.NODESEP,
            edgesep=LayoutSpacing.EDGESEP,
            margin=LayoutSpacing.MARGIN
        )

    return Spacing(
        ranksep=LayoutSpacing.BRANCH_RANKSEP,
        nodesep=LayoutSpacing.BRANCH_NODESEP + max(0, fan_out - 1) * LayoutSpacing.BRANCH_NODESEP_INCREMENT,
        edgesep=LayoutSpacing.BRANCH_EDGESEP,
        margin=LayoutSpacing.BRANCH_MARGIN
    )


# ============================================================================
# STRATEGY INTERFACE
# ============================================================================

class LayoutEngine(ABC):
    """Positions nodes; implementations must be deterministic and pure"""

    @abstractmethod
    def layout(
        self,
        nodes: Sequence[GraphNode],
        edges: Sequence[GraphEdge],
        orientation: Orientation = Orientation.TB
    ) -> List[GraphNode]:
        raise NotImplementedError


# ============================================================================
# LAYERED LAYOUT
# ============================================================================

class _RankGraph:
    """
    Internal vertex graph: real nodes first (input order), then dummy
    vertices that split edges spanning more than one rank
    """

    def __init__(self, real_count: int):
        self.real_count = real_count
        self.rank: List[int] = [0] * real_count
        self.up: List[List[int]] = [[] for _ in range(real_count)]
        self.down: List[List[int]] = [[] for _ in range(real_count)]

    def is_dummy(self, vertex: int) -> bool:
        return vertex >= self.real_count

    def add_dummy(self, rank: int) -> int:
        self.rank.append(rank)
        self.up.append([])
        self.down.append([])
        return len(self.rank) - 1

    def link(self, source: int, target: int) -> None:
        self.down[source].append(target)
        self.up[target].append(source)


class LayeredLayoutEngine(LayoutEngine):
    """
    Hierarchical layout in four phases:
    1. Break cycles by reversing DFS back edges
    2. Longest-path rank assignment (split long edges with dummies)
    3. Barycenter crossing reduction, keeping the best ordering seen
    4. Coordinate assignment: pack each rank, then pull nodes toward the
       mean of their neighbours without breaking the rank order

    Nodes without any edge are placed in a row after the last rank.

    Usage:
        engine = LayeredLayoutEngine()
        positioned = engine.layout(graph.nodes, graph.edges, Orientation.LR)
    """

    def __init__(
        self,
        node_width: float = LayoutSpacing.NODE_WIDTH,
        node_height: float = LayoutSpacing.NODE_HEIGHT,
        sweeps: int = LayoutSpacing.CROSSING_SWEEPS
    ):
        self.node_width = node_width
        self.node_height = node_height
        self.sweeps = sweeps

    def layout(
        self,
        nodes: Sequence[GraphNode],
        edges: Sequence[GraphEdge],
        orientation: Orientation = Orientation.TB,
        spacing: Optional[Spacing] = None
    ) -> List[GraphNode]:
        """
        Position every node

        Args:
            nodes: Graph nodes (output order follows this order)
            edges: Graph edges
            orientation: TB (ranks top to bottom) or LR (ranks left to right)
            spacing: Override for the spacing derived from the edges

        Returns:
            New GraphNode objects with a top-left `position`
        """
        if not nodes:
            return []

        orientation = Orientation(orientation)
        spacing = spacing or compute_spacing(edges)
        index = {}
        for i, node in enumerate(nodes):
            index.setdefault(node.id, i)

        pairs = self._edge_pairs(index, edges)
        graph = self._rank(len(nodes), pairs)
        layers = self._order(graph)

        horizontal = orientation == Orientation.TB
        along_size = self.node_width if horizontal else self.node_height
        cross_size = self.node_height if horizontal else self.node_width

        along = self._assign_coordinates(graph, layers, along_size, spacing)

        left = min(along[v] - along_size / 2 for v in range(graph.real_count))

        positioned = []
        for node in nodes:
            vertex = index[node.id]
            # centre of the node, then shifted to its top-left corner
            center_along = spacing.margin + along[vertex] - left
            center_cross = spacing.margin + graph.rank[vertex] * (cross_size + spacing.ranksep) + cross_size / 2
            top_left_along = center_along - along_size / 2
            top_left_cross = center_cross - cross_size / 2

            if horizontal:
                position = {"x": round(top_left_along, 2), "y": round(top_left_cross, 2)}
            else:
                position = {"x": round(top_left_cross, 2), "y": round(top_left_along, 2)}
            positioned.append(replace(node, position=position))

        logger.debug(
            f"Layered layout: {len(nodes)} nodes, {len(layers)} ranks, "
            f"nodesep={spacing.nodesep}, orientation={orientation.value}"
        )

        return positioned

    # ------------------------------------------------------------------
    # Phase 1 + 2: acyclic edges and ranks
    # ------------------------------------------------------------------

    def _edge_pairs(self, index: Dict[str, int], edges: Sequence[GraphEdge]) -> List[Tuple[int, int]]:
        pairs = []
        for edge in edges:
            if edge.source not in index or edge.target not in index:
                logger.warning(f"Layout skipping edge with unknown endpoint: {edge.source} -> {edge.target}")
                continue
            if edge.source == edge.target:
                continue
            pairs.append((index[edge.source], index[edge.target]))
        return pairs

    def _rank(self, count: int, pairs: List[Tuple[int, int]]) -> _RankGraph:
        adjacency: List[List[int]] = [[] for _ in range(count)]
        for source, target in pairs:
            adjacency[source].append(target)

        back_edges = _find_back_edges(count, adjacency)
        acyclic: List[Tuple[int, int]] = []
        seen: Set[Tuple[int, int]] = set()
        for source, target in pairs:
            pair = (target, source) if (source, target) in back_edges else (source, target)
            if pair not in seen:
                seen.add(pair)
                acyclic.append(pair)

        ranks = _longest_path_ranks(count, acyclic)

        connected = {v for pair in acyclic for v in pair}
        fallback_rank = max((ranks[v] for v in connected), default=-1) + 1

        graph = _RankGraph(count)
        for v in range(count):
            graph.rank[v] = ranks[v] if v in connected else fallback_rank

        for source, target in acyclic:
            previous = source
            for rank in range(graph.rank[source] + 1, graph.rank[target]):
                dummy = graph.add_dummy(rank)
                graph.link(previous, dummy)
                previous = dummy
            graph.link(previous, target)

        return graph

    # ------------------------------------------------------------------
    # Phase 3: ordering within ranks
    # ------------------------------------------------------------------

    def _order(self, graph: _RankGraph) -> List[List[int]]:
        layers: List[List[int]] = [[] for _ in range(max(graph.rank) + 1)]
        for vertex, rank in enumerate(graph.rank):
            layers[rank].append(vertex)

        best = [list(layer) for layer in layers]
        best_crossings = _count_crossings(layers, graph.down)

        for sweep in range(self.sweeps):
            if best_crossings == 0:
                break
            if sweep % 2 == 0:
                for r in range(1, len(layers)):
                    layers[r] = _barycenter_order(layers[r], layers[r - 1], graph.up)
            else:
                for r in range(len(layers) - 2, -1, -1):
                    layers[r] = _barycenter_order(layers[r], layers[r + 1], graph.down)

            crossings = _count_crossings(layers, graph.down)
            if crossings < best_crossings:
                best = [list(layer) for layer in layers]
                best_crossings = crossings

        return best

    # ------------------------------------------------------------------
    # Phase 4: coordinates along the rank axis
    # ------------------------------------------------------------------

    def _assign_coordinates(
        self,
        graph: _RankGraph,
        layers: List[List[int]],
        size: float,
        spacing: Spacing
    ) -> Dict[int, float]:
        def width(vertex: int) -> float:
            return 0.0 if graph.is_dummy(vertex) else size

        def gap(a: int, b: int) -> float:
            half_a = (spacing.edgesep if graph.is_dummy(a) else spacing.nodesep) / 2
            half_b = (spacing.edgesep if graph.is_dummy(b) else spacing.nodesep) / 2
            return (width(a) + width(b)) / 2 + half_a + half_b

        position: Dict[int, float] = {}
        for layer in layers:
            offsets = _offsets(layer, gap)
            shift = offsets[-1] / 2 if offsets else 0.0
            for vertex, offset in zip(layer, offsets):
                position[vertex] = offset - shift

        for iteration in range(ALIGNMENT_PASSES):
            if iteration % 2 == 0:
                ranks, neighbours = range(1, len(layers)), graph.up
            else:
                ranks, neighbours = range(len(layers) - 2, -1, -1), graph.down

            for r in ranks:
                layer = layers[r]
                desired = []
                for vertex in layer:
                    linked = neighbours[vertex]
                    if linked:
                        desired.append(sum(position[n] for n in linked) / len(linked))
                    else:
                        desired.append(position[vertex])
                for vertex, value in zip(layer, _place_in_order(desired, _offsets(layer, gap))):
                    position[vertex] = value

        return position


# ============================================================================
# ALGORITHM HELPERS
# ============================================================================

def _find_back_edges(count: int, adjacency: List[List[int]]) -> Set[Tuple[int, int]]:
    """Iterative DFS in input order; edges into the active path close a cycle"""
    state = [0] * count  # 0 new, 1 on path, 2 done
    back_edges: Set[Tuple[int, int]] = set()

    for root in range(count):
        if state[root]:
            continue
        state[root] = 1
        stack = [(root, iter(adjacency[root]))]
        while stack:
            vertex, children = stack[-1]
            child = next(children, None)
            if child is None:
                state[vertex] = 2
                stack.pop()
            elif state[child] == 1:
                back_edges.add((vertex, child))
            elif state[child] == 0:
                state[child] = 1
                stack.append((child, iter(adjacency[child])))

    return back_edges


def _longest_path_ranks(count: int, pairs: List[Tuple[int, int]]) -> List[int]:
    """Rank = length of the longest path from any source (Kahn order, lowest index first)"""
    successors: List[List[int]] = [[] for _ in range(count)]
    in_degree = [0] * count
    for source, target in pairs:
        successors[source].append(target)
        in_degree[target] += 1

    ranks = [0] * count
    ready = [v for v in range(count) if in_degree[v] == 0]
    heapq.heapify(ready)
    while ready:
        vertex = heapq.heappop(ready)
        for target in successors[vertex]:
            ranks[target] = max(ranks[target], ranks[vertex] + 1)
            in_degree[target] -= 1
            if in_degree[target] == 0:
                heapq.heappush(ready, target)

    return ranks


def _barycenter_order(layer: List[int], reference: List[int], neighbours: List[List[int]]) -> List[int]:
    """Sort a rank by mean neighbour index in the reference rank; ties keep current order"""
    reference_index = {v: i for i, v in enumerate(reference)}
    current_index = {v: i for i, v in enumerate(layer)}

    def key(vertex: int) -> Tuple[float, int]:
        linked = [reference_index[n] for n in neighbours[vertex] if n in reference_index]
        if not linked:
            return (float(current_index[vertex]), current_index[vertex])
        return (sum(linked) / len(linked), current_index[vertex])

    return sorted(layer, key=key)


def _count_crossings(layers: List[List[int]], down: List[List[int]]) -> int:
    total = 0
    for upper, lower in zip(layers, layers[1:]):
        lower_index = {v: i for i, v in enumerate(lower)}
        segments = [
            (i, lower_index[target])
            for i, vertex in enumerate(upper)
            for target in down[vertex]
            if target in lower_index
        ]
        for a in range(len(segments)):
            for b in range(a + 1, len(segments)):
                (u1, l1), (u2, l2) = segments[a], segments[b]
                if (u1 - u2) * (l1 - l2) < 0:
                    total += 1
    return total


def _offsets(layer: List[int], gap) -> List[float]:
    """Cumulative minimum distance of each vertex from the first one"""
    offsets = []
    for i, vertex in enumerate(layer):
        offsets.append(0.0 if i == 0 else offsets[-1] + gap(layer[i - 1], vertex))
    return offsets


def _place_in_order(desired: List[float], offsets: List[float]) -> List[float]:
    """
    Closest placement (least squares) to `desired` that keeps the rank order
    and minimum gaps: isotonic regression on desired - offset
    """
    blocks: List[List[float]] = []  # [sum, count]
    for value, offset in zip(desired, offsets):
        blocks.append([value - offset, 1])
        while len(blocks) > 1 and blocks[-2][0] / blocks[-2][1] > blocks[-1][0] / blocks[-1][1]:
            total, count = blocks.pop()
            blocks[-1][0] += total
            blocks[-1][1] += count

    shifted: List[float] = []
    for total, count in blocks:
        shifted.extend([total / count] * int(count))
    return [value + offset for value, offset in zip(shifted, offsets)]


# ============================================================================
# LAYOUT SELECTOR
# ============================================================================

def apply_layout(
    graph: WorkflowGraph,
    orientation: Orientation = Orientation.TB,
    engine: Optional[LayoutEngine] = None
) -> WorkflowGraph:
    """
    Lay out a compiled graph

    Args:
        graph: Workflow graph
        orientation: TB or LR
        engine: Layout strategy (layered by default)

    Returns:
        New WorkflowGraph with positioned nodes; the input graph is untouched
    """
    engine = engine or LayeredLayoutEngine()
    nodes = engine.layout(graph.nodes, graph.edges, orientation)

    logger.info(f"Applied {type(engine).__name__} to {len(nodes)} nodes ({Orientation(orientation).value})")

    return WorkflowGraph(
        nodes=nodes,
        edges=list(graph.edges),
        metadata={**graph.metadata, "orientation": Orientation(orientation).value}
    )


def calculate_layout(graph: WorkflowGraph, orientation: Orientation = Orientation.TB) -> Dict[str, Dict[str, float]]:
    """
    Calculate layout and return positions only

    Args:
        graph: Workflow graph
        orientation: TB or LR

    Returns:
        Dictionary mapping node_id to position {x, y}
    """
    positioned = apply_layout(graph, orientation)
    return {node.id: node.position for node in positioned.nodes}
