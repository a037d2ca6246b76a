"""
Graph Builder
Compiles a workflow document into a flat list of typed nodes and classified edges
"""
from typing import List, Dict, Any, Optional, Set, Tuple
from dataclasses import dataclass, field

from workflow_canvas.schemas.workflow_models import (
    Module,
    ParallelStep,
    SwitchDecision,
    WorkflowDocument,
)
from workflow_canvas.core.constants import (
    DecisionKind,
    END_NODE_ID,
    OVERRIDE_NODE_ID,
    START_NODE_ID,
    SummaryLimits,
    SyntheticKind,
    TRIGGER_NODE_ID,
)
from workflow_canvas.validator.errors import (
    StructuralValidationException,
    ValidationResult,
    reference_error,
)
from workflow_canvas.validator.structural_rules import run_all_structural_validations
from workflow_canvas.visualization.summary import (
    has_structured_args,
    summarize,
    summarize_override_block,
    summarize_trigger,
    summarize_triggers,
)
from workflow_canvas.core.logging import get_logger

logger = get_logger(__name__)


# ============================================================================
# GRAPH STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class GraphNode:
    """
    Graph node for one step, module or synthetic marker

    Attributes:
        id: Unique node ID (the entity name, or a reserved `_` id)
        kind: Step type, "module", "trigger", "override", "start" or "end"
        label: Display label
        summary_lines: Ordered display lines from the Summary Builder
        raw_ref: Originating Step/Module (or trigger list) for the side panel
        data: Additional node data
        position: Top-left position, set by the Layout Engine
    """
    id: str
    kind: str
    label: str
    summary_lines: Tuple[str, ...] = ()
    raw_ref: Any = None
    data: Dict[str, Any] = field(default_factory=dict)
    position: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class GraphEdge:
    """
    Graph edge between two nodes

    Attributes:
        id: Unique edge ID
        source: Source node ID
        target: Target node ID
        branch: True when produced by a decision rule
        label: Condition / case value for decision edges
        decision_kind: rule, case or default (decision edges only)
        animated: Drawn animated (edges into parallel steps)
    """
    id: str
    source: str
    target: str
    branch: bool = False
    label: Optional[str] = None
    decision_kind: Optional[str] = None
    animated: bool = False

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.source, self.target, self.label or "")


@dataclass
class WorkflowGraph:
    """
    Complete compiled graph

    Attributes:
        nodes: List of graph nodes
        edges: List of graph edges
        metadata: Graph metadata
    """
    nodes: List[GraphNode]
    edges: List[GraphEdge]
    metadata: Dict[str, Any]


@dataclass
class GraphBuildResult:
    """
    Outcome of one compilation pass

    Exactly one of `graph` (valid document) or failed `validation` applies;
    a failed result never carries a partial graph.
    """
    graph: Optional[WorkflowGraph]
    validation: ValidationResult

    @property
    def ok(self) -> bool:
        return self.graph is not None and self.validation.valid

    def unwrap(self) -> WorkflowGraph:
        """
        Return the graph or raise

        Raises:
            StructuralValidationException: If compilation failed
        """
        if not self.ok:
            raise StructuralValidationException(self.validation)
        return self.graph


class _EdgeSet:
    """Ordered edge collection, unique per (source, target, label)"""

    def __init__(self):
        self._edges: List[GraphEdge] = []
        self._keys: Set[Tuple[str, str, str]] = set()

    def add(self, edge: GraphEdge) -> bool:
        if edge.key in self._keys:
            return False
        self._keys.add(edge.key)
        self._edges.append(edge)
        return True

    def has_outgoing(self, node_id: str) -> bool:
        return any(e.source == node_id for e in self._edges)

    def to_list(self) -> List[GraphEdge]:
        return list(self._edges)


# ============================================================================
# GRAPH BUILDER
# ============================================================================

class GraphBuilder:
    """
    Compiles a WorkflowDocument into a WorkflowGraph

    Document kinds:
    - module: one node per step, chained in execution order
    - flow: one node per module, chained in order or by depends_on

    Decision rules add branch edges and suppress the positional edge out of
    their owner. Parallel and foreach steps stay single nodes.

    Usage:
        builder = GraphBuilder()
        result = builder.build(document)

        if result.ok:
            for node in result.graph.nodes:
                print(f"Node: {node.id} ({node.kind})")
        else:
            print(result.validation.summary())
    """

    def __init__(self, max_summary_len: int = SummaryLimits.MAX_LINE_LENGTH):
        """
        Initialize graph builder

        Args:
            max_summary_len: Longest summary line before truncation
        """
        self.max_summary_len = max_summary_len

    def build(self, document: WorkflowDocument) -> GraphBuildResult:
        """
        Build graph from a workflow document

        Args:
            document: Parsed workflow document

        Returns:
            GraphBuildResult with either the graph or the blocking errors
        """
        validation = ValidationResult.from_errors(run_all_structural_validations(document))
        for warning in validation.warnings:
            logger.warning(f"{warning.location}: {warning.message}")

        if not validation.valid:
            logger.warning(f"Workflow '{document.name}' rejected: {validation.summary()}")
            return GraphBuildResult(graph=None, validation=validation)

        edges = _EdgeSet()
        nodes = self._create_head_nodes(document)
        head_id = self._chain_head(nodes, edges)

        if document.is_flow:
            body = self._create_module_nodes(document)
            self._create_flow_edges(document, head_id, edges)
        else:
            body = self._create_step_nodes(document)
            self._create_step_edges(document, head_id, edges)
        nodes.extend(body)

        self._connect_sinks(head_id, body, edges)
        nodes.append(GraphNode(
            id=END_NODE_ID,
            kind=SyntheticKind.END.value,
            label="End",
            data={"label": "End"}
        ))

        edge_list = edges.to_list()
        dangling = check_edge_endpoints(nodes, edge_list)
        if dangling:
            failed = ValidationResult.from_errors(dangling)
            logger.warning(f"Workflow '{document.name}' produced dangling edges: {failed.summary()}")
            return GraphBuildResult(graph=None, validation=failed)

        metadata = {
            "workflow_name": document.name,
            "kind": document.kind.value,
            "node_count": len(nodes),
            "edge_count": len(edge_list),
            "branch_edge_count": sum(1 for e in edge_list if e.branch),
            "trigger_count": len(document.triggers)
        }

        logger.info(
            f"Built graph: {len(nodes)} nodes, {len(edge_list)} edges "
            f"(kind: {document.kind.value})"
        )

        return GraphBuildResult(
            graph=WorkflowGraph(nodes=nodes, edges=edge_list, metadata=metadata),
            validation=validation
        )

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _create_head_nodes(self, document: WorkflowDocument) -> List[GraphNode]:
        """Start, plus trigger and override markers when declared"""
        nodes = [GraphNode(
            id=START_NODE_ID,
            kind=SyntheticKind.START.value,
            label="Start",
            data={"label": "Start"}
        )]

        if document.triggers:
            lines = summarize_triggers(document.triggers, self.max_summary_len)
            nodes.append(GraphNode(
                id=TRIGGER_NODE_ID,
                kind=SyntheticKind.TRIGGER.value,
                label="Triggers",
                summary_lines=tuple(lines),
                raw_ref=list(document.triggers),
                data={
                    "label": "Triggers",
                    "summary": lines,
                    "triggers": [t.to_raw() for t in document.triggers],
                    "trigger_details": [
                        summarize_trigger(t, self.max_summary_len) for t in document.triggers
                    ]
                }
            ))

        if document.is_flow and document.override:
            lines = summarize_override_block(document.override, self.max_summary_len)
            nodes.append(GraphNode(
                id=OVERRIDE_NODE_ID,
                kind=SyntheticKind.OVERRIDE.value,
                label="Override",
                summary_lines=tuple(lines),
                raw_ref=document.override,
                data={"label": "Override", "summary": lines, "override": document.override}
            ))

        return nodes

    def _create_step_nodes(self, document: WorkflowDocument) -> List[GraphNode]:
        nodes = []
        for step in document.steps:
            lines = summarize(step, self.max_summary_len)
            nodes.append(GraphNode(
                id=step.name,
                kind=step.type,
                label=step.name,
                summary_lines=tuple(lines),
                raw_ref=step,
                data={
                    "label": step.name,
                    "step_type": step.type,
                    "summary": lines,
                    "has_structured_args": has_structured_args(step),
                    "entity": step.to_raw()
                }
            ))
        return nodes

    def _create_module_nodes(self, document: WorkflowDocument) -> List[GraphNode]:
        nodes = []
        for module in document.modules:
            lines = summarize(module, self.max_summary_len)
            nodes.append(GraphNode(
                id=module.name,
                kind=SyntheticKind.MODULE.value,
                label=module.name,
                summary_lines=tuple(lines),
                raw_ref=module,
                data={"label": module.name, "summary": lines, "entity": module.to_raw()}
            ))
        return nodes

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def _chain_head(self, head_nodes: List[GraphNode], edges: _EdgeSet) -> str:
        """Connect start -> trigger -> override; return the last head id"""
        for previous, current in zip(head_nodes, head_nodes[1:]):
            edges.add(sequential_edge(previous.id, current.id))
        return head_nodes[-1].id

    def _create_step_edges(self, document: WorkflowDocument, head_id: str, edges: _EdgeSet) -> None:
        """Positional chaining, suppressed after a step that branched"""
        previous_id = head_id
        previous_branched = False

        for step in document.steps:
            if not previous_branched:
                edges.add(sequential_edge(
                    previous_id,
                    step.name,
                    animated=isinstance(step, ParallelStep)
                ))

            decision_edges = compile_decision(step.name, step.decision)
            for edge in decision_edges:
                edges.add(edge)

            previous_id = step.name
            previous_branched = bool(decision_edges)

    def _create_flow_edges(self, document: WorkflowDocument, head_id: str, edges: _EdgeSet) -> None:
        """Positional chaining, replaced by depends_on edges where declared"""
        previous_id = head_id
        previous_branched = False

        for module in document.modules:
            if module.depends_on:
                for dependency in module.depends_on:
                    edges.add(sequential_edge(dependency, module.name))
            elif not previous_branched:
                edges.add(sequential_edge(previous_id, module.name))

            decision_edges = compile_decision(module.name, module.decision)
            for edge in decision_edges:
                edges.add(edge)

            previous_id = module.name
            previous_branched = bool(decision_edges)

    def _connect_sinks(self, head_id: str, body: List[GraphNode], edges: _EdgeSet) -> None:
        """Every node left without a successor flows into the end node"""
        if not body:
            edges.add(sequential_edge(head_id, END_NODE_ID))
            return

        for node in body:
            if not edges.has_outgoing(node.id):
                edges.add(sequential_edge(node.id, END_NODE_ID))


# ============================================================================
# DECISION COMPILATION
# ============================================================================

def sequential_edge(source: str, target: str, animated: bool = False) -> GraphEdge:
    """Build a plain sequential edge"""
    return GraphEdge(id=f"{source}->{target}", source=source, target=target, animated=animated)


def decision_edge(source: str, target: str, label: str, kind: DecisionKind) -> GraphEdge:
    """Build a branch edge produced by a decision rule"""
    return GraphEdge(
        id=f"{source}->{target}:{kind.value}:{label}",
        source=source,
        target=target,
        branch=True,
        label=label,
        decision_kind=kind.value
    )


def compile_decision(owner: str, decision: Any) -> List[GraphEdge]:
    """
    Compile a decision into branch edges, preserving declaration order

    Args:
        owner: Node ID owning the decision
        decision: Rule list, switch decision or None

    Returns:
        One edge per rule / case (+ default); entries without a target are skipped
    """
    if decision is None:
        return []

    edges = []

    if isinstance(decision, SwitchDecision):
        for case_value, case in decision.cases.items():
            if not case_value.strip():
                logger.warning(f"Decision in '{owner}' has an empty case value, skipping")
                continue
            if not case.target.strip():
                logger.warning(f"Decision case '{case_value}' in '{owner}' has no target, skipping")
                continue
            edges.append(decision_edge(owner, case.target, case_value, DecisionKind.CASE))

        if decision.default is not None:
            if decision.default.target.strip():
                edges.append(decision_edge(owner, decision.default.target, "default", DecisionKind.DEFAULT))
            else:
                logger.warning(f"Decision default in '{owner}' has no target, skipping")
        return edges

    for rule in decision:
        if not rule.next.strip():
            logger.warning(f"Decision rule '{rule.condition}' in '{owner}' has no target, skipping")
            continue
        edges.append(decision_edge(owner, rule.next, rule.condition, DecisionKind.RULE))

    return edges


# ============================================================================
# EDGE CLASSIFICATION
# ============================================================================

def branch_out_degrees(edges: List[GraphEdge]) -> Dict[str, int]:
    """Number of branch edges leaving each node"""
    degrees: Dict[str, int] = {}
    for edge in edges:
        if edge.branch:
            degrees[edge.source] = degrees.get(edge.source, 0) + 1
    return degrees


def is_branching(edge: GraphEdge, degrees: Dict[str, int]) -> bool:
    """
    An edge is branching if it carries a label, or if it is a branch edge
    leaving a node with more than one branch edge
    """
    if edge.label:
        return True
    return edge.branch and degrees.get(edge.source, 0) > 1


def classify_branching_edges(edges: List[GraphEdge]) -> List[GraphEdge]:
    """
    Branching edges of an emitted edge set, recomputed on every call

    Args:
        edges: Graph edges

    Returns:
        Branching edges in input order
    """
    degrees = branch_out_degrees(edges)
    return [edge for edge in edges if is_branching(edge, degrees)]


def max_branch_fan_out(edges: List[GraphEdge]) -> int:
    """Largest number of branching edges leaving any single node"""
    counts: Dict[str, int] = {}
    for edge in classify_branching_edges(edges):
        counts[edge.source] = counts.get(edge.source, 0) + 1
    return max(counts.values(), default=0)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def check_edge_endpoints(nodes: List[GraphNode], edges: List[GraphEdge]) -> List:
    """
    Validate every edge endpoint against the node set

    Returns:
        Reference errors for dangling endpoints (empty when the graph is sound)
    """
    node_ids = {node.id for node in nodes}
    errors = []
    for edge in edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in node_ids:
                errors.append(reference_error(f"edges[{edge.id}]", edge.source, endpoint, "edge"))
    return errors


def build_workflow_graph(document: WorkflowDocument, max_summary_len: int = SummaryLimits.MAX_LINE_LENGTH) -> WorkflowGraph:
    """
    Convenience function to build a workflow graph

    Args:
        document: Parsed workflow document
        max_summary_len: Longest summary line before truncation

    Returns:
        WorkflowGraph

    Raises:
        StructuralValidationException: If the document is structurally invalid
    """
    builder = GraphBuilder(max_summary_len=max_summary_len)
    return builder.build(document).unwrap()


def get_node_by_id(graph: WorkflowGraph, node_id: str) -> Optional[GraphNode]:
    """
    Get node by ID

    Args:
        graph: Workflow graph
        node_id: Node ID

    Returns:
        GraphNode or None
    """
    for node in graph.nodes:
        if node.id == node_id:
            return node
    return None


def get_outgoing_edges(graph: WorkflowGraph, node_id: str) -> List[GraphEdge]:
    """Get all outgoing edges from node"""
    return [edge for edge in graph.edges if edge.source == node_id]


def get_incoming_edges(graph: WorkflowGraph, node_id: str) -> List[GraphEdge]:
    """Get all incoming edges to node"""
    return [edge for edge in graph.edges if edge.target == node_id]
