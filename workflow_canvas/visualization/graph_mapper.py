"""
Graph Mapper
Maps positioned workflow graphs to the node/edge format the canvas renders
"""
from typing import Dict, Any, List, Optional
from dataclasses import dataclass

from workflow_canvas.schemas.workflow_models import WorkflowDocument
from workflow_canvas.workflow.graph_builder import GraphBuilder, WorkflowGraph, GraphNode, GraphEdge
from workflow_canvas.visualization.layout import apply_layout
from workflow_canvas.core.constants import (
    DECISION_EDGE_STYLE,
    DEFAULT_EDGE_TYPE,
    FALLBACK_RENDER_TYPE,
    RENDER_TYPE_ALIASES,
    RENDERABLE_NODE_TYPES,
    Orientation,
    SummaryLimits,
)
from workflow_canvas.core.logging import get_logger

logger = get_logger(__name__)


# ============================================================================
# UI GRAPH MODELS
# ============================================================================

@dataclass
class UINode:
    """
    UI-specific node format

    Compatible with React Flow and similar graph libraries
    """
    id: str
    type: str
    position: Dict[str, float]
    data: Dict[str, Any]
    className: Optional[str] = None
    selected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "id": self.id,
            "type": self.type,
            "position": self.position,
            "data": self.data,
            "selected": self.selected
        }
        if self.className:
            result["className"] = self.className
        return result


@dataclass
class UIEdge:
    """
    UI-specific edge format

    Compatible with React Flow and similar graph libraries
    """
    id: str
    source: str
    target: str
    type: Optional[str] = DEFAULT_EDGE_TYPE
    label: Optional[str] = None
    animated: bool = False
    style: Optional[Dict[str, Any]] = None
    markerEnd: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        result = {
            "id": self.id,
            "source": self.source,
            "target": self.target
        }
        if self.type:
            result["type"] = self.type
        if self.label:
            result["label"] = self.label
        if self.animated:
            result["animated"] = self.animated
        if self.style:
            result["style"] = self.style
        if self.markerEnd:
            result["markerEnd"] = self.markerEnd
        if self.data:
            result["data"] = self.data
        return result


@dataclass
class UIGraph:
    """
    Complete UI graph

    Ready for frontend rendering
    """
    nodes: List[UINode]
    edges: List[UIEdge]
    viewport: Dict[str, Any]
    metadata: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "viewport": self.viewport,
            "metadata": self.metadata
        }


def render_type(kind: str) -> str:
    """
    Node type string the canvas knows how to draw

    Unknown and future step types degrade to a generic container.
    """
    if kind in RENDER_TYPE_ALIASES:
        return RENDER_TYPE_ALIASES[kind]
    if kind in RENDERABLE_NODE_TYPES:
        return kind
    return FALLBACK_RENDER_TYPE


def edge_display_label(label: Optional[str], max_len: int = SummaryLimits.MAX_EDGE_LABEL_LENGTH) -> Optional[str]:
    """Short canvas label for a decision edge; the graph edge keeps the full text"""
    if label is None:
        return None
    text = label.strip()
    if not text:
        return None
    if len(text) > max_len:
        return text[:max_len] + "..."
    return text


# ============================================================================
# GRAPH MAPPER
# ============================================================================

class GraphMapper:
    """
    Maps workflow documents to UI graph format

    Builds, lays out and converts a document in one call, or converts an
    already positioned graph.

    Usage:
        mapper = GraphMapper()
        ui_graph = mapper.map_to_ui_graph(document, orientation=Orientation.LR)

        # Send to frontend
        return JSONResponse(ui_graph.to_dict())
    """

    EDGE_MARKER = {"type": "arrowclosed"}

    def __init__(self, max_summary_len: int = SummaryLimits.MAX_LINE_LENGTH):
        """Initialize graph mapper"""
        self.graph_builder = GraphBuilder(max_summary_len=max_summary_len)

    def map_to_ui_graph(
        self,
        document: WorkflowDocument,
        orientation: Orientation = Orientation.TB,
        show_details: bool = True,
        wrap_long_text: bool = True,
        hide_mini_map: bool = True
    ) -> UIGraph:
        """
        Map a workflow document to a UI graph

        Args:
            document: Parsed workflow document
            orientation: Layout orientation
            show_details: Render summary lines on nodes
            wrap_long_text: Forwarded to the canvas
            hide_mini_map: Forwarded to the canvas

        Returns:
            UIGraph ready for frontend

        Raises:
            StructuralValidationException: If the document is structurally invalid
        """
        logger.info(f"Mapping workflow to UI graph: {document.name or '<unnamed>'}")

        internal_graph = self.graph_builder.build(document).unwrap()
        positioned_graph = apply_layout(internal_graph, orientation)

        return self.map_graph(
            positioned_graph,
            show_details=show_details,
            wrap_long_text=wrap_long_text,
            hide_mini_map=hide_mini_map
        )

    def map_graph(
        self,
        graph: WorkflowGraph,
        show_details: bool = True,
        wrap_long_text: bool = True,
        hide_mini_map: bool = True
    ) -> UIGraph:
        """
        Convert a positioned graph

        Args:
            graph: Graph returned by the layout engine
            show_details: Render summary lines on nodes
            wrap_long_text: Forwarded to the canvas
            hide_mini_map: Forwarded to the canvas

        Returns:
            UIGraph
        """
        ui_nodes = self._convert_nodes(graph.nodes, show_details, wrap_long_text)
        ui_edges = self._convert_edges(graph.edges)

        viewport = {
            "x": 0,
            "y": 0,
            "zoom": 1.0
        }

        metadata = {
            **graph.metadata,
            "node_count": len(ui_nodes),
            "edge_count": len(ui_edges),
            "options": {
                "show_details": show_details,
                "wrap_long_text": wrap_long_text,
                "hide_mini_map": hide_mini_map
            }
        }

        logger.info(f"Mapped UI graph: {len(ui_nodes)} nodes, {len(ui_edges)} edges")

        return UIGraph(nodes=ui_nodes, edges=ui_edges, viewport=viewport, metadata=metadata)

    def _convert_nodes(self, nodes: List[GraphNode], show_details: bool, wrap_long_text: bool) -> List[UINode]:
        ui_nodes = []

        for node in nodes:
            if node.position is None:
                logger.warning(f"Node '{node.id}' reached the mapper without a position")
            position = node.position or {"x": 0, "y": 0}
            node_type = render_type(node.kind)

            ui_data = {
                **node.data,
                "label": node.label,
                "kind": node.kind,
                "summary": list(node.summary_lines) if show_details else [],
                "wrap_long_text": wrap_long_text
            }

            ui_nodes.append(UINode(
                id=node.id,
                type=node_type,
                position=dict(position),
                data=ui_data,
                className=f"node-{node_type}"
            ))

        return ui_nodes

    def _convert_edges(self, edges: List[GraphEdge]) -> List[UIEdge]:
        ui_edges = []

        for edge in edges:
            data = {"branch": edge.branch}
            if edge.decision_kind:
                data["decision_kind"] = edge.decision_kind
                data["condition"] = edge.label

            ui_edges.append(UIEdge(
                id=edge.id,
                source=edge.source,
                target=edge.target,
                label=edge_display_label(edge.label),
                animated=edge.animated,
                style=dict(DECISION_EDGE_STYLE) if edge.branch else None,
                markerEnd=dict(self.EDGE_MARKER),
                data=data
            ))

        return ui_edges


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def map_workflow_to_ui_graph(
    document: WorkflowDocument,
    orientation: Orientation = Orientation.TB
) -> Dict[str, Any]:
    """
    Convenience function to map a workflow document to a UI graph

    Args:
        document: Parsed workflow document
        orientation: Layout orientation

    Returns:
        UI graph dictionary
    """
    mapper = GraphMapper()
    ui_graph = mapper.map_to_ui_graph(document, orientation)
    return ui_graph.to_dict()
