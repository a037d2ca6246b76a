"""
Visualization Service
Service layer wrapper for document loading, graph compilation, layout and summaries
"""
from typing import Any, List, Mapping, Optional, Tuple, Union

import yaml

from workflow_canvas.schemas.api_models import (
    CanvasOptions,
    SummaryRequest,
    SummaryResponse,
    ValidationErrorModel,
    WorkflowGraphRequest,
    WorkflowGraphResponse,
)
from workflow_canvas.schemas.workflow_models import (
    WorkflowDocument,
    is_degraded,
    parse_module,
    parse_step,
    parse_trigger,
)
from workflow_canvas.validator.errors import (
    DocumentParseException,
    StructuralValidationException,
    ValidationResult,
)
from workflow_canvas.workflow.graph_builder import GraphBuilder
from workflow_canvas.visualization.layout import apply_layout
from workflow_canvas.visualization.graph_mapper import GraphMapper, UIGraph, UINode
from workflow_canvas.visualization.canvas_sync import CanvasSyncController, RenderingSurface
from workflow_canvas.visualization.summary import has_structured_args, summarize
from workflow_canvas.core.config import Settings, get_settings
from workflow_canvas.core.constants import Orientation
from workflow_canvas.core.logging import get_logger

logger = get_logger(__name__)

DocumentSource = Union[WorkflowDocument, Mapping[str, Any], str]


def load_workflow_document(text: str) -> WorkflowDocument:
    """
    Parse YAML (or JSON) text into a workflow document

    Args:
        text: Document text

    Returns:
        WorkflowDocument

    Raises:
        DocumentParseException: If the text is not valid YAML or not a mapping
    """
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentParseException(f"invalid workflow document: {e}") from e

    return WorkflowDocument.from_raw(raw)


def to_document(source: DocumentSource) -> WorkflowDocument:
    """Accept a parsed document, a raw tree, or document text"""
    if isinstance(source, WorkflowDocument):
        return source
    if isinstance(source, str):
        return load_workflow_document(source)
    return WorkflowDocument.from_raw(source)


class VisualizationService:
    """
    Service layer for visualization operations

    Responsibilities:
    - Document text -> WorkflowDocument
    - WorkflowDocument -> positioned UI graph
    - Entity -> summary lines
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize visualization service"""
        self.settings = settings or get_settings()
        self._graph_builder = GraphBuilder(max_summary_len=self.settings.SUMMARY_MAX_LEN)
        self._graph_mapper = GraphMapper(max_summary_len=self.settings.SUMMARY_MAX_LEN)
        logger.info("VisualizationService initialized")

    def render(self, document: WorkflowDocument, options: CanvasOptions) -> Tuple[UIGraph, ValidationResult]:
        """
        Compile, lay out and map a document

        Args:
            document: Parsed workflow document
            options: Fully resolved canvas options

        Returns:
            UI graph and the validation result (warnings only)

        Raises:
            StructuralValidationException: If the document is structurally invalid
        """
        result = self._graph_builder.build(document)
        graph = result.unwrap()
        positioned = apply_layout(graph, Orientation(options.orientation))

        ui_graph = self._graph_mapper.map_graph(
            positioned,
            show_details=options.show_details,
            wrap_long_text=options.wrap_long_text,
            hide_mini_map=options.hide_mini_map
        )
        return ui_graph, result.validation

    async def generate_graph(self, request: WorkflowGraphRequest) -> WorkflowGraphResponse:
        """
        Generate the positioned graph for a document

        Args:
            request: Graph generation request

        Returns:
            WorkflowGraphResponse with nodes and edges

        Raises:
            DocumentParseException: If the document text does not parse
            StructuralValidationException: If the document is structurally invalid
        """
        options = request.options.with_defaults(self.settings)
        if request.document is not None:
            document = WorkflowDocument.from_raw(request.document)
        else:
            document = load_workflow_document(request.yaml_text)

        logger.info(f"Generating graph for: {document.name or '<unnamed>'} ({document.kind.value})")

        ui_graph, validation = self.render(document, options)
        payload = ui_graph.to_dict()

        return WorkflowGraphResponse(
            nodes=payload["nodes"],
            edges=payload["edges"],
            viewport=payload["viewport"],
            metadata=payload["metadata"],
            options=options,
            warnings=[ValidationErrorModel(**w.to_dict()) for w in validation.warnings]
        )

    async def summarize(self, request: SummaryRequest) -> SummaryResponse:
        """
        Summarize one step, module or trigger

        Args:
            request: Summary request

        Returns:
            SummaryResponse with display lines
        """
        max_len = request.max_len or self.settings.SUMMARY_MAX_LEN

        if request.entity_kind == "module":
            entity = parse_module(request.entity)
            entity_type, degraded = "module", False
        elif request.entity_kind == "trigger":
            entity = parse_trigger(request.entity)
            entity_type, degraded = entity.on or "trigger", False
        else:
            entity = parse_step(request.entity)
            entity_type, degraded = entity.type, is_degraded(entity)

        lines = summarize(entity, max_len)

        return SummaryResponse(
            entity_kind=request.entity_kind,
            type=entity_type,
            lines=lines,
            has_structured_args=has_structured_args(entity),
            degraded=degraded
        )


# ============================================================================
# CANVAS SESSION
# ============================================================================

class CanvasSession:
    """
    One open editor: the last good graph plus the selection controller

    A document that fails to parse or compile records its error and leaves
    the previously rendered graph in place. The latest load always wins.

    Usage:
        session = CanvasSession()
        if not session.load(yaml_text):
            show_banner(session.error)
        render(session.nodes(), session.graph.edges)
    """

    def __init__(
        self,
        service: Optional[VisualizationService] = None,
        options: Optional[CanvasOptions] = None,
        surface: Optional[RenderingSurface] = None,
        on_select=None
    ):
        self.service = service or get_visualization_service()
        self.options = (options or CanvasOptions()).with_defaults(self.service.settings)
        self.controller = CanvasSyncController(
            on_select=on_select,
            surface=surface,
            min_zoom=self.service.settings.FOCUS_MIN_ZOOM,
            duration_ms=self.service.settings.FOCUS_DURATION_MS
        )
        self.document: Optional[WorkflowDocument] = None
        self.graph: Optional[UIGraph] = None
        self.error: Optional[str] = None
        self.warnings: List[str] = []

    def load(self, source: DocumentSource) -> bool:
        """
        Compile and lay out a document

        Args:
            source: WorkflowDocument, raw tree or YAML text

        Returns:
            True if the graph was replaced, False if the previous one is kept
        """
        try:
            document = to_document(source)
            graph, validation = self.service.render(document, self.options)
        except (DocumentParseException, StructuralValidationException) as e:
            self.error = str(e)
            logger.warning(f"Keeping previous graph: {self.error}")
            return False

        self.document = document
        self.graph = graph
        self.error = None
        self.warnings = [w.message for w in validation.warnings]
        return True

    def set_orientation(self, orientation: Orientation) -> None:
        """Change orientation and re-layout the current document"""
        self.options = self.options.model_copy(update={"orientation": Orientation(orientation).value})
        if self.document is not None:
            self.load(self.document)

    def nodes(self) -> List[UINode]:
        """Nodes of the current graph with selection flags applied"""
        if self.graph is None:
            return []
        return self.controller.apply_selection(self.graph.nodes)


# ============================================================================
# SINGLETON INSTANCE (optional, or use dependency injection)
# ============================================================================

_visualization_service: Optional[VisualizationService] = None


def get_visualization_service() -> VisualizationService:
    """
    Get singleton visualization service instance

    Returns:
        VisualizationService instance
    """
    global _visualization_service

    if _visualization_service is None:
        _visualization_service = VisualizationService()

    return _visualization_service
