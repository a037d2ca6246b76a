"""
API Request/Response Models for Workflow Canvas
"""
from typing import Dict, List, Optional, Any, Literal
from pydantic import BaseModel, Field, model_validator

from workflow_canvas.core.config import Settings


# ============================================================================
# CANVAS OPTIONS
# ============================================================================

class CanvasOptions(BaseModel):
    """Display options; unset values fall back to configured defaults"""
    orientation: Optional[Literal["TB", "LR"]] = Field(default=None, description="TB: top to bottom, LR: left to right")
    wrap_long_text: Optional[bool] = Field(default=None, description="Wrap long summary lines on the canvas")
    show_details: Optional[bool] = Field(default=None, description="Render summary lines on nodes")
    hide_mini_map: Optional[bool] = Field(default=None, description="Hide the canvas mini map")

    def with_defaults(self, settings: Settings) -> "CanvasOptions":
        """Copy with every unset option taken from settings"""
        return CanvasOptions(
            orientation=self.orientation or settings.DEFAULT_ORIENTATION,
            wrap_long_text=settings.DEFAULT_WRAP_LONG_TEXT if self.wrap_long_text is None else self.wrap_long_text,
            show_details=settings.DEFAULT_SHOW_DETAILS if self.show_details is None else self.show_details,
            hide_mini_map=settings.DEFAULT_HIDE_MINI_MAP if self.hide_mini_map is None else self.hide_mini_map
        )


# ============================================================================
# VALIDATION MODELS
# ============================================================================

class ValidationErrorModel(BaseModel):
    """Structured validation error"""
    severity: Literal["error", "warning"]
    error_type: str
    location: str = Field(..., description="Where the error occurred")
    message: str
    code: str
    suggestion: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class StructuralErrorResponse(BaseModel):
    """Body returned when a document cannot be compiled"""
    error: str
    message: str
    errors: List[ValidationErrorModel] = Field(default_factory=list)


# ============================================================================
# GRAPH MODELS
# ============================================================================

class UINodeModel(BaseModel):
    """Node as consumed by the rendering surface"""
    id: str
    type: str
    position: Dict[str, float]
    data: Dict[str, Any] = Field(default_factory=dict)
    selected: bool = False
    className: Optional[str] = None


class UIEdgeModel(BaseModel):
    """Edge as consumed by the rendering surface"""
    id: str
    source: str
    target: str
    type: Optional[str] = None
    label: Optional[str] = None
    animated: bool = False
    style: Optional[Dict[str, Any]] = None
    markerEnd: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None


class WorkflowGraphRequest(BaseModel):
    """Request to compile and lay out a workflow document"""
    document: Optional[Dict[str, Any]] = Field(default=None, description="Already parsed workflow document")
    yaml_text: Optional[str] = Field(default=None, description="Workflow document as YAML or JSON text")
    options: CanvasOptions = Field(default_factory=CanvasOptions)

    @model_validator(mode="after")
    def exactly_one_source(self) -> "WorkflowGraphRequest":
        if (self.document is None) == (self.yaml_text is None):
            raise ValueError("provide exactly one of 'document' or 'yaml_text'")
        return self


class WorkflowGraphResponse(BaseModel):
    """Positioned graph ready for rendering"""
    nodes: List[UINodeModel]
    edges: List[UIEdgeModel]
    viewport: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    options: CanvasOptions
    warnings: List[ValidationErrorModel] = Field(default_factory=list)


# ============================================================================
# SUMMARY MODELS
# ============================================================================

class SummaryRequest(BaseModel):
    """Request to summarize one step, module or trigger"""
    entity: Dict[str, Any]
    entity_kind: Literal["step", "module", "trigger"] = "step"
    max_len: Optional[int] = Field(default=None, ge=2, le=1000, description="Longest line before the ellipsis")


class SummaryResponse(BaseModel):
    """Summary lines for one entity"""
    entity_kind: str
    type: str
    lines: List[str]
    has_structured_args: bool = False
    degraded: bool = False
