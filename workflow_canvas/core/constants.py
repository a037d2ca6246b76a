"""
Core Constants and Enums
Central source of truth for node kinds, reserved ids, summary limits and layout spacing
"""
from enum import Enum


# ============================================================================
# NODE KINDS
# ============================================================================

class StepType(str, Enum):
    """
    Step types understood by the compiler

    Anything else found in a document degrades to a generic container node.
    """
    BASH = "bash"
    REMOTE_BASH = "remote-bash"
    CONTAINER = "container"
    PARALLEL = "parallel"
    PARALLEL_STEPS = "parallel-steps"
    FUNCTION = "function"
    FOREACH = "foreach"
    HTTP = "http"
    LLM = "llm"
    OVERRIDE = "override"


class SyntheticKind(str, Enum):
    """Node kinds that do not come from a step"""
    START = "start"
    END = "end"
    TRIGGER = "trigger"
    MODULE = "module"
    OVERRIDE = "override"


class DocumentKind(str, Enum):
    """Workflow document kinds"""
    MODULE = "module"
    FLOW = "flow"


class Orientation(str, Enum):
    """
    Layout orientation

    TB: ranks run top to bottom
    LR: ranks run left to right
    """
    TB = "TB"
    LR = "LR"


class DecisionKind(str, Enum):
    """Where a decision edge came from"""
    RULE = "rule"
    CASE = "case"
    DEFAULT = "default"


# ============================================================================
# RESERVED NODE IDS
# ============================================================================

START_NODE_ID = "_start"
END_NODE_ID = "_end"
TRIGGER_NODE_ID = "_trigger"
OVERRIDE_NODE_ID = "_override"

RESERVED_NODE_IDS = frozenset({START_NODE_ID, END_NODE_ID, TRIGGER_NODE_ID, OVERRIDE_NODE_ID})

# Node types the rendering surface knows how to draw
RENDERABLE_NODE_TYPES = frozenset({
    "start", "end", "trigger", "bash", "parallel", "function", "foreach",
    "http", "llm", "container", "module", "override",
})

RENDER_TYPE_ALIASES = {
    StepType.PARALLEL_STEPS.value: "parallel",
    StepType.REMOTE_BASH.value: "container",
}

FALLBACK_RENDER_TYPE = "container"


# ============================================================================
# SUMMARY LIMITS
# ============================================================================

class SummaryLimits:
    """
    Limits applied to on-canvas summaries
    """
    MAX_LINE_LENGTH = 140
    MAX_LINES = 3
    MAX_TRIGGER_LINES = 5
    MAX_INLINE_ITEMS = 3
    MAX_EDGE_LABEL_LENGTH = 30
    ELLIPSIS = "…"
    REDACTED = "***"


SENSITIVE_KEY_MARKERS = (
    "password",
    "passwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "authorization",
)


# ============================================================================
# LAYOUT SPACING
# ============================================================================

class LayoutSpacing:
    """
    Spacing used by the layered layout

    Branching graphs get wider gaps so edge labels stay readable.
    """
    NODE_WIDTH = 220
    NODE_HEIGHT = 80

    RANKSEP = 80
    NODESEP = 50
    EDGESEP = 10
    MARGIN = 20

    BRANCH_RANKSEP = 170
    BRANCH_NODESEP = 120
    BRANCH_NODESEP_INCREMENT = 40
    BRANCH_EDGESEP = 40
    BRANCH_MARGIN = 60

    CROSSING_SWEEPS = 8


# ============================================================================
# EDGE STYLES
# ============================================================================

DECISION_EDGE_STYLE = {"strokeDasharray": "5 5"}
DEFAULT_EDGE_TYPE = "smoothstep"
