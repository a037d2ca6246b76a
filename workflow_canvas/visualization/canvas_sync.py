"""
Canvas Sync Controller
Single owner of the selected node id, shared by the canvas and the side panel
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Sequence

from workflow_canvas.visualization.graph_mapper import UINode
from workflow_canvas.core.constants import END_NODE_ID, LayoutSpacing, START_NODE_ID
from workflow_canvas.core.logging import get_logger

logger = get_logger(__name__)

# Canvas markers with nothing to inspect
UNSELECTABLE_NODE_IDS = frozenset({START_NODE_ID, END_NODE_ID})

FOCUS_MIN_ZOOM = 1.09
FOCUS_DURATION_MS = 500


class RenderingSurface(ABC):
    """The camera/viewport side of the canvas"""

    @abstractmethod
    def get_node(self, node_id: str) -> Optional[Dict[str, Any]]:
        """Rendered node with `position` and, once drawn, `measured` size"""
        raise NotImplementedError

    @abstractmethod
    def get_zoom(self) -> float:
        raise NotImplementedError

    @abstractmethod
    def set_center(self, x: float, y: float, zoom: float, duration_ms: int) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class SelectionChange:
    """One entry of a canvas selection-change batch"""
    id: str
    selected: bool


def normalize_selection(node_id: Optional[str]) -> Optional[str]:
    """Start and end markers map to no selection"""
    if node_id in UNSELECTABLE_NODE_IDS:
        return None
    return node_id


class CanvasSyncController:
    """
    Keeps one "selected node id or None" and reconciles both producers

    States: no selection <-> node selected. Transitions happen only through
    `select()` (side panel), `handle_selection_changes()` (canvas click) and
    `clear()`.

    Usage:
        controller = CanvasSyncController(on_select=panel.show, surface=canvas)
        controller.navigate_to_node("fetch-subdomains")
        nodes = controller.apply_selection(ui_graph.nodes)
    """

    def __init__(
        self,
        on_select: Optional[Callable[[Optional[str]], None]] = None,
        surface: Optional[RenderingSurface] = None,
        min_zoom: float = FOCUS_MIN_ZOOM,
        duration_ms: int = FOCUS_DURATION_MS
    ):
        self._selected_id: Optional[str] = None
        self.on_select = on_select
        self.surface = surface
        self.min_zoom = min_zoom
        self.duration_ms = duration_ms

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select(self, node_id: Optional[str]) -> None:
        """External selection (side panel click, or None to deselect)"""
        self._transition(normalize_selection(node_id))

    def clear(self) -> None:
        self._transition(None)

    def handle_selection_changes(self, changes: Sequence[SelectionChange]) -> None:
        """
        Apply one batch of canvas selection changes

        A click that deselects A and selects B arrives as one batch. The
        selection is cleared only when the batch deselects the current node
        and selects nothing else.

        Args:
            changes: Selection changes reported by the canvas
        """
        selected = [change for change in changes if change.selected]
        if selected:
            self._transition(normalize_selection(selected[0].id))
            return

        if self._selected_id is not None and any(c.id == self._selected_id for c in changes):
            self._transition(None)

    def _transition(self, node_id: Optional[str]) -> None:
        if node_id == self._selected_id:
            return
        logger.debug(f"Selection: {self._selected_id} -> {node_id}")
        self._selected_id = node_id
        if self.on_select is not None:
            self.on_select(node_id)

    # ------------------------------------------------------------------
    # Derived render state
    # ------------------------------------------------------------------

    def apply_selection(self, nodes: Sequence[UINode]) -> List[UINode]:
        """
        Re-derive every node's `selected` flag from the current id

        Returns a new list of new node objects; the input nodes are untouched.
        """
        return [replace(node, selected=node.id == self._selected_id) for node in nodes]

    # ------------------------------------------------------------------
    # Camera
    # ------------------------------------------------------------------

    def focus_node(self, node_id: str) -> None:
        """
        Center the camera on a node

        Zoom is raised to at least `min_zoom` and never lowered. Unknown ids
        and a missing surface are no-ops; selection is not changed.

        Args:
            node_id: Node to center on
        """
        if self.surface is None:
            logger.debug(f"No rendering surface attached, cannot focus '{node_id}'")
            return

        node = self.surface.get_node(node_id)
        if node is None:
            logger.debug(f"Focus requested for unknown node '{node_id}'")
            return

        position = node.get("position") or {}
        measured = node.get("measured") or {}
        width = measured.get("width") or node.get("width") or LayoutSpacing.NODE_WIDTH
        height = measured.get("height") or node.get("height") or LayoutSpacing.NODE_HEIGHT

        center_x = position.get("x", 0) + width / 2
        center_y = position.get("y", 0) + height / 2
        zoom = max(self.surface.get_zoom(), self.min_zoom)

        self.surface.set_center(center_x, center_y, zoom, self.duration_ms)

    def navigate_to_node(self, node_id: str) -> None:
        """Side-panel navigation: select the node, then focus the camera on it"""
        self.select(node_id)
        self.focus_node(node_id)
