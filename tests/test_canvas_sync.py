"""
Test Suite for Canvas Sync

Covers the selection state machine, derived node flags, camera focus and
the canvas session that keeps the last good graph.
"""

import pytest

from workflow_canvas.core.constants import Orientation
from workflow_canvas.schemas.api_models import CanvasOptions
from workflow_canvas.services.visualization_service import CanvasSession
from workflow_canvas.visualization.canvas_sync import (
    CanvasSyncController,
    RenderingSurface,
    SelectionChange,
    normalize_selection,
)
from workflow_canvas.visualization.graph_mapper import UINode


class FakeSurface(RenderingSurface):
    """Records camera moves instead of animating them"""

    def __init__(self, nodes=None, zoom=1.0):
        self.nodes = nodes or {}
        self.zoom = zoom
        self.calls = []

    def get_node(self, node_id):
        return self.nodes.get(node_id)

    def get_zoom(self):
        return self.zoom

    def set_center(self, x, y, zoom, duration_ms):
        self.calls.append((x, y, zoom, duration_ms))


def _ui_nodes(*ids):
    return [UINode(id=i, type="bash", position={"x": 0, "y": 0}, data={}) for i in ids]


@pytest.fixture
def selections():
    return []


@pytest.fixture
def controller(selections):
    return CanvasSyncController(on_select=selections.append)


class TestSelection:
    """One selected id, two producers."""

    def test_select_and_clear(self, controller, selections):
        controller.select("scan")
        assert controller.selected_id == "scan"

        controller.clear()
        assert controller.selected_id is None
        assert selections == ["scan", None]

    @pytest.mark.parametrize("marker", ["_start", "_end"])
    def test_markers_are_not_selectable(self, controller, marker):
        controller.select("scan")
        controller.select(marker)

        assert controller.selected_id is None

    def test_normalize_selection(self):
        assert normalize_selection("_start") is None
        assert normalize_selection("_trigger") == "_trigger"
        assert normalize_selection(None) is None

    def test_callback_only_on_change(self, controller, selections):
        """Re-selecting the current node does not notify."""
        controller.select("a")
        controller.select("a")
        controller.clear()
        controller.clear()

        assert selections == ["a", None]

    def test_batch_deselect_then_select(self, controller):
        """Deselect A + select B in one batch ends with B selected."""
        controller.select("a")
        controller.handle_selection_changes([
            SelectionChange(id="a", selected=False),
            SelectionChange(id="b", selected=True)
        ])

        assert controller.selected_id == "b"

    def test_batch_without_selection_clears(self, controller):
        controller.select("a")
        controller.handle_selection_changes([SelectionChange(id="a", selected=False)])

        assert controller.selected_id is None

    def test_deselecting_another_node_keeps_selection(self, controller, selections):
        """A batch that only deselects some other node leaves the selection alone."""
        controller.select("y")
        controller.handle_selection_changes([SelectionChange(id="x", selected=False)])

        assert controller.selected_id == "y"
        assert selections == ["y"]

    def test_empty_batch_keeps_selection(self, controller):
        controller.select("a")
        controller.handle_selection_changes([])

        assert controller.selected_id == "a"

    def test_canvas_click_on_marker(self, controller):
        controller.select("a")
        controller.handle_selection_changes([SelectionChange(id="_end", selected=True)])

        assert controller.selected_id is None


class TestApplySelection:
    def test_exactly_one_flag(self, controller):
        """Only the selected node carries the flag."""
        controller.select("b")

        nodes = controller.apply_selection(_ui_nodes("a", "b", "c"))

        assert [n.selected for n in nodes] == [False, True, False]

    def test_nothing_selected(self, controller):
        nodes = controller.apply_selection(_ui_nodes("a", "b"))

        assert not any(n.selected for n in nodes)

    def test_input_untouched(self, controller):
        original = _ui_nodes("a")
        controller.select("a")

        updated = controller.apply_selection(original)

        assert original[0].selected is False
        assert updated[0] is not original[0]

    def test_single_flag_after_any_sequence(self, controller):
        """At most one node is flagged whatever the event order."""
        events = [
            lambda: controller.select("a"),
            lambda: controller.handle_selection_changes([SelectionChange(id="c", selected=True)]),
            lambda: controller.select("_start"),
            lambda: controller.select("b"),
            lambda: controller.handle_selection_changes([SelectionChange(id="b", selected=False)]),
        ]
        for event in events:
            event()
            nodes = controller.apply_selection(_ui_nodes("a", "b", "c"))
            assert sum(n.selected for n in nodes) <= 1


class TestFocus:
    """Camera centring and zoom."""

    def test_centre_and_minimum_zoom(self):
        surface = FakeSurface(
            nodes={"scan": {"position": {"x": 100, "y": 200}, "measured": {"width": 220, "height": 80}}},
            zoom=0.5
        )
        controller = CanvasSyncController(surface=surface)

        controller.focus_node("scan")

        assert surface.calls == [(210, 240, 1.09, 500)]

    def test_zoom_never_lowered(self):
        surface = FakeSurface(nodes={"scan": {"position": {"x": 0, "y": 0}}}, zoom=2.0)
        controller = CanvasSyncController(surface=surface)

        controller.focus_node("scan")

        assert surface.calls[0][2] == 2.0

    def test_default_size_before_measurement(self):
        """Unmeasured nodes use the default node size."""
        surface = FakeSurface(nodes={"scan": {"position": {"x": 0, "y": 0}}})
        controller = CanvasSyncController(surface=surface)

        controller.focus_node("scan")

        assert surface.calls[0][:2] == (110, 40)

    def test_unknown_node_is_noop(self):
        surface = FakeSurface()
        controller = CanvasSyncController(surface=surface)

        controller.focus_node("ghost")

        assert surface.calls == []

    def test_no_surface_is_noop(self, controller):
        controller.focus_node("scan")

        assert controller.selected_id is None

    def test_navigate_selects_then_focuses(self, selections):
        surface = FakeSurface(nodes={"scan": {"position": {"x": 0, "y": 0}, "width": 100, "height": 50}})
        controller = CanvasSyncController(on_select=selections.append, surface=surface)

        controller.navigate_to_node("scan")

        assert selections == ["scan"]
        assert surface.calls == [(50, 25, 1.09, 500)]


class TestCanvasSession:
    """The session keeps the last good graph."""

    def test_load(self, triggered_document):
        session = CanvasSession()

        assert session.load(triggered_document)
        assert session.error is None
        assert [n.id for n in session.graph.nodes] == ["_start", "_trigger", "fetch", "parse", "_end"]

    def test_failed_load_keeps_previous_graph(self, linear_document, duplicate_document):
        session = CanvasSession()
        session.load(linear_document)
        previous = session.graph

        assert not session.load(duplicate_document)
        assert session.graph is previous
        assert "scan" in session.error

    def test_bad_yaml_is_reported(self):
        session = CanvasSession()

        assert not session.load("steps: [unclosed")
        assert session.graph is None
        assert session.error

    def test_set_orientation_relayouts(self, linear_document):
        session = CanvasSession(options=CanvasOptions(orientation="TB"))
        session.load(linear_document)

        session.set_orientation(Orientation.LR)

        assert session.options.orientation == "LR"
        assert session.graph.metadata["orientation"] == "LR"

    def test_nodes_carry_selection(self, linear_document):
        session = CanvasSession()
        session.load(linear_document)
        session.controller.select("b")

        flags = {n.id: n.selected for n in session.nodes()}

        assert flags == {"_start": False, "a": False, "b": True, "_end": False}

    def test_nodes_without_graph(self):
        assert CanvasSession().nodes() == []
