"""
Test Suite for Workflow Document Models

Covers step dispatch, degradation of malformed entries, trigger forms
and decision coercion.
"""

import pytest

from workflow_canvas.core.constants import DocumentKind
from workflow_canvas.schemas.workflow_models import (
    CommandStep,
    ForeachStep,
    FunctionStep,
    HttpStep,
    LlmStep,
    ParallelStep,
    SwitchDecision,
    UnknownStep,
    WorkflowDocument,
    coerce_decision,
    is_degraded,
    parse_module,
    parse_step,
    parse_trigger,
)
from workflow_canvas.services.visualization_service import load_workflow_document
from workflow_canvas.validator.errors import DocumentParseException
from workflow_canvas.visualization.summary import summarize
from workflow_canvas.workflow.graph_builder import GraphBuilder


def _pairs(raw):
    graph = GraphBuilder().build(WorkflowDocument.from_raw(raw)).unwrap()
    return [(e.source, e.target) for e in graph.edges]


class TestStepParsing:
    """Raw step mappings -> typed variants"""

    @pytest.mark.parametrize("step_type,model", [
        ("bash", CommandStep),
        ("remote-bash", CommandStep),
        ("container", CommandStep),
        ("parallel-steps", ParallelStep),
        ("function", FunctionStep),
        ("llm", LlmStep),
    ])
    def test_dispatch_by_type(self, step_type, model):
        step = parse_step({"name": "s", "type": step_type})

        assert isinstance(step, model)
        assert step.type == step_type

    def test_unknown_type_degrades(self):
        step = parse_step({"name": "s", "type": "teleport"})

        assert isinstance(step, UnknownStep)
        assert is_degraded(step)
        assert step.type == "teleport"

    def test_malformed_field_is_omitted(self):
        """A bad optional field is dropped; the step keeps its type and the rest."""
        step = parse_step({"name": "s", "type": "http", "url": "https://x.io", "headers": "not-a-mapping"})

        assert isinstance(step, HttpStep)
        assert step.headers is None
        assert step.url == "https://x.io"

    def test_bad_field_keeps_decision(self):
        step = parse_step({
            "name": "a",
            "type": "bash",
            "exports": ["x"],
            "decision": [{"condition": "x==1", "next": "c"}]
        })

        assert isinstance(step, CommandStep)
        assert step.exports is None
        assert [(r.condition, r.next) for r in step.decision] == [("x==1", "c")]

    def test_bad_field_keeps_nested_step(self):
        step = parse_step({"name": "loop", "type": "foreach", "exports": ["out"], "step": {"name": "inner", "type": "bash"}})

        assert isinstance(step, ForeachStep)
        assert step.step == {"name": "inner", "type": "bash"}

    def test_bad_precondition_keeps_summary(self):
        step = parse_step({"name": "s", "type": "http", "url": "https://x.io", "pre_condition": True})

        assert isinstance(step, HttpStep)
        assert step.pre_condition is None
        assert summarize(step) == ["HTTP https://x.io"]

    def test_bad_name_degrades(self):
        """Without a usable name the step falls back to a container."""
        step = parse_step({"name": 5, "type": "bash", "command": "id"})

        assert isinstance(step, UnknownStep)
        assert step.name == ""
        assert step.type == "bash"

    def test_non_string_type_degrades(self):
        step = parse_step({"name": "s", "type": ["bash"]})

        assert isinstance(step, UnknownStep)
        assert step.type == ""

    def test_non_mapping_entry(self):
        step = parse_step("just a string")

        assert isinstance(step, UnknownStep)
        assert step.name == ""

    def test_extra_fields_are_kept(self):
        step = parse_step({"name": "s", "type": "bash", "command": "id", "custom": 1})

        assert step.to_raw()["custom"] == 1


class TestDecisions:
    def test_rule_list(self):
        """Non-mapping rule entries are dropped."""
        step = parse_step({
            "name": "s",
            "type": "bash",
            "decision": [{"condition": "x == 1", "next": "a"}, "junk"]
        })

        assert [(r.condition, r.next) for r in step.decision] == [("x == 1", "a")]

    def test_switch_case_keys_are_strings(self):
        step = parse_step({
            "name": "s",
            "type": "bash",
            "decision": {"switch": "{{code}}", "cases": {200: {"goto": "ok"}, True: {"next": "yes"}}, "default": {"next": "err"}}
        })

        assert isinstance(step.decision, SwitchDecision)
        assert set(step.decision.cases) == {"200", "True"}
        assert step.decision.cases["200"].target == "ok"
        assert step.decision.default.target == "err"

    def test_goto_wins_over_next(self):
        step = parse_step({
            "name": "s",
            "type": "bash",
            "decision": {"switch": "v", "cases": {"a": {"goto": "x", "next": "y"}}}
        })

        assert step.decision.cases["a"].target == "x"

    @pytest.mark.parametrize("value", ["bogus", 42, {"cases": {}}, {"switch": "v"}])
    def test_unrecognised_shapes_are_dropped(self, value):
        assert coerce_decision(value) is None


class TestModulesAndTriggers:
    def test_module_keeps_string_dependencies(self):
        module = parse_module({"name": "m", "depends_on": ["a", 3, None, "b"]})

        assert module.depends_on == ["a", "b"]

    def test_module_bad_field_keeps_dependencies(self):
        module = parse_module({"name": "m3", "depends_on": ["m1"], "on_success": ["notify"]})

        assert module.depends_on == ["m1"]
        assert module.on_success is None

    def test_trigger_bad_field_is_omitted(self):
        trigger = parse_trigger({"name": "t", "on": "cron", "schedule": "0 2 * * *", "enabled": "sometimes"})

        assert trigger.enabled is None
        assert trigger.schedule == "0 2 * * *"

    def test_module_non_mapping(self):
        assert parse_module(["x"]).name == ""

    def test_trigger_event_alias(self):
        trigger = parse_trigger({"name": "t", "on": "event", "event": {"topic": "x", "filterFunctions": ["f"]}})

        assert trigger.event.filter_functions == ["f"]
        assert trigger.to_raw()["event"]["filterFunctions"] == ["f"]

    def test_yaml_on_key(self):
        """A bare `on:` key read as boolean true still sets the trigger kind."""
        document = load_workflow_document(
            "name: w\n"
            "triggers:\n"
            "  - name: nightly\n"
            "    on: cron\n"
            "    schedule: '0 2 * * *'\n"
        )

        assert document.triggers[0].on == "cron"
        assert document.triggers[0].schedule == "0 2 * * *"


class TestDocument:
    def test_none_is_empty_module(self):
        document = WorkflowDocument.from_raw(None)

        assert document.kind == DocumentKind.MODULE
        assert document.steps == []
        assert document.triggers == []

    def test_non_mapping_raises(self):
        with pytest.raises(DocumentParseException):
            WorkflowDocument.from_raw(["not", "a", "mapping"])

    def test_flow_kind(self):
        document = WorkflowDocument.from_raw({
            "kind": "flow",
            "name": "f",
            "modules": [{"name": "a"}],
            "override": {"params": {"x": 1}}
        })

        assert document.is_flow
        assert [m.name for m in document.modules] == ["a"]
        assert document.override == {"params": {"x": 1}}

    def test_single_trigger_mapping(self):
        document = WorkflowDocument.from_raw({"trigger": {"name": "t", "on": "watch", "path": "/in"}})

        assert [t.name for t in document.triggers] == ["t"]

    def test_document_is_frozen(self):
        document = WorkflowDocument.from_raw({"name": "w"})

        with pytest.raises(Exception):
            document.name = "other"

    def test_invalid_yaml(self):
        with pytest.raises(DocumentParseException):
            load_workflow_document("steps: [unclosed")

    def test_scalar_yaml(self):
        with pytest.raises(DocumentParseException):
            load_workflow_document("just text")


class TestInvalidFieldsKeepEdges:
    """An unrelated bad field never changes the compiled edges."""

    def test_decision_edges_survive(self):
        raw = {
            "steps": [
                {"name": "a", "type": "bash", "exports": ["x"], "decision": [{"condition": "x==1", "next": "c"}]},
                {"name": "b", "type": "bash"},
                {"name": "c", "type": "bash"}
            ]
        }

        assert _pairs(raw) == [("_start", "a"), ("a", "c"), ("b", "c"), ("c", "_end")]

    def test_foreach_with_bad_field_compiles(self):
        raw = {
            "steps": [
                {"name": "loop", "type": "foreach", "exports": ["out"], "step": {"name": "inner", "type": "bash"}}
            ]
        }

        assert _pairs(raw) == [("_start", "loop"), ("loop", "_end")]

    def test_depends_on_survives(self):
        raw = {
            "kind": "flow",
            "modules": [
                {"name": "m1"},
                {"name": "m2"},
                {"name": "m3", "depends_on": ["m1"], "on_success": ["notify"]}
            ]
        }

        pairs = _pairs(raw)

        assert ("m1", "m3") in pairs
        assert ("m2", "m3") not in pairs
