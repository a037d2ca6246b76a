"""
Shared fixtures: workflow documents used across the suite
"""
import pytest

from workflow_canvas.workflow.graph_builder import GraphBuilder


@pytest.fixture
def builder():
    """Graph builder with default limits."""
    return GraphBuilder()


@pytest.fixture
def linear_document():
    """Two bash steps, no branching."""
    return {
        "kind": "module",
        "name": "linear",
        "steps": [
            {"name": "a", "type": "bash", "command": "echo hi"},
            {"name": "b", "type": "bash", "command": "echo bye"}
        ]
    }


@pytest.fixture
def decision_document():
    """Step `a` branches to `b` or `c`."""
    return {
        "kind": "module",
        "name": "branching",
        "steps": [
            {
                "name": "a",
                "type": "bash",
                "command": "check",
                "decision": [
                    {"condition": "x==1", "next": "b"},
                    {"condition": "x==2", "next": "c"}
                ]
            },
            {"name": "b", "type": "bash", "command": "echo b"},
            {"name": "c", "type": "bash", "command": "echo c"}
        ]
    }


@pytest.fixture
def duplicate_document():
    """Two steps share the name `scan`."""
    return {
        "kind": "module",
        "steps": [
            {"name": "scan", "type": "bash", "command": "nmap a"},
            {"name": "scan", "type": "bash", "command": "nmap b"}
        ]
    }


@pytest.fixture
def flow_document():
    """Flow of modules wired with depends_on."""
    return {
        "kind": "flow",
        "name": "recon-flow",
        "modules": [
            {"name": "recon", "path": "modules/recon.yaml"},
            {"name": "ports", "path": "modules/ports.yaml", "depends_on": ["recon"]},
            {"name": "web", "path": "modules/web.yaml", "depends_on": ["recon"]},
            {"name": "report", "path": "modules/report.yaml", "depends_on": ["ports", "web"]}
        ]
    }


@pytest.fixture
def triggered_document():
    """Module workflow with two triggers."""
    return {
        "kind": "module",
        "name": "scheduled",
        "triggers": [
            {"name": "nightly", "on": "cron", "schedule": "0 2 * * *"},
            {"name": "on-upload", "on": "watch", "path": "/data/in", "enabled": False}
        ],
        "steps": [
            {"name": "fetch", "type": "http", "url": "https://example.com", "method": "get"},
            {"name": "parse", "type": "function", "function": "parse_body"}
        ]
    }
