"""
Pytest configuration and fixtures for StackForge tests
"""
import sys
from pathlib import Path

import pytest

# Add module directories to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "backend"))
sys.path.insert(0, str(project_root / "StackForge"))

from config import get_settings  # noqa: E402
from graph_loader import build_graph  # noqa: E402

FRONTEND_BLUEPRINT = project_root / "blueprints" / "frontend.yaml"


def ref(node_id, output="id", deferred=False, placeholder=None):
    """Reference input value in graph construction format."""
    value = {"ref": node_id, "output": output}
    if deferred:
        value["deferred"] = True
    if placeholder is not None:
        value["placeholder"] = placeholder
    return value


def generic_node(node_id, **inputs):
    """Node of an opaque kind (no contract), exposing 'id' and 'arn' when simulated."""
    return {"id": node_id, "kind": "generic", "inputs": inputs}


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Every test starts from default settings, read from a clean environment."""
    for name in (
        "STACKFORGE_PLACEHOLDER",
        "STACKFORGE_DEFAULT_REGION",
        "STACKFORGE_STRICT_CONTRACTS",
        "STACKFORGE_LOG_LEVEL",
        "STACKFORGE_CORS_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def scenario_spec():
    """
    The end-to-end scenario: a CDN fed by a bucket and a certificate whose
    load balancer origin is deferred, and a DNS record that needs the
    reconnected CDN.
    """
    return [
        generic_node("vpc"),
        generic_node("s3"),
        generic_node("cert", hostedZone="Z0000EXAMPLE"),
        generic_node(
            "cdn",
            origin=ref("s3"),
            certificate=ref("cert", "arn"),
            lbOrigin=ref("compute", deferred=True),
        ),
        generic_node("dns", target=ref("cdn")),
        generic_node("compute", vpc=ref("vpc")),
    ]


@pytest.fixture
def scenario_graph(scenario_spec):
    return build_graph(scenario_spec)


@pytest.fixture
def deferred_pair_graph():
    """A needs B's output (deferred), B needs A's output: a cycle broken by one deferred edge."""
    return build_graph([
        generic_node("a", peer=ref("b", deferred=True, placeholder="tbd")),
        generic_node("b", peer=ref("a")),
    ])


@pytest.fixture
def frontend_blueprint():
    return FRONTEND_BLUEPRINT
