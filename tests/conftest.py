"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables
os.environ["FLOWGRAPH_ENV"] = "test"
os.environ["FLOWGRAPH_HISTORY_BACKEND"] = "memory"
os.environ["FLOWGRAPH_WAIT_MAX_SECONDS"] = "2"
os.environ["FLOWGRAPH_REDIS_URL"] = "redis://localhost:6379/1"  # Test DB


@pytest.fixture(autouse=True)
def reset_globals():
    """Fresh settings, registry and API singletons for every test."""
    from flowgraph.api.dependencies import reset_dependencies
    from flowgraph.config import reset_settings
    from flowgraph.registry import reset_global_registry

    reset_settings()
    reset_global_registry()
    reset_dependencies()
    yield
    reset_settings()
    reset_global_registry()
    reset_dependencies()


@pytest.fixture
def registry():
    """Registry holding the core node pack."""
    from flowgraph.registry import create_default_registry

    return create_default_registry()


@pytest.fixture
def run_variables():
    """Run variables as the executor would build them."""
    from flowgraph.sdk import RunVariables

    return RunVariables(
        workflow={"id": "wf-test", "name": "Test Workflow", "active": True},
        execution={"id": "exec_test", "mode": "manual", "resumeUrl": ""},
        vars={"apiUrl": "https://api.example.com", "retries": 3},
    )


def make_workflow(nodes, edges=None, workflow_id="wf-test", name="Test Workflow"):
    """Build workflow JSON from (id, type, parameters) tuples or node dicts."""
    node_dicts = []
    for node in nodes:
        if isinstance(node, dict):
            node_dicts.append(node)
        else:
            node_id, node_type, parameters = node
            node_dicts.append({"id": node_id, "type": node_type, "parameters": parameters})
    return {
        "id": workflow_id,
        "name": name,
        "nodes": node_dicts,
        "edges": [{"source": source, "target": target} for source, target in (edges or [])],
    }


@pytest.fixture
def workflow_factory():
    """Factory for workflow JSON."""
    return make_workflow


@pytest.fixture
def node_context(run_variables):
    """Factory binding a handler to a node snapshot and input items."""
    from flowgraph.runtime import Node
    from flowgraph.sdk import Item, NodeExecutionContext

    def _bind(handler, parameters=None, items=None, node_type=None, transport=None, settings=None):
        node = Node(
            id="node-1",
            type=node_type or handler.type,
            parameters=parameters or {},
        )
        input_items = [item if isinstance(item, Item) else Item(json_data=item) for item in (items or [])]
        context = NodeExecutionContext(
            node=node,
            input_items=input_items,
            variables=run_variables,
            settings=settings,
            http_transport=transport,
            run_id="exec_test",
        )
        handler.set_context(context)
        return handler

    return _bind
