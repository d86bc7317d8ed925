"""Integration tests for execution API endpoints."""
import pytest
from fastapi.testclient import TestClient

from flowgraph.api.main import app


HELLO_WORKFLOW = {
    "id": "wf-api",
    "name": "API Workflow",
    "nodes": [
        {"id": "t", "type": "manual"},
        {"id": "s", "type": "set", "parameters": {"values": {"greeting": "hello"}}},
        {"id": "e", "type": "noOp"},
    ],
    "edges": [{"source": "t", "target": "s"}, {"source": "s", "target": "e"}],
}


@pytest.fixture
def client():
    """Test client with a fresh in-memory history."""
    with TestClient(app) as test_client:
        yield test_client


def test_health_check(client):
    """Test health check endpoint."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root_endpoint(client):
    """Test root endpoint."""
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["service"] == "flowgraph-engine"


def test_execute_workflow(client):
    """Test running a workflow and reading it back from history."""
    response = client.post("/v1/executions", json={"workflow": HELLO_WORKFLOW})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["nodesExecuted"] == 3
    assert data["executionOrder"] == ["t", "s", "e"]
    assert data["nodeResults"]["s"]["data"][0]["json"]["greeting"] == "hello"

    run_id = data["runId"]
    response = client.get(f"/v1/executions/{run_id}")
    assert response.status_code == 200
    assert response.json()["runId"] == run_id

    response = client.get("/v1/executions", params={"workflowId": "wf-api"})
    assert response.status_code == 200
    assert response.json()["count"] == 1
    assert response.json()["executions"][0]["runId"] == run_id


def test_execute_with_variables_and_payload(client):
    """Test variables and trigger payload in the request body."""
    workflow = {
        "id": "wf-hook",
        "nodes": [
            {"id": "w", "type": "webhook"},
            {"id": "s", "type": "set", "parameters": {"values": {"who": "{{ body.user }} in {{ $vars.region }}"}}},
        ],
        "edges": [{"source": "w", "target": "s"}],
    }

    response = client.post("/v1/executions", json={
        "workflow": workflow,
        "mode": "trigger",
        "variables": {"region": "eu"},
        "triggerPayload": {"body": {"user": "ada"}},
    })

    assert response.status_code == 200
    assert response.json()["nodeResults"]["s"]["data"][0]["json"]["who"] == "ada in eu"


def test_failed_run_returns_summary(client):
    """Test that a failing run returns 422 with the partial summary."""
    workflow = {
        "id": "wf-bad",
        "nodes": [
            {"id": "t", "type": "manual"},
            {"id": "h", "type": "httpRequest", "parameters": {"url": "nope"}},
        ],
        "edges": [{"source": "t", "target": "h"}],
    }

    response = client.post("/v1/executions", json={"workflow": workflow})

    assert response.status_code == 422
    data = response.json()
    assert "invalid URL" in data["error"]
    assert data["summary"]["errorNodeId"] == "h"
    assert data["summary"]["nodeResults"]["t"]["success"] is True
    assert data["summary"]["nodeResults"]["h"]["success"] is False

    # Failed runs are recorded too
    history = client.get("/v1/executions", params={"workflowId": "wf-bad"}).json()
    assert history["executions"][0]["success"] is False


def test_no_entry_point(client):
    """Test that a workflow without triggers is rejected."""
    response = client.post("/v1/executions", json={"workflow": {"nodes": [{"id": "s", "type": "set"}]}})

    assert response.status_code == 422
    assert "No entry point" in response.json()["error"]
    assert response.json()["summary"]["nodesExecuted"] == 0


def test_get_execution_not_found(client):
    """Test get execution with non-existent run ID."""
    response = client.get("/v1/executions/exec_missing")

    assert response.status_code == 404
    assert "not found" in response.json()["detail"].lower()


def test_list_node_types(client):
    """Test listing registered node types."""
    response = client.get("/v1/node-types")

    assert response.status_code == 200
    node_types = {entry["node_type"]: entry for entry in response.json()["nodeTypes"]}
    assert "httpRequest" in node_types
    assert node_types["manual"]["is_trigger"] is True
    assert "node_class" not in node_types["manual"]
