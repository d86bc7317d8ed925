"""
Workflow Models - frozen structures for workflow graphs.

Accepts both the editor format ({nodes, edges} with data.parameters) and
the n8n export format ({nodes, connections} keyed by node name).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import GraphValidationError


MAX_TRIES_LIMIT = 5
MAX_WAIT_BETWEEN_TRIES_MS = 5000


class RetryPolicy(BaseModel):
    """
    Per-node retry policy.

    Values are clamped: 1..5 tries, 0..5000 ms between tries.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    max_tries: int = Field(1, alias="maxTries")
    wait_between_tries: int = Field(0, alias="waitBetweenTries", description="Milliseconds")

    @property
    def attempts(self) -> int:
        return max(1, min(int(self.max_tries), MAX_TRIES_LIMIT))

    @property
    def wait_seconds(self) -> float:
        return max(0, min(int(self.wait_between_tries), MAX_WAIT_BETWEEN_TRIES_MS)) / 1000.0


class Node(BaseModel):
    """
    A node in a workflow graph.

    Immutable: use with_parameters() / update_node() to derive a changed
    node instead of writing into parameters.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = Field(..., description="Caller-assigned identifier, unique within the graph")
    type: str = Field(..., description="Handler Registry type tag")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    label: Optional[str] = Field(None, description="Display label")
    disabled: bool = Field(False, description="If true, items pass through untouched")
    continue_on_fail: bool = Field(False, alias="continueOnFail")
    retry_policy: Optional[RetryPolicy] = Field(None, alias="retryPolicy")

    @property
    def display_name(self) -> str:
        return self.label or self.id

    def with_parameters(self, **parameters: Any) -> "Node":
        """Return a new node with parameters merged over the current ones."""
        return self.model_copy(update={"parameters": {**self.parameters, **parameters}})


class Edge(BaseModel):
    """Directed connection from one node's output to another node's input."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    source: str
    target: str
    output_slot: Optional[str] = Field(None, alias="outputSlot")

    @field_validator("source", "target", "output_slot", mode="before")
    @classmethod
    def _stringify(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class WorkflowGraph(BaseModel):
    """
    Complete workflow graph, the unit of execution input.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[str] = Field(None, description="Workflow ID")
    name: str = Field("Unnamed Workflow", description="Workflow name")
    active: bool = Field(True)
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def outgoing(self, node_id: str) -> List[Edge]:
        """Edges leaving node_id, in declaration order."""
        return [edge for edge in self.edges if edge.source == node_id]

    def incoming(self, node_id: str) -> List[Edge]:
        """Edges entering node_id, in declaration order."""
        return [edge for edge in self.edges if edge.target == node_id]

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


def update_node(graph: WorkflowGraph, node_id: str, **changes: Any) -> WorkflowGraph:
    """
    Return a new graph with one node replaced.

    Args:
        graph: Source graph (unchanged)
        node_id: Node to update
        **changes: Node field names; ``parameters`` is merged over the existing ones

    Raises:
        KeyError: Unknown node id
        pydantic.ValidationError: A changed field has the wrong type
    """
    if graph.get_node(node_id) is None:
        raise KeyError(node_id)

    nodes = []
    for node in graph.nodes:
        if node.id == node_id:
            update = dict(changes)
            if "parameters" in update:
                update["parameters"] = {**node.parameters, **(update["parameters"] or {})}
            node = Node.model_validate(node.model_copy(update=update).model_dump())
        nodes.append(node)
    return graph.model_copy(update={"nodes": nodes})


def _normalize_node(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map the editor and n8n node shapes onto Node fields."""
    data = raw.get("data") or {}
    node_id = raw.get("id") or raw.get("name")
    if node_id is not None:
        node_id = str(node_id)
    node_type = raw.get("type") or raw.get("nodeType") or data.get("nodeType")

    parameters = raw.get("parameters")
    if parameters is None:
        parameters = data.get("parameters")
    if parameters is None:
        parameters = data.get("config")

    normalized = {
        "id": node_id,
        "type": node_type,
        "parameters": parameters or {},
        "label": raw.get("label") or raw.get("name") or data.get("label"),
        "disabled": raw.get("disabled", data.get("disabled", False)),
        "continueOnFail": raw.get("continueOnFail", data.get("continueOnFail", False)),
    }
    retry = raw.get("retryPolicy", data.get("retryPolicy"))
    if retry is None and raw.get("retryOnFail"):
        retry = {"maxTries": raw.get("maxTries", 3), "waitBetweenTries": raw.get("waitBetweenTries", 1000)}
    if retry is not None:
        normalized["retryPolicy"] = retry
    return normalized


def _edges_from_connection_map(
    connections: Dict[str, Any],
    nodes: List[Dict[str, Any]],
) -> List[Dict[str, Any]]:
    """Flatten {sourceName: {"main": [[{node, index}]]}} into edges keyed by id."""
    ids_by_name = {}
    for node in nodes:
        ids_by_name[node["id"]] = node["id"]
        if node.get("label"):
            ids_by_name.setdefault(node["label"], node["id"])

    edges = []
    for source_name, outputs in connections.items():
        source = ids_by_name.get(source_name, source_name)
        for output_type, branches in (outputs or {}).items():
            for slot, branch in enumerate(branches or []):
                for conn in branch or []:
                    target_name = conn.get("node")
                    edges.append({
                        "source": source,
                        "target": ids_by_name.get(target_name, target_name),
                        "outputSlot": str(slot),
                    })
    return edges


def parse_workflow(data: Dict[str, Any]) -> WorkflowGraph:
    """
    Parse workflow JSON into a WorkflowGraph.

    Raises:
        GraphValidationError: If the JSON does not describe a graph
    """
    if not isinstance(data, dict):
        raise GraphValidationError("Workflow must be a JSON object")

    raw_nodes = data.get("nodes") or []
    if not isinstance(raw_nodes, list):
        raise GraphValidationError("Workflow 'nodes' must be a list")

    nodes = []
    for index, raw in enumerate(raw_nodes):
        if not isinstance(raw, dict):
            raise GraphValidationError(f"Node at index {index} must be an object")
        nodes.append(_normalize_node(raw))

    connections = data.get("edges")
    if connections is None:
        connections = data.get("connections") or []
    if isinstance(connections, dict):
        edges = _edges_from_connection_map(connections, nodes)
    elif isinstance(connections, list):
        edges = connections
    else:
        raise GraphValidationError("Workflow connections must be a list or a map")

    try:
        return WorkflowGraph.model_validate({
            "id": str(data["id"]) if data.get("id") is not None else None,
            "name": data.get("name") or "Unnamed Workflow",
            "active": data.get("active", True),
            "nodes": nodes,
            "edges": edges,
        })
    except ValidationError as e:
        raise GraphValidationError(f"Invalid workflow: {e}") from e


__all__ = [
    "Edge",
    "Node",
    "RetryPolicy",
    "WorkflowGraph",
    "parse_workflow",
    "update_node",
]
