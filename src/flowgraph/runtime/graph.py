"""
Compiled Graph - validated, indexed workflow graph.

Takes a WorkflowGraph, checks its structure and indexes edges so the
executor can walk it. Structural problems are reported before any node
runs.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional

from .errors import GraphValidationError, NoEntryPointError
from .models import Edge, Node, WorkflowGraph


logger = logging.getLogger(__name__)


class CompiledGraph:
    """
    Compiled workflow ready for execution.

    Contains:
    - Nodes indexed by id
    - Outgoing and incoming edges per node, in declaration order
    - Entry-point discovery
    """

    def __init__(self, graph: WorkflowGraph):
        """
        Compile a workflow graph.

        Args:
            graph: Source graph (frozen snapshot)

        Raises:
            GraphValidationError: Duplicate node ids or dangling edges
        """
        self.graph = graph
        self.workflow_id = graph.id or "manual"
        self.workflow_name = graph.name

        self._nodes: Dict[str, Node] = {}
        self._outgoing: Dict[str, List[Edge]] = {}
        self._incoming: Dict[str, List[Edge]] = {}
        self._build()

    def _build(self) -> None:
        """Index nodes and edges, rejecting structural errors."""
        duplicates = [node_id for node_id, count in Counter(n.id for n in self.graph.nodes).items() if count > 1]
        if duplicates:
            raise GraphValidationError(f"Duplicate node ids: {', '.join(sorted(duplicates))}")

        for node in self.graph.nodes:
            self._nodes[node.id] = node
            self._outgoing[node.id] = []
            self._incoming[node.id] = []

        for edge in self.graph.edges:
            missing = [end for end in (edge.source, edge.target) if end not in self._nodes]
            if missing:
                raise GraphValidationError(
                    f"Edge {edge.source} -> {edge.target} references unknown node id(s): {', '.join(missing)}"
                )
            self._outgoing[edge.source].append(edge)
            self._incoming[edge.target].append(edge)

    @property
    def nodes(self) -> List[Node]:
        """Nodes in graph order."""
        return list(self.graph.nodes)

    @property
    def node_ids(self) -> List[str]:
        return list(self._nodes.keys())

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get node by id."""
        return self._nodes.get(node_id)

    def successors(self, node_id: str) -> List[Edge]:
        """Outgoing edges of a node, in declaration order."""
        return list(self._outgoing.get(node_id, []))

    def predecessors(self, node_id: str) -> List[Edge]:
        """Incoming edges of a node, in declaration order."""
        return list(self._incoming.get(node_id, []))

    def is_trigger(self, node: Node, trigger_types: Iterable[str]) -> bool:
        """True if the node type (with or without an n8n prefix) is a trigger type."""
        types = set(trigger_types)
        return node.type in types or node.type.rsplit(".", 1)[-1] in types

    def entry_points(self, trigger_types: Iterable[str], include_roots: bool = False) -> List[Node]:
        """
        Entry-point nodes in graph order.

        A node is an entry point if its type is a trigger type, or, with
        include_roots, if nothing connects into it. Disabled nodes never are.

        Raises:
            NoEntryPointError: If none is found
        """
        trigger_types = list(trigger_types)
        entries = [
            node for node in self.graph.nodes
            if not node.disabled
            and (
                self.is_trigger(node, trigger_types)
                or (include_roots and not self._incoming[node.id])
            )
        ]
        if not entries:
            raise NoEntryPointError(
                "No entry point found: add a trigger node "
                f"({', '.join(trigger_types[:4])}, ...) to start the workflow"
            )
        logger.debug(f"Entry points: {[n.id for n in entries]}")
        return entries


__all__ = [
    "CompiledGraph",
]
