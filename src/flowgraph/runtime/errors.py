"""
Engine errors - run-level failures raised by the Graph Walker.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .records import RunSummary


class WorkflowExecutionError(Exception):
    """
    A run failed.

    Carries the RunSummary built so far so callers can show the node
    results recorded before the failure.
    """

    def __init__(self, message: str, summary: Optional["RunSummary"] = None) -> None:
        self.message = message
        self.summary = summary
        super().__init__(message)


class GraphValidationError(WorkflowExecutionError):
    """Graph is malformed (duplicate node id, dangling edge, bad shape)."""


class NoEntryPointError(GraphValidationError):
    """Graph has no trigger or entry-point node."""


class NodeExecutionError(WorkflowExecutionError):
    """A node handler failed and the run was aborted."""

    def __init__(
        self,
        message: str,
        node_id: str,
        summary: Optional["RunSummary"] = None,
    ) -> None:
        super().__init__(message, summary)
        self.node_id = node_id


class RunStateError(Exception):
    """Illegal RunRecord status transition."""


__all__ = [
    "GraphValidationError",
    "NoEntryPointError",
    "NodeExecutionError",
    "RunStateError",
    "WorkflowExecutionError",
]
