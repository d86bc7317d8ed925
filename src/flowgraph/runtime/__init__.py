"""
Workflow Runtime - async execution of workflow graphs.

This package provides:
- WorkflowGraph / Node / Edge: frozen graph models, parse_workflow()
- CompiledGraph: validated graph with entry-point discovery
- WorkflowExecutor: the depth-first Graph Walker
- RunRecord / RunSummary / NodeResult: run bookkeeping
- RunRecorder: persistence of finished runs
"""

from .errors import (
    GraphValidationError,
    NoEntryPointError,
    NodeExecutionError,
    RunStateError,
    WorkflowExecutionError,
)
from .models import Edge, Node, RetryPolicy, WorkflowGraph, parse_workflow, update_node
from .graph import CompiledGraph
from .records import NodeResult, RunRecord, RunStatus, RunSummary, new_run_id
from .seeding import seed_items
from .executor import DefaultNodeExecutor, WorkflowExecutor
from .recorder import RunRecorder

__all__ = [
    "CompiledGraph",
    "DefaultNodeExecutor",
    "Edge",
    "GraphValidationError",
    "Node",
    "NodeExecutionError",
    "NodeResult",
    "NoEntryPointError",
    "RetryPolicy",
    "RunRecord",
    "RunRecorder",
    "RunStateError",
    "RunStatus",
    "RunSummary",
    "WorkflowExecutionError",
    "WorkflowExecutor",
    "WorkflowGraph",
    "new_run_id",
    "parse_workflow",
    "seed_items",
    "update_node",
]
