"""
Run records - per-node results and the per-run record.

A RunRecord is owned by the executor while the run is in flight and moves
through ``new -> running -> success | error`` exactly once. Once terminal
it is frozen into a RunSummary, which is what callers and the history
store see.
"""

from __future__ import annotations

import random
import string
import time
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from flowgraph.sdk.expressions import utc_now_iso
from flowgraph.sdk.items import Item

from .errors import RunStateError


def new_run_id() -> str:
    """Run ids look like exec_<epoch ms>_<9 random chars>."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"exec_{int(time.time() * 1000)}_{suffix}"


class RunStatus(str, Enum):
    """Status of a run."""
    NEW = "new"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCESS, RunStatus.ERROR)


class NodeResult(BaseModel):
    """
    Outcome of executing one node within one run.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    node_id: str = Field(..., alias="nodeId")
    node_type: Optional[str] = Field(None, alias="nodeType")
    success: bool
    data: Optional[List[Item]] = None
    error: Optional[str] = None
    executed_at: str = Field(default_factory=utc_now_iso, alias="executedAt")
    duration_ms: float = Field(0.0, alias="durationMs")
    attempts: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class RunSummary(BaseModel):
    """
    Frozen, serializable result of one run.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    run_id: str = Field(..., alias="runId")
    workflow_id: Optional[str] = Field(None, alias="workflowId")
    workflow_name: Optional[str] = Field(None, alias="workflowName")
    mode: str = "manual"
    status: RunStatus
    success: bool
    error: Optional[str] = None
    error_node_id: Optional[str] = Field(None, alias="errorNodeId")
    executed_at: str = Field(..., alias="executedAt")
    stopped_at: Optional[str] = Field(None, alias="stoppedAt")
    duration_ms: float = Field(0.0, alias="durationMs")
    nodes_executed: int = Field(0, alias="nodesExecuted")
    node_results: Dict[str, NodeResult] = Field(default_factory=dict, alias="nodeResults")
    execution_order: List[str] = Field(default_factory=list, alias="executionOrder")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunSummary":
        return cls.model_validate(data)


class RunRecord:
    """
    In-flight state of one run.

    Only the executor appends to node_results and execution_order.
    """

    def __init__(
        self,
        run_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        workflow_name: Optional[str] = None,
        mode: str = "manual",
    ) -> None:
        self.id = run_id or new_run_id()
        self.workflow_id = workflow_id
        self.workflow_name = workflow_name
        self.mode = mode
        self.status = RunStatus.NEW
        self.started_at: Optional[str] = None
        self.stopped_at: Optional[str] = None
        self.error: Optional[str] = None
        self.error_node_id: Optional[str] = None
        self.node_results: Dict[str, NodeResult] = {}
        self.execution_order: List[str] = []
        self._started = 0.0
        self._duration_ms = 0.0

    def start(self) -> None:
        """Transition new -> running."""
        if self.status != RunStatus.NEW:
            raise RunStateError(f"Run {self.id} cannot start from status '{self.status.value}'")
        self.status = RunStatus.RUNNING
        self.started_at = utc_now_iso()
        self._started = time.perf_counter()

    def finish(
        self,
        success: bool,
        error: Optional[str] = None,
        error_node_id: Optional[str] = None,
    ) -> None:
        """Transition running -> success | error. Allowed once."""
        if self.status != RunStatus.RUNNING:
            raise RunStateError(f"Run {self.id} cannot finish from status '{self.status.value}'")
        self.status = RunStatus.SUCCESS if success else RunStatus.ERROR
        self.error = error
        self.error_node_id = error_node_id
        self.stopped_at = utc_now_iso()
        self._duration_ms = (time.perf_counter() - self._started) * 1000

    def has_result(self, node_id: str) -> bool:
        return node_id in self.node_results

    def record(self, result: NodeResult, append_order: bool = True) -> None:
        """Store a node result; successful results extend the execution order."""
        if self.status != RunStatus.RUNNING:
            raise RunStateError(f"Run {self.id} is not running")
        self.node_results[result.node_id] = result
        if append_order:
            self.execution_order.append(result.node_id)

    def to_summary(self) -> RunSummary:
        """Freeze the record. The run must be terminal."""
        if not self.status.is_terminal:
            raise RunStateError(f"Run {self.id} is still '{self.status.value}'")
        return RunSummary(
            run_id=self.id,
            workflow_id=self.workflow_id,
            workflow_name=self.workflow_name,
            mode=self.mode,
            status=self.status,
            success=self.status == RunStatus.SUCCESS,
            error=self.error,
            error_node_id=self.error_node_id,
            executed_at=self.started_at or utc_now_iso(),
            stopped_at=self.stopped_at,
            duration_ms=round(self._duration_ms, 3),
            nodes_executed=len(self.node_results),
            node_results=dict(self.node_results),
            execution_order=list(self.execution_order),
        )


__all__ = [
    "NodeResult",
    "RunRecord",
    "RunStatus",
    "RunSummary",
    "new_run_id",
]
