"""Workflow execution and history routes."""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from flowgraph.api.dependencies import get_executor, get_recorder, get_registry
from flowgraph.observability import get_logger
from flowgraph.registry import HandlerRegistry
from flowgraph.runtime import (
    GraphValidationError,
    RunRecorder,
    WorkflowExecutionError,
    WorkflowExecutor,
)

logger = get_logger(__name__)
router = APIRouter()


class ExecuteWorkflowRequest(BaseModel):
    """Request model for running a workflow."""

    model_config = ConfigDict(populate_by_name=True)

    workflow: dict[str, Any] = Field(..., description="Workflow JSON (nodes + edges or connections)")
    mode: str = Field(default="manual", description="Execution mode: manual or trigger")
    variables: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra $vars for this run",
    )
    trigger_payload: dict[str, Any] | None = Field(
        default=None,
        alias="triggerPayload",
        description="Data merged into every trigger seed item",
    )


class ExecutionListResponse(BaseModel):
    """Response model for the execution history."""

    executions: list[dict[str, Any]] = Field(..., description="Run summaries, most recent first")
    count: int = Field(..., description="Number of runs returned")


@router.post("/v1/executions")
async def execute_workflow(
    request: ExecuteWorkflowRequest,
    executor: WorkflowExecutor = Depends(get_executor),
) -> JSONResponse:
    """
    Run a workflow to completion.

    Returns:
        The run summary (200), or {error, summary} with 422 if the run failed
    """
    try:
        summary = await executor.execute(
            request.workflow,
            mode=request.mode,
            variables=request.variables,
            trigger_payload=request.trigger_payload,
        )
    except WorkflowExecutionError as e:
        logger.info(
            "Execution request failed",
            extra={
                "workflow_id": request.workflow.get("id"),
                "invalid_graph": isinstance(e, GraphValidationError),
            },
        )
        return JSONResponse(
            status_code=422,
            content={
                "error": e.message,
                "summary": e.summary.to_dict() if e.summary else None,
            },
        )

    return JSONResponse(status_code=200, content=summary.to_dict())


@router.get("/v1/executions", response_model=ExecutionListResponse)
async def list_executions(
    limit: int = Query(default=50, ge=1, le=1000),
    workflow_id: str | None = Query(default=None, alias="workflowId"),
    recorder: RunRecorder = Depends(get_recorder),
) -> ExecutionListResponse:
    """
    List recent runs.

    Args:
        limit: Maximum number of runs
        workflow_id: Only runs of this workflow

    Returns:
        Run summaries, most recent first
    """
    runs = await recorder.history(limit=limit, workflow_id=workflow_id)
    return ExecutionListResponse(
        executions=[run.to_dict() for run in runs],
        count=len(runs),
    )


@router.get("/v1/executions/{run_id}")
async def get_execution(
    run_id: str,
    recorder: RunRecorder = Depends(get_recorder),
) -> dict:
    """
    Get one run.

    Raises:
        HTTPException: If the run is not in history
    """
    summary = await recorder.get(run_id)
    if summary is None:
        raise HTTPException(status_code=404, detail="Execution not found")
    return summary.to_dict()


@router.get("/v1/node-types")
def list_node_types(registry: HandlerRegistry = Depends(get_registry)) -> dict:
    """List registered node types."""
    return {
        "nodeTypes": [
            definition.model_dump(exclude={"node_class"})
            for definition in registry.list_nodes()
        ],
    }
