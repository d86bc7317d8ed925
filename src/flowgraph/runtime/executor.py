"""
Workflow Executor - async depth-first graph walker.

Walks a workflow graph from its entry points, executing each node once
per run and feeding its output to every successor in edge order. The
walk is sequential: a successor (and everything below it) completes
before the next sibling starts, so a fixed graph always produces the
same executionOrder.

A node failure aborts the whole run unless the node sets continueOnFail.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Union

import httpx

from flowgraph.config import Settings, get_settings
from flowgraph.observability import get_logger, with_run_context
from flowgraph.registry import HandlerRegistry, create_default_registry
from flowgraph.sdk.basenode import NodeExecutionContext, NodeOperationError
from flowgraph.sdk.expressions import RunVariables, utc_now_iso, utc_today
from flowgraph.sdk.items import ExecutionError, Item, to_items

from .errors import GraphValidationError, NodeExecutionError, WorkflowExecutionError
from .graph import CompiledGraph
from .models import Node, RetryPolicy, WorkflowGraph, parse_workflow
from .records import NodeResult, RunRecord, RunSummary
from .seeding import seed_items


logger = get_logger(__name__)


class NodeExecutorProtocol(Protocol):
    """Protocol for node executors."""

    async def execute_node(
        self,
        node: Node,
        input_items: List[Item],
        variables: RunVariables,
        run_id: Optional[str] = None,
        mode: str = "manual",
    ) -> List[Item]:
        """
        Execute one node.

        Args:
            node: Frozen node snapshot
            input_items: Input items from upstream (or trigger seeds)
            variables: Run variables
            run_id: Current run id
            mode: Execution mode

        Returns:
            Output items
        """
        ...


class RunRecorderProtocol(Protocol):
    """Anything that accepts finished runs."""

    async def record(self, summary: RunSummary) -> None:
        ...


class DefaultNodeExecutor:
    """
    Default node executor that dispatches through a HandlerRegistry.
    """

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        settings: Optional[Settings] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize executor.

        Args:
            registry: Handler registry (core pack if not provided)
            settings: Engine settings
            http_transport: Transport handed to HTTP handlers (tests)
        """
        self.registry = registry or create_default_registry()
        self.settings = settings or get_settings()
        self.http_transport = http_transport

    async def execute_node(
        self,
        node: Node,
        input_items: List[Item],
        variables: RunVariables,
        run_id: Optional[str] = None,
        mode: str = "manual",
    ) -> List[Item]:
        """Execute a node by looking it up in the registry."""
        handler = self.registry.create_node(node.type)
        if handler is None:
            if self.settings.unknown_node_passthrough:
                logger.warning(
                    f"Unknown node type '{node.type}', passing items through",
                    extra=with_run_context(run_id=run_id, node_id=node.id, node_type=node.type),
                )
                return [item.merged() for item in input_items]
            raise NodeOperationError(f"Unknown node type: {node.type}")

        context = NodeExecutionContext(
            node=node,
            input_items=input_items,
            variables=variables,
            settings=self.settings,
            http_transport=self.http_transport,
            run_id=run_id,
            mode=mode,
        )
        handler.set_context(context)
        return to_items(await handler.execute())


@dataclass
class _Run:
    """State of one walk."""
    record: RunRecord
    graph: CompiledGraph
    variables: RunVariables
    mode: str


class WorkflowExecutor:
    """
    Async workflow executor (the Graph Walker).

    Executes a workflow graph, respecting:
    - Entry points (trigger types, or graph roots in 'roots' mode)
    - Depth-first sequential successor order
    - Single execution per node per run
    - Disabled nodes (pass-through)
    - Retry policy and continueOnFail

    Usage:
        executor = WorkflowExecutor(registry=create_default_registry())
        summary = await executor.execute(workflow_json)
    """

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        settings: Optional[Settings] = None,
        node_executor: Optional[NodeExecutorProtocol] = None,
        recorder: Optional[RunRecorderProtocol] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize executor.

        Args:
            registry: Handler registry used by the default node executor
            settings: Engine settings
            node_executor: Node executor implementation (overrides registry)
            recorder: Receives every finished run, successful or not
            http_transport: Transport handed to HTTP handlers (tests)
        """
        self.settings = settings or get_settings()
        self._node_executor = node_executor or DefaultNodeExecutor(
            registry=registry,
            settings=self.settings,
            http_transport=http_transport,
        )
        self._recorder = recorder

    async def execute(
        self,
        workflow: Union[WorkflowGraph, Dict[str, Any]],
        mode: str = "manual",
        variables: Optional[Dict[str, Any]] = None,
        trigger_payload: Optional[Dict[str, Any]] = None,
        run_id: Optional[str] = None,
    ) -> RunSummary:
        """
        Execute a workflow.

        Args:
            workflow: Workflow graph or JSON dict
            mode: "manual" or "trigger"
            variables: Extra $vars for this run
            trigger_payload: Data merged into every trigger seed item
            run_id: Run id (generated if not provided)

        Returns:
            RunSummary of the successful run

        Raises:
            GraphValidationError: Malformed graph (nothing executed)
            NoEntryPointError: No entry point (nothing executed)
            NodeExecutionError: A node failed; .summary holds the partial run
        """
        workflow_id = None
        if isinstance(workflow, WorkflowGraph):
            workflow_id = workflow.id
        elif isinstance(workflow, dict):
            workflow_id = workflow.get("id")
        record = RunRecord(run_id=run_id, workflow_id=workflow_id, mode=mode)
        record.start()
        log_extra = with_run_context(run_id=record.id, workflow_id=workflow_id)

        try:
            graph = self._compile(workflow)
            record.workflow_id = graph.workflow_id
            record.workflow_name = graph.workflow_name
            log_extra = with_run_context(run_id=record.id, workflow_id=graph.workflow_id)

            entries = graph.entry_points(
                self.settings.trigger_types,
                include_roots=self.settings.entry_point_mode == "roots",
            )
            run = _Run(
                record=record,
                graph=graph,
                variables=self._run_variables(graph, record.id, mode, variables),
                mode=mode,
            )

            logger.info(
                f"Run started with {len(entries)} entry point(s)",
                extra={**log_extra, "mode": mode},
            )

            for entry in entries:
                if record.has_result(entry.id):
                    continue
                seeds = seed_items(entry, run.variables, mode, trigger_payload)
                await self._execute_node(run, entry, seeds)

        except WorkflowExecutionError as e:
            error_node_id = e.node_id if isinstance(e, NodeExecutionError) else None
            record.finish(success=False, error=e.message, error_node_id=error_node_id)
            e.summary = record.to_summary()
            logger.error(
                f"Run failed: {e.message}",
                extra={**log_extra, "node_id": error_node_id, "duration_ms": e.summary.duration_ms},
            )
            await self._record(e.summary)
            raise

        record.finish(success=True)
        summary = record.to_summary()
        logger.info(
            "Run completed",
            extra={**log_extra, "nodes_executed": summary.nodes_executed, "duration_ms": summary.duration_ms},
        )
        await self._record(summary)
        return summary

    def _compile(self, workflow: Union[WorkflowGraph, Dict[str, Any]]) -> CompiledGraph:
        """Parse and snapshot the graph; the run never sees later edits."""
        if isinstance(workflow, WorkflowGraph):
            graph = workflow.model_copy(deep=True)
        elif isinstance(workflow, dict):
            graph = parse_workflow(workflow)
        else:
            raise GraphValidationError(f"Unsupported workflow type: {type(workflow).__name__}")
        return CompiledGraph(graph)

    def _run_variables(
        self,
        graph: CompiledGraph,
        run_id: str,
        mode: str,
        variables: Optional[Dict[str, Any]],
    ) -> RunVariables:
        run_vars = {
            "now": utc_now_iso(),
            "today": utc_today(),
            **self.settings.get_global_variables(),
            **(variables or {}),
        }
        return RunVariables(
            workflow={"id": graph.workflow_id, "name": graph.workflow_name, "active": graph.graph.active},
            execution={"id": run_id, "mode": mode, "resumeUrl": ""},
            vars=run_vars,
        )

    async def _execute_node(self, run: _Run, node: Node, input_items: List[Item]) -> None:
        """Execute one node, then walk its successors depth-first."""
        extra = with_run_context(
            run_id=run.record.id,
            workflow_id=run.graph.workflow_id,
            node_id=node.id,
            node_type=node.type,
        )

        if run.record.has_result(node.id):
            logger.debug("Node already executed in this run, skipping", extra=extra)
            return

        if node.disabled:
            output = [item.merged() for item in input_items]
            run.record.record(NodeResult(
                node_id=node.id,
                node_type=node.type,
                success=True,
                data=output,
                attempts=0,
            ))
            logger.debug("Node disabled, passing items through", extra=extra)
        else:
            output = await self._run_handler(run, node, input_items, extra)

        for edge in run.graph.successors(node.id):
            target = run.graph.get_node(edge.target)
            if target is None or run.record.has_result(target.id):
                continue
            await self._execute_node(run, target, output)

    async def _run_handler(
        self,
        run: _Run,
        node: Node,
        input_items: List[Item],
        extra: Dict[str, Any],
    ) -> List[Item]:
        """Invoke the handler with retries and record the NodeResult."""
        policy = node.retry_policy or RetryPolicy()
        executed_at = utc_now_iso()
        start_time = time.perf_counter()
        logger.debug(f"Executing node: {node.display_name}", extra=extra)

        error: Optional[Exception] = None
        attempt = 0
        for attempt in range(1, policy.attempts + 1):
            try:
                output = await self._node_executor.execute_node(
                    node,
                    input_items,
                    run.variables,
                    run_id=run.record.id,
                    mode=run.mode,
                )
                error = None
                break
            except Exception as e:
                error = e
                if attempt < policy.attempts:
                    logger.warning(
                        f"Node failed (attempt {attempt}/{policy.attempts}), retrying: {e}",
                        extra=extra,
                    )
                    await asyncio.sleep(policy.wait_seconds)

        duration = (time.perf_counter() - start_time) * 1000

        if error is None:
            run.record.record(NodeResult(
                node_id=node.id,
                node_type=node.type,
                success=True,
                data=output,
                executed_at=executed_at,
                duration_ms=duration,
                attempts=attempt,
            ))
            logger.debug(f"Node completed in {duration:.1f}ms", extra=extra)
            return output

        message = str(error) or type(error).__name__

        if node.continue_on_fail:
            output = self._error_items(node, input_items, error, message)
            run.record.record(NodeResult(
                node_id=node.id,
                node_type=node.type,
                success=True,
                data=output,
                executed_at=executed_at,
                duration_ms=duration,
                attempts=attempt,
            ))
            logger.warning(f"Node failed, continuing: {message}", extra=extra)
            return output

        run.record.record(
            NodeResult(
                node_id=node.id,
                node_type=node.type,
                success=False,
                error=message,
                executed_at=executed_at,
                duration_ms=duration,
                attempts=attempt,
            ),
            append_order=False,
        )
        logger.error(f"Node {node.display_name} failed: {message}", extra=extra)
        raise NodeExecutionError(message, node_id=node.id) from error

    @staticmethod
    def _error_items(node: Node, input_items: List[Item], error: Exception, message: str) -> List[Item]:
        """Input items tagged with the failure, or one error item when there was no input."""
        marker = ExecutionError(message=message, node_id=node.id, type=type(error).__name__)
        sources = input_items or [Item()]
        return [
            Item(json_data={**item.json_data, "error": message}, error=marker)
            for item in sources
        ]

    async def _record(self, summary: RunSummary) -> None:
        if self._recorder is not None:
            await self._recorder.record(summary)


__all__ = [
    "DefaultNodeExecutor",
    "NodeExecutorProtocol",
    "RunRecorderProtocol",
    "WorkflowExecutor",
]
