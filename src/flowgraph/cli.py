"""
CLI tool for the workflow engine.

Provides terminal access to:
- Running a workflow file
- Reading execution history
- Listing registered node types
- Serving the HTTP API
"""

import sys
import json
import asyncio
import argparse
from pathlib import Path
from typing import Any

from flowgraph.config import get_settings
from flowgraph.observability import setup_logging
from flowgraph.registry import get_global_registry
from flowgraph.runtime import RunRecorder, WorkflowExecutionError, WorkflowExecutor
from flowgraph.storage import HistoryStore, get_history_store


def parse_variables(pairs: list[str] | None) -> dict[str, Any]:
    """
    Parse repeated --var key=value options.

    Values are decoded as JSON when possible, otherwise kept as strings.
    """
    variables: dict[str, Any] = {}
    for pair in pairs or []:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid --var '{pair}', expected key=value")
        try:
            variables[key] = json.loads(raw)
        except json.JSONDecodeError:
            variables[key] = raw
    return variables


def load_workflow(path: str) -> dict[str, Any]:
    """Load a workflow JSON file."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Workflow file must contain a JSON object")
    return data


def cli_history_store() -> HistoryStore:
    """
    History store shared by `run` and `history`.

    Each command is its own process, so unless FLOWGRAPH_HISTORY_BACKEND
    is set the CLI keeps history in the JSON file at history_path.
    """
    settings = get_settings()
    if "history_backend" in settings.model_fields_set:
        return get_history_store()
    return get_history_store("json")


def cmd_run(args: argparse.Namespace) -> int:
    """Run a workflow file and print its summary."""
    setup_logging()

    try:
        workflow = load_workflow(args.file)
        variables = parse_variables(args.var)
        payload = json.loads(args.payload) if args.payload else None
        if payload is not None and not isinstance(payload, dict):
            raise ValueError("--payload must be a JSON object")
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    executor = WorkflowExecutor(
        registry=get_global_registry(),
        recorder=RunRecorder(cli_history_store()),
    )

    try:
        summary = asyncio.run(executor.execute(
            workflow,
            mode=args.mode,
            variables=variables,
            trigger_payload=payload,
        ))
    except WorkflowExecutionError as e:
        print(f"Run failed: {e.message}", file=sys.stderr)
        if e.summary is not None:
            print(json.dumps(e.summary.to_dict(), indent=2))
        return 1

    print(json.dumps(summary.to_dict(), indent=2))
    return 0


def cmd_history(args: argparse.Namespace) -> int:
    """Print recent runs, most recent first."""
    store = cli_history_store()
    runs = store.list(limit=args.limit, workflow_id=args.workflow_id)

    if not runs:
        print("No executions recorded")
        return 0

    for run in runs:
        failed_at = f" at {run.error_node_id}" if run.error_node_id else ""
        print(
            f"{run.run_id}  {run.status.value:<7}  {run.workflow_id or '-'}  "
            f"{run.nodes_executed} node(s)  {run.duration_ms:.0f}ms{failed_at}"
        )
    return 0


def cmd_nodes(args: argparse.Namespace) -> int:
    """List registered node types."""
    registry = get_global_registry()

    for definition in sorted(registry.list_nodes(), key=lambda d: d.node_type):
        marker = " (trigger)" if definition.is_trigger else ""
        print(f"{definition.node_type:<24} {definition.display_name}{marker}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the HTTP API."""
    import uvicorn

    uvicorn.run("flowgraph.api.main:app", host=args.host, port=args.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="flowgraph",
        description="Flowgraph - async workflow execution engine",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    # run command
    run_parser = subparsers.add_parser('run', help='Run a workflow JSON file')
    run_parser.add_argument('file', help='Workflow JSON file')
    run_parser.add_argument('--mode', default='manual', choices=['manual', 'trigger'],
                            help='Execution mode')
    run_parser.add_argument('--var', action='append', metavar='KEY=VALUE',
                            help='Run variable (repeatable)')
    run_parser.add_argument('--payload', help='Trigger payload as a JSON object')

    # history command
    history_parser = subparsers.add_parser('history', help='Show recent executions')
    history_parser.add_argument('--limit', type=int, default=20, help='Number of runs')
    history_parser.add_argument('--workflow-id', help='Only runs of this workflow')

    # nodes command
    subparsers.add_parser('nodes', help='List registered node types')

    # serve command
    serve_parser = subparsers.add_parser('serve', help='Serve the HTTP API')
    serve_parser.add_argument('--host', default='127.0.0.1', help='Bind address')
    serve_parser.add_argument('--port', type=int, default=8000, help='Port')

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    if args.command == 'run':
        return cmd_run(args)
    elif args.command == 'history':
        return cmd_history(args)
    elif args.command == 'nodes':
        return cmd_nodes(args)
    elif args.command == 'serve':
        return cmd_serve(args)
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
