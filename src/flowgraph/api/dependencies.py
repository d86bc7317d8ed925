"""Shared objects handed to routes through FastAPI dependencies."""
from flowgraph.registry import HandlerRegistry, get_global_registry
from flowgraph.runtime import RunRecorder, WorkflowExecutor
from flowgraph.storage import HistoryStore, get_history_store

# Process-wide history store
_history_store: HistoryStore | None = None


def get_store() -> HistoryStore:
    """Get or create the history store selected by settings."""
    global _history_store
    if _history_store is None:
        _history_store = get_history_store()
    return _history_store


def get_registry() -> HandlerRegistry:
    return get_global_registry()


def get_recorder() -> RunRecorder:
    return RunRecorder(get_store())


def get_executor() -> WorkflowExecutor:
    """Executor wired to the global registry and the history store."""
    return WorkflowExecutor(registry=get_registry(), recorder=get_recorder())


def reset_dependencies() -> None:
    """Drop the cached history store (useful for testing)."""
    global _history_store
    _history_store = None
