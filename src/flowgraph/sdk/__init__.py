"""
Node SDK - handler-facing execution semantics.

This package provides what node handlers are written against:
- Item: Data item flowing through workflows
- NodeExecutionContext: Runtime context for a node
- BaseNode: Abstract base class for handler implementations
- ExpressionResolver: {{ }} and $( ) token resolution
- CodeSandbox: restricted runner for Code node user code

All handlers are coroutines; nothing here blocks the event loop except
the sandbox, which runs short synchronous user code.
"""

from .items import ExecutionError, Item, to_items
from .basenode import (
    BaseNode,
    NodeExecutionContext,
    NodeOperationError,
)
from .expressions import (
    MISSING,
    ExpressionResolver,
    RunVariables,
    resolve_path,
    resolve_template,
    resolve_value,
)
from .http import HttpApiError, HttpClient, HttpResponse, NodeTimeoutError
from .sandbox import CodeExecutionError, CodeSandbox

__all__ = [
    # Items
    "ExecutionError",
    "Item",
    "to_items",
    # Context
    "NodeExecutionContext",
    "RunVariables",
    # Base class
    "BaseNode",
    # Expressions
    "MISSING",
    "ExpressionResolver",
    "resolve_path",
    "resolve_template",
    "resolve_value",
    # Sandbox
    "CodeSandbox",
    # Errors
    "NodeOperationError",
    "CodeExecutionError",
    "HttpApiError",
    "NodeTimeoutError",
    # HTTP
    "HttpClient",
    "HttpResponse",
]
