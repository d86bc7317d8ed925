"""
BaseNode - Abstract base class for node handlers.

All built-in handlers inherit from BaseNode and implement the async
execute() method. A handler receives its input items through the
execution context and returns a new list of items; it must never mutate
the input items in place.

Handler contract:
    - return a new list of Items (json dicts are new objects)
    - raise NodeOperationError only when the whole run should abort
    - recoverable problems are attached to the output item json as "error"
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import httpx

from .expressions import ExpressionResolver, RunVariables
from .items import Item

if TYPE_CHECKING:
    from flowgraph.config import Settings
    from flowgraph.runtime.models import Node


logger = logging.getLogger(__name__)


# ==============================================================================
# Errors
# ==============================================================================

class NodeOperationError(Exception):
    """Error during node operation. Aborts the run unless continueOnFail."""

    def __init__(
        self,
        message: str,
        node: Optional["BaseNode"] = None,
        item_index: Optional[int] = None,
    ) -> None:
        self.message = message
        self.node = node
        self.item_index = item_index
        super().__init__(message)


# ==============================================================================
# NodeExecutionContext - Runtime context for node execution
# ==============================================================================

class NodeExecutionContext:
    """
    Runtime context provided to handlers during execution.

    Provides access to:
    - The node being executed (frozen snapshot)
    - Input items
    - Parameters, resolved per item through the Expression Resolver
    - Run variables ($vars, $workflow, $execution)
    - Settings and the HTTP transport
    """

    def __init__(
        self,
        node: "Node",
        input_items: List[Item],
        variables: Optional[RunVariables] = None,
        settings: Optional["Settings"] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        run_id: Optional[str] = None,
        mode: str = "manual",
    ) -> None:
        self.node = node
        self._input_items = input_items
        self.variables = variables or RunVariables()
        self.resolver = ExpressionResolver(self.variables)
        self._settings = settings
        self.http_transport = http_transport
        self.run_id = run_id
        self.mode = mode

    @property
    def settings(self) -> "Settings":
        if self._settings is None:
            from flowgraph.config import get_settings
            self._settings = get_settings()
        return self._settings

    @property
    def parameters(self) -> Dict[str, Any]:
        return self.node.parameters

    def get_input_data(self) -> List[Item]:
        """Get input items."""
        return self._input_items

    def get_node_parameter(
        self,
        name: str,
        item_index: int = 0,
        default: Any = None,
        resolve: bool = True,
    ) -> Any:
        """
        Get parameter value, resolving expressions against one input item.

        Args:
            name: Parameter name
            item_index: Index of the item the expressions resolve against
            default: Default if not set
            resolve: Resolve {{ }} tokens (False returns the raw value)
        """
        if name not in self.parameters:
            return default
        value = self.parameters[name]
        if not resolve:
            return value
        return self.resolver.value(value, self._item_json(item_index))

    def _item_json(self, item_index: int) -> Dict[str, Any]:
        if 0 <= item_index < len(self._input_items):
            return self._input_items[item_index].json_data
        return {}


# ==============================================================================
# BaseNode - Abstract base class
# ==============================================================================

class BaseNode(ABC):
    """
    Abstract base class for all node handlers.

    Nodes define:
    - type: Node type tag (e.g., "httpRequest")
    - version: Node version number
    - description: Node metadata dict
    - properties: Parameters

    And implement async execute() which processes input items.

    Example:

        class UppercaseNode(BaseNode):
            type = "uppercase"

            description = {
                "displayName": "Uppercase",
                "name": "uppercase",
                "group": ["transform"],
                "inputs": ["main"],
                "outputs": ["main"],
            }

            async def execute(self) -> List[Item]:
                results = []
                for i, item in enumerate(self.get_input_data()):
                    field = self.get_node_parameter("field", i, "text")
                    value = str(item.get(field, "")).upper()
                    results.append(item.merged(**{field: value}))
                return results
    """

    # Required class attributes (override in subclasses)
    type: str = "base"
    version: int = 1

    description: Dict[str, Any] = {
        "displayName": "Base Node",
        "name": "base",
        "description": "",
        "group": [],
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties: Dict[str, Any] = {
        "parameters": [],
    }

    def __init__(self) -> None:
        """Initialize node instance."""
        self.logger = logging.getLogger(f"node.{self.type}")
        self._context: Optional[NodeExecutionContext] = None

    @abstractmethod
    async def execute(self) -> List[Item]:
        """
        Execute node operation.

        Returns:
            List[Item]: New output items

        Raises:
            NodeOperationError: On failure that should abort the run
        """
        raise NotImplementedError

    # ==== Context Management ====

    def set_context(self, context: NodeExecutionContext) -> None:
        """Set the execution context."""
        self._context = context

    @property
    def context(self) -> NodeExecutionContext:
        if self._context is None:
            raise NodeOperationError("No context set", node=self)
        return self._context

    # ==== Helper methods for subclasses ====

    def get_node_parameter(
        self,
        name: str,
        item_index: int = 0,
        default: Any = None,
        resolve: bool = True,
    ) -> Any:
        """
        Get parameter value.

        Args:
            name: Parameter name
            item_index: Index of item (for expression resolution)
            default: Default if not set
            resolve: Resolve {{ }} tokens against the item
        """
        if self._context is None:
            return default
        return self._context.get_node_parameter(name, item_index, default, resolve)

    def get_input_data(self) -> List[Item]:
        """Get input items from previous node."""
        if self._context is None:
            return []
        return self._context.get_input_data()

    def resolve(self, template: Any, item_index: int = 0) -> Any:
        """Resolve a template string against one input item."""
        return self.context.resolver.template(template, self.context._item_json(item_index))

    @classmethod
    def get_definition(cls) -> Dict[str, Any]:
        """Get full node definition for registration."""
        return {
            "type": cls.type,
            "version": cls.version,
            "description": cls.description,
            "properties": cls.properties,
        }


__all__ = [
    "BaseNode",
    "NodeExecutionContext",
    "NodeOperationError",
]
