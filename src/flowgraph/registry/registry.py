"""
Handler Registry - Maps node type tags to handlers.

Built at engine-construction time and injected into the executor; the
executor never consults a hidden global table. Supports multiple
registration methods:
1. Manual registration of BaseNode subclasses
2. Plain async functions ``(node, items) -> items``
3. Entry-points (for plugin node packs)
"""

from __future__ import annotations

import inspect
import logging
from importlib.metadata import entry_points
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Type, TYPE_CHECKING

from flowgraph.sdk.basenode import BaseNode
from flowgraph.sdk.items import Item, to_items

from .models import NodeDefinition, NodePackManifest


if TYPE_CHECKING:
    from flowgraph.runtime.models import Node


logger = logging.getLogger(__name__)

# Entry point group for node packs
NODE_PACK_ENTRY_POINT = "flowgraph.nodepacks"

# Type prefix used by graphs exported from n8n-style editors
N8N_TYPE_PREFIX = "n8n-nodes-base."

HandlerFunction = Callable[["Node", List[Item]], Awaitable[Any]]


def function_node(func: HandlerFunction, node_type: str) -> Type[BaseNode]:
    """
    Wrap a plain async handler function in a BaseNode subclass.

    The function receives the frozen node and the input items and may
    return anything to_items() accepts.
    """
    if not inspect.iscoroutinefunction(func):
        raise TypeError(f"Handler for '{node_type}' must be an async function")

    doc = (func.__doc__ or "").strip()

    class FunctionNode(BaseNode):
        type = node_type
        description = {
            "displayName": node_type,
            "name": node_type,
            "description": doc.splitlines()[0] if doc else "",
            "group": ["function"],
            "inputs": ["main"],
            "outputs": ["main"],
        }

        async def execute(self) -> List[Item]:
            result = await func(self.context.node, self.get_input_data())
            return to_items(result)

    FunctionNode.__name__ = FunctionNode.__qualname__ = f"{func.__name__}_node"
    FunctionNode.__module__ = func.__module__
    return FunctionNode


class HandlerRegistry:
    """
    Registry for discovering and instantiating node handlers.

    Handlers can be registered via:
    - register_node(): A BaseNode subclass
    - register_function(): A plain async function
    - register_pack(): All nodes from a pack
    - discover_entry_points(): Automatic discovery via entry points

    Usage:
        registry = HandlerRegistry()
        registry.discover_entry_points()

        # Lookup tolerates the n8n type prefix
        node_class = registry.get_node_class("n8n-nodes-base.httpRequest")

        # Create instance
        handler = registry.create_node("httpRequest")
    """

    def __init__(self):
        """Initialize empty registry."""
        self._nodes: Dict[str, NodeDefinition] = {}
        self._node_classes: Dict[str, Type[BaseNode]] = {}
        self._packs: Dict[str, NodePackManifest] = {}
        self._discovered = False

    def register_node(
        self,
        node_class: Type[BaseNode],
        node_type: Optional[str] = None,
    ) -> NodeDefinition:
        """
        Register a node class.

        Args:
            node_class: BaseNode subclass
            node_type: Override node type (uses class.type if not provided)

        Returns:
            NodeDefinition for the registered node
        """
        if not (isinstance(node_class, type) and issubclass(node_class, BaseNode)):
            raise TypeError(f"{node_class!r} is not a BaseNode subclass")

        if node_type is None:
            node_type = getattr(node_class, "type", node_class.__name__.lower())

        definition = NodeDefinition.from_node_class(node_class)
        definition.node_type = node_type

        if node_type in self._node_classes:
            logger.debug(f"Replacing handler for node type: {node_type}")

        self._nodes[node_type] = definition
        self._node_classes[node_type] = node_class

        logger.debug(f"Registered node: {node_type}")
        return definition

    def register_function(self, node_type: str, func: HandlerFunction) -> NodeDefinition:
        """
        Register a plain async handler function for a node type.

        Args:
            node_type: Node type tag
            func: ``async def handler(node, items) -> items``
        """
        return self.register_node(function_node(func, node_type), node_type)

    def register_pack(
        self,
        manifest: NodePackManifest,
        node_classes: Dict[str, Type[BaseNode]],
    ) -> None:
        """
        Register a node pack with its nodes.

        Args:
            manifest: Pack manifest
            node_classes: Map of node_type -> node class
        """
        self._packs[manifest.name] = manifest

        for node_type, node_class in node_classes.items():
            definition = self.register_node(node_class, node_type)
            definition.node_pack = manifest.name

        logger.info(f"Registered pack '{manifest.name}' with {len(node_classes)} nodes")

    def discover_entry_points(self, force: bool = False) -> int:
        """
        Discover node packs via entry points.

        Entry points are defined in pyproject.toml:

            [project.entry-points."flowgraph.nodepacks"]
            mypack = "mypack:register_nodes"

        The entry point should be a function that returns:
        - (manifest, node_classes): Tuple of manifest and node class dict
        - Or just node_classes dict

        A pack that fails to load is logged and skipped.

        Args:
            force: Re-discover even if already done

        Returns:
            Number of packs discovered
        """
        if self._discovered and not force:
            return len(self._packs)

        count = 0

        for ep in entry_points(group=NODE_PACK_ENTRY_POINT):
            try:
                register_func = ep.load()
                result = register_func()

                if isinstance(result, tuple):
                    manifest, node_classes = result
                    self.register_pack(manifest, node_classes)
                elif isinstance(result, dict):
                    # Just node classes - create default manifest
                    manifest = NodePackManifest(
                        name=ep.name,
                        nodes=list(result.keys()),
                    )
                    self.register_pack(manifest, result)

                count += 1
                logger.info(f"Discovered node pack: {ep.name}")

            except Exception as e:
                logger.error(f"Failed to load node pack '{ep.name}': {e}")

        self._discovered = True
        return count

    def resolve_type(self, node_type: str) -> Optional[str]:
        """Registered type tag for node_type, tolerating the n8n prefix."""
        if node_type in self._node_classes:
            return node_type
        if node_type.startswith(N8N_TYPE_PREFIX):
            short = node_type[len(N8N_TYPE_PREFIX):]
            if short in self._node_classes:
                return short
        return None

    def get_node(self, node_type: str) -> Optional[NodeDefinition]:
        """Get node definition by type."""
        resolved = self.resolve_type(node_type)
        return self._nodes.get(resolved) if resolved else None

    def get_node_class(self, node_type: str) -> Optional[Type[BaseNode]]:
        """Get node class by type."""
        resolved = self.resolve_type(node_type)
        return self._node_classes.get(resolved) if resolved else None

    def create_node(self, node_type: str) -> Optional[BaseNode]:
        """
        Create a handler instance.

        Args:
            node_type: Node type identifier

        Returns:
            Handler instance or None if not found
        """
        node_class = self.get_node_class(node_type)
        if node_class:
            return node_class()
        return None

    def list_nodes(self) -> List[NodeDefinition]:
        """List all registered nodes."""
        return list(self._nodes.values())

    def list_packs(self) -> List[NodePackManifest]:
        """List all registered packs."""
        return list(self._packs.values())

    def list_node_types(self) -> List[str]:
        """List all registered node types."""
        return list(self._nodes.keys())

    def has_node(self, node_type: str) -> bool:
        """Check if node type is registered."""
        return self.resolve_type(node_type) is not None

    def __len__(self) -> int:
        """Number of registered nodes."""
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeDefinition]:
        """Iterate over node definitions."""
        return iter(self._nodes.values())

    def __contains__(self, node_type: str) -> bool:
        """Check if node type is registered."""
        return self.has_node(node_type)


def create_default_registry() -> HandlerRegistry:
    """
    Registry holding the built-in core pack.

    Plugin packs are added with discover_entry_points(); the core pack is
    registered directly so an uninstalled source tree still works.
    """
    from flowgraph.nodepacks.core import register_nodes

    registry = HandlerRegistry()
    manifest, node_classes = register_nodes()
    registry.register_pack(manifest, node_classes)
    return registry


# Global registry instance
_global_registry: Optional[HandlerRegistry] = None


def get_global_registry() -> HandlerRegistry:
    """Get the process-wide registry used by the API and CLI (lazy initialized)."""
    global _global_registry
    if _global_registry is None:
        _global_registry = create_default_registry()
        _global_registry.discover_entry_points()
    return _global_registry


def reset_global_registry() -> None:
    """Drop the process-wide registry (useful for testing)."""
    global _global_registry
    _global_registry = None


__all__ = [
    "HandlerFunction",
    "HandlerRegistry",
    "N8N_TYPE_PREFIX",
    "NODE_PACK_ENTRY_POINT",
    "create_default_registry",
    "function_node",
    "get_global_registry",
    "reset_global_registry",
]
