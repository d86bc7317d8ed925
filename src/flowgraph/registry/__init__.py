"""
Handler Registry - Discovery and registration of node handlers.

This package provides:
- NodeDefinition: Metadata about a registered handler
- NodePackManifest: Package metadata for a node pack
- HandlerRegistry: Map from node type tag to handler

Supports entry-points based discovery for plugin node packs.
"""

from .models import NodeDefinition, NodePackManifest
from .registry import (
    NODE_PACK_ENTRY_POINT,
    HandlerRegistry,
    create_default_registry,
    get_global_registry,
    reset_global_registry,
)

__all__ = [
    "NODE_PACK_ENTRY_POINT",
    "NodeDefinition",
    "NodePackManifest",
    "HandlerRegistry",
    "create_default_registry",
    "get_global_registry",
    "reset_global_registry",
]
