"""
Registry Models - Metadata structures for handlers and node packs.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field


class NodeDefinition(BaseModel):
    """
    Metadata about a registered handler.

    Contains everything an authoring surface needs to offer the node type.
    """
    model_config = ConfigDict(extra="allow")

    # Identity
    node_type: str = Field(..., description="Unique node type identifier")
    version: int = Field(1, description="Node version")

    # Display
    display_name: str = Field(..., description="Human-readable name")
    description: str = Field("", description="Node description")
    group: List[str] = Field(default_factory=list, description="Categories")
    is_trigger: bool = Field(False, description="Seeds a run instead of consuming input")

    # Technical
    node_class: Optional[str] = Field(None, description="Fully qualified class name")
    node_pack: Optional[str] = Field(None, description="Source node pack")

    # Runtime
    inputs: List[str] = Field(default_factory=lambda: ["main"])
    outputs: List[str] = Field(default_factory=lambda: ["main"])
    parameters: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_node_class(cls, node_class: Type) -> "NodeDefinition":
        """Create definition from a BaseNode class."""
        node_type = getattr(node_class, "type", node_class.__name__.lower())
        version = getattr(node_class, "version", 1)
        description = getattr(node_class, "description", {})
        properties = getattr(node_class, "properties", {})

        # Handle description as dict (n8n style) or string
        if isinstance(description, dict):
            display_name = description.get("displayName", node_type)
            desc_text = description.get("description", "")
            group = description.get("group", [])
            inputs = description.get("inputs", ["main"])
            outputs = description.get("outputs", ["main"])
        else:
            display_name = node_type.replace("-", " ").title()
            desc_text = str(description) if description else ""
            group = []
            inputs = ["main"]
            outputs = ["main"]

        if isinstance(properties, dict):
            parameters = properties.get("parameters", [])
        else:
            parameters = list(properties) if properties else []

        return cls(
            node_type=node_type,
            version=version,
            display_name=display_name,
            description=desc_text,
            group=group,
            is_trigger="trigger" in group,
            node_class=f"{node_class.__module__}.{node_class.__name__}",
            inputs=inputs if isinstance(inputs, list) else ["main"],
            outputs=outputs if isinstance(outputs, list) else ["main"],
            parameters=parameters if isinstance(parameters, list) else [],
        )


class NodePackManifest(BaseModel):
    """
    Manifest for a node pack (collection of handlers).

    Used for discovery and registration of bundled nodes.
    """
    model_config = ConfigDict(extra="allow")

    # Identity
    name: str = Field(..., description="Pack name (e.g., 'core')")
    version: str = Field("1.0.0", description="Pack version")
    description: str = Field("", description="Pack description")

    # Author
    author: str = Field("", description="Author name")
    license: str = Field("MIT", description="License type")

    # Contents
    nodes: List[str] = Field(
        default_factory=list,
        description="List of node types in this pack"
    )

    # Technical
    entry_point: str = Field(
        "",
        description="Module path for node discovery (e.g., 'mypack.nodes')"
    )


__all__ = [
    "NodeDefinition",
    "NodePackManifest",
]
