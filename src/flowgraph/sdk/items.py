"""
Node Items - Data structures flowing through workflows.

Item is the fundamental data unit in workflows. A node always receives
and returns a list of items, never a bare value.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecutionError(BaseModel):
    """
    Error attached to an item produced by a failed node.

    Only set on items emitted for a node running with continueOnFail.
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    message: str = Field(..., description="Error message")
    node_id: Optional[str] = Field(None, alias="nodeId", description="Node that failed")
    type: str = Field("NodeOperationError", description="Exception class name")


class Item(BaseModel):
    """
    A single data item flowing through a workflow.

    Each item has:
    - json_data: The JSON record (serialized as "json")
    - error: Optional error marker for items emitted by a failed node

    Example:
        item = Item(json={"name": "John", "email": "john@example.com"})
        item.json["name"]  # "John"
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    json_data: Dict[str, Any] = Field(default_factory=dict, alias="json", description="JSON data")
    error: Optional[ExecutionError] = Field(None, description="Error marker")

    @property
    def json(self) -> Dict[str, Any]:
        """Alias for json_data."""
        return self.json_data

    def merged(self, **fields: Any) -> "Item":
        """
        Return a new item whose json is this item's json with fields added.

        The json dict is always a new object so sibling branches reading the
        same upstream item never observe each other's writes.
        """
        return Item(json_data={**self.json_data, **fields}, error=self.error)

    def clone(self) -> "Item":
        """Return a deep copy of this item."""
        return Item(json_data=copy.deepcopy(self.json_data), error=self.error)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize as {"json": ..., "error": ...} without empty fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def get(self, key: str, default: Any = None) -> Any:
        """Get value from JSON data."""
        return self.json_data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get value from JSON data."""
        return self.json_data[key]

    def __contains__(self, key: str) -> bool:
        """Check if key exists in JSON data."""
        return key in self.json_data


def to_items(data: Any) -> List[Item]:
    """
    Normalize handler output into a list of Items.

    Accepts Items, {"json": ...} dicts, plain dicts and scalars.
    """
    if data is None:
        return []
    if not isinstance(data, (list, tuple)):
        data = [data]

    items: List[Item] = []
    for entry in data:
        if isinstance(entry, Item):
            items.append(entry)
        elif isinstance(entry, dict) and "json" in entry and isinstance(entry["json"], dict):
            items.append(Item.model_validate({"json": dict(entry["json"]), "error": entry.get("error")}))
        elif isinstance(entry, dict):
            items.append(Item(json_data=dict(entry)))
        else:
            items.append(Item(json_data={"data": entry}))
    return items


__all__ = [
    "ExecutionError",
    "Item",
    "to_items",
]
