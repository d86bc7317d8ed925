"""
Transform Nodes - Set and Code.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Tuple

from flowgraph.sdk.basenode import BaseNode, NodeOperationError
from flowgraph.sdk.expressions import stringify
from flowgraph.sdk.items import Item
from flowgraph.sdk.sandbox import RUN_ONCE_FOR_ALL_ITEMS, CodeSandbox


logger = logging.getLogger(__name__)

SET_VALUE_TYPES = ("string", "number", "boolean")


def _to_number(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        text = str(value).strip()
        return int(text) if text.lstrip("-").isdigit() else float(text)
    except (TypeError, ValueError):
        return 0


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "false", "0", "no", "off", "null")
    return bool(value)


def set_path(data: Dict[str, Any], name: str, value: Any, dot_notation: bool = True) -> None:
    """Assign value at name, creating nested dicts for dotted names."""
    if not dot_notation or "." not in name:
        data[name] = value
        return
    parts = name.split(".")
    current = data
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
        else:
            child = dict(child)
        current[part] = child
        current = child
    current[parts[-1]] = value


class SetNode(BaseNode):
    """
    Set Node - Set or modify data fields.

    Values come as n8n typed groups
    ``{"string": [{name, value}], "number": [...], "boolean": [...]}``, as
    a plain ``{name: value}`` mapping, or as raw JSON with ``mode: raw``.
    Every value is resolved against the item before it is typed.
    """

    type = "set"
    version = 1

    description = {
        "displayName": "Set",
        "name": "set",
        "icon": "fa:pen",
        "group": ["transform"],
        "description": "Sets values on items",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Mode",
                "name": "mode",
                "type": "options",
                "default": "manual",
                "options": [
                    {"name": "Manual", "value": "manual"},
                    {"name": "Raw JSON", "value": "raw"},
                ],
            },
            {
                "displayName": "Values",
                "name": "values",
                "type": "collection",
                "default": {},
                "displayOptions": {"show": {"mode": ["manual"]}},
            },
            {
                "displayName": "JSON Data",
                "name": "jsonData",
                "type": "json",
                "default": "{}",
                "displayOptions": {"show": {"mode": ["raw"]}},
            },
            {
                "displayName": "Keep Only Set",
                "name": "keepOnlySet",
                "type": "boolean",
                "default": False,
                "description": "If true, only keep the set values, discard others",
            },
            {
                "displayName": "Dot Notation",
                "name": "dotNotation",
                "type": "boolean",
                "default": True,
                "description": "Dotted names create nested objects",
            },
        ],
    }

    async def execute(self) -> List[Item]:
        """Set values on items."""
        items = self.get_input_data()
        mode = self.get_node_parameter("mode", 0, "manual")
        keep_only_set = _to_bool(self.get_node_parameter("keepOnlySet", 0, False))
        dot_notation = _to_bool(self.get_node_parameter("dotNotation", 0, True))

        results = []
        for i, item in enumerate(items):
            if mode == "raw":
                assignments = self._raw_assignments(i)
            else:
                assignments = self._assignments(i)

            output: Dict[str, Any] = {} if keep_only_set else dict(item.json)
            for name, value in assignments:
                set_path(output, name, value, dot_notation)
            results.append(Item(json_data=output))

        return results

    def _assignments(self, item_index: int) -> List[Tuple[str, Any]]:
        values = self.get_node_parameter("values", item_index, {})
        if isinstance(values, list):
            values = {"string": values}
        if not isinstance(values, dict):
            raise NodeOperationError("Set: 'values' must be an object", node=self, item_index=item_index)

        if not any(key in values for key in SET_VALUE_TYPES):
            return [(str(name), value) for name, value in values.items()]

        assignments = []
        for value_type in SET_VALUE_TYPES:
            for entry in values.get(value_type) or []:
                name = entry.get("name")
                if not name:
                    continue
                value = entry.get("value")
                if value_type == "number":
                    value = _to_number(value)
                elif value_type == "boolean":
                    value = _to_bool(value)
                elif value is None:
                    value = ""
                elif not isinstance(value, str):
                    value = stringify(value)
                assignments.append((str(name), value))
        return assignments

    def _raw_assignments(self, item_index: int) -> List[Tuple[str, Any]]:
        json_data = self.get_node_parameter("jsonData", item_index, "{}")
        if isinstance(json_data, str):
            try:
                json_data = json.loads(json_data)
            except json.JSONDecodeError as e:
                raise NodeOperationError(f"Set: invalid JSON in jsonData: {e}", node=self, item_index=item_index) from e
        if not isinstance(json_data, dict):
            raise NodeOperationError("Set: jsonData must be a JSON object", node=self, item_index=item_index)
        return list(json_data.items())


class CodeNode(BaseNode):
    """
    Code Node - Execute custom Python code in the sandbox.

    The code is the body of a function. In runOnceForAllItems mode it gets
    ``items`` and returns a list; in runOnceForEachItem mode it gets
    ``item`` and returns its replacement. See flowgraph.sdk.sandbox for the
    complete binding list.
    """

    type = "code"
    version = 1

    description = {
        "displayName": "Code",
        "name": "code",
        "icon": "fa:code",
        "group": ["transform"],
        "description": "Execute custom Python code",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Mode",
                "name": "mode",
                "type": "options",
                "default": "runOnceForAllItems",
                "options": [
                    {"name": "Run Once for All Items", "value": "runOnceForAllItems"},
                    {"name": "Run Once for Each Item", "value": "runOnceForEachItem"},
                ],
            },
            {
                "displayName": "Python Code",
                "name": "code",
                "type": "code",
                "default": "# Available variables:\n# items - list of input items\n# Return: list of output items\n\nreturn items",
            },
        ],
    }

    async def execute(self) -> List[Item]:
        """Execute custom code."""
        mode = self.get_node_parameter("mode", 0, RUN_ONCE_FOR_ALL_ITEMS, resolve=False)
        code = self.get_node_parameter("code", 0, None, resolve=False)
        if code is None:
            code = self.get_node_parameter("pythonCode", 0, "return items", resolve=False)

        sandbox = CodeSandbox(self.context.variables, node_name=self.context.node.display_name)
        return sandbox.run(code, self.get_input_data(), mode)


__all__ = [
    "CodeNode",
    "SetNode",
    "set_path",
]
