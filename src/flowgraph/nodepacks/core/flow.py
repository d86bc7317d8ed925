"""
Flow Nodes - If, Switch, Merge, Wait and No Operation.

Branch selection is advisory: If and Switch annotate each item with the
branch they picked, and the executor hands the same items to every
successor regardless.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple

from flowgraph.sdk.basenode import BaseNode
from flowgraph.sdk.expressions import MISSING, utc_now_iso
from flowgraph.sdk.items import Item

from .comparisons import coerce, compare


logger = logging.getLogger(__name__)

CONDITION_TYPES = ("string", "number", "boolean", "dateTime")

# Item field a Switch rule compares when it names no value or field.
DEFAULT_SWITCH_FIELD = "status"

WAIT_UNIT_SECONDS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 3600,
    "days": 86400,
}


class IfNode(BaseNode):
    """
    IF node - evaluates comparisons per item.

    Conditions come either as n8n typed groups
    ``{"string": [{value1, operation, value2}], "number": [...]}`` or as a
    flat list whose entries may carry their own ``dataType``.
    """

    type = "if"
    version = 1

    description = {
        "displayName": "IF",
        "name": "if",
        "icon": "fa:map-signs",
        "group": ["transform"],
        "description": "Evaluate conditions and mark the branch taken",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["true", "false"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Conditions",
                "name": "conditions",
                "type": "fixedCollection",
                "default": {},
            },
            {
                "displayName": "Combine",
                "name": "combineOperation",
                "type": "options",
                "default": "all",
                "options": [
                    {"name": "ALL", "value": "all"},
                    {"name": "ANY", "value": "any"},
                ],
            },
        ],
    }

    async def execute(self) -> List[Item]:
        items = self.get_input_data()
        combine = self.get_node_parameter("combineOperation", 0, "all", resolve=False)

        results = []
        for i, item in enumerate(items):
            try:
                conditions = self._conditions(i)
                outcomes = [
                    compare(operation, coerce(value1, data_type), coerce(value2, data_type))
                    for data_type, value1, operation, value2 in conditions
                ]
                if not outcomes:
                    met = False
                elif combine == "any":
                    met = any(outcomes)
                else:
                    met = all(outcomes)
                results.append(item.merged(conditionResult=met, branchTaken="true" if met else "false"))
            except (ValueError, TypeError) as e:
                logger.warning(f"IF node {self.context.node.id}: condition evaluation failed for item {i}: {e}")
                results.append(item.merged(
                    error=f"Condition evaluation failed: {e}",
                    conditionResult=False,
                    branchTaken="false",
                ))
        return results

    def _conditions(self, item_index: int) -> List[Tuple[str, Any, str, Any]]:
        """Resolved (dataType, value1, operation, value2) tuples for one item."""
        raw = self.get_node_parameter("conditions", item_index, {})
        entries: List[Tuple[str, Dict[str, Any]]] = []
        if isinstance(raw, dict):
            for data_type in CONDITION_TYPES:
                for condition in raw.get(data_type) or []:
                    entries.append((data_type, condition))
            for condition in raw.get("conditions") or []:
                entries.append((condition.get("dataType", "any"), condition))
        elif isinstance(raw, list):
            for condition in raw:
                entries.append((condition.get("dataType", "any"), condition))
        else:
            raise ValueError("conditions must be an object or a list")

        return [
            (
                data_type,
                condition.get("value1", condition.get("leftValue")),
                condition.get("operation", condition.get("operator", "equal")),
                condition.get("value2", condition.get("rightValue")),
            )
            for data_type, condition in entries
        ]


class SwitchNode(BaseNode):
    """
    Switch node - first matching rule wins.

    Each rule is ``{value1? | field?, operation, value, output?}``. The
    value compared is the rule's value1, else the item field at ``field``,
    else the node-level ``value``, else the item's ``status`` field. A
    non-numeric ``output`` names the branch and keeps the rule's position
    as the index. Unmatched items get the fallback output.
    """

    type = "switch"
    version = 1

    description = {
        "displayName": "Switch",
        "name": "switch",
        "icon": "fa:random",
        "group": ["transform"],
        "description": "Route items by ordered rules",
        "version": 1,
        "inputs": ["main"],
        "outputs": "dynamic",
    }

    properties = {
        "parameters": [
            {"displayName": "Value", "name": "value", "type": "string", "default": ""},
            {"displayName": "Rules", "name": "rules", "type": "fixedCollection", "default": []},
            {"displayName": "Fallback Output", "name": "fallbackOutput", "type": "number", "default": None},
        ],
    }

    async def execute(self) -> List[Item]:
        items = self.get_input_data()

        results = []
        for i, item in enumerate(items):
            rules = self._rules(i)
            fallback = self.get_node_parameter("fallbackOutput", i, None)
            if fallback is None or fallback == "":
                fallback = len(rules)

            selected, label = self._output(fallback, len(rules), "default")
            matched = False
            for index, rule in enumerate(rules):
                if self._matches(rule, item, i):
                    selected, label = self._output(rule.get("output", index), index, None)
                    label = rule.get("outputName") or rule.get("outputKey") or label
                    matched = True
                    break

            results.append(item.merged(switchOutput=selected, switchRule=label, switchMatched=matched))
        return results

    @staticmethod
    def _output(output: Any, position: int, label: Optional[str]) -> Tuple[int, str]:
        """Output index and label; a named output keeps the positional index."""
        try:
            index = int(output)
        except (TypeError, ValueError):
            return position, str(output)
        return index, label or str(index)

    def _rules(self, item_index: int) -> List[Dict[str, Any]]:
        rules = self.get_node_parameter("rules", item_index, [])
        if isinstance(rules, dict):
            rules = rules.get("rules") or rules.get("values") or []
        return [rule for rule in rules if isinstance(rule, dict)]

    def _matches(self, rule: Dict[str, Any], item: Item, item_index: int) -> bool:
        field = rule.get("field") or self.get_node_parameter("dataPropertyName", item_index)
        if "value1" in rule:
            actual = rule["value1"]
        elif field:
            actual = self.context.resolver.path(str(field), item.json)
            if actual is MISSING:
                actual = None
        else:
            actual = self.get_node_parameter("value", item_index)
            if actual is None or actual == "":
                actual = self.context.resolver.path(DEFAULT_SWITCH_FIELD, item.json)
                if actual is MISSING:
                    actual = None

        operation = rule.get("operation", rule.get("condition", "equal"))
        expected = rule.get("value", rule.get("value2"))
        try:
            return compare(operation, actual, expected)
        except ValueError as e:
            logger.warning(f"Switch node {self.context.node.id}: {e}")
            return False


class MergeNode(BaseNode):
    """
    Merge node - pass-through.

    The executor runs a node once per run, so only the first branch to
    arrive reaches it; its items are annotated and passed on.
    """

    type = "merge"
    version = 1

    description = {
        "displayName": "Merge",
        "name": "merge",
        "icon": "fa:code-branch",
        "group": ["transform"],
        "description": "Pass through the first arriving branch",
        "version": 1,
        "inputs": ["main", "main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {"displayName": "Mode", "name": "mode", "type": "options", "default": "append",
             "options": [{"name": "Append", "value": "append"}]},
        ],
    }

    async def execute(self) -> List[Item]:
        mode = self.get_node_parameter("mode", 0, "append", resolve=False)
        merged_at = utc_now_iso()
        return [item.merged(mergeMode=mode, mergedAt=merged_at) for item in self.get_input_data()]


class WaitNode(BaseNode):
    """
    Wait node - suspends the run for amount * unit.

    The delay is capped at ``wait_max_seconds`` from settings.
    """

    type = "wait"
    version = 1

    description = {
        "displayName": "Wait",
        "name": "wait",
        "icon": "fa:pause-circle",
        "group": ["organization"],
        "description": "Wait before continuing",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {"displayName": "Amount", "name": "amount", "type": "number", "default": 1},
            {
                "displayName": "Unit",
                "name": "unit",
                "type": "options",
                "default": "seconds",
                "options": [{"name": unit.title(), "value": unit} for unit in WAIT_UNIT_SECONDS],
            },
        ],
    }

    async def execute(self) -> List[Item]:
        amount = self.get_node_parameter("amount", 0, 1)
        unit = self.get_node_parameter("unit", 0, "seconds")
        try:
            amount_value = float(amount)
        except (TypeError, ValueError):
            amount_value = 1.0
        delay = max(0.0, amount_value * WAIT_UNIT_SECONDS.get(unit, 1))
        ceiling = self.context.settings.wait_max_seconds
        if delay > ceiling:
            logger.info(f"Wait of {delay}s capped at {ceiling}s")
            delay = ceiling

        await asyncio.sleep(delay)

        completed_at = utc_now_iso()
        return [
            item.merged(waitCompleted=True, waitDuration=f"{amount} {unit}", waitCompletedAt=completed_at)
            for item in self.get_input_data()
        ]


class NoOpNode(BaseNode):
    """
    No Operation Node - Pass-through.

    Simply passes input items through unchanged.
    """

    type = "noOp"
    version = 1

    description = {
        "displayName": "No Operation",
        "name": "noOp",
        "icon": "fa:arrow-right",
        "group": ["transform"],
        "description": "No operation - passes items through",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [],
    }

    async def execute(self) -> List[Item]:
        """Pass through items unchanged."""
        return [item.merged() for item in self.get_input_data()]


__all__ = [
    "IfNode",
    "MergeNode",
    "NoOpNode",
    "SwitchNode",
    "WaitNode",
]
