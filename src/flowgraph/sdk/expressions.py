"""
Expression Resolver - template tokens and dotted-path lookups.

Resolves ``{{ path.to.value }}`` and ``$(path.to.value)`` tokens in node
parameters against the current item's json and the run's reserved
variables. Resolution never raises: an unresolvable token is left in the
output verbatim.

Lookup order for a token's path:
1. ``$vars.<name>``        -> run variable table
2. ``$now`` / ``$today``    -> evaluated at resolution time
3. ``$json.<path>`` / ``$input.<path>`` -> current item json
4. ``$workflow.<path>`` / ``$execution.<path>`` -> run metadata
5. anything else            -> dotted walk through the item json
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


TEMPLATE_PATTERN = re.compile(r"\{\{([^}]+)\}\}")
DOLLAR_CALL_PATTERN = re.compile(r"\$\(([^)]+)\)")
SINGLE_TOKEN_PATTERN = re.compile(r"^\s*\{\{([^}]+)\}\}\s*$")


class _Missing:
    """Sentinel for a path that could not be resolved."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass
class RunVariables:
    """
    Reserved variables visible to expressions and user code in one run.
    """
    workflow: Dict[str, Any] = field(default_factory=dict)
    execution: Dict[str, Any] = field(default_factory=dict)
    vars: Dict[str, Any] = field(default_factory=dict)

    def snapshot(self) -> Dict[str, Any]:
        """Reserved variables as they are embedded in trigger seed items."""
        return {
            "$workflow": dict(self.workflow),
            "$execution": dict(self.execution),
            "$vars": dict(self.vars),
        }


def utc_now_iso() -> str:
    """Current UTC timestamp in ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def utc_today() -> str:
    """Current UTC date as YYYY-MM-DD."""
    return datetime.now(timezone.utc).date().isoformat()


def walk_path(data: Any, path: str) -> Any:
    """
    Walk a dotted path through nested dicts and lists.

    Numeric segments index into lists. Returns MISSING on any missing
    segment, including None intermediates.
    """
    current = data
    for segment in path.split("."):
        segment = segment.strip()
        if not segment:
            return MISSING
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING
    return current


def resolve_path(
    path: str,
    context: Any,
    variables: Optional[RunVariables] = None,
) -> Any:
    """
    Resolve a single expression path.

    Args:
        path: Expression without braces, e.g. "user.name" or "$vars.apiUrl"
        context: Item json the path is resolved against
        variables: Run variables ($vars, $workflow, $execution)

    Returns:
        The resolved value or MISSING
    """
    path = path.strip()
    variables = variables or RunVariables()

    if path.startswith("$vars."):
        return walk_path(variables.vars, path[len("$vars."):])
    if path == "$vars":
        return dict(variables.vars)
    if path == "$now":
        return utc_now_iso()
    if path == "$today":
        return utc_today()

    for prefix in ("$json", "$input"):
        if path == prefix:
            return context if context is not None else MISSING
        if path.startswith(prefix + "."):
            return walk_path(context, path[len(prefix) + 1:])

    if path == "$workflow":
        return dict(variables.workflow)
    if path.startswith("$workflow."):
        return walk_path(variables.workflow, path[len("$workflow."):])
    if path == "$execution":
        return dict(variables.execution)
    if path.startswith("$execution."):
        return walk_path(variables.execution, path[len("$execution."):])

    return walk_path(context, path)


def stringify(value: Any) -> str:
    """String form of a resolved value as it appears inside a template."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def resolve_template(
    template: Any,
    context: Any,
    variables: Optional[RunVariables] = None,
) -> Any:
    """
    Replace every {{ expr }} and $(expr) token in a template string.

    Non-string templates are returned unchanged. Tokens that cannot be
    resolved stay in the output verbatim.
    """
    if not isinstance(template, str) or not template:
        return template

    def _replace(match: re.Match) -> str:
        value = resolve_path(match.group(1), context, variables)
        if value is MISSING:
            return match.group(0)
        return stringify(value)

    resolved = TEMPLATE_PATTERN.sub(_replace, template)
    return DOLLAR_CALL_PATTERN.sub(_replace, resolved)


def resolve_value(
    value: Any,
    context: Any,
    variables: Optional[RunVariables] = None,
) -> Any:
    """
    Resolve a parameter value, keeping the native type where possible.

    A string that is exactly one {{ expr }} token resolves to the raw value
    (number, bool, dict...). Other strings go through resolve_template.
    Dicts and lists are resolved recursively.
    """
    if isinstance(value, str):
        match = SINGLE_TOKEN_PATTERN.match(value)
        if match:
            resolved = resolve_path(match.group(1), context, variables)
            return value if resolved is MISSING else resolved
        return resolve_template(value, context, variables)
    if isinstance(value, dict):
        return {k: resolve_value(v, context, variables) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(v, context, variables) for v in value]
    return value


class ExpressionResolver:
    """
    Resolver bound to one run's variables.

    Handlers get one through their execution context; it has no state
    beyond the variable table.
    """

    def __init__(self, variables: Optional[RunVariables] = None) -> None:
        self.variables = variables or RunVariables()

    def template(self, template: Any, context: Any) -> Any:
        return resolve_template(template, context, self.variables)

    def value(self, value: Any, context: Any) -> Any:
        return resolve_value(value, context, self.variables)

    def path(self, path: str, context: Any) -> Any:
        return resolve_path(path, context, self.variables)


__all__ = [
    "MISSING",
    "RunVariables",
    "ExpressionResolver",
    "resolve_path",
    "resolve_template",
    "resolve_value",
    "stringify",
    "utc_now_iso",
    "utc_today",
    "walk_path",
]
