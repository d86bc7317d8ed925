"""
Scripting Sandbox - runs user code for the Code node.

User code is the body of a Python function. The body is checked, compiled
into ``def <fn>(<bindings>)`` and executed with a restricted builtins
table, so the only names it can reach are the enumerated bindings below
and SAFE_BUILTINS. Items are handed over as deep copies.

Bindings:
    items / item     all input items (all-items mode) or the current one
    _                item accessor: all(), first(), last(), item(i),
                     item_matching(key, value) / itemMatching
    _input           raw item accessor: all(), first(), last(), item
    _json            current item json (per-item mode only)
    _vars, _workflow, _execution, _now, _today
    math, json, re, datetime, timedelta, timezone, console

The body is compiled with RestrictedPython, so attribute, item and
iteration access go through guards, and frame or generator
introspection attributes are rejected before anything runs.

Synchronous: the sandbox never suspends the event loop it is called from.
"""

from __future__ import annotations

import ast
import copy
import json
import logging
import math
import operator
import re
import textwrap
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

from RestrictedPython import RestrictingNodeTransformer, compile_restricted_exec
from RestrictedPython.Eval import default_guarded_getitem, default_guarded_getiter
from RestrictedPython.Guards import (
    full_write_guard,
    guarded_iter_unpack_sequence,
    guarded_unpack_sequence,
    safer_getattr,
)

from .basenode import NodeOperationError
from .expressions import RunVariables, utc_now_iso, utc_today
from .items import Item, to_items


logger = logging.getLogger(__name__)

RUN_ONCE_FOR_ALL_ITEMS = "runOnceForAllItems"
RUN_ONCE_FOR_EACH_ITEM = "runOnceForEachItem"

_FUNCTION_NAME = "flowgraph_user_code"

BINDING_NAMES = frozenset({"_", "_input", "_json", "_vars", "_workflow", "_execution", "_now", "_today"})

SAFE_BUILTINS: Dict[str, Any] = {
    "abs": abs,
    "all": all,
    "any": any,
    "bool": bool,
    "dict": dict,
    "enumerate": enumerate,
    "filter": filter,
    "float": float,
    "int": int,
    "isinstance": isinstance,
    "len": len,
    "list": list,
    "map": map,
    "max": max,
    "min": min,
    "range": range,
    "reversed": reversed,
    "round": round,
    "set": set,
    "slice": slice,
    "sorted": sorted,
    "str": str,
    "sum": sum,
    "tuple": tuple,
    "zip": zip,
    "True": True,
    "False": False,
    "None": None,
    "Exception": Exception,
    "ValueError": ValueError,
    "TypeError": TypeError,
    "KeyError": KeyError,
    "IndexError": IndexError,
}


# Frame, code, traceback, generator and coroutine introspection.
INTROSPECTION_PREFIXES = ("gi_", "cr_", "ag_", "f_", "tb_", "co_")

_JSON_NAMES = ("dumps", "loads", "JSONDecodeError")
_RE_NAMES = (
    "compile", "escape", "findall", "finditer", "fullmatch", "match", "search", "split", "sub", "subn",
    "I", "IGNORECASE", "M", "MULTILINE", "S", "DOTALL",
)


class CodeExecutionError(NodeOperationError):
    """User code failed to compile, was rejected, raised, or returned garbage."""


class _CodeChecker(ast.NodeVisitor):
    """Reject constructs that could escape the binding list."""

    def visit_Import(self, node: ast.Import) -> None:
        raise CodeExecutionError(f"import statements are not allowed (line {node.lineno})")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        raise CodeExecutionError(f"import statements are not allowed (line {node.lineno})")

    def visit_Global(self, node: ast.Global) -> None:
        raise CodeExecutionError(f"global statements are not allowed (line {node.lineno})")

    def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
        raise CodeExecutionError(f"nonlocal statements are not allowed (line {node.lineno})")

    def visit_Name(self, node: ast.Name) -> None:
        if node.id.startswith("__"):
            raise CodeExecutionError(f"name '{node.id}' is not allowed (line {node.lineno})")
        self.generic_visit(node)

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if node.attr.startswith("_") or node.attr.startswith(INTROSPECTION_PREFIXES):
            raise CodeExecutionError(f"attribute '{node.attr}' is not allowed (line {node.lineno})")
        self.generic_visit(node)


class _SandboxPolicy(RestrictingNodeTransformer):
    """RestrictedPython policy that also admits the underscore bindings."""

    def check_name(self, node, name, *args, **kwargs):
        if name in BINDING_NAMES:
            return
        return super().check_name(node, name, *args, **kwargs)


def _guarded_getattr(obj: Any, name: str, *default: Any) -> Any:
    if name.startswith(INTROSPECTION_PREFIXES):
        raise AttributeError(f"attribute '{name}' is not allowed")
    return safer_getattr(obj, name, *default)


def _apply(function: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    return function(*args, **kwargs)


def _inplace(op: str, target: Any, value: Any) -> Any:
    return INPLACE_OPERATORS[op](target, value)


INPLACE_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+=": operator.iadd,
    "-=": operator.isub,
    "*=": operator.imul,
    "/=": operator.itruediv,
    "//=": operator.ifloordiv,
    "%=": operator.imod,
    "**=": operator.ipow,
    "|=": operator.ior,
    "&=": operator.iand,
    "^=": operator.ixor,
    "<<=": operator.ilshift,
    ">>=": operator.irshift,
}


def _module_view(module: Any, names: tuple) -> SimpleNamespace:
    """Public functions of a module without the modules it imports."""
    return SimpleNamespace(**{name: getattr(module, name) for name in names})


class _ConsolePrint:
    """Stands in for RestrictedPython's print collector; lines go to the console logger."""

    def __init__(self, log: Callable[..., None]) -> None:
        self._log = log

    def __call__(self, _getattr_: Any = None) -> "_ConsolePrint":
        return self

    def _call_print(self, *objects: Any, **kwargs: Any) -> None:
        self._log(*objects)


class ItemAccessor:
    """The ``_`` binding: json-level access to the input items."""

    def __init__(self, items: List[Dict[str, Any]]) -> None:
        self._items = items

    def all(self) -> List[Dict[str, Any]]:
        return [item.get("json", {}) for item in self._items]

    def first(self) -> Optional[Dict[str, Any]]:
        return self._items[0].get("json") if self._items else None

    def last(self) -> Optional[Dict[str, Any]]:
        return self._items[-1].get("json") if self._items else None

    def item(self, index: int = 0) -> Optional[Dict[str, Any]]:
        if 0 <= index < len(self._items):
            return self._items[index].get("json")
        return None

    def item_matching(self, key: str, value: Any) -> Optional[Dict[str, Any]]:
        for item in self._items:
            data = item.get("json", {})
            if data.get(key) == value:
                return data
        return None

    itemMatching = item_matching


class InputAccessor:
    """The ``_input`` binding: raw {"json": ...} items."""

    def __init__(self, items: List[Dict[str, Any]], current: Optional[Dict[str, Any]] = None) -> None:
        self._items = items
        self.item = current if current is not None else (items[0] if items else None)

    def all(self) -> List[Dict[str, Any]]:
        return list(self._items)

    def first(self) -> Optional[Dict[str, Any]]:
        return self._items[0] if self._items else None

    def last(self) -> Optional[Dict[str, Any]]:
        return self._items[-1] if self._items else None


def _make_console(node_name: str) -> SimpleNamespace:
    code_logger = logging.getLogger(f"{__name__}.console")
    prefix = f"[{node_name}]" if node_name else "[code]"

    def _emit(level: int) -> Callable[..., None]:
        def _log(*args: Any) -> None:
            code_logger.log(level, "%s %s", prefix, " ".join(str(a) for a in args))
        return _log

    return SimpleNamespace(
        log=_emit(logging.INFO),
        info=_emit(logging.INFO),
        warn=_emit(logging.WARNING),
        error=_emit(logging.ERROR),
    )


class CodeSandbox:
    """
    Compiles and runs user code against an enumerated binding set.

    Usage:
        sandbox = CodeSandbox(variables=run_variables)
        output = sandbox.run("return items", input_items)
    """

    def __init__(self, variables: Optional[RunVariables] = None, node_name: str = "") -> None:
        self.variables = variables or RunVariables()
        self.node_name = node_name

    def compile(self, code: str, item_binding: str) -> Callable[..., Any]:
        """
        Compile user code as the body of a function.

        Raises:
            CodeExecutionError: On syntax errors or forbidden constructs
        """
        body = textwrap.dedent(code or "").strip("\n") or "return items"
        bindings = [item_binding] + list(self._static_bindings().keys()) + ["_", "_input", "_json"]
        source = f"def {_FUNCTION_NAME}({', '.join(bindings)}):\n" + textwrap.indent(body, "    ")

        try:
            tree = ast.parse(source, filename="<code>", mode="exec")
        except SyntaxError as e:
            raise CodeExecutionError(f"Code execution failed: {e.msg} (line {(e.lineno or 1) - 1})") from e

        # Only the user body is checked; the wrapper def is ours.
        for statement in tree.body[0].body:
            _CodeChecker().visit(statement)

        result = compile_restricted_exec(source, filename="<code>", policy=_SandboxPolicy)
        if result.errors:
            raise CodeExecutionError(f"Code execution failed: {'; '.join(result.errors)}")

        namespace = self._globals()
        exec(result.code, namespace)
        return namespace[_FUNCTION_NAME]

    def run(self, code: str, items: List[Item], mode: str = RUN_ONCE_FOR_ALL_ITEMS) -> List[Item]:
        """
        Run user code over the input items.

        Args:
            code: Function body
            items: Input items (never mutated)
            mode: runOnceForAllItems or runOnceForEachItem

        Returns:
            Output items

        Raises:
            CodeExecutionError: Wrapping any failure, original message kept
        """
        raw_items = [{"json": copy.deepcopy(item.json_data)} for item in items]

        if mode == RUN_ONCE_FOR_EACH_ITEM:
            function = self.compile(code, "item")
            results: List[Item] = []
            for index, raw in enumerate(raw_items):
                result = self._call(function, raw, raw_items, current=raw)
                if result is None:
                    raise CodeExecutionError(
                        f"Code execution failed: code returned no data for item {index}",
                        item_index=index,
                    )
                results.extend(self._normalize(result))
            return results

        if mode != RUN_ONCE_FOR_ALL_ITEMS:
            raise CodeExecutionError(f"Unknown code mode: {mode}")

        function = self.compile(code, "items")
        result = self._call(function, raw_items, raw_items, current=None)
        if result is None:
            raise CodeExecutionError("Code execution failed: code returned no data")
        return self._normalize(result)

    def _call(
        self,
        function: Callable[..., Any],
        first_arg: Any,
        raw_items: List[Dict[str, Any]],
        current: Optional[Dict[str, Any]],
    ) -> Any:
        kwargs = dict(self._static_bindings())
        kwargs["_"] = ItemAccessor(raw_items)
        kwargs["_input"] = InputAccessor(raw_items, current)
        kwargs["_json"] = current.get("json") if current is not None else None
        try:
            return function(first_arg, **kwargs)
        except CodeExecutionError:
            raise
        except Exception as e:
            raise CodeExecutionError(f"Code execution failed: {e}") from e

    def _static_bindings(self) -> Dict[str, Any]:
        return {
            "_vars": dict(self.variables.vars),
            "_workflow": dict(self.variables.workflow),
            "_execution": dict(self.variables.execution),
            "_now": utc_now_iso(),
            "_today": utc_today(),
            "math": math,
            "json": _module_view(json, _JSON_NAMES),
            "re": _module_view(re, _RE_NAMES),
            "datetime": datetime,
            "timedelta": timedelta,
            "timezone": timezone,
            "console": _make_console(self.node_name),
        }

    def _globals(self) -> Dict[str, Any]:
        """Builtins plus the guard hooks RestrictedPython-compiled code calls."""
        return {
            "__builtins__": dict(SAFE_BUILTINS),
            "__name__": "flowgraph_sandbox",
            "_getattr_": _guarded_getattr,
            "_getitem_": default_guarded_getitem,
            "_getiter_": default_guarded_getiter,
            "_iter_unpack_sequence_": guarded_iter_unpack_sequence,
            "_unpack_sequence_": guarded_unpack_sequence,
            "_write_": full_write_guard,
            "_apply_": _apply,
            "_inplacevar_": _inplace,
            "_print_": _ConsolePrint(_make_console(self.node_name).log),
        }

    @staticmethod
    def _normalize(result: Any) -> List[Item]:
        if isinstance(result, dict):
            result = [result]
        try:
            return to_items(result)
        except ValueError as e:
            raise CodeExecutionError(f"Code execution failed: invalid item returned ({e})") from e


__all__ = [
    "CodeExecutionError",
    "CodeSandbox",
    "InputAccessor",
    "ItemAccessor",
    "RUN_ONCE_FOR_ALL_ITEMS",
    "RUN_ONCE_FOR_EACH_ITEM",
    "SAFE_BUILTINS",
]
