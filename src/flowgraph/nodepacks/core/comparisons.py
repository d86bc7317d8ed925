"""
Comparison operators shared by the If and Switch nodes.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, Union

from dateutil import parser as date_parser


logger = logging.getLogger(__name__)


def to_number(value: Any) -> Union[int, float]:
    """Convert value to number; anything unparseable is 0."""
    if value is None or isinstance(value, bool):
        return int(bool(value))
    if isinstance(value, (int, float)):
        return value
    try:
        text = str(value).strip()
        if text == "":
            return 0
        try:
            return int(text)
        except ValueError:
            return float(text)
    except (ValueError, TypeError):
        return 0


def to_boolean(value: Any) -> bool:
    """Convert value to boolean."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    if isinstance(value, (int, float)):
        return value != 0
    return bool(value)


def to_timestamp(value: Any) -> float:
    """Convert a date-ish value to a POSIX timestamp; unparseable is 0."""
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        return value.timestamp()
    try:
        return date_parser.isoparse(str(value)).timestamp()
    except (ValueError, OverflowError):
        pass
    try:
        return date_parser.parse(str(value)).timestamp()
    except (ValueError, OverflowError):
        return 0.0


def to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_empty(value: Any) -> bool:
    """n8n emptiness: None, blank strings and empty collections. 0 is not empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def regex_match(value: Any, pattern: Any) -> bool:
    """
    Search value for pattern.

    Accepts /pattern/flags literals (i, m, s honoured). An invalid pattern
    does not match.
    """
    source = to_text(pattern)
    if not source:
        return False
    flags = 0
    literal = re.match(r"^/(.*)/([gimsuy]*)$", source, re.DOTALL)
    if literal:
        source = literal.group(1)
        if "i" in literal.group(2):
            flags |= re.IGNORECASE
        if "m" in literal.group(2):
            flags |= re.MULTILINE
        if "s" in literal.group(2):
            flags |= re.DOTALL
    try:
        return re.search(source, to_text(value), flags) is not None
    except re.error as e:
        logger.warning(f"Invalid regex {source!r}: {e}")
        return False


def _equal(v1: Any, v2: Any) -> bool:
    if isinstance(v1, bool) or isinstance(v2, bool):
        return v1 is v2 or v1 == v2
    return v1 == v2


OPERATIONS: Dict[str, Callable[[Any, Any], bool]] = {
    "equal": _equal,
    "notEqual": lambda v1, v2: not _equal(v1, v2),
    "contains": lambda v1, v2: to_text(v2) in to_text(v1),
    "notContains": lambda v1, v2: to_text(v2) not in to_text(v1),
    "startsWith": lambda v1, v2: to_text(v1).startswith(to_text(v2)),
    "notStartsWith": lambda v1, v2: not to_text(v1).startswith(to_text(v2)),
    "endsWith": lambda v1, v2: to_text(v1).endswith(to_text(v2)),
    "notEndsWith": lambda v1, v2: not to_text(v1).endswith(to_text(v2)),
    "regex": regex_match,
    "notRegex": lambda v1, v2: not regex_match(v1, v2),
    "larger": lambda v1, v2: to_number(v1) > to_number(v2),
    "largerEqual": lambda v1, v2: to_number(v1) >= to_number(v2),
    "smaller": lambda v1, v2: to_number(v1) < to_number(v2),
    "smallerEqual": lambda v1, v2: to_number(v1) <= to_number(v2),
    "isEmpty": lambda v1, v2=None: is_empty(v1),
    "isNotEmpty": lambda v1, v2=None: not is_empty(v1),
    "after": lambda v1, v2: to_timestamp(v1) > to_timestamp(v2),
    "before": lambda v1, v2: to_timestamp(v1) < to_timestamp(v2),
}

# Aliases seen in exported graphs
OPERATIONS["equals"] = OPERATIONS["equal"]
OPERATIONS["notEquals"] = OPERATIONS["notEqual"]


def coerce(value: Any, data_type: str) -> Any:
    """Coerce a resolved operand to the condition's data type."""
    if data_type == "number":
        return to_number(value)
    if data_type == "boolean":
        return to_boolean(value)
    if data_type == "dateTime":
        return to_timestamp(value)
    if data_type == "string":
        return to_text(value)
    return value


def compare(operation: str, value1: Any, value2: Any = None) -> bool:
    """
    Apply a named comparison.

    Raises:
        ValueError: Unknown operation
    """
    try:
        func = OPERATIONS[operation]
    except KeyError:
        raise ValueError(f"Unknown comparison operation: {operation}") from None
    return bool(func(value1, value2))


__all__ = [
    "OPERATIONS",
    "coerce",
    "compare",
    "is_empty",
    "regex_match",
    "to_boolean",
    "to_number",
    "to_text",
    "to_timestamp",
]
