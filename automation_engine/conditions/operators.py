"""Field resolution and comparison operators.

``resolve`` walks a dotted path through nested mappings, sequences and
objects.  ``compare`` applies one of the fixed operators below.  Neither
function ever raises for bad data: a missing field resolves to ``MISSING``
and an impossible comparison is simply ``False``.

Operator quick-reference
------------------------
eq / ne             strict equality (``True`` is not ``1``, ``"1"`` is not ``1``)
contains            substring (str field) or membership (list field)
startsWith          str field and str value only
endsWith            str field and str value only
gt / lt / gte / lte number vs number, or str vs str; anything else is False
regex               ``re.search`` on a str field; invalid pattern is False
exists              value ``True``: field present and not None; ``False``: absent
in                  field is a member of the list value (non-list value: False)
nin                 field is not a member of the list value (non-list value: True)
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

from automation_engine.logging import get_logger

log = get_logger(__name__)


class _Missing:
    """Sentinel for a path that does not resolve."""

    _instance: "_Missing | None" = None

    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

OPERATORS: frozenset[str] = frozenset(
    {
        "eq",
        "ne",
        "contains",
        "startsWith",
        "endsWith",
        "gt",
        "lt",
        "gte",
        "lte",
        "regex",
        "exists",
        "in",
        "nin",
    }
)


# ---------------------------------------------------------------------------
# Field resolution
# ---------------------------------------------------------------------------


def resolve(context: Any, path: str) -> Any:
    """Return the value at dotted *path* inside *context*, or ``MISSING``.

    Mappings are indexed by key, sequences by integer segment, and any other
    object by attribute.  ``length`` on a string or sequence yields its
    length.  ``None`` at any intermediate step short-circuits to ``MISSING``.

    Example::

        resolve({"a": {"b": [10, 20, {"c": 3}]}}, "a.b.2.c")  # -> 3
    """
    current: Any = context
    for segment in path.split("."):
        if current is None or current is MISSING:
            return MISSING
        current = _step(current, segment)
    return current


def _step(current: Any, segment: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(segment, MISSING)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        if segment == "length":
            return len(current)
        try:
            index = int(segment)
        except ValueError:
            return MISSING
        if -len(current) <= index < len(current):
            return current[index]
        return MISSING
    if isinstance(current, str):
        return len(current) if segment == "length" else MISSING
    if segment.startswith("_"):
        return MISSING
    return getattr(current, segment, MISSING)


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def strict_equal(a: Any, b: Any) -> bool:
    """Equality without cross-type coercion (numbers excepted: ``1 == 1.0``)."""
    if _is_number(a) and _is_number(b):
        return a == b
    if type(a) is not type(b):
        return False
    return bool(a == b)


def _ordered(field_value: Any, compare_value: Any) -> bool:
    if _is_number(field_value) and _is_number(compare_value):
        return True
    return isinstance(field_value, str) and isinstance(compare_value, str)


def _contains(field_value: Any, compare_value: Any) -> bool:
    if isinstance(field_value, str):
        return isinstance(compare_value, str) and compare_value in field_value
    if isinstance(field_value, (list, tuple)):
        return any(strict_equal(item, compare_value) for item in field_value)
    return False


def _regex(field_value: Any, pattern: Any) -> bool:
    if not isinstance(field_value, str) or not isinstance(pattern, str):
        return False
    try:
        return re.search(pattern, field_value) is not None
    except re.error as exc:
        log.debug("invalid_regex_pattern", pattern=pattern, error=str(exc))
        return False


def _member(field_value: Any, compare_value: list[Any] | tuple[Any, ...]) -> bool:
    return any(strict_equal(field_value, item) for item in compare_value)


def compare(field_value: Any, op: str, compare_value: Any) -> bool:
    """Apply operator *op*.  Unknown operators log a warning and return False."""
    if op == "eq":
        return strict_equal(field_value, compare_value)
    if op == "ne":
        return not strict_equal(field_value, compare_value)
    if op == "contains":
        return _contains(field_value, compare_value)
    if op == "startsWith":
        return (
            isinstance(field_value, str)
            and isinstance(compare_value, str)
            and field_value.startswith(compare_value)
        )
    if op == "endsWith":
        return (
            isinstance(field_value, str)
            and isinstance(compare_value, str)
            and field_value.endswith(compare_value)
        )
    if op in ("gt", "lt", "gte", "lte"):
        if not _ordered(field_value, compare_value):
            return False
        if op == "gt":
            return field_value > compare_value
        if op == "lt":
            return field_value < compare_value
        if op == "gte":
            return field_value >= compare_value
        return field_value <= compare_value
    if op == "regex":
        return _regex(field_value, compare_value)
    if op == "exists":
        present = field_value is not MISSING and field_value is not None
        return present if compare_value else not present
    if op == "in":
        if not isinstance(compare_value, (list, tuple)):
            return False
        return _member(field_value, compare_value)
    if op == "nin":
        if not isinstance(compare_value, (list, tuple)):
            return True
        return not _member(field_value, compare_value)

    log.warning("unknown_operator", op=op)
    return False
