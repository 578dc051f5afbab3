"""ConditionEngine — recursive evaluator for condition trees.

A condition is a plain dict (JSON-friendly) in one of four shapes::

    {"all": [cond, ...]}                 # AND; empty list passes
    {"any": [cond, ...]}                 # OR; empty list FAILS
    {"not": cond}                        # negation
    {"field": "a.b", "op": "eq", "value": 1}

``None`` as the whole condition passes (nothing to check).  Evaluation never
raises: an unknown shape or operator evaluates to ``False`` with a warning.

Builders produce well-formed trees::

    from automation_engine.conditions import engine as c

    tree = c.all_of(c.eq("status", "open"), c.gt("priority", 2))
    condition_engine.evaluate(tree, {"status": "open", "priority": 3})  # True
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from automation_engine.conditions.operators import OPERATORS, compare, resolve
from automation_engine.exceptions import ConditionValidationError
from automation_engine.logging import get_logger

log = get_logger(__name__)

Condition = dict[str, Any]


@dataclass
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    def raise_for_errors(self, message: str = "Invalid condition") -> None:
        if not self.valid:
            raise ConditionValidationError(f"{message}: {'; '.join(self.errors)}", self.errors)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class ConditionEngine:
    """Stateless evaluator.  Safe to share across concurrent pipeline runs."""

    def evaluate(self, condition: Condition | None, context: Mapping[str, Any]) -> bool:
        if condition is None:
            return True
        return self._evaluate(condition, context)

    def _evaluate(self, condition: Any, context: Mapping[str, Any]) -> bool:
        if not isinstance(condition, Mapping):
            log.warning("invalid_condition_structure", condition=repr(condition))
            return False

        if "all" in condition:
            items = condition["all"]
            if not isinstance(items, list):
                return False
            return all(self._evaluate(c, context) for c in items)

        if "any" in condition:
            items = condition["any"]
            if not isinstance(items, list):
                return False
            return any(self._evaluate(c, context) for c in items)

        if "not" in condition:
            return not self._evaluate(condition["not"], context)

        if "field" in condition:
            field_value = resolve(context, str(condition["field"]))
            return compare(field_value, condition.get("op", ""), condition.get("value"))

        log.warning("unknown_condition_type", condition=repr(condition))
        return False

    # ---------------------------------------------------------------------------
    # Structural validation
    # ---------------------------------------------------------------------------

    def validate(self, condition: Condition | None) -> ValidationResult:
        """Check *condition* shape without evaluating it.  Never raises."""
        if condition is None:
            return ValidationResult(valid=True)
        errors: list[str] = []
        self._validate(condition, errors, "")
        return ValidationResult(valid=not errors, errors=errors)

    def _validate(self, condition: Any, errors: list[str], path: str) -> None:
        where = path or "root"
        if not isinstance(condition, Mapping):
            errors.append(f"{where}: invalid condition structure")
            return

        for key in ("all", "any"):
            if key in condition:
                items = condition[key]
                if not isinstance(items, list):
                    errors.append(f"{where}: '{key}' must be a list")
                    return
                for i, child in enumerate(items):
                    self._validate(child, errors, f"{path}.{key}[{i}]")
                return

        if "not" in condition:
            if condition["not"] is None:
                errors.append(f"{where}: 'not' must have a condition")
                return
            self._validate(condition["not"], errors, f"{path}.not")
            return

        if "field" in condition:
            name = condition["field"]
            if not isinstance(name, str) or not name:
                errors.append(f"{where}: 'field' must be a non-empty string")
            op = condition.get("op")
            if not op:
                errors.append(f"{where}: 'op' is required")
            elif op not in OPERATORS:
                errors.append(f"{where}: invalid operator '{op}'")
            return

        errors.append(f"{where}: invalid condition structure")

    # ---------------------------------------------------------------------------
    # Builders (mirrors of the module-level functions)
    # ---------------------------------------------------------------------------

    @staticmethod
    def eq(field_name: str, value: Any) -> Condition:
        return eq(field_name, value)

    @staticmethod
    def ne(field_name: str, value: Any) -> Condition:
        return ne(field_name, value)

    @staticmethod
    def contains(field_name: str, value: Any) -> Condition:
        return contains(field_name, value)

    @staticmethod
    def gt(field_name: str, value: Any) -> Condition:
        return gt(field_name, value)

    @staticmethod
    def lt(field_name: str, value: Any) -> Condition:
        return lt(field_name, value)

    @staticmethod
    def gte(field_name: str, value: Any) -> Condition:
        return gte(field_name, value)

    @staticmethod
    def lte(field_name: str, value: Any) -> Condition:
        return lte(field_name, value)

    @staticmethod
    def all_of(*conditions: Condition) -> Condition:
        return all_of(*conditions)

    @staticmethod
    def any_of(*conditions: Condition) -> Condition:
        return any_of(*conditions)

    @staticmethod
    def not_(condition: Condition) -> Condition:
        return not_(condition)

    @staticmethod
    def exists(field_name: str) -> Condition:
        return exists(field_name)

    @staticmethod
    def not_exists(field_name: str) -> Condition:
        return not_exists(field_name)

    @staticmethod
    def regex(field_name: str, pattern: str) -> Condition:
        return regex(field_name, pattern)

    @staticmethod
    def in_(field_name: str, values: list[Any]) -> Condition:
        return in_(field_name, values)

    @staticmethod
    def nin(field_name: str, values: list[Any]) -> Condition:
        return nin(field_name, values)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def _field(field_name: str, op: str, value: Any) -> Condition:
    return {"field": field_name, "op": op, "value": value}


def eq(field_name: str, value: Any) -> Condition:
    return _field(field_name, "eq", value)


def ne(field_name: str, value: Any) -> Condition:
    return _field(field_name, "ne", value)


def contains(field_name: str, value: Any) -> Condition:
    return _field(field_name, "contains", value)


def gt(field_name: str, value: Any) -> Condition:
    return _field(field_name, "gt", value)


def gte(field_name: str, value: Any) -> Condition:
    return _field(field_name, "gte", value)


def lt(field_name: str, value: Any) -> Condition:
    return _field(field_name, "lt", value)


def lte(field_name: str, value: Any) -> Condition:
    return _field(field_name, "lte", value)


def regex(field_name: str, pattern: str) -> Condition:
    return _field(field_name, "regex", pattern)


def exists(field_name: str) -> Condition:
    return _field(field_name, "exists", True)


def not_exists(field_name: str) -> Condition:
    return _field(field_name, "exists", False)


def in_(field_name: str, values: list[Any]) -> Condition:
    return _field(field_name, "in", list(values))


def nin(field_name: str, values: list[Any]) -> Condition:
    return _field(field_name, "nin", list(values))


def all_of(*conditions: Condition) -> Condition:
    return {"all": list(conditions)}


def any_of(*conditions: Condition) -> Condition:
    return {"any": list(conditions)}


def not_(condition: Condition) -> Condition:
    return {"not": condition}


# Default shared instance.
condition_engine = ConditionEngine()
