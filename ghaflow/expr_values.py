"""Value semantics of workflow expressions: truthiness, coercion and comparison."""

from __future__ import annotations

import math
import operator
from typing import Any, Callable, Mapping

from ghaflow.expr_parser import (
    CompareOp,
    ExprSyntaxError,
    FloatNode,
    IntNode,
    VariableNode,
    parse_expression,
)


class EvaluationError(ValueError):
    """An expression could not be evaluated."""


_COMPARATORS: dict[str, Callable[[Any, Any], bool]] = {
    CompareOp.LESS: operator.lt,
    CompareOp.LESS_EQ: operator.le,
    CompareOp.GREATER: operator.gt,
    CompareOp.GREATER_EQ: operator.ge,
    CompareOp.EQ: operator.eq,
    CompareOp.NOT_EQ: operator.ne,
}


def _kind(value: Any) -> str:
    """Name of the value's category as used in error messages."""
    if value is None:
        return "invalid"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, str):
        return "string"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float64"
    if isinstance(value, (list, tuple)):
        return "slice"
    if isinstance(value, Mapping):
        return "map"
    return "ptr"


def is_number(value: Any) -> bool:
    """Whether ``value`` is an integer or float (booleans are not numbers)."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_truthy(value: Any) -> bool:
    """Truthiness of an expression value."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value != ""
    if isinstance(value, int):
        return value != 0
    if isinstance(value, float):
        return not math.isnan(value) and value != 0
    if isinstance(value, (Mapping, list, tuple)):
        return True
    return False


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return "%.15G" % value


def coerce_to_string(value: Any) -> str:
    """Text form of a value as used by string functions and comparisons."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return str(value)
    if isinstance(value, int):
        return str(int(value))
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (list, tuple)):
        return "Array"
    if isinstance(value, Mapping):
        return "Object"
    return str(value)


def _parse_number(text: str) -> int | float:
    if text.startswith("${{"):
        text = text[3:]
    try:
        node = parse_expression(text)
    except ExprSyntaxError:
        return math.nan
    if isinstance(node, (IntNode, FloatNode)):
        return node.value
    if isinstance(node, VariableNode):
        name = node.name.lower()
        if name == "infinity":
            return math.inf
        if name == "nan":
            return math.nan
    return math.nan


def coerce_to_number(value: Any) -> int | float:
    """Numeric form of a value; NaN when it has none."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1 if value else 0
    if is_number(value):
        return value
    if isinstance(value, str):
        if value == "":
            return 0
        return _parse_number(value)
    return math.nan


def _compare(left: Any, right: Any, op: CompareOp) -> bool:
    comparator = _COMPARATORS.get(op)
    if comparator is None:
        raise EvaluationError(f"not implemented to compare '{op}'")
    return comparator(left, right)


def compare_values(left: Any, right: Any, op: CompareOp) -> bool:
    """Compare two values, coercing to numbers when their kinds differ."""
    if _kind(left) != _kind(right):
        if not is_number(left):
            left = coerce_to_number(left)
        if not is_number(right):
            right = coerce_to_number(right)

    kind = _kind(left)
    if kind == "bool":
        return _compare(float(int(left)), float(int(right)), op)
    if kind == "string":
        return _compare(str(left).lower(), str(right).lower(), op)
    if kind in ("int", "float64"):
        return _compare(float(left), float(right), op)
    if kind == "invalid":
        if right is None:
            return True
        raise EvaluationError(
            f"Compare params of Invalid type: left: {kind}, right: {_kind(right)}"
        )
    raise EvaluationError(
        f"Compare not implemented for types: left: {kind}, right: {_kind(right)}"
    )


def safe_value(value: Any) -> Any:
    """Return ``value`` with a float zero turned into the integer 0."""
    if isinstance(value, float) and value == 0:
        return 0
    return value