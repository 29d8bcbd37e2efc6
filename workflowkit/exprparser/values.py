"""Value semantics of expressions: truthiness, coercion and comparison."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

from workflowkit.exprparser.parser import (
    CompareKind,
    ExpressionError,
    FloatNode,
    IntNode,
    parse_expression,
)


def _kind(value: Any) -> str:
    if value is None:
        return "invalid"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float64"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "slice"
    if isinstance(value, dict):
        return "map"
    return "ptr"


def is_truthy(value: Any) -> bool:
    """Return the truthiness of a value under expression rules."""
    kind = _kind(value)
    if kind == "bool":
        return value
    if kind == "string":
        return value != ""
    if kind == "int":
        return value != 0
    if kind == "float64":
        return not math.isnan(value) and value != 0
    return kind in ("map", "slice")


def is_number(value: Any) -> bool:
    """Return True for integers and floats (not booleans)."""
    return _kind(value) in ("int", "float64")


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    sign, digits, exponent = Decimal(repr(value)).as_tuple()
    text = "".join(map(str, digits)).rstrip("0") or "0"
    exponent += len(digits) - len(text)
    point = len(text) + exponent - 1
    prefix = "-" if sign else ""
    if point < -4 or point >= 21:
        mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
        exp_sign = "-" if point < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(point):02d}"
    if exponent >= 0:
        return prefix + text + "0" * exponent
    split = len(text) + exponent
    if split > 0:
        return f"{prefix}{text[:split]}.{text[split:]}"
    return f"{prefix}0.{'0' * -split}{text}"


def coerce_to_string(value: Any) -> Any:
    """Convert a value to its string form; unknown objects are returned unchanged."""
    kind = _kind(value)
    if kind == "invalid":
        return ""
    if kind == "bool":
        return "true" if value else "false"
    if kind == "string":
        return value
    if kind == "int":
        return str(value)
    if kind == "float64":
        if value == math.inf:
            return "Infinity"
        if value == -math.inf:
            return "-Infinity"
        return _format_float(value)
    if kind == "slice":
        return "Array"
    if kind == "map":
        return "Object"
    return value


def _parse_number(text: str) -> Any:
    if text.startswith("${{"):
        text = text[3:]
    try:
        node = parse_expression(text + "}}")
    except ExpressionError:
        return math.nan
    if isinstance(node, (IntNode, FloatNode)):
        return node.value
    return math.nan


def coerce_to_number(value: Any) -> Any:
    """Convert a value to a number; NaN when it has no numeric form."""
    kind = _kind(value)
    if kind == "invalid":
        return 0
    if kind == "bool":
        return 1 if value else 0
    if kind == "string":
        if value == "":
            return 0
        return _parse_number(value)
    return math.nan


def _compare(left: Any, right: Any, kind: CompareKind) -> bool:
    if kind is CompareKind.LESS:
        return left < right
    if kind is CompareKind.LESS_EQ:
        return left <= right
    if kind is CompareKind.GREATER:
        return left > right
    if kind is CompareKind.GREATER_EQ:
        return left >= right
    if kind is CompareKind.EQ:
        return left == right
    if kind is CompareKind.NOT_EQ:
        return left != right
    raise ExpressionError(f"TODO: not implemented to compare '{kind}'")


def compare_values(left: Any, right: Any, kind: CompareKind) -> bool:
    """Compare two values, coercing them to numbers when their types differ."""
    if _kind(left) != _kind(right):
        if not is_number(left):
            left = coerce_to_number(left)
        if not is_number(right):
            right = coerce_to_number(right)

    left_kind = _kind(left)
    if left_kind == "bool":
        return _compare(int(left), int(right), kind)
    if left_kind == "string":
        return _compare(left.lower(), right.lower(), kind)
    if left_kind in ("int", "float64"):
        return _compare(float(left), float(right), kind)
    if left_kind == "invalid":
        if right is None:
            return True
        raise ExpressionError(
            f"Compare params of Invalid type: left: {left_kind}, right: {_kind(right)}"
        )
    raise ExpressionError(
        f"Compare not implemented for types: left: {left_kind}, right: {_kind(right)}"
    )


def safe_value(value: Any) -> Any:
    """Normalise a result: a float zero becomes the integer 0."""
    if _kind(value) == "float64" and value == 0:
        return 0
    return value