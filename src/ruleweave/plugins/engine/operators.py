"""Comparison and membership operators shared by every archetype.

These are the plain operators rules use to guard on ``fileData`` and to
compare scalar fact values (``equal``, ``greaterThan``, ``contains`` ...).
Type mismatches never raise: a comparison that cannot apply is ``False``.
"""

from __future__ import annotations

from typing import Any

from ruleweave.engine.types import OperatorDefn


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_equal(left: Any, right: Any) -> bool:
    # True == 1 in Python; a boolean only equals another boolean.
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    return bool(left == right)


def _member(item: Any, container: Any) -> bool:
    if isinstance(container, str):
        return isinstance(item, str) and item in container
    return any(_strict_equal(item, element) for element in container)


def equal(fact_value: Any, value: Any) -> bool:
    return _strict_equal(fact_value, value)


def not_equal(fact_value: Any, value: Any) -> bool:
    return not _strict_equal(fact_value, value)


def less_than(fact_value: Any, value: Any) -> bool:
    return _is_number(fact_value) and _is_number(value) and fact_value < value


def less_than_inclusive(fact_value: Any, value: Any) -> bool:
    return _is_number(fact_value) and _is_number(value) and fact_value <= value


def greater_than(fact_value: Any, value: Any) -> bool:
    return _is_number(fact_value) and _is_number(value) and fact_value > value


def greater_than_inclusive(fact_value: Any, value: Any) -> bool:
    return _is_number(fact_value) and _is_number(value) and fact_value >= value


def in_(fact_value: Any, value: Any) -> bool:
    """True when *fact_value* is one of the items of *value*."""
    if not isinstance(value, (list, tuple, str)):
        return False
    return _member(fact_value, value)


def not_in(fact_value: Any, value: Any) -> bool:
    if not isinstance(value, (list, tuple, str)):
        return False
    return not _member(fact_value, value)


def contains(fact_value: Any, value: Any) -> bool:
    """True when the list (or string) *fact_value* holds *value*."""
    if not isinstance(fact_value, (list, tuple, str)):
        return False
    return _member(value, fact_value)


def does_not_contain(fact_value: Any, value: Any) -> bool:
    if not isinstance(fact_value, (list, tuple, str)):
        return False
    return not _member(value, fact_value)


ENGINE_OPERATORS: tuple[OperatorDefn, ...] = (
    OperatorDefn(name="equal", fn=equal, description="Fact value equals the rule value"),
    OperatorDefn(name="notEqual", fn=not_equal, description="Fact value differs from the rule value"),
    OperatorDefn(name="lessThan", fn=less_than, description="Numeric fact value below the rule value"),
    OperatorDefn(
        name="lessThanInclusive",
        fn=less_than_inclusive,
        description="Numeric fact value at or below the rule value",
    ),
    OperatorDefn(name="greaterThan", fn=greater_than, description="Numeric fact value above the rule value"),
    OperatorDefn(
        name="greaterThanInclusive",
        fn=greater_than_inclusive,
        description="Numeric fact value at or above the rule value",
    ),
    OperatorDefn(name="in", fn=in_, description="Fact value is one of the listed values"),
    OperatorDefn(name="notIn", fn=not_in, description="Fact value is none of the listed values"),
    OperatorDefn(name="contains", fn=contains, description="List fact value holds the rule value"),
    OperatorDefn(
        name="doesNotContain",
        fn=does_not_contain,
        description="List fact value lacks the rule value",
    ),
)

ENGINE_OPERATOR_NAMES: frozenset[str] = frozenset(op.name for op in ENGINE_OPERATORS)
