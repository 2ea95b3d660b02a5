"""
Condition evaluation.

``evaluate`` is a pure function of (condition, facts): it never mutates the
store and never raises for data problems. Missing data is a non-match, not a
failure, and a malformed ``matches`` pattern degrades to substring search.

Every node yields a ConditionTrace carrying the resolved values, so a rule's
"why" can be rendered without evaluating it again.
"""

import re
from typing import Any, assert_never

from rulelang.domain.enums import Operator
from rulelang.domain.program import (
    AllCondition,
    AnyCondition,
    CompareCondition,
    Condition,
    ExistsCondition,
    FactOperand,
    MatchesCondition,
    MemberOfCondition,
    NotCondition,
    Operand,
    ValueOperand,
)
from rulelang.domain.traces import ConditionTrace
from rulelang.engine.facts import MISSING, FactStore, present


def resolve_operand(operand: Operand, facts: FactStore) -> Any:
    """Value of an operand: the fact's current value (or MISSING) or the literal."""
    if isinstance(operand, FactOperand):
        return facts.read(operand.path)
    if isinstance(operand, ValueOperand):
        return operand.value
    assert_never(operand)


def strict_equals(a: Any, b: Any) -> bool:
    """
    Equality without Python's bool/int coercion (``True`` never equals ``1``).

    Lists compare element-wise with the same rule.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if isinstance(a, list) and isinstance(b, list):
        return len(a) == len(b) and all(strict_equals(x, y) for x, y in zip(a, b))
    return a == b


def _contains(items: list[Any], value: Any) -> bool:
    return any(strict_equals(item, value) for item in items)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compare_values(lhs: Any, operator: Operator, rhs: Any) -> bool:
    """
    Apply a comparison operator to two resolved (non-missing) values.

    Ordering operators are false unless both sides are numbers.
    """
    if operator == Operator.EQUALS:
        return strict_equals(lhs, rhs)
    if operator == Operator.NOT_EQUALS:
        return not strict_equals(lhs, rhs)
    if operator in (
        Operator.GREATER,
        Operator.GREATER_OR_EQUAL,
        Operator.LESS,
        Operator.LESS_OR_EQUAL,
    ):
        if not (_is_number(lhs) and _is_number(rhs)):
            return False
        if operator == Operator.GREATER:
            return lhs > rhs
        if operator == Operator.GREATER_OR_EQUAL:
            return lhs >= rhs
        if operator == Operator.LESS:
            return lhs < rhs
        return lhs <= rhs
    if operator == Operator.CONTAINS:
        if isinstance(lhs, str):
            return _stringify(rhs) in lhs
        if isinstance(lhs, list):
            return _contains(lhs, rhs)
        return False
    if operator == Operator.MEMBER_OF:
        return isinstance(rhs, list) and _contains(rhs, lhs)
    assert_never(operator)


def _stringify(value: Any) -> str:
    # JSON spelling for booleans and null so "contains true" reads naturally
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


def _missing_paths(pairs: list[tuple[Operand, Any]]) -> list[str]:
    return [
        operand.path
        for operand, value in pairs
        if isinstance(operand, FactOperand) and value is MISSING
    ]


def _matches(value: Any, pattern: str, case_insensitive: bool) -> bool:
    if not isinstance(value, str):
        return False
    try:
        regex = re.compile(pattern, re.IGNORECASE if case_insensitive else 0)
    except re.error:
        # Malformed pattern literal: fall back to plain substring search
        if case_insensitive:
            return pattern.lower() in value.lower()
        return pattern in value
    return regex.search(value) is not None


def evaluate(condition: Condition, facts: FactStore) -> ConditionTrace:
    """
    Evaluate a condition tree against the fact store.

    All children of ``all``/``any`` are evaluated (no short-circuit) so the
    trace is complete.

    Args:
        condition: Condition node
        facts: Current fact store (read only)

    Returns:
        ConditionTrace whose ``result`` is the boolean outcome
    """
    if isinstance(condition, CompareCondition):
        lhs = resolve_operand(condition.lhs, facts)
        rhs = resolve_operand(condition.rhs, facts)
        missing = _missing_paths([(condition.lhs, lhs), (condition.rhs, rhs)])
        result = False if missing else compare_values(lhs, condition.operator, rhs)
        details: dict[str, Any] = {"lhs": present(lhs), "rhs": present(rhs)}
        if missing:
            details["missing"] = missing
        return ConditionTrace(
            kind=condition.kind,
            result=result,
            operator=condition.operator,
            details=details,
        )

    if isinstance(condition, ExistsCondition):
        value = facts.read(condition.fact.path)
        return ConditionTrace(
            kind=condition.kind,
            result=value is not MISSING and value is not None,
            details={"path": condition.fact.path, "value": present(value)},
        )

    if isinstance(condition, MemberOfCondition):
        value = resolve_operand(condition.value, facts)
        options = [resolve_operand(option, facts) for option in condition.options]
        missing = _missing_paths(
            [(condition.value, value), *zip(condition.options, options)]
        )
        result = value is not MISSING and any(
            option is not MISSING and strict_equals(value, option) for option in options
        )
        details = {"value": present(value), "options": [present(o) for o in options]}
        if missing:
            details["missing"] = missing
        return ConditionTrace(kind=condition.kind, result=result, details=details)

    if isinstance(condition, MatchesCondition):
        value = resolve_operand(condition.value, facts)
        details = {
            "value": present(value),
            "pattern": condition.pattern,
            "caseInsensitive": condition.case_insensitive,
        }
        return ConditionTrace(
            kind=condition.kind,
            result=_matches(value, condition.pattern, condition.case_insensitive),
            details=details,
        )

    if isinstance(condition, NotCondition):
        child = evaluate(condition.condition, facts)
        return ConditionTrace(kind=condition.kind, result=not child.result, children=[child])

    if isinstance(condition, (AllCondition, AnyCondition)):
        children = [evaluate(child, facts) for child in condition.conditions]
        combine = all if isinstance(condition, AllCondition) else any
        return ConditionTrace(
            kind=condition.kind,
            result=combine(child.result for child in children),
            children=children,
        )

    assert_never(condition)
