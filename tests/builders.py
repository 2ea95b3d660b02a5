"""
Document builders for test programs.

Programs are built as plain JSON-shaped dicts and decoded through
``load_program``, the same path real documents take.
"""

from __future__ import annotations

from typing import Any

from rulelang.domain.program import Program, load_program

ORDER_ENTITIES: list[dict[str, Any]] = [
    {
        "name": "order",
        "fields": [
            {"name": "total", "type": "number", "units": "USD"},
            {"name": "vip", "type": "boolean"},
            {"name": "discountPercent", "type": "number"},
            {"name": "status", "type": "string"},
            {"name": "notes", "type": "string"},
            {"name": "count", "type": "number"},
            {"name": "placedOn", "type": "date"},
            {"name": "shipping", "type": "number", "units": "USD"},
        ],
    },
    {
        "name": "customer",
        "fields": [
            {"name": "name", "type": "string"},
            {"name": "email", "type": "string"},
            {"name": "tier", "type": "string"},
        ],
    },
]


def fact(path: str, units: str | None = None) -> dict[str, Any]:
    operand: dict[str, Any] = {"kind": "fact", "path": path}
    if units:
        operand["units"] = units
    return operand


def value(literal: Any, units: str | None = None) -> dict[str, Any]:
    operand: dict[str, Any] = {"kind": "value", "value": literal}
    if units:
        operand["units"] = units
    return operand


def compare(lhs: dict, operator: str, rhs: dict) -> dict[str, Any]:
    return {"kind": "compare", "lhs": lhs, "operator": operator, "rhs": rhs}


def set_action(target: str, operand: dict) -> dict[str, Any]:
    return {"kind": "set", "target": target, "value": operand}


def make_rule(rule_id: str, when: dict, then: list[dict] | None = None, **extra: Any) -> dict:
    rule: dict[str, Any] = {"id": rule_id, "name": rule_id, "when": when, "then": then or []}
    rule.update(extra)
    return rule


def make_program(
    rules: list[dict] | None = None,
    constraints: list[dict] | None = None,
    examples: list[dict] | None = None,
    entities: list[dict] | None = None,
    **extra: Any,
) -> Program:
    document: dict[str, Any] = {
        "entities": entities if entities is not None else ORDER_ENTITIES,
        "rules": rules or [],
        "constraints": constraints or [],
        "examples": examples or [],
    }
    document.update(extra)
    return load_program(document)


# Rule from the discount scenario: total > 100 USD earns 10% off
DISCOUNT_RULE = make_rule(
    "discount-high-value",
    compare(fact("order.total", "USD"), ">", value(100, "USD")),
    [set_action("order.discountPercent", value(10))],
    name="High value discount",
)
