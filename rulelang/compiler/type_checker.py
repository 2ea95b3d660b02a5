"""
Operand type and unit checks.

Validates that operands agree with the scalar types and units declared on
entity fields. Hard disagreements raise (``TypeMismatchError``,
``UnitMismatchError``); a missing unit is soft and is returned as an Issue.

Used by the pre-execution validator over the whole program, and inline by
the action interpreter every time a write is applied.
"""

from datetime import date, datetime
from typing import Any

from rulelang.compiler.resolver import EntityCatalog
from rulelang.core.errors import TypeMismatchError, UnitMismatchError
from rulelang.domain.enums import IssueKind, IssueSeverity, ScalarType
from rulelang.domain.program import EntityField, FactOperand, Operand, ValueOperand
from rulelang.domain.traces import Issue


def infer_type(value: Any) -> ScalarType | None:
    """
    Infer the scalar type of a literal value.

    Booleans are checked before numbers because ``bool`` is an ``int``
    subclass in Python.
    """
    if isinstance(value, bool):
        return ScalarType.BOOLEAN
    if isinstance(value, (int, float)):
        return ScalarType.NUMBER
    if isinstance(value, str):
        return ScalarType.STRING
    return None


def is_iso_date(value: Any) -> bool:
    """True if value is a string parseable as an ISO 8601 date or datetime."""
    if not isinstance(value, str):
        return False
    try:
        date.fromisoformat(value)
        return True
    except ValueError:
        pass
    try:
        datetime.fromisoformat(value)
        return True
    except ValueError:
        return False


def _describe(operand: Operand) -> str:
    if isinstance(operand, FactOperand):
        return operand.path
    return repr(operand.value)


def check_operand(
    operand: Operand,
    catalog: EntityCatalog,
    expected_type: ScalarType | None = None,
) -> ScalarType | None:
    """
    Determine an operand's scalar type, optionally checking it against an expected type.

    Args:
        operand: Fact or value operand
        catalog: Entity catalog used to resolve fact paths
        expected_type: Type the operand must have (None = no check)

    Returns:
        The operand's scalar type (declared for facts, inferred for values)

    Raises:
        PathReferenceError: If a fact path does not resolve
        UnitMismatchError: If a fact operand expects units other than its field declares
        TypeMismatchError: If the operand's type disagrees with ``expected_type``,
            or a literal for a date field does not parse as a date
    """
    if isinstance(operand, FactOperand):
        field = catalog.resolve(operand.path)
        if operand.units and field.units and operand.units != field.units:
            raise UnitMismatchError(
                f'Unit mismatch on "{operand.path}": field is {field.units}, '
                f"operand expects {operand.units}",
                details={
                    "path": operand.path,
                    "expected_units": field.units,
                    "actual_units": operand.units,
                },
            )
        actual = field.type
    elif isinstance(operand, ValueOperand):
        if expected_type == ScalarType.DATE:
            if is_iso_date(operand.value):
                return ScalarType.DATE
            raise TypeMismatchError(
                f"Expected an ISO date literal, got {operand.value!r}",
                details={"expected_type": expected_type.value, "value": operand.value},
            )
        actual = infer_type(operand.value)
    else:
        raise TypeError(f"Unsupported operand: {operand!r}")

    if expected_type is not None and actual != expected_type:
        raise TypeMismatchError(
            f"{_describe(operand)} is {actual.value if actual else 'untyped'}, "
            f"expected {expected_type.value}",
            details={
                "operand": _describe(operand),
                "expected_type": expected_type.value,
                "actual_type": actual.value if actual else None,
            },
        )

    return actual


def operand_unit(operand: Operand, catalog: EntityCatalog) -> str | None:
    """
    Effective unit of an operand.

    The operand's own ``units`` wins; a fact operand without one inherits the
    unit declared on its source field.
    """
    if operand.units:
        return operand.units
    if isinstance(operand, FactOperand):
        return catalog.resolve(operand.path).units
    return None


def check_units(
    operand: Operand,
    field: EntityField,
    catalog: EntityCatalog,
    path: str | None = None,
) -> Issue | None:
    """
    Check an operand's unit against a field's declared unit.

    Args:
        operand: Operand used against the field
        field: Declared field the operand is compared with or written to
        catalog: Entity catalog (for fact operands without explicit units)
        path: Field path, for messages

    Returns:
        A soft UNIT_MISSING issue when the field declares a unit and the
        operand has none, otherwise None

    Raises:
        UnitMismatchError: If both declare units and they differ
    """
    if not field.units:
        return None

    label = path or field.name
    unit = operand_unit(operand, catalog)

    if unit is None:
        return Issue(
            kind=IssueKind.UNIT_MISSING,
            severity=IssueSeverity.SOFT,
            message=f'Units required for "{label}" (expected {field.units}), '
            f"{_describe(operand)} has none",
            path=path,
            details={"expected_units": field.units},
        )

    if unit != field.units:
        raise UnitMismatchError(
            f'Unit mismatch on "{label}": field is {field.units}, '
            f"{_describe(operand)} is {unit}",
            details={"path": path, "expected_units": field.units, "actual_units": unit},
        )

    return None
