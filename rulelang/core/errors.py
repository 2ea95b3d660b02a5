"""
Domain-specific exceptions for the rule language engine.

Leaf checks (path resolution, type and unit checking) raise these exceptions.
The semantic validator and the action interpreter catch them and turn them
into ``Issue`` records, so nothing here escapes from an execution run.
"""

from typing import Any

from rulelang.domain.enums import IssueKind, IssueSeverity
from rulelang.domain.traces import Issue


class RuleLangError(Exception):
    """Base exception for all rule language domain errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(RuleLangError):
    """
    Raised when a program fails a semantic check.

    Examples:
    - Duplicate entity, rule or constraint id
    - Same-priority rules writing different literals to one path
    """

    pass


class PathReferenceError(ValidationError):
    """
    Raised when a dotted path does not resolve to a declared field.

    Examples:
    - Path without exactly two segments ("order", "order.a.b")
    - Unknown entity ("ordr.total")
    - Unknown field on a known entity ("order.totl")
    """

    pass


class TypeMismatchError(ValidationError):
    """
    Raised when operand and field scalar types disagree.

    Examples:
    - Comparing a number field against a string literal
    - Ordering operator applied to a boolean field
    - Date field compared with a literal that is not an ISO date
    """

    pass


class UnitMismatchError(ValidationError):
    """
    Raised when an operand and a field both declare units and they differ.

    Example:
    - ``order.total`` declared in USD compared against a literal in EUR
    """

    pass


class ConflictError(ValidationError):
    """
    Raised for write conflicts between rules.

    Examples:
    - Two priority-0 rules setting ``order.status`` to different literals
    """

    pass


class CompilationError(RuleLangError):
    """
    Raised when a program is rejected before execution.

    ``details["errors"]`` carries every hard issue found by the validator.
    """

    pass


# Issue kind mapping
ERROR_ISSUE_KIND = {
    PathReferenceError: IssueKind.REFERENCE,
    TypeMismatchError: IssueKind.TYPE_MISMATCH,
    UnitMismatchError: IssueKind.UNIT_MISMATCH,
    ConflictError: IssueKind.STATIC_CONFLICT,
    ValidationError: IssueKind.DUPLICATE_DEFINITION,
}


def get_issue_kind(error: RuleLangError) -> IssueKind:
    """
    Get the issue kind reported for a given exception.

    Args:
        error: The exception instance

    Returns:
        Issue kind (plain ValidationError maps to DUPLICATE_DEFINITION)
    """
    return ERROR_ISSUE_KIND.get(type(error), IssueKind.DUPLICATE_DEFINITION)


def issue_from_error(error: RuleLangError, rule_ids: list[str] | None = None) -> Issue:
    """
    Convert a raised domain error into a hard Issue record.

    Args:
        error: The caught exception
        rule_ids: Rules the error was found in (for reporting)

    Returns:
        Issue carrying the error's message and details
    """
    return Issue(
        kind=get_issue_kind(error),
        severity=IssueSeverity.HARD,
        message=error.message,
        path=error.details.get("path"),
        rule_ids=list(rule_ids or []),
        details=error.details,
    )
