"""
Domain enums for the rule language AST and its diagnostics.

String values are the canonical spellings used in program documents and in
serialized execution results.
"""

from enum import Enum


class ScalarType(str, Enum):
    """Scalar type of a declared entity field."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


class Operator(str, Enum):
    """
    Comparison operators for ``compare`` conditions.
    Short aliases ("==", "gt", ...) are mapped by ``OPERATOR_ALIASES``.
    """

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER = "greater"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS = "less"
    LESS_OR_EQUAL = "less_or_equal"
    CONTAINS = "contains"
    MEMBER_OF = "member_of"


OPERATOR_ALIASES = {
    "==": Operator.EQUALS,
    "eq": Operator.EQUALS,
    "!=": Operator.NOT_EQUALS,
    "neq": Operator.NOT_EQUALS,
    ">": Operator.GREATER,
    "gt": Operator.GREATER,
    ">=": Operator.GREATER_OR_EQUAL,
    "gte": Operator.GREATER_OR_EQUAL,
    "<": Operator.LESS,
    "lt": Operator.LESS,
    "<=": Operator.LESS_OR_EQUAL,
    "lte": Operator.LESS_OR_EQUAL,
    "in": Operator.MEMBER_OF,
}

# Operators that only make sense between two numbers
ORDERING_OPERATORS = frozenset(
    {
        Operator.GREATER,
        Operator.GREATER_OR_EQUAL,
        Operator.LESS,
        Operator.LESS_OR_EQUAL,
    }
)


class EvaluationMode(str, Enum):
    """Rule evaluation mode - stop after the first match or run all matches."""

    FIRST_MATCH = "firstMatch"
    ALL_MATCHES = "allMatches"


MODE_ALIASES = {
    "first": EvaluationMode.FIRST_MATCH,
    "all": EvaluationMode.ALL_MATCHES,
}


class Severity(str, Enum):
    """Constraint severity. ``warning`` is accepted as an alias of ``warn``."""

    ERROR = "error"
    WARN = "warn"


class ProgramDomain(str, Enum):
    """Problem domain a program was written for."""

    BUSINESS_RULES = "business-rules"
    WORKFLOW = "workflow"
    DATA_TRANSFORM = "data-transform"
    GAME_RULES = "game-rules"


class IssueSeverity(str, Enum):
    """
    Severity of a validation or runtime issue.
    HARD issues reject a program; SOFT issues are reported only.
    """

    HARD = "hard"
    SOFT = "soft"


class IssueKind(str, Enum):
    """Kinds of issues collected by the validator and the engine."""

    REFERENCE = "REFERENCE"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    UNIT_MISMATCH = "UNIT_MISMATCH"
    UNIT_MISSING = "UNIT_MISSING"
    STATIC_CONFLICT = "STATIC_CONFLICT"
    DYNAMIC_CONFLICT = "DYNAMIC_CONFLICT"
    DUPLICATE_DEFINITION = "DUPLICATE_DEFINITION"
    VAGUE_TERM = "VAGUE_TERM"
    UNCOVERED_RULE = "UNCOVERED_RULE"
    NO_EXAMPLES = "NO_EXAMPLES"
    SOURCE_MISSING = "SOURCE_MISSING"
