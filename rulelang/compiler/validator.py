"""
Semantic validation for rule language programs.

Runs after the structural decode (``load_program``) and before execution:
- Names and ids are unique
- Every fact path resolves to a declared entity field
- Operand types agree (and ordering operators see numbers)
- Units agree with the declared field units
- Same-priority rules do not set one path to different literals
- Rule and constraint text avoids vague terms
- Examples exercise every rule

Leaf checks raise; this module collects what they raise into Issue records
so one pass reports every problem. Hard issues make the program invalid,
soft issues are warnings.
"""

import logging
import re
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager

from rulelang.compiler.conflicts import find_static_conflicts
from rulelang.compiler.resolver import EntityCatalog
from rulelang.compiler.type_checker import check_operand, check_units
from rulelang.core.config import settings
from rulelang.core.errors import (
    CompilationError,
    RuleLangError,
    TypeMismatchError,
    issue_from_error,
)
from rulelang.core.observability import metrics
from rulelang.domain.enums import (
    ORDERING_OPERATORS,
    IssueKind,
    IssueSeverity,
    Operator,
    ScalarType,
)
from rulelang.domain.program import (
    Action,
    AllCondition,
    AnyCondition,
    AppendAction,
    CompareCondition,
    Condition,
    EmitAction,
    ExistsCondition,
    FactOperand,
    IncrementAction,
    MatchesCondition,
    MemberOfCondition,
    NotCondition,
    Operand,
    Program,
    RouteAction,
    SetAction,
)
from rulelang.domain.traces import Issue, RuleCoverage, ValidationResult

logger = logging.getLogger(__name__)

VAGUE_TERMS = ("recent", "large", "soon", "some", "few")

_VAGUE_PATTERNS = {term: re.compile(rf"\b{term}", re.IGNORECASE) for term in VAGUE_TERMS}


class _IssueCollector:
    """Accumulates issues for one validation run."""

    def __init__(self) -> None:
        self.issues: list[Issue] = []

    def add(self, issue: Issue | None, rule_ids: list[str] | None = None) -> None:
        if issue is None:
            return
        if rule_ids and not issue.rule_ids:
            issue = issue.model_copy(update={"rule_ids": list(rule_ids)})
        self.issues.append(issue)

    @contextmanager
    def capture(self, rule_ids: list[str] | None = None) -> Iterator[None]:
        """Turn a domain error raised inside the block into a hard issue."""
        try:
            yield
        except RuleLangError as error:
            self.issues.append(issue_from_error(error, rule_ids))


# =============================================================================
# Duplicates
# =============================================================================


def _duplicates(names: list[str]) -> list[str]:
    counts = Counter(names)
    return sorted(name for name, count in counts.items() if count > 1)


def _check_duplicates(program: Program, collector: _IssueCollector) -> None:
    groups = [
        ("entity", [e.name for e in program.entities]),
        ("rule", [r.id for r in program.rules]),
        ("constraint", [c.id for c in program.constraints]),
        ("example", [e.id for e in program.examples]),
    ]
    for entity in program.entities:
        groups.append((f'field on entity "{entity.name}"', [f.name for f in entity.fields]))

    for label, names in groups:
        for name in _duplicates(names):
            collector.add(
                Issue(
                    kind=IssueKind.DUPLICATE_DEFINITION,
                    severity=IssueSeverity.HARD,
                    message=f'Duplicate {label} "{name}"',
                    details={"name": name},
                )
            )


# =============================================================================
# Conditions
# =============================================================================


def _check_agreement(a: Operand, b: Operand, catalog: EntityCatalog) -> ScalarType | None:
    """
    Check two operands have the same type; a fact side sets the expectation.

    Returns the agreed type.
    """
    if isinstance(a, FactOperand):
        expected = check_operand(a, catalog)
        check_operand(b, catalog, expected_type=expected)
        return expected
    if isinstance(b, FactOperand):
        expected = check_operand(b, catalog)
        check_operand(a, catalog, expected_type=expected)
        return expected
    return check_operand(b, catalog, expected_type=check_operand(a, catalog))


def _check_operand_units(
    operand: Operand, against: Operand, catalog: EntityCatalog
) -> Issue | None:
    """Units of ``operand`` against the field behind ``against`` (if a fact)."""
    if not isinstance(against, FactOperand):
        return None
    field = catalog.resolve(against.path)
    return check_units(operand, field, catalog, path=against.path)


def _check_compare(
    condition: CompareCondition,
    catalog: EntityCatalog,
    collector: _IssueCollector,
    rule_ids: list[str],
) -> None:
    lhs, rhs, operator = condition.lhs, condition.rhs, condition.operator

    with collector.capture(rule_ids):
        lhs_type = check_operand(lhs, catalog)
        rhs_type = check_operand(rhs, catalog)

        if operator in ORDERING_OPERATORS:
            if lhs_type != ScalarType.NUMBER or rhs_type != ScalarType.NUMBER:
                raise TypeMismatchError(
                    f"Operator {operator.value} requires numbers, got "
                    f"{lhs_type.value if lhs_type else 'untyped'} and "
                    f"{rhs_type.value if rhs_type else 'untyped'}",
                    details={"operator": operator.value},
                )
        elif operator == Operator.CONTAINS:
            # A fact may hold a list built by append; its elements share the field type
            if not isinstance(lhs, FactOperand) and lhs_type != ScalarType.STRING:
                raise TypeMismatchError(
                    "Operator contains requires a string or a list-valued fact on the left",
                    details={"operator": operator.value},
                )
            if lhs_type != ScalarType.STRING:
                check_operand(rhs, catalog, expected_type=lhs_type)
        elif operator == Operator.MEMBER_OF:
            if not isinstance(rhs, FactOperand):
                raise TypeMismatchError(
                    "Operator member_of requires a list-valued fact on the right",
                    details={"operator": operator.value},
                )
            check_operand(lhs, catalog, expected_type=rhs_type)
        else:
            _check_agreement(lhs, rhs, catalog)

        if isinstance(lhs, FactOperand):
            collector.add(_check_operand_units(rhs, lhs, catalog), rule_ids)
        else:
            collector.add(_check_operand_units(lhs, rhs, catalog), rule_ids)


def _check_condition(
    condition: Condition,
    catalog: EntityCatalog,
    collector: _IssueCollector,
    rule_ids: list[str],
) -> None:
    """Recursively check one condition tree."""
    if isinstance(condition, CompareCondition):
        _check_compare(condition, catalog, collector, rule_ids)
    elif isinstance(condition, ExistsCondition):
        with collector.capture(rule_ids):
            catalog.resolve(condition.fact.path)
    elif isinstance(condition, MemberOfCondition):
        for option in condition.options:
            with collector.capture(rule_ids):
                _check_agreement(condition.value, option, catalog)
                if isinstance(condition.value, FactOperand):
                    collector.add(_check_operand_units(option, condition.value, catalog), rule_ids)
    elif isinstance(condition, MatchesCondition):
        with collector.capture(rule_ids):
            check_operand(condition.value, catalog, expected_type=ScalarType.STRING)
    elif isinstance(condition, NotCondition):
        _check_condition(condition.condition, catalog, collector, rule_ids)
    elif isinstance(condition, (AllCondition, AnyCondition)):
        for child in condition.conditions:
            _check_condition(child, catalog, collector, rule_ids)


# =============================================================================
# Actions
# =============================================================================


def _check_action(
    action: Action, catalog: EntityCatalog, collector: _IssueCollector, rule_id: str
) -> None:
    if isinstance(action, (EmitAction, RouteAction)):
        return

    with collector.capture([rule_id]):
        target = catalog.resolve(action.target)

        if isinstance(action, IncrementAction):
            if target.type != ScalarType.NUMBER:
                raise TypeMismatchError(
                    f"Cannot increment {action.target}: field is {target.type.value}, "
                    "expected number",
                    details={
                        "path": action.target,
                        "expected_type": ScalarType.NUMBER.value,
                        "actual_type": target.type.value,
                    },
                )
            return

        if isinstance(action, (SetAction, AppendAction)):
            try:
                check_operand(action.value, catalog, expected_type=target.type)
            except TypeMismatchError as error:
                # Report against the written path, not the value operand
                raise TypeMismatchError(
                    f"Cannot {action.kind} {action.target}: {error.message}",
                    details={**error.details, "path": action.target},
                ) from error
            collector.add(
                check_units(action.value, target, catalog, path=action.target), [rule_id]
            )


# =============================================================================
# Lint and coverage
# =============================================================================


def find_vague_terms(text: str | None) -> list[str]:
    """Vague terms (by word start, case-insensitive) appearing in ``text``."""
    if not text:
        return []
    return [term for term, pattern in _VAGUE_PATTERNS.items() if pattern.search(text)]


def _lint(program: Program, collector: _IssueCollector) -> None:
    texts: list[tuple[str, str | None, list[str]]] = []
    for rule in program.rules:
        texts.append((f"Rule {rule.id}", rule.name, [rule.id]))
        texts.append((f"Rule {rule.id}", rule.description, [rule.id]))
    for constraint in program.constraints:
        texts.append((f"Constraint {constraint.id}", constraint.description, []))

    for owner, text, rule_ids in texts:
        for term in find_vague_terms(text):
            collector.add(
                Issue(
                    kind=IssueKind.VAGUE_TERM,
                    severity=IssueSeverity.SOFT,
                    message=f'{owner}: Avoid vague term: "{term}".',
                    rule_ids=rule_ids,
                    details={"term": term},
                )
            )


def _check_coverage(program: Program, collector: _IssueCollector) -> list[RuleCoverage]:
    from rulelang.engine.examples import assess_coverage

    if not program.examples:
        collector.add(
            Issue(
                kind=IssueKind.NO_EXAMPLES,
                severity=IssueSeverity.SOFT,
                message="No examples provided; cannot assess rule coverage.",
            )
        )
        return []

    coverage = assess_coverage(program)
    for entry in coverage:
        if entry.matched_in_examples == 0:
            collector.add(
                Issue(
                    kind=IssueKind.UNCOVERED_RULE,
                    severity=IssueSeverity.SOFT,
                    message=f"Rule {entry.rule_id} is never exercised by examples "
                    f"({entry.matched_in_examples}/{entry.total_examples}).",
                    rule_ids=[entry.rule_id],
                )
            )
    return coverage


# =============================================================================
# Entry points
# =============================================================================


def validate_program(program: Program) -> ValidationResult:
    """
    Run every semantic check over a decoded program.

    Coverage is assessed only when no hard issue was found, since examples
    cannot meaningfully run against a program with unresolved paths.

    Args:
        program: Structurally valid program (from ``load_program``)

    Returns:
        ValidationResult; ``valid`` is False iff any hard issue was found

    Example:
        >>> result = validate_program(program)
        >>> result.valid, [issue.kind for issue in result.warnings]
        (True, [<IssueKind.NO_EXAMPLES: 'NO_EXAMPLES'>])
    """
    catalog = EntityCatalog.from_program(program)
    collector = _IssueCollector()

    _check_duplicates(program, collector)

    for rule in program.rules:
        _check_condition(rule.when, catalog, collector, [rule.id])
        for action in [*rule.then, *rule.else_]:
            _check_action(action, catalog, collector, rule.id)

    for constraint in program.constraints:
        _check_condition(constraint.assert_, catalog, collector, [])

    for issue in find_static_conflicts(program):
        collector.add(issue)

    _lint(program, collector)

    coverage: list[RuleCoverage] = []
    if not any(issue.is_hard for issue in collector.issues):
        coverage = _check_coverage(program, collector)

    errors = [issue for issue in collector.issues if issue.is_hard]
    warnings = [issue for issue in collector.issues if not issue.is_hard]

    if errors:
        logger.info(
            "Program validation failed: %d error(s), %d warning(s)", len(errors), len(warnings)
        )
    else:
        logger.debug("Program validation passed with %d warning(s)", len(warnings))

    if settings.metrics_enabled:
        for issue in collector.issues:
            metrics.validation_issues_total.labels(
                kind=issue.kind.value, severity=issue.severity.value
            ).inc()

    return ValidationResult(
        valid=not errors, errors=errors, warnings=warnings, coverage=coverage
    )


def ensure_valid(program: Program) -> ValidationResult:
    """
    Validate a program and reject it if any hard issue was found.

    Returns:
        The ValidationResult (warnings only) for a valid program

    Raises:
        CompilationError: With every hard issue under ``details["errors"]``
    """
    result = validate_program(program)
    if not result.valid:
        raise CompilationError(
            f"Program has {len(result.errors)} validation error(s)",
            details={
                "errors": [issue.model_dump(mode="json", by_alias=True) for issue in result.errors]
            },
        )
    return result
