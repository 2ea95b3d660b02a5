"""Post-state constraint checking."""

from rulelang.domain.enums import Severity
from rulelang.domain.program import Constraint
from rulelang.domain.traces import ConstraintReport, ConstraintResult
from rulelang.engine.evaluator import evaluate
from rulelang.engine.facts import FactStore


def check_constraints(constraints: list[Constraint], facts: FactStore) -> ConstraintReport:
    """
    Evaluate every constraint against the final state.

    Failures are bucketed by severity: ``error`` failures make the run
    unsuccessful, ``warn`` failures are reported only.
    """
    passed: list[ConstraintResult] = []
    failed: list[ConstraintResult] = []
    error_count = 0
    warning_count = 0

    for constraint in constraints:
        trace = evaluate(constraint.assert_, facts)
        entry = ConstraintResult(
            constraint_id=constraint.id,
            description=constraint.description,
            severity=constraint.severity,
            passed=trace.result,
            trace=trace,
        )
        if trace.result:
            passed.append(entry)
            continue

        failed.append(entry)
        if constraint.severity == Severity.ERROR:
            error_count += 1
        else:
            warning_count += 1

    return ConstraintReport(
        passed=passed,
        failed=failed,
        has_failures=bool(failed),
        has_errors=error_count > 0,
        error_count=error_count,
        warning_count=warning_count,
    )
