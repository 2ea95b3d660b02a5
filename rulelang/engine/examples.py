"""
Example runner and rule coverage analysis.

Examples are the program's own acceptance tests: each one runs the full
engine on a literal input and compares the final state against a sparse
``expected`` mapping.
"""

import logging
import math
from collections.abc import Mapping
from typing import Any

from rulelang.domain.program import Example, Program
from rulelang.domain.traces import ExampleResult, RuleCoverage
from rulelang.engine.evaluator import strict_equals
from rulelang.engine.scheduler import ExecutionOptions, run

logger = logging.getLogger(__name__)


def expectation_matches(expected: Any, actual: Any) -> bool:
    """
    Deep partial match: every key in ``expected`` must exist in ``actual``
    with a matching value. Extra keys in ``actual`` are ignored.
    """
    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return False
        return all(
            key in actual and expectation_matches(value, actual[key])
            for key, value in expected.items()
        )
    return strict_equals(expected, actual)


def _example_options(options: ExecutionOptions | None) -> ExecutionOptions:
    base = options or ExecutionOptions()
    return base.model_copy(update={"enable_actions": True, "evaluate_examples": False})


def run_example(
    program: Program, example: Example, options: ExecutionOptions | None = None
) -> ExampleResult:
    """
    Run one example with actions enabled.

    The example passes when its expectation matches the final state and no
    error-severity constraint failed.
    """
    result = run(program, example.input, _example_options(options))
    passed = (
        expectation_matches(example.expected, result.result_state)
        and not result.constraint_report.has_errors
    )
    if not passed:
        logger.info("Example %s failed", example.id)

    return ExampleResult(
        example_id=example.id,
        passed=passed,
        expected=example.expected,
        actual_output=result.result_state,
        constraints=result.constraint_report,
        trace=result.trace,
    )


def run_examples(
    program: Program, options: ExecutionOptions | None = None
) -> list[ExampleResult]:
    """Run every example in declaration order."""
    results = [run_example(program, example, options) for example in program.examples]
    logger.debug(
        "Ran %d examples: %d passed",
        len(results),
        sum(1 for r in results if r.passed),
    )
    return results


def _fired_rule_ids(result: ExampleResult) -> set[str]:
    return {trace.rule_id for trace in result.trace if trace.fired}


def _percent(part: int, whole: int) -> int:
    # Half-up: 1 of 8 examples reports 13, not round()'s 12
    return math.floor(part * 100 / whole + 0.5)


def assess_coverage(
    program: Program, options: ExecutionOptions | None = None
) -> list[RuleCoverage]:
    """
    Count, per rule, the examples in which it fired.

    A rule counts once per example no matter how many passes it fired in.

    Returns:
        One RuleCoverage per rule in declaration order, or an empty list
        when the program has no examples
    """
    total = len(program.examples)
    if total == 0:
        return []

    fired_per_example = [_fired_rule_ids(r) for r in run_examples(program, options)]

    coverage = []
    for rule in program.rules:
        matched = sum(1 for fired in fired_per_example if rule.id in fired)
        coverage.append(
            RuleCoverage(
                rule_id=rule.id,
                matched_in_examples=matched,
                total_examples=total,
                coverage_percent=_percent(matched, total),
            )
        )
    return coverage
