"""
Unit tests for constraints, the example runner and coverage analysis.
"""

from rulelang.domain.enums import Severity
from rulelang.domain.program import Example
from rulelang.engine.constraints import check_constraints
from rulelang.engine.examples import (
    assess_coverage,
    expectation_matches,
    run_example,
    run_examples,
)
from rulelang.engine.facts import FactStore
from rulelang.engine.scheduler import ExecutionOptions
from tests.builders import DISCOUNT_RULE, compare, fact, make_program, make_rule, set_action, value

EXAMPLE_HIGH = {
    "id": "e1",
    "input": {"order": {"total": 120}},
    "expected": {"order": {"discountPercent": 10}},
}
EXAMPLE_LOW = {"id": "e2", "input": {"order": {"total": 80}}, "expected": {"order": {"total": 80}}}


class TestConstraints:
    """Tests for check_constraints."""

    def test_report_buckets_by_severity(self):
        program = make_program(
            constraints=[
                {
                    "id": "positive",
                    "description": "Total is positive",
                    "assert": compare(fact("order.total"), ">", value(0)),
                },
                {
                    "id": "has-status",
                    "description": "Status is set",
                    "assert": {"kind": "exists", "fact": fact("order.status")},
                },
                {
                    "id": "not-vip",
                    "description": "Order is not VIP",
                    "assert": compare(fact("order.vip"), "==", value(False)),
                    "severity": "warn",
                },
            ]
        )
        report = check_constraints(
            program.constraints, FactStore.from_payload({"order": {"total": 5, "vip": True}})
        )
        assert [c.constraint_id for c in report.passed] == ["positive"]
        assert [c.constraint_id for c in report.failed] == ["has-status", "not-vip"]
        assert report.has_failures is True
        assert report.has_errors is True
        assert report.error_count == 1
        assert report.warning_count == 1
        assert report.failed[1].severity == Severity.WARN

    def test_no_constraints(self):
        report = check_constraints([], FactStore.from_payload({}))
        assert report.has_failures is False
        assert report.passed == [] and report.failed == []


class TestExpectationMatching:
    """Tests for deep partial matching."""

    def test_partial_match_ignores_extra_keys(self):
        actual = {"order": {"total": 120, "discountPercent": 10}, "customer": {"name": "Ada"}}
        assert expectation_matches({"order": {"discountPercent": 10}}, actual)

    def test_missing_key_fails(self):
        assert not expectation_matches({"order": {"status": "new"}}, {"order": {}})

    def test_value_mismatch_fails(self):
        assert not expectation_matches({"order": {"total": 1}}, {"order": {"total": 2}})

    def test_strict_equality(self):
        assert not expectation_matches({"order": {"vip": 1}}, {"order": {"vip": True}})

    def test_lists_compare_whole(self):
        assert expectation_matches({"o": {"tags": ["a"]}}, {"o": {"tags": ["a"]}})
        assert not expectation_matches({"o": {"tags": ["a"]}}, {"o": {"tags": ["a", "b"]}})

    def test_mapping_against_scalar_fails(self):
        assert not expectation_matches({"order": {"total": 1}}, {"order": 5})


class TestExampleRunner:
    """Tests for run_example and run_examples."""

    def test_example_round_trip(self):
        program = make_program(rules=[DISCOUNT_RULE], examples=[EXAMPLE_HIGH])
        result = run_example(program, program.examples[0])
        assert result.example_id == "e1"
        assert result.passed is True
        assert result.actual_output["order"]["discountPercent"] == 10
        assert result.trace[0].matched is True

    def test_failing_expectation(self):
        program = make_program(rules=[DISCOUNT_RULE])
        example = Example(
            id="bad", input={"order": {"total": 120}}, expected={"order": {"discountPercent": 5}}
        )
        assert run_example(program, example).passed is False

    def test_error_constraint_fails_example(self):
        program = make_program(
            rules=[DISCOUNT_RULE],
            constraints=[
                {
                    "id": "cap",
                    "description": "Discount at most 5",
                    "assert": compare(fact("order.discountPercent"), "<=", value(5)),
                }
            ],
            examples=[EXAMPLE_HIGH],
        )
        result = run_examples(program)[0]
        assert result.passed is False
        assert result.constraints.has_errors is True

    def test_examples_always_enable_actions(self):
        program = make_program(rules=[DISCOUNT_RULE], examples=[EXAMPLE_HIGH])
        result = run_example(
            program, program.examples[0], ExecutionOptions(enable_actions=False)
        )
        assert result.passed is True

    def test_run_examples_in_declaration_order(self):
        program = make_program(rules=[DISCOUNT_RULE], examples=[EXAMPLE_LOW, EXAMPLE_HIGH])
        assert [r.example_id for r in run_examples(program)] == ["e2", "e1"]


class TestCoverage:
    """Tests for assess_coverage."""

    def test_no_examples(self, discount_program):
        assert assess_coverage(discount_program) == []

    def test_counts_examples_where_rule_fired(self):
        program = make_program(
            rules=[
                DISCOUNT_RULE,
                make_rule(
                    "vip-status",
                    compare(fact("order.vip"), "==", value(True)),
                    [set_action("order.status", value("vip"))],
                ),
            ],
            examples=[EXAMPLE_HIGH, EXAMPLE_LOW, {**EXAMPLE_LOW, "id": "e3"}],
        )
        coverage = {entry.rule_id: entry for entry in assess_coverage(program)}
        assert coverage["discount-high-value"].matched_in_examples == 1
        assert coverage["discount-high-value"].total_examples == 3
        assert coverage["discount-high-value"].coverage_percent == 33
        assert coverage["vip-status"].matched_in_examples == 0
        assert coverage["vip-status"].coverage_percent == 0

    def test_rounds_half_up(self):
        examples = [{**EXAMPLE_LOW, "id": f"e{i}"} for i in range(7)]
        examples.append(EXAMPLE_HIGH)
        program = make_program(rules=[DISCOUNT_RULE], examples=examples)
        assert assess_coverage(program)[0].coverage_percent == 13

    def test_skipped_rule_does_not_count(self):
        program = make_program(
            rules=[
                make_rule(
                    "first",
                    compare(fact("order.total"), ">", value(0)),
                    [set_action("order.status", value("first"))],
                    priority=5,
                    stopProcessing=True,
                ),
                DISCOUNT_RULE,
            ],
            examples=[EXAMPLE_HIGH],
        )
        coverage = {entry.rule_id: entry for entry in assess_coverage(program)}
        assert coverage["first"].matched_in_examples == 1
        assert coverage["discount-high-value"].matched_in_examples == 0
