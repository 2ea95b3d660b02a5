"""
Unit tests for observability features.

Tests cover:
- Execution id context and scoping
- Structured logging with JSON format
- Prometheus metrics recorded by run() and validate_program()
"""

import json
import logging
import re

from prometheus_client import generate_latest

from rulelang.compiler.validator import validate_program
from rulelang.core.observability import (
    StructuredFormatter,
    configure_structured_logging,
    execution_scope,
    get_execution_id,
    get_program_label,
    metrics,
    render_metrics,
)
from rulelang.engine.scheduler import ExecutionOptions, run
from tests.builders import compare, fact, make_program, make_rule, value

UUID_PATTERN = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$")


def _sample(name: str, labels: dict | None = None) -> float:
    value = metrics.registry.get_sample_value(name, labels or {})
    return value or 0.0


class TestExecutionScope:
    """Tests for execution id context management."""

    def test_scope_binds_and_restores(self):
        """Test that the id is bound inside the scope and cleared after."""
        assert get_execution_id() == ""
        with execution_scope("orders") as execution_id:
            assert UUID_PATTERN.match(execution_id)
            assert get_execution_id() == execution_id
            assert get_program_label() == "orders"
        assert get_execution_id() == ""
        assert get_program_label() == ""

    def test_nested_scopes(self):
        with execution_scope("outer") as outer:
            with execution_scope("inner") as inner:
                assert inner != outer
                assert get_program_label() == "inner"
            assert get_execution_id() == outer


class TestStructuredFormatter:
    """Tests for JSON log output."""

    def _record(self, message: str, **extra) -> logging.LogRecord:
        record = logging.LogRecord(
            name="rulelang.test",
            level=logging.INFO,
            pathname=__file__,
            lineno=10,
            msg=message,
            args=(),
            exc_info=None,
        )
        for key, val in extra.items():
            setattr(record, key, val)
        return record

    def test_basic_fields(self):
        """Test that standard fields are present and valid JSON."""
        entry = json.loads(StructuredFormatter().format(self._record("hello")))
        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "rulelang.test"
        assert "timestamp" in entry
        assert "execution_id" not in entry

    def test_includes_execution_context(self):
        with execution_scope("orders") as execution_id:
            entry = json.loads(StructuredFormatter().format(self._record("inside")))
        assert entry["execution_id"] == execution_id
        assert entry["program"] == "orders"

    def test_includes_extra_fields(self):
        entry = json.loads(StructuredFormatter().format(self._record("x", rule_firings=3)))
        assert entry["extra"] == {"rule_firings": 3}

    def test_configure_structured_logging(self):
        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        try:
            configure_structured_logging("debug", structured=True)
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, StructuredFormatter)

            configure_structured_logging("WARNING", structured=False)
            assert not isinstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestMetrics:
    """Tests for metrics recorded by the engine."""

    def test_successful_run_counted(self, discount_program):
        before = _sample("rulelang_executions_total", {"status": "success"})
        run(discount_program, {"order": {"total": 120}})
        assert _sample("rulelang_executions_total", {"status": "success"}) == before + 1

    def test_rule_limit_counted(self):
        program = make_program(
            rules=[
                make_rule(
                    "forever",
                    compare(fact("order.total"), ">", value(0)),
                    [{"kind": "increment", "target": "order.count", "delta": 1}],
                )
            ]
        )
        before = _sample("rulelang_executions_total", {"status": "rule_limit"})
        run(
            program,
            {"order": {"total": 1}},
            ExecutionOptions(loop_until_settled=True, max_rule_firings=3),
        )
        assert _sample("rulelang_executions_total", {"status": "rule_limit"}) == before + 1

    def test_validation_issues_counted(self, discount_program):
        labels = {"kind": "NO_EXAMPLES", "severity": "soft"}
        before = _sample("rulelang_validation_issues_total", labels)
        validate_program(discount_program)
        assert _sample("rulelang_validation_issues_total", labels) == before + 1

    def test_metrics_disabled(self, discount_program, metrics_disabled):
        before = _sample("rulelang_executions_total", {"status": "success"})
        run(discount_program, {"order": {"total": 120}})
        assert _sample("rulelang_executions_total", {"status": "success"}) == before

    def test_render_metrics(self, discount_program):
        run(discount_program, {"order": {"total": 120}})
        output = render_metrics().decode()
        assert "rulelang_executions_total" in output
        assert render_metrics() == generate_latest(metrics.registry)
