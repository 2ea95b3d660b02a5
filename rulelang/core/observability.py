"""
Observability module for the rule engine.

Provides:
- Structured logging with JSON format and an execution correlation id
- Prometheus metrics for executions, rule firings, conflicts and validation

Usage:
    from rulelang.core.observability import (
        configure_structured_logging,
        execution_scope,
        metrics,
    )

Nothing recorded here is ever read back by the engine; execution results stay
a pure function of (program, input, options).
"""

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from rulelang.core.config import settings

# ============================================================================
# Context Variables
# ============================================================================

# Correlation ID - links all log lines emitted during one run()
_execution_id_ctx: ContextVar[str] = ContextVar("execution_id", default="")

# Program description (or domain) of the current run
_program_ctx: ContextVar[str] = ContextVar("program", default="")


def generate_execution_id() -> str:
    """Generate a unique execution id for log correlation."""
    return str(uuid.uuid4())


def get_execution_id() -> str:
    """Get the current execution id from context."""
    return _execution_id_ctx.get()


def get_program_label() -> str:
    """Get the current program label from context."""
    return _program_ctx.get()


@contextmanager
def execution_scope(program_label: str) -> Iterator[str]:
    """
    Bind a fresh execution id (and program label) for the duration of a run.

    Nested scopes (e.g. examples run from inside ``run``) get their own id
    and restore the outer one on exit.
    """
    execution_id = generate_execution_id()
    id_token = _execution_id_ctx.set(execution_id)
    program_token = _program_ctx.set(program_label)
    try:
        yield execution_id
    finally:
        _program_ctx.reset(program_token)
        _execution_id_ctx.reset(id_token)


# ============================================================================
# Structured Logging Configuration
# ============================================================================

_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "message",
        "asctime",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs as JSON with standard fields:
    - timestamp: ISO 8601 format
    - level: Log level
    - logger: Logger name
    - message: Log message
    - execution_id: Correlation ID of the current run (if any)
    - program: Program label of the current run (if any)
    - extra: Any additional context from logging.extra
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        execution_id = get_execution_id()
        if execution_id:
            log_entry["execution_id"] = execution_id

        program = get_program_label()
        if program:
            log_entry["program"] = program

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        log_entry["file"] = record.pathname
        log_entry["line"] = record.lineno
        log_entry["function"] = record.funcName

        # Fields from logger.info("msg", extra={"key": "value"})
        extra_keys = {
            k: v for k, v in record.__dict__.items() if k not in _RESERVED_RECORD_KEYS
        }
        if extra_keys:
            log_entry["extra"] = extra_keys

        return json.dumps(log_entry, default=str)


def configure_structured_logging(level: str | None = None, structured: bool | None = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to
            ``settings.log_level``
        structured: JSON output when True, plain text otherwise; defaults to
            ``settings.structured_logs``
    """
    level = level or settings.log_level
    if structured is None:
        structured = settings.structured_logs

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler()
    if structured:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )

    root_logger.addHandler(handler)


# ============================================================================
# Prometheus Metrics
# ============================================================================

# Custom registry to avoid conflicts with a host application's metrics
_registry = CollectorRegistry()


class Metrics:
    """
    Centralized metrics collection for the engine.

    Metrics groups:
    - Execution: run count by outcome, duration, firings per run
    - Conflicts: dynamic write conflicts detected at runtime
    - Validation: issues found by the semantic validator, by kind
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry

        # -------------------------------------------------------------------
        # Execution Metrics
        # -------------------------------------------------------------------

        self.executions_total = Counter(
            "rulelang_executions_total",
            "Total program executions",
            ["status"],
            registry=self.registry,
        )

        self.execution_duration_seconds = Histogram(
            "rulelang_execution_duration_seconds",
            "Program execution duration in seconds",
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0),
            registry=self.registry,
        )

        self.rule_firings = Histogram(
            "rulelang_rule_firings",
            "Rule firings per execution",
            buckets=(0, 1, 5, 10, 50, 100, 500, 1000),
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # Conflict Metrics
        # -------------------------------------------------------------------

        self.dynamic_conflicts_total = Counter(
            "rulelang_dynamic_conflicts_total",
            "Writes to a path already written in the same execution",
            registry=self.registry,
        )

        # -------------------------------------------------------------------
        # Validation Metrics
        # -------------------------------------------------------------------

        self.validation_issues_total = Counter(
            "rulelang_validation_issues_total",
            "Issues reported by program validation",
            ["kind", "severity"],
            registry=self.registry,
        )


# Global metrics instance
metrics = Metrics(_registry)


def render_metrics() -> bytes:
    """Render all engine metrics in Prometheus text exposition format."""
    return generate_latest(_registry)
