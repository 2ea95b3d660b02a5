"""
Trace, diff and result models produced by validation and execution.

Every object here is built fresh per call and is frozen once built. The
engine never reads a trace back to make a decision; traces exist for
explanation and for example-driven testing.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rulelang.domain.enums import IssueKind, IssueSeverity, Operator, Severity
from rulelang.domain.program import Action


class TraceModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Issue(TraceModel):
    """A single validation or runtime diagnostic."""

    kind: IssueKind
    severity: IssueSeverity
    message: str
    path: str | None = None
    rule_ids: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_hard(self) -> bool:
        return self.severity == IssueSeverity.HARD


class ConditionTrace(TraceModel):
    """
    Evaluation record for one condition node.

    ``details`` holds the resolved values (``lhs``/``rhs``, ``value``,
    ``options``, ``pattern``) and, when a fact path did not resolve, the list
    of those paths under ``missing``.
    """

    kind: str
    result: bool
    operator: Operator | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    children: list[ConditionTrace] = Field(default_factory=list)


class StateDiff(TraceModel):
    path: str
    before: Any = None
    after: Any = None


class ActionTrace(TraceModel):
    action_id: str
    rule_id: str
    kind: str
    action: Action
    applied: bool
    path: str | None = None
    before_value: Any = None
    after_value: Any = None
    conflict: bool = False


class ActionLog(TraceModel):
    """Externally observable record of one applied action."""

    action_id: str
    rule_id: str
    kind: str
    path: str | None = None
    event: str | None = None
    before: Any = None
    after: Any = None
    payload: dict[str, Any] | None = None


class RuleTrace(TraceModel):
    rule_id: str
    rule_name: str
    priority: int
    pass_number: int
    matched: bool
    skipped: bool = False
    why: ConditionTrace
    actions_applied: list[ActionTrace] = Field(default_factory=list)
    state_diff: list[StateDiff] = Field(default_factory=list)
    stop_processing: bool = False
    warnings: list[str] = Field(default_factory=list)

    @property
    def fired(self) -> bool:
        """True when the rule matched and its actions were run."""
        return self.matched and not self.skipped


class ConstraintResult(TraceModel):
    constraint_id: str
    description: str
    severity: Severity
    passed: bool
    trace: ConditionTrace


class ConstraintReport(TraceModel):
    passed: list[ConstraintResult] = Field(default_factory=list)
    failed: list[ConstraintResult] = Field(default_factory=list)
    has_failures: bool = False
    has_errors: bool = False
    error_count: int = 0
    warning_count: int = 0


class ExampleResult(TraceModel):
    example_id: str
    passed: bool
    expected: dict[str, Any]
    actual_output: dict[str, Any]
    constraints: ConstraintReport
    trace: list[RuleTrace] = Field(default_factory=list)


class ExecutionResult(TraceModel):
    result_state: dict[str, Any]
    actions: list[ActionLog] = Field(default_factory=list)
    trace: list[RuleTrace] = Field(default_factory=list)
    constraint_report: ConstraintReport
    test_report: list[ExampleResult] | None = None
    success: bool
    conflict_warnings: list[str] = Field(default_factory=list)
    issues: list[Issue] = Field(default_factory=list)
    rule_firings: int = 0
    hit_rule_limit: bool = False

    def to_canonical_json(self) -> str:
        """Serialize with sorted keys so equal results compare byte-for-byte."""
        from rulelang.compiler.canonicalizer import to_canonical_json_string

        return to_canonical_json_string(self.model_dump(mode="json", by_alias=True))


class RuleCoverage(TraceModel):
    rule_id: str
    matched_in_examples: int
    total_examples: int
    coverage_percent: int


class ValidationResult(TraceModel):
    valid: bool
    errors: list[Issue] = Field(default_factory=list)
    warnings: list[Issue] = Field(default_factory=list)
    coverage: list[RuleCoverage] = Field(default_factory=list)


ConditionTrace.model_rebuild()
