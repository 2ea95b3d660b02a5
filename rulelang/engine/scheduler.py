"""
Rule scheduler: the ``run`` entry point.

Drives one or more passes over the rules in a fixed total order
(priority DESC, rule id ASC), applies then/else actions, enforces the
firing cap, and assembles the ExecutionResult.

Termination is guaranteed by three designed stopping conditions only:
a settled pass (no mutation), an early stop (first-match mode or
``stopProcessing``), or the firing cap.
"""

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from rulelang.compiler.conflicts import WriteTracker
from rulelang.compiler.resolver import EntityCatalog
from rulelang.core.config import settings
from rulelang.core.observability import execution_scope, metrics
from rulelang.domain.enums import MODE_ALIASES, EvaluationMode
from rulelang.domain.program import Program, Rule
from rulelang.domain.traces import (
    ActionLog,
    ActionTrace,
    ExecutionResult,
    Issue,
    RuleTrace,
    StateDiff,
)
from rulelang.engine.actions import ActionInterpreter, ActionOutcome
from rulelang.engine.constraints import check_constraints
from rulelang.engine.evaluator import evaluate
from rulelang.engine.facts import FactStore

logger = logging.getLogger(__name__)


class ExecutionOptions(BaseModel):
    """
    Options for a single ``run``.

    ``mode`` overrides the program's configured evaluation mode;
    ``enable_actions=False`` is a dry run that computes traces and diffs
    without committing writes.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    mode: EvaluationMode | None = None
    max_rule_firings: int = Field(default_factory=lambda: settings.max_rule_firings, gt=0)
    enable_actions: bool = True
    loop_until_settled: bool = False
    evaluate_examples: bool = False

    @field_validator("mode", mode="before")
    @classmethod
    def resolve_mode_alias(cls, v: Any) -> Any:
        if isinstance(v, str) and v in MODE_ALIASES:
            return MODE_ALIASES[v]
        return v


def sort_rules(rules: list[Rule]) -> list[Rule]:
    """Sort rules deterministically by (priority DESC, rule id ASC)."""
    return sorted(rules, key=lambda r: (-r.priority, r.id))


def resolve_mode(program: Program, options: ExecutionOptions) -> EvaluationMode:
    """Run option, then program config, then the configured default."""
    if options.mode is not None:
        return options.mode
    if program.config is not None:
        return program.config.rule_evaluation
    return settings.default_mode


class TraceRecorder:
    """
    Write-only accumulator for one execution's traces and logs.

    The scheduler appends to it; nothing in the engine reads it back.
    """

    def __init__(self) -> None:
        self.rule_traces: list[RuleTrace] = []
        self.action_logs: list[ActionLog] = []
        self.conflict_warnings: list[str] = []
        self.issues: list[Issue] = []
        self._action_count = 0

    def next_action_id(self) -> str:
        self._action_count += 1
        return f"act-{self._action_count}"

    def record_action(self, outcome: ActionOutcome) -> None:
        if outcome.log is not None:
            self.action_logs.append(outcome.log)
        if outcome.conflict:
            self.conflict_warnings.append(outcome.conflict)
        self.issues.extend(outcome.issues)

    def record_rule(self, trace: RuleTrace) -> None:
        self.rule_traces.append(trace)


@dataclass
class PassOutcome:
    mutated: bool
    stopped_early: bool


class RuleScheduler:
    """
    Fixpoint driver over sorted rules for one execution.

    Args:
        program: Program to execute
        facts: The execution's private fact store
        options: Run options
    """

    def __init__(self, program: Program, facts: FactStore, options: ExecutionOptions):
        self.rules = sort_rules(program.rules)
        self.facts = facts
        self.options = options
        self.default_mode = resolve_mode(program, options)
        self.recorder = TraceRecorder()
        self.interpreter = ActionInterpreter(
            EntityCatalog.from_program(program),
            facts,
            WriteTracker(),
            enable_actions=options.enable_actions,
        )
        self.firings = 0
        self.passes = 0
        self.hit_rule_limit = False

    def execute(self) -> None:
        """Run passes until settled, stopped early, or capped."""
        while True:
            self.passes += 1
            outcome = self._run_pass(self.passes)
            if not self.options.loop_until_settled:
                break
            if outcome.stopped_early or self.hit_rule_limit or not outcome.mutated:
                break

    def _run_pass(self, pass_number: int) -> PassOutcome:
        mutated = False

        for index, rule in enumerate(self.rules):
            why = evaluate(rule.when, self.facts)
            matched = why.result
            if matched:
                self.firings += 1

            action_traces: list[ActionTrace] = []
            diffs: list[StateDiff] = []
            warnings: list[str] = []
            for action in rule.then if matched else rule.else_:
                outcome = self.interpreter.apply(action, rule.id, self.recorder.next_action_id())
                self.recorder.record_action(outcome)
                action_traces.append(outcome.trace)
                diffs.extend(outcome.diffs)
                warnings.extend(outcome.warnings)
                mutated = mutated or outcome.mutated

            stop = matched and (
                rule.effective_mode(self.default_mode) == EvaluationMode.FIRST_MATCH
                or rule.stop_processing
            )
            self.recorder.record_rule(
                RuleTrace(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    priority=rule.priority,
                    pass_number=pass_number,
                    matched=matched,
                    why=why,
                    actions_applied=action_traces,
                    state_diff=diffs,
                    stop_processing=stop,
                    warnings=warnings,
                )
            )

            if matched and self.firings >= self.options.max_rule_firings:
                self.hit_rule_limit = True
                logger.warning(
                    "Rule firing cap reached (%d) in pass %d at rule %s; result is incomplete",
                    self.options.max_rule_firings,
                    pass_number,
                    rule.id,
                )
                return PassOutcome(mutated=mutated, stopped_early=True)

            if stop:
                self._record_skipped(self.rules[index + 1 :], pass_number)
                return PassOutcome(mutated=mutated, stopped_early=True)

        return PassOutcome(mutated=mutated, stopped_early=False)

    def _record_skipped(self, rules: list[Rule], pass_number: int) -> None:
        """Trace rules cut off by an early stop: condition shown, no actions run."""
        for rule in rules:
            why = evaluate(rule.when, self.facts)
            self.recorder.record_rule(
                RuleTrace(
                    rule_id=rule.id,
                    rule_name=rule.name,
                    priority=rule.priority,
                    pass_number=pass_number,
                    matched=why.result,
                    skipped=True,
                    why=why,
                )
            )


def run(
    program: Program,
    input_facts: Mapping[str, Any] | None,
    options: ExecutionOptions | None = None,
) -> ExecutionResult:
    """
    Execute a program against a fact payload.

    The caller's payload is deep-copied and never mutated. Runtime problems
    (missing data, inline check failures, write conflicts, the firing cap)
    are reported in the result; this function does not raise for them.
    Programs should pass ``validate_program`` first.

    Args:
        program: Validated program
        input_facts: Nested mapping entity -> field -> value
        options: Run options (defaults from settings)

    Returns:
        ExecutionResult with final state, action logs, rule traces,
        constraint report and outcome flags

    Example:
        >>> result = run(program, {"order": {"total": 120}})
        >>> result.result_state["order"]["discountPercent"]
        10
    """
    options = options or ExecutionOptions()
    start_time = time.perf_counter()

    with execution_scope(program.description or program.domain.value):
        facts = FactStore.from_payload(input_facts)
        scheduler = RuleScheduler(program, facts, options)
        scheduler.execute()

        constraint_report = check_constraints(program.constraints, facts)

        test_report = None
        if options.evaluate_examples:
            from rulelang.engine.examples import run_examples

            test_report = run_examples(program)

        recorder = scheduler.recorder
        result = ExecutionResult(
            result_state=facts.snapshot(),
            actions=recorder.action_logs,
            trace=recorder.rule_traces,
            constraint_report=constraint_report,
            test_report=test_report,
            success=not (constraint_report.has_errors or scheduler.hit_rule_limit),
            conflict_warnings=recorder.conflict_warnings,
            issues=recorder.issues,
            rule_firings=scheduler.firings,
            hit_rule_limit=scheduler.hit_rule_limit,
        )

        duration = time.perf_counter() - start_time
        logger.info(
            "Executed %d rules in %d pass(es): firings=%d, success=%s, duration=%.4fs",
            len(scheduler.rules),
            scheduler.passes,
            scheduler.firings,
            result.success,
            duration,
            extra={
                "rule_firings": scheduler.firings,
                "passes": scheduler.passes,
                "hit_rule_limit": scheduler.hit_rule_limit,
                "dry_run": not options.enable_actions,
            },
        )

    _record_execution_metrics(result, duration)
    return result


def _record_execution_metrics(result: ExecutionResult, duration: float) -> None:
    if not settings.metrics_enabled:
        return

    if result.hit_rule_limit:
        status = "rule_limit"
    elif not result.success:
        status = "constraint_failure"
    else:
        status = "success"

    metrics.executions_total.labels(status=status).inc()
    metrics.execution_duration_seconds.observe(duration)
    metrics.rule_firings.observe(result.rule_firings)
    if result.conflict_warnings:
        metrics.dynamic_conflicts_total.inc(len(result.conflict_warnings))
