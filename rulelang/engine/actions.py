"""
Action interpretation.

Applies one action to the fact store and returns an ActionOutcome carrying
the trace, the before/after diff, the externally observable log entry and
any warnings. In dry-run mode (``enable_actions=False``) the same outcome is
computed against the unchanged store and nothing is written.

Writes to entity fields are type- and unit-checked against the declared
field every time they are applied. A failed check skips the write and is
reported as an issue; nothing raises out of ``apply``.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, assert_never

from rulelang.compiler.conflicts import WriteTracker
from rulelang.compiler.resolver import ROUTE_SLOT, EntityCatalog
from rulelang.compiler.type_checker import check_operand, check_units
from rulelang.core.errors import RuleLangError, TypeMismatchError, issue_from_error
from rulelang.domain.enums import IssueKind, IssueSeverity, ScalarType
from rulelang.domain.program import (
    Action,
    AppendAction,
    EmitAction,
    FactOperand,
    IncrementAction,
    RouteAction,
    SetAction,
)
from rulelang.domain.traces import ActionLog, ActionTrace, Issue, StateDiff
from rulelang.engine.evaluator import resolve_operand, strict_equals
from rulelang.engine.facts import MISSING, FactStore, present

logger = logging.getLogger(__name__)


@dataclass
class ActionOutcome:
    trace: ActionTrace
    diffs: list[StateDiff] = field(default_factory=list)
    log: ActionLog | None = None
    warnings: list[str] = field(default_factory=list)
    issues: list[Issue] = field(default_factory=list)
    conflict: str | None = None

    @property
    def mutated(self) -> bool:
        """True when the action changed the live store."""
        return self.trace.applied and bool(self.diffs)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _conflict_issue(path: str, rule_id: str, message: str) -> Issue:
    return Issue(
        kind=IssueKind.DYNAMIC_CONFLICT,
        severity=IssueSeverity.SOFT,
        message=message,
        path=path,
        rule_ids=[rule_id],
    )


class ActionInterpreter:
    """
    Applies actions for one execution.

    Args:
        catalog: Entity catalog for inline type/unit checks
        facts: The execution's fact store
        tracker: The execution's write tracker (dynamic conflicts)
        enable_actions: False for dry-run
    """

    def __init__(
        self,
        catalog: EntityCatalog,
        facts: FactStore,
        tracker: WriteTracker,
        enable_actions: bool = True,
    ):
        self.catalog = catalog
        self.facts = facts
        self.tracker = tracker
        self.enable_actions = enable_actions

    def apply(self, action: Action, rule_id: str, action_id: str) -> ActionOutcome:
        """Apply (or simulate) one action on behalf of a rule."""
        if isinstance(action, SetAction):
            return self._apply_set(action, rule_id, action_id)
        if isinstance(action, IncrementAction):
            return self._apply_increment(action, rule_id, action_id)
        if isinstance(action, AppendAction):
            return self._apply_append(action, rule_id, action_id)
        if isinstance(action, EmitAction):
            return self._apply_emit(action, rule_id, action_id)
        if isinstance(action, RouteAction):
            return self._apply_route(action, rule_id, action_id)
        assert_never(action)

    # ------------------------------------------------------------------
    # Field writes
    # ------------------------------------------------------------------

    def _apply_set(self, action: SetAction, rule_id: str, action_id: str) -> ActionOutcome:
        issues: list[Issue] = []
        try:
            target = self.catalog.resolve(action.target)
            check_operand(action.value, self.catalog, expected_type=target.type)
            unit_issue = check_units(action.value, target, self.catalog, path=action.target)
        except RuleLangError as error:
            return self._reject(action, rule_id, action_id, issue_from_error(error, [rule_id]))

        if unit_issue is not None:
            issues.append(unit_issue.model_copy(update={"rule_ids": [rule_id]}))

        value = resolve_operand(action.value, self.facts)
        if value is MISSING:
            source = action.value.path if isinstance(action.value, FactOperand) else ""
            return self._reject(
                action,
                rule_id,
                action_id,
                Issue(
                    kind=IssueKind.SOURCE_MISSING,
                    severity=IssueSeverity.SOFT,
                    message=f"Cannot set {action.target}: source {source} has no value",
                    path=action.target,
                    rule_ids=[rule_id],
                ),
            )

        before = self.facts.read(action.target)
        return self._commit_field(action, rule_id, action_id, before, value, issues)

    def _apply_increment(
        self, action: IncrementAction, rule_id: str, action_id: str
    ) -> ActionOutcome:
        try:
            target = self.catalog.resolve(action.target)
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
        except RuleLangError as error:
            return self._reject(action, rule_id, action_id, issue_from_error(error, [rule_id]))

        before = self.facts.read(action.target)
        # Incrementing a missing or non-numeric value initializes it to the delta
        after = before + action.delta if _is_number(before) else action.delta
        return self._commit_field(action, rule_id, action_id, before, after, [])

    def _apply_append(self, action: AppendAction, rule_id: str, action_id: str) -> ActionOutcome:
        issues: list[Issue] = []
        try:
            target = self.catalog.resolve(action.target)
            check_operand(action.value, self.catalog, expected_type=target.type)
            unit_issue = check_units(action.value, target, self.catalog, path=action.target)
        except RuleLangError as error:
            return self._reject(action, rule_id, action_id, issue_from_error(error, [rule_id]))

        if unit_issue is not None:
            issues.append(unit_issue.model_copy(update={"rule_ids": [rule_id]}))

        value = resolve_operand(action.value, self.facts)
        if value is MISSING:
            source = action.value.path if isinstance(action.value, FactOperand) else ""
            return self._reject(
                action,
                rule_id,
                action_id,
                Issue(
                    kind=IssueKind.SOURCE_MISSING,
                    severity=IssueSeverity.SOFT,
                    message=f"Cannot append to {action.target}: source {source} has no value",
                    path=action.target,
                    rule_ids=[rule_id],
                ),
            )

        current = self.facts.read(action.target)
        # A scalar in the target is replaced by a fresh list but reported as-is
        before = [] if current is MISSING else copy.deepcopy(current)
        base = before if isinstance(before, list) else []
        after = [*base, copy.deepcopy(value)]
        return self._commit_field(action, rule_id, action_id, before, after, issues)

    def _commit_field(
        self,
        action: SetAction | IncrementAction | AppendAction,
        rule_id: str,
        action_id: str,
        before: Any,
        after: Any,
        issues: list[Issue],
    ) -> ActionOutcome:
        path = action.target
        changed = before is MISSING or not strict_equals(before, after)
        diffs = [StateDiff(path=path, before=present(before), after=after)] if changed else []

        if self.enable_actions:
            self.facts.write(path, after)

        warnings = [issue.message for issue in issues]
        conflict = self.tracker.record(path, rule_id, action_id)
        if conflict:
            warnings.append(conflict)
            issues = [*issues, _conflict_issue(path, rule_id, conflict)]

        trace = ActionTrace(
            action_id=action_id,
            rule_id=rule_id,
            kind=action.kind,
            action=action,
            applied=self.enable_actions,
            path=path,
            before_value=present(before),
            after_value=after,
            conflict=conflict is not None,
        )
        log = None
        if self.enable_actions:
            log = ActionLog(
                action_id=action_id,
                rule_id=rule_id,
                kind=action.kind,
                path=path,
                before=present(before),
                after=after,
            )
        return ActionOutcome(
            trace=trace, diffs=diffs, log=log, warnings=warnings, issues=issues, conflict=conflict
        )

    def _reject(
        self,
        action: SetAction | IncrementAction | AppendAction,
        rule_id: str,
        action_id: str,
        issue: Issue,
    ) -> ActionOutcome:
        """Skip a write that failed its inline check; the issue explains why."""
        logger.warning(
            "Skipped %s on %s in rule %s: %s", action.kind, action.target, rule_id, issue.message
        )
        current = present(self.facts.read(action.target))
        trace = ActionTrace(
            action_id=action_id,
            rule_id=rule_id,
            kind=action.kind,
            action=action,
            applied=False,
            path=action.target,
            before_value=current,
            after_value=current,
        )
        return ActionOutcome(trace=trace, warnings=[issue.message], issues=[issue])

    # ------------------------------------------------------------------
    # Events and routing
    # ------------------------------------------------------------------

    def _apply_emit(self, action: EmitAction, rule_id: str, action_id: str) -> ActionOutcome:
        # Events never write state, so they are not conflict-tracked
        trace = ActionTrace(
            action_id=action_id,
            rule_id=rule_id,
            kind=action.kind,
            action=action,
            applied=self.enable_actions,
        )
        log = None
        if self.enable_actions:
            log = ActionLog(
                action_id=action_id,
                rule_id=rule_id,
                kind=action.kind,
                event=action.event,
                payload=copy.deepcopy(action.payload),
            )
        return ActionOutcome(trace=trace, log=log)

    def _apply_route(self, action: RouteAction, rule_id: str, action_id: str) -> ActionOutcome:
        before = self.facts.read_route()
        base = before if isinstance(before, dict) else {}
        after = {**base, "queue": action.queue, "reason": action.reason}
        changed = before is MISSING or not strict_equals(before, after)
        diffs = [StateDiff(path=ROUTE_SLOT, before=present(before), after=after)] if changed else []

        if self.enable_actions:
            self.facts.write_route(after)

        conflict = self.tracker.record(ROUTE_SLOT, rule_id, action_id)
        trace = ActionTrace(
            action_id=action_id,
            rule_id=rule_id,
            kind=action.kind,
            action=action,
            applied=self.enable_actions,
            path=ROUTE_SLOT,
            before_value=present(before),
            after_value=after,
            conflict=conflict is not None,
        )
        log = None
        if self.enable_actions:
            log = ActionLog(
                action_id=action_id,
                rule_id=rule_id,
                kind=action.kind,
                path=ROUTE_SLOT,
                before=present(before),
                after=after,
            )
        if conflict is None:
            return ActionOutcome(trace=trace, diffs=diffs, log=log)
        return ActionOutcome(
            trace=trace,
            diffs=diffs,
            log=log,
            warnings=[conflict],
            issues=[_conflict_issue(ROUTE_SLOT, rule_id, conflict)],
            conflict=conflict,
        )
