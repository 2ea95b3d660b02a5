"""
Write-conflict detection between rules.

Two independent checks, both advisory:

- Static (program level, before any input is run): two rules with the same
  effective priority that set the same path to different literal values.
  Reported as a hard validation issue.
- Dynamic (per execution): a second write to a path already written in the
  same run. Reported as a warning; the later write wins.
"""

import logging
from dataclasses import dataclass
from itertools import combinations

from rulelang.compiler.type_checker import infer_type
from rulelang.core.errors import ConflictError, issue_from_error
from rulelang.domain.program import Program, Rule, ScalarValue, SetAction, ValueOperand
from rulelang.domain.traces import Issue

logger = logging.getLogger(__name__)


def _literal_sets(rule: Rule) -> dict[str, list[ScalarValue]]:
    """Map target path -> literal values this rule's set actions write there."""
    writes: dict[str, list[ScalarValue]] = {}
    for action in [*rule.then, *rule.else_]:
        if isinstance(action, SetAction) and isinstance(action.value, ValueOperand):
            writes.setdefault(action.target, []).append(action.value.value)
    return writes


def _same_literal(a: ScalarValue, b: ScalarValue) -> bool:
    return infer_type(a) == infer_type(b) and a == b


def find_static_conflicts(program: Program) -> list[Issue]:
    """
    Find same-priority rule pairs that set one path to different literals.

    Exactly one issue is reported per (unordered rule pair, path), naming
    both rules. Pairs are visited in rule id order so the output is stable.

    Args:
        program: Program to check

    Returns:
        List of hard STATIC_CONFLICT issues (empty if none)

    Example:
        Rules ``approve`` and ``deny`` at priority 0 setting ``order.status``
        to ``"approved"`` and ``"denied"`` yield one issue with
        ``rule_ids == ["approve", "deny"]``.
    """
    issues: list[Issue] = []
    rules = sorted(program.rules, key=lambda r: r.id)
    literal_sets = {rule.id: _literal_sets(rule) for rule in rules}

    for first, second in combinations(rules, 2):
        if first.priority != second.priority:
            continue

        first_writes = literal_sets[first.id]
        second_writes = literal_sets[second.id]

        for path in sorted(first_writes.keys() & second_writes.keys()):
            clash = next(
                (
                    (a, b)
                    for a in first_writes[path]
                    for b in second_writes[path]
                    if not _same_literal(a, b)
                ),
                None,
            )
            if clash is None:
                continue

            error = ConflictError(
                f'Rules "{first.id}" and "{second.id}" (priority {first.priority}) '
                f"set {path} to different values: {clash[0]!r} vs {clash[1]!r}",
                details={
                    "path": path,
                    "priority": first.priority,
                    "values": [clash[0], clash[1]],
                },
            )
            issues.append(issue_from_error(error, rule_ids=[first.id, second.id]))

    if issues:
        logger.info("Found %d static write conflict(s)", len(issues))

    return issues


@dataclass(frozen=True)
class WriteRecord:
    rule_id: str
    action_id: str


class WriteTracker:
    """
    Per-execution map of written path -> last writer.

    One tracker is created per ``run`` and discarded with it.
    """

    def __init__(self) -> None:
        self._writes: dict[str, WriteRecord] = {}

    def record(self, path: str, rule_id: str, action_id: str) -> str | None:
        """
        Record a write and report a conflict with any earlier writer.

        Args:
            path: Written path (``entity.field`` or the route slot)
            rule_id: Rule performing the write
            action_id: Action performing the write

        Returns:
            Conflict warning naming both writers, or None for a first write
        """
        prior = self._writes.get(path)
        self._writes[path] = WriteRecord(rule_id=rule_id, action_id=action_id)

        if prior is None:
            return None

        return (
            f"Conflict on {path}: previously written by {prior.rule_id} "
            f"({prior.action_id}), now by {rule_id} ({action_id})."
        )
