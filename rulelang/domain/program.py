"""
Typed AST for rule language programs.

A Program is decoded once from a JSON-shaped document (see ``load_program``)
and is immutable afterwards. Pydantic performs the structural decode; the
semantic checks live in ``rulelang.compiler``.

Document keys are camelCase (``stopProcessing``, ``caseInsensitive``); the
Python attributes are snake_case. Legacy spellings accepted by older
translators are normalised on load:

- condition kinds ``comparison``/``and``/``or`` -> ``compare``/``all``/``any``
- operators ``==``/``gt``/``in``/... -> ``equals``/``greater``/``member_of``/...
- modes ``first``/``all`` -> ``firstMatch``/``allMatches``
- route ``toQueue`` -> ``queue``; emit ``eventName`` -> ``event``
- rule ``actions`` -> ``then`` when ``then`` is absent
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from rulelang.domain.enums import (
    MODE_ALIASES,
    OPERATOR_ALIASES,
    EvaluationMode,
    Operator,
    ProgramDomain,
    ScalarType,
    Severity,
)

ScalarValue = bool | int | float | str


def _normalize_mode(v: Any) -> Any:
    if isinstance(v, str) and v in MODE_ALIASES:
        return MODE_ALIASES[v]
    return v


class ProgramModel(BaseModel):
    """Base for every AST node: camelCase aliases, frozen after decode."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# =============================================================================
# Entities
# =============================================================================


class EntityField(ProgramModel):
    name: str = Field(min_length=1)
    type: ScalarType
    units: str | None = None
    description: str | None = None


class Entity(ProgramModel):
    name: str = Field(min_length=1)
    fields: list[EntityField]
    description: str | None = None


# =============================================================================
# Operands
# =============================================================================


class FactOperand(ProgramModel):
    """Reference to a fact by dotted ``entity.field`` path."""

    kind: Literal["fact"] = "fact"
    path: str = Field(min_length=1)
    units: str | None = None


class ValueOperand(ProgramModel):
    """Literal scalar value, optionally tagged with a unit."""

    kind: Literal["value"] = "value"
    value: ScalarValue
    units: str | None = None


Operand = Annotated[FactOperand | ValueOperand, Field(discriminator="kind")]


# =============================================================================
# Conditions
# =============================================================================


class CompareCondition(ProgramModel):
    kind: Literal["compare", "comparison"] = "compare"
    lhs: Operand
    operator: Operator
    rhs: Operand

    @field_validator("kind")
    @classmethod
    def canonical_kind(cls, v: str) -> str:
        return "compare"

    @field_validator("operator", mode="before")
    @classmethod
    def resolve_operator_alias(cls, v: Any) -> Any:
        """Map short operator spellings ("==", "gt", "in") to Operator values."""
        if isinstance(v, str) and v in OPERATOR_ALIASES:
            return OPERATOR_ALIASES[v]
        return v


class ExistsCondition(ProgramModel):
    kind: Literal["exists"] = "exists"
    fact: FactOperand


class MemberOfCondition(ProgramModel):
    kind: Literal["in"] = "in"
    value: Operand
    options: list[Operand] = Field(min_length=1)


class MatchesCondition(ProgramModel):
    kind: Literal["matches"] = "matches"
    value: Operand
    pattern: str
    case_insensitive: bool = False


class AllCondition(ProgramModel):
    kind: Literal["all", "and"] = "all"
    conditions: list[Condition] = Field(min_length=1)

    @field_validator("kind")
    @classmethod
    def canonical_kind(cls, v: str) -> str:
        return "all"


class AnyCondition(ProgramModel):
    kind: Literal["any", "or"] = "any"
    conditions: list[Condition] = Field(min_length=1)

    @field_validator("kind")
    @classmethod
    def canonical_kind(cls, v: str) -> str:
        return "any"


class NotCondition(ProgramModel):
    kind: Literal["not"] = "not"
    condition: Condition


Condition = Annotated[
    CompareCondition
    | ExistsCondition
    | MemberOfCondition
    | MatchesCondition
    | AllCondition
    | AnyCondition
    | NotCondition,
    Field(discriminator="kind"),
]


# =============================================================================
# Actions
# =============================================================================


class SetAction(ProgramModel):
    kind: Literal["set"] = "set"
    target: str = Field(min_length=1)
    value: Operand


class IncrementAction(ProgramModel):
    kind: Literal["increment"] = "increment"
    target: str = Field(min_length=1)
    delta: int | float = Field(validation_alias=AliasChoices("delta", "value", "numericDelta"))


class AppendAction(ProgramModel):
    kind: Literal["append"] = "append"
    target: str = Field(min_length=1)
    value: Operand


class EmitAction(ProgramModel):
    kind: Literal["emit"] = "emit"
    event: str = Field(min_length=1, validation_alias=AliasChoices("event", "eventName"))
    payload: dict[str, Any] = Field(default_factory=dict)


class RouteAction(ProgramModel):
    kind: Literal["route"] = "route"
    queue: str = Field(min_length=1, validation_alias=AliasChoices("queue", "toQueue"))
    reason: str | None = None


Action = Annotated[
    SetAction | IncrementAction | AppendAction | EmitAction | RouteAction,
    Field(discriminator="kind"),
]

# Actions that write to a declared entity field
FieldWriteAction = SetAction | IncrementAction | AppendAction


# =============================================================================
# Rules, constraints, examples
# =============================================================================


class Rule(ProgramModel):
    id: str = Field(min_length=1)
    name: str
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    priority: int = 0
    mode: EvaluationMode | None = None
    when: Condition
    then: list[Action] = Field(default_factory=list)
    else_: list[Action] = Field(default_factory=list, alias="else")
    stop_processing: bool = False

    @model_validator(mode="before")
    @classmethod
    def lift_legacy_actions(cls, data: Any) -> Any:
        """Older documents put the match actions under ``actions``."""
        if isinstance(data, dict) and "then" not in data and "actions" in data:
            result = {k: v for k, v in data.items() if k != "actions"}
            result["then"] = data["actions"]
            return result
        return data

    @field_validator("mode", mode="before")
    @classmethod
    def resolve_mode_alias(cls, v: Any) -> Any:
        return _normalize_mode(v)

    def effective_mode(self, default: EvaluationMode) -> EvaluationMode:
        """Rule-level mode if declared, otherwise the run/program default."""
        return self.mode or default


class Constraint(ProgramModel):
    id: str = Field(min_length=1)
    description: str
    assert_: Condition = Field(alias="assert")
    severity: Severity = Severity.ERROR

    @field_validator("severity", mode="before")
    @classmethod
    def resolve_severity_alias(cls, v: Any) -> Any:
        if v == "warning":
            return Severity.WARN
        return v


class Example(ProgramModel):
    id: str = Field(min_length=1)
    description: str | None = None
    input: dict[str, Any] = Field(default_factory=dict)
    expected: dict[str, Any] = Field(default_factory=dict)


class ProgramConfig(ProgramModel):
    rule_evaluation: EvaluationMode = EvaluationMode.ALL_MATCHES

    @field_validator("rule_evaluation", mode="before")
    @classmethod
    def resolve_mode_alias(cls, v: Any) -> Any:
        return _normalize_mode(v)


class Program(ProgramModel):
    domain: ProgramDomain = ProgramDomain.BUSINESS_RULES
    description: str | None = None
    entities: list[Entity] = Field(default_factory=list)
    rules: list[Rule] = Field(default_factory=list)
    constraints: list[Constraint] = Field(default_factory=list)
    examples: list[Example] = Field(default_factory=list)
    config: ProgramConfig | None = None


for _model in (AllCondition, AnyCondition, NotCondition, Rule, Constraint, Program):
    _model.model_rebuild()


def load_program(document: dict[str, Any]) -> Program:
    """
    Decode a program document into a typed ``Program``.

    This is the structural gate: malformed shapes raise
    ``pydantic.ValidationError`` here and never reach the semantic core.

    Args:
        document: JSON-shaped mapping (as produced by the parser/translator)

    Returns:
        Immutable Program model

    Example:
        >>> program = load_program({
        ...     "entities": [{"name": "order", "fields": [{"name": "total", "type": "number"}]}],
        ...     "rules": [],
        ... })
        >>> program.entities[0].fields[0].type
        <ScalarType.NUMBER: 'number'>
    """
    return Program.model_validate(document)
