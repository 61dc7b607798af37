"""Rule and condition models.

A rule's conditions form a tree of four node kinds:
- FactCondition: a leaf comparing a resolved fact against a value
- AllCondition: every child must hold
- AnyCondition: at least one child must hold
- NotCondition: the single child must not hold

The union is closed and discriminated on which of ``fact``/``all``/
``any``/``not`` a node carries, so a node mixing two shapes is rejected
when the rule is validated. A child carrying none of them (a condition
still being built) is kept as an InvalidCondition, which evaluation skips.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_validator,
)

CONDITION_KEYS = ("fact", "all", "any", "not")


class EventLevel(str, Enum):
    """Severity of the event a rule fires."""

    WARNING = "warning"
    FATALITY = "fatality"
    INFO = "info"


class FactCondition(BaseModel):
    """Leaf condition: ``operator(fact[path], value)``.

    Attributes:
        fact: Name of the fact to resolve
        operator: Name of the operator applied to (fact value, value)
        value: Comparison operand, any JSON shape
        path: Optional JSON-path-like selector into the fact value
        params: Optional parameters passed to the fact
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    fact: Annotated[str, Field(min_length=1)]
    operator: Annotated[str, Field(min_length=1)]
    value: Any
    path: str | None = None
    params: dict[str, Any] | None = None
    priority: int | None = None


class AllCondition(BaseModel):
    """Conjunction over an ordered list of conditions."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    all: list[Condition]


class AnyCondition(BaseModel):
    """Disjunction over an ordered list of conditions."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    any: list[Condition]


class NotCondition(BaseModel):
    """Negation of a single condition (serialized under the ``not`` key)."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    not_: Condition = Field(alias="not")


class InvalidCondition(BaseModel):
    """Child node carrying none of the condition keys.

    Whatever keys it has are kept as extras. It produces no leaf results and
    never holds.
    """

    model_config = ConfigDict(extra="allow", frozen=True)


INVALID_TAG = "invalid"

_MODEL_TAGS: tuple[tuple[type[BaseModel], str], ...] = (
    (FactCondition, "fact"),
    (AllCondition, "all"),
    (AnyCondition, "any"),
    (NotCondition, "not"),
    (InvalidCondition, INVALID_TAG),
)


def condition_tag(value: Any) -> str | None:
    """Return the node kind of a raw mapping or a condition model.

    A mapping with exactly one of the condition keys is tagged by that key
    and a mapping with none by ``"invalid"``. A mapping with several, or a
    value that is not a mapping, yields None, which pydantic reports as a
    validation error.
    """
    if isinstance(value, dict):
        present = [key for key in CONDITION_KEYS if key in value]
        if not present:
            return INVALID_TAG
        return present[0] if len(present) == 1 else None
    for model, tag in _MODEL_TAGS:
        if isinstance(value, model):
            return tag
    return None


def _group_tag(value: Any) -> str | None:
    tag = condition_tag(value)
    return None if tag in ("fact", INVALID_TAG) else tag


Condition = Annotated[
    Union[
        Annotated[FactCondition, Tag("fact")],
        Annotated[AllCondition, Tag("all")],
        Annotated[AnyCondition, Tag("any")],
        Annotated[NotCondition, Tag("not")],
        Annotated[InvalidCondition, Tag(INVALID_TAG)],
    ],
    Discriminator(
        condition_tag,
        custom_error_type="invalid_condition",
        custom_error_message="Condition must not mix 'fact', 'all', 'any' and 'not'",
    ),
]

GroupCondition = Annotated[
    Union[
        Annotated[AllCondition, Tag("all")],
        Annotated[AnyCondition, Tag("any")],
        Annotated[NotCondition, Tag("not")],
    ],
    Discriminator(
        _group_tag,
        custom_error_type="invalid_condition_group",
        custom_error_message="Rule conditions must have exactly one of 'all', 'any' or 'not'",
    ),
]

AllCondition.model_rebuild()
AnyCondition.model_rebuild()
NotCondition.model_rebuild()


class RuleEvent(BaseModel):
    """Event emitted when a rule triggers.

    Attributes:
        type: Severity level
        message: Human-readable message (lifted from params.message when absent)
        params: Free-form event parameters
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: EventLevel
    message: str = ""
    params: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def lift_params_message(cls, data: Any) -> Any:
        """Accept events written as ``{type, params: {message}}``."""
        if isinstance(data, dict) and "message" not in data:
            params = data.get("params")
            if isinstance(params, dict) and isinstance(params.get("message"), str):
                return {**data, "message": params["message"]}
        return data


class RuleDefinition(BaseModel):
    """A rule as handed to the simulation engine.

    Unknown top-level keys (``errorBehavior``, ``onError``, ...) used by
    other rule consumers are ignored.

    Attributes:
        name: Rule name
        conditions: Root condition group (None means the rule is incomplete)
        event: Event fired when the conditions hold
        priority: Optional priority
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: Annotated[str, Field(min_length=1)]
    conditions: GroupCondition | None = None
    event: RuleEvent
    priority: int | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        if not v.strip():
            msg = "rule name must not be blank"
            raise ValueError(msg)
        return v
