"""
Reference and Condition Types for Coral

Every value in a component tree that points somewhere else (a design token,
a prop of the enclosing component, an asset, another package) is represented
as a typed Reference object, never as a raw ``{"$token": ...}`` dictionary.

The ``$``-keyed dictionaries of the legacy file format are converted into
these types exactly once, in ``coral.serialization``. Consumers dispatch
on the concrete class; there is no shape sniffing anywhere else.

ARCHITECTURAL RULE:
    These objects are structure only.
    Evaluation lives in ``coral.resolver``.
    Validation lives in ``coral.validator``.
"""

from abc import ABC
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class Reference(ABC):
    """
    Base class for all reference types.

    The set of subclasses is closed: every consumer handles each one
    explicitly and raises ``TypeError`` for anything else.
    """
    pass


class TransformKind(Enum):
    """Coercions that can be applied to a prop value."""

    BOOLEAN = "boolean"
    STRING = "string"
    NUMBER = "number"
    NOT = "not"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"


class ComputedKind(Enum):
    """
    Combinators for computed values.

    concat:      join resolved inputs as strings
    template:    first input is a template with {0}, {1}... placeholders
    ternary:     [condition, when_true, when_false]
    classnames:  drop falsy inputs, join with a single space
    """

    CONCAT = "concat"
    TEMPLATE = "template"
    TERNARY = "ternary"
    CLASSNAMES = "classnames"


class HandlerKind(Enum):
    """Inline event handlers that need no parent event."""

    PREVENT_DEFAULT = "preventDefault"
    STOP_PROPAGATION = "stopPropagation"
    TOGGLE = "toggle"
    SET = "set"


@dataclass(frozen=True)
class TokenRef(Reference):
    """
    References a design token by dot path.

    Example:
        TokenRef("color.primary.500", fallback="#0066ff")

    Properties:
        path: Dot-separated token path
        fallback: Value used when the token does not exist (None = no fallback)
    """

    path: str
    fallback: Any = None


@dataclass(frozen=True)
class PropRef(Reference):
    """
    References a prop of the enclosing component.

    Also used as the leaf of a Condition: ``PropRef("disabled")`` is true
    when the prop is truthy.
    """

    name: str


@dataclass(frozen=True)
class PropTransform(Reference):
    """A prop reference with a coercion applied, e.g. ``not disabled``."""

    name: str
    kind: TransformKind


@dataclass(frozen=True)
class ComputedValue(Reference):
    """
    A value derived from several inputs.

    Inputs may be literals or references; they are resolved before the
    combinator runs.

    Example:
        ComputedValue(
            kind=ComputedKind.CONCAT,
            inputs=(PropRef("firstName"), " ", PropRef("lastName")),
        )
    """

    kind: ComputedKind
    inputs: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class EventRef(Reference):
    """
    Forwards an element event to an event of the enclosing component.

    Properties:
        name: Parent event name (e.g. "onClick")
        extract_path: Dot path pulled out of the first event argument
        extra_args: Static arguments appended to the call
    """

    name: str
    extract_path: Optional[str] = None
    extra_args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class InlineHandler(Reference):
    """An event handler defined in place (toggle/set a prop, stop an event)."""

    kind: HandlerKind
    target: Optional[str] = None
    value: Any = None


@dataclass(frozen=True)
class AssetRef(Reference):
    """References a file shipped in the package's assets directory."""

    path: str


@dataclass(frozen=True)
class ExternalRef(Reference):
    """References an export of another package."""

    package: str
    path: str


@dataclass(frozen=True)
class SlotForward(Reference):
    """In a slot binding: pass the parent's own slot content through."""

    name: str


# =============================================================================
# Conditions
# =============================================================================


class Condition(ABC):
    """
    Base class for conditional expressions.

    A ``PropRef`` is also a valid condition (prop truthiness). It does not
    inherit from this class because it is first of all a Reference.
    """
    pass


class LogicalOperator(Enum):
    AND = "and"
    OR = "or"


class ComparisonOperator(Enum):
    EQUALS = "eq"
    NOT_EQUALS = "ne"


@dataclass(frozen=True)
class NotCondition(Condition):
    """Negates its operand."""

    operand: Any


@dataclass(frozen=True)
class LogicalCondition(Condition):
    """
    AND/OR over any number of operands.

    Example:
        LogicalCondition(
            operator=LogicalOperator.AND,
            operands=(PropRef("showIcon"), NotCondition(PropRef("loading"))),
        )
    """

    operator: LogicalOperator
    operands: Tuple[Any, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ComparisonCondition(Condition):
    """
    Compares the value of ``left`` with a literal.

    ``left`` is a ``PropRef`` (compared by prop value) or a nested
    condition (compared by its boolean result).
    """

    operator: ComparisonOperator
    left: Any
    right: Any = None


def is_condition(value: Any) -> bool:
    """True for anything ``evaluate_condition`` accepts."""
    return isinstance(value, (Condition, PropRef))


def condition_prop_names(condition: Any) -> Tuple[str, ...]:
    """Every prop name a condition reads, in order of appearance."""
    if isinstance(condition, PropRef):
        return (condition.name,)
    if isinstance(condition, NotCondition):
        return condition_prop_names(condition.operand)
    if isinstance(condition, LogicalCondition):
        names: Tuple[str, ...] = ()
        for operand in condition.operands:
            names += condition_prop_names(operand)
        return names
    if isinstance(condition, ComparisonCondition):
        return condition_prop_names(condition.left)
    return ()
