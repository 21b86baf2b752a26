"""Grammar expression model: a closed set of frozen expression kinds."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional as Opt, Tuple, Union


class Visibility(str, Enum):
    NORMAL = "normal"
    SILENT = "silent"
    ATOMIC = "atomic"
    COMPOUND_ATOMIC = "compound-atomic"
    NON_ATOMIC = "non-atomic"

    @property
    def title_suffix(self) -> str:
        if self is Visibility.NORMAL:
            return ""
        if self is Visibility.COMPOUND_ATOMIC:
            return " (compound atomic)"
        return f" ({self.value})"


class PredicateKind(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


class StackKind(str, Enum):
    PUSH = "push"
    POP = "pop"
    PEEK = "peek"
    POP_ALL = "pop-all"
    PEEK_ALL = "peek-all"
    DROP = "drop"

    @property
    def keyword(self) -> str:
        return self.value.replace("-", "_").upper()


@dataclass(frozen=True)
class Terminal:
    text: str


@dataclass(frozen=True)
class RuleRef:
    name: str


@dataclass(frozen=True)
class Sequence:
    items: Tuple["Expression", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class Choice:
    branches: Tuple["Expression", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "branches", tuple(self.branches))


@dataclass(frozen=True)
class Optional:
    expression: "Expression"


@dataclass(frozen=True)
class ZeroOrMore:
    expression: Opt["Expression"]
    separator: Opt["Expression"] = None


@dataclass(frozen=True)
class OneOrMore:
    expression: Opt["Expression"]
    separator: Opt["Expression"] = None


@dataclass(frozen=True)
class RepeatRange:
    """Bounded repetition; ``max`` of ``None`` means no upper bound."""

    expression: "Expression"
    min: int = 0
    max: Opt[int] = None


@dataclass(frozen=True)
class Predicate:
    kind: PredicateKind
    expression: "Expression"


@dataclass(frozen=True)
class StackOp:
    kind: StackKind
    expression: Opt["Expression"] = None
    # slice text for PEEK[a..b], e.g. "[1..]"
    detail: Opt[str] = None


@dataclass(frozen=True)
class Tagged:
    tag: str
    expression: "Expression"


Expression = Union[
    Terminal,
    RuleRef,
    Sequence,
    Choice,
    Optional,
    ZeroOrMore,
    OneOrMore,
    RepeatRange,
    Predicate,
    StackOp,
    Tagged,
]


@dataclass(frozen=True)
class Rule:
    name: str
    expression: Expression
    visibility: Visibility = Visibility.NORMAL
    docs: Tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "docs", tuple(self.docs))


def iter_references(expr: object):
    """Yield every rule name referenced by ``expr``, depth first, in order."""
    if isinstance(expr, RuleRef):
        yield expr.name
    elif isinstance(expr, Sequence):
        for item in expr.items:
            yield from iter_references(item)
    elif isinstance(expr, Choice):
        for branch in expr.branches:
            yield from iter_references(branch)
    elif isinstance(expr, (ZeroOrMore, OneOrMore)):
        if expr.expression is not None:
            yield from iter_references(expr.expression)
        if expr.separator is not None:
            yield from iter_references(expr.separator)
    elif isinstance(expr, (Optional, RepeatRange, Predicate, Tagged)):
        yield from iter_references(expr.expression)
    elif isinstance(expr, StackOp) and expr.expression is not None:
        yield from iter_references(expr.expression)


__all__ = [
    "Choice",
    "Expression",
    "OneOrMore",
    "Optional",
    "Predicate",
    "PredicateKind",
    "RepeatRange",
    "Rule",
    "RuleRef",
    "Sequence",
    "StackKind",
    "StackOp",
    "Tagged",
    "Terminal",
    "Visibility",
    "ZeroOrMore",
    "iter_references",
]
