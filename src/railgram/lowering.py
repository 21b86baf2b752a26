"""Lowering of grammar expressions into diagram node trees.

Every rule is lowered on its own. A rule reference becomes a nonterminal leaf
carrying only the referenced name, so recursive and mutually recursive rules
lower to finite trees whose depth matches the rule's own expression.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from . import expressions as ex
from .errors import (
    DiagramWarning,
    StructuralError,
    W_UNRESOLVED_REFERENCE,
    W_UNSUPPORTED_CONSTRUCT,
)
from .registry import RuleRegistry


class NodeKind(str, Enum):
    DIAGRAM = "diagram"
    TERMINAL = "terminal"
    NONTERMINAL = "nonterminal"
    SEQUENCE = "sequence"
    CHOICE = "choice"
    OPTIONAL = "optional"
    ZERO_OR_MORE = "zero-or-more"
    ONE_OR_MORE = "one-or-more"
    ANNOTATION = "annotation"
    STACK = "stack"
    SKIP = "skip"
    PLACEHOLDER = "placeholder"


@dataclass
class DiagramNode:
    kind: NodeKind
    label: str = ""
    children: List["DiagramNode"] = field(default_factory=list)
    separator: Optional["DiagramNode"] = None
    style: Tuple[str, ...] = ()
    # only set on the root of a rule diagram
    visibility: Optional[ex.Visibility] = None
    docs: Tuple[str, ...] = ()

    @property
    def child(self) -> "DiagramNode":
        return self.children[0]

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()
        if self.separator is not None:
            yield from self.separator.walk()

    def depth(self) -> int:
        nested = list(self.children)
        if self.separator is not None:
            nested.append(self.separator)
        return 1 + max((c.depth() for c in nested), default=0)

    def __repr__(self) -> str:
        parts = [self.kind.value]
        if self.label:
            parts.append(repr(self.label))
        if self.style:
            parts.append("style=" + ",".join(self.style))
        if self.children:
            parts.append("[" + ", ".join(repr(c) for c in self.children) + "]")
        if self.separator is not None:
            parts.append(f"sep={self.separator!r}")
        return f"DiagramNode({' '.join(parts)})"


def repeat_label(minimum: int, maximum: Optional[int]) -> str:
    if maximum is not None and minimum == maximum:
        return f"Repeat {minimum} time(s)"
    if maximum is None:
        return f"Repeat {minimum} or more times"
    if minimum == 0:
        return f"Repeat at most {maximum} time(s)"
    return f"Repeat between {minimum} and {maximum} time(s)"


def lower(
    expr: ex.Expression,
    registry: RuleRegistry,
    warnings: Optional[List[DiagramWarning]] = None,
    rule_name: Optional[str] = None,
) -> DiagramNode:
    """Convert one expression tree into a diagram node tree (no metrics).

    Raises StructuralError for malformed trees; unresolved references and
    unsupported constructs are recorded in ``warnings`` and drawn in place.
    """
    if warnings is None:
        warnings = []

    def _lower(e) -> DiagramNode:
        return lower(e, registry, warnings, rule_name)

    if isinstance(expr, ex.Terminal):
        return DiagramNode(NodeKind.TERMINAL, expr.text)

    if isinstance(expr, ex.RuleRef):
        if registry.lookup(expr.name) is not None:
            return DiagramNode(NodeKind.NONTERMINAL, expr.name)
        if registry.is_builtin(expr.name):
            return DiagramNode(NodeKind.NONTERMINAL, expr.name, style=("builtin",))
        warnings.append(
            DiagramWarning(
                W_UNRESOLVED_REFERENCE,
                rule_name,
                f"reference to undefined rule '{expr.name}'",
            )
        )
        return DiagramNode(NodeKind.NONTERMINAL, expr.name, style=("unresolved",))

    if isinstance(expr, ex.Sequence):
        items = _flatten_sequence(expr)
        if not items:
            return DiagramNode(NodeKind.SKIP)
        if len(items) == 1:
            return _lower(items[0])
        return DiagramNode(NodeKind.SEQUENCE, children=[_lower(item) for item in items])

    if isinstance(expr, ex.Choice):
        if not expr.branches:
            raise StructuralError("choice has no branches")
        if len(expr.branches) == 1:
            return _lower(expr.branches[0])
        return DiagramNode(NodeKind.CHOICE, children=[_lower(b) for b in expr.branches])

    if isinstance(expr, ex.Optional):
        if expr.expression is None:
            raise StructuralError("optional has no body")
        return DiagramNode(NodeKind.OPTIONAL, children=[_lower(expr.expression)])

    if isinstance(expr, (ex.ZeroOrMore, ex.OneOrMore)):
        if expr.expression is None:
            raise StructuralError("repetition has no body")
        kind = NodeKind.ZERO_OR_MORE if isinstance(expr, ex.ZeroOrMore) else NodeKind.ONE_OR_MORE
        separator = _lower(expr.separator) if expr.separator is not None else None
        return DiagramNode(kind, children=[_lower(expr.expression)], separator=separator)

    if isinstance(expr, ex.RepeatRange):
        if expr.expression is None:
            raise StructuralError("repetition has no body")
        if expr.min < 0 or (expr.max is not None and expr.max < 0):
            raise StructuralError("repetition bounds must not be negative")
        if expr.max is not None and expr.min > expr.max:
            raise StructuralError(
                f"repetition lower bound {expr.min} exceeds upper bound {expr.max}"
            )
        kind = NodeKind.ONE_OR_MORE if expr.min > 0 else NodeKind.ZERO_OR_MORE
        loop = DiagramNode(kind, children=[_lower(expr.expression)])
        return DiagramNode(
            NodeKind.ANNOTATION,
            repeat_label(expr.min, expr.max),
            children=[loop],
            style=("repeat",),
        )

    if isinstance(expr, ex.Predicate):
        if expr.expression is None:
            raise StructuralError("predicate has no body")
        if expr.kind is ex.PredicateKind.POSITIVE:
            label, style = "Lookahead: must match", ("predicate", "positive")
        elif expr.kind is ex.PredicateKind.NEGATIVE:
            label, style = "Lookahead: can't match", ("predicate", "negative")
        else:
            return _unsupported(expr, f"predicate kind {expr.kind!r}", warnings, rule_name)
        return DiagramNode(
            NodeKind.ANNOTATION, label, children=[_lower(expr.expression)], style=style
        )

    if isinstance(expr, ex.StackOp):
        if not isinstance(expr.kind, ex.StackKind):
            return _unsupported(expr, f"stack operation {expr.kind!r}", warnings, rule_name)
        if expr.kind is ex.StackKind.PUSH and expr.expression is None:
            raise StructuralError("PUSH has no body")
        label = expr.kind.keyword + (expr.detail or "")
        if expr.expression is None:
            return DiagramNode(NodeKind.STACK, label, style=("stack",))
        return DiagramNode(
            NodeKind.ANNOTATION, label, children=[_lower(expr.expression)], style=("stack",)
        )

    if isinstance(expr, ex.Tagged):
        if expr.expression is None:
            raise StructuralError(f"tag #{expr.tag} has no body")
        return DiagramNode(
            NodeKind.ANNOTATION, f"#{expr.tag}", children=[_lower(expr.expression)], style=("tag",)
        )

    return _unsupported(expr, type(expr).__name__, warnings, rule_name)


def _flatten_sequence(expr: ex.Sequence) -> List[ex.Expression]:
    items: List[ex.Expression] = []
    for item in expr.items:
        while isinstance(item, ex.Sequence) and len(item.items) == 1:
            item = item.items[0]
        items.append(item)
    return items


def _unsupported(
    expr: object, what: str, warnings: List[DiagramWarning], rule_name: Optional[str]
) -> DiagramNode:
    warnings.append(
        DiagramWarning(W_UNSUPPORTED_CONSTRUCT, rule_name, f"unsupported construct: {what}")
    )
    return DiagramNode(NodeKind.PLACEHOLDER, f"unsupported: {what}", style=("unsupported",))


def lower_rule(rule: ex.Rule, registry: RuleRegistry) -> Tuple[DiagramNode, List[DiagramWarning]]:
    """Lower a whole rule into a diagram root node carrying its title data."""
    warnings: List[DiagramWarning] = []
    body = lower(rule.expression, registry, warnings, rule.name)
    root = DiagramNode(
        NodeKind.DIAGRAM,
        rule.name,
        children=[body],
        style=(f"rule-{rule.visibility.value}",),
        visibility=rule.visibility,
        docs=rule.docs,
    )
    return root, warnings


def error_diagram(rule: ex.Rule, message: str) -> DiagramNode:
    """Placeholder diagram for a rule whose expression tree is malformed."""
    body = DiagramNode(NodeKind.PLACEHOLDER, f"error: {message}", style=("error",))
    return DiagramNode(
        NodeKind.DIAGRAM,
        rule.name,
        children=[body],
        style=(f"rule-{rule.visibility.value}", "rule-error"),
        visibility=rule.visibility,
        docs=rule.docs,
    )


__all__ = ["DiagramNode", "NodeKind", "error_diagram", "lower", "lower_rule", "repeat_label"]
