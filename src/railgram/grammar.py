"""Reader for pest grammar source.

The pest syntax is described as a parsimonious PEG and the parse tree is
folded into :mod:`railgram.expressions` values by a NodeVisitor.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar as PegGrammar
from parsimonious.nodes import Node, NodeVisitor

from . import expressions as ex
from .errors import GrammarSyntaxError

PEST_GRAMMAR = PegGrammar(
    r"""
    grammar       = ws item*
    item          = (grammar_doc / grammar_rule) ws
    grammar_doc   = ~r"//![^\n]*"
    grammar_rule  = line_doc* identifier ws "=" ws modifier? ws "{" ws expression? ws "}"
    line_doc      = ~r"///(?!/)[^\n]*" ws
    modifier      = ~r"[_@$!]"

    expression    = ("|" ws)? sequence (ws "|" ws sequence)*
    sequence      = term (ws "~" ws term)*
    term          = tag? (prefix ws)* atom (ws postfix)*
    tag           = "#" identifier ws "=" ws
    prefix        = ~r"[&!]"
    postfix       = repeat_range / ~r"[?*+]"
    repeat_range  = "{" ws ~r"[0-9]*" ws ","? ws ~r"[0-9]*" ws "}"

    atom          = group / push_literal / push / peek_slice / stack_op / range / insensitive / string / reference
    group         = "(" ws expression ws ")"
    push_literal  = "PUSH_LITERAL" ws "(" ws string ws ")"
    push          = "PUSH" ws "(" ws expression ws ")"
    peek_slice    = "PEEK" ws "[" ws ~r"-?[0-9]*" ws ".." ws ~r"-?[0-9]*" ws "]"
    stack_op      = ~r"(PEEK_ALL|POP_ALL|PEEK|POP|DROP)(?![A-Za-z0-9_])"
    range         = char ws ".." ws char
    char          = ~r"'(?:[^'\\]|\\.)*'"
    insensitive   = "^" string
    string        = ~r'"(?:[^"\\]|\\.)*"'
    reference     = ~r"[A-Za-z_][A-Za-z0-9_]*"
    identifier    = ~r"[A-Za-z_][A-Za-z0-9_]*"

    ws            = meaningless*
    meaningless   = ~r"\s+" / block_comment / line_comment
    block_comment = ~r"/\*.*?\*/"s
    line_comment  = ~r"//(?!/(?!/)|!)[^\n]*"
    """
)

MODIFIERS = {
    "_": ex.Visibility.SILENT,
    "@": ex.Visibility.ATOMIC,
    "$": ex.Visibility.COMPOUND_ATOMIC,
    "!": ex.Visibility.NON_ATOMIC,
}

STACK_KINDS = {
    "PEEK_ALL": ex.StackKind.PEEK_ALL,
    "POP_ALL": ex.StackKind.POP_ALL,
    "PEEK": ex.StackKind.PEEK,
    "POP": ex.StackKind.POP,
    "DROP": ex.StackKind.DROP,
}


@dataclass
class Grammar:
    rules: List[ex.Rule] = field(default_factory=list)
    docs: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Doc:
    text: str


@dataclass(frozen=True)
class _GrammarDoc:
    text: str


@dataclass(frozen=True)
class _Modifier:
    visibility: ex.Visibility


@dataclass(frozen=True)
class _Prefix:
    operator: str


@dataclass(frozen=True)
class _Postfix:
    operator: str
    min: int = 0
    max: Optional[int] = None


@dataclass(frozen=True)
class _Tag:
    name: str


def _values(children) -> List[object]:
    """Flatten visited children, dropping raw parse nodes."""
    values: List[object] = []
    for child in children:
        if isinstance(child, list):
            values.extend(_values(child))
        elif child is not None and not isinstance(child, Node):
            values.append(child)
    return values


class PestVisitor(NodeVisitor):
    unwrapped_exceptions = (GrammarSyntaxError,)

    def generic_visit(self, node, visited_children):
        return visited_children or node

    def visit_grammar(self, node, visited_children) -> Grammar:
        grammar = Grammar()
        for value in _values(visited_children):
            if isinstance(value, _GrammarDoc):
                grammar.docs.append(value.text)
            elif isinstance(value, ex.Rule):
                grammar.rules.append(value)
        return grammar

    def visit_grammar_doc(self, node, visited_children) -> _GrammarDoc:
        return _GrammarDoc(node.text[3:].strip())

    def visit_line_doc(self, node, visited_children) -> _Doc:
        return _Doc(node.children[0].text[3:].strip())

    def visit_modifier(self, node, visited_children) -> _Modifier:
        return _Modifier(MODIFIERS[node.text])

    def visit_identifier(self, node, visited_children) -> str:
        return node.text

    def visit_grammar_rule(self, node, visited_children) -> ex.Rule:
        docs: List[str] = []
        name = ""
        visibility = ex.Visibility.NORMAL
        expression: ex.Expression = ex.Sequence(())
        for value in _values(visited_children):
            if isinstance(value, _Doc):
                docs.append(value.text)
            elif isinstance(value, str):
                name = value
            elif isinstance(value, _Modifier):
                visibility = value.visibility
            else:
                expression = value
        return ex.Rule(name, expression, visibility, tuple(docs))

    def visit_expression(self, node, visited_children) -> ex.Expression:
        branches = _values(visited_children)
        if len(branches) == 1:
            return branches[0]
        return ex.Choice(tuple(branches))

    def visit_sequence(self, node, visited_children) -> ex.Expression:
        items = _values(visited_children)
        if len(items) == 1:
            return items[0]
        return ex.Sequence(tuple(items))

    def visit_term(self, node, visited_children) -> ex.Expression:
        tag: Optional[_Tag] = None
        prefixes: List[_Prefix] = []
        postfixes: List[_Postfix] = []
        atom = None
        for value in _values(visited_children):
            if isinstance(value, _Tag):
                tag = value
            elif isinstance(value, _Prefix):
                prefixes.append(value)
            elif isinstance(value, _Postfix):
                postfixes.append(value)
            else:
                atom = value

        term = atom
        for postfix in postfixes:
            if postfix.operator == "?":
                term = ex.Optional(term)
            elif postfix.operator == "*":
                term = ex.ZeroOrMore(term)
            elif postfix.operator == "+":
                term = ex.OneOrMore(term)
            else:
                term = ex.RepeatRange(term, postfix.min, postfix.max)
        for prefix in reversed(prefixes):
            kind = ex.PredicateKind.POSITIVE if prefix.operator == "&" else ex.PredicateKind.NEGATIVE
            term = ex.Predicate(kind, term)
        if tag is not None:
            term = ex.Tagged(tag.name, term)
        return term

    def visit_tag(self, node, visited_children) -> _Tag:
        return _Tag(node.children[1].text)

    def visit_prefix(self, node, visited_children) -> _Prefix:
        return _Prefix(node.text)

    def visit_postfix(self, node, visited_children) -> _Postfix:
        values = _values(visited_children)
        if values:
            return values[0]
        return _Postfix(node.text)

    def visit_repeat_range(self, node, visited_children) -> _Postfix:
        # "{" ws low ws ","? ws high ws "}"
        low = node.children[2].text
        comma = node.children[4].text
        high = node.children[6].text
        if not comma:
            if not low or high:
                raise self._error(node, "repetition needs a count, e.g. {3}")
            count = int(low)
            return _Postfix("range", count, count)
        if not low and not high:
            raise self._error(node, "repetition needs at least one bound, e.g. {2,}")
        minimum = int(low) if low else 0
        maximum = int(high) if high else None
        return _Postfix("range", minimum, maximum)

    def visit_group(self, node, visited_children) -> ex.Expression:
        return _values(visited_children)[0]

    def visit_push(self, node, visited_children) -> ex.StackOp:
        return ex.StackOp(ex.StackKind.PUSH, _values(visited_children)[0])

    def visit_push_literal(self, node, visited_children) -> ex.StackOp:
        return ex.StackOp(ex.StackKind.PUSH, _values(visited_children)[0])

    def visit_peek_slice(self, node, visited_children) -> ex.StackOp:
        start = node.children[4].text
        end = node.children[8].text
        return ex.StackOp(ex.StackKind.PEEK, None, f"[{start}..{end}]")

    def visit_stack_op(self, node, visited_children) -> ex.StackOp:
        return ex.StackOp(STACK_KINDS[node.text])

    def visit_range(self, node, visited_children) -> ex.Terminal:
        return ex.Terminal(f"{node.children[0].text}..{node.children[4].text}")

    def visit_insensitive(self, node, visited_children) -> ex.Terminal:
        return ex.Terminal(node.text)

    def visit_string(self, node, visited_children) -> ex.Terminal:
        return ex.Terminal(node.text)

    def visit_reference(self, node, visited_children) -> ex.RuleRef:
        return ex.RuleRef(node.text)

    @staticmethod
    def _error(node: Node, message: str) -> GrammarSyntaxError:
        line, column = _position(node.full_text, node.start)
        return GrammarSyntaxError(message, line, column)


def _position(text: str, pos: int) -> Tuple[int, int]:
    line = text.count("\n", 0, pos) + 1
    column = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, column


def parse_grammar(source: str) -> Grammar:
    """Read pest grammar source into rules (in declaration order) and grammar docs."""
    try:
        tree = PEST_GRAMMAR.parse(source)
    except ParseError as exc:
        line, column = _position(source, exc.pos)
        snippet = source[exc.pos:exc.pos + 20].split("\n", 1)[0]
        message = f"invalid pest grammar near {snippet!r}" if snippet else "unexpected end of grammar"
        raise GrammarSyntaxError(message, line, column) from exc
    return PestVisitor().visit(tree)


__all__ = ["Grammar", "PEST_GRAMMAR", "PestVisitor", "parse_grammar"]
