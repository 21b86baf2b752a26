"""Public API for railgram."""
from typing import List, Optional, Tuple

from .assembler import Assembly, DiagramAssembler, assemble, assemble_document
from .config import BoxStyle, DiagramConfig, load_config
from .errors import (
    ConfigError,
    DiagramWarning,
    DuplicateNameError,
    GrammarSyntaxError,
    RailgramError,
    StructuralError,
)
from .grammar import Grammar, parse_grammar
from .layout import LayoutEngine, layout
from .lowering import DiagramNode, NodeKind, lower, lower_rule
from .registry import RuleRegistry
from .render import Drawing, Renderer, render
from .svg import render_document, render_svg


def render_grammar(
    source: str, config: Optional[DiagramConfig] = None
) -> Tuple[str, List[DiagramWarning]]:
    """Read pest grammar source; return one SVG document with every rule, and its warnings."""
    grammar = parse_grammar(source)
    registry = RuleRegistry.build(grammar.rules)
    return assemble_document(registry, config, grammar.docs)


__all__ = [
    "Assembly",
    "BoxStyle",
    "ConfigError",
    "DiagramAssembler",
    "DiagramConfig",
    "DiagramNode",
    "DiagramWarning",
    "Drawing",
    "DuplicateNameError",
    "Grammar",
    "GrammarSyntaxError",
    "LayoutEngine",
    "NodeKind",
    "RailgramError",
    "Renderer",
    "RuleRegistry",
    "StructuralError",
    "assemble",
    "assemble_document",
    "layout",
    "load_config",
    "lower",
    "lower_rule",
    "parse_grammar",
    "render",
    "render_document",
    "render_grammar",
    "render_svg",
]
