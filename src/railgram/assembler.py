"""Runs lowering, layout and rendering for every rule of a grammar."""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from .config import DiagramConfig
from .errors import DiagramWarning, StructuralError, W_STRUCTURAL_ERROR
from .expressions import Rule, Visibility
from .layout import LayoutEngine
from .lowering import error_diagram, lower_rule
from .registry import RuleRegistry
from .render import Drawing, Renderer
from .svg import render_document, render_svg

logger = logging.getLogger(__name__)


@dataclass
class Assembly:
    diagrams: "OrderedDict[str, Drawing]" = field(default_factory=OrderedDict)
    warnings: List[DiagramWarning] = field(default_factory=list)
    config: DiagramConfig = field(default_factory=DiagramConfig)

    def svg(self, name: str) -> str:
        return render_svg(self.diagrams[name], self.config)

    def document(self, docs: Sequence[str] = ()) -> str:
        return render_document(self.diagrams.values(), self.config, docs)


class DiagramAssembler:
    def __init__(self, registry: RuleRegistry, config: Optional[DiagramConfig] = None) -> None:
        self.registry = registry
        self.config = config or DiagramConfig()
        self._engine = LayoutEngine(self.config)
        self._renderer = Renderer(self.config)

    def rule_names(self) -> List[str]:
        names = self.registry.names(self.config.rule_order)
        if self.config.include_silent_rules:
            return names
        return [
            name for name in names if self.registry.lookup(name).visibility is not Visibility.SILENT
        ]

    def render_rule(self, rule: Rule) -> Tuple[Drawing, List[DiagramWarning]]:
        try:
            root, warnings = lower_rule(rule, self.registry)
            return self._renderer.render(self._engine.layout(root)), warnings
        except StructuralError as exc:
            message = exc.message
        except RecursionError:
            message = "expression nested too deeply"
        logger.debug("rule %s is malformed: %s", rule.name, message)
        root = error_diagram(rule, message)
        drawing = self._renderer.render(self._engine.layout(root))
        return drawing, [DiagramWarning(W_STRUCTURAL_ERROR, rule.name, message)]

    def assemble(self) -> Assembly:
        assembly = Assembly(config=self.config)
        for name in self.rule_names():
            drawing, warnings = self.render_rule(self.registry.lookup(name))
            assembly.diagrams[name] = drawing
            assembly.warnings.extend(warnings)
            logger.debug(
                "rendered rule %s (%s primitives, %d warnings)",
                name,
                len(drawing.operations),
                len(warnings),
            )
        return assembly


def assemble(registry: RuleRegistry, config: Optional[DiagramConfig] = None) -> Assembly:
    return DiagramAssembler(registry, config).assemble()


def assemble_document(
    registry: RuleRegistry,
    config: Optional[DiagramConfig] = None,
    docs: Sequence[str] = (),
) -> Tuple[str, List[DiagramWarning]]:
    assembly = assemble(registry, config)
    return assembly.document(docs), assembly.warnings


__all__ = ["Assembly", "DiagramAssembler", "assemble", "assemble_document"]
