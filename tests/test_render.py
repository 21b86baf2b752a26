from __future__ import annotations

import sys
import unittest
import xml.etree.ElementTree as ET
from pathlib import Path

TESTS_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = TESTS_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from railgram import expressions as ex
from railgram.config import DiagramConfig
from railgram.grammar import parse_grammar
from railgram.layout import LayoutEngine
from railgram.lowering import DiagramNode, NodeKind, lower, lower_rule
from railgram.registry import RuleRegistry
from railgram.render import Arc, Arrow, Box, Line, Renderer, Text
from railgram.svg import render_document, render_svg

SVG_NS = "{http://www.w3.org/2000/svg}"


def _draw(node: DiagramNode, config: DiagramConfig = None):
    config = config or DiagramConfig()
    laid = LayoutEngine(config).layout(node)
    return laid, Renderer(config).render(laid)


class RendererTests(unittest.TestCase):
    def test_choice_branches_are_stacked(self) -> None:
        expr = ex.Choice((ex.Terminal('"a"'), ex.Terminal('"b"'), ex.Terminal('"c"')))
        _laid, drawing = _draw(lower(expr, RuleRegistry.build([])))
        boxes = [b for b in drawing.of_type(Box) if b.role == "terminal"]
        self.assertEqual(len(boxes), 3)
        self.assertEqual({b.x for b in boxes}, {20})
        ys = [b.y for b in boxes]
        self.assertEqual(ys, sorted(ys))
        self.assertEqual(len(set(ys)), 3)
        labels = [t.text for t in drawing.of_type(Text)]
        self.assertEqual(labels, ['"a"', '"b"', '"c"'])

    def test_choice_branches_share_entry_and_exit(self) -> None:
        expr = ex.Choice((ex.Terminal('"a"'), ex.Terminal('"b"'), ex.Terminal('"c"')))
        laid, drawing = _draw(lower(expr, RuleRegistry.build([])))
        tracks = drawing.of_type(Line) + drawing.of_type(Arc)
        starts = [op for op in tracks if (op.x1, op.y1) == (laid.x, laid.entry_y)]
        ends = [op for op in tracks if (op.x2, op.y2) == (laid.right, laid.exit_y)]
        self.assertEqual(len(starts), 3)
        self.assertEqual(len(ends), 3)
        # every branch after the first leaves and rejoins the main line on an arc
        self.assertEqual(sum(isinstance(op, Arc) for op in starts), 2)
        self.assertEqual(sum(isinstance(op, Arc) for op in ends), 2)

    def test_sum_rule_draws_loop_after_main_line_reference(self) -> None:
        grammar = parse_grammar('expr = { term ~ ("+" ~ term)* }\nterm = { "1" }')
        registry = RuleRegistry.build(grammar.rules)
        root, _ = lower_rule(grammar.rules[0], registry)
        laid, drawing = _draw(root)
        boxes = drawing.of_type(Box)
        labels = [t.text for t in drawing.of_type(Text) if t.role == "label"]
        self.assertEqual(labels, ["term", '"+"', "term"])
        self.assertEqual([b.role for b in boxes], ["nonterminal", "terminal", "nonterminal"])
        xs = [b.x for b in boxes]
        self.assertEqual(xs, sorted(xs))
        main_line = laid.entry_y
        for box in boxes:
            self.assertAlmostEqual(box.y + box.height / 2, main_line)

    def test_unresolved_reference_is_marked(self) -> None:
        _laid, drawing = _draw(lower(ex.RuleRef("ghost"), RuleRegistry.build([])))
        (box,) = drawing.of_type(Box)
        self.assertIn("unresolved", box.role.split())
        self.assertIn("nonterminal", box.role.split())
        self.assertGreater(box.radius, 0)

    def test_arcs_are_quarter_circles(self) -> None:
        node = DiagramNode(
            NodeKind.SEQUENCE,
            children=[
                DiagramNode(NodeKind.OPTIONAL, children=[DiagramNode(NodeKind.TERMINAL, "a")]),
                DiagramNode(
                    NodeKind.ZERO_OR_MORE,
                    children=[DiagramNode(NodeKind.NONTERMINAL, "item")],
                    separator=DiagramNode(NodeKind.TERMINAL, '","'),
                ),
                DiagramNode(
                    NodeKind.CHOICE,
                    children=[DiagramNode(NodeKind.TERMINAL, "x"), DiagramNode(NodeKind.SKIP)],
                ),
            ],
        )
        _laid, drawing = _draw(node)
        arcs = drawing.of_type(Arc)
        self.assertTrue(arcs)
        for arc in arcs:
            self.assertAlmostEqual(abs(arc.x2 - arc.x1), arc.radius)
            self.assertAlmostEqual(abs(arc.y2 - arc.y1), arc.radius)
            self.assertIn(arc.sweep, (0, 1))

    def test_tracks_stay_inside_node_bounds(self) -> None:
        node = DiagramNode(
            NodeKind.ONE_OR_MORE,
            children=[
                DiagramNode(
                    NodeKind.CHOICE,
                    children=[DiagramNode(NodeKind.TERMINAL, "x"), DiagramNode(NodeKind.TERMINAL, "yy")],
                )
            ],
        )
        laid, drawing = _draw(node)
        for line in drawing.of_type(Line):
            for x in (line.x1, line.x2):
                self.assertGreaterEqual(x, laid.x - 1e-9)
                self.assertLessEqual(x, laid.right + 1e-9)
            for y in (line.y1, line.y2):
                self.assertGreaterEqual(y, laid.y - 1e-9)
                self.assertLessEqual(y, laid.y + laid.height + 1e-9)

    def test_annotation_frame_and_comment(self) -> None:
        expr = ex.Predicate(ex.PredicateKind.NEGATIVE, ex.Terminal('"x"'))
        _laid, drawing = _draw(lower(expr, RuleRegistry.build([])))
        frames = [b for b in drawing.of_type(Box) if b.role.startswith("annotation")]
        self.assertEqual(len(frames), 1)
        self.assertIn("negative", frames[0].role)
        comments = [t for t in drawing.of_type(Text) if t.role == "comment"]
        self.assertEqual([c.text for c in comments], ["Lookahead: can't match"])

    def test_rule_diagram_has_title_markers_and_arrow(self) -> None:
        rule = ex.Rule("num", ex.OneOrMore(ex.RuleRef("ASCII_DIGIT")), ex.Visibility.ATOMIC, ("digits",))
        root, _ = lower_rule(rule, RuleRegistry.build([rule]))
        _laid, drawing = _draw(root)
        self.assertEqual(drawing.name, "num")
        self.assertEqual(drawing.classes, ("rule", "rule-atomic"))
        titles = [t.text for t in drawing.of_type(Text) if t.role == "title"]
        self.assertEqual(titles, ["num (atomic)"])
        docs = [t.text for t in drawing.of_type(Text) if t.role == "doc"]
        self.assertEqual(docs, ["digits"])
        self.assertEqual(len([l for l in drawing.of_type(Line) if l.role == "marker"]), 3)
        self.assertEqual(len(drawing.of_type(Arrow)), 1)

    def test_svg_output(self) -> None:
        rule = ex.Rule("a", ex.Sequence((ex.Terminal('"x"'), ex.RuleRef("b"))))
        registry = RuleRegistry.build([rule, ex.Rule("b", ex.Terminal('"y"'))])
        root, _ = lower_rule(rule, registry)
        _laid, drawing = _draw(root)
        svg_text = render_svg(drawing)
        doc = ET.fromstring(svg_text)
        self.assertEqual(doc.tag, f"{SVG_NS}svg")
        self.assertEqual(doc.get("class"), "railroad")
        rects = [r.get("class") for r in doc.iter(f"{SVG_NS}rect")]
        self.assertEqual(rects, ["background", "terminal", "nonterminal"])
        self.assertIn('"x"', [t.text for t in doc.iter(f"{SVG_NS}text")])
        self.assertEqual(svg_text, render_svg(drawing))

    def test_document_stacks_diagrams(self) -> None:
        registry = RuleRegistry.build(
            [ex.Rule("a", ex.Terminal('"x"')), ex.Rule("b", ex.Terminal('"y"'))]
        )
        drawings = []
        for rule in registry:
            root, _ = lower_rule(rule, registry)
            drawings.append(_draw(root)[1])
        doc = ET.fromstring(render_document(drawings, docs=["grammar notes"]))
        groups = list(doc.iter(f"{SVG_NS}g"))
        self.assertEqual([g.get("data-rule") for g in groups], ["a", "b"])
        self.assertEqual(groups[0].get("transform"), "translate(0, 26)")
        self.assertEqual(
            float(doc.get("height")), 26 + drawings[0].height + 20 + drawings[1].height
        )

    def test_document_is_wide_enough_for_grammar_docs(self) -> None:
        registry = RuleRegistry.build([ex.Rule("a", ex.Terminal('"x"'))])
        root, _ = lower_rule(registry.lookup("a"), registry)
        drawing = _draw(root)[1]
        note = "n" * 100
        doc = ET.fromstring(render_document([drawing], docs=[note]))
        self.assertAlmostEqual(float(doc.get("width")), 20 + 100 * 8.5 * 12 / 14, places=2)
        self.assertGreater(float(doc.get("width")), drawing.width)


if __name__ == "__main__":
    unittest.main()
