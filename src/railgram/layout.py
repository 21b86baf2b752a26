"""Two-pass layout: bottom-up sizing, then top-down placement.

Every shape keeps its main line (entry and exit anchor) at one y-offset, so
a sequence can align its children on a single horizontal track. Branches,
bypasses and loop-backs always hang below the main line.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .config import DiagramConfig
from .lowering import DiagramNode, NodeKind
from .measure import TextMeasurer

BOX_KINDS = (NodeKind.TERMINAL, NodeKind.NONTERMINAL, NodeKind.STACK, NodeKind.PLACEHOLDER)


@dataclass
class LaidOutNode:
    node: DiagramNode
    width: float = 0.0
    height: float = 0.0
    entry: float = 0.0
    exit: float = 0.0
    x: float = 0.0
    y: float = 0.0
    children: List["LaidOutNode"] = field(default_factory=list)
    separator: Optional["LaidOutNode"] = None
    label: str = ""
    # absolute coordinates of secondary tracks, filled during placement
    guides: Dict[str, float] = field(default_factory=dict)

    @property
    def kind(self) -> NodeKind:
        return self.node.kind

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def entry_y(self) -> float:
        return self.y + self.entry

    @property
    def exit_y(self) -> float:
        return self.y + self.exit

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()
        if self.separator is not None:
            yield from self.separator.walk()


class LayoutEngine:
    def __init__(
        self, config: Optional[DiagramConfig] = None, measurer: Optional[TextMeasurer] = None
    ) -> None:
        self.config = config or DiagramConfig()
        self.measurer = measurer or TextMeasurer(self.config)

    def layout(self, node: DiagramNode, origin: Tuple[float, float] = (0.0, 0.0)) -> LaidOutNode:
        laid = self._size(node)
        self._place(laid, origin[0], origin[1])
        return laid

    # sizing

    def _size(self, node: DiagramNode) -> LaidOutNode:
        cfg = self.config
        r = cfg.arc_radius
        s = cfg.branch_spacing
        kind = node.kind

        if kind in BOX_KINDS:
            return self._size_box(node, node.label)

        if kind == NodeKind.SKIP:
            return LaidOutNode(node)

        if kind == NodeKind.SEQUENCE:
            children = [self._size(child) for child in node.children]
            line = max((c.entry for c in children), default=0.0)
            below = max((c.height - c.entry for c in children), default=0.0)
            width = sum(c.width for c in children)
            if children:
                width += (len(children) - 1) * cfg.connector_length
            return LaidOutNode(node, width, line + below, line, line, children=children)

        if kind == NodeKind.CHOICE:
            children = [self._size(child) for child in node.children]
            inner = max((c.width for c in children), default=0.0)
            height = sum(c.height for c in children)
            if children:
                height += (len(children) - 1) * s
            anchor = children[0].entry if children else 0.0
            return LaidOutNode(node, inner + 4 * r, height, anchor, anchor, children=children)

        if kind == NodeKind.OPTIONAL:
            child = self._size(node.child)
            return LaidOutNode(
                node, child.width + 4 * r, child.height + s, child.entry, child.entry,
                children=[child],
            )

        if kind in (NodeKind.ONE_OR_MORE, NodeKind.ZERO_OR_MORE):
            body = self._size(node.child)
            sep = self._size(node.separator) if node.separator is not None else None
            inner = max(body.width, sep.width if sep is not None else 0.0)
            width = inner + 2 * r
            height = body.height + s + (sep.height if sep is not None else 0.0)
            if kind == NodeKind.ZERO_OR_MORE:
                width += 4 * r
                height += s
            return LaidOutNode(
                node, width, height, body.entry, body.entry, children=[body], separator=sep
            )

        if kind == NodeKind.ANNOTATION:
            p = cfg.annotation_padding
            child = self._size(node.child)
            label_width = self.measurer.width(node.label, cfg.comment_font_size)
            width = max(child.width, label_width) + 2 * p
            height = child.height + 3 * p + cfg.comment_font_size
            return LaidOutNode(
                node, width, height, p + child.entry, p + child.entry,
                children=[child], label=node.label,
            )

        if kind == NodeKind.DIAGRAM:
            return self._size_diagram(node)

        # unknown kinds are drawn as placeholder boxes
        return self._size_box(node, node.label or f"unsupported: {kind}")

    def _size_box(self, node: DiagramNode, label: str) -> LaidOutNode:
        cfg = self.config
        height = cfg.box_height
        width = max(self.measurer.width(label) + 2 * cfg.box_padding, height)
        return LaidOutNode(node, width, height, height / 2, height / 2, label=label)

    def _header(self, node: DiagramNode) -> Tuple[str, float, float, float]:
        cfg = self.config
        title = ""
        title_height = 0.0
        if cfg.title_per_rule:
            suffix = node.visibility.title_suffix if node.visibility is not None else ""
            title = node.label + suffix
            title_height = cfg.font_size + 6
        doc_height = cfg.comment_font_size + 4
        header = title_height + doc_height * len(node.docs)
        if header:
            header += cfg.branch_spacing
        return title, title_height, doc_height, header

    def _size_diagram(self, node: DiagramNode) -> LaidOutNode:
        cfg = self.config
        body = self._size(node.child)
        title, _, _, header = self._header(node)
        header_width = 0.0
        if title:
            header_width = self.measurer.width(title)
        for doc in node.docs:
            header_width = max(header_width, self.measurer.width(doc, cfg.comment_font_size))
        track = body.width + 2 * cfg.marker_length
        width = max(track, header_width) + 2 * cfg.padding
        height = body.height + header + 2 * cfg.padding
        entry = cfg.padding + header + body.entry
        return LaidOutNode(node, width, height, entry, entry, children=[body], label=title)

    # placement

    def _place(self, laid: LaidOutNode, x: float, y: float) -> None:
        cfg = self.config
        r = cfg.arc_radius
        s = cfg.branch_spacing
        laid.x = x
        laid.y = y
        kind = laid.kind

        if kind == NodeKind.SEQUENCE:
            cursor = x
            for child in laid.children:
                self._place(child, cursor, y + laid.entry - child.entry)
                cursor += child.width + cfg.connector_length

        elif kind == NodeKind.CHOICE:
            top = y
            for child in laid.children:
                self._place(child, x + 2 * r, top)
                top += child.height + s
            laid.guides["inner_right"] = x + laid.width - 2 * r

        elif kind == NodeKind.OPTIONAL:
            self._place(laid.children[0], x + 2 * r, y)
            laid.guides["bypass"] = y + laid.height

        elif kind in (NodeKind.ONE_OR_MORE, NodeKind.ZERO_OR_MORE):
            left = x + r
            inner = laid.width - 2 * r
            if kind == NodeKind.ZERO_OR_MORE:
                left += 2 * r
                inner -= 4 * r
                laid.guides["bypass"] = y + laid.height
            body = laid.children[0]
            self._place(body, left, y)
            loop = y + body.height + s
            sep = laid.separator
            if sep is not None:
                self._place(sep, left + (inner - sep.width) / 2, loop)
                loop = sep.entry_y
            laid.guides["loop"] = loop
            laid.guides["loop_left"] = left
            laid.guides["loop_right"] = left + inner

        elif kind == NodeKind.ANNOTATION:
            p = cfg.annotation_padding
            child = laid.children[0]
            self._place(child, x + p, y + p)
            laid.guides["label_baseline"] = (
                y + p + child.height + p + 0.8 * cfg.comment_font_size
            )

        elif kind == NodeKind.DIAGRAM:
            _, title_height, doc_height, header = self._header(laid.node)
            body = laid.children[0]
            body_x = x + cfg.padding + cfg.marker_length
            self._place(body, body_x, y + cfg.padding + header)
            laid.guides["title_baseline"] = y + cfg.padding + cfg.font_size
            laid.guides["docs_top"] = y + cfg.padding + title_height
            laid.guides["doc_height"] = doc_height
            laid.guides["track_left"] = x + cfg.padding
            laid.guides["track_right"] = body.right + cfg.marker_length


def layout(
    node: DiagramNode, config: Optional[DiagramConfig] = None, origin: Tuple[float, float] = (0.0, 0.0)
) -> LaidOutNode:
    return LayoutEngine(config).layout(node, origin)


__all__ = ["LaidOutNode", "LayoutEngine", "layout"]
