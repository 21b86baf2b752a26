"""Drawing primitives emitted from laid-out diagram trees."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from .config import DiagramConfig
from .layout import LaidOutNode
from .lowering import NodeKind

EAST = (1, 0)
WEST = (-1, 0)
SOUTH = (0, 1)
NORTH = (0, -1)


@dataclass(frozen=True)
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    role: str = "track"


@dataclass(frozen=True)
class Arc:
    """Quarter circle from (x1, y1) to (x2, y2); sweep 1 turns clockwise."""

    x1: float
    y1: float
    x2: float
    y2: float
    radius: float
    sweep: int
    role: str = "track"


@dataclass(frozen=True)
class Box:
    x: float
    y: float
    width: float
    height: float
    radius: float = 0.0
    role: str = "terminal"


@dataclass(frozen=True)
class Text:
    x: float
    y: float
    text: str
    anchor: str = "middle"
    role: str = "label"


@dataclass(frozen=True)
class Arrow:
    x: float
    y: float
    size: float
    role: str = "arrow"


Primitive = Union[Line, Arc, Box, Text, Arrow]


@dataclass
class Drawing:
    name: str
    width: float
    height: float
    operations: List[Primitive] = field(default_factory=list)
    classes: Tuple[str, ...] = ()

    def of_type(self, kind) -> List[Primitive]:
        return [op for op in self.operations if isinstance(op, kind)]


class _Pen:
    """Walks a track, appending straight segments and quarter arcs."""

    def __init__(self, ops: List[Primitive], x: float, y: float) -> None:
        self.ops = ops
        self.x = x
        self.y = y

    def h(self, dx: float) -> "_Pen":
        if dx:
            self.ops.append(Line(self.x, self.y, self.x + dx, self.y))
            self.x += dx
        return self

    def v(self, dy: float) -> "_Pen":
        if dy:
            self.ops.append(Line(self.x, self.y, self.x, self.y + dy))
            self.y += dy
        return self

    def to_x(self, x: float) -> "_Pen":
        return self.h(x - self.x)

    def turn(self, heading: Tuple[int, int], to: Tuple[int, int], radius: float) -> "_Pen":
        x2 = self.x + radius * (heading[0] + to[0])
        y2 = self.y + radius * (heading[1] + to[1])
        sweep = 1 if heading[0] * to[1] - heading[1] * to[0] > 0 else 0
        self.ops.append(Arc(self.x, self.y, x2, y2, radius, sweep))
        self.x = x2
        self.y = y2
        return self


def _drop(ops: List[Primitive], x: float, top: float, bottom: float, r: float) -> None:
    """Track from (x, top) down to (x + 2r, bottom), heading east at both ends."""
    depth = bottom - top
    if depth <= 0:
        _Pen(ops, x, top).h(2 * r)
        return
    rr = min(r, depth / 2)
    _Pen(ops, x, top).turn(EAST, SOUTH, rr).v(depth - 2 * rr).turn(SOUTH, EAST, rr).h(2 * (r - rr))


def _rise(ops: List[Primitive], x: float, bottom: float, top: float, r: float) -> None:
    """Track from (x, bottom) up to (x + 2r, top), heading east at both ends."""
    depth = bottom - top
    if depth <= 0:
        _Pen(ops, x, bottom).h(2 * r)
        return
    rr = min(r, depth / 2)
    _Pen(ops, x, bottom).turn(EAST, NORTH, rr).v(-(depth - 2 * rr)).turn(NORTH, EAST, rr).h(
        2 * (r - rr)
    )


class Renderer:
    def __init__(self, config: Optional[DiagramConfig] = None) -> None:
        self.config = config or DiagramConfig()

    def render(self, laid: LaidOutNode) -> Drawing:
        drawing = Drawing(
            name=laid.node.label,
            width=laid.width,
            height=laid.height,
            classes=("rule",) + tuple(laid.node.style),
        )
        self._emit(laid, drawing.operations)
        return drawing

    def _emit(self, laid: LaidOutNode, ops: List[Primitive]) -> None:
        cfg = self.config
        r = cfg.arc_radius
        kind = laid.kind
        x = laid.x
        line = laid.entry_y

        if kind == NodeKind.SKIP:
            _Pen(ops, x, line).h(laid.width)

        elif kind == NodeKind.SEQUENCE:
            previous = None
            for child in laid.children:
                if previous is not None:
                    _Pen(ops, previous.right, line).to_x(child.x)
                self._emit(child, ops)
                previous = child

        elif kind == NodeKind.CHOICE:
            inner_right = laid.guides["inner_right"]
            first = laid.children[0]
            _Pen(ops, x, line).to_x(first.x)
            self._emit(first, ops)
            _Pen(ops, first.right, first.exit_y).to_x(laid.right)
            for branch in laid.children[1:]:
                _drop(ops, x, line, branch.entry_y, r)
                self._emit(branch, ops)
                _Pen(ops, branch.right, branch.exit_y).to_x(inner_right)
                _rise(ops, inner_right, branch.exit_y, line, r)

        elif kind == NodeKind.OPTIONAL:
            child = laid.children[0]
            _Pen(ops, x, line).to_x(child.x)
            self._emit(child, ops)
            _Pen(ops, child.right, line).to_x(laid.right)
            self._bypass(laid, ops)

        elif kind in (NodeKind.ONE_OR_MORE, NodeKind.ZERO_OR_MORE):
            body = laid.children[0]
            _Pen(ops, x, line).to_x(body.x)
            self._emit(body, ops)
            _Pen(ops, body.right, line).to_x(laid.right)
            self._loop(laid, ops)
            if kind == NodeKind.ZERO_OR_MORE:
                self._bypass(laid, ops)

        elif kind == NodeKind.ANNOTATION:
            p = cfg.annotation_padding
            child = laid.children[0]
            ops.append(
                Box(x, laid.y, laid.width, laid.height, 0.0, _role("annotation", laid.node.style))
            )
            _Pen(ops, x, line).to_x(child.x)
            self._emit(child, ops)
            _Pen(ops, child.right, line).to_x(laid.right)
            ops.append(Text(x + p, laid.guides["label_baseline"], laid.label, "start", "comment"))

        elif kind == NodeKind.DIAGRAM:
            self._diagram(laid, ops)

        else:
            self._box(laid, ops)

    def _box(self, laid: LaidOutNode, ops: List[Primitive]) -> None:
        kind = laid.kind
        radius = 0.0
        if kind == NodeKind.TERMINAL:
            role = _role("terminal", laid.node.style)
        elif kind == NodeKind.NONTERMINAL:
            role = _role("nonterminal", laid.node.style)
            radius = self.config.box_style.corner_radius
        elif kind == NodeKind.STACK:
            role = "stack"
        elif kind == NodeKind.PLACEHOLDER:
            role = _role("placeholder", laid.node.style)
        else:
            role = "placeholder unsupported"
        ops.append(Box(laid.x, laid.y, laid.width, laid.height, radius, role))
        ops.append(Text(laid.x + laid.width / 2, laid.y + laid.height / 2, laid.label))

    def _bypass(self, laid: LaidOutNode, ops: List[Primitive]) -> None:
        r = self.config.arc_radius
        bypass = laid.guides["bypass"]
        line = laid.entry_y
        _drop(ops, laid.x, line, bypass, r)
        _Pen(ops, laid.x + 2 * r, bypass).to_x(laid.right - 2 * r)
        _rise(ops, laid.right - 2 * r, bypass, line, r)

    def _loop(self, laid: LaidOutNode, ops: List[Primitive]) -> None:
        line = laid.entry_y
        loop = laid.guides["loop"]
        left = laid.guides["loop_left"]
        right = laid.guides["loop_right"]
        depth = loop - line
        rr = min(self.config.arc_radius, depth / 2)
        pen = _Pen(ops, right, line).turn(EAST, SOUTH, rr).v(depth - 2 * rr).turn(SOUTH, WEST, rr)
        sep = laid.separator
        if sep is not None:
            pen.to_x(sep.right)
            self._emit(sep, ops)
            pen = _Pen(ops, sep.x, loop)
        pen.to_x(left).turn(WEST, NORTH, rr).v(-(depth - 2 * rr)).turn(NORTH, EAST, rr)

    def _diagram(self, laid: LaidOutNode, ops: List[Primitive]) -> None:
        cfg = self.config
        line = laid.entry_y
        body = laid.children[0]
        left = laid.guides["track_left"]
        right = laid.guides["track_right"]
        tick = cfg.box_height / 3

        if laid.label:
            ops.append(Text(left, laid.guides["title_baseline"], laid.label, "start", "title"))
        doc_height = laid.guides["doc_height"]
        for index, doc in enumerate(laid.node.docs):
            baseline = laid.guides["docs_top"] + (index + 1) * doc_height - 4
            ops.append(Text(left, baseline, doc, "start", "doc"))

        ops.append(Line(left, line - tick, left, line + tick, "marker"))
        _Pen(ops, left, line).to_x(body.x)
        ops.append(Arrow(left + cfg.marker_length * 0.75, line, tick))
        self._emit(body, ops)
        _Pen(ops, body.right, line).to_x(right)
        ops.append(Line(right - 4, line - tick, right - 4, line + tick, "marker"))
        ops.append(Line(right, line - tick, right, line + tick, "marker"))


def _role(base: str, style: Tuple[str, ...]) -> str:
    return " ".join((base,) + tuple(style))


def render(laid: LaidOutNode, config: Optional[DiagramConfig] = None) -> Drawing:
    return Renderer(config).render(laid)


__all__ = ["Arc", "Arrow", "Box", "Drawing", "Line", "Primitive", "Renderer", "Text", "render"]
