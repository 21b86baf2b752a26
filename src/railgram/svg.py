"""SVG serialization of drawings."""
from __future__ import annotations

import math
import xml.etree.ElementTree as ET
from typing import Iterable, List, Optional, Sequence

from .config import DiagramConfig
from .measure import TextMeasurer
from .render import Arc, Arrow, Box, Drawing, Line, Primitive, Text
from .resources import load_stylesheet_template

SVG_NS = "http://www.w3.org/2000/svg"
ET.register_namespace("", SVG_NS)


def _q(tag: str) -> str:
    return f"{{{SVG_NS}}}{tag}"


def _fmt(value: float) -> str:
    if math.isclose(value, round(value)):
        return str(int(round(value)))
    return f"{value:.3f}".rstrip("0").rstrip(".")


def stylesheet(config: DiagramConfig) -> str:
    style = config.box_style
    return load_stylesheet_template().substitute(
        background=config.background,
        track_color=config.track_color,
        track_width=_fmt(config.track_width),
        font=config.font,
        font_size=_fmt(config.font_size),
        comment_font_size=_fmt(config.comment_font_size),
        terminal_fill=style.terminal_fill,
        nonterminal_fill=style.nonterminal_fill,
        unresolved_fill=style.unresolved_fill,
        error_fill=style.error_fill,
        annotation_stroke=style.annotation_stroke,
    )


def _primitive_element(op: Primitive) -> ET.Element:
    if isinstance(op, Line):
        return ET.Element(
            _q("line"),
            {
                "x1": _fmt(op.x1),
                "y1": _fmt(op.y1),
                "x2": _fmt(op.x2),
                "y2": _fmt(op.y2),
                "class": op.role,
            },
        )
    if isinstance(op, Arc):
        r = _fmt(op.radius)
        d = f"M {_fmt(op.x1)} {_fmt(op.y1)} A {r} {r} 0 0 {op.sweep} {_fmt(op.x2)} {_fmt(op.y2)}"
        return ET.Element(_q("path"), {"d": d, "class": op.role})
    if isinstance(op, Box):
        attrs = {
            "x": _fmt(op.x),
            "y": _fmt(op.y),
            "width": _fmt(op.width),
            "height": _fmt(op.height),
        }
        if op.radius:
            attrs["rx"] = _fmt(op.radius)
            attrs["ry"] = _fmt(op.radius)
        attrs["class"] = op.role
        return ET.Element(_q("rect"), attrs)
    if isinstance(op, Text):
        attrs = {"x": _fmt(op.x), "y": _fmt(op.y), "text-anchor": op.anchor}
        if op.anchor == "middle":
            attrs["dominant-baseline"] = "central"
        attrs["class"] = op.role
        elem = ET.Element(_q("text"), attrs)
        elem.text = op.text
        return elem
    if isinstance(op, Arrow):
        half = op.size / 2
        d = (
            f"M {_fmt(op.x - op.size)} {_fmt(op.y - half)} "
            f"L {_fmt(op.x)} {_fmt(op.y)} "
            f"L {_fmt(op.x - op.size)} {_fmt(op.y + half)} Z"
        )
        return ET.Element(_q("path"), {"d": d, "class": op.role})
    raise TypeError(f"unknown drawing primitive: {type(op).__name__}")


def drawing_group(drawing: Drawing, x: float = 0.0, y: float = 0.0) -> ET.Element:
    attrs = {"class": " ".join(drawing.classes), "data-rule": drawing.name}
    if x or y:
        attrs["transform"] = f"translate({_fmt(x)}, {_fmt(y)})"
    group = ET.Element(_q("g"), attrs)
    for op in drawing.operations:
        group.append(_primitive_element(op))
    return group


def _svg_root(width: float, height: float, config: DiagramConfig) -> ET.Element:
    w = _fmt(max(width, 0.0))
    h = _fmt(max(height, 0.0))
    root = ET.Element(
        _q("svg"), {"class": "railroad", "width": w, "height": h, "viewBox": f"0 0 {w} {h}"}
    )
    style = ET.SubElement(root, _q("style"))
    style.text = stylesheet(config)
    if config.background.lower() not in {"none", "transparent"}:
        ET.SubElement(
            root,
            _q("rect"),
            {"x": "0", "y": "0", "width": w, "height": h, "fill": config.background,
             "class": "background"},
        )
    return root


def render_svg(drawing: Drawing, config: Optional[DiagramConfig] = None) -> str:
    """Standalone SVG document for one rule diagram."""
    config = config or DiagramConfig()
    root = _svg_root(drawing.width, drawing.height, config)
    root.append(drawing_group(drawing))
    return _pretty_xml(root)


def render_document(
    drawings: Iterable[Drawing],
    config: Optional[DiagramConfig] = None,
    docs: Sequence[str] = (),
) -> str:
    """One SVG with every diagram stacked vertically, grammar docs on top."""
    config = config or DiagramConfig()
    drawings = list(drawings)
    header: List[ET.Element] = []
    y = 0.0
    width = 0.0
    measurer = TextMeasurer(config)
    for doc in docs:
        y += config.comment_font_size + 4
        text = ET.Element(
            _q("text"),
            {"x": _fmt(config.padding), "y": _fmt(config.padding + y), "text-anchor": "start",
             "class": "doc"},
        )
        text.text = doc
        header.append(text)
        width = max(width, 2 * config.padding + measurer.width(doc, config.comment_font_size))
    if docs:
        y += config.padding

    groups: List[ET.Element] = []
    for index, drawing in enumerate(drawings):
        if index:
            y += config.diagram_spacing
        groups.append(drawing_group(drawing, 0.0, y))
        y += drawing.height
        width = max(width, drawing.width)

    root = _svg_root(width, y, config)
    for elem in header + groups:
        root.append(elem)
    return _pretty_xml(root)


def _pretty_xml(element: ET.Element) -> str:
    ET.indent(element, space="  ")
    return ET.tostring(element, encoding="unicode")


__all__ = ["drawing_group", "render_document", "render_svg", "stylesheet"]
