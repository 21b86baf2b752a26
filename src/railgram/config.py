"""Diagram configuration: styling, spacing constants and output options."""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union, cast

from .errors import ConfigError
from .registry import RULE_ORDERS

TEXT_MEASUREMENTS = ("estimate", "font")


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ConfigError(msg)


def _as_float(x: Any, path: str) -> float:
    _require(
        isinstance(x, (int, float)) and not isinstance(x, bool), f"{path} must be a number"
    )
    _require(math.isfinite(x), f"{path} must be a finite number")
    return float(x)


def _as_nonnegative(x: Any, path: str) -> float:
    value = _as_float(x, path)
    _require(value >= 0, f"{path} must be >= 0")
    return value


def _as_positive(x: Any, path: str) -> float:
    value = _as_float(x, path)
    _require(value > 0, f"{path} must be > 0")
    return value


def _as_str(x: Any, path: str) -> str:
    _require(isinstance(x, str), f"{path} must be a string")
    return cast(str, x)


def _as_bool(x: Any, path: str) -> bool:
    _require(isinstance(x, bool), f"{path} must be a boolean")
    return cast(bool, x)


def _as_dict(x: Any, path: str) -> Dict[str, Any]:
    _require(isinstance(x, dict), f"{path} must be an object")
    return cast(Dict[str, Any], x)


def _as_choice(x: Any, path: str, choices) -> str:
    value = _as_str(x, path)
    _require(value in choices, f"{path} must be one of: {', '.join(choices)}")
    return value


@dataclass(frozen=True)
class BoxStyle:
    terminal_fill: str = "#d7ecff"
    nonterminal_fill: str = "#fff3c4"
    unresolved_fill: str = "#ffd9d9"
    error_fill: str = "#ffb3b3"
    annotation_stroke: str = "#888888"
    corner_radius: float = 8.0

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], path: str = "box_style") -> "BoxStyle":
        data = _as_dict(data, path)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        _require(not unknown, f"{path}: unknown option(s): {', '.join(unknown)}")
        values: Dict[str, Any] = {}
        for key, raw in data.items():
            if key == "corner_radius":
                values[key] = _as_nonnegative(raw, f"{path}.{key}")
            else:
                values[key] = _as_str(raw, f"{path}.{key}")
        return cls(**values)


@dataclass(frozen=True)
class DiagramConfig:
    # output
    include_silent_rules: bool = True
    rule_order: str = "declaration"
    title_per_rule: bool = True

    # styling
    track_color: str = "#333333"
    track_width: float = 2.0
    font: str = "monospace"
    font_size: float = 14.0
    comment_font_size: float = 12.0
    font_path: Optional[str] = None
    box_style: BoxStyle = field(default_factory=BoxStyle)
    background: str = "#ffffff"

    # spacing
    branch_spacing: float = 10.0
    connector_length: float = 10.0
    arc_radius: float = 10.0
    box_padding: float = 10.0
    box_padding_y: float = 5.0
    annotation_padding: float = 6.0
    marker_length: float = 20.0
    padding: float = 10.0
    diagram_spacing: float = 20.0

    # label measurement
    text_measurement: str = "estimate"
    char_width: float = 8.5

    def __post_init__(self) -> None:
        _require(
            self.rule_order in RULE_ORDERS,
            f"rule_order must be one of: {', '.join(RULE_ORDERS)}",
        )
        _require(
            self.text_measurement in TEXT_MEASUREMENTS,
            f"text_measurement must be one of: {', '.join(TEXT_MEASUREMENTS)}",
        )
        _require(self.arc_radius > 0, "arc_radius must be > 0")
        _require(self.font_size > 0, "font_size must be > 0")

    @property
    def box_height(self) -> float:
        return self.font_size + 2 * self.box_padding_y

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "DiagramConfig":
        data = _as_dict(data, "config")
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        _require(not unknown, f"unknown config option(s): {', '.join(unknown)}")

        values: Dict[str, Any] = {}
        for key, raw in data.items():
            if key in {"include_silent_rules", "title_per_rule"}:
                values[key] = _as_bool(raw, key)
            elif key == "rule_order":
                values[key] = _as_choice(raw, key, RULE_ORDERS)
            elif key == "text_measurement":
                values[key] = _as_choice(raw, key, TEXT_MEASUREMENTS)
            elif key == "box_style":
                values[key] = BoxStyle.from_mapping(raw)
            elif key == "font_path":
                values[key] = None if raw is None else _as_str(raw, key)
            elif key in {"track_color", "font", "background"}:
                values[key] = _as_str(raw, key)
            elif key in {"arc_radius", "font_size", "comment_font_size", "char_width"}:
                values[key] = _as_positive(raw, key)
            else:
                values[key] = _as_nonnegative(raw, key)
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "DiagramConfig":
        return replace(self, **overrides)


def load_config(path: Union[str, Path]) -> DiagramConfig:
    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ConfigError(
            f"invalid JSON in {config_path} at line {exc.lineno}, column {exc.colno}: {exc.msg}"
        ) from exc
    return DiagramConfig.from_mapping(data)


__all__ = ["BoxStyle", "DiagramConfig", "TEXT_MEASUREMENTS", "load_config"]
