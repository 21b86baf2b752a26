"""Error taxonomy and non-fatal warnings for railgram."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

W_UNRESOLVED_REFERENCE = "W_UNRESOLVED_REFERENCE"
W_UNSUPPORTED_CONSTRUCT = "W_UNSUPPORTED_CONSTRUCT"
W_STRUCTURAL_ERROR = "W_STRUCTURAL_ERROR"


class RailgramError(ValueError):
    """Structured error with stable code for CLI mapping."""

    code = "E_RAILGRAM"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message

    def __str__(self) -> str:
        return self.message


class DuplicateNameError(RailgramError):
    """Raised when two rules share a name at registry build time."""

    code = "E_DUPLICATE_RULE"

    def __init__(self, names: Iterable[str]) -> None:
        self.names: Tuple[str, ...] = tuple(names)
        quoted = ", ".join(f"'{name}'" for name in self.names)
        super().__init__(f"duplicate rule name(s): {quoted}")


class StructuralError(RailgramError):
    """Malformed expression tree; fatal only for the rule that contains it."""

    code = "E_STRUCTURE"


class GrammarSyntaxError(RailgramError):
    code = "E_PARSE_GRAMMAR"

    def __init__(self, message: str, line: Optional[int] = None, column: Optional[int] = None) -> None:
        location = (
            f" at line {line}, column {column}" if line is not None and column is not None else ""
        )
        super().__init__(f"{message}{location}")
        self.line = line
        self.column = column


class ConfigError(RailgramError):
    code = "E_CONFIG"


@dataclass(frozen=True)
class DiagramWarning:
    """A recovered, per-rule problem reported alongside successful output."""

    code: str
    rule: Optional[str]
    message: str

    def __str__(self) -> str:
        if self.rule is None:
            return self.message
        return f"rule '{self.rule}': {self.message}"


__all__ = [
    "ConfigError",
    "DiagramWarning",
    "DuplicateNameError",
    "GrammarSyntaxError",
    "RailgramError",
    "StructuralError",
    "W_STRUCTURAL_ERROR",
    "W_UNRESOLVED_REFERENCE",
    "W_UNSUPPORTED_CONSTRUCT",
]
