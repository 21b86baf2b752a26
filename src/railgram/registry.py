"""Immutable rule table with name resolution."""
from __future__ import annotations

from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Tuple

from .errors import ConfigError, DuplicateNameError
from .expressions import Rule, iter_references

RULE_ORDERS = ("declaration", "alphabetical")

# Rules pest provides without a definition in the grammar.
PEST_BUILTINS: FrozenSet[str] = frozenset(
    {
        "ANY",
        "SOI",
        "EOI",
        "NEWLINE",
        "ASCII",
        "ASCII_DIGIT",
        "ASCII_NONZERO_DIGIT",
        "ASCII_BIN_DIGIT",
        "ASCII_OCT_DIGIT",
        "ASCII_HEX_DIGIT",
        "ASCII_ALPHA_LOWER",
        "ASCII_ALPHA_UPPER",
        "ASCII_ALPHA",
        "ASCII_ALPHANUMERIC",
        "LETTER",
        "CASED_LETTER",
        "UPPERCASE_LETTER",
        "LOWERCASE_LETTER",
        "TITLECASE_LETTER",
        "MODIFIER_LETTER",
        "OTHER_LETTER",
        "MARK",
        "NUMBER",
        "DECIMAL_NUMBER",
        "LETTER_NUMBER",
        "OTHER_NUMBER",
        "PUNCTUATION",
        "SYMBOL",
        "SEPARATOR",
        "SPACE_SEPARATOR",
        "LINE_SEPARATOR",
        "PARAGRAPH_SEPARATOR",
        "OTHER",
        "CONTROL",
        "WHITE_SPACE",
        "ALPHABETIC",
        "XID_START",
        "XID_CONTINUE",
    }
)


class RuleRegistry:
    """Read-only table of named rules, in declaration order."""

    def __init__(self, rules: Mapping[str, Rule], builtins: Iterable[str] = ()) -> None:
        self._rules: Mapping[str, Rule] = MappingProxyType(dict(rules))
        self._builtins: FrozenSet[str] = frozenset(builtins)

    @classmethod
    def build(
        cls, rules: Iterable[Rule], builtins: Iterable[str] = PEST_BUILTINS
    ) -> "RuleRegistry":
        table: Dict[str, Rule] = {}
        duplicates: List[str] = []
        for rule in rules:
            if rule.name in table:
                if rule.name not in duplicates:
                    duplicates.append(rule.name)
                continue
            table[rule.name] = rule
        if duplicates:
            raise DuplicateNameError(duplicates)
        return cls(table, builtins)

    def lookup(self, name: str) -> Optional[Rule]:
        return self._rules.get(name)

    def is_builtin(self, name: str) -> bool:
        return name not in self._rules and name in self._builtins

    def resolves(self, name: str) -> bool:
        return name in self._rules or name in self._builtins

    def names(self, order: str = "declaration") -> List[str]:
        if order == "declaration":
            return list(self._rules)
        if order == "alphabetical":
            return sorted(self._rules)
        raise ConfigError(
            f"unknown rule order '{order}' (expected one of: {', '.join(RULE_ORDERS)})"
        )

    def unresolved_references(self) -> List[Tuple[str, str]]:
        missing: List[Tuple[str, str]] = []
        seen = set()
        for rule in self._rules.values():
            for ref in iter_references(rule.expression):
                key = (rule.name, ref)
                if key in seen or self.resolves(ref):
                    continue
                seen.add(key)
                missing.append(key)
        return missing

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __repr__(self) -> str:
        return f"RuleRegistry({list(self._rules)})"


__all__ = ["PEST_BUILTINS", "RULE_ORDERS", "RuleRegistry"]
