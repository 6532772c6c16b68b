"""Typed rule document model."""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass
from enum import Enum
from typing import Literal

WILDCARD = "*"


class Severity(str, Enum):
    """Ordinal violation importance."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANKS[self]


_SEVERITY_RANKS = {Severity.ERROR: 3, Severity.WARNING: 2, Severity.INFO: 1}


def match_file_pattern(pattern: str, path: str) -> bool:
    """Match a relative POSIX path against a rule file glob.

    Patterns without a slash are matched against the file name only, so
    ``*.py`` selects Python files at any depth.
    """
    if "/" not in pattern:
        return fnmatch.fnmatchcase(path.rsplit("/", 1)[-1], pattern)
    return fnmatch.fnmatchcase(path, pattern)


@dataclass(frozen=True, slots=True)
class Rule:
    """A single pattern-based check."""

    rule_id: str
    category: str
    pattern: re.Pattern[str]
    severity: Severity
    message: str
    applicable_to: frozenset[str]
    file_pattern: str | None = None
    doc_ref: str | None = None
    target: Literal["content", "path"] = "content"
    fix: str | None = None

    def applies_to_path(self, path: str) -> bool:
        """Return True if the rule's file pattern selects ``path``."""
        if self.file_pattern is None:
            return True
        return match_file_pattern(self.file_pattern, path)

    def is_applicable(self, tags: frozenset[str]) -> bool:
        return WILDCARD in self.applicable_to or bool(self.applicable_to & tags)


@dataclass(frozen=True, slots=True)
class Category:
    """A named, weighted group of rules."""

    name: str
    weight: int
    rules: tuple[Rule, ...]


@dataclass(frozen=True, slots=True)
class RuleDocument:
    """A validated, versioned rule set for one ecosystem."""

    ecosystem: str
    schema_version: str
    categories: tuple[Category, ...]
    source: str = "<memory>"

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(rule for category in self.categories for rule in category.rules)

    def rule(self, rule_id: str) -> Rule | None:
        for candidate in self.rules:
            if candidate.rule_id == rule_id:
                return candidate
        return None

    def category(self, name: str) -> Category | None:
        for candidate in self.categories:
            if candidate.name == name:
                return candidate
        return None
