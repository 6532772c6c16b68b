"""Narrow a rule document to the rules applicable to a project."""

from __future__ import annotations

from dataclasses import dataclass

from standards_audit.detection import ProjectContext
from standards_audit.rules.models import Category, Rule, RuleDocument


@dataclass(frozen=True, slots=True)
class ActiveRuleSet:
    """Applicable rules, grouped by their original category.

    Categories left without active rules are kept so their weight still
    counts toward the score denominator.
    """

    ecosystem: str
    schema_version: str
    categories: tuple[Category, ...]

    @property
    def rules(self) -> tuple[Rule, ...]:
        return tuple(rule for category in self.categories for rule in category.rules)

    @property
    def file_patterns(self) -> tuple[str, ...]:
        """Distinct file globs of the active rules, in document order."""
        patterns: dict[str, None] = {}
        for rule in self.rules:
            if rule.file_pattern is not None:
                patterns.setdefault(rule.file_pattern)
        return tuple(patterns)

    @property
    def wants_text_files(self) -> bool:
        """True when some active rule has no file glob and so reads any text file."""
        return any(rule.file_pattern is None for rule in self.rules)

    def rule(self, rule_id: str) -> Rule | None:
        for candidate in self.rules:
            if candidate.rule_id == rule_id:
                return candidate
        return None


def filter_rules(document: RuleDocument, ctx: ProjectContext) -> ActiveRuleSet:
    """Keep rules tagged ``*`` or tagged with the project's ecosystem or frameworks."""
    tags = ctx.tags
    categories = tuple(
        Category(
            name=category.name,
            weight=category.weight,
            rules=tuple(rule for rule in category.rules if rule.is_applicable(tags)),
        )
        for category in document.categories
    )
    return ActiveRuleSet(
        ecosystem=document.ecosystem,
        schema_version=document.schema_version,
        categories=categories,
    )
