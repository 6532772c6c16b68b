"""Fix suggestions for violations. Nothing here writes to disk."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from standards_audit.matcher import Violation
from standards_audit.rules.filtering import ActiveRuleSet
from standards_audit.rules.models import RuleDocument


@dataclass(frozen=True, slots=True)
class FixSuggestion:
    """Replacement text proposed for the line a violation points at."""

    violation: Violation
    suggested_text: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "violation": self.violation.to_dict(),
            "original_text": self.violation.evidence,
            "suggested_text": self.suggested_text,
        }


def suggest_fixes(
    violations: Iterable[Violation],
    rules: RuleDocument | ActiveRuleSet,
) -> list[FixSuggestion]:
    """Apply each rule's ``fix`` template to its violation's line.

    Violations whose rule has no template, or whose template leaves the line
    unchanged, get no suggestion. Applying suggestions is left to an editor
    that asks for confirmation first.
    """
    suggestions: list[FixSuggestion] = []
    for violation in violations:
        rule = rules.rule(violation.rule_id)
        if rule is None or rule.fix is None or violation.line is None:
            continue
        replaced = rule.pattern.sub(rule.fix, violation.evidence, count=1)
        if replaced == violation.evidence:
            continue
        suggestions.append(FixSuggestion(violation=violation, suggested_text=replaced))
    return suggestions
