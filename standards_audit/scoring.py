"""Category-weighted score aggregation with diminishing per-rule deductions.

Each category starts at its configured weight. Every rule that fired deducts
points from its category; repeated violations of the same rule deduct less
each time, so one noisy rule cannot zero a category on its own while more
violations still never raise a score.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from standards_audit.matcher import Violation
from standards_audit.rules.filtering import ActiveRuleSet
from standards_audit.rules.models import Severity

# Tuning note:
# - SEVERITY_POINTS is the deduction for the first violation of a rule.
# - DECAY shrinks each repeat: the k-th violation deducts points * DECAY**(k-1),
#   so one rule deducts at most points / (1 - DECAY).
# Quick reference for an error rule (5 points, DECAY=0.6):
# 1 hit -> 5.0, 2 hits -> 8.0, 5 hits -> 11.5, limit -> 12.5
SEVERITY_POINTS: dict[Severity, float] = {
    Severity.ERROR: 5.0,
    Severity.WARNING: 2.0,
    Severity.INFO: 0.5,
}

STRICTNESS_MULTIPLIERS: dict[str, float] = {
    "strict": 1.0,
    "advisory": 0.5,
}

DECAY = 0.6


@dataclass(frozen=True, slots=True)
class RuleDeduction:
    """Points removed from a category by one rule."""

    rule_id: str
    category: str
    severity: Severity
    count: int
    points: float

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "category": self.category,
            "severity": self.severity.value,
            "count": self.count,
            "points": round(self.points, 2),
        }


@dataclass(slots=True)
class ScoreBreakdown:
    """Traceable aggregation output."""

    overall_score: int
    category_scores: dict[str, int]
    category_weights: dict[str, int]
    deductions: list[RuleDeduction] = field(default_factory=list)


def aggregate(
    violations: Iterable[Violation],
    active: ActiveRuleSet,
    *,
    strictness: str = "strict",
) -> ScoreBreakdown:
    """Turn violations into per-category and overall scores."""
    multiplier = STRICTNESS_MULTIPLIERS.get(strictness)
    if multiplier is None:
        choices = ", ".join(sorted(STRICTNESS_MULTIPLIERS))
        raise ValueError(f"Unknown strictness '{strictness}'. Expected one of: {choices}")

    counts = Counter(violation.rule_id for violation in violations)
    weights = {category.name: category.weight for category in active.categories}
    deducted = {category.name: 0.0 for category in active.categories}

    deductions: list[RuleDeduction] = []
    for category in active.categories:
        for rule in category.rules:
            count = counts.get(rule.rule_id, 0)
            if count == 0:
                continue
            points = rule_deduction(rule.severity, count) * multiplier
            deducted[category.name] += points
            deductions.append(
                RuleDeduction(
                    rule_id=rule.rule_id,
                    category=category.name,
                    severity=rule.severity,
                    count=count,
                    points=points,
                )
            )

    category_scores = {
        name: _round_half_up(max(0.0, weights[name] - deducted[name])) for name in weights
    }
    overall = _clamp(sum(category_scores.values()), lower=0, upper=100)
    deductions.sort(key=lambda item: (-item.points, item.rule_id))
    return ScoreBreakdown(
        overall_score=overall,
        category_scores=category_scores,
        category_weights=weights,
        deductions=deductions,
    )


def rule_deduction(severity: Severity, count: int) -> float:
    """Geometric-series deduction for ``count`` violations of one rule."""
    if count <= 0:
        return 0.0
    base = SEVERITY_POINTS[severity]
    return base * (1.0 - DECAY**count) / (1.0 - DECAY)


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _clamp(value: int, *, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))
