"""Rules package."""

from standards_audit.rules.filtering import ActiveRuleSet, filter_rules
from standards_audit.rules.models import WILDCARD, Category, Rule, RuleDocument, Severity
from standards_audit.rules.repository import (
    BUNDLED_STANDARDS_DIR,
    RuleRepository,
    ValidationResult,
    load_document,
    parse_document,
)

__all__ = [
    "BUNDLED_STANDARDS_DIR",
    "WILDCARD",
    "ActiveRuleSet",
    "Category",
    "Rule",
    "RuleDocument",
    "RuleRepository",
    "Severity",
    "ValidationResult",
    "filter_rules",
    "load_document",
    "parse_document",
]
