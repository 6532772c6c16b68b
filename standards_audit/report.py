"""Deterministic score report assembly."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from standards_audit.detection import ProjectContext, display_name
from standards_audit.errors import AuditTimeoutError
from standards_audit.matcher import TIMEOUT_REASON, SkippedFile, Violation
from standards_audit.rules.models import Severity
from standards_audit.scoring import RuleDeduction, ScoreBreakdown


@dataclass(frozen=True, slots=True)
class ScoreReport:
    """Immutable output of one audit run."""

    ecosystem: str
    frameworks: tuple[str, ...]
    overall_score: int
    category_scores: dict[str, int]
    violations: tuple[Violation, ...]
    skipped_files: tuple[SkippedFile, ...]
    project_name: str = ""
    mode: str = "quick"
    schema_version: str = ""
    files_scanned: int = 0
    timed_out: bool = False
    category_weights: dict[str, int] = field(default_factory=dict)
    deductions: tuple[RuleDeduction, ...] = ()

    @property
    def complete(self) -> bool:
        return not self.skipped_files

    @property
    def counts_by_severity(self) -> dict[str, int]:
        counts = {severity.value: 0 for severity in Severity}
        for violation in self.violations:
            counts[violation.severity.value] += 1
        return counts

    def raise_for_timeout(self) -> None:
        """Raise ``AuditTimeoutError`` if the run was cut short by its deadline."""
        if self.timed_out:
            missed = sum(1 for item in self.skipped_files if item.reason == TIMEOUT_REASON)
            raise AuditTimeoutError(f"Audit timed out; {missed} files were not evaluated")

    def to_dict(self) -> dict[str, Any]:
        return {
            "ecosystem": self.ecosystem,
            "frameworks": list(self.frameworks),
            "project_name": self.project_name,
            "overall_score": self.overall_score,
            "category_scores": dict(self.category_scores),
            "category_weights": dict(self.category_weights),
            "violations": [item.to_dict() for item in self.violations],
            "skipped_files": [item.to_dict() for item in self.skipped_files],
            "deductions": [item.to_dict() for item in self.deductions],
            "summary": {
                "mode": self.mode,
                "schema_version": self.schema_version,
                "files_scanned": self.files_scanned,
                "complete": self.complete,
                "timed_out": self.timed_out,
                "counts_by_severity": self.counts_by_severity,
            },
        }


def violation_sort_key(violation: Violation) -> tuple[int, str, str, int, str, str]:
    """Severity descending, then category, file, and line ascending."""
    return (
        -violation.severity.rank,
        violation.category,
        violation.file,
        violation.line if violation.line is not None else 0,
        violation.rule_id,
        violation.message,
    )


def build_report(
    ctx: ProjectContext,
    violations: Iterable[Violation],
    breakdown: ScoreBreakdown,
    skipped: Iterable[SkippedFile],
    *,
    mode: str,
    schema_version: str,
    files_scanned: int,
    timed_out: bool = False,
) -> ScoreReport:
    """Assemble a report with a fixed, total ordering of its sequences."""
    return ScoreReport(
        ecosystem=ctx.ecosystem,
        frameworks=tuple(sorted(ctx.frameworks)),
        overall_score=breakdown.overall_score,
        category_scores=dict(breakdown.category_scores),
        violations=tuple(sorted(violations, key=violation_sort_key)),
        skipped_files=tuple(sorted(skipped, key=lambda item: (item.file, item.reason))),
        project_name=display_name(ctx),
        mode=mode,
        schema_version=schema_version,
        files_scanned=files_scanned,
        timed_out=timed_out,
        category_weights=dict(breakdown.category_weights),
        deductions=tuple(breakdown.deductions),
    )
