"""Output rendering."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import click

from standards_audit import __version__
from standards_audit.fixes import FixSuggestion
from standards_audit.report import ScoreReport

_SEVERITY_COLORS = {"error": "red", "warning": "yellow", "info": "cyan"}


def render_human(report: ScoreReport, *, limit: int = 20) -> str:
    """Render a compact colorized summary."""
    grade, color = _score_grade(report.overall_score)
    lines: list[str] = [
        click.style(f"{report.project_name or report.ecosystem} standards audit", bold=True),
        click.style(
            f"Overall score: {report.overall_score}/100 ({grade})",
            fg=color,
            bold=True,
        ),
    ]

    lines.append(click.style("Categories:", bold=True))
    for name, score in report.category_scores.items():
        weight = report.category_weights.get(name, score)
        lines.append(f"- {name}: {score}/{weight}")

    counts = report.counts_by_severity
    lines.append(
        f"Violations: {counts['error']} errors, {counts['warning']} warnings, "
        f"{counts['info']} info ({report.files_scanned} files scanned, {report.mode} mode)"
    )
    for violation in report.violations[:limit]:
        location = violation.file if violation.line is None else f"{violation.file}:{violation.line}"
        severity = click.style(
            violation.severity.value.upper(), fg=_SEVERITY_COLORS[violation.severity.value]
        )
        lines.append(f"  {severity} [{violation.rule_id}] {location} {violation.message}")
    if len(report.violations) > limit:
        lines.append(f"  ... {len(report.violations) - limit} more (use --format json)")

    if report.skipped_files:
        title = "Skipped files (report incomplete):"
        lines.append(click.style(title, fg="yellow", bold=True))
        for skipped in report.skipped_files:
            lines.append(f"- {skipped.file}: {skipped.reason}")
    return "\n".join(lines)


def render_json(report: ScoreReport, *, config_source: str | None = None) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(report, config_source=config_source), sort_keys=True)


def build_json_payload(report: ScoreReport, *, config_source: str | None = None) -> dict[str, Any]:
    """Build the report payload plus a ``meta`` block."""
    payload = report.to_dict()
    payload["meta"] = {
        "generated_at": _timestamp(),
        "version": __version__,
        "config_source": config_source,
    }
    return payload


def render_fixes_human(suggestions: list[FixSuggestion]) -> str:
    if not suggestions:
        return "No automatic fix suggestions."
    lines = [click.style(f"{len(suggestions)} fix suggestions (not applied):", bold=True)]
    for suggestion in suggestions:
        violation = suggestion.violation
        lines.append(f"- [{violation.rule_id}] {violation.file}:{violation.line}")
        lines.append(click.style(f"    - {violation.evidence.strip()}", fg="red"))
        lines.append(click.style(f"    + {suggestion.suggested_text.strip()}", fg="green"))
    return "\n".join(lines)


def _timestamp() -> str:
    return datetime.now(tz=UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _score_grade(score: int) -> tuple[str, str]:
    if score >= 90:
        return ("EXCELLENT", "green")
    if score >= 75:
        return ("GOOD", "green")
    if score >= 50:
        return ("FAIR", "yellow")
    return ("POOR", "red")
