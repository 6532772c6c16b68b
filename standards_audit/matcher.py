"""Rule evaluation over enumerated files."""

from __future__ import annotations

import bisect
import concurrent.futures
import os
import re
import stat
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from standards_audit.errors import ScanIOError
from standards_audit.logging import get_logger
from standards_audit.rules.models import Rule, Severity

logger = get_logger("matcher")

TIMEOUT_REASON = "timeout"
MAX_DEFAULT_WORKERS = 8


@dataclass(frozen=True, slots=True)
class Violation:
    """A single rule match in a file."""

    rule_id: str
    category: str
    file: str
    line: int | None
    severity: Severity
    message: str
    evidence: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "category": self.category,
            "file": self.file,
            "line": self.line,
            "severity": self.severity.value,
            "message": self.message,
            "evidence": self.evidence,
        }


@dataclass(frozen=True, slots=True)
class SkippedFile:
    """A file that could not be evaluated, with the reason."""

    file: str
    reason: str

    def to_dict(self) -> dict[str, str]:
        return {"file": self.file, "reason": self.reason}


@dataclass(slots=True)
class FileEvaluation:
    """Private result of evaluating one file."""

    path: str
    violations: list[Violation] = field(default_factory=list)
    skipped: SkippedFile | None = None


@dataclass(slots=True)
class EvaluationResult:
    """Merged evaluation output for a run."""

    violations: list[Violation] = field(default_factory=list)
    skipped: list[SkippedFile] = field(default_factory=list)
    files_evaluated: int = 0
    timed_out: bool = False


def evaluate_file(root: Path, path: str, rules: Sequence[Rule]) -> FileEvaluation:
    """Apply every applicable rule to one file. Never raises for IO problems."""
    result = FileEvaluation(path=path)
    applicable = [rule for rule in rules if rule.applies_to_path(path)]
    if not applicable:
        return result

    for rule in applicable:
        if rule.target == "path" and rule.pattern.search(path):
            result.violations.append(_violation(rule, path, line=None, evidence=path))

    content_rules = [rule for rule in applicable if rule.target == "content"]
    if not content_rules:
        return result

    try:
        text = read_source(root / path, path)
    except ScanIOError as exc:
        logger.info("Skipping %s: %s", exc.path, exc.reason)
        result.skipped = SkippedFile(file=exc.path, reason=exc.reason)
        return result

    line_starts = _line_starts(text)
    for rule in content_rules:
        for match in rule.pattern.finditer(text):
            line = _line_for_offset(line_starts, _match_offset(match))
            result.violations.append(
                _violation(rule, path, line=line, evidence=_line_text(text, line_starts, line))
            )
    return result


def evaluate(
    root: Path,
    files: Sequence[str],
    rules: Sequence[Rule],
    *,
    workers: int | None = None,
    deadline: float | None = None,
) -> EvaluationResult:
    """Evaluate files on a worker pool, one task per file.

    ``deadline`` is a ``time.monotonic()`` value; files whose evaluation has
    not finished by then are recorded as skipped with reason ``timeout``.
    """
    merged = EvaluationResult()
    if not files:
        return merged

    max_workers = workers or min(MAX_DEFAULT_WORKERS, os.cpu_count() or 1)
    executor = concurrent.futures.ThreadPoolExecutor(
        max_workers=max_workers, thread_name_prefix="standards-audit"
    )
    futures = {
        executor.submit(_evaluate_before_deadline, root, path, rules, deadline): path
        for path in files
    }
    pending = set(futures)
    try:
        for future in concurrent.futures.as_completed(futures, timeout=_remaining(deadline)):
            pending.discard(future)
            evaluation = future.result()
            if evaluation is None:
                merged.timed_out = True
                merged.skipped.append(SkippedFile(file=futures[future], reason=TIMEOUT_REASON))
                continue
            merged.violations.extend(evaluation.violations)
            if evaluation.skipped is not None:
                merged.skipped.append(evaluation.skipped)
            else:
                merged.files_evaluated += 1
    except concurrent.futures.TimeoutError:
        merged.timed_out = True
    finally:
        executor.shutdown(wait=not merged.timed_out, cancel_futures=True)

    if pending:
        merged.timed_out = True
        for future in pending:
            merged.skipped.append(SkippedFile(file=futures[future], reason=TIMEOUT_REASON))
    if merged.timed_out:
        logger.warning(
            "Deadline reached: %d of %d files were not evaluated",
            sum(1 for item in merged.skipped if item.reason == TIMEOUT_REASON),
            len(files),
        )
    return merged


def read_source(path: Path, display_path: str) -> str:
    """Read a regular file as UTF-8 text, raising ``ScanIOError`` on failure."""
    try:
        if not stat.S_ISREG(path.stat().st_mode):
            raise ScanIOError(display_path, "unreadable: not a regular file")
        data = path.read_bytes()
    except OSError as exc:
        raise ScanIOError(display_path, f"unreadable: {exc.strerror or exc}") from exc
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ScanIOError(display_path, "unreadable: not valid UTF-8") from exc


def _evaluate_before_deadline(
    root: Path, path: str, rules: Sequence[Rule], deadline: float | None
) -> FileEvaluation | None:
    if deadline is not None and time.monotonic() >= deadline:
        return None
    return evaluate_file(root, path, rules)


def _remaining(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _violation(rule: Rule, path: str, *, line: int | None, evidence: str) -> Violation:
    return Violation(
        rule_id=rule.rule_id,
        category=rule.category,
        file=path,
        line=line,
        severity=rule.severity,
        message=rule.message,
        evidence=evidence,
    )


def _line_starts(text: str) -> list[int]:
    starts = [0]
    index = text.find("\n")
    while index != -1:
        starts.append(index + 1)
        index = text.find("\n", index + 1)
    return starts


def _line_for_offset(line_starts: list[int], offset: int) -> int:
    return bisect.bisect_right(line_starts, offset)


def _line_text(text: str, line_starts: list[int], line: int) -> str:
    start = line_starts[line - 1]
    end = text.find("\n", start)
    if end == -1:
        end = len(text)
    return text[start:end].rstrip()


def _match_offset(match: re.Match[str]) -> int:
    # A leading \s* may swallow blank lines; report the first visible character.
    matched = match.group(0)
    stripped = matched.lstrip()
    if not stripped:
        return match.start()
    return match.start() + len(matched) - len(stripped)
