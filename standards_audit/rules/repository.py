"""Rule document loading and strict validation."""

from __future__ import annotations

import json
import re
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from standards_audit.errors import RuleValidationError
from standards_audit.logging import get_logger
from standards_audit.rules.models import Category, Rule, RuleDocument, Severity

logger = get_logger("rules")

BUNDLED_STANDARDS_DIR = Path(__file__).resolve().parent.parent / "standards"
RULES_FILENAME = "rules.json"
SUPPORTED_SCHEMA_MAJOR = 1
TOTAL_CATEGORY_WEIGHT = 100

_REQUIRED_DOCUMENT_KEYS = ("ecosystem", "schemaVersion", "categories")
_REQUIRED_RULE_KEYS = ("id", "pattern", "severity", "message", "applicableTo")
_OPTIONAL_RULE_KEYS = ("filePattern", "docRef", "target", "fix")
_SCHEMA_VERSION_RE = re.compile(r"^(?P<major>\d+)(?:\.\d+){0,2}$")
_TEMPLATE_GROUP_RE = re.compile(r"\\(?:g<(?P<named>\w+)>|(?P<numbered>\d{1,2}))")


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating one rule document."""

    ecosystem: str
    source: str
    ok: bool
    problems: tuple[str, ...] = ()
    rule_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "ecosystem": self.ecosystem,
            "source": self.source,
            "ok": self.ok,
            "problems": list(self.problems),
            "rule_count": self.rule_count,
        }


class RuleRepository:
    """Loads, validates, and caches rule documents per ecosystem.

    Directories in ``search_paths`` are consulted in order, then the bundled
    standards directory. A document lives at ``<dir>/<ecosystem>/rules.json``.
    """

    def __init__(self, search_paths: Iterable[Path] | None = None) -> None:
        self._search_paths = [Path(path) for path in (search_paths or [])]
        self._search_paths.append(BUNDLED_STANDARDS_DIR)
        self._cache: dict[str, RuleDocument] = {}
        self._lock = threading.Lock()

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def load(self, ecosystem: str) -> RuleDocument:
        """Return the validated document for ``ecosystem``, loading it once."""
        with self._lock:
            cached = self._cache.get(ecosystem)
            if cached is not None:
                return cached
            path = self.locate(ecosystem)
            if path is None:
                searched = ", ".join(str(item) for item in self._search_paths)
                raise RuleValidationError(
                    f"No rule document for ecosystem '{ecosystem}' (searched: {searched})"
                )
            document = load_document(path, expected_ecosystem=ecosystem)
            logger.info(
                "Loaded %d rules for %s from %s", len(document.rules), ecosystem, path
            )
            self._cache[ecosystem] = document
            return document

    def locate(self, ecosystem: str) -> Path | None:
        for directory in self._search_paths:
            candidate = directory / ecosystem / RULES_FILENAME
            if candidate.is_file():
                return candidate
        return None

    def available_ecosystems(self) -> list[str]:
        found: set[str] = set()
        for directory in self._search_paths:
            if not directory.is_dir():
                continue
            for child in directory.iterdir():
                if (child / RULES_FILENAME).is_file():
                    found.add(child.name)
        return sorted(found)

    def validate_all(self) -> list[ValidationResult]:
        """Validate every discoverable document without caching it."""
        results: list[ValidationResult] = []
        for ecosystem in self.available_ecosystems():
            path = self.locate(ecosystem)
            if path is None:
                continue
            try:
                document = load_document(path, expected_ecosystem=ecosystem)
            except RuleValidationError as exc:
                results.append(
                    ValidationResult(
                        ecosystem=ecosystem,
                        source=str(path),
                        ok=False,
                        problems=tuple(exc.problems or [exc.message]),
                    )
                )
                continue
            results.append(
                ValidationResult(
                    ecosystem=ecosystem,
                    source=str(path),
                    ok=True,
                    rule_count=len(document.rules),
                )
            )
        return results


def load_document(path: Path, *, expected_ecosystem: str | None = None) -> RuleDocument:
    """Read and validate a JSON rule document."""
    try:
        raw_text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise RuleValidationError(f"Cannot read rule document {path}: {exc}") from exc
    try:
        loaded = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise RuleValidationError(
            f"Invalid JSON in rule document {path}",
            problems=[f"line {exc.lineno} column {exc.colno}: {exc.msg}"],
            source=str(path),
        ) from exc
    return parse_document(loaded, source=str(path), expected_ecosystem=expected_ecosystem)


def parse_document(
    loaded: Any,
    *,
    source: str = "<memory>",
    expected_ecosystem: str | None = None,
) -> RuleDocument:
    """Validate a decoded rule document mapping, collecting every problem."""
    if not isinstance(loaded, dict):
        raise RuleValidationError(
            f"Invalid rule document {source}",
            problems=["document must be a JSON object"],
            source=source,
        )

    problems: list[str] = []
    missing = [key for key in _REQUIRED_DOCUMENT_KEYS if key not in loaded]
    if missing:
        raise RuleValidationError(
            f"Invalid rule document {source}",
            problems=[f"missing required fields: {', '.join(missing)}"],
            source=source,
        )

    ecosystem = loaded["ecosystem"]
    if not isinstance(ecosystem, str) or not ecosystem:
        problems.append("ecosystem must be a non-empty string")
        ecosystem = ""
    elif expected_ecosystem is not None and ecosystem != expected_ecosystem:
        problems.append(
            f"ecosystem mismatch: document says '{ecosystem}' but '{expected_ecosystem}' "
            "was requested"
        )

    schema_version = loaded["schemaVersion"]
    if not isinstance(schema_version, str):
        problems.append("schemaVersion must be a string")
        schema_version = ""
    else:
        match = _SCHEMA_VERSION_RE.match(schema_version)
        if match is None:
            problems.append(f"schemaVersion '{schema_version}' is not a version string")
        elif int(match.group("major")) != SUPPORTED_SCHEMA_MAJOR:
            problems.append(
                f"unsupported schemaVersion '{schema_version}' "
                f"(expected {SUPPORTED_SCHEMA_MAJOR}.x)"
            )

    raw_categories = loaded["categories"]
    categories: list[Category] = []
    if not isinstance(raw_categories, dict) or not raw_categories:
        problems.append("categories must be a non-empty object")
    else:
        seen_ids: set[str] = set()
        total_weight = 0
        for name, raw_category in raw_categories.items():
            category = _parse_category(name, raw_category, seen_ids, problems)
            if category is not None:
                categories.append(category)
                total_weight += category.weight
        if len(categories) == len(raw_categories) and total_weight != TOTAL_CATEGORY_WEIGHT:
            problems.append(
                f"category weights sum to {total_weight}, expected {TOTAL_CATEGORY_WEIGHT}"
            )

    if problems:
        raise RuleValidationError(
            f"Invalid rule document {source}", problems=problems, source=source
        )

    return RuleDocument(
        ecosystem=ecosystem,
        schema_version=schema_version,
        categories=tuple(categories),
        source=source,
    )


def _parse_category(
    name: str,
    raw: Any,
    seen_ids: set[str],
    problems: list[str],
) -> Category | None:
    if not isinstance(raw, dict):
        problems.append(f"category '{name}' must be an object")
        return None

    weight = raw.get("weight")
    if isinstance(weight, bool) or not isinstance(weight, int) or weight < 0:
        problems.append(f"category '{name}' weight must be a non-negative integer")
        return None

    raw_rules = raw.get("rules")
    if not isinstance(raw_rules, list):
        problems.append(f"category '{name}' is missing a 'rules' array")
        return None

    rules: list[Rule] = []
    for index, raw_rule in enumerate(raw_rules):
        rule = _parse_rule(name, index, raw_rule, problems)
        if rule is None:
            continue
        if rule.rule_id in seen_ids:
            problems.append(f"duplicate rule id '{rule.rule_id}'")
            continue
        seen_ids.add(rule.rule_id)
        rules.append(rule)
    return Category(name=name, weight=weight, rules=tuple(rules))


def _parse_rule(category: str, index: int, raw: Any, problems: list[str]) -> Rule | None:
    where = f"rule {index} in '{category}'"
    if not isinstance(raw, dict):
        problems.append(f"{where} must be an object")
        return None

    rule_id = raw.get("id")
    if isinstance(rule_id, str) and rule_id:
        where = f"rule '{rule_id}'"

    missing = [key for key in _REQUIRED_RULE_KEYS if key not in raw]
    if missing:
        problems.append(f"{where} missing required fields: {', '.join(missing)}")
        return None

    unknown = sorted(set(raw) - set(_REQUIRED_RULE_KEYS) - set(_OPTIONAL_RULE_KEYS))
    if unknown:
        problems.append(f"{where} has unknown fields: {', '.join(unknown)}")
        return None

    before = len(problems)
    if not isinstance(rule_id, str) or not rule_id:
        problems.append(f"{where} id must be a non-empty string")

    severity: Severity | None = None
    raw_severity = raw["severity"]
    try:
        severity = Severity(raw_severity)
    except ValueError:
        choices = ", ".join(item.value for item in Severity)
        problems.append(f"{where} has invalid severity '{raw_severity}' (expected: {choices})")

    message = raw["message"]
    if not isinstance(message, str) or not message.strip():
        problems.append(f"{where} message must be a non-empty string")

    applicable = raw["applicableTo"]
    if (
        not isinstance(applicable, list)
        or not applicable
        or not all(isinstance(item, str) and item for item in applicable)
    ):
        problems.append(f"{where} applicableTo must be a non-empty list of strings")
        applicable = []

    pattern: re.Pattern[str] | None = None
    raw_pattern = raw["pattern"]
    if not isinstance(raw_pattern, str) or not raw_pattern:
        problems.append(f"{where} pattern must be a non-empty string")
    else:
        try:
            pattern = re.compile(raw_pattern, re.MULTILINE)
        except re.error as exc:
            problems.append(f"{where} pattern does not compile: {exc}")

    file_pattern = _optional_str(raw, "filePattern", where, problems)
    doc_ref = _optional_str(raw, "docRef", where, problems)
    fix = _optional_str(raw, "fix", where, problems)

    target = raw.get("target", "content")
    if target not in {"content", "path"}:
        problems.append(f"{where} target must be 'content' or 'path'")
    elif target == "path" and fix is not None:
        problems.append(f"{where} fix is only supported for content rules")

    if pattern is not None and fix is not None:
        template_problem = _fix_template_problem(pattern, fix)
        if template_problem is not None:
            problems.append(f"{where} fix template is invalid: {template_problem}")

    if len(problems) != before or severity is None or pattern is None:
        return None

    return Rule(
        rule_id=rule_id,
        category=category,
        pattern=pattern,
        severity=severity,
        message=message,
        applicable_to=frozenset(applicable),
        file_pattern=file_pattern,
        doc_ref=doc_ref,
        target=target,
        fix=fix,
    )


def _fix_template_problem(pattern: re.Pattern[str], fix: str) -> str | None:
    for match in _TEMPLATE_GROUP_RE.finditer(fix):
        reference = match.group("named") or match.group("numbered")
        if reference.isdigit():
            if not 0 <= int(reference) <= pattern.groups:
                return f"group {reference} does not exist"
        elif reference not in pattern.groupindex:
            return f"group '{reference}' does not exist"
    return None


def _optional_str(raw: dict[str, Any], key: str, where: str, problems: list[str]) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str) or not value:
        problems.append(f"{where} {key} must be a non-empty string")
        return None
    return value
