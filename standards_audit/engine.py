"""Audit orchestration: detect, load, filter, scan, aggregate, report."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from standards_audit.config import AppConfig
from standards_audit.detection import DEFAULT_PRECEDENCE, ProjectContext, detect
from standards_audit.enumerator import DEFAULT_QUICK_LIMIT, SCAN_MODES, enumerate_files
from standards_audit.errors import ConfigurationError, EngineError
from standards_audit.logging import get_logger
from standards_audit.matcher import evaluate
from standards_audit.report import ScoreReport, build_report
from standards_audit.rules.filtering import ActiveRuleSet, filter_rules
from standards_audit.rules.repository import RuleRepository
from standards_audit.scoring import STRICTNESS_MULTIPLIERS, aggregate

logger = get_logger("engine")


class AuditStage(str, Enum):
    """Per-run engine states, in order."""

    IDLE = "idle"
    DETECTING = "detecting"
    RULES_LOADED = "rules_loaded"
    FILTERING = "filtering"
    SCANNING = "scanning"
    AGGREGATING = "aggregating"
    REPORTED = "reported"


@dataclass(frozen=True, slots=True)
class AuditConfig:
    """Inputs for one audit run."""

    mode: str = "quick"
    enabled_ecosystems: frozenset[str] = frozenset(DEFAULT_PRECEDENCE)
    ecosystem_override: str | None = None
    strictness: str = "strict"
    precedence: tuple[str, ...] = ()
    workers: int | None = None
    timeout_seconds: float | None = None
    quick_limit: int = DEFAULT_QUICK_LIMIT
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    standards_paths: tuple[Path, ...] = ()

    @classmethod
    def from_app_config(cls, app_config: AppConfig) -> AuditConfig:
        return cls(
            mode=app_config.scan.mode,
            enabled_ecosystems=frozenset(app_config.enabled_ecosystems),
            ecosystem_override=app_config.detection.ecosystem,
            strictness=app_config.strictness,
            precedence=tuple(app_config.detection.precedence),
            workers=app_config.scan.workers,
            timeout_seconds=app_config.scan.timeout_seconds,
            quick_limit=app_config.scan.quick_limit,
            include=tuple(app_config.scan.include),
            exclude=tuple(app_config.scan.exclude),
            standards_paths=tuple(app_config.standards_paths),
        )


class AuditRun:
    """A single-shot audit. Each instance runs once."""

    def __init__(
        self,
        root: Path,
        config: AuditConfig,
        *,
        repository: RuleRepository | None = None,
    ) -> None:
        self.root = root
        self.config = config
        self.repository = repository or RuleRepository(config.standards_paths)
        self.stage = AuditStage.IDLE
        self.context: ProjectContext | None = None
        self.active_rules: ActiveRuleSet | None = None

    def run(self) -> ScoreReport:
        if self.stage is not AuditStage.IDLE:
            raise RuntimeError("AuditRun instances are single-use")
        try:
            return self._run()
        except EngineError as exc:
            if exc.stage is None:
                exc.stage = self.stage.value
            logger.debug("Audit failed during %s: %s", self.stage.value, exc)
            raise

    def _run(self) -> ScoreReport:
        config = self.config
        _validate_config(self.root, config)
        deadline = (
            time.monotonic() + config.timeout_seconds
            if config.timeout_seconds is not None
            else None
        )

        self._advance(AuditStage.DETECTING)
        ctx = detect(
            self.root,
            config.enabled_ecosystems,
            precedence=config.precedence or None,
            override=config.ecosystem_override,
        )
        self.context = ctx

        self._advance(AuditStage.RULES_LOADED)
        document = self.repository.load(ctx.ecosystem)

        self._advance(AuditStage.FILTERING)
        active = filter_rules(document, ctx)
        self.active_rules = active
        logger.info(
            "%d of %d rules active for %s", len(active.rules), len(document.rules), ctx.ecosystem
        )

        self._advance(AuditStage.SCANNING)
        files = enumerate_files(
            ctx.root,
            config.mode,
            active,
            quick_limit=config.quick_limit,
            include=config.include,
            exclude=config.exclude,
        )
        logger.info("Scanning %d files (%s mode)", len(files), config.mode)
        evaluation = evaluate(
            ctx.root,
            files,
            active.rules,
            workers=config.workers,
            deadline=deadline,
        )

        self._advance(AuditStage.AGGREGATING)
        breakdown = aggregate(evaluation.violations, active, strictness=config.strictness)

        report = build_report(
            ctx,
            evaluation.violations,
            breakdown,
            evaluation.skipped,
            mode=config.mode,
            schema_version=document.schema_version,
            files_scanned=evaluation.files_evaluated,
            timed_out=evaluation.timed_out,
        )
        self._advance(AuditStage.REPORTED)
        return report

    def _advance(self, stage: AuditStage) -> None:
        logger.debug("Stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage


def audit(
    root: Path,
    config: AuditConfig | None = None,
    *,
    repository: RuleRepository | None = None,
) -> ScoreReport:
    """Run one audit over ``root`` and return its report."""
    return AuditRun(root, config or AuditConfig(), repository=repository).run()


def _validate_config(root: Path, config: AuditConfig) -> None:
    if not root.is_dir():
        raise ConfigurationError(f"Audit root is not a directory: {root}")
    if config.mode not in SCAN_MODES:
        raise ConfigurationError(f"mode must be one of: {', '.join(SCAN_MODES)}")
    if not config.enabled_ecosystems:
        raise ConfigurationError("No ecosystems enabled")
    unknown = sorted(set(config.enabled_ecosystems) - set(DEFAULT_PRECEDENCE))
    if unknown:
        raise ConfigurationError(f"Unknown ecosystems enabled: {', '.join(unknown)}")
    if config.strictness not in STRICTNESS_MULTIPLIERS:
        choices = ", ".join(sorted(STRICTNESS_MULTIPLIERS))
        raise ConfigurationError(f"strictness must be one of: {choices}")
    if config.quick_limit <= 0:
        raise ConfigurationError("quick_limit must be > 0")
    if config.workers is not None and config.workers <= 0:
        raise ConfigurationError("workers must be > 0")
    if config.timeout_seconds is not None and config.timeout_seconds <= 0:
        raise ConfigurationError("timeout_seconds must be > 0")
