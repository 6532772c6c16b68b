"""Error taxonomy for audit runs."""

from __future__ import annotations


class EngineError(Exception):
    """Base class for errors surfaced by the audit engine."""

    exit_code = 1

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage


class ConfigurationError(EngineError):
    """Raised when configuration is missing, unreadable, or invalid."""


class RuleValidationError(EngineError):
    """Raised when a rule document is malformed or inconsistent."""

    def __init__(
        self,
        message: str,
        *,
        problems: list[str] | None = None,
        source: str | None = None,
        stage: str | None = None,
    ) -> None:
        self.problems = list(problems or [])
        self.source = source
        if self.problems:
            message = f"{message}: " + "; ".join(self.problems)
        super().__init__(message, stage=stage)


class UnsupportedProjectError(EngineError):
    """Raised when no enabled detector recognizes the project."""

    exit_code = 2


class ScanIOError(EngineError):
    """A single file could not be read. Recorded, never fatal."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


class AuditTimeoutError(EngineError):
    """Raised when a complete report was required but the run hit its deadline."""

    exit_code = 3
