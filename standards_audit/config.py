"""Configuration loading for standards-audit."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from standards_audit.detection import DEFAULT_PRECEDENCE
from standards_audit.errors import ConfigurationError

CONFIG_FILENAMES = (".standards-audit.toml", "standards-audit.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("standards_audit", "standards-audit")
GLOBAL_HOME_ENV = "STANDARDS_AUDIT_HOME"
GLOBAL_CONFIG_FILENAME = "config.toml"

KNOWN_ECOSYSTEMS = DEFAULT_PRECEDENCE
SCAN_MODES = {"quick", "full"}
CONFIG_SCOPES = {"global", "project"}
STRICTNESS_LEVELS = {"strict", "advisory"}
OUTPUT_FORMATS = {"human", "json"}


@dataclass(slots=True)
class ScanConfig:
    """File enumeration and evaluation controls."""

    mode: str = "quick"
    quick_limit: int = 10
    workers: int | None = None
    timeout_seconds: float | None = None
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "quick_limit": self.quick_limit,
            "workers": self.workers,
            "timeout_seconds": self.timeout_seconds,
            "include": list(self.include),
            "exclude": list(self.exclude),
        }


@dataclass(slots=True)
class DetectionConfig:
    """Ecosystem detection precedence and override."""

    precedence: list[str] = field(default_factory=list)
    ecosystem: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"precedence": list(self.precedence), "ecosystem": self.ecosystem}


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project or global files."""

    enabled_ecosystems: list[str] = field(default_factory=lambda: list(KNOWN_ECOSYSTEMS))
    mode: str = "project"
    strictness: str = "strict"
    auto_audit_on_start: bool = False
    format: str = "human"
    scan: ScanConfig = field(default_factory=ScanConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    standards_paths: list[Path] = field(default_factory=list)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "enabled_ecosystems": list(self.enabled_ecosystems),
            "mode": self.mode,
            "strictness": self.strictness,
            "auto_audit_on_start": self.auto_audit_on_start,
            "format": self.format,
            "scan": self.scan.to_dict(),
            "detection": self.detection.to_dict(),
            "standards": {"paths": [str(path) for path in self.standards_paths]},
            "source": self.source,
        }


def global_config_path() -> Path:
    """Return the user-wide config file location."""
    home = os.environ.get(GLOBAL_HOME_ENV)
    if home:
        return Path(home) / GLOBAL_CONFIG_FILENAME
    return Path.home() / ".config" / "standards-audit" / GLOBAL_CONFIG_FILENAME


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from an explicit path, the project, or the global file, in that order."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ConfigurationError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=resolved)

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=resolved)

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=pyproject_path)

    global_path = global_config_path()
    if global_path.exists():
        mapping = _extract_config_mapping(_load_toml(global_path), source_path=global_path)
        return _from_mapping(mapping, source=global_path)

    return AppConfig()


def default_config_template(scope: str = "project") -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            'enabled_ecosystems = ["laravel", "nextjs", "flutter", "python"]',
            f'mode = "{scope}"',
            'strictness = "strict"',
            "auto_audit_on_start = false",
            'format = "human"',
            "",
            "[scan]",
            'mode = "quick"',
            "quick_limit = 10",
            "workers = 4",
            "timeout_seconds = 60",
            'include = []',
            'exclude = ["tests/fixtures/**"]',
            "",
            "[detection]",
            'precedence = ["laravel", "nextjs", "flutter", "python"]',
            '# ecosystem = "python"',
            "",
            "[standards]",
            '# paths = ["standards"]',
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: Path) -> AppConfig:
    scan_mapping = _as_table(mapping.get("scan"), "scan")
    detection_mapping = _as_table(mapping.get("detection"), "detection")
    standards_mapping = _as_table(mapping.get("standards"), "standards")

    raw_ecosystems = mapping.get("enabled_ecosystems")
    if raw_ecosystems is None:
        enabled = list(KNOWN_ECOSYSTEMS)
    else:
        enabled = _as_ecosystem_list(raw_ecosystems, "enabled_ecosystems")
        if not enabled:
            raise ConfigurationError(
                f"No ecosystems enabled in {source}; set enabled_ecosystems to at least one of: "
                + ", ".join(KNOWN_ECOSYSTEMS)
            )

    return AppConfig(
        enabled_ecosystems=enabled,
        mode=_as_choice(mapping.get("mode", "project"), CONFIG_SCOPES, "mode"),
        strictness=_as_choice(
            mapping.get("strictness", "strict"), STRICTNESS_LEVELS, "strictness"
        ),
        auto_audit_on_start=_as_bool(
            mapping.get("auto_audit_on_start", False), "auto_audit_on_start"
        ),
        format=_as_choice(mapping.get("format", "human"), OUTPUT_FORMATS, "format"),
        scan=_parse_scan_config(scan_mapping),
        detection=_parse_detection_config(detection_mapping),
        standards_paths=[
            _resolve_relative(Path(item), source.parent)
            for item in _as_str_list(standards_mapping.get("paths"), "standards.paths")
        ],
        source=str(source),
    )


def _parse_scan_config(value: dict[str, Any]) -> ScanConfig:
    quick_limit = _as_int(value.get("quick_limit", 10), "scan.quick_limit")
    if quick_limit <= 0:
        raise ConfigurationError("scan.quick_limit must be > 0")

    raw_workers = value.get("workers")
    workers: int | None = None
    if raw_workers is not None:
        workers = _as_int(raw_workers, "scan.workers")
        if workers <= 0:
            raise ConfigurationError("scan.workers must be > 0")

    raw_timeout = value.get("timeout_seconds")
    timeout: float | None = None
    if raw_timeout is not None:
        timeout = _as_float(raw_timeout, "scan.timeout_seconds")
        if timeout <= 0:
            raise ConfigurationError("scan.timeout_seconds must be > 0")

    return ScanConfig(
        mode=_as_choice(value.get("mode", "quick"), SCAN_MODES, "scan.mode"),
        quick_limit=quick_limit,
        workers=workers,
        timeout_seconds=timeout,
        include=_as_str_list(value.get("include"), "scan.include"),
        exclude=_as_str_list(value.get("exclude"), "scan.exclude"),
    )


def _parse_detection_config(value: dict[str, Any]) -> DetectionConfig:
    precedence = _as_ecosystem_list(value.get("precedence"), "detection.precedence")
    if len(set(precedence)) != len(precedence):
        raise ConfigurationError("detection.precedence must not repeat ecosystems")
    raw_override = value.get("ecosystem")
    override = None
    if raw_override is not None:
        override = _as_choice(raw_override, set(KNOWN_ECOSYSTEMS), "detection.ecosystem")
    return DetectionConfig(precedence=precedence, ecosystem=override)


def _resolve_relative(path: Path, base: Path) -> Path:
    return path if path.is_absolute() else (base / path)


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"{field_name} must be a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigurationError(f"{field_name} must be a list of strings")
        items.append(item)
    return items


def _as_ecosystem_list(value: Any, field_name: str) -> list[str]:
    items = [item.lower() for item in _as_str_list(value, field_name)]
    unknown = sorted({item for item in items if item not in KNOWN_ECOSYSTEMS})
    if unknown:
        choices = ", ".join(KNOWN_ECOSYSTEMS)
        raise ConfigurationError(
            f"{field_name} has unknown ecosystems: {', '.join(unknown)} (expected: {choices})"
        )
    return items


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ConfigurationError(f"{field_name} must be one of: {choices}")
    return value


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigurationError(f"{field_name} must be an integer")
    return raw


def _as_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigurationError(f"{field_name} must be a number")
    return float(raw)


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigurationError(f"{field_name} must be a boolean")
    return raw
