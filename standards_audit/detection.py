"""Project ecosystem and framework detection from manifest files."""

from __future__ import annotations

import json
import re
import tomllib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from standards_audit.errors import ConfigurationError, UnsupportedProjectError
from standards_audit.logging import get_logger

logger = get_logger("detection")

DEFAULT_PRECEDENCE: tuple[str, ...] = ("laravel", "nextjs", "flutter", "python")

PYTHON_FRAMEWORK_MARKERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("django", ("django",)),
    ("fastapi", ("fastapi", "uvicorn")),
    ("datascience", ("jupyter", "pandas", "numpy", "scikit-learn", "tensorflow")),
)

FRAMEWORK_DISPLAY_NAMES = {
    "django": "Django",
    "fastapi": "FastAPI",
    "datascience": "Data Science",
}

_REQUIREMENT_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*")
_FLUTTER_SDK_RE = re.compile(r"^\s*sdk:\s*['\"]?flutter['\"]?\s*$", re.MULTILINE)


@dataclass(frozen=True, slots=True)
class ProjectContext:
    """Immutable snapshot of what a project is, produced once per run."""

    ecosystem: str
    frameworks: frozenset[str]
    enabled_ecosystems: frozenset[str]
    root: Path

    @property
    def tags(self) -> frozenset[str]:
        """Tags a rule's ``applicableTo`` set is matched against."""
        return self.frameworks | {self.ecosystem}

    def to_dict(self) -> dict[str, Any]:
        return {
            "ecosystem": self.ecosystem,
            "frameworks": sorted(self.frameworks),
            "enabled_ecosystems": sorted(self.enabled_ecosystems),
            "root": str(self.root),
            "display_name": display_name(self),
        }


class Detector(Protocol):
    """Manifest-based matcher for one ecosystem."""

    ecosystem: str
    display_name: str

    def matches(self, root: Path) -> bool:
        """Return True if the manifest marks ``root`` as this ecosystem."""

    def frameworks(self, root: Path) -> frozenset[str]:
        """Infer framework tags from the same manifests."""


class LaravelDetector:
    """composer.json requiring laravel/framework."""

    ecosystem = "laravel"
    display_name = "Laravel"

    def matches(self, root: Path) -> bool:
        manifest = _read_json_object(root / "composer.json")
        if manifest is None:
            return False
        return "laravel/framework" in _dependency_keys(manifest, ("require", "require-dev"))

    def frameworks(self, root: Path) -> frozenset[str]:
        _ = root
        return frozenset()


class NextjsDetector:
    """package.json depending on next."""

    ecosystem = "nextjs"
    display_name = "Next.js"

    def matches(self, root: Path) -> bool:
        manifest = _read_json_object(root / "package.json")
        if manifest is None:
            return False
        keys = _dependency_keys(manifest, ("dependencies", "devDependencies", "peerDependencies"))
        return "next" in keys

    def frameworks(self, root: Path) -> frozenset[str]:
        _ = root
        return frozenset()


class FlutterDetector:
    """pubspec.yaml declaring the flutter SDK."""

    ecosystem = "flutter"
    display_name = "Flutter"

    def matches(self, root: Path) -> bool:
        text = _read_text(root / "pubspec.yaml")
        return text is not None and _FLUTTER_SDK_RE.search(text) is not None

    def frameworks(self, root: Path) -> frozenset[str]:
        _ = root
        return frozenset()


class PythonDetector:
    """requirements.txt or pyproject.toml, with framework inference from dependencies."""

    ecosystem = "python"
    display_name = "Python"

    def matches(self, root: Path) -> bool:
        return (root / "requirements.txt").is_file() or (root / "pyproject.toml").is_file()

    def frameworks(self, root: Path) -> frozenset[str]:
        haystacks = [name.lower() for name in _python_dependency_haystacks(root)]
        found: set[str] = set()
        for framework, markers in PYTHON_FRAMEWORK_MARKERS:
            if any(marker in haystack for haystack in haystacks for marker in markers):
                found.add(framework)
        return frozenset(found)


DETECTORS: tuple[Detector, ...] = (
    LaravelDetector(),
    NextjsDetector(),
    FlutterDetector(),
    PythonDetector(),
)
_DETECTORS_BY_ECOSYSTEM = {detector.ecosystem: detector for detector in DETECTORS}


def detect(
    root: Path,
    enabled_ecosystems: Iterable[str],
    *,
    precedence: Sequence[str] | None = None,
    override: str | None = None,
) -> ProjectContext:
    """Decide the project's ecosystem and frameworks.

    Detectors are tried in ``precedence`` order and the first match wins.
    Ecosystems not named in a custom precedence list are tried afterwards in
    default order. ``override`` skips manifest matching but still infers
    frameworks with that ecosystem's detector.
    """
    root = root.resolve()
    enabled = frozenset(enabled_ecosystems)
    unknown = sorted(enabled - set(DEFAULT_PRECEDENCE))
    if unknown:
        raise ConfigurationError(f"Unknown ecosystems enabled: {', '.join(unknown)}")

    if override is not None:
        detector = _DETECTORS_BY_ECOSYSTEM.get(override)
        if detector is None:
            raise ConfigurationError(
                f"Unknown ecosystem override '{override}' "
                f"(expected one of: {', '.join(DEFAULT_PRECEDENCE)})"
            )
        logger.info("Ecosystem override in effect: %s", override)
        return ProjectContext(
            ecosystem=detector.ecosystem,
            frameworks=detector.frameworks(root),
            enabled_ecosystems=enabled,
            root=root,
        )

    for ecosystem in resolve_precedence(precedence):
        if ecosystem not in enabled:
            continue
        detector = _DETECTORS_BY_ECOSYSTEM[ecosystem]
        if detector.matches(root):
            ctx = ProjectContext(
                ecosystem=detector.ecosystem,
                frameworks=detector.frameworks(root),
                enabled_ecosystems=enabled,
                root=root,
            )
            logger.info("Detected %s project at %s", display_name(ctx), root)
            return ctx

    enabled_text = ", ".join(sorted(enabled)) or "none"
    raise UnsupportedProjectError(
        f"No supported project detected in {root} (enabled ecosystems: {enabled_text})"
    )


def resolve_precedence(precedence: Sequence[str] | None) -> list[str]:
    """Return the full detector order for a (possibly partial) precedence list."""
    if not precedence:
        return list(DEFAULT_PRECEDENCE)
    unknown = [item for item in precedence if item not in _DETECTORS_BY_ECOSYSTEM]
    if unknown:
        raise ConfigurationError(
            f"Unknown ecosystems in detection precedence: {', '.join(sorted(set(unknown)))}"
        )
    ordered: list[str] = []
    for ecosystem in [*precedence, *DEFAULT_PRECEDENCE]:
        if ecosystem not in ordered:
            ordered.append(ecosystem)
    return ordered


def display_name(ctx: ProjectContext) -> str:
    """Human-readable project name, e.g. ``Python (Django, FastAPI)``."""
    detector = _DETECTORS_BY_ECOSYSTEM.get(ctx.ecosystem)
    base = detector.display_name if detector is not None else ctx.ecosystem
    if not ctx.frameworks:
        return base
    names = [FRAMEWORK_DISPLAY_NAMES.get(item, item) for item in sorted(ctx.frameworks)]
    return f"{base} ({', '.join(names)})"


def _python_dependency_haystacks(root: Path) -> list[str]:
    haystacks: list[str] = []

    requirements = _read_text(root / "requirements.txt")
    if requirements is not None:
        for raw_line in requirements.splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if not line or line.startswith("-"):
                continue
            match = _REQUIREMENT_NAME_RE.match(line)
            if match:
                haystacks.append(match.group(0))

    pyproject_path = root / "pyproject.toml"
    pyproject_text = _read_text(pyproject_path)
    if pyproject_text is not None:
        try:
            loaded = tomllib.loads(pyproject_text)
        except tomllib.TOMLDecodeError:
            # Unparsable manifests fall back to a plain text search.
            logger.debug("Could not parse %s; searching raw text", pyproject_path)
            haystacks.append(pyproject_text)
        else:
            haystacks.extend(_pyproject_dependency_names(loaded))

    return haystacks


def _pyproject_dependency_names(loaded: dict[str, Any]) -> list[str]:
    specs: list[str] = []
    names: list[str] = []

    project = loaded.get("project")
    if isinstance(project, dict):
        specs.extend(_str_items(project.get("dependencies")))
        optional = project.get("optional-dependencies")
        if isinstance(optional, dict):
            for group in optional.values():
                specs.extend(_str_items(group))

    dependency_groups = loaded.get("dependency-groups")
    if isinstance(dependency_groups, dict):
        for group in dependency_groups.values():
            specs.extend(_str_items(group))

    tool = loaded.get("tool")
    poetry = tool.get("poetry") if isinstance(tool, dict) else None
    if isinstance(poetry, dict):
        names.extend(_dict_keys(poetry.get("dependencies")))
        names.extend(_dict_keys(poetry.get("dev-dependencies")))
        groups = poetry.get("group")
        if isinstance(groups, dict):
            for group in groups.values():
                if isinstance(group, dict):
                    names.extend(_dict_keys(group.get("dependencies")))

    for spec in specs:
        match = _REQUIREMENT_NAME_RE.match(spec.strip())
        if match:
            names.append(match.group(0))
    return names


def _dependency_keys(manifest: dict[str, Any], sections: tuple[str, ...]) -> set[str]:
    keys: set[str] = set()
    for section in sections:
        keys.update(_dict_keys(manifest.get(section)))
    return keys


def _dict_keys(value: Any) -> list[str]:
    if not isinstance(value, dict):
        return []
    return [key for key in value if isinstance(key, str)]


def _str_items(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _read_json_object(path: Path) -> dict[str, Any] | None:
    text = _read_text(path)
    if text is None:
        return None
    try:
        loaded = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Ignoring malformed manifest %s", path)
        return None
    return loaded if isinstance(loaded, dict) else None


def _read_text(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("Unreadable manifest %s", path)
        return None
