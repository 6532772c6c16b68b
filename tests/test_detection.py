"""Tests for ecosystem and framework detection."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from standards_audit.detection import DEFAULT_PRECEDENCE, detect, display_name, resolve_precedence
from standards_audit.errors import ConfigurationError, UnsupportedProjectError
from tests.helpers_projects import make_laravel_project, make_python_project, write_file

ALL = set(DEFAULT_PRECEDENCE)


def test_detects_laravel_without_frameworks(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)

    ctx = detect(repo, ALL)
    assert ctx.ecosystem == "laravel"
    assert ctx.frameworks == frozenset()
    assert ctx.root == repo.resolve()
    assert display_name(ctx) == "Laravel"


def test_laravel_in_require_dev_is_detected(tmp_path: Path) -> None:
    write_file(
        tmp_path,
        "composer.json",
        json.dumps({"require-dev": {"laravel/framework": "^11.0"}}),
    )
    assert detect(tmp_path, ALL).ecosystem == "laravel"


def test_composer_without_laravel_is_not_laravel(tmp_path: Path) -> None:
    write_file(tmp_path, "composer.json", json.dumps({"require": {"symfony/console": "^7"}}))

    with pytest.raises(UnsupportedProjectError):
        detect(tmp_path, ALL)


def test_detects_python_frameworks_from_requirements(tmp_path: Path) -> None:
    repo = make_python_project(tmp_path, ["fastapi==0.110", "uvicorn", "pandas>=2"])

    ctx = detect(repo, ALL)
    assert ctx.ecosystem == "python"
    assert ctx.frameworks == frozenset({"fastapi", "datascience"})
    assert display_name(ctx) == "Python (Data Science, FastAPI)"
    assert ctx.tags == frozenset({"python", "fastapi", "datascience"})


def test_detects_python_frameworks_from_pyproject(tmp_path: Path) -> None:
    write_file(
        tmp_path,
        "pyproject.toml",
        "\n".join(
            [
                "[project]",
                'name = "site"',
                'dependencies = ["Django>=5.0"]',
            ]
        ),
    )

    ctx = detect(tmp_path, ALL)
    assert ctx.ecosystem == "python"
    assert ctx.frameworks == frozenset({"django"})


def test_detects_nextjs_and_flutter(tmp_path: Path) -> None:
    web = tmp_path / "web"
    write_file(web, "package.json", json.dumps({"dependencies": {"next": "14.1.0", "react": "18"}}))
    mobile = tmp_path / "mobile"
    write_file(
        mobile,
        "pubspec.yaml",
        "name: app\ndependencies:\n  flutter:\n    sdk: flutter\n",
    )

    assert detect(web, ALL).ecosystem == "nextjs"
    assert detect(mobile, ALL).ecosystem == "flutter"


def test_package_json_without_next_is_not_nextjs(tmp_path: Path) -> None:
    write_file(tmp_path, "package.json", json.dumps({"dependencies": {"react": "18"}}))

    with pytest.raises(UnsupportedProjectError):
        detect(tmp_path, ALL)


def test_default_precedence_prefers_laravel_over_python(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)
    write_file(repo, "requirements.txt", "django\n")

    assert detect(repo, ALL).ecosystem == "laravel"
    assert detect(repo, ALL, precedence=["python"]).ecosystem == "python"


def test_disabled_ecosystem_is_skipped(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)
    write_file(repo, "requirements.txt", "django\n")

    assert detect(repo, {"python"}).ecosystem == "python"
    with pytest.raises(UnsupportedProjectError):
        detect(repo, {"flutter"})


def test_detection_is_deterministic(tmp_path: Path) -> None:
    repo = make_python_project(tmp_path, ["django", "numpy"])

    first = detect(repo, ALL)
    second = detect(repo, ALL)
    assert first == second


def test_override_skips_matching_but_infers_frameworks(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)
    write_file(repo, "requirements.txt", "fastapi\n")

    ctx = detect(repo, {"laravel"}, override="python")
    assert ctx.ecosystem == "python"
    assert ctx.frameworks == frozenset({"fastapi"})


def test_unknown_override_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError):
        detect(tmp_path, ALL, override="rails")


def test_unknown_enabled_ecosystem_is_not_reported_as_unsupported(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)

    with pytest.raises(ConfigurationError, match="Unknown ecosystems enabled: pyton"):
        detect(repo, {"laravel", "pyton"})


def test_resolve_precedence_appends_missing_defaults() -> None:
    assert resolve_precedence(["python", "flutter"]) == ["python", "flutter", "laravel", "nextjs"]
    assert resolve_precedence(None) == list(DEFAULT_PRECEDENCE)
    with pytest.raises(ConfigurationError):
        resolve_precedence(["cobol"])


def test_empty_directory_is_unsupported(tmp_path: Path) -> None:
    with pytest.raises(UnsupportedProjectError) as excinfo:
        detect(tmp_path, ALL)
    assert excinfo.value.exit_code == 2
