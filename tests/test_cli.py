"""CLI tests for audit, detection, rules, and config commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from standards_audit import __version__
from standards_audit import cli as cli_module
from standards_audit.cli import app
from standards_audit.engine import AuditRun
from tests.helpers_projects import (
    make_laravel_project,
    make_python_project,
    rule,
    rule_document,
    write_file,
    write_rule_document,
)

runner = CliRunner()


def _configured_python_project(tmp_path: Path) -> Path:
    repo = make_python_project(tmp_path, ["django"])
    write_file(repo, ".standards-audit.toml", 'enabled_ecosystems = ["python"]\n')
    write_file(
        repo,
        "shop/views.py",
        '"""Views."""\n\n\ndef listOrders(request):\n    """List."""\n    return []\n',
    )
    return repo


def test_root_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("audit", "detect", "start", "rules", "validate", "fixes", "config-init"):
        assert command in result.stdout


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_audit_json_output(tmp_path: Path) -> None:
    repo = _configured_python_project(tmp_path)

    result = runner.invoke(app, ["audit", str(repo), "--mode", "full", "--format", "json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["ecosystem"] == "python"
    assert payload["frameworks"] == ["django"]
    assert payload["project_name"] == "Python (Django)"
    assert payload["summary"]["complete"] is True
    assert payload["meta"]["config_source"] == str(repo.resolve() / ".standards-audit.toml")
    assert [
        (item["rule_id"], item["file"], item["line"]) for item in payload["violations"]
    ] == [("py-function-snake-case", "shop/views.py", 4)]
    assert payload["category_scores"]["naming"] == 18
    assert payload["overall_score"] == 98


def test_audit_human_output(tmp_path: Path) -> None:
    repo = _configured_python_project(tmp_path)

    result = runner.invoke(app, ["audit", str(repo), "--mode", "full"])
    assert result.exit_code == 0
    assert "Python (Django) standards audit" in result.stdout
    assert "Overall score: 98/100 (EXCELLENT)" in result.stdout
    assert "- naming: 18/20" in result.stdout
    assert "shop/views.py:4" in result.stdout


def test_audit_unsupported_project_exits_2(tmp_path: Path) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()

    result = runner.invoke(app, ["audit", str(empty)])
    assert result.exit_code == 2
    assert "No supported project detected" in result.output


def test_audit_invalid_mode_exits_1(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)

    result = runner.invoke(app, ["audit", str(repo), "--mode", "deep"])
    assert result.exit_code == 1
    assert "mode must be one of" in result.output


def test_audit_broken_config_exits_1(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)
    write_file(repo, ".standards-audit.toml", "enabled_ecosystems = []\n")

    result = runner.invoke(app, ["audit", str(repo)])
    assert result.exit_code == 1
    assert "No ecosystems enabled" in result.output


def test_audit_timeout_prints_partial_report_and_exits_3(tmp_path: Path) -> None:
    repo = make_python_project(tmp_path, [])
    for index in range(20):
        write_file(repo, f"m{index:02d}.py", "x = 1\n")

    result = runner.invoke(app, ["audit", str(repo), "--mode", "full", "--timeout", "1e-9"])
    assert result.exit_code == 3
    assert "report incomplete" in result.output
    assert "timeout" in result.output


def test_audit_ecosystem_override(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)
    write_file(repo, "requirements.txt", "fastapi\n")

    result = runner.invoke(
        app, ["audit", str(repo), "--ecosystem", "python", "--format", "json"]
    )
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["ecosystem"] == "python"
    assert payload["frameworks"] == ["fastapi"]


def test_detect_command(tmp_path: Path) -> None:
    repo = make_python_project(tmp_path, ["fastapi", "numpy"])

    human = runner.invoke(app, ["detect", str(repo)])
    assert human.exit_code == 0
    assert human.stdout.strip() == "Python (Data Science, FastAPI) project detected"

    as_json = runner.invoke(app, ["detect", str(repo), "--format", "json"])
    payload = json.loads(as_json.stdout)
    assert payload["ecosystem"] == "python"
    assert payload["frameworks"] == ["datascience", "fastapi"]


def test_detect_respects_enable_option(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)

    result = runner.invoke(app, ["detect", str(repo), "--enable", "python"])
    assert result.exit_code == 2


def test_unknown_enabled_ecosystem_exits_1(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)

    audited = runner.invoke(app, ["audit", str(repo), "--enable", "pyton"])
    assert audited.exit_code == 1
    assert "Unknown ecosystems enabled: pyton" in audited.output

    detected = runner.invoke(app, ["detect", str(repo), "--enable", "pyton"])
    assert detected.exit_code == 1
    assert "Unknown ecosystems enabled: pyton" in detected.output


def test_start_without_config_asks_for_setup(tmp_path: Path) -> None:
    repo = make_laravel_project(tmp_path)

    result = runner.invoke(app, ["start", str(repo)])
    assert result.exit_code == 0
    assert "first-time setup required" in result.stdout


def test_start_announces_project_and_runs_quick_audit(tmp_path: Path) -> None:
    repo = _configured_python_project(tmp_path)
    write_file(
        repo,
        ".standards-audit.toml",
        'enabled_ecosystems = ["python"]\nauto_audit_on_start = true\n',
    )

    result = runner.invoke(app, ["start", str(repo)])
    assert result.exit_code == 0
    assert "Python (Django) project detected" in result.stdout
    assert "Quick audit: 98/100 (0 errors, 1 warnings, 0 info)" in result.stdout


def test_start_is_silent_for_unsupported_projects(tmp_path: Path) -> None:
    repo = tmp_path / "empty"
    write_file(repo, ".standards-audit.toml", 'enabled_ecosystems = ["flutter"]\n')

    result = runner.invoke(app, ["start", str(repo)])
    assert result.exit_code == 0
    assert result.stdout == ""


def test_rules_command_marks_inactive_framework_rules(tmp_path: Path) -> None:
    repo = make_python_project(tmp_path, ["fastapi"])

    result = runner.invoke(app, ["rules", "--root", str(repo), "--format", "json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    states = {
        item["rule_id"]: item["active"]
        for category in payload["categories"]
        for item in category["rules"]
    }
    assert states["fastapi-sync-route"] is True
    assert states["django-raw-sql"] is False
    assert states["py-bare-except"] is True


def test_rules_command_for_named_ecosystem(tmp_path: Path) -> None:
    result = runner.invoke(app, ["rules", "flutter", "--root", str(tmp_path)])
    assert result.exit_code == 0
    assert "Rules for Flutter (schema 1.0):" in result.stdout
    assert "flutter-const-constructor [warning, active]" in result.stdout


def test_validate_bundled_standards() -> None:
    result = runner.invoke(app, ["validate"])
    assert result.exit_code == 0
    assert "All standards files are valid." in result.stdout


def test_validate_reports_broken_document(tmp_path: Path) -> None:
    standards = tmp_path / "standards"
    write_rule_document(
        standards,
        rule_document(
            ecosystem="laravel",
            weights={"naming": 60, "quality": 30},
            rules={"naming": [rule("ok", "x")]},
        ),
    )

    result = runner.invoke(
        app, ["validate", "--standards-dir", str(standards), "--format", "json"]
    )
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    laravel = next(item for item in payload["documents"] if item["ecosystem"] == "laravel")
    assert laravel["problems"] == ["category weights sum to 90, expected 100"]


def test_fixes_command_suggests_without_writing(tmp_path: Path) -> None:
    repo = make_python_project(tmp_path, [])
    source = "try:\n    run()\nexcept:\n    pass\n"
    target = write_file(repo, "job.py", source)

    result = runner.invoke(app, ["fixes", str(repo), "--format", "json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["applied"] is False
    assert [item["suggested_text"] for item in payload["suggestions"]] == ["except Exception:"]
    assert target.read_text(encoding="utf-8") == source


def test_fixes_command_fails_cleanly_without_active_rules(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    repo = make_python_project(tmp_path, [])
    monkeypatch.setattr(
        cli_module, "_run_audit_or_exit", lambda root, config: (AuditRun(root, config), None)
    )

    result = runner.invoke(app, ["fixes", str(repo)])
    assert result.exit_code == 1
    assert "Audit finished without an active rule set" in result.output


def test_config_command_shows_resolved_values(tmp_path: Path) -> None:
    repo = _configured_python_project(tmp_path)

    result = runner.invoke(app, ["config", str(repo), "--format", "json"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["enabled_ecosystems"] == ["python"]
    assert payload["scan"]["mode"] == "quick"


def test_config_init_writes_project_file_and_refuses_overwrite(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    repo.mkdir()

    first = runner.invoke(app, ["config-init", "--root", str(repo)])
    assert first.exit_code == 0
    assert (repo / ".standards-audit.toml").exists()

    second = runner.invoke(app, ["config-init", "--root", str(repo)])
    assert second.exit_code == 1
    assert "Refusing to overwrite" in second.output

    forced = runner.invoke(app, ["config-init", "--root", str(repo), "--force"])
    assert forced.exit_code == 0


def test_config_init_global_scope(isolated_global_config: Path) -> None:
    result = runner.invoke(app, ["config-init", "--scope", "global"])
    assert result.exit_code == 0
    written = isolated_global_config / "config.toml"
    assert 'mode = "global"' in written.read_text(encoding="utf-8")
