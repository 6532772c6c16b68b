"""CLI entrypoint for standards-audit."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path
from typing import Annotated, NoReturn

import typer

from standards_audit import __version__
from standards_audit.config import (
    CONFIG_SCOPES,
    OUTPUT_FORMATS,
    AppConfig,
    default_config_template,
    global_config_path,
    load_app_config,
)
from standards_audit.detection import ProjectContext, detect, display_name
from standards_audit.engine import AuditConfig, AuditRun
from standards_audit.errors import EngineError, UnsupportedProjectError
from standards_audit.fixes import suggest_fixes
from standards_audit.logging import configure_logging
from standards_audit.output import render_fixes_human, render_human, render_json
from standards_audit.report import ScoreReport
from standards_audit.rules.filtering import filter_rules
from standards_audit.rules.repository import RuleRepository

EXIT_TIMEOUT = 3

app = typer.Typer(
    name="standards-audit",
    no_args_is_help=True,
    help="Audit a project against weighted coding-standard rules.",
)

RootArgument = Annotated[Path, typer.Argument(help="Project directory.")]
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to config TOML file."),
]
FormatOption = Annotated[
    str | None, typer.Option(help="Output format: human|json.", show_default="human")
]


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
    log_file: Annotated[
        Path | None, typer.Option("--log-file", help="Also write debug logs to this file.")
    ] = None,
) -> None:
    """Root command callback."""
    _ = version
    configure_logging(verbose=verbose, log_file=log_file)


@app.command("audit")
def audit_command(
    root: RootArgument = Path("."),
    mode: Annotated[
        str | None, typer.Option(help="Scan mode: quick|full.", show_default="quick")
    ] = None,
    ecosystem: Annotated[
        str | None, typer.Option(help="Skip detection and audit as this ecosystem.")
    ] = None,
    enable: Annotated[
        list[str] | None, typer.Option(help="Enabled ecosystem (repeatable).")
    ] = None,
    strictness: Annotated[str | None, typer.Option(help="strict|advisory.")] = None,
    workers: Annotated[int | None, typer.Option(help="Parallel file workers.")] = None,
    timeout: Annotated[
        float | None, typer.Option(help="Run deadline in seconds; partial report on expiry.")
    ] = None,
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Audit a project and print its score report."""
    app_config = _load_config_or_exit(root, config_file)
    output_format = _resolve_format(format, app_config)
    audit_config = _build_audit_config(
        app_config,
        mode=mode,
        ecosystem=ecosystem,
        enable=enable,
        strictness=strictness,
        workers=workers,
        timeout=timeout,
    )
    _, report = _run_audit_or_exit(root, audit_config)

    if output_format == "json":
        typer.echo(render_json(report, config_source=app_config.source))
    else:
        typer.echo(render_human(report))

    if report.timed_out:
        raise typer.Exit(code=EXIT_TIMEOUT)


@app.command("detect")
def detect_command(
    root: RootArgument = Path("."),
    ecosystem: Annotated[str | None, typer.Option(help="Ecosystem override.")] = None,
    enable: Annotated[
        list[str] | None, typer.Option(help="Enabled ecosystem (repeatable).")
    ] = None,
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Detect the project's ecosystem and frameworks."""
    app_config = _load_config_or_exit(root, config_file)
    output_format = _resolve_format(format, app_config)
    audit_config = _build_audit_config(app_config, ecosystem=ecosystem, enable=enable)
    ctx = _detect_or_exit(root, audit_config)

    if output_format == "json":
        typer.echo(json.dumps(ctx.to_dict(), sort_keys=True))
        return
    typer.echo(f"{display_name(ctx)} project detected")


@app.command("start")
def start_command(
    root: RootArgument = Path("."),
    config_file: ConfigOption = None,
) -> None:
    """Session-start hook: announce the project and optionally run a quick audit."""
    app_config = _load_config_or_exit(root, config_file)
    if app_config.source is None:
        typer.echo("standards-audit: first-time setup required")
        typer.echo("   Run 'standards-audit config-init' to configure enabled ecosystems")
        return

    audit_config = _build_audit_config(app_config)
    try:
        ctx = detect(
            root,
            audit_config.enabled_ecosystems,
            precedence=audit_config.precedence or None,
            override=audit_config.ecosystem_override,
        )
    except UnsupportedProjectError:
        return
    except EngineError as exc:
        _fail(exc)

    typer.echo(f"{display_name(ctx)} project detected")
    typer.echo("   Coding standards monitoring active")
    if not app_config.auto_audit_on_start:
        typer.echo("   Run 'standards-audit audit' for a full analysis")
        return

    quick = dataclasses.replace(audit_config, mode="quick")
    _, report = _run_audit_or_exit(root, quick)
    counts = report.counts_by_severity
    typer.echo(
        f"   Quick audit: {report.overall_score}/100 "
        f"({counts['error']} errors, {counts['warning']} warnings, {counts['info']} info)"
    )


@app.command("rules")
def rules_command(
    ecosystem: Annotated[
        str | None, typer.Argument(help="Ecosystem whose rules to list (detected if omitted).")
    ] = None,
    root: Annotated[Path, typer.Option(help="Project directory.")] = Path("."),
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """List rules and whether they are active for the project."""
    app_config = _load_config_or_exit(root, config_file)
    output_format = _resolve_format(format, app_config)
    audit_config = _build_audit_config(app_config, ecosystem=ecosystem)
    ctx = _detect_or_exit(root, audit_config)
    repository = RuleRepository(audit_config.standards_paths)
    try:
        document = repository.load(ctx.ecosystem)
    except EngineError as exc:
        _fail(exc)
    active_ids = {rule.rule_id for rule in filter_rules(document, ctx).rules}

    if output_format == "json":
        payload = {
            "ecosystem": document.ecosystem,
            "schema_version": document.schema_version,
            "frameworks": sorted(ctx.frameworks),
            "categories": [
                {
                    "name": category.name,
                    "weight": category.weight,
                    "rules": [
                        {
                            "rule_id": rule.rule_id,
                            "severity": rule.severity.value,
                            "message": rule.message,
                            "applicable_to": sorted(rule.applicable_to),
                            "file_pattern": rule.file_pattern,
                            "doc_ref": rule.doc_ref,
                            "active": rule.rule_id in active_ids,
                        }
                        for rule in category.rules
                    ],
                }
                for category in document.categories
            ],
            "meta": {"source": document.source, "config_source": app_config.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [f"Rules for {display_name(ctx)} (schema {document.schema_version}):"]
    for category in document.categories:
        lines.append(f"{category.name} (weight {category.weight})")
        for rule in category.rules:
            status = "active" if rule.rule_id in active_ids else "inactive"
            lines.append(
                f"- {rule.rule_id} [{rule.severity.value}, {status}] - {rule.message}"
            )
    typer.echo("\n".join(lines))


@app.command("validate")
def validate_command(
    standards_dir: Annotated[
        list[Path] | None,
        typer.Option("--standards-dir", help="Extra rule document directory (repeatable)."),
    ] = None,
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate every discoverable rule document."""
    output_format = format.lower()
    if output_format not in OUTPUT_FORMATS:
        _fail_message("format must be one of: human, json")

    results = RuleRepository(standards_dir or []).validate_all()
    ok = all(result.ok for result in results)
    if output_format == "json":
        typer.echo(
            json.dumps({"ok": ok, "documents": [item.to_dict() for item in results]}, sort_keys=True)
        )
    else:
        lines: list[str] = []
        for result in results:
            if result.ok:
                lines.append(
                    f"{result.ecosystem}: "
                    + typer.style("OK", fg="green")
                    + f" ({result.rule_count} rules)"
                )
                continue
            lines.append(f"{result.ecosystem}: " + typer.style("FAILED", fg="red"))
            lines.extend(f"  - {problem}" for problem in result.problems)
        failed = sum(1 for result in results if not result.ok)
        if ok:
            lines.append("All standards files are valid.")
        else:
            lines.append(f"Validation failed for {failed} document(s).")
        typer.echo("\n".join(lines))

    if not ok:
        raise typer.Exit(code=1)


@app.command("fixes")
def fixes_command(
    root: RootArgument = Path("."),
    mode: Annotated[
        str | None, typer.Option(help="Scan mode: quick|full.", show_default="quick")
    ] = None,
    ecosystem: Annotated[str | None, typer.Option(help="Ecosystem override.")] = None,
    format: FormatOption = None,
    config_file: ConfigOption = None,
) -> None:
    """Suggest replacement text for fixable violations. Files are never modified."""
    app_config = _load_config_or_exit(root, config_file)
    output_format = _resolve_format(format, app_config)
    audit_config = _build_audit_config(app_config, mode=mode, ecosystem=ecosystem)
    run, report = _run_audit_or_exit(root, audit_config)
    if run.active_rules is None:
        _fail_message("Audit finished without an active rule set")
    suggestions = suggest_fixes(report.violations, run.active_rules)

    if output_format == "json":
        payload = {
            "suggestions": [item.to_dict() for item in suggestions],
            "applied": False,
        }
        typer.echo(json.dumps(payload, sort_keys=True))
    else:
        typer.echo(render_fixes_human(suggestions))
    if report.timed_out:
        raise typer.Exit(code=EXIT_TIMEOUT)


@app.command("config")
def config_command(
    root: RootArgument = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: ConfigOption = None,
) -> None:
    """Show resolved configuration."""
    output_format = format.lower()
    if output_format not in OUTPUT_FORMATS:
        _fail_message("format must be one of: human, json")

    app_config = _load_config_or_exit(root, config_file)
    payload = app_config.to_dict()
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- enabled_ecosystems: {payload['enabled_ecosystems']}",
        f"- mode: {payload['mode']}",
        f"- strictness: {payload['strictness']}",
        f"- auto_audit_on_start: {payload['auto_audit_on_start']}",
        f"- scan: {payload['scan']}",
        f"- detection: {payload['detection']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    scope: Annotated[str, typer.Option(help="Where to write: project|global.")] = "project",
    root: Annotated[Path, typer.Option(help="Project directory for project scope.")] = Path("."),
    out: Annotated[Path | None, typer.Option(help="Explicit output path.")] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter config file."""
    resolved_scope = scope.lower()
    if resolved_scope not in CONFIG_SCOPES:
        _fail_message("scope must be one of: global, project")

    if out is not None:
        out_path = out.resolve()
    elif resolved_scope == "global":
        out_path = global_config_path()
    else:
        out_path = (root / ".standards-audit.toml").resolve()

    if out_path.exists() and not force:
        _fail_message(f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite.")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(resolved_scope), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


def main() -> None:
    """Console script entrypoint."""
    app()


def _load_config_or_exit(root: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(root, config_path=config_file)
    except EngineError as exc:
        _fail(exc)


def _build_audit_config(
    app_config: AppConfig,
    *,
    mode: str | None = None,
    ecosystem: str | None = None,
    enable: list[str] | None = None,
    strictness: str | None = None,
    workers: int | None = None,
    timeout: float | None = None,
) -> AuditConfig:
    base = AuditConfig.from_app_config(app_config)
    overrides: dict[str, object] = {}
    if mode is not None:
        overrides["mode"] = mode.lower()
    if ecosystem is not None:
        overrides["ecosystem_override"] = ecosystem.lower()
    if enable:
        overrides["enabled_ecosystems"] = frozenset(item.lower() for item in enable)
    if strictness is not None:
        overrides["strictness"] = strictness.lower()
    if workers is not None:
        overrides["workers"] = workers
    if timeout is not None:
        overrides["timeout_seconds"] = timeout
    return dataclasses.replace(base, **overrides)


def _detect_or_exit(root: Path, audit_config: AuditConfig) -> ProjectContext:
    try:
        return detect(
            root,
            audit_config.enabled_ecosystems,
            precedence=audit_config.precedence or None,
            override=audit_config.ecosystem_override,
        )
    except EngineError as exc:
        _fail(exc)


def _run_audit_or_exit(root: Path, audit_config: AuditConfig) -> tuple[AuditRun, ScoreReport]:
    run = AuditRun(root, audit_config)
    try:
        report = run.run()
    except EngineError as exc:
        _fail(exc)
    return run, report


def _resolve_format(format: str | None, app_config: AppConfig) -> str:
    output_format = (format or app_config.format).lower()
    if output_format not in OUTPUT_FORMATS:
        _fail_message("format must be one of: human, json")
    return output_format


def _fail(exc: EngineError) -> NoReturn:
    typer.echo(f"Error: {exc.message}", err=True)
    raise typer.Exit(code=exc.exit_code)


def _fail_message(message: str) -> NoReturn:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)
