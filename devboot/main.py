"""
devboot — CLI entrypoint.

Usage:
    devboot --help
    devboot install [--skip-optional] [--variant NAME=FLAVOR]... [--yes|--non-interactive]
    devboot validate
    devboot update
    devboot failures show
    devboot components

Exit codes: 0 all required components satisfied, 1 one or more required
components unresolved, 2 prerequisite or configuration error.
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from devboot import __version__
from devboot.core.models.component import ComponentDescriptor, Operation
from devboot.core.models.result import OperationResult, RunSummary
from devboot.core.observability.logging_config import (
    LOG_FILE_ENV,
    LOG_FILE_LEVEL_ENV,
    LOG_LEVEL_ENV,
    resolve_level,
    setup_logging,
)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="devboot")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--components",
    "-c",
    "components_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to components.yml (default: $DEVBOOT_COMPONENTS, auto-detect, or bundled).",
)
@click.option("--show-failures", is_flag=True, help="Show recent failures and exit.")
@click.option("--clear-failures", is_flag=True, help="Clear the failure log and exit.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    components_path: str | None,
    show_failures: bool,
    clear_failures: bool,
) -> None:
    """devboot — install, validate and update your developer environment."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["components_path"] = Path(components_path) if components_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ.get(LOG_LEVEL_ENV)),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
    )

    if ctx.invoked_subcommand is not None:
        return

    if show_failures or clear_failures:
        from devboot.ui.cli.failures import clear_failures as _clear
        from devboot.ui.cli.failures import render_failures, recorder_for

        recorder = recorder_for(ctx)
        if show_failures:
            render_failures(recorder)
        if clear_failures:
            _clear(recorder)
        return

    click.echo(ctx.get_help())


# ── Operations ──────────────────────────────────────────────────


def _parse_variants(values: tuple[str, ...]) -> dict[str, str]:
    variants: dict[str, str] = {}
    for raw in values:
        name, sep, flavor = raw.partition("=")
        if not sep or not name.strip() or not flavor.strip():
            raise click.BadParameter(
                f"expected NAME=FLAVOR, got '{raw}'", param_hint="--variant"
            )
        variants[name.strip()] = flavor.strip()
    return variants


def _operation_options(fn):
    options = [
        click.option("--skip-optional", is_flag=True, help="Skip components marked optional."),
        click.option(
            "--variant", "variants", multiple=True, metavar="NAME=FLAVOR",
            help="Pick a flavor for a component (repeatable).",
        ),
        click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes to prompts."),
        click.option(
            "--non-interactive", is_flag=True,
            help="Never prompt; prompts take their default (no).",
        ),
        click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON."),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


def _print_progress(
    index: int,
    total: int,
    component: ComponentDescriptor,
    result: OperationResult | None,
) -> None:
    if result is None:
        return

    counter = f"[{index}/{total}]"
    if result.ok:
        detail = "already satisfied" if result.already_satisfied else "done"
        if result.reported_version:
            detail += f", {result.reported_version}"
        click.secho(f"   {counter} ✓ {component.label}", fg="green", nl=False)
        click.echo(f"  ({detail})")
    elif result.skipped:
        click.secho(f"   {counter} ⊘ {component.label}", fg="yellow", nl=False)
        click.echo(f"  ({result.error or 'skipped'})")
    else:
        color = "yellow" if component.optional else "red"
        suffix = " (optional)" if component.optional else ""
        click.secho(f"   {counter} ✗ {component.label}{suffix}", fg=color)
        for line in (result.error or "failed").splitlines()[:5]:
            click.echo(f"     │ {line}")

    for note in result.diagnostics:
        click.secho(f"     ⚠️  {note}", fg="yellow")


def _render_summary(summary: RunSummary) -> None:
    click.echo()
    buckets = (
        ("Succeeded", summary.successes, "green"),
        ("Skipped", summary.skipped, "yellow"),
        ("Failed", summary.failures, "red"),
    )
    for title, names, color in buckets:
        if not names:
            continue
        click.secho(f"   {title} ({len(names)}):", fg=color, bold=True)
        for name in names:
            click.echo(f"     • {name}")

    if summary.interrupted:
        click.secho("   ⚠️  Interrupted; remaining components were not processed", fg="yellow")

    status_color = {"ok": "green", "partial": "yellow"}.get(summary.status, "red")
    click.echo()
    click.secho(
        f"   Result: {summary.operation} {summary.status} "
        f"({len(summary.successes)} ok, {len(summary.skipped)} skipped, "
        f"{len(summary.failures)} failed)",
        fg=status_color,
        bold=True,
    )

    if summary.failures or any("(failed, optional)" in s for s in summary.skipped):
        click.echo("   Run 'devboot failures show' for details and suggestions.")


def _run(
    ctx: click.Context,
    operation: Operation,
    skip_optional: bool,
    variants: tuple[str, ...],
    assume_yes: bool,
    non_interactive: bool,
    as_json: bool,
) -> None:
    from devboot.core.config.settings import RunConfig
    from devboot.core.use_cases.run import run_operation

    config = RunConfig(
        skip_optional=skip_optional,
        non_interactive=non_interactive,
        assume_yes=assume_yes,
        preferred_variants=_parse_variants(variants),
    )

    quiet = ctx.obj.get("quiet", False)
    if not as_json and not quiet:
        click.secho(f"\n⚡ devboot {operation.value}", fg="cyan", bold=True)

    result = run_operation(
        operation,
        components_path=ctx.obj.get("components_path"),
        config=config,
        progress=None if (as_json or quiet) else _print_progress,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        if result.remediation:
            click.echo(f"   → {result.remediation}")
        sys.exit(result.exit_code)

    summary = result.summary
    assert summary is not None  # guaranteed after error check above
    _render_summary(summary)
    click.echo()

    reload_command = result.settings.reload_command if result.settings else None
    if operation == Operation.INSTALL and reload_command and summary.all_ok:
        from devboot.ui.cli.prompts import confirm_reload, reload_shell

        if confirm_reload(assume_yes=assume_yes, non_interactive=non_interactive):
            reload_shell(reload_command)

    sys.exit(result.exit_code)


@cli.command()
@_operation_options
@click.pass_context
def install(ctx: click.Context, **options) -> None:
    """Install every component that is not already present.

    Examples:

        devboot install

        devboot install --skip-optional --non-interactive

        devboot install --variant nerd-font=FiraCode
    """
    _run(ctx, Operation.INSTALL, **options)


@cli.command()
@_operation_options
@click.pass_context
def validate(ctx: click.Context, **options) -> None:
    """Check that every component is present and report versions."""
    _run(ctx, Operation.VALIDATE, **options)


@cli.command()
@_operation_options
@click.pass_context
def update(ctx: click.Context, **options) -> None:
    """Upgrade every component (installing any that are missing)."""
    _run(ctx, Operation.UPDATE, **options)


# ── Inspection ──────────────────────────────────────────────────


@cli.command()
@click.option(
    "--variant", "variants", multiple=True, metavar="NAME=FLAVOR",
    help="Show the registry with a flavor applied (repeatable).",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def components(ctx: click.Context, variants: tuple[str, ...], as_json: bool) -> None:
    """List registered components in execution order."""
    from devboot.core.config.loader import ConfigError, load_registry, resolve_components_path

    path = resolve_components_path(ctx.obj.get("components_path"))
    try:
        registry, _settings = load_registry(path, preferred_variants=_parse_variants(variants))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(2)

    if as_json:
        click.echo(json.dumps(
            [c.model_dump(mode="json", exclude={"params"}) | {"kind": c.provider_kind.value}
             for c in registry],
            indent=2,
        ))
        return

    click.secho(f"\n📦 Components ({len(registry)})", fg="cyan", bold=True)
    click.echo(f"   {path}")
    click.echo()
    for idx, c in enumerate(registry, start=1):
        flags = " (optional)" if c.optional else ""
        click.echo(f"   {idx:>2}. {c.label} [{c.provider_kind.value}]{flags}")
        if c.description:
            click.echo(f"       {c.description}")
        if c.depends_on:
            click.echo(f"       depends on: {', '.join(c.depends_on)}")
        if c.variants:
            click.echo(f"       variants: {', '.join(sorted(c.variants))}")
    click.echo()


@cli.command()
@click.option("--limit", "-n", default=10, type=int, help="Number of runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, limit: int, as_json: bool) -> None:
    """Show the most recent runs."""
    from devboot.core.persistence.audit import RunHistory
    from devboot.core.use_cases.run import state_dir_for

    ledger = RunHistory(state_dir=state_dir_for(ctx.obj.get("components_path")))
    records = ledger.read_recent(limit)

    if as_json:
        click.echo(json.dumps([r.model_dump(mode="json") for r in records], indent=2))
        return

    if not records:
        click.echo("No runs recorded yet.")
        return

    click.secho(f"\n🕘 Last {len(records)} runs", fg="cyan", bold=True)
    for r in reversed(records):
        color = {"ok": "green", "partial": "yellow"}.get(r.status, "red")
        click.echo(f"   {r.timestamp[:19].replace('T', ' ')}  {r.operation:<8} ", nl=False)
        click.secho(f"{r.status:<11}", fg=color, nl=False)
        click.echo(f" {r.succeeded} ok, {r.skipped} skipped, {r.failed} failed ({r.duration_ms}ms)")
        if r.failures:
            click.echo(f"      failed: {', '.join(r.failures)}")
    click.echo()


# ── Register sub-command groups from devboot/ui/cli/ ────────────

from devboot.ui.cli.failures import failures  # noqa: E402

cli.add_command(failures)


if __name__ == "__main__":
    cli()
