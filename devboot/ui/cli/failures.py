"""
CLI commands for the failure log.

Thin wrappers over ``devboot.core.persistence.failure_log``.

Usage::

    devboot failures show
    devboot failures show --all --json
    devboot failures clear
"""

from __future__ import annotations

import json
import sys

import click

from devboot.core.persistence.failure_log import DEFAULT_WINDOW_DAYS, FailureRecorder


def recorder_for(ctx: click.Context) -> FailureRecorder:
    from devboot.core.use_cases.run import state_dir_for

    return FailureRecorder(state_dir=state_dir_for(ctx.obj.get("components_path")))


def render_failures(
    recorder: FailureRecorder,
    show_all: bool = False,
    as_json: bool = False,
) -> None:
    """Print recent failures grouped by component."""
    window = None if show_all else DEFAULT_WINDOW_DAYS
    groups = recorder.group_recent(window_days=window)

    if as_json:
        click.echo(json.dumps(
            [
                {
                    "component": g.component_name,
                    "count": g.count,
                    "latest": g.latest.model_dump(mode="json"),
                }
                for g in groups
            ],
            indent=2,
        ))
        return

    if not groups:
        span = "" if show_all else f" in the last {DEFAULT_WINDOW_DAYS} days"
        click.secho(f"✅ No failures recorded{span}", fg="green")
        return

    span = "all time" if show_all else f"last {DEFAULT_WINDOW_DAYS} days"
    click.secho(f"\n📋 Recent failures ({span})", fg="cyan", bold=True)
    click.echo(f"   Log: {recorder.path}")
    click.echo()

    for group in groups:
        entry = group.latest
        times = "1 failure" if group.count == 1 else f"{group.count} failures"
        click.secho(f"   ✗ {group.component_name}", fg="red", bold=True, nl=False)
        click.echo(f"  ({times}, last {entry.timestamp[:19].replace('T', ' ')})")
        click.echo(f"     operation: {entry.operation} [{entry.provider_kind}]")
        if entry.operation_description:
            click.echo(f"     command:   {entry.operation_description}")
        exit_label = f" (exit {entry.exit_code})" if entry.exit_code is not None else ""
        for idx, line in enumerate(entry.error_message.splitlines()[:5] or [""]):
            prefix = "error:     " if idx == 0 else "           "
            suffix = exit_label if idx == 0 else ""
            click.echo(f"     {prefix}{line}{suffix}")
        if entry.suggestion:
            click.secho(f"     💡 {entry.suggestion}", fg="yellow")
        click.echo()


def clear_failures(recorder: FailureRecorder) -> None:
    """Truncate the log, exiting 1 if it cannot be rewritten."""
    try:
        removed = recorder.clear()
    except OSError as e:
        click.secho(f"❌ Could not clear {recorder.path}: {e}", fg="red")
        sys.exit(1)
    click.secho(f"🗑️  Cleared {removed} failure log entries", fg="green")


@click.group()
def failures() -> None:
    """Failure log — what went wrong and how to fix it."""


@failures.command("show")
@click.option("--all", "show_all", is_flag=True, help="Include entries older than 7 days.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def failures_show(ctx: click.Context, show_all: bool, as_json: bool) -> None:
    """Show recent failures with suggestions."""
    render_failures(recorder_for(ctx), show_all=show_all, as_json=as_json)


@failures.command("clear")
@click.pass_context
def failures_clear(ctx: click.Context) -> None:
    """Remove every entry from the failure log."""
    clear_failures(recorder_for(ctx))
