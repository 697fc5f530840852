"""
CLI commands for inspecting and resetting the pipeline.

Thin wrappers over ``aaa_launcher.core.use_cases`` and the dependency
auditor.
"""

from __future__ import annotations

import json
import os
import sys

import click

from aaa_launcher.core.models.stage import Stage

_STATUS_COLORS = {"ok": "green", "skipped": "yellow", "failed": "red"}


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--limit", "-n", default=10, show_default=True, help="Recent ledger entries to show.")
@click.pass_context
def status(ctx: click.Context, as_json: bool, limit: int) -> None:
    """Show the persisted stage and recent stage runs."""
    from aaa_launcher.core.use_cases.status import get_status

    config = ctx.obj["config"]
    result = get_status(config, recent=limit)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho("\n📋 AAA Engine Launcher", fg="cyan", bold=True)
    click.echo(f"   Install dir: {result.install_dir}")
    click.echo(f"   Server:      {result.server_url}")
    click.echo()

    record = result.record
    if record is None:
        click.echo("   Stage file:  (none)")
    else:
        color = "red" if record.state == Stage.FAILED else "white"
        click.echo("   Stage file:  ", nl=False)
        click.secho(record.state.value, fg=color, bold=True, nl=False)
        click.echo(f"  ({record.timestamp})")
        if record.state == Stage.FAILED:
            click.echo(f"   Failed at:   {record.failed_stage or '?'}")
            if record.error:
                click.echo(f"   Error:       {record.error}")
    resuming = " (resuming interrupted run)" if result.in_progress else ""
    click.echo(f"   Next run:    {result.next_stage.value}{resuming}")

    if result.recent:
        click.echo()
        click.secho("   Recent stages:", fg="white", bold=True)
        for entry in result.recent:
            click.echo(f"     {entry.timestamp[:19]}  {entry.stage:<16} ", nl=False)
            click.secho(entry.status, fg=_STATUS_COLORS.get(entry.status, "white"), nl=False)
            timing = f" ({entry.duration_ms}ms)" if entry.duration_ms else ""
            dry = " [dry-run]" if entry.dry_run else ""
            click.echo(f"{timing}{dry}")
            if entry.error:
                click.echo(f"       │ {entry.error}")
    click.echo()


@click.command()
@click.pass_context
def reset(ctx: click.Context) -> None:
    """Force the next run to start from Init."""
    from aaa_launcher.core.engine.state_machine import PipelineStateMachine
    from aaa_launcher.core.errors import FilesystemError

    config = ctx.obj["config"]
    machine = PipelineStateMachine(config.stage_file)
    previous = machine.current()
    try:
        machine.reset()
    except FilesystemError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)
    click.secho(f"✅ Stage reset to Init (was {previous.value})", fg="green")


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def deps(ctx: click.Context, as_json: bool) -> None:
    """Audit required dependencies (detection only, nothing is installed)."""
    from aaa_launcher.core.observability.reporter import Reporter
    from aaa_launcher.core.services.dependency_audit import DependencyAuditor, build_catalog

    config = ctx.obj["config"]
    auditor = DependencyAuditor(build_catalog(config, os.environ), config=config)
    records = auditor.check_all()

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in records], indent=2))
    else:
        click.secho("\n🔍 Dependencies", fg="cyan", bold=True)
        Reporter(echo=True, verbose=ctx.obj.get("verbose", False)).dependency_table(records)
        click.echo()

    if any(not r.installed for r in records):
        sys.exit(1)
