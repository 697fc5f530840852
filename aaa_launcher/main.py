"""
AAA Engine Launcher — CLI entrypoint.

Usage:
    aaa-launcher                  run (or resume) the install pipeline
    aaa-launcher --dry-run        report what would happen
    aaa-launcher status           show the persisted stage and recent runs
    aaa-launcher deps             audit dependencies only
    aaa-launcher reset            force the next run to start at Init
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from aaa_launcher import __version__
from aaa_launcher.core.observability.logging_config import run_log_path, setup_logging

LOG_LEVEL_ENV = "AAA_LOG_LEVEL"


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="aaa-launcher")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed progress and INFO logs.")
@click.option("--dry-run", is_flag=True, help="Check everything, change nothing.")
@click.option("--skip-elevation", is_flag=True, help="Don't request administrator rights (Windows).")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to launcher.yml (default: platform data directory).",
)
@click.option(
    "--install-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Install directory (default: platform data directory).",
)
@click.option("--server-url", default=None, help="Sync server base URL.")
@click.option("--force-rebuild", is_flag=True, help="Rebuild even if the build cache is valid.")
@click.option("--skip-update", is_flag=True, help="Don't check for launcher updates.")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    dry_run: bool,
    skip_elevation: bool,
    config_path: Path | None,
    install_dir: Path | None,
    server_url: str | None,
    force_rebuild: bool,
    skip_update: bool,
) -> None:
    """AAA MMORPG Engine Launcher — install, update, build and launch."""
    from aaa_launcher.core.config.loader import ConfigError, load_config

    # ── Logging setup (console first, run log once config is known) ──
    level = "INFO" if verbose else os.environ.get(LOG_LEVEL_ENV, "WARNING")
    setup_logging(level=level)

    overrides = {
        "install_dir": install_dir,
        "server_url": server_url,
        "force_rebuild": force_rebuild or None,
        "skip_update": skip_update or None,
        "verbose": verbose or None,
        "dry_run": dry_run or None,
        "skip_elevation": skip_elevation or None,
    }
    try:
        config = load_config(config_path, env=os.environ, overrides=overrides)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["verbose"] = verbose

    if ctx.invoked_subcommand is None:
        setup_logging(level=level, log_file=run_log_path(config.logs_dir))
        _run(config)


def _run(config) -> None:
    from aaa_launcher.core.errors import LauncherError, StageFailedError
    from aaa_launcher.core.observability.reporter import Reporter
    from aaa_launcher.core.services.elevation import ElevationOutcome, request_elevation
    from aaa_launcher.core.use_cases.run import run_launcher

    reporter = Reporter(echo=True, verbose=config.verbose)
    reporter.header(__version__)

    if config.dry_run:
        reporter.warn("DRY RUN MODE - no changes will be made")

    if not config.skip_elevation and not config.dry_run:
        outcome = request_elevation()
        if outcome == ElevationOutcome.RELAUNCHED:
            reporter.info("Elevated process started. This window will close.")
            sys.exit(0)
        if outcome == ElevationOutcome.DENIED:
            reporter.warn("Could not elevate - continuing without admin rights")

    try:
        run_launcher(config, reporter)
    except StageFailedError as e:
        click.echo(err=True)
        click.secho(f"❌ ERROR: {e.cause}", fg="red", bold=True, err=True)
        click.echo(f"   Stage: {e.stage}", err=True)
        click.echo(f"   Logs:  {config.logs_dir}", err=True)
        sys.exit(1)
    except LauncherError as e:
        click.echo(err=True)
        click.secho(f"❌ ERROR: {e}", fg="red", bold=True, err=True)
        click.echo(f"   Logs:  {config.logs_dir}", err=True)
        sys.exit(1)


# ── Register sub-commands from aaa_launcher/ui/cli/ ───────────────

from aaa_launcher.ui.cli.pipeline import deps, reset, status  # noqa: E402

cli.add_command(status)
cli.add_command(reset)
cli.add_command(deps)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
