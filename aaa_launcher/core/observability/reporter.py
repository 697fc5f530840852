"""
Reporter — the console progress sink.

Components report user-facing progress through a ``Reporter`` rather
than printing. Every line is echoed with click (unless ``echo=False``)
and also logged to ``aaa_launcher.progress`` so the run log keeps a
copy.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator, Sequence

import click

from aaa_launcher.core.models.dependency import DependencyRecord
from aaa_launcher.core.models.stage import Stage
from aaa_launcher.core.observability.logging_config import REPORTER_LOGGER

logger = logging.getLogger(REPORTER_LOGGER)

_RULE = "═" * 63
_INDENT = "       "


class ByteProgress:
    """Thread-safe wrapper around a click progress bar."""

    def __init__(self, bar=None):
        self._bar = bar
        self._lock = threading.Lock()
        self.done = 0

    def update(self, n: int) -> None:
        with self._lock:
            self.done += n
            if self._bar is not None:
                self._bar.update(n)


class Reporter:
    """Structured progress output for the pipeline."""

    def __init__(self, echo: bool = True, verbose: bool = False):
        self.echo = echo
        self.verbose = verbose

    # ── Framing ─────────────────────────────────────────────────

    def header(self, version: str) -> None:
        logger.info("AAA MMORPG Engine Launcher v%s", version)
        if not self.echo:
            return
        click.echo()
        click.secho(_RULE, fg="cyan")
        click.secho("     AAA MMORPG ENGINE - Launcher", fg="cyan", bold=True)
        click.secho(f"     Version {version}", fg="cyan")
        click.secho(_RULE, fg="cyan")
        click.echo()

    def step(self, stage: Stage) -> None:
        counter = f"[{stage.step_number}/{Stage.total_steps()}]"
        logger.info("%s %s", counter, stage.label)
        if self.echo:
            click.echo(click.style(counter, fg="cyan", bold=True) + " ⚙️  " + click.style(stage.label, bold=True))

    def complete(self, dry_run: bool = False) -> None:
        title = "DRY RUN COMPLETED" if dry_run else "ENGINE LAUNCHED SUCCESSFULLY"
        logger.info(title)
        if not self.echo:
            return
        click.echo()
        click.secho(_RULE, fg="green")
        click.secho(f"🚀 {title}", fg="green", bold=True)
        click.secho(_RULE, fg="green")
        click.echo()

    # ── Messages ────────────────────────────────────────────────

    def info(self, message: str) -> None:
        logger.info(message)
        if self.echo:
            click.secho(f"{_INDENT}{message}", dim=True)

    def detail(self, message: str) -> None:
        """Only shown on the console with --verbose (always logged)."""
        logger.debug(message)
        if self.echo and self.verbose:
            click.secho(f"{_INDENT}  {message}", dim=True)

    def success(self, message: str) -> None:
        logger.info(message)
        if self.echo:
            click.secho(f"{_INDENT}✅ {message}", fg="green")

    def warn(self, message: str) -> None:
        logger.warning(message)
        if self.echo:
            click.secho(f"{_INDENT}⚠️  {message}", fg="yellow")

    def error(self, message: str) -> None:
        logger.error(message)
        if self.echo:
            click.secho(f"{_INDENT}❌ {message}", fg="red", err=True)

    def download(self, message: str) -> None:
        logger.info(message)
        if self.echo:
            click.echo(f"{_INDENT}📥 {message}")

    def dependency_table(self, records: Sequence[DependencyRecord]) -> None:
        for rec in records:
            if rec.installed:
                version = f" ({rec.version})" if rec.version else ""
                self.success(f"{rec.name}{version}")
                if rec.location:
                    self.detail(f"at {rec.location} [{rec.source}]")
            else:
                self.warn(f"{rec.name}: not installed")

    # ── Progress ────────────────────────────────────────────────

    @contextlib.contextmanager
    def progress(self, total: int, label: str = "") -> Iterator[ByteProgress]:
        """Byte progress bar; a silent counter when echo is off or size unknown."""
        if not self.echo or total <= 0:
            yield ByteProgress()
            return
        with click.progressbar(length=total, label=f"{_INDENT}{label}".rstrip(), width=40) as bar:
            yield ByteProgress(bar)
