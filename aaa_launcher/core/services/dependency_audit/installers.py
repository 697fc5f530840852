"""
Install procedures — how a missing dependency gets installed.

Every procedure raises on failure; the auditor catches per dependency
so one failing install does not stop the others. Success is never
trusted on its own: the auditor re-probes afterwards.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from aaa_launcher.core.errors import LauncherEnvironmentError
from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.observability.reporter import Reporter
from aaa_launcher.core.services.archive import extract_zip
from aaa_launcher.core.services.http_client import HttpClient
from aaa_launcher.core.services.subprocess_runner import run_command

logger = logging.getLogger(__name__)

INSTALLERS_DIR_NAME = "installers"


@dataclass
class InstallContext:
    """What an install procedure may touch."""

    config: LauncherConfig
    client: HttpClient
    reporter: Reporter

    @property
    def installers_dir(self) -> Path:
        return self.config.deps_dir / INSTALLERS_DIR_NAME


class InstallProcedure(Protocol):
    """Capability: install one dependency non-interactively."""

    def install(self, name: str, ctx: InstallContext) -> None:
        ...


def _download(ctx: InstallContext, url: str, dest: Path) -> Path:
    dest.parent.mkdir(parents=True, exist_ok=True)
    ctx.reporter.download(f"Downloading {dest.name}...")
    result = ctx.client.download(url, dest)
    ctx.reporter.detail(f"{dest.name}: {result.size} bytes")
    return dest


def _make_executable(path: Path) -> None:
    if os.name == "nt":
        return
    mode = path.stat().st_mode
    os.chmod(path, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


# ── Download + run ──────────────────────────────────────────────


@dataclass
class DownloadAndRunInstaller:
    """Download an installer executable and run it silently.

    ``args`` may contain ``{deps_dir}``, ``{vulkan_sdk_dir}`` and
    ``{tracy_dir}`` placeholders, filled from the config.
    """

    url: str
    filename: str
    args: Sequence[str] = ()
    timeout: float = 60 * 60
    ok_exit_codes: Sequence[int] = (0,)
    keep_installer: bool = False

    def install(self, name: str, ctx: InstallContext) -> None:
        installer = _download(ctx, self.url, ctx.installers_dir / self.filename)
        _make_executable(installer)

        placeholders = {
            "deps_dir": str(ctx.config.deps_dir),
            "vulkan_sdk_dir": str(ctx.config.vulkan_sdk_dir),
            "tracy_dir": str(ctx.config.tracy_dir),
        }
        argv = [str(installer), *(a.format(**placeholders) for a in self.args)]

        ctx.reporter.info(f"Installing {name} (this may take a while)...")
        try:
            result = run_command(argv, cwd=ctx.installers_dir, timeout=self.timeout)
        finally:
            if not self.keep_installer:
                installer.unlink(missing_ok=True)

        if result.error or result.returncode not in self.ok_exit_codes:
            raise LauncherEnvironmentError(f"{name} installer failed: {result.describe()}")
        if result.returncode != 0:
            logger.info("%s installer exited with %s (accepted)", name, result.returncode)


# ── Archive ─────────────────────────────────────────────────────


@dataclass
class ArchiveInstaller:
    """Download a zip and extract it into the deps directory."""

    url: str
    filename: str

    def install(self, name: str, ctx: InstallContext) -> None:
        archive = _download(ctx, self.url, ctx.installers_dir / self.filename)
        try:
            ctx.reporter.info(f"Extracting {name}...")
            count = extract_zip(archive, ctx.config.deps_dir)
        finally:
            archive.unlink(missing_ok=True)
        ctx.reporter.detail(f"{count} files extracted to {ctx.config.deps_dir}")


# ── Command sequence ────────────────────────────────────────────


@dataclass
class InstallStep:
    """One command of a ``CommandSequenceInstaller``."""

    description: str
    argv: Sequence[str]
    cwd: Path | None = None
    skip_if_exists: Path | None = None
    timeout: float | None = None


@dataclass
class CommandSequenceInstaller:
    """Run a fixed list of commands (clone, configure, build, install).

    A step whose ``skip_if_exists`` path is present is skipped, so an
    interrupted sequence resumes at the first step that has not yet
    produced its output. ``clean_on_first_step`` is removed before the
    first step runs when that step is not skipped (partial clones).
    """

    steps: Sequence[InstallStep]
    clean_on_first_step: Path | None = None
    env_overrides: dict[str, str] = field(default_factory=dict)

    def install(self, name: str, ctx: InstallContext) -> None:
        for i, step in enumerate(self.steps):
            if step.skip_if_exists is not None and step.skip_if_exists.exists():
                ctx.reporter.detail(f"{step.description}: already done")
                continue

            if i == 0 and self.clean_on_first_step is not None and self.clean_on_first_step.exists():
                logger.info("Removing partial %s at %s", name, self.clean_on_first_step)
                shutil.rmtree(self.clean_on_first_step)

            if step.cwd is not None:
                step.cwd.mkdir(parents=True, exist_ok=True)

            ctx.reporter.info(f"{step.description}...")
            result = run_command(
                step.argv, cwd=step.cwd, env_overrides=self.env_overrides, timeout=step.timeout,
            )
            if not result.ok:
                raise LauncherEnvironmentError(
                    f"{name}: {step.description} failed: {result.describe()}"
                )


# ── Manual ──────────────────────────────────────────────────────


@dataclass
class ManualInstall:
    """No automated procedure on this platform."""

    hint: str

    def install(self, name: str, ctx: InstallContext) -> None:
        raise LauncherEnvironmentError(f"{name} must be installed manually: {self.hint}")


__all__ = [
    "ArchiveInstaller",
    "CommandSequenceInstaller",
    "DownloadAndRunInstaller",
    "InstallContext",
    "InstallProcedure",
    "InstallStep",
    "ManualInstall",
]
