"""
Managed application runner — build it and launch it.

The build itself is opaque: one command run inside the engine tree
with the toolchain environment set. Its output goes to the run log.
"""

from __future__ import annotations

import logging
from pathlib import Path

from aaa_launcher.core.errors import BuildError
from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.observability.reporter import Reporter
from aaa_launcher.core.services.build_gate import BuildCacheGate
from aaa_launcher.core.services.subprocess_runner import run_command, spawn_detached

logger = logging.getLogger(__name__)

APP_NAME = "aaa-mmorpg"
BUILD_TIMEOUT = 4 * 60 * 60  # first builds take 60-120 minutes


class AppRunner:
    """Build and launch the managed application."""

    def __init__(self, config: LauncherConfig, reporter: Reporter | None = None):
        self.config = config
        self.reporter = reporter or Reporter(echo=False)
        self.gate = BuildCacheGate(config)

    @property
    def engine_dir(self) -> Path:
        return self.config.engine_dir

    @property
    def app_executable(self) -> Path:
        name = f"{APP_NAME}.exe" if self.config.is_windows else APP_NAME
        return self.engine_dir / "target" / "release" / name

    @property
    def build_script(self) -> Path:
        name = "build-orchestrator.ps1" if self.config.is_windows else "build.sh"
        return self.engine_dir / name

    def build_command(self) -> list[str]:
        if self.config.build_command:
            return list(self.config.build_command)
        script = self.build_script
        if self.config.is_windows:
            return [
                "powershell.exe", "-NoProfile", "-ExecutionPolicy", "Bypass",
                "-File", str(script), "-InstallDir", str(self.engine_dir),
            ]
        return ["sh", str(script)]

    def run_build(self) -> None:
        """Run the build command; raise BuildError on failure."""
        cmd = self.build_command()
        if not self.config.build_command and not self.build_script.is_file():
            raise BuildError(f"Build orchestrator not found at: {self.build_script}")

        self.reporter.info("Starting build process...")
        self.reporter.warn("First build may take 60-120 minutes")
        result = run_command(
            cmd,
            cwd=self.engine_dir,
            env_overrides=self.config.toolchain_env(),
            timeout=BUILD_TIMEOUT,
        )
        if not result.ok:
            raise BuildError(f"Build failed: {result.describe()}")
        self.reporter.success("Build completed successfully")

    def build_if_needed(self) -> bool:
        """Build stage: rebuild only when the gate says so. Returns True if built."""
        if not self.gate.needs_rebuild():
            self.reporter.success("Build cache valid - skipping rebuild")
            return False
        self.run_build()
        self.gate.save_build_version()
        return True

    def launch(self) -> int:
        """Launch stage: spawn the application and return its PID."""
        exe = self.app_executable
        if not exe.is_file():
            raise BuildError(f"Game executable not found at: {exe}")
        self.reporter.info("Launching game...")
        try:
            proc = spawn_detached(
                [exe],
                cwd=self.engine_dir,
                env_overrides=self.config.toolchain_env(),
            )
        except OSError as e:
            raise BuildError(f"Failed to launch game: {e}") from e
        self.reporter.success("Game launched")
        return proc.pid
