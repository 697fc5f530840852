"""
Stage actions — wires each pipeline stage to the component that does it.

    Init             create the install layout
    SelfUpdate       SelfUpdater.run()
    DependencyAudit  DependencyAuditor.run()
    Sync             SyncEngine.sync()
    Build            AppRunner.build_if_needed()
    Launch           AppRunner.launch()
    Complete         final banner

In dry-run mode every action is read-only: the update check and the
dependency audit report what they would do, and Sync/Build/Launch are
skipped.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from aaa_launcher.core.engine.pipeline import StageAction, StepResult
from aaa_launcher.core.errors import FilesystemError
from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.models.stage import Stage
from aaa_launcher.core.observability.reporter import Reporter
from aaa_launcher.core.services.app_runner import AppRunner
from aaa_launcher.core.services.dependency_audit import DependencyAuditor, build_catalog
from aaa_launcher.core.services.http_client import HttpClient
from aaa_launcher.core.services.self_updater import SelfUpdater
from aaa_launcher.core.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class PipelineStages:
    """Stage actions bound to one configuration.

    Components can be injected (tests); otherwise they are built from
    ``config`` sharing one ``HttpClient``.
    """

    def __init__(
        self,
        config: LauncherConfig,
        reporter: Reporter | None = None,
        *,
        client: HttpClient | None = None,
        updater: SelfUpdater | None = None,
        auditor: DependencyAuditor | None = None,
        sync_engine: SyncEngine | None = None,
        runner: AppRunner | None = None,
    ):
        self.config = config
        self.reporter = reporter or Reporter(echo=False)
        self.client = client or HttpClient.from_config(config)
        self.updater = updater or SelfUpdater(config, self.client, self.reporter)
        self.auditor = auditor or DependencyAuditor(
            build_catalog(config, os.environ),
            config=config, client=self.client, reporter=self.reporter,
        )
        self.sync_engine = sync_engine or SyncEngine(config, self.client, self.reporter)
        self.runner = runner or AppRunner(config, self.reporter)

    def actions(self) -> dict[Stage, StageAction]:
        return {
            Stage.INIT: self.init,
            Stage.SELF_UPDATE: self.self_update,
            Stage.DEPENDENCY_AUDIT: self.dependency_audit,
            Stage.SYNC: self.sync,
            Stage.BUILD: self.build,
            Stage.LAUNCH: self.launch,
            Stage.COMPLETE: self.complete,
        }

    # ── Actions ─────────────────────────────────────────────────

    def layout_dirs(self) -> list[Path]:
        c = self.config
        return [c.install_dir, c.deps_dir, c.logs_dir, c.engine_dir]

    def init(self) -> StepResult:
        self.reporter.info(f"Install directory: {self.config.install_dir}")
        self.reporter.detail(f"Server: {self.config.server_url}")
        if self.config.dry_run:
            missing = [str(d) for d in self.layout_dirs() if not d.is_dir()]
            for d in missing:
                self.reporter.info(f"Dry-run mode: would create {d}")
            return StepResult(detail={"would_create": missing})

        for d in self.layout_dirs():
            try:
                d.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FilesystemError(f"Cannot create {d}: {e}", path=d) from e
        self.reporter.success("Directories ready")
        return StepResult()

    def self_update(self) -> StepResult:
        if self.config.skip_update:
            self.reporter.info("Update check skipped")
            return StepResult.skipped("skip_update")
        update = self.updater.run()
        if update is None:
            return StepResult(detail={"update": None})
        return StepResult(detail={"update": update.version})

    def dependency_audit(self) -> StepResult:
        records = self.auditor.run()
        return StepResult(detail={
            "installed": [r.name for r in records if r.installed],
            "missing": [r.name for r in records if not r.installed],
        })

    def sync(self) -> StepResult:
        if self.config.dry_run:
            self.reporter.info("Dry-run mode: skipping file sync")
            return StepResult.skipped("dry_run")
        result = self.sync_engine.sync()
        return StepResult(detail={
            "mode": result.mode,
            "files_updated": result.files_updated,
            "server_version": result.server_version,
            "fallback_reason": result.fallback_reason or None,
        })

    def build(self) -> StepResult:
        if self.config.dry_run:
            needed = self.runner.gate.needs_rebuild()
            self.reporter.info(
                "Dry-run mode: would rebuild" if needed else "Dry-run mode: build cache valid"
            )
            return StepResult.skipped("dry_run", needs_rebuild=needed)
        built = self.runner.build_if_needed()
        return StepResult(detail={"built": built})

    def launch(self) -> StepResult:
        if self.config.dry_run:
            self.reporter.info("Dry-run mode: skipping game launch")
            return StepResult.skipped("dry_run")
        pid = self.runner.launch()
        return StepResult(detail={"pid": pid})

    def complete(self) -> StepResult:
        self.reporter.complete(dry_run=self.config.dry_run)
        return StepResult()
