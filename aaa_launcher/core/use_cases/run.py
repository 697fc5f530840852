"""
Run use case — assemble the pipeline for a configuration and drive it.
"""

from __future__ import annotations

from aaa_launcher.core.engine.pipeline import PipelineResult, run_pipeline
from aaa_launcher.core.engine.stages import PipelineStages
from aaa_launcher.core.engine.state_machine import PipelineStateMachine
from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.observability.reporter import Reporter
from aaa_launcher.core.persistence.run_ledger import RunLedger


def run_launcher(
    config: LauncherConfig,
    reporter: Reporter | None = None,
    stages: PipelineStages | None = None,
) -> PipelineResult:
    """Run (or resume) the install pipeline.

    A dry run starts from ``Init`` in memory and leaves the stage file
    untouched; a real run resumes from whatever the stage file says.

    Raises:
        StageFailedError: A stage failed; ``Failed`` is persisted.
    """
    reporter = reporter or Reporter(echo=False)
    stages = stages or PipelineStages(config, reporter)
    machine = PipelineStateMachine(config.stage_file, persist=not config.dry_run)
    return run_pipeline(
        machine,
        stages.actions(),
        reporter=reporter,
        ledger=RunLedger(config.ledger_file),
        dry_run=config.dry_run,
    )
