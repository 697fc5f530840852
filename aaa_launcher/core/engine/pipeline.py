"""
Pipeline driver — runs stage actions against the state machine.

Flow:
    current() → (Failed? reset) → action → transition() → ... → Complete → clear()

Each stage action is a zero-argument callable. Success advances the
persisted cursor; any exception persists ``Failed`` and is re-raised
as ``StageFailedError``. There is no automatic retry: the next
invocation starts over from ``Init``.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from aaa_launcher.core.engine.state_machine import PipelineStateMachine
from aaa_launcher.core.errors import FilesystemError, StageFailedError
from aaa_launcher.core.models.stage import Stage
from aaa_launcher.core.observability.reporter import Reporter
from aaa_launcher.core.persistence.run_ledger import LedgerEntry, RunLedger

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """What a stage action reports back (optional; None means ok)."""

    status: Literal["ok", "skipped"] = "ok"
    detail: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skipped(cls, reason: str, **detail: Any) -> StepResult:
        return cls(status="skipped", detail={"reason": reason, **detail})


StageAction = Callable[[], StepResult | None]


@dataclass
class StageOutcome:
    """One executed stage."""

    stage: Stage
    status: Literal["ok", "failed", "skipped"]
    duration_ms: int = 0
    error: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineResult:
    """Summary of one ``run_pipeline`` call."""

    run_id: str = ""
    dry_run: bool = False
    started_from: Stage = Stage.INIT
    outcomes: list[StageOutcome] = field(default_factory=list)

    @property
    def executed(self) -> list[Stage]:
        return [o.stage for o in self.outcomes]

    @property
    def ok(self) -> bool:
        return all(o.status != "failed" for o in self.outcomes)

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "started_from": self.started_from.value,
            "ok": self.ok,
            "stages": [
                {
                    "stage": o.stage.value,
                    "status": o.status,
                    "duration_ms": o.duration_ms,
                    "error": o.error,
                    "detail": o.detail,
                }
                for o in self.outcomes
            ],
        }


def run_pipeline(
    machine: PipelineStateMachine,
    actions: Mapping[Stage, StageAction],
    *,
    reporter: Reporter | None = None,
    ledger: RunLedger | None = None,
    dry_run: bool = False,
    run_id: str | None = None,
) -> PipelineResult:
    """Drive ``machine`` to ``Complete``, executing one action per stage.

    Args:
        machine: Loaded state machine (its current stage is where we start).
        actions: Stage → action. A stage without an action is a no-op.
        reporter: Progress sink.
        ledger: Receives one entry per executed stage.
        dry_run: Recorded on ledger entries.
        run_id: Correlates ledger entries (generated when omitted).

    Returns:
        PipelineResult with every stage executed by this call.

    Raises:
        StageFailedError: A stage action raised. ``Failed`` has been
            persisted (when the stage file is writable) and a ledger
            entry written before raising.
        FilesystemError: The stage file could not be updated after a
            successful stage.
    """
    reporter = reporter or Reporter(echo=False)
    result = PipelineResult(run_id=run_id or uuid.uuid4().hex[:12], dry_run=dry_run)

    if machine.current() == Stage.FAILED:
        previous = machine.record
        reporter.warn(
            f"Previous run failed at {previous.failed_stage or 'unknown stage'}"
            f"{': ' + previous.error if previous.error else ''} - starting over"
        )
        machine.reset()

    result.started_from = machine.current()
    logger.info("Pipeline run %s starting at %s (dry_run=%s)", result.run_id, result.started_from, dry_run)

    while True:
        stage = machine.current()
        if stage != Stage.COMPLETE:
            reporter.step(stage)

        action = actions.get(stage)
        start = time.monotonic()
        try:
            step = action() if action is not None else None
        except Exception as e:
            duration_ms = int((time.monotonic() - start) * 1000)
            try:
                machine.fail(e)
            except FilesystemError as persist_error:
                reporter.warn(f"Could not record the failure: {persist_error}")
            outcome = StageOutcome(stage=stage, status="failed", duration_ms=duration_ms, error=str(e))
            result.outcomes.append(outcome)
            _record(ledger, result, outcome)
            reporter.error(f"{stage.label} failed: {e}")
            raise StageFailedError(stage.value, e) from e

        step = step or StepResult()
        outcome = StageOutcome(
            stage=stage,
            status=step.status,
            duration_ms=int((time.monotonic() - start) * 1000),
            detail=step.detail,
        )
        result.outcomes.append(outcome)
        _record(ledger, result, outcome)

        if machine.transition() is None:
            break

    machine.clear()
    logger.info("Pipeline run %s complete", result.run_id)
    return result


def _record(ledger: RunLedger | None, result: PipelineResult, outcome: StageOutcome) -> None:
    if ledger is None:
        return
    ledger.write(LedgerEntry(
        run_id=result.run_id,
        stage=outcome.stage.value,
        status=outcome.status,
        duration_ms=outcome.duration_ms,
        dry_run=result.dry_run,
        error=outcome.error,
        detail=outcome.detail,
    ))
