"""
Pipeline state machine — the persisted "where am I" of an install.

The stage file always names the NEXT stage to run. Every successful
stage advances it by one (persisted atomically), so a crash or kill
resumes at the stage that was interrupted.

    Loaded state      →  current()
    (absent/corrupt)     Init
    Complete             Init
    Failed               Failed   (caller must reset() before retrying)
    anything else        as stored
"""

from __future__ import annotations

import logging
from pathlib import Path

from aaa_launcher.core.models.stage import Stage, StageRecord
from aaa_launcher.core.persistence.stage_file import (
    delete_stage_file,
    load_stage_record,
    save_stage_record,
)

logger = logging.getLogger(__name__)


class PipelineStateMachine:
    """Linear stage progression with a persisted cursor.

    Args:
        stage_file: Where the cursor lives.
        persist: When False the machine runs purely in memory, always
            starts at ``Init`` and never reads or writes ``stage_file``.
    """

    def __init__(self, stage_file: Path, persist: bool = True):
        self.stage_file = stage_file
        self.persist = persist
        self._record = self._load()

    def _load(self) -> StageRecord:
        if not self.persist:
            return StageRecord(state=Stage.INIT)
        record = load_stage_record(self.stage_file)
        if record is None:
            return StageRecord(state=Stage.INIT)
        if record.state == Stage.COMPLETE:
            logger.info("Previous run completed - starting from Init")
            return StageRecord(state=Stage.INIT)
        if record.state != Stage.INIT:
            logger.info("Resuming from stage %s", record.state)
        return record

    @property
    def record(self) -> StageRecord:
        return self._record

    def current(self) -> Stage:
        return self._record.state

    def _set(self, record: StageRecord) -> None:
        self._record = record
        if self.persist:
            save_stage_record(record, self.stage_file)

    def transition(self) -> Stage | None:
        """Advance to the next stage and persist it.

        Returns:
            The new stage, or None at ``Complete``/``Failed`` (nothing
            is persisted in that case).
        """
        nxt = self.current().next()
        if nxt is None:
            return None
        logger.debug("Stage %s → %s", self.current(), nxt)
        self._set(StageRecord(state=nxt))
        return nxt

    def fail(self, error: BaseException | str | None = None) -> None:
        """Persist ``Failed``, remembering which stage failed and why."""
        failed_stage = self.current() if self.current() != Stage.FAILED else self._record.failed_stage
        self._set(StageRecord(
            state=Stage.FAILED,
            failed_stage=failed_stage,
            error=str(error) if error is not None else None,
        ))
        logger.error("Stage %s failed: %s", failed_stage, error)

    def reset(self) -> Stage:
        """Force ``Init`` and persist it."""
        self._set(StageRecord(state=Stage.INIT))
        return Stage.INIT

    def clear(self) -> None:
        """Remove the stage file (after a fully successful run)."""
        if self.persist:
            delete_stage_file(self.stage_file)
