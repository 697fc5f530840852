"""
Status use case — what the stage file and the run ledger say.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.models.stage import Stage, StageRecord
from aaa_launcher.core.persistence.run_ledger import LedgerEntry, RunLedger
from aaa_launcher.core.persistence.stage_file import load_stage_record


@dataclass
class StatusResult:
    """Persisted pipeline state plus recent history."""

    install_dir: str = ""
    server_url: str = ""
    record: StageRecord | None = None
    recent: list[LedgerEntry] = field(default_factory=list)

    @property
    def next_stage(self) -> Stage:
        """Stage the next run will start at."""
        if self.record is None or self.record.state in (Stage.COMPLETE, Stage.FAILED):
            return Stage.INIT
        return self.record.state

    @property
    def in_progress(self) -> bool:
        """A previous run stopped mid-pipeline and the next one resumes it."""
        if self.record is None:
            return False
        return self.record.state not in (Stage.INIT, Stage.COMPLETE, Stage.FAILED)

    def to_dict(self) -> dict:
        return {
            "install_dir": self.install_dir,
            "server_url": self.server_url,
            "stage_file": self.record.model_dump(mode="json", exclude_none=True) if self.record else None,
            "next_stage": self.next_stage.value,
            "in_progress": self.in_progress,
            "recent": [e.model_dump(mode="json") for e in self.recent],
        }


def get_status(config: LauncherConfig, recent: int = 10) -> StatusResult:
    return StatusResult(
        install_dir=str(config.install_dir),
        server_url=config.server_url,
        record=load_stage_record(config.stage_file),
        recent=RunLedger(config.ledger_file).read_recent(recent),
    )
