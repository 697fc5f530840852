"""
Pipeline stages — the ordered happy path plus the ``Failed`` sink.

    Init → SelfUpdate → DependencyAudit → Sync → Build → Launch → Complete

``Failed`` is reachable from any stage and has no successor.
The stage file holds a ``StageRecord`` serialized as JSON.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as RFC 3339 string."""
    return datetime.now(UTC).isoformat()


class Stage(StrEnum):
    """A discrete, persisted step of the install pipeline."""

    INIT = "Init"
    SELF_UPDATE = "SelfUpdate"
    DEPENDENCY_AUDIT = "DependencyAudit"
    SYNC = "Sync"
    BUILD = "Build"
    LAUNCH = "Launch"
    COMPLETE = "Complete"
    FAILED = "Failed"

    def next(self) -> Stage | None:
        """Happy-path successor, or None for ``Complete`` and ``Failed``."""
        if self in (Stage.COMPLETE, Stage.FAILED):
            return None
        return _ORDER[_ORDER.index(self) + 1]

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def step_number(self) -> int:
        if self == Stage.FAILED:
            return 0
        return _ORDER.index(self)

    @classmethod
    def total_steps(cls) -> int:
        return len(_ORDER) - 1


_ORDER: list[Stage] = [
    Stage.INIT,
    Stage.SELF_UPDATE,
    Stage.DEPENDENCY_AUDIT,
    Stage.SYNC,
    Stage.BUILD,
    Stage.LAUNCH,
    Stage.COMPLETE,
]

_LABELS: dict[Stage, str] = {
    Stage.INIT: "Initializing",
    Stage.SELF_UPDATE: "Checking for Updates",
    Stage.DEPENDENCY_AUDIT: "Verifying Dependencies",
    Stage.SYNC: "Syncing Files",
    Stage.BUILD: "Building Engine",
    Stage.LAUNCH: "Launching Game",
    Stage.COMPLETE: "Complete",
    Stage.FAILED: "Failed",
}


class StageRecord(BaseModel):
    """On-disk shape of the stage file."""

    state: Stage
    timestamp: str = Field(default_factory=_now_iso)
    failed_stage: Stage | None = None  # only set when state == Failed
    error: str | None = None
