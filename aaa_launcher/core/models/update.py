"""
Self-update models — remote version response and update descriptor.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel


class LauncherVersionInfo(BaseModel):
    """Response of ``GET /sync/launcher-version``."""

    version: str
    checksum: str | None = None


class UpdateDescriptor(BaseModel):
    """A verified-checksum-bearing update offer."""

    version: str
    checksum: str


class SwapPhase(StrEnum):
    """Phases of the rename-based executable swap."""

    OLD_VALID = "old_valid"
    TRANSITIONAL = "transitional"   # target moved to backup, new not yet in place
    NEW_VALID = "new_valid"
    ROLLED_BACK = "rolled_back"
