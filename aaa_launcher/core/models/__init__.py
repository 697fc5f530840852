"""
Domain models — Pydantic types for the launcher.

All models are re-exported here for convenient access:

    from aaa_launcher.core.models import Stage, LauncherConfig, FileManifest
"""

from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.models.dependency import DependencyRecord
from aaa_launcher.core.models.manifest import FileEntry, FileManifest
from aaa_launcher.core.models.stage import Stage, StageRecord
from aaa_launcher.core.models.update import (
    LauncherVersionInfo,
    SwapPhase,
    UpdateDescriptor,
)

__all__ = [
    "DependencyRecord",
    "FileEntry",
    "FileManifest",
    "LauncherConfig",
    "LauncherVersionInfo",
    "Stage",
    "StageRecord",
    "SwapPhase",
    "UpdateDescriptor",
]
