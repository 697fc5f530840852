"""
Build cache gate — decides whether the managed application needs a rebuild.

Markers inside the engine tree:

    VERSION                         source version (shipped by the server)
    .build_version                  VERSION as of the last successful build
    target/release/.build_complete  written together with .build_version

Both cached markers are written only after a confirmed successful
build, so a failed build can never look cached on the next run.
"""

from __future__ import annotations

import logging
from pathlib import Path

from aaa_launcher.core.errors import FilesystemError
from aaa_launcher.core.models.config import LauncherConfig

logger = logging.getLogger(__name__)

SOURCE_VERSION_FILE = "VERSION"
CACHED_VERSION_FILE = ".build_version"
UNKNOWN_VERSION = "unknown"


class BuildCacheGate:
    """Version-marker comparison for the Build stage."""

    def __init__(self, config: LauncherConfig):
        self.config = config

    @property
    def engine_dir(self) -> Path:
        return self.config.engine_dir

    @property
    def completion_marker(self) -> Path:
        return self.engine_dir / "target" / "release" / ".build_complete"

    @property
    def cached_version_file(self) -> Path:
        return self.engine_dir / CACHED_VERSION_FILE

    def source_version(self) -> str:
        path = self.engine_dir / SOURCE_VERSION_FILE
        try:
            return path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return UNKNOWN_VERSION
        except OSError as e:
            raise FilesystemError(f"Cannot read {path}: {e}", path=path) from e

    def cached_version(self) -> str | None:
        try:
            return self.cached_version_file.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise FilesystemError(
                f"Cannot read {self.cached_version_file}: {e}", path=self.cached_version_file,
            ) from e

    def needs_rebuild(self) -> bool:
        if self.config.force_rebuild:
            logger.info("Rebuild forced by configuration")
            return True
        if not self.completion_marker.is_file():
            logger.info("No completed build found")
            return True
        cached = self.cached_version()
        if cached is None:
            logger.info("No cached build version")
            return True
        current = self.source_version()
        if cached != current:
            logger.info("Source version changed: %s → %s", cached, current)
            return True
        return False

    def save_build_version(self) -> str:
        """Record the current source version as built. Call only after success."""
        version = self.source_version()
        try:
            self.cached_version_file.write_text(version, encoding="utf-8")
            self.completion_marker.parent.mkdir(parents=True, exist_ok=True)
            self.completion_marker.write_text("complete", encoding="utf-8")
        except OSError as e:
            raise FilesystemError(f"Cannot write build markers: {e}", path=self.engine_dir) from e
        logger.info("Build version %s cached", version)
        return version
