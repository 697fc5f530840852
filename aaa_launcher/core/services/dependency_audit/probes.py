"""
Probe strategies — independent, read-only ways to detect a dependency.

Each strategy answers one question ("does this signal say the
dependency is installed?") and returns a ``DependencyRecord`` on a
positive match or ``None``. A ``DependencySpec`` lists its strategies
most-specific first; the auditor stops at the first hit.

Strategies never write anything. They may run read-only commands
(``vswhere``, ``--version``) through ``capture_output``.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from aaa_launcher.core.models.dependency import DependencyRecord
from aaa_launcher.core.services.subprocess_runner import capture_output

logger = logging.getLogger(__name__)


class ProbeStrategy(Protocol):
    """Capability: try to detect a dependency."""

    source: str

    def detect(self, name: str) -> DependencyRecord | None:
        ...


def _found(name: str, source: str, version: str | None, location: Path | None) -> DependencyRecord:
    logger.debug("%s found via %s at %s (version %s)", name, source, location, version)
    return DependencyRecord(
        name=name, installed=True, version=version, location=location, source=source,
    )


# ── Authoritative registry query ────────────────────────────────


@dataclass
class CommandQueryProbe:
    """Run a registry tool that reports installations as JSON.

    Example: ``vswhere.exe -latest -products * -format json``. The first
    element of the returned array whose ``path_key`` exists on disk wins.
    """

    command: Sequence[str]
    path_key: str = "installationPath"
    version_key: str = "installationVersion"
    source: str = "registry"

    def detect(self, name: str) -> DependencyRecord | None:
        exe = self.command[0]
        if not Path(exe).is_file() and shutil.which(exe) is None:
            return None

        output = capture_output(self.command, timeout=30)
        if not output:
            return None
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            logger.debug("%s: %s returned non-JSON output", name, exe)
            return None

        entries = data if isinstance(data, list) else [data]
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            raw_path = entry.get(self.path_key)
            if not raw_path or not Path(raw_path).exists():
                continue
            version = entry.get(self.version_key)
            return _found(name, self.source, str(version) if version else None, Path(raw_path))
        return None


# ── Environment variable ────────────────────────────────────────


@dataclass
class EnvVarProbe:
    """An environment variable pointing at an install root.

    The version is taken from the root's directory name
    (e.g. ``C:\\VulkanSDK\\1.3.290.0``) unless ``version`` is given.
    """

    var: str
    env: Mapping[str, str]
    markers: Sequence[str] = ()
    version: str | None = None
    source: str = "env"

    def detect(self, name: str) -> DependencyRecord | None:
        raw = (self.env.get(self.var) or "").strip()
        if not raw:
            return None
        root = Path(raw)
        if not root.exists():
            return None
        if self.markers and not any((root / m).exists() for m in self.markers):
            return None
        return _found(name, f"{self.source}:{self.var}", self.version or root.name or None, root)


# ── Well-known path scan ────────────────────────────────────────


@dataclass
class PathScanProbe:
    """Scan well-known install roots for marker files.

    Args:
        roots: Candidate roots, highest priority first.
        markers: Relative paths; a root matches if ANY exists.
        subdir_glob: When set, each root is treated as a parent and its
            matching subdirectories are checked newest-name-first; the
            subdirectory name becomes the version.
        version: Fixed version to report for a match.
        version_file: JSON file (relative to the match) with a
            ``version`` or ``O3DEVersion`` key.
    """

    roots: Sequence[Path]
    markers: Sequence[str]
    subdir_glob: str | None = None
    version: str | None = None
    version_file: str | None = None
    source: str = "path"

    def detect(self, name: str) -> DependencyRecord | None:
        for root in self.roots:
            for candidate in self._candidates(root):
                if any((candidate / m).exists() for m in self.markers):
                    return _found(name, self.source, self._version_for(candidate, root), candidate)
        return None

    def _candidates(self, root: Path) -> list[Path]:
        if self.subdir_glob is None:
            return [root]
        if not root.is_dir():
            return []
        subdirs = [p for p in root.glob(self.subdir_glob) if p.is_dir()]
        return sorted(subdirs, key=lambda p: p.name, reverse=True)

    def _version_for(self, match: Path, root: Path) -> str | None:
        if self.version_file:
            version = _read_json_version(match / self.version_file)
            if version:
                return version
        if self.version:
            return self.version
        if self.subdir_glob is not None and match != root:
            return match.name
        return None


def _read_json_version(path: Path) -> str | None:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None
    if not isinstance(data, dict):
        return None
    for key in ("version", "O3DEVersion"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


# ── Command on PATH ─────────────────────────────────────────────


@dataclass
class WhichProbe:
    """A command on ``PATH``, version parsed from its output.

    Args:
        commands: Executable names to try in order (``cmake.exe``, ``cmake``).
        version_args: Arguments that make it print its version.
        pattern: Regex whose first group is the version.
        search_path: PATH string to search (from the env snapshot).
    """

    commands: Sequence[str]
    version_args: Sequence[str] = ("--version",)
    pattern: str = r"(\d+\.\d+(?:\.\d+)?)"
    search_path: str | None = None
    source: str = "path-command"
    _compiled: re.Pattern = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._compiled = re.compile(self.pattern)

    def detect(self, name: str) -> DependencyRecord | None:
        for cmd in self.commands:
            resolved = shutil.which(cmd, path=self.search_path)
            if resolved is None:
                continue
            output = capture_output([resolved, *self.version_args])
            version = None
            if output:
                match = self._compiled.search(output)
                if match:
                    version = match.group(1)
            return _found(name, f"{self.source}:{cmd}", version, Path(resolved))
        return None
