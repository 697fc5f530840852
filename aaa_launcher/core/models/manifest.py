"""
Manifest models — expected state of the synced file tree.

A file is in sync iff its local size equals ``size`` AND its
SHA-256 equals ``checksum``. Size alone is only a shortcut for
detecting a mismatch, never proof of a match.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from pydantic import BaseModel, Field, field_validator


class FileEntry(BaseModel):
    """Expected checksum and size of one file."""

    checksum: str
    size: int = Field(ge=0)

    @field_validator("checksum")
    @classmethod
    def _normalize_checksum(cls, v: str) -> str:
        return v.strip().lower()


class FileManifest(BaseModel):
    """Remote-supplied mapping of relative path → FileEntry."""

    version: str = ""
    files: dict[str, FileEntry] = Field(default_factory=dict)

    @property
    def total_bytes(self) -> int:
        return sum(e.size for e in self.files.values())


def normalize_manifest_path(raw: str) -> PurePosixPath:
    """Normalize a manifest key to a safe relative POSIX path.

    Backslashes are treated as separators. Absolute paths, drive
    letters and ``..`` components are rejected with ``ValueError``.
    """
    cleaned = raw.replace("\\", "/").strip()
    path = PurePosixPath(cleaned)
    if not cleaned or path.is_absolute() or (path.parts and ":" in path.parts[0]):
        raise ValueError(f"Unsafe manifest path: {raw!r}")
    parts = [p for p in path.parts if p not in ("", ".")]
    if not parts or ".." in parts:
        raise ValueError(f"Unsafe manifest path: {raw!r}")
    return PurePosixPath(*parts)
