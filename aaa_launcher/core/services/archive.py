"""
Zip extraction with path-traversal protection.

Every member name goes through the same normalisation as manifest
paths, so an archive can never write outside its destination.
"""

from __future__ import annotations

import shutil
import zipfile
from pathlib import Path

from aaa_launcher.core.errors import ManifestError
from aaa_launcher.core.models.manifest import normalize_manifest_path


def extract_zip(archive_path: Path, dest: Path) -> int:
    """Extract ``archive_path`` under ``dest``. Returns files written.

    Raises:
        ManifestError: Not a zip, or a member escapes ``dest``.
    """
    if not zipfile.is_zipfile(archive_path):
        raise ManifestError(f"{archive_path.name} is not a valid zip file")

    dest.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(archive_path) as zf:
        for info in zf.infolist():
            try:
                rel = normalize_manifest_path(info.filename)
            except ValueError as e:
                raise ManifestError(f"Archive contains unsafe member: {info.filename!r}") from e
            target = dest.joinpath(*rel.parts)
            if info.is_dir():
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            with zf.open(info) as src, open(target, "wb") as out:
                shutil.copyfileobj(src, out)
            count += 1
    return count
