"""
Stage file persistence — atomic read/write of the pipeline stage.

The stage is stored as JSON in ``<install_dir>/launcher_state.json``:

    {"state": "Sync", "timestamp": "2026-01-01T00:00:00+00:00"}

Writes are atomic (write to temp file, then rename) so a crash
mid-write leaves either the previous record or the new one, never
a truncated file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from aaa_launcher.core.errors import FilesystemError
from aaa_launcher.core.models.stage import StageRecord

logger = logging.getLogger(__name__)


def load_stage_record(path: Path) -> StageRecord | None:
    """Load the stage record from disk.

    Returns:
        The record, or None if the file is absent, corrupt, or names
        an unknown stage.
    """
    if not path.is_file():
        logger.debug("No stage file at %s", path)
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        record = StageRecord.model_validate(data)
        logger.debug("Loaded stage %s from %s", record.state, path)
        return record
    except json.JSONDecodeError as e:
        logger.warning("Corrupt stage file %s: %s - starting fresh", path, e)
        return None
    except Exception as e:
        logger.warning("Cannot load stage from %s: %s - starting fresh", path, e)
        return None


def save_stage_record(record: StageRecord, path: Path) -> None:
    """Save the stage record (atomic write).

    Raises:
        FilesystemError: The record could not be written; the previous
            file, if any, is left untouched.
    """
    data = record.model_dump(mode="json", exclude_none=True)
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".stage_", suffix=".tmp")
    except OSError as e:
        raise FilesystemError(f"Cannot write stage file {path}: {e}", path=path) from e

    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp, path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save stage to %s: %s", path, e)
        raise FilesystemError(f"Cannot write stage file {path}: {e}", path=path) from e
    logger.debug("Stage %s saved to %s", record.state, path)


def delete_stage_file(path: Path) -> bool:
    """Remove the stage file. Returns True if a file was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as e:
        raise FilesystemError(f"Cannot remove stage file {path}: {e}", path=path) from e
    logger.debug("Stage file removed: %s", path)
    return True
