"""
Run ledger — append-only history of stage outcomes.

Every stage execution appends one NDJSON line to
``<install_dir>/logs/runs.ndjson``. The ledger is diagnostic only:
the pipeline never reads it to decide what to do next, and a write
failure is logged rather than failing the stage.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class LedgerEntry(BaseModel):
    """A single stage outcome."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    stage: str = ""
    status: Literal["ok", "failed", "skipped"] = "ok"
    duration_ms: int = 0
    dry_run: bool = False
    error: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


class RunLedger:
    """Append-only NDJSON writer/reader for ``LedgerEntry`` lines."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: LedgerEntry) -> None:
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Ledger entry written: %s/%s", entry.stage, entry.status)
        except OSError as e:
            logger.error("Failed to write ledger entry: %s", e)

    def read_all(self) -> list[LedgerEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(LedgerEntry.model_validate(json.loads(line)))
                    except Exception as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read run ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[LedgerEntry]:
        return self.read_all()[-n:]
