"""
Logging setup for the launcher entrypoint.

main.py calls ``setup_logging`` twice: once before the config is
loaded (console only) and once more when the install directory is
known, adding the per-run log file. Modules just use
``logging.getLogger(__name__)``.

Console level precedence:
    --verbose flag  >  AAA_LOG_LEVEL env var  >  WARNING (default)

The run log under ``<install_dir>/logs`` keeps DEBUG detail whatever
the console shows; it is what users attach to bug reports.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

# ── Format strings ──────────────────────────────────────────────

_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
}
_CONSOLE_DEFAULT = ("%(levelname)s: %(message)s", None)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s [%(threadName)s] %(name)s:%(lineno)d | %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Reporter lines are already echoed to the terminal; they only go to the file.
REPORTER_LOGGER = "aaa_launcher.progress"


class _DropReporter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return not record.name.startswith(REPORTER_LOGGER)


def run_log_path(logs_dir: Path, now: datetime | None = None) -> Path:
    """``launcher_YYYYmmdd_HHMMSS.log`` inside ``logs_dir``."""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return logs_dir / f"launcher_{stamp}.log"


def setup_logging(
    level: str = "WARNING",
    log_file: Path | None = None,
    log_file_level: str = "DEBUG",
) -> None:
    """Configure the root logger for the whole process.

    Replaces any handlers installed by an earlier call.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Per-run log file; its directory is created.
        log_file_level: Level for the log file.
    """
    console_level = _parse_level(level)
    fmt, datefmt = _console_format(console_level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    console.addFilter(_DropReporter())

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)
    root_level = console_level

    if log_file is not None:
        file_level = _parse_level(log_file_level)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
        root.addHandler(fh)
        root_level = min(root_level, file_level)

    root.setLevel(root_level)
    logging.raiseExceptions = False


def _console_format(numeric_level: int) -> tuple[str, str | None]:
    for threshold in sorted(_CONSOLE_FORMATS):
        if numeric_level <= threshold:
            return _CONSOLE_FORMATS[threshold]
    return _CONSOLE_DEFAULT


def _parse_level(level: str | None) -> int:
    """Level name to its numeric constant; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
