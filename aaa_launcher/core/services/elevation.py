"""
Windows elevation — relaunch the launcher with administrator rights.

Installers for the Vulkan SDK and the Visual Studio Build Tools need
admin rights. On Windows a non-elevated launcher asks UAC to start a
second, elevated copy of itself (``--skip-elevation`` appended so it
does not loop) and the first copy exits. Elsewhere this is a no-op.
"""

from __future__ import annotations

import logging
import subprocess
import sys
from enum import StrEnum

logger = logging.getLogger(__name__)

SKIP_ELEVATION_FLAG = "--skip-elevation"
_SW_SHOWNORMAL = 1


class ElevationOutcome(StrEnum):
    NOT_NEEDED = "not_needed"    # not Windows, or already elevated
    RELAUNCHED = "relaunched"    # elevated copy started, caller should exit
    DENIED = "denied"            # UAC refused / unavailable, continue as is


def is_elevated() -> bool:
    if sys.platform != "win32":
        return True
    import ctypes

    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())
    except (AttributeError, OSError) as e:
        logger.debug("IsUserAnAdmin unavailable: %s", e)
        return False


def relaunch_arguments(argv: list[str] | None = None) -> tuple[str, str]:
    """Executable and parameter string for the elevated copy."""
    argv = list(sys.argv if argv is None else argv)
    if getattr(sys, "frozen", False):
        exe, params = sys.executable, argv[1:]
    else:
        exe, params = sys.executable, argv
    if SKIP_ELEVATION_FLAG not in params:
        params.append(SKIP_ELEVATION_FLAG)
    return exe, subprocess.list2cmdline(params)


def request_elevation(argv: list[str] | None = None) -> ElevationOutcome:
    """Relaunch elevated if needed.

    Returns:
        ``RELAUNCHED`` when the elevated copy was started (the caller
        exits 0), otherwise ``NOT_NEEDED`` or ``DENIED``.
    """
    if sys.platform != "win32" or is_elevated():
        return ElevationOutcome.NOT_NEEDED

    import ctypes

    exe, params = relaunch_arguments(argv)
    logger.info("Requesting elevation: %s %s", exe, params)
    try:
        rc = ctypes.windll.shell32.ShellExecuteW(None, "runas", exe, params, None, _SW_SHOWNORMAL)
    except (AttributeError, OSError) as e:
        logger.warning("ShellExecuteW failed: %s", e)
        return ElevationOutcome.DENIED
    # ShellExecuteW returns a value > 32 on success
    if int(rc) > 32:
        return ElevationOutcome.RELAUNCHED
    logger.warning("Elevation refused (code %s)", rc)
    return ElevationOutcome.DENIED
