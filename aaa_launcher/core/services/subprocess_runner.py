"""
Subprocess runner — the single place external commands are executed.

Two flavours:

* ``run_command`` — long-running installers and builds. Waited on
  synchronously; stdout/stderr lines are forwarded to the log as
  they arrive and are never parsed for state.
* ``capture_output`` — short read-only probes (``--version``,
  ``vswhere``). Returns combined output, or None on any failure.
"""

from __future__ import annotations

import logging
import os
import subprocess
import threading
import time
from collections import deque
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_TAIL_LINES = 40
_READER_GRACE = 5.0


@dataclass
class CommandResult:
    """Outcome of ``run_command``."""

    cmd: list[str]
    returncode: int | None
    elapsed_ms: int = 0
    tail: list[str] = field(default_factory=list)
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.error

    def describe(self) -> str:
        if self.error:
            return self.error
        return f"exit code {self.returncode}"


def run_command(
    cmd: Sequence[str | Path],
    *,
    cwd: Path | None = None,
    env_overrides: Mapping[str, str] | None = None,
    timeout: float | None = None,
    log: logging.Logger | None = None,
) -> CommandResult:
    """Run ``cmd`` to completion, forwarding its output to the log.

    Args:
        cmd: Argument vector (no shell).
        cwd: Working directory.
        env_overrides: Extra variables layered over the inherited env.
        timeout: Seconds before the process is killed.
        log: Logger receiving output lines (default: this module's).

    Returns:
        CommandResult. Spawn failures and timeouts are reported via
        ``error`` rather than raised.
    """
    argv = [str(c) for c in cmd]
    out = log or logger
    env = os.environ.copy()
    if env_overrides:
        env.update({k: str(v) for k, v in env_overrides.items()})

    tail: deque[str] = deque(maxlen=_TAIL_LINES)
    start = time.monotonic()
    out.info("$ %s", " ".join(argv))

    try:
        proc = subprocess.Popen(
            argv,
            cwd=str(cwd) if cwd else None,
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
            errors="replace",
        )
    except OSError as e:
        return CommandResult(cmd=argv, returncode=None, error=f"Failed to start {argv[0]}: {e}")

    assert proc.stdout is not None
    reader = threading.Thread(
        target=_forward_output,
        args=(proc.stdout, tail, out),
        name=f"output-{proc.pid}",
        daemon=True,
    )
    reader.start()

    error = ""
    try:
        returncode = proc.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        proc.kill()
        returncode = proc.wait()
        error = f"Command timed out ({timeout:.0f}s)"
        out.warning("%s killed after %.0fs", argv[0], timeout)
    except BaseException:
        proc.kill()
        proc.wait()
        raise
    finally:
        # A grandchild may still hold the pipe open; don't wait on it forever
        reader.join(timeout=_READER_GRACE)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    out.debug("%s exited with %s after %d ms", argv[0], returncode, elapsed_ms)
    return CommandResult(
        cmd=argv, returncode=returncode, elapsed_ms=elapsed_ms, tail=list(tail), error=error,
    )


def _forward_output(stream, tail: deque[str], out: logging.Logger) -> None:
    """Reader thread: log each output line and keep the last few."""
    try:
        for line in stream:
            line = line.rstrip()
            if line:
                tail.append(line)
                out.info("  %s", line)
    except (OSError, ValueError) as e:
        out.debug("Output stream closed: %s", e)
    finally:
        stream.close()


def capture_output(
    cmd: Sequence[str | Path],
    *,
    timeout: float = 10,
    env: Mapping[str, str] | None = None,
) -> str | None:
    """Run a read-only probe and return stdout+stderr, or None."""
    argv = [str(c) for c in cmd]
    try:
        result = subprocess.run(
            argv,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
        )
    except (OSError, subprocess.TimeoutExpired, ValueError) as e:
        logger.debug("Probe %s failed: %s", argv[0], e)
        return None
    return (result.stdout or "") + (result.stderr or "")


def spawn_detached(
    cmd: Sequence[str | Path],
    *,
    cwd: Path | None = None,
    env_overrides: Mapping[str, str] | None = None,
) -> subprocess.Popen:
    """Start a process without waiting for it (the managed application)."""
    argv = [str(c) for c in cmd]
    env = os.environ.copy()
    if env_overrides:
        env.update({k: str(v) for k, v in env_overrides.items()})
    logger.info("Spawning %s", " ".join(argv))
    return subprocess.Popen(argv, cwd=str(cwd) if cwd else None, env=env)
