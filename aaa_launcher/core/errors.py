"""
Launcher error taxonomy.

Every failure a stage can raise derives from ``LauncherError`` and
carries enough context (file, URL, dependency, stage) for the
driver to persist ``Failed`` and print a useful message:

    LauncherEnvironmentError  missing / incompatible local toolchain
      DependencyError         still missing after an install attempt
    NetworkError              unreachable server, timeout, non-2xx
    IntegrityError            checksum or size mismatch on a download
    FilesystemError           IO errors on the install tree or executable
    ManifestError             malformed or unsafe manifest / archive
    BuildError                managed application build or launch failed
    StageFailedError          raised by the driver, wraps the cause
"""

from __future__ import annotations

from pathlib import Path


class LauncherError(Exception):
    """Base class for all launcher failures."""


class LauncherEnvironmentError(LauncherError):
    """The local environment lacks something the pipeline needs."""


class DependencyError(LauncherEnvironmentError):
    """One or more dependencies remain missing after installation."""

    def __init__(self, missing: list[str], failures: dict[str, str] | None = None):
        self.missing = list(missing)
        self.failures = dict(failures or {})
        msg = f"Failed to install dependencies: {', '.join(self.missing)}"
        details = [f"{name}: {err}" for name, err in self.failures.items()]
        if details:
            msg += " (" + "; ".join(details) + ")"
        super().__init__(msg)


class NetworkError(LauncherError):
    """An HTTP request failed, timed out, or returned a non-2xx status."""

    def __init__(self, message: str, *, url: str = "", status: int | None = None):
        self.url = url
        self.status = status
        super().__init__(message)


class IntegrityError(LauncherError):
    """Downloaded bytes do not match the expected checksum or size."""

    def __init__(self, name: str, expected: str, actual: str, *, path: Path | None = None):
        self.name = name
        self.expected = expected
        self.actual = actual
        self.path = path
        super().__init__(
            f"Checksum mismatch for {name}: expected {expected}, got {actual}"
        )


class FilesystemError(LauncherError):
    """A filesystem operation on the install tree or executable failed."""

    def __init__(self, message: str, *, path: Path | None = None):
        self.path = path
        super().__init__(message)


class ManifestError(LauncherError):
    """The manifest or archive is malformed or unsafe to apply."""


class BuildError(LauncherError):
    """Building or launching the managed application failed."""


class StageFailedError(LauncherError):
    """A pipeline stage failed; the stage file now records ``Failed``."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"Stage {stage} failed: {cause}")
