"""
Self-updater — replaces the launcher's own executable.

The swap is a three-phase rename transition:

    OLD_VALID ──rename target→backup──▶ TRANSITIONAL
    TRANSITIONAL ──rename temp→target──▶ NEW_VALID
    TRANSITIONAL ──rename backup→target──▶ ROLLED_BACK

Nothing is ever overwritten in place, so the target path always ends
up holding either the old or the new complete executable. An update
is only applied after its SHA-256 has been verified, and a server
that offers a new version without a checksum is refused.
"""

from __future__ import annotations

import logging
import os
import stat
import sys
from pathlib import Path

from aaa_launcher import __version__
from aaa_launcher.core.errors import FilesystemError, IntegrityError, NetworkError
from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.models.update import LauncherVersionInfo, SwapPhase, UpdateDescriptor
from aaa_launcher.core.observability.reporter import Reporter
from aaa_launcher.core.services.http_client import HttpClient
from aaa_launcher.core.services.integrity import checksums_match

logger = logging.getLogger(__name__)

BACKUP_SUFFIX = ".old"
RESTART_EXIT_CODE = 0


def backup_path_for(target_path: Path) -> Path:
    return target_path.with_name(target_path.name + BACKUP_SUFFIX)


class SelfUpdater:
    """Check, download, verify and apply launcher updates."""

    def __init__(
        self,
        config: LauncherConfig,
        client: HttpClient | None = None,
        reporter: Reporter | None = None,
        current_version: str = __version__,
    ):
        self.config = config
        self.client = client or HttpClient.from_config(config)
        self.reporter = reporter or Reporter(echo=False)
        self.current_version = current_version
        self.phase = SwapPhase.OLD_VALID

    # ── Check ───────────────────────────────────────────────────

    def check_for_update(self) -> UpdateDescriptor | None:
        """Compare the running version with ``GET /sync/launcher-version``.

        Returns:
            A descriptor when the versions differ and the server supplied
            a checksum; None otherwise (including a refused,
            checksum-less offer).

        Raises:
            NetworkError: The server could not be reached at all.
        """
        try:
            data = self.client.get_json("sync/launcher-version")
        except NetworkError as e:
            if e.status is None:
                raise
            self.reporter.warn(f"Could not check for updates - server returned HTTP {e.status}")
            return None

        try:
            info = LauncherVersionInfo.model_validate(data)
        except Exception as e:
            raise NetworkError(
                f"Failed to parse version response: {e}",
                url=self.client.url("sync/launcher-version"),
            ) from e

        if info.version == self.current_version:
            self.reporter.success("Launcher is up to date")
            return None

        if not info.checksum or not info.checksum.strip():
            self.reporter.error(
                f"Server offers launcher {info.version} without a checksum - refusing to update"
            )
            return None

        self.reporter.info(f"Update available: {self.current_version} -> {info.version}")
        return UpdateDescriptor(version=info.version, checksum=info.checksum.strip().lower())

    # ── Download ────────────────────────────────────────────────

    def download_and_verify(self, temp_path: Path, expected_checksum: str) -> None:
        """Download the new binary to ``temp_path`` and verify it.

        Raises:
            IntegrityError: Digest mismatch; ``temp_path`` is deleted.
        """
        temp_path.parent.mkdir(parents=True, exist_ok=True)
        self.reporter.download("Downloading launcher update...")
        try:
            result = self.client.download("sync/launcher-binary", temp_path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        self.reporter.info("Verifying update checksum...")
        if not checksums_match(expected_checksum, result.sha256):
            temp_path.unlink(missing_ok=True)
            raise IntegrityError(
                "launcher update", expected_checksum.strip().lower(), result.sha256, path=temp_path,
            )
        self.reporter.success("Checksum verified")

    # ── Apply ───────────────────────────────────────────────────

    def apply_update(self, temp_path: Path, target_path: Path) -> None:
        """Swap ``temp_path`` into ``target_path`` with rollback.

        Raises:
            FilesystemError: The swap failed. If the target had been
                moved aside it is restored before raising.
        """
        backup = backup_path_for(target_path)
        self.phase = SwapPhase.OLD_VALID

        if not temp_path.is_file():
            raise FilesystemError(f"Update file missing: {temp_path}", path=temp_path)

        self.restore_interrupted_swap(target_path)
        _copy_mode(target_path, temp_path)

        if backup.exists() and target_path.exists():
            try:
                backup.unlink()
            except OSError as e:
                raise FilesystemError(f"Cannot remove stale backup {backup}: {e}", path=backup) from e

        had_target = target_path.exists()
        if had_target:
            try:
                os.rename(target_path, backup)
            except OSError as e:
                raise FilesystemError(f"Failed to backup current launcher: {e}", path=target_path) from e
            self.phase = SwapPhase.TRANSITIONAL
            logger.debug("Swap phase %s: %s → %s", self.phase, target_path, backup)

        try:
            os.rename(temp_path, target_path)
        except OSError as e:
            if had_target:
                self._rollback(backup, target_path)
            raise FilesystemError(f"Failed to apply update: {e}", path=target_path) from e

        self.phase = SwapPhase.NEW_VALID
        logger.debug("Swap phase %s: %s", self.phase, target_path)
        try:
            backup.unlink(missing_ok=True)
        except OSError as e:
            # A running executable may stay locked until exit (Windows)
            logger.info("Backup %s left for next start: %s", backup, e)
        self.reporter.success("Update applied successfully")

    def _rollback(self, backup: Path, target_path: Path) -> None:
        try:
            os.rename(backup, target_path)
        except OSError as e:
            logger.critical("Rollback of %s failed, backup kept at %s: %s", target_path, backup, e)
            raise FilesystemError(
                f"Failed to apply update and to restore {target_path}; "
                f"previous launcher is at {backup}",
                path=backup,
            ) from e
        self.phase = SwapPhase.ROLLED_BACK
        self.reporter.warn("Update failed - previous launcher restored")

    def restore_interrupted_swap(self, target_path: Path) -> bool:
        """Put ``<target>.old`` back when a previous swap died halfway.

        Returns True if the backup was restored.

        Raises:
            FilesystemError: The backup is the only launcher left and it
                cannot be moved back.
        """
        backup = backup_path_for(target_path)
        if target_path.exists() or not backup.exists():
            return False
        logger.warning("Launcher missing at %s, restoring %s", target_path, backup)
        try:
            os.rename(backup, target_path)
        except OSError as e:
            raise FilesystemError(
                f"Launcher missing and backup {backup} cannot be restored: {e}", path=backup,
            ) from e
        self.reporter.warn("Previous update was interrupted - launcher restored from backup")
        return True

    def cleanup_stale_backup(self, target_path: Path) -> bool:
        """Remove a ``.old`` backup left by a previous successful swap."""
        backup = backup_path_for(target_path)
        if not backup.exists() or not target_path.exists():
            return False
        try:
            backup.unlink()
        except OSError as e:
            logger.debug("Stale backup %s still locked: %s", backup, e)
            return False
        logger.info("Removed stale launcher backup %s", backup)
        return True

    # ── Restart ─────────────────────────────────────────────────

    def request_restart(self) -> None:
        """Terminate the process; the replaced binary must not keep running."""
        self.reporter.info("Launcher updated - please restart")
        logging.shutdown()
        os._exit(RESTART_EXIT_CODE)

    # ── Stage action ────────────────────────────────────────────

    def resolve_target(self) -> Path | None:
        """Executable to replace: configured path, else the frozen binary."""
        if self.config.executable_path is not None:
            return self.config.executable_path
        if getattr(sys, "frozen", False):
            return Path(sys.executable)
        return None

    def temp_path_for(self, target: Path | None) -> Path:
        suffix = target.suffix if target is not None else ""
        return self.config.install_dir / f"launcher_update{suffix}"

    def run(self) -> UpdateDescriptor | None:
        """SelfUpdate stage: check, and unless dry-run, download/apply/restart."""
        if self.config.skip_update:
            self.reporter.info("Update check skipped")
            return None

        target = self.resolve_target()
        if target is not None:
            self.restore_interrupted_swap(target)
            self.cleanup_stale_backup(target)

        update = self.check_for_update()
        if update is None:
            return None

        if self.config.dry_run:
            self.reporter.info(f"Dry-run mode: would update to {update.version}")
            return update

        temp_path = self.temp_path_for(target)
        self.download_and_verify(temp_path, update.checksum)

        if target is None:
            self.reporter.warn(
                f"Running from source - verified update left at {temp_path}, not applied"
            )
            return update

        self.apply_update(temp_path, target)
        self.request_restart()
        return update


def _copy_mode(src: Path, dst: Path) -> None:
    """Give the new binary the old one's permission bits (at least u+x)."""
    try:
        mode = stat.S_IMODE(src.stat().st_mode) if src.exists() else 0o755
        os.chmod(dst, mode | stat.S_IXUSR)
    except OSError as e:
        logger.debug("Could not set mode on %s: %s", dst, e)
