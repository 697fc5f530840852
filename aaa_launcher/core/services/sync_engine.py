"""
Sync engine — brings ``<install_dir>/engine`` in line with the server.

Two paths:

* **Manifest sync** (default when a local tree exists): diff every
  manifest entry against the local file and download only what
  differs. Downloads run on a bounded thread pool; each one streams
  into a temp file beside its destination, is verified, and only then
  renamed into place.
* **Full archive** (bootstrap / fallback): download ``full.zip``,
  extract into a staging directory, then replace the whole tree.

A manifest that cannot be fetched degrades to the full archive; a
checksum mismatch on any file fails the whole pass.
"""

from __future__ import annotations

import concurrent.futures
import logging
import os
import shutil
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Literal

from pydantic import ValidationError

from aaa_launcher.core.errors import (
    FilesystemError,
    IntegrityError,
    ManifestError,
    NetworkError,
)
from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.models.manifest import FileEntry, FileManifest, normalize_manifest_path
from aaa_launcher.core.observability.reporter import ByteProgress, Reporter
from aaa_launcher.core.services.archive import extract_zip
from aaa_launcher.core.services.http_client import HttpClient
from aaa_launcher.core.services.integrity import sha256_file, verify_digest

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "engine.zip"
_STAGING_SUFFIX = ".staging"


@dataclass(frozen=True)
class SyncTask:
    """One manifest entry that needs downloading."""

    remote_path: str
    local_path: Path
    entry: FileEntry


@dataclass
class SyncResult:
    """Outcome of ``SyncEngine.sync``."""

    mode: Literal["manifest", "full_archive"]
    files_updated: int
    server_version: str = ""
    fallback_reason: str = ""


class SyncEngine:
    """Diff-and-fetch synchronisation of the engine file tree."""

    def __init__(
        self,
        config: LauncherConfig,
        client: HttpClient | None = None,
        reporter: Reporter | None = None,
    ):
        self.config = config
        self.client = client or HttpClient.from_config(config)
        self.reporter = reporter or Reporter(echo=False)

    @property
    def engine_dir(self) -> Path:
        return self.config.engine_dir

    # ── Server ──────────────────────────────────────────────────

    def check_server(self) -> str:
        """Return the server's content version (``GET /sync/version``)."""
        data = self.client.get_json("sync/version")
        version = data.get("version") if isinstance(data, dict) else None
        if not isinstance(version, str):
            raise NetworkError("Failed to parse server version", url=self.client.url("sync/version"))
        self.reporter.success(f"Connected to server v{version}")
        return version

    def get_manifest(self) -> FileManifest:
        """Fetch and validate ``GET /sync/manifest``."""
        data = self.client.get_json("sync/manifest")
        try:
            return FileManifest.model_validate(data)
        except ValidationError as e:
            raise ManifestError(f"Failed to parse manifest: {e}") from e

    # ── Orchestration ───────────────────────────────────────────

    def has_local_tree(self) -> bool:
        d = self.engine_dir
        return d.is_dir() and any(d.iterdir())

    def sync(self) -> SyncResult:
        """Run one sync pass, choosing manifest or full-archive mode."""
        server_version = self.check_server()

        if not self.has_local_tree():
            self.reporter.info("No local files - downloading full archive")
            count = self.download_full_archive()
            return SyncResult(mode="full_archive", files_updated=count, server_version=server_version)

        try:
            manifest = self.get_manifest()
        except (NetworkError, ManifestError) as e:
            self.reporter.warn(f"Could not get manifest: {e} - using full sync")
            count = self.download_full_archive()
            return SyncResult(
                mode="full_archive",
                files_updated=count,
                server_version=server_version,
                fallback_reason=str(e),
            )

        count = self.sync_files(manifest)
        return SyncResult(mode="manifest", files_updated=count, server_version=server_version)

    # ── Manifest sync ───────────────────────────────────────────

    def needs_sync(self, local_path: Path, entry: FileEntry) -> bool:
        """True if the file is absent, differs in size, or differs in content."""
        try:
            size = local_path.stat().st_size
        except FileNotFoundError:
            return True
        if not local_path.is_file():
            return True
        if size != entry.size:
            return True
        return sha256_file(local_path) != entry.checksum

    def plan(self, manifest: FileManifest) -> list[SyncTask]:
        """Compute the download list for ``manifest``.

        Raises:
            ManifestError: On unsafe paths or two entries that map to
                the same local file.
        """
        tasks: list[SyncTask] = []
        seen: dict[str, str] = {}
        for remote_path, entry in sorted(manifest.files.items()):
            try:
                rel = normalize_manifest_path(remote_path)
            except ValueError as e:
                raise ManifestError(str(e)) from e

            key = _collision_key(rel)
            if key in seen:
                raise ManifestError(
                    f"Manifest entries {seen[key]!r} and {remote_path!r} map to the same file"
                )
            seen[key] = remote_path

            local_path = self.engine_dir.joinpath(*rel.parts)
            if self.needs_sync(local_path, entry):
                tasks.append(SyncTask(remote_path=rel.as_posix(), local_path=local_path, entry=entry))
        return tasks

    def sync_files(self, manifest: FileManifest) -> int:
        """Download every out-of-sync manifest entry.

        Returns:
            Number of files updated.

        Raises:
            IntegrityError: A download did not match its checksum. No
                unverified file is ever moved into place.
            NetworkError: A download failed or timed out.
        """
        self.engine_dir.mkdir(parents=True, exist_ok=True)
        tasks = self.plan(manifest)

        if not tasks:
            self.reporter.success("All files up to date")
            return 0

        total = sum(t.entry.size for t in tasks)
        self.reporter.detail(
            f"Manifest {manifest.version or '?'}: {len(manifest.files)} files, {manifest.total_bytes} bytes"
        )
        self.reporter.info(f"{len(tasks)} of {len(manifest.files)} files need syncing")

        workers = min(self.config.max_parallel_downloads, len(tasks))
        with self.reporter.progress(total, "Syncing") as progress:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=workers, thread_name_prefix="sync",
            ) as pool:
                futures = {pool.submit(self._fetch, t, progress): t for t in tasks}
                try:
                    for future in concurrent.futures.as_completed(futures):
                        future.result()
                except BaseException:
                    for f in futures:
                        f.cancel()
                    raise

        self.reporter.success(f"Synced {len(tasks)} files")
        return len(tasks)

    def _fetch(self, task: SyncTask, progress: ByteProgress) -> None:
        """Download one file to a temp path, verify, then rename into place."""
        dest = task.local_path
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FilesystemError(f"Cannot create {dest.parent}: {e}", path=dest.parent) from e

        tmp = dest.with_name(f".{dest.name}.{uuid.uuid4().hex[:8]}.part")
        self.reporter.detail(f"Downloading {task.remote_path}")
        try:
            result = self.client.download(
                f"sync/file/{task.remote_path}", tmp, on_chunk=progress.update,
            )
            verify_digest(task.remote_path, task.entry.checksum, result.sha256, path=dest)
            if result.size != task.entry.size:
                raise IntegrityError(
                    task.remote_path, f"{task.entry.size} bytes", f"{result.size} bytes", path=dest,
                )
            os.replace(tmp, dest)
        except OSError as e:
            raise FilesystemError(f"Failed to write {dest}: {e}", path=dest) from e
        finally:
            tmp.unlink(missing_ok=True)

    # ── Full archive ────────────────────────────────────────────

    def download_full_archive(self) -> int:
        """Replace the engine tree with the contents of ``full.zip``.

        The archive is downloaded and validated first; the old tree is
        only removed once a complete extracted copy exists next to it.

        Returns:
            Number of files extracted.
        """
        install_dir = self.config.install_dir
        install_dir.mkdir(parents=True, exist_ok=True)
        archive_path = install_dir / ARCHIVE_NAME
        staging = self.engine_dir.with_name(self.engine_dir.name + _STAGING_SUFFIX)

        self.reporter.info("Downloading full engine archive...")
        try:
            result = self.client.download("sync/full.zip", archive_path)
            self.reporter.detail(f"Archive size: {result.size} bytes")

            _remove_tree(staging)
            self.reporter.info("Extracting archive...")
            count = extract_zip(archive_path, staging)

            if self.engine_dir.exists():
                self.reporter.info("Clearing cached engine files...")
                _remove_tree(self.engine_dir)
            os.replace(staging, self.engine_dir)
        except OSError as e:
            raise FilesystemError(f"Failed to install archive: {e}", path=self.engine_dir) from e
        finally:
            archive_path.unlink(missing_ok=True)
            _remove_tree(staging, missing_ok=True)

        self.reporter.success(f"Engine files extracted ({count} files)")
        return count


# ── Helpers ─────────────────────────────────────────────────────


def _collision_key(rel: PurePosixPath) -> str:
    # Case-insensitive: the tree must also be valid on Windows/macOS filesystems
    return rel.as_posix().casefold()


def _remove_tree(path: Path, missing_ok: bool = False) -> None:
    if not path.exists():
        return
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        else:
            path.unlink()
    except OSError:
        if not missing_ok:
            raise
        logger.warning("Could not remove %s", path)

