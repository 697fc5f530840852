"""
Tests for the self-updater — version check, verification, swap and rollback.
"""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from aaa_launcher.core.errors import FilesystemError, IntegrityError, NetworkError
from aaa_launcher.core.models.update import SwapPhase
from aaa_launcher.core.services.self_updater import SelfUpdater, backup_path_for

from fakes import sha256

NEW_BINARY = b"\x7fELF new launcher build"


def offer(sync_server, version="2.0.0", checksum=None, binary=NEW_BINARY):
    sync_server.set_json("/sync/launcher-version", {
        "version": version,
        "checksum": sha256(binary) if checksum is None else checksum,
    })
    sync_server.set_bytes("/sync/launcher-binary", binary)


class TestCheckForUpdate:
    def test_same_version(self, config, sync_server):
        offer(sync_server, version="1.0.0")
        assert SelfUpdater(config, current_version="1.0.0").check_for_update() is None

    def test_new_version(self, config, sync_server):
        offer(sync_server, version="2.0.0")
        update = SelfUpdater(config, current_version="1.0.0").check_for_update()
        assert update is not None
        assert update.version == "2.0.0"
        assert update.checksum == sha256(NEW_BINARY)

    def test_older_server_version_is_still_offered(self, config, sync_server):
        """Versions are compared for equality, so a rollback is delivered too."""
        offer(sync_server, version="0.9.0")
        assert SelfUpdater(config, current_version="1.0.0").check_for_update() is not None

    def test_missing_checksum_refused(self, config, sync_server, caplog):
        sync_server.set_json("/sync/launcher-version", {"version": "2.0.0", "checksum": None})
        with caplog.at_level("ERROR"):
            assert SelfUpdater(config, current_version="1.0.0").check_for_update() is None
        assert any("without a checksum" in r.message for r in caplog.records)

    def test_blank_checksum_refused(self, config, sync_server):
        offer(sync_server, checksum="   ")
        assert SelfUpdater(config, current_version="1.0.0").check_for_update() is None

    def test_http_error_means_no_update(self, config, sync_server):
        sync_server.set_bytes("/sync/launcher-version", b"", status=404)
        assert SelfUpdater(config, current_version="1.0.0").check_for_update() is None

    def test_unreachable_server_raises(self, make_config):
        config = make_config(server_url="http://127.0.0.1:9", connect_timeout=1)
        with pytest.raises(NetworkError):
            SelfUpdater(config).check_for_update()


class TestDownloadAndVerify:
    def test_verified_download(self, config, sync_server, tmp_path: Path):
        offer(sync_server)
        temp = tmp_path / "launcher_update"
        SelfUpdater(config).download_and_verify(temp, sha256(NEW_BINARY))
        assert temp.read_bytes() == NEW_BINARY

    def test_mismatch_deletes_temp(self, config, sync_server, tmp_path: Path):
        offer(sync_server)
        temp = tmp_path / "launcher_update"
        with pytest.raises(IntegrityError):
            SelfUpdater(config).download_and_verify(temp, "0" * 64)
        assert not temp.exists()


class TestApplyUpdate:
    def _files(self, tmp_path: Path) -> tuple[Path, Path]:
        target = tmp_path / "aaa-launcher"
        target.write_bytes(b"old launcher")
        temp = tmp_path / "launcher_update"
        temp.write_bytes(NEW_BINARY)
        return target, temp

    def test_swap(self, make_config, tmp_path: Path):
        target, temp = self._files(tmp_path)
        updater = SelfUpdater(make_config())

        updater.apply_update(temp, target)

        assert target.read_bytes() == NEW_BINARY
        assert not temp.exists()
        assert not backup_path_for(target).exists()
        assert updater.phase == SwapPhase.NEW_VALID

    def test_replaces_stale_backup(self, make_config, tmp_path: Path):
        target, temp = self._files(tmp_path)
        backup_path_for(target).write_bytes(b"ancient")
        SelfUpdater(make_config()).apply_update(temp, target)
        assert target.read_bytes() == NEW_BINARY

    def test_rollback_when_second_rename_fails(self, make_config, tmp_path: Path):
        """Rollback: a failed swap leaves the original executable in place."""
        target, temp = self._files(tmp_path)
        updater = SelfUpdater(make_config())
        real_rename = os.rename
        calls = []

        def flaky_rename(src, dst):
            calls.append((Path(src), Path(dst)))
            if len(calls) == 2:
                raise PermissionError("file in use")
            return real_rename(src, dst)

        with patch("aaa_launcher.core.services.self_updater.os.rename", side_effect=flaky_rename):
            with pytest.raises(FilesystemError):
                updater.apply_update(temp, target)

        assert target.read_bytes() == b"old launcher"
        assert not backup_path_for(target).exists()
        assert updater.phase == SwapPhase.ROLLED_BACK
        assert calls[0] == (target, backup_path_for(target))
        assert calls[2] == (backup_path_for(target), target)

    def test_backup_failure_leaves_target(self, make_config, tmp_path: Path):
        target, temp = self._files(tmp_path)
        with patch(
            "aaa_launcher.core.services.self_updater.os.rename",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(FilesystemError):
                SelfUpdater(make_config()).apply_update(temp, target)
        assert target.read_bytes() == b"old launcher"

    def test_missing_temp_file(self, make_config, tmp_path: Path):
        target, temp = self._files(tmp_path)
        temp.unlink()
        with pytest.raises(FilesystemError):
            SelfUpdater(make_config()).apply_update(temp, target)
        assert target.read_bytes() == b"old launcher"

    def test_interrupted_swap_restored_before_update(self, make_config, tmp_path: Path):
        target = tmp_path / "aaa-launcher.exe"
        backup_path_for(target).write_bytes(b"old launcher")
        temp = tmp_path / "launcher_update.exe"
        temp.write_bytes(NEW_BINARY)

        SelfUpdater(make_config()).apply_update(temp, target)

        assert target.read_bytes() == NEW_BINARY
        assert not backup_path_for(target).exists()

    def test_interrupted_swap_backup_survives_failed_rename(self, make_config, tmp_path: Path):
        """The only remaining launcher is never deleted when renames fail."""
        target = tmp_path / "aaa-launcher.exe"
        backup = backup_path_for(target)
        backup.write_bytes(b"old launcher")
        temp = tmp_path / "launcher_update.exe"
        temp.write_bytes(NEW_BINARY)

        with patch(
            "aaa_launcher.core.services.self_updater.os.rename",
            side_effect=PermissionError("file in use"),
        ):
            with pytest.raises(FilesystemError):
                SelfUpdater(make_config()).apply_update(temp, target)

        assert backup.read_bytes() == b"old launcher"

    def test_interrupted_swap_then_apply_fails_rolls_back(self, make_config, tmp_path: Path):
        target = tmp_path / "aaa-launcher.exe"
        backup_path_for(target).write_bytes(b"old launcher")
        temp = tmp_path / "launcher_update.exe"
        temp.write_bytes(NEW_BINARY)
        real_rename = os.rename
        calls = []

        def flaky_rename(src, dst):
            calls.append((Path(src), Path(dst)))
            if Path(src) == temp:
                raise PermissionError("file in use")
            return real_rename(src, dst)

        updater = SelfUpdater(make_config())
        with patch("aaa_launcher.core.services.self_updater.os.rename", side_effect=flaky_rename):
            with pytest.raises(FilesystemError):
                updater.apply_update(temp, target)

        assert target.read_bytes() == b"old launcher"
        assert updater.phase == SwapPhase.ROLLED_BACK
        assert calls[0] == (backup_path_for(target), target)


class TestStaleBackup:
    def test_restore_interrupted_swap(self, make_config, tmp_path: Path):
        target = tmp_path / "aaa-launcher"
        backup_path_for(target).write_bytes(b"old")
        assert SelfUpdater(make_config()).restore_interrupted_swap(target) is True
        assert target.read_bytes() == b"old"
        assert not backup_path_for(target).exists()

    def test_restore_noop_when_target_present(self, make_config, tmp_path: Path):
        target = tmp_path / "aaa-launcher"
        target.write_bytes(b"current")
        backup_path_for(target).write_bytes(b"old")
        assert SelfUpdater(make_config()).restore_interrupted_swap(target) is False
        assert target.read_bytes() == b"current"

    def test_cleanup(self, make_config, tmp_path: Path):
        target = tmp_path / "aaa-launcher"
        target.write_bytes(b"x")
        backup_path_for(target).write_bytes(b"old")
        assert SelfUpdater(make_config()).cleanup_stale_backup(target) is True
        assert not backup_path_for(target).exists()

    def test_backup_kept_when_target_missing(self, make_config, tmp_path: Path):
        target = tmp_path / "aaa-launcher"
        backup_path_for(target).write_bytes(b"old")
        assert SelfUpdater(make_config()).cleanup_stale_backup(target) is False
        assert backup_path_for(target).exists()


class TestRun:
    def test_run_restores_interrupted_swap(self, make_config, sync_server, tmp_path: Path):
        offer(sync_server, version="1.0.0")
        exe = tmp_path / "bin" / "aaa-launcher"
        exe.parent.mkdir()
        backup_path_for(exe).write_bytes(b"old launcher")
        config = make_config(server_url=sync_server.url, executable_path=exe)

        assert SelfUpdater(config, current_version="1.0.0").run() is None

        assert exe.read_bytes() == b"old launcher"
        assert not backup_path_for(exe).exists()

    def test_skip_update(self, make_config, sync_server):
        config = make_config(server_url=sync_server.url, skip_update=True)
        assert SelfUpdater(config).run() is None
        assert sync_server.requests == []

    def test_dry_run_only_checks(self, make_config, sync_server):
        offer(sync_server)
        config = make_config(server_url=sync_server.url, dry_run=True)
        update = SelfUpdater(config, current_version="1.0.0").run()
        assert update.version == "2.0.0"
        assert sync_server.count("/sync/launcher-binary") == 0

    def test_applies_and_restarts(self, make_config, sync_server, tmp_path: Path):
        offer(sync_server)
        exe = tmp_path / "bin" / "aaa-launcher"
        exe.parent.mkdir()
        exe.write_bytes(b"old launcher")
        config = make_config(server_url=sync_server.url, executable_path=exe)

        with patch.object(SelfUpdater, "request_restart") as restart:
            SelfUpdater(config, current_version="1.0.0").run()

        restart.assert_called_once()
        assert exe.read_bytes() == NEW_BINARY

    def test_unfrozen_leaves_verified_update(self, config, sync_server):
        offer(sync_server)
        updater = SelfUpdater(config, current_version="1.0.0")

        with patch.object(SelfUpdater, "request_restart") as restart:
            updater.run()

        restart.assert_not_called()
        assert updater.temp_path_for(None).read_bytes() == NEW_BINARY

    def test_request_restart_exits_zero(self, make_config):
        with patch("aaa_launcher.core.services.self_updater.logging.shutdown"), \
                patch("aaa_launcher.core.services.self_updater.os._exit") as exit_:
            SelfUpdater(make_config()).request_restart()
        exit_.assert_called_once_with(0)
