"""
Tests for CLI commands — run, status, reset, deps, and global options.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from aaa_launcher import __version__
from aaa_launcher.core.models.dependency import DependencyRecord
from aaa_launcher.core.models.stage import Stage, StageRecord
from aaa_launcher.core.persistence.run_ledger import LedgerEntry, RunLedger
from aaa_launcher.core.persistence.stage_file import load_stage_record, save_stage_record
from aaa_launcher.core.services.dependency_audit import DependencySpec, ManualInstall
from aaa_launcher.main import cli


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("AAA_SERVER_URL", raising=False)
    monkeypatch.delenv("AAA_LOG_LEVEL", raising=False)


@pytest.fixture
def base_args(tmp_path: Path) -> list[str]:
    """Global options pointing at an isolated install dir and no config file."""
    return [
        "--install-dir", str(tmp_path / "AAAEngine"),
        "--config", str(tmp_path / "missing.yml"),
    ]


def stage_file(tmp_path: Path) -> Path:
    return tmp_path / "AAAEngine" / "launcher_state.json"


class Found:
    source = "stub"

    def __init__(self, installed: bool):
        self.installed = installed

    def detect(self, name):
        if not self.installed:
            return None
        return DependencyRecord(name=name, installed=True, version="9.9", source="stub")


def catalog(*installed: bool):
    return [
        DependencySpec(name=f"Dep{i}", probes=[Found(flag)], installer=ManualInstall("-"))
        for i, flag in enumerate(installed)
    ]


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "AAA MMORPG Engine Launcher" in result.output
        for cmd in ("status", "reset", "deps"):
            assert cmd in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_invalid_config_file_exits_1(self, tmp_path: Path):
        bad = tmp_path / "launcher.yml"
        bad.write_text("server_url: [unclosed\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(bad), "--install-dir", str(tmp_path), "status"])
        assert result.exit_code == 1
        assert "Invalid YAML" in result.output

    def test_invalid_value_exits_1(self, tmp_path: Path):
        cfg = tmp_path / "launcher.yml"
        cfg.write_text("max_parallel_downloads: 0\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(cfg), "--install-dir", str(tmp_path), "status"])
        assert result.exit_code == 1
        assert "Invalid launcher configuration" in result.output


class TestStatusCommand:
    """Tests for the status command."""

    def test_fresh_install(self, base_args, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "status"])
        assert result.exit_code == 0
        assert "Stage file:  (none)" in result.output
        assert "resuming" not in result.output
        assert "Next run:    Init" in result.output

    def test_in_progress(self, base_args, tmp_path: Path):
        save_stage_record(StageRecord(state=Stage.SYNC), stage_file(tmp_path))
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "status"])
        assert result.exit_code == 0
        assert "Next run:    Sync" in result.output
        assert "resuming interrupted run" in result.output

    def test_failed_shows_error(self, base_args, tmp_path: Path):
        save_stage_record(
            StageRecord(state=Stage.FAILED, failed_stage="Build", error="Build failed: exit 2"),
            stage_file(tmp_path),
        )
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "status"])
        assert result.exit_code == 0
        assert "Failed at:   Build" in result.output
        assert "Build failed: exit 2" in result.output
        assert "resuming" not in result.output
        assert "Next run:    Init" in result.output

    def test_json(self, base_args, tmp_path: Path):
        save_stage_record(StageRecord(state=Stage.BUILD), stage_file(tmp_path))
        RunLedger(tmp_path / "AAAEngine" / "logs" / "runs.ndjson").write(
            LedgerEntry(run_id="r1", stage="Sync", status="ok", duration_ms=12),
        )
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "status", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["next_stage"] == "Build"
        assert data["in_progress"] is True
        assert data["stage_file"]["state"] == "Build"
        assert data["install_dir"] == str(tmp_path / "AAAEngine")
        assert [e["stage"] for e in data["recent"]] == ["Sync"]


class TestResetCommand:
    def test_reset_from_failed(self, base_args, tmp_path: Path):
        save_stage_record(StageRecord(state=Stage.FAILED, failed_stage="Sync"), stage_file(tmp_path))
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "reset"])
        assert result.exit_code == 0
        assert "was Failed" in result.output
        assert load_stage_record(stage_file(tmp_path)).state == Stage.INIT

    def test_reset_without_stage_file(self, base_args, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, [*base_args, "reset"])
        assert result.exit_code == 0
        assert "was Init" in result.output

    def test_reset_unwritable_exits_1(self, base_args, tmp_path: Path):
        from aaa_launcher.core.errors import FilesystemError

        error = FilesystemError("Cannot write stage file launcher_state.json: read-only")
        with patch("aaa_launcher.core.engine.state_machine.save_stage_record", side_effect=error):
            result = CliRunner().invoke(cli, [*base_args, "reset"])

        assert result.exit_code == 1
        assert "Cannot write stage file" in result.output


class TestDepsCommand:
    def test_all_installed(self, base_args):
        with patch("aaa_launcher.core.services.dependency_audit.build_catalog", return_value=catalog(True, True)):
            result = CliRunner().invoke(cli, [*base_args, "deps", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [d["name"] for d in data] == ["Dep0", "Dep1"]
        assert all(d["installed"] for d in data)
        assert data[0]["version"] == "9.9"

    def test_missing_exits_1(self, base_args):
        with patch("aaa_launcher.core.services.dependency_audit.build_catalog", return_value=catalog(True, False)):
            result = CliRunner().invoke(cli, [*base_args, "deps"])
        assert result.exit_code == 1
        assert "Dep1" in result.output


class TestRun:
    """The default command runs the pipeline."""

    def test_dry_run(self, base_args, tmp_path: Path):
        with patch("aaa_launcher.core.engine.stages.build_catalog", return_value=catalog(True)), \
             patch("aaa_launcher.core.services.elevation.request_elevation") as elevate:
            result = CliRunner().invoke(cli, [*base_args, "--dry-run", "--skip-update"])

        assert result.exit_code == 0, result.output
        assert "DRY RUN MODE" in result.output
        assert "Dry-run mode: skipping file sync" in result.output
        elevate.assert_not_called()
        assert not stage_file(tmp_path).exists()
        assert not (tmp_path / "AAAEngine" / "engine").exists()

    def test_stage_failure_exits_1(self, base_args, tmp_path: Path):
        args = [*base_args, "--server-url", "http://127.0.0.1:9", "--skip-update", "--skip-elevation"]
        with patch("aaa_launcher.core.engine.stages.build_catalog", return_value=catalog(True)):
            result = CliRunner().invoke(cli, args)

        assert result.exit_code == 1
        assert "ERROR:" in result.output
        assert "Stage: Sync" in result.output
        record = load_stage_record(stage_file(tmp_path))
        assert record.state == Stage.FAILED
        assert record.failed_stage == "Sync"

    def test_unwritable_stage_file_exits_1(self, base_args, tmp_path: Path):
        from aaa_launcher.core.errors import FilesystemError

        args = [*base_args, "--skip-update", "--skip-elevation"]
        error = FilesystemError("Cannot write stage file launcher_state.json: read-only")
        with patch("aaa_launcher.core.engine.stages.build_catalog", return_value=catalog(True)), \
             patch("aaa_launcher.core.engine.state_machine.save_stage_record", side_effect=error):
            result = CliRunner().invoke(cli, args)

        assert result.exit_code == 1
        assert "ERROR: Cannot write stage file" in result.output
        assert "Traceback" not in result.output

    def test_elevation_relaunch_exits_0(self, base_args, tmp_path: Path):
        from aaa_launcher.core.services.elevation import ElevationOutcome

        with patch(
            "aaa_launcher.core.services.elevation.request_elevation",
            return_value=ElevationOutcome.RELAUNCHED,
        ), patch("aaa_launcher.core.use_cases.run.run_launcher") as run:
            result = CliRunner().invoke(cli, base_args)

        assert result.exit_code == 0
        assert "Elevated process started" in result.output
        run.assert_not_called()
