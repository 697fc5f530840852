"""
Tests for the build cache gate and the application runner.
"""

import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from aaa_launcher.core.errors import BuildError
from aaa_launcher.core.services.app_runner import AppRunner
from aaa_launcher.core.services.build_gate import BuildCacheGate
from aaa_launcher.core.services.subprocess_runner import CommandResult


def engine(config, version: str | None = "1.0.0") -> Path:
    d = config.engine_dir
    d.mkdir(parents=True, exist_ok=True)
    if version is not None:
        (d / "VERSION").write_text(version)
    return d


class TestBuildCacheGate:
    def test_fresh_tree_needs_build(self, make_config):
        config = make_config()
        engine(config)
        assert BuildCacheGate(config).needs_rebuild()

    def test_cached_after_save(self, make_config):
        config = make_config()
        engine(config)
        gate = BuildCacheGate(config)
        assert gate.save_build_version() == "1.0.0"
        assert not gate.needs_rebuild()
        assert gate.completion_marker.is_file()

    def test_version_change_triggers_rebuild(self, make_config):
        config = make_config()
        d = engine(config)
        gate = BuildCacheGate(config)
        gate.save_build_version()
        (d / "VERSION").write_text("1.1.0")
        assert gate.needs_rebuild()

    def test_whitespace_is_ignored(self, make_config):
        config = make_config()
        d = engine(config, "1.0.0\n")
        gate = BuildCacheGate(config)
        gate.save_build_version()
        (d / "VERSION").write_text("  1.0.0  \r\n")
        assert not gate.needs_rebuild()

    def test_missing_marker_triggers_rebuild(self, make_config):
        config = make_config()
        engine(config)
        gate = BuildCacheGate(config)
        gate.save_build_version()
        gate.completion_marker.unlink()
        assert gate.needs_rebuild()

    def test_force_rebuild(self, make_config):
        config = make_config(force_rebuild=True)
        engine(config)
        gate = BuildCacheGate(config)
        gate.save_build_version()
        assert gate.needs_rebuild()

    def test_missing_version_file_reads_unknown(self, make_config):
        config = make_config()
        engine(config, version=None)
        gate = BuildCacheGate(config)
        assert gate.source_version() == "unknown"
        gate.save_build_version()
        assert not gate.needs_rebuild()


class TestAppRunner:
    def test_default_build_command(self, make_config):
        config = make_config()
        cmd = AppRunner(config).build_command()
        if config.is_windows:
            assert cmd[0] == "powershell.exe"
            assert "-InstallDir" in cmd
        else:
            assert cmd == ["sh", str(config.engine_dir / "build.sh")]

    def test_missing_build_script(self, make_config):
        config = make_config()
        engine(config)
        with pytest.raises(BuildError, match="not found"):
            AppRunner(config).run_build()

    def test_build_failure_raises(self, make_config):
        config = make_config(build_command=[sys.executable, "-c", "import sys; sys.exit(3)"])
        engine(config)
        with pytest.raises(BuildError, match="exit code 3"):
            AppRunner(config).run_build()

    def test_build_gets_toolchain_env(self, make_config):
        script = "import os, sys; sys.exit(0 if os.environ.get('O3DE_HOME') else 5)"
        config = make_config(build_command=[sys.executable, "-c", script])
        engine(config)
        AppRunner(config).run_build()

    def test_build_if_needed_caches(self, make_config):
        config = make_config(build_command=["build"])
        engine(config)
        runner = AppRunner(config)
        ok = CommandResult(cmd=["build"], returncode=0)

        with patch("aaa_launcher.core.services.app_runner.run_command", return_value=ok) as run:
            assert runner.build_if_needed() is True
            assert runner.build_if_needed() is False

        assert run.call_count == 1

    def test_failed_build_is_not_cached(self, make_config):
        config = make_config(build_command=["build"])
        engine(config)
        runner = AppRunner(config)
        bad = CommandResult(cmd=["build"], returncode=1)

        with patch("aaa_launcher.core.services.app_runner.run_command", return_value=bad):
            with pytest.raises(BuildError):
                runner.build_if_needed()

        assert runner.gate.needs_rebuild()
        assert not runner.gate.completion_marker.exists()

    def test_launch_missing_executable(self, make_config):
        config = make_config()
        engine(config)
        with pytest.raises(BuildError, match="executable not found"):
            AppRunner(config).launch()

    def test_launch_spawns(self, make_config):
        config = make_config()
        engine(config)
        runner = AppRunner(config)
        runner.app_executable.parent.mkdir(parents=True)
        runner.app_executable.write_bytes(b"")

        with patch("aaa_launcher.core.services.app_runner.spawn_detached") as spawn:
            spawn.return_value.pid = 4242
            assert runner.launch() == 4242

        argv = spawn.call_args.args[0]
        assert argv == [runner.app_executable]
        assert spawn.call_args.kwargs["cwd"] == config.engine_dir
