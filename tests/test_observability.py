"""
Tests for observability — logging setup and the console reporter.
"""

import logging
from datetime import datetime
from pathlib import Path

import pytest

from aaa_launcher.core.models.dependency import DependencyRecord
from aaa_launcher.core.models.stage import Stage
from aaa_launcher.core.observability.logging_config import (
    REPORTER_LOGGER,
    run_log_path,
    setup_logging,
)
from aaa_launcher.core.observability.reporter import Reporter


@pytest.fixture
def root():
    return logging.getLogger()


# ── Logging ─────────────────────────────────────────────────────


class TestSetupLogging:
    def test_run_log_name(self, tmp_path: Path):
        path = run_log_path(tmp_path, now=datetime(2025, 3, 4, 5, 6, 7))
        assert path == tmp_path / "launcher_20250304_050607.log"

    def test_console_only(self, root):
        setup_logging("INFO")
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_unknown_level_is_warning(self, root):
        setup_logging("CHATTY")
        assert root.level == logging.WARNING

    def test_file_gets_debug(self, root, tmp_path: Path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logging("WARNING", log_file=log_file)
        assert root.level == logging.DEBUG

        logging.getLogger("aaa_launcher.test").debug("detail line")
        logging.getLogger(REPORTER_LOGGER).info("progress line")
        for h in root.handlers:
            h.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "detail line" in text
        assert "progress line" in text

    def test_second_call_replaces_handlers(self, root, tmp_path: Path):
        setup_logging("WARNING")
        setup_logging("WARNING", log_file=tmp_path / "run.log")
        assert len(root.handlers) == 2

    def test_reporter_lines_not_on_console(self, root, capsys):
        setup_logging("DEBUG")
        logging.getLogger(REPORTER_LOGGER).warning("echoed elsewhere")
        logging.getLogger("aaa_launcher.core").warning("real warning")
        err = capsys.readouterr().err
        assert "echoed elsewhere" not in err
        assert "real warning" in err


# ── Reporter ────────────────────────────────────────────────────


class TestReporter:
    def test_silent_when_echo_off(self, capsys):
        r = Reporter(echo=False)
        r.header("1.0.0")
        r.step(Stage.SYNC)
        r.info("hello")
        r.error("boom")
        out = capsys.readouterr()
        assert out.out == "" and out.err == ""

    def test_step_counter(self, capsys):
        Reporter().step(Stage.SYNC)
        assert "[3/6]" in capsys.readouterr().out

    def test_detail_needs_verbose(self, capsys):
        Reporter(verbose=False).detail("hidden")
        Reporter(verbose=True).detail("shown")
        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "shown" in out

    def test_errors_go_to_stderr(self, capsys):
        Reporter().error("boom")
        assert "boom" in capsys.readouterr().err

    def test_dependency_table(self, capsys):
        Reporter().dependency_table([
            DependencyRecord(name="Rust", installed=True, version="1.80.0"),
            DependencyRecord.missing("CMake"),
        ])
        out = capsys.readouterr().out
        assert "Rust (1.80.0)" in out
        assert "CMake: not installed" in out

    def test_progress_counts_when_silent(self):
        with Reporter(echo=False).progress(100) as p:
            p.update(40)
            p.update(60)
        assert p.done == 100

    def test_complete_dry_run_banner(self, capsys):
        Reporter().complete(dry_run=True)
        assert "DRY RUN COMPLETED" in capsys.readouterr().out
