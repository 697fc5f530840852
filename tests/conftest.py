"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.observability.logging_config import _DropReporter

from fakes import FakeSyncServer


@pytest.fixture(autouse=True)
def _restore_logging():
    """Remove handlers installed by setup_logging (CLI runs, logging tests)."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        ours = isinstance(handler, logging.FileHandler) or any(
            isinstance(f, _DropReporter) for f in handler.filters
        )
        if ours:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
    logging.raiseExceptions = True


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def sync_server():
    """A running FakeSyncServer, stopped after the test."""
    server = FakeSyncServer()
    server.start()
    yield server
    server.stop()


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    d = tmp_path / "AAAEngine"
    d.mkdir()
    return d


@pytest.fixture
def make_config(install_dir: Path):
    """Factory for a LauncherConfig rooted in the temp install dir."""

    def _make(**overrides) -> LauncherConfig:
        data = {
            "install_dir": install_dir,
            "server_url": "http://127.0.0.1:9",
            "request_timeout": 5,
            "connect_timeout": 5,
            "download_timeout": 10,
        }
        data.update(overrides)
        return LauncherConfig(**data)

    return _make


@pytest.fixture
def config(make_config, sync_server) -> LauncherConfig:
    """Config pointed at the fake sync server."""
    return make_config(server_url=sync_server.url)
