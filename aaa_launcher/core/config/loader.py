"""
Configuration loader — builds the one ``LauncherConfig`` for a run.

Precedence, lowest to highest:

    defaults  <  launcher.yml  <  <install_dir>/server_url.txt
              <  AAA_SERVER_URL  <  CLI flags

The environment is passed in explicitly so nothing below the CLI
reads ``os.environ``.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from aaa_launcher.core.models.config import LauncherConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "launcher.yml"
SERVER_URL_FILE = "server_url.txt"
SERVER_URL_ENV = "AAA_SERVER_URL"
APP_DIR_NAME = "AAAEngine"


class ConfigError(Exception):
    """Raised when launcher configuration is invalid or unreadable."""


def default_data_dir(
    env: Mapping[str, str] | None = None,
    platform: str = sys.platform,
) -> Path:
    """Per-user data directory that holds the install tree and config."""
    env = env or {}
    home = Path.home()
    if platform == "win32":
        base = env.get("LOCALAPPDATA")
        root = Path(base) if base else home / "AppData" / "Local"
    elif platform == "darwin":
        root = home / "Library" / "Application Support"
    else:
        base = env.get("XDG_DATA_HOME")
        root = Path(base) if base else home / ".local" / "share"
    return root / APP_DIR_NAME


def default_config_path(
    env: Mapping[str, str] | None = None,
    platform: str = sys.platform,
) -> Path:
    return default_data_dir(env, platform) / CONFIG_FILE_NAME


def _read_config_file(path: Path) -> dict[str, Any]:
    """Parse launcher.yml into a plain dict (empty if absent)."""
    if not path.is_file():
        logger.debug("No config file at %s, using defaults", path)
        return {}

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under a "launcher" key or be flat
    if isinstance(data.get("launcher"), dict):
        data = data["launcher"]

    logger.debug("Loaded config file %s (%d keys)", path, len(data))
    return dict(data)


def _read_server_url_file(install_dir: Path) -> str | None:
    """server_url.txt is written by the bootstrap script for dev sessions."""
    path = install_dir / SERVER_URL_FILE
    try:
        url = path.read_text(encoding="utf-8").strip()
    except OSError:
        return None
    return url or None


def load_config(
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
    platform: str = sys.platform,
) -> LauncherConfig:
    """Build the effective configuration.

    Args:
        config_path: Explicit launcher.yml. Defaults to the platform
            data directory.
        env: Environment snapshot (usually ``os.environ``).
        overrides: CLI flag values; ``None`` values are ignored.
        platform: ``sys.platform`` value used for path defaults.

    Returns:
        Validated LauncherConfig.

    Raises:
        ConfigError: If the file or the merged values are invalid.
    """
    env = env or {}
    path = config_path or default_config_path(env, platform)

    data: dict[str, Any] = {"install_dir": default_data_dir(env, platform)}
    data.update(_read_config_file(path))

    cli = {k: v for k, v in (overrides or {}).items() if v is not None}
    if "install_dir" in cli:
        data["install_dir"] = cli["install_dir"]

    file_url = _read_server_url_file(Path(data["install_dir"]))
    if file_url:
        logger.debug("Server URL from %s: %s", SERVER_URL_FILE, file_url)
        data["server_url"] = file_url

    env_url = (env.get(SERVER_URL_ENV) or "").strip()
    if env_url:
        logger.debug("Server URL from %s: %s", SERVER_URL_ENV, env_url)
        data["server_url"] = env_url

    data.update(cli)

    try:
        config = LauncherConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid launcher configuration: {e}") from e

    logger.info("Config loaded (install_dir=%s, server=%s)", config.install_dir, config.server_url)
    return config
