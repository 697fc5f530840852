"""
LauncherConfig — the one configuration object passed to every component.

Built once at startup by ``aaa_launcher.core.config.loader.load_config``
from defaults, the config file, ``server_url.txt``, the
``AAA_SERVER_URL`` variable and CLI flags (in that precedence order).
Components never read environment variables themselves.
"""

from __future__ import annotations

import sys
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

DEFAULT_SERVER_URL = "https://aaa-mmorpg-engine-danielbodnar2.replit.app"
STAGE_FILE_NAME = "launcher_state.json"
LEDGER_FILE_NAME = "runs.ndjson"


class LauncherConfig(BaseModel):
    """Effective launcher configuration."""

    # ── Remote ──────────────────────────────────────────────────
    server_url: str = DEFAULT_SERVER_URL

    # ── Local layout ────────────────────────────────────────────
    install_dir: Path

    # ── Toolchain versions ──────────────────────────────────────
    o3de_version: str = "2510.1"       # GitHub tag format (25.10.1 → 2510.1)
    vulkan_version: str = "1.3.290.0"
    tracy_version: str = "0.11.1"

    # ── Behaviour flags ─────────────────────────────────────────
    force_rebuild: bool = False
    skip_update: bool = False
    verbose: bool = False
    dry_run: bool = False
    skip_elevation: bool = False

    # ── Network ─────────────────────────────────────────────────
    request_timeout: float = Field(default=30.0, gt=0)
    connect_timeout: float = Field(default=30.0, gt=0)
    download_timeout: float = Field(default=600.0, gt=0)
    max_parallel_downloads: int = Field(default=4, ge=1, le=32)

    # ── Executables ─────────────────────────────────────────────
    executable_path: Path | None = None    # self-update target; None = auto
    build_command: list[str] | None = None  # None = platform default

    @field_validator("server_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("server_url must not be empty")
        return v.rstrip("/")

    # ── Derived paths ───────────────────────────────────────────

    @property
    def deps_dir(self) -> Path:
        return self.install_dir / "deps"

    @property
    def engine_dir(self) -> Path:
        return self.install_dir / "engine"

    @property
    def logs_dir(self) -> Path:
        return self.install_dir / "logs"

    @property
    def o3de_dir(self) -> Path:
        return self.install_dir / "o3de"

    @property
    def vulkan_sdk_dir(self) -> Path:
        return self.deps_dir / "VulkanSDK" / self.vulkan_version

    @property
    def tracy_dir(self) -> Path:
        return self.deps_dir / f"tracy-{self.tracy_version}"

    @property
    def stage_file(self) -> Path:
        return self.install_dir / STAGE_FILE_NAME

    @property
    def ledger_file(self) -> Path:
        return self.logs_dir / LEDGER_FILE_NAME

    @property
    def is_windows(self) -> bool:
        return sys.platform == "win32"

    def toolchain_env(self) -> dict[str, str]:
        """Environment variables the managed application's build expects."""
        return {
            "O3DE_HOME": str(self.o3de_dir),
            "VULKAN_SDK": str(self.vulkan_sdk_dir),
            "TRACY_DIR": str(self.tracy_dir),
        }
