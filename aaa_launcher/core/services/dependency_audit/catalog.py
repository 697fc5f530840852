"""
Dependency catalog — what the engine needs and where to look for it.

``build_catalog`` returns one ``DependencySpec`` per required
dependency for the given platform. Probe order is most-authoritative
first (registry query, env var, managed location, PATH). Where no
automated installer exists for a platform, a ``ManualInstall`` with a
hint is used.

An O3DE source tree without built libraries is reported as not
installed: only the built ``AzCore`` library counts as a marker.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.services.dependency_audit.installers import (
    ArchiveInstaller,
    CommandSequenceInstaller,
    DownloadAndRunInstaller,
    InstallProcedure,
    InstallStep,
    ManualInstall,
)
from aaa_launcher.core.services.dependency_audit.probes import (
    CommandQueryProbe,
    EnvVarProbe,
    PathScanProbe,
    ProbeStrategy,
    WhichProbe,
)

VS_BUILDTOOLS_URL = "https://aka.ms/vs/17/release/vs_buildtools.exe"
VSWHERE_PATH = Path(r"C:\Program Files (x86)\Microsoft Visual Studio\Installer\vswhere.exe")
RUSTUP_URL = "https://static.rust-lang.org/rustup/dist/{triple}/rustup-init{ext}"
VULKAN_URL = "https://sdk.lunarg.com/sdk/download/{v}/windows/VulkanSDK-{v}-Installer.exe"
TRACY_URL = "https://github.com/wolfpld/tracy/archive/refs/tags/v{v}.zip"
O3DE_REPO = "https://github.com/o3de/o3de.git"

# MSI-style "success, reboot required"
_REBOOT_REQUIRED = 3010


@dataclass
class DependencySpec:
    """A required dependency: how to detect it and how to install it."""

    name: str
    probes: Sequence[ProbeStrategy]
    installer: InstallProcedure


def build_catalog(
    config: LauncherConfig,
    env: Mapping[str, str] | None = None,
    platform: str = sys.platform,
) -> list[DependencySpec]:
    """Required dependencies for ``platform``, in audit order."""
    env = dict(os.environ) if env is None else dict(env)
    windows = platform == "win32"
    search_path = env.get("PATH")

    return [
        _compiler(windows, search_path),
        _rust(env, platform, search_path),
        _vulkan(config, env, windows),
        _tracy(config, env, windows),
        _o3de(config, windows),
        _cmake(env, windows, search_path),
    ]


# ── Per-dependency specs ────────────────────────────────────────


def _compiler(windows: bool, search_path: str | None) -> DependencySpec:
    if not windows:
        return DependencySpec(
            name="C++ Compiler",
            probes=[WhichProbe(["c++", "g++", "clang++"], search_path=search_path)],
            installer=ManualInstall("install a C++ toolchain with your package manager"),
        )
    return DependencySpec(
        name="Visual Studio Build Tools",
        probes=[
            CommandQueryProbe([
                str(VSWHERE_PATH), "-latest", "-products", "*",
                "-requires", "Microsoft.VisualStudio.Component.VC.Tools.x86.x64",
                "-format", "json",
            ]),
            WhichProbe(["cl.exe"], version_args=(), search_path=search_path),
        ],
        installer=DownloadAndRunInstaller(
            url=VS_BUILDTOOLS_URL,
            filename="vs_buildtools.exe",
            args=[
                "--quiet", "--wait", "--norestart", "--nocache",
                "--add", "Microsoft.VisualStudio.Workload.VCTools",
                "--includeRecommended",
            ],
            timeout=2 * 60 * 60,
            ok_exit_codes=(0, _REBOOT_REQUIRED),
        ),
    )


def _rust(env: Mapping[str, str], platform: str, search_path: str | None) -> DependencySpec:
    windows = platform == "win32"
    cargo_home = Path(env["CARGO_HOME"]) if env.get("CARGO_HOME") else Path.home() / ".cargo"
    rustc = "rustc.exe" if windows else "rustc"
    triple = _rustup_triple(platform)
    return DependencySpec(
        name="Rust",
        probes=[
            WhichProbe(["rustc.exe", "rustc"] if windows else ["rustc"], search_path=search_path),
            PathScanProbe([cargo_home / "bin"], markers=[rustc], source="cargo-home"),
        ],
        installer=DownloadAndRunInstaller(
            url=RUSTUP_URL.format(triple=triple, ext=".exe" if windows else ""),
            filename="rustup-init.exe" if windows else "rustup-init",
            args=["-y", "--default-toolchain", "stable"],
        ),
    )


def _rustup_triple(platform: str) -> str:
    if platform == "win32":
        return "x86_64-pc-windows-msvc"
    if platform == "darwin":
        return "aarch64-apple-darwin"
    return "x86_64-unknown-linux-gnu"


def _vulkan(config: LauncherConfig, env: Mapping[str, str], windows: bool) -> DependencySpec:
    probes: list[ProbeStrategy] = [EnvVarProbe("VULKAN_SDK", env)]
    roots = [config.vulkan_sdk_dir.parent]
    if windows:
        roots.insert(0, Path(r"C:\VulkanSDK"))
        installer: InstallProcedure = DownloadAndRunInstaller(
            url=VULKAN_URL.format(v=config.vulkan_version),
            filename="VulkanSDK-Installer.exe",
            args=[
                "--root", "{vulkan_sdk_dir}",
                "--accept-licenses", "--default-answer", "--confirm-command", "install",
            ],
        )
    else:
        installer = ManualInstall("download the Vulkan SDK from https://vulkan.lunarg.com/sdk/home")
    probes.append(PathScanProbe(roots, markers=["Include", "include", "Bin", "bin"], subdir_glob="*"))
    return DependencySpec(name="Vulkan SDK", probes=probes, installer=installer)


def _tracy(config: LauncherConfig, env: Mapping[str, str], windows: bool) -> DependencySpec:
    roots = [config.tracy_dir]
    if windows:
        roots.insert(0, Path(r"C:\Tracy"))
        if env.get("LOCALAPPDATA"):
            roots.append(Path(env["LOCALAPPDATA"]) / "Tracy")
    markers = ["Tracy.exe", "public"] if windows else ["tracy-profiler", "public"]
    return DependencySpec(
        name="Tracy Profiler",
        probes=[PathScanProbe(roots, markers=markers, version=config.tracy_version)],
        installer=ArchiveInstaller(
            url=TRACY_URL.format(v=config.tracy_version),
            filename="tracy.zip",
        ),
    )


def _o3de(config: LauncherConfig, windows: bool) -> DependencySpec:
    lib = "AzCore.lib" if windows else "libAzCore.a"
    build_platform = "windows" if windows else "linux"
    markers = [
        f"install/lib/profile/{lib}",
        f"install/lib/release/{lib}",
        f"build/{build_platform}/lib/profile/{lib}",
        f"build/{build_platform}/lib/release/{lib}",
        f"lib/profile/{lib}",
    ]
    probes: list[ProbeStrategy] = [
        PathScanProbe([config.o3de_dir], markers=markers, version_file="engine.json"),
    ]
    if windows:
        probes.append(PathScanProbe(
            [Path(r"C:\O3DE")], markers=markers, subdir_glob="*", version_file="engine.json",
        ))
    return DependencySpec(name="O3DE SDK", probes=probes, installer=_o3de_installer(config, windows))


def _o3de_installer(config: LauncherConfig, windows: bool) -> CommandSequenceInstaller:
    src = config.o3de_dir
    build_dir = src / "build" / ("windows" if windows else "linux")
    generator = ["-G", "Visual Studio 17 2022", "-A", "x64"] if windows else []
    return CommandSequenceInstaller(
        clean_on_first_step=src,
        steps=[
            InstallStep(
                "Cloning O3DE source",
                ["git", "clone", "--depth", "1", "--branch", config.o3de_version, O3DE_REPO, str(src)],
                cwd=src.parent,
                skip_if_exists=src / "CMakeLists.txt",
            ),
            InstallStep(
                "Configuring O3DE",
                [
                    "cmake", "-B", str(build_dir), "-S", str(src), *generator,
                    "-DLY_DISABLE_TEST_MODULES=ON", "-DLY_UNITY_BUILD=ON",
                    f"-DCMAKE_INSTALL_PREFIX={src / 'install'}",
                ],
                cwd=src,
                skip_if_exists=build_dir / "CMakeCache.txt",
            ),
            InstallStep(
                "Building O3DE core libraries",
                [
                    "cmake", "--build", str(build_dir), "--config", "profile",
                    "--target", "AzCore", "AzFramework", "--parallel",
                ],
                cwd=src,
                timeout=4 * 60 * 60,
            ),
            InstallStep(
                "Installing O3DE",
                ["cmake", "--install", str(build_dir), "--config", "profile"],
                cwd=src,
            ),
        ],
    )


def _cmake(env: Mapping[str, str], windows: bool, search_path: str | None) -> DependencySpec:
    probes: list[ProbeStrategy] = [
        WhichProbe(
            ["cmake.exe", "cmake"] if windows else ["cmake"],
            pattern=r"cmake version\s+(\d+\.\d+\.\d+)",
            search_path=search_path,
        ),
    ]
    if windows:
        program_files = Path(env.get("ProgramFiles", r"C:\Program Files"))
        probes.append(PathScanProbe([program_files / "CMake"], markers=["bin/cmake.exe"]))
    return DependencySpec(
        name="CMake",
        probes=probes,
        installer=ManualInstall("install CMake 3.24+ from https://cmake.org/download/"),
    )
