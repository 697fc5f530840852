"""
Dependency audit — detect, and install when missing, the toolchains
and SDKs the managed application needs to build.
"""

from aaa_launcher.core.services.dependency_audit.auditor import DependencyAuditor, InstallReport
from aaa_launcher.core.services.dependency_audit.catalog import DependencySpec, build_catalog
from aaa_launcher.core.services.dependency_audit.installers import (
    ArchiveInstaller,
    CommandSequenceInstaller,
    DownloadAndRunInstaller,
    InstallContext,
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

__all__ = [
    "ArchiveInstaller",
    "CommandQueryProbe",
    "CommandSequenceInstaller",
    "DependencyAuditor",
    "DependencySpec",
    "DownloadAndRunInstaller",
    "EnvVarProbe",
    "InstallContext",
    "InstallProcedure",
    "InstallReport",
    "InstallStep",
    "ManualInstall",
    "PathScanProbe",
    "ProbeStrategy",
    "WhichProbe",
    "build_catalog",
]
