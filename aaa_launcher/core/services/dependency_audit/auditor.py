"""
Dependency auditor — probe, install what is missing, probe again.

Audits are side-effect free and never cached: every call re-runs the
probes, because the environment may change between (or during) runs.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from aaa_launcher.core.errors import DependencyError
from aaa_launcher.core.models.config import LauncherConfig
from aaa_launcher.core.models.dependency import DependencyRecord
from aaa_launcher.core.observability.reporter import Reporter
from aaa_launcher.core.services.dependency_audit.catalog import DependencySpec
from aaa_launcher.core.services.dependency_audit.installers import InstallContext
from aaa_launcher.core.services.http_client import HttpClient

logger = logging.getLogger(__name__)


@dataclass
class InstallReport:
    """Outcome of ``DependencyAuditor.install_missing``."""

    attempted: list[str] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    records: list[DependencyRecord] = field(default_factory=list)

    @property
    def still_missing(self) -> list[str]:
        return [r.name for r in self.records if not r.installed]


class DependencyAuditor:
    """Detect and install the engine's toolchain dependencies."""

    def __init__(
        self,
        specs: Sequence[DependencySpec],
        *,
        config: LauncherConfig,
        client: HttpClient | None = None,
        reporter: Reporter | None = None,
    ):
        self.specs = list(specs)
        self.config = config
        self.client = client or HttpClient.from_config(config)
        self.reporter = reporter or Reporter(echo=False)

    # ── Detection ───────────────────────────────────────────────

    def detect(self, spec: DependencySpec) -> DependencyRecord:
        """Run ``spec``'s probes in order; the first hit wins."""
        for probe in spec.probes:
            try:
                record = probe.detect(spec.name)
            except Exception as e:
                logger.warning("%s: probe %s raised %s - treated as not found", spec.name, probe.source, e)
                continue
            if record is not None:
                return record
        logger.debug("%s not found by %d probes", spec.name, len(spec.probes))
        return DependencyRecord.missing(spec.name)

    def check_all(self) -> list[DependencyRecord]:
        """One fresh record per required dependency."""
        return [self.detect(spec) for spec in self.specs]

    # ── Installation ────────────────────────────────────────────

    def install_missing(self, records: Sequence[DependencyRecord]) -> InstallReport:
        """Install every dependency ``records`` marks as missing.

        Each install runs independently; a failure is recorded and the
        next one proceeds. All dependencies are re-probed afterwards.

        Raises:
            DependencyError: Naming exactly the dependencies that are
                still missing after the attempt.
        """
        by_name = {spec.name: spec for spec in self.specs}
        ctx = InstallContext(config=self.config, client=self.client, reporter=self.reporter)
        report = InstallReport()

        for record in records:
            if record.installed:
                continue
            spec = by_name.get(record.name)
            if spec is None:
                logger.warning("No install procedure known for %s", record.name)
                report.failures[record.name] = "unknown dependency"
                continue

            report.attempted.append(spec.name)
            self.reporter.download(f"Installing {spec.name}...")
            try:
                spec.installer.install(spec.name, ctx)
            except Exception as e:
                logger.error("Install of %s failed: %s", spec.name, e)
                self.reporter.error(f"{spec.name}: {e}")
                report.failures[spec.name] = str(e)
            else:
                self.reporter.success(f"{spec.name} installer finished")

        report.records = self.check_all()
        missing = report.still_missing
        if missing:
            failures = {name: report.failures[name] for name in missing if name in report.failures}
            raise DependencyError(missing, failures)
        return report

    # ── Stage action ────────────────────────────────────────────

    def run(self) -> list[DependencyRecord]:
        """DependencyAudit stage: report, then install (unless dry-run)."""
        self.reporter.info("Checking required dependencies...")
        records = self.check_all()
        self.reporter.dependency_table(records)

        missing = [r.name for r in records if not r.installed]
        if not missing:
            self.reporter.success("All dependencies installed")
            return records

        if self.config.dry_run:
            self.reporter.info(f"Dry-run mode: would install {', '.join(missing)}")
            return records

        self.reporter.warn(f"Installing {len(missing)} missing dependencies")
        report = self.install_missing(records)
        self.reporter.success("All dependencies installed")
        return report.records
