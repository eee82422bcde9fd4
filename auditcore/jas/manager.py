"""JAS orchestration - runs every enabled scanner in one session."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from auditcore.config import ServerDetails
from auditcore.errors import join_errors
from auditcore.jas.applicability import (
    ApplicabilityScanner,
    ApplicabilityStatus,
    run_applicability_scan,
)
from auditcore.jas.engine import AnalyzerManager
from auditcore.jas.iac import run_iac_scan
from auditcore.jas.sarif import SourceCodeFinding
from auditcore.jas.sast import run_sast_scan
from auditcore.jas.scanner import JasScanner, Module, ScanType
from auditcore.jas.secrets import run_secrets_scan
from auditcore.sca.models import ScanResponse
from auditcore.sca.runner import extract_dependencies_cves
from auditcore.utils.logging import logger

ALL_SCAN_TYPES = (ScanType.APPLICABILITY, ScanType.SECRETS, ScanType.IAC, ScanType.SAST)


@dataclass
class ExtendedScanResults:
    """JAS findings per scanner type, plus the joined error of failed scanners."""

    applicability: dict[str, ApplicabilityStatus] = field(default_factory=dict)
    secrets: list[SourceCodeFinding] = field(default_factory=list)
    iac: list[SourceCodeFinding] = field(default_factory=list)
    sast: list[SourceCodeFinding] = field(default_factory=list)
    entitled: bool = False
    error: BaseException | None = None

    def finding_counts(self) -> dict[str, int]:
        return {
            str(ScanType.APPLICABILITY): sum(
                1 for s in self.applicability.values() if s == ApplicabilityStatus.APPLICABLE
            ),
            str(ScanType.SECRETS): len(self.secrets),
            str(ScanType.IAC): len(self.iac),
            str(ScanType.SAST): len(self.sast),
        }


def run_jas_scanners(
    engine: AnalyzerManager,
    modules: list[Module],
    server_details: ServerDetails | None,
    sca_responses: Iterable[ScanResponse] = (),
    direct_dependencies: Iterable[str] = (),
    scan_types: Iterable[ScanType] = ALL_SCAN_TYPES,
    third_party: bool = False,
    temp_base_dir: str | Path | None = None,
) -> ExtendedScanResults:
    """Run applicability, secrets, IaC and SAST scanners in one session.

    Scanners run in that order and independently: a failing scanner's error
    is joined into ``ExtendedScanResults.error`` and the next one still runs.
    Without platform connection details nothing is run.
    """
    results = ExtendedScanResults()
    if server_details is None or not server_details.is_configured:
        logger.warning(
            "To include advanced security scans in the audit output, configure the platform "
            "connection (AUDITCORE_URL and credentials) before running this command."
        )
        return results

    enabled = set(scan_types)
    errors = []
    with JasScanner(engine, modules, server_details, temp_base_dir=temp_base_dir) as session:
        results.entitled = True

        if ScanType.APPLICABILITY in enabled:
            direct_cves, indirect_cves = extract_dependencies_cves(sca_responses, direct_dependencies)
            scanner = ApplicabilityScanner(direct_cves, indirect_cves, third_party=third_party)
            results.applicability, error = run_applicability_scan(session, scanner)
            errors.append(error)

        if ScanType.SECRETS in enabled:
            results.secrets, error = run_secrets_scan(session)
            errors.append(error)

        if ScanType.IAC in enabled:
            results.iac, error = run_iac_scan(session)
            errors.append(error)

        if ScanType.SAST in enabled:
            results.sast, error = run_sast_scan(session)
            errors.append(error)

    results.error = join_errors(*errors, session.cleanup_error)
    return results
