"""Infrastructure-as-code scanner."""

from typing import Any

from auditcore.jas.sarif import SourceCodeFinding, to_source_code_findings
from auditcore.jas.scanner import Module, ScannerCmd, ScanType
from auditcore.utils.logging import logger


class IacScanner(ScannerCmd):
    scan_type = ScanType.IAC
    scan_command = "iac"
    engine_scan_type = "iac-scan-modules"

    def build_config(self, session, module: Module) -> dict[str, Any]:
        return {"scans": [self.base_scan_config(session, module)]}

    def process_results(
        self, results: list[dict[str, Any]], module: Module
    ) -> list[SourceCodeFinding]:
        findings = []
        for result in results:
            findings.extend(to_source_code_findings(result, module.source_root))
        return findings


def run_iac_scan(session, scanner: IacScanner | None = None):
    """Returns (findings, joined error or None)."""
    scanner = scanner or IacScanner()
    logger.info("Running IaC scanning...")
    error = session.run(scanner)
    if scanner.results:
        logger.info(f"Found {len(scanner.results)} IaC vulnerabilities")
    return scanner.results, error
