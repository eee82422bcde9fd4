"""Source code (SAST) scanner.

The engine reports the same logical finding once per call path that reaches
it. Findings sharing file, line:column and message are folded into one whose
code flows accumulate every distinct path.
"""

from typing import Any

from auditcore.jas.sarif import SourceCodeFinding, to_source_code_findings
from auditcore.jas.scanner import Module, ScannerCmd, ScanType
from auditcore.utils.logging import logger


def group_findings_by_location(findings: list[SourceCodeFinding]) -> list[SourceCodeFinding]:
    """Merge findings with the same (file, line:column, message), keeping first-seen order."""
    grouped: dict[tuple[str, str, str], SourceCodeFinding] = {}
    for finding in findings:
        key = (finding.file, finding.line_column, finding.message)
        existing = grouped.get(key)
        if existing is None:
            grouped[key] = SourceCodeFinding(
                severity=finding.severity,
                location=finding.location,
                message=finding.message,
                rule_id=finding.rule_id,
                code_flows=list(dict.fromkeys(finding.code_flows)),
            )
            continue
        for flow in finding.code_flows:
            if flow not in existing.code_flows:
                existing.code_flows.append(flow)
    return list(grouped.values())


class SastScanner(ScannerCmd):
    scan_type = ScanType.SAST
    scan_command = "zd"
    engine_scan_type = "analyze-codebase"

    def build_config(self, session, module: Module) -> dict[str, Any]:
        scan = self.base_scan_config(session, module)
        scanner_config = self.scanner_config(module)
        if scanner_config is not None:
            if scanner_config.language:
                scan["language"] = scanner_config.language
            if scanner_config.excluded_rules:
                scan["excluded-rules"] = list(scanner_config.excluded_rules)
        return {"scans": [scan]}

    def engine_working_dir(self, session, module: Module):
        return module.source_root

    def process_results(
        self, results: list[dict[str, Any]], module: Module
    ) -> list[SourceCodeFinding]:
        findings = []
        for result in results:
            findings.extend(to_source_code_findings(result, module.source_root))
        return group_findings_by_location(findings)


def run_sast_scan(session, scanner: SastScanner | None = None):
    """Returns (findings, joined error or None)."""
    scanner = scanner or SastScanner()
    logger.info("Running SAST scanning...")
    error = session.run(scanner)
    if scanner.results:
        logger.info(f"Found {len(scanner.results)} SAST vulnerabilities")
    return scanner.results, error
