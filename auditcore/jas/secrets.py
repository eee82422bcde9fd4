"""Secrets scanner."""

from typing import Any

from auditcore.jas.sarif import (
    SourceCodeFinding,
    get_result_locations,
    get_location_snippet,
    set_location_snippet,
    to_source_code_findings,
)
from auditcore.jas.scanner import Module, ScannerCmd, ScanType
from auditcore.utils.logging import logger

SECRET_VISIBLE_CHARS = 3
SECRET_MASKED_LENGTH = 15


def hide_secret(secret: str) -> str:
    """Keep the first three characters, mask the rest to a fixed length."""
    if len(secret) <= SECRET_VISIBLE_CHARS:
        return "*" * SECRET_VISIBLE_CHARS
    return secret[:SECRET_VISIBLE_CHARS] + "*" * (SECRET_MASKED_LENGTH - SECRET_VISIBLE_CHARS)


class SecretsScanner(ScannerCmd):
    scan_type = ScanType.SECRETS
    scan_command = "sec"
    engine_scan_type = "secrets-scan"

    def build_config(self, session, module: Module) -> dict[str, Any]:
        return {"scans": [self.base_scan_config(session, module)]}

    def process_results(
        self, results: list[dict[str, Any]], module: Module
    ) -> list[SourceCodeFinding]:
        findings = []
        for result in results:
            for location in get_result_locations(result):
                set_location_snippet(location, hide_secret(get_location_snippet(location)))
            findings.extend(to_source_code_findings(result, module.source_root))
        return findings


def run_secrets_scan(session, scanner: SecretsScanner | None = None):
    """Returns (findings, joined error or None)."""
    scanner = scanner or SecretsScanner()
    logger.info("Running secrets scanning...")
    error = session.run(scanner)
    if scanner.results:
        logger.info(f"Found {len(scanner.results)} secrets")
    return scanner.results, error
