"""JAS - local analysis scanners driven through the analyzer manager engine.

Usage:
    from auditcore.jas import AnalyzerManager, JasScanner, SecretsScanner, load_modules

    engine = AnalyzerManager("/opt/analyzerManager/analyzerManager")
    with JasScanner(engine, load_modules(["."]), server_details) as session:
        error = session.run(scanner := SecretsScanner())
        findings = scanner.results
"""

from .applicability import ApplicabilityScanner, ApplicabilityStatus, run_applicability_scan
from .engine import AnalyzerManager, parse_engine_error
from .iac import IacScanner, run_iac_scan
from .manager import ExtendedScanResults, run_jas_scanners
from .sarif import CodeLocation, SourceCodeFinding
from .sast import SastScanner, run_sast_scan
from .scanner import JasScanner, Module, ScannerCmd, ScannerConfig, ScanState, ScanType, load_modules
from .secrets import SecretsScanner, hide_secret, run_secrets_scan

__all__ = [
    "AnalyzerManager",
    "ApplicabilityScanner",
    "ApplicabilityStatus",
    "CodeLocation",
    "ExtendedScanResults",
    "IacScanner",
    "JasScanner",
    "Module",
    "SastScanner",
    "ScanState",
    "ScanType",
    "ScannerCmd",
    "ScannerConfig",
    "SecretsScanner",
    "SourceCodeFinding",
    "hide_secret",
    "load_modules",
    "parse_engine_error",
    "run_applicability_scan",
    "run_iac_scan",
    "run_jas_scanners",
    "run_sast_scan",
    "run_secrets_scan",
]
