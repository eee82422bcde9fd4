"""Top-level audit: SCA stream, then the JAS stream fed by its results.

Each stream reports its own error. A failure in one never discards what the
other gathered; callers render partial results and the joined error.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from auditcore.config import ServerDetails, get_engine_executable, load_runtime_config, timeout_or_none
from auditcore.errors import AuditError, join_errors
from auditcore.jas.engine import AnalyzerManager
from auditcore.jas.manager import ALL_SCAN_TYPES, ExtendedScanResults, run_jas_scanners
from auditcore.jas.scanner import ScanType, load_modules
from auditcore.sca.models import ScanGraphClient, should_fail_build
from auditcore.sca.runner import DependencyTreeProvider, ScaScanResults, run_sca_scan
from auditcore.scan.files import FileSpec
from auditcore.scan.indexer import BinaryIndexer
from auditcore.scan.pipeline import BinaryScanPipeline, BinaryScanResults
from auditcore.utils.logging import logger
from auditcore.utils.temp_manager import TempManager


@dataclass
class AuditResults:
    sca: ScaScanResults = field(default_factory=ScaScanResults)
    jas: ExtendedScanResults = field(default_factory=ExtendedScanResults)
    sca_error: BaseException | None = None
    jas_error: BaseException | None = None

    @property
    def error(self) -> BaseException | None:
        return join_errors(self.sca_error, self.jas_error)

    @property
    def fail_build(self) -> bool:
        return should_fail_build(self.sca.responses)


def create_engine(cfg: dict[str, Any]) -> AnalyzerManager:
    """AnalyzerManager configured from runtime config.

    Raises:
        FileNotFoundError: If the engine binary cannot be located
    """
    return AnalyzerManager(
        get_engine_executable(cfg),
        multi_scan_id=cfg["engine"]["multi_scan_id"],
        log_dir=cfg["engine"]["log_dir"],
        timeout=timeout_or_none(cfg["timeouts"]["engine"]),
    )


def run_audit(
    providers: Iterable[DependencyTreeProvider],
    client: ScanGraphClient,
    server_details: ServerDetails | None,
    working_dirs: Iterable[str] | None = None,
    engine: AnalyzerManager | None = None,
    scan_types: Iterable[ScanType] = ALL_SCAN_TYPES,
    third_party: bool = False,
    cfg: dict[str, Any] | None = None,
) -> AuditResults:
    """Run the SCA scan over every provider, then the JAS scanners.

    Args:
        providers: Ecosystem adapters, one per detected technology
        client: Scanning-service client
        server_details: Platform connection; JAS is skipped without it
        working_dirs: Module directories when no apps-config file exists
        engine: Analysis engine; resolved from ``cfg`` when omitted
        scan_types: JAS scanners to run
        third_party: Include indirect CVEs in applicability scanning
        cfg: Runtime config, loaded from the current directory when omitted
    """
    cfg = cfg or load_runtime_config()
    results = AuditResults()

    results.sca = run_sca_scan(
        providers, client, max_appearances=cfg["limits"]["max_unique_appearances"]
    )
    results.sca_error = results.sca.error

    scan_types = list(scan_types)
    if not scan_types:
        return results
    try:
        engine = engine or create_engine(cfg)
        modules = load_modules(working_dirs, cfg["paths"]["apps_config"])
    except (AuditError, OSError) as e:
        logger.error(f"Advanced security scans could not start: {e}")
        results.jas_error = e
        return results

    results.jas = run_jas_scanners(
        engine,
        modules,
        server_details,
        sca_responses=results.sca.responses,
        direct_dependencies=results.sca.direct_dependencies,
        scan_types=scan_types,
        third_party=third_party,
        temp_base_dir=cfg["paths"]["temp_dir"] or None,
    )
    results.jas_error = results.jas.error
    return results


def run_binary_scan(
    indexer_executable: str | Path,
    client: ScanGraphClient,
    specs: Iterable[FileSpec],
    cfg: dict[str, Any] | None = None,
    **pipeline_options: Any,
) -> BinaryScanResults:
    """Scan local artifacts through the indexer and the scanning service."""
    cfg = cfg or load_runtime_config()
    temp_dir = TempManager.create_temp_dir(
        prefix="indexer", base_dir=cfg["paths"]["temp_dir"] or None
    )
    try:
        indexer = BinaryIndexer(
            indexer_executable, temp_dir, timeout=timeout_or_none(cfg["timeouts"]["indexer"])
        )
        pipeline = BinaryScanPipeline(
            indexer,
            client,
            threads=cfg["limits"]["scan_threads"],
            max_queued_tasks=cfg["limits"]["max_queued_tasks"],
            **pipeline_options,
        )
        return pipeline.run(specs)
    finally:
        TempManager.remove_temp_dir(temp_dir)
