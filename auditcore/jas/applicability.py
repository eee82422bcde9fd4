"""Contextual applicability scanner.

Checks whether CVEs found by the SCA scan are reachable from the project's
own code. The engine reports one result per evaluated CVE under the rule id
``applic_<CVE>``; a result of kind ``pass`` means "not applicable".
"""

from collections.abc import Iterable
from enum import Enum
from typing import Any

from auditcore.jas.sarif import (
    applicability_rule_id_to_cve,
    get_result_rule_id,
    is_applicable_result,
)
from auditcore.jas.scanner import (
    NODE_MODULES_PATTERN,
    VIRTUAL_ENV_PATTERN,
    Module,
    ScannerCmd,
    ScanType,
)
from auditcore.utils.logging import logger


class ApplicabilityStatus(str, Enum):
    APPLICABLE = "Applicable"
    NOT_APPLICABLE = "Not Applicable"
    UNDETERMINED = "Undetermined"

    def __str__(self) -> str:
        return self.value


# When modules disagree about a CVE the strongest evidence wins
_STATUS_RANK = {
    ApplicabilityStatus.UNDETERMINED: 0,
    ApplicabilityStatus.NOT_APPLICABLE: 1,
    ApplicabilityStatus.APPLICABLE: 2,
}


class ApplicabilityScanner(ScannerCmd):
    """Contextual analysis of known CVEs.

    Per-module statuses are merged into ``statuses``; applicability_results()
    is the public view, with every whitelisted CVE present.
    """

    scan_type = ScanType.APPLICABILITY
    scan_command = "ca"
    engine_scan_type = "analyze-applicability"

    def __init__(
        self,
        direct_cves: Iterable[str],
        indirect_cves: Iterable[str] = (),
        third_party: bool = False,
    ):
        super().__init__()
        self.direct_cves = list(dict.fromkeys(direct_cves))
        self.indirect_cves = [c for c in dict.fromkeys(indirect_cves) if c not in self.direct_cves]
        self.third_party = third_party
        self.statuses: dict[str, ApplicabilityStatus] = {}
        self._indirect_requested = third_party

    def is_third_party(self, module: Module) -> bool:
        return self.third_party or module.third_party

    @property
    def should_run(self) -> bool:
        """Nothing to check without at least one whitelisted CVE."""
        return bool(self.direct_cves) or (self.third_party and bool(self.indirect_cves))

    def build_config(self, session, module: Module) -> dict[str, Any]:
        scan = self.base_scan_config(session, module)
        if self.is_third_party(module):
            # Dependency sources live under these folders
            scan["skipped-folders"] = [
                p
                for p in scan["skipped-folders"]
                if p not in (NODE_MODULES_PATTERN, VIRTUAL_ENV_PATTERN)
            ]
        scan["grep-disable"] = False
        scan["cve-whitelist"] = list(self.direct_cves)
        if self.is_third_party(module):
            scan["indirect-cve-whitelist"] = list(self.indirect_cves)
            self._indirect_requested = True
        return {"scans": [scan]}

    def process_results(self, results: list[dict[str, Any]], module: Module) -> list[Any]:
        statuses = {}
        for result in results:
            cve = applicability_rule_id_to_cve(get_result_rule_id(result))
            if not cve:
                continue
            status = (
                ApplicabilityStatus.APPLICABLE
                if is_applicable_result(result)
                else ApplicabilityStatus.NOT_APPLICABLE
            )
            if _STATUS_RANK[status] > _STATUS_RANK.get(statuses.get(cve), -1):
                statuses[cve] = status
        return list(statuses.items())

    def aggregate(self, findings: list[Any]) -> None:
        for cve, status in findings:
            current = self.statuses.get(cve)
            if current is None or _STATUS_RANK[status] > _STATUS_RANK[current]:
                self.statuses[cve] = status

    def applicability_results(self) -> dict[str, ApplicabilityStatus]:
        """Status of every whitelisted CVE; CVEs the engine never mentioned are undetermined."""
        cves = self.direct_cves + (self.indirect_cves if self._indirect_requested else [])
        output = {cve: ApplicabilityStatus.UNDETERMINED for cve in cves}
        output.update(self.statuses)
        return output


def run_applicability_scan(session, scanner: ApplicabilityScanner):
    """Run the applicability scanner over a session.

    Returns:
        Tuple of (CVE id -> status, joined error or None)
    """
    if not scanner.should_run:
        logger.debug(
            "No vulnerable direct dependencies were found, skipping contextual analysis scanning"
        )
        return {}, None
    logger.info("Running applicability scanning...")
    error = session.run(scanner)
    results = scanner.applicability_results()
    return results, error
