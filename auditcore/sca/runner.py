"""SCA runner - dependency graphs in, attributed scan responses out.

Ecosystem adapters (maven, npm, pip ...) live outside this package. Each one
is wrapped as a DependencyTreeProvider that hands over raw parent -> children
edges per build module; everything after that is ecosystem-agnostic.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace

from auditcore.errors import AuditError, ScanServiceError, join_errors
from auditcore.graph.builder import (
    MAX_UNIQUE_APPEARANCES,
    build_dependency_forest,
    create_flat_tree,
    get_direct_dependencies,
)
from auditcore.graph.impact_paths import build_impact_paths_for_scan_responses
from auditcore.graph.types import GraphNode
from auditcore.sca.models import GraphScanParams, ScanGraphClient, ScanResponse
from auditcore.utils.logging import logger


class DependencyTreeProvider(ABC):
    """Abstract base class for ecosystem adapters.

    Implementations must provide:
    - technology: Identifier for the ecosystem (e.g., 'npm', 'maven')
    - dependency_graphs(): (root id, edge map) for every build module
    """

    @property
    @abstractmethod
    def technology(self) -> str:
        """Return ecosystem identifier (e.g., 'npm', 'go', 'pip')."""
        ...

    @abstractmethod
    def dependency_graphs(self) -> list[tuple[str, Mapping[str, Sequence[str]]]]:
        """Return one (root id, parent id -> ordered child ids) pair per module."""
        ...

    @property
    def known_ids(self) -> set[str] | None:
        """Authoritative id set used to drop over-reported edges (optional).

        Adapters whose graph tool reports edges the ecosystem resolver does
        not recognize (e.g. ``go mod graph`` vs ``go list -m all``) return the
        resolver's id set here. None disables filtering.
        """
        return None


@dataclass
class TechnologyScanResult:
    technology: str
    forest: list[GraphNode] = field(default_factory=list)
    responses: list[ScanResponse] = field(default_factory=list)
    direct_dependencies: list[str] = field(default_factory=list)


@dataclass
class ScaScanResults:
    """Per-technology results plus the joined error of failed technologies."""

    technologies: list[TechnologyScanResult] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def responses(self) -> list[ScanResponse]:
        return [r for tech in self.technologies for r in tech.responses]

    @property
    def direct_dependencies(self) -> list[str]:
        return [d for tech in self.technologies for d in tech.direct_dependencies]

    @property
    def scanned_technologies(self) -> list[str]:
        return [tech.technology for tech in self.technologies]


def _tag_technology(response: ScanResponse, technology: str) -> ScanResponse:
    return replace(
        response,
        vulnerabilities=[replace(v, technology=technology) for v in response.vulnerabilities],
        violations=[replace(v, technology=technology) for v in response.violations],
    )


def scan_technology(
    provider: DependencyTreeProvider,
    client: ScanGraphClient,
    params: GraphScanParams | None = None,
    max_appearances: int = MAX_UNIQUE_APPEARANCES,
) -> TechnologyScanResult:
    """Build, flatten, submit and attribute the graph of one technology.

    Raises:
        AuditError: If no dependencies were found
        ScanServiceError: If the scanning service fails the request
    """
    technology = provider.technology
    forest, unique_ids = build_dependency_forest(
        provider.dependency_graphs(),
        known_ids=provider.known_ids,
        max_appearances=max_appearances,
    )
    flat_tree = create_flat_tree(unique_ids)
    if not flat_tree.nodes:
        raise AuditError(f"no dependencies were found. Please try to build your {technology} project and re-run the audit command")

    logger.info(f"Scanning {len(flat_tree.nodes)} {technology} dependencies...")
    request = replace(params, graph=flat_tree) if params else GraphScanParams(graph=flat_tree)
    try:
        response = client.scan_graph(request)
    except ScanServiceError:
        raise
    except Exception as e:
        raise ScanServiceError(f"{technology} dependency graph scan failed: {e}") from e

    responses = build_impact_paths_for_scan_responses(
        [_tag_technology(response, technology)], forest
    )
    return TechnologyScanResult(
        technology=technology,
        forest=forest,
        responses=responses,
        direct_dependencies=get_direct_dependencies(forest),
    )


def run_sca_scan(
    providers: Iterable[DependencyTreeProvider],
    client: ScanGraphClient,
    params: GraphScanParams | None = None,
    max_appearances: int = MAX_UNIQUE_APPEARANCES,
) -> ScaScanResults:
    """Scan every technology, continuing past failures.

    A failing technology contributes its error (prefixed with the
    technology name) to ``ScaScanResults.error``; the others still report.
    """
    results = ScaScanResults()
    errors = []
    for provider in providers:
        technology = provider.technology
        logger.info(f"Calculating {technology} dependencies...")
        try:
            results.technologies.append(
                scan_technology(provider, client, params=params, max_appearances=max_appearances)
            )
        except Exception as e:
            logger.error(f"'{technology}' dependencies scan failed: {e}")
            errors.append(AuditError(f"audit command in '{technology}' failed: {e}"))
    results.error = join_errors(*errors)
    return results


def extract_dependencies_cves(
    responses: Iterable[ScanResponse], direct_dependencies: Iterable[str]
) -> tuple[list[str], list[str]]:
    """Split the CVEs of all findings by whether a direct dependency is implicated.

    Returns:
        Tuple of (direct CVE ids, indirect CVE ids), each deduplicated in
        first-seen order. A CVE seen both ways is reported as direct only.
    """
    direct_ids = set(direct_dependencies)
    direct: dict[str, None] = {}
    indirect: dict[str, None] = {}
    for response in responses:
        for issue in [*response.vulnerabilities, *response.violations]:
            bucket = direct if direct_ids.intersection(issue.components) else indirect
            for cve_id in issue.cve_ids:
                bucket.setdefault(cve_id, None)
    return list(direct), [cve for cve in indirect if cve not in direct]
