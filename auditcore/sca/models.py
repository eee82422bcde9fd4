"""Data shapes exchanged with the scanning service.

Only the request/response shape is modelled here. The service client itself
is an external collaborator that satisfies the ScanGraphClient protocol.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from auditcore.graph.types import GraphNode


class ScanType(Enum):
    """Kind of graph submitted to the scanning service."""

    DEPENDENCY = "dependency"
    BINARY = "binary"


@dataclass
class Cve:
    id: str
    cvss_v2_score: str = ""
    cvss_v3_score: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Cve":
        return cls(
            id=data.get("cve", "") or data.get("id", ""),
            cvss_v2_score=data.get("cvss_v2_score", ""),
            cvss_v3_score=data.get("cvss_v3_score", ""),
        )


@dataclass
class Component:
    """Details of one implicated component, keyed by component id in its issue."""

    fixed_versions: list[str] = field(default_factory=list)
    impact_paths: list[list[str]] = field(default_factory=list)
    cpes: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Component":
        paths = []
        for path in data.get("impact_paths") or []:
            paths.append(
                [node["component_id"] if isinstance(node, dict) else node for node in path]
            )
        return cls(
            fixed_versions=list(data.get("fixed_versions") or []),
            impact_paths=paths,
            cpes=list(data.get("cpes") or []),
        )


def _components_from_dict(data: dict[str, Any] | None) -> dict[str, Component]:
    return {cid: Component.from_dict(c or {}) for cid, c in (data or {}).items()}


@dataclass
class Vulnerability:
    issue_id: str
    summary: str = ""
    severity: str = ""
    cves: list[Cve] = field(default_factory=list)
    components: dict[str, Component] = field(default_factory=dict)
    technology: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Vulnerability":
        return cls(
            issue_id=data.get("issue_id", ""),
            summary=data.get("summary", ""),
            severity=data.get("severity", ""),
            cves=[Cve.from_dict(c) for c in data.get("cves") or []],
            components=_components_from_dict(data.get("components")),
            technology=data.get("technology", ""),
        )

    @property
    def cve_ids(self) -> list[str]:
        return [cve.id for cve in self.cves if cve.id]


@dataclass
class Violation(Vulnerability):
    watch_name: str = ""
    fail_build: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Violation":
        base = Vulnerability.from_dict(data)
        return cls(
            **vars(base),
            watch_name=data.get("watch_name", ""),
            fail_build=bool(data.get("fail_build", False)),
        )


@dataclass
class License:
    key: str
    name: str = ""
    components: dict[str, Component] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "License":
        return cls(
            key=data.get("license_key", "") or data.get("key", ""),
            name=data.get("license_name", "") or data.get("name", ""),
            components=_components_from_dict(data.get("components")),
        )


@dataclass
class ScanResponse:
    """Findings for one submitted graph."""

    scan_id: str = ""
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    licenses: list[License] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScanResponse":
        return cls(
            scan_id=data.get("scan_id", ""),
            vulnerabilities=[Vulnerability.from_dict(v) for v in data.get("vulnerabilities") or []],
            violations=[Violation.from_dict(v) for v in data.get("violations") or []],
            licenses=[License.from_dict(lic) for lic in data.get("licenses") or []],
        )

    @property
    def is_empty(self) -> bool:
        return not (self.vulnerabilities or self.violations or self.licenses)


@dataclass
class GraphScanParams:
    """One graph-scan request."""

    graph: GraphNode
    scan_type: ScanType = ScanType.DEPENDENCY
    repo_path: str = ""
    project_key: str = ""
    watches: list[str] = field(default_factory=list)
    include_vulnerabilities: bool = True
    include_licenses: bool = False


class ScanGraphClient(Protocol):
    """Scanning-service client: submit a graph, wait for and return its results."""

    def scan_graph(self, params: GraphScanParams) -> ScanResponse: ...


def should_fail_build(responses: list[ScanResponse]) -> bool:
    """True when any violation asks for the build to fail."""
    return any(v.fail_build for response in responses for v in response.violations)
