"""Tests for the SCA runner and the top-level audit flow."""

import copy
import sys

import pytest

from auditcore.audit import run_audit, run_binary_scan
from auditcore.config import DEFAULTS
from auditcore.errors import AuditError, ScanServiceError
from auditcore.graph.types import GraphNode
from auditcore.jas import ApplicabilityStatus, ScanType
from auditcore.sca.models import (
    Component,
    Cve,
    GraphScanParams,
    ScanResponse,
    Violation,
    Vulnerability,
    should_fail_build,
)
from auditcore.sca.runner import (
    DependencyTreeProvider,
    extract_dependencies_cves,
    run_sca_scan,
    scan_technology,
)
from auditcore.scan import FileSpec
from conftest import FakeEngine, make_result


class FakeProvider(DependencyTreeProvider):
    def __init__(self, technology, graphs, known=None, fail=False):
        self._technology = technology
        self._graphs = graphs
        self._known = known
        self._fail = fail

    @property
    def technology(self):
        return self._technology

    def dependency_graphs(self):
        if self._fail:
            raise AuditError(f"{self._technology} build tool is not installed")
        return self._graphs

    @property
    def known_ids(self):
        return self._known


class FakeScaClient:
    """Returns a fixed response per submitted graph; records every request."""

    def __init__(self, response=None, error=None):
        self.response = response or ScanResponse()
        self.error = error
        self.requests = []

    def scan_graph(self, params):
        self.requests.append(params)
        if self.error is not None:
            raise self.error
        return self.response


NPM_GRAPH = (
    "npm://app:1.0.0",
    {
        "npm://app:1.0.0": ["npm://express:4.0.0", "npm://lodash:4.17.0"],
        "npm://express:4.0.0": ["npm://qs:6.0.0"],
        "npm://lodash:4.17.0": ["npm://qs:6.0.0"],
    },
)


def vulnerable_response():
    return ScanResponse(
        scan_id="scan-1",
        vulnerabilities=[
            Vulnerability(
                issue_id="XRAY-1",
                severity="High",
                cves=[Cve("CVE-2024-1")],
                components={"npm://qs:6.0.0": Component(fixed_versions=["[6.2.0]"])},
            ),
            Vulnerability(
                issue_id="XRAY-2",
                cves=[Cve("CVE-2024-2")],
                components={"npm://lodash:4.17.0": Component()},
            ),
        ],
        violations=[
            Violation(
                issue_id="XRAY-2",
                cves=[Cve("CVE-2024-2")],
                components={"npm://lodash:4.17.0": Component()},
                watch_name="prod",
                fail_build=True,
            )
        ],
    )


@pytest.fixture
def cfg(tmp_path, monkeypatch):
    monkeypatch.delenv("AUDITCORE_ENGINE_PATH", raising=False)
    monkeypatch.chdir(tmp_path)
    config = copy.deepcopy(DEFAULTS)
    config["engine"]["path"] = str(tmp_path / "missing" / "analyzerManager")
    config["paths"]["temp_dir"] = str(tmp_path / "scratch")
    return config


class TestScanTechnology:
    def test_flat_request_graph(self):
        client = FakeScaClient()

        scan_technology(FakeProvider("npm", [NPM_GRAPH]), client)

        [request] = client.requests
        assert request.graph.id == "root"
        assert [n.id for n in request.graph.nodes] == [
            "npm://app:1.0.0",
            "npm://express:4.0.0",
            "npm://qs:6.0.0",
            "npm://lodash:4.17.0",
        ]
        assert all(n.nodes == [] for n in request.graph.nodes)

    def test_findings_are_tagged_and_attributed(self):
        result = scan_technology(FakeProvider("npm", [NPM_GRAPH]), FakeScaClient(vulnerable_response()))

        [response] = result.responses
        qs = response.vulnerabilities[0]
        assert qs.technology == "npm"
        assert response.violations[0].technology == "npm"
        assert qs.components["npm://qs:6.0.0"].impact_paths == [
            ["npm://app:1.0.0", "npm://express:4.0.0", "npm://qs:6.0.0"],
            ["npm://app:1.0.0", "npm://lodash:4.17.0", "npm://qs:6.0.0"],
        ]
        assert qs.components["npm://qs:6.0.0"].fixed_versions == ["[6.2.0]"]
        assert result.direct_dependencies == ["npm://express:4.0.0", "npm://lodash:4.17.0"]

    def test_request_params_are_kept(self):
        client = FakeScaClient()
        params = GraphScanParams(graph=GraphNode("unused"), project_key="proj", watches=["prod"])

        scan_technology(FakeProvider("npm", [NPM_GRAPH]), client, params=params)

        assert client.requests[0].project_key == "proj"
        assert client.requests[0].watches == ["prod"]
        assert client.requests[0].graph.id == "root"

    def test_known_ids_filter_edges(self):
        graph = ("go://app", {"go://app": ["go://a:v1", "go://stale:v0"]})
        client = FakeScaClient()

        scan_technology(FakeProvider("go", [graph], known={"go://a:v1"}), client)

        assert [n.id for n in client.requests[0].graph.nodes] == ["go://app", "go://a:v1"]

    def test_no_dependencies(self):
        with pytest.raises(AuditError, match="no dependencies were found"):
            scan_technology(FakeProvider("pip", []), FakeScaClient())

    def test_service_failure(self):
        client = FakeScaClient(error=RuntimeError("502 Bad Gateway"))

        with pytest.raises(ScanServiceError, match="502"):
            scan_technology(FakeProvider("npm", [NPM_GRAPH]), client)


class TestRunScaScan:
    def test_failing_technology_does_not_stop_others(self):
        providers = [
            FakeProvider("maven", [], fail=True),
            FakeProvider("npm", [NPM_GRAPH]),
        ]

        results = run_sca_scan(providers, FakeScaClient(vulnerable_response()))

        assert results.scanned_technologies == ["npm"]
        assert len(results.responses) == 1
        assert "audit command in 'maven' failed" in str(results.error)

    def test_multi_module_direct_dependencies(self):
        graphs = [
            ("pypi://svc-a", {"pypi://svc-a": ["pypi://requests:2.31", "pypi://flask:3.0"]}),
            ("pypi://svc-b", {"pypi://svc-b": ["pypi://requests:2.31"]}),
        ]

        results = run_sca_scan([FakeProvider("pip", graphs)], FakeScaClient())

        assert results.error is None
        assert results.direct_dependencies == ["pypi://requests:2.31", "pypi://flask:3.0"]
        assert len(results.technologies[0].forest) == 2


class TestCveExtraction:
    def test_direct_and_indirect(self):
        direct, indirect = extract_dependencies_cves(
            [vulnerable_response()], ["npm://express:4.0.0", "npm://lodash:4.17.0"]
        )

        assert direct == ["CVE-2024-2"]
        assert indirect == ["CVE-2024-1"]

    def test_direct_wins_over_indirect(self):
        response = ScanResponse(
            vulnerabilities=[
                Vulnerability("X-1", cves=[Cve("CVE-1")], components={"deep": Component()}),
                Vulnerability("X-2", cves=[Cve("CVE-1")], components={"top": Component()}),
            ]
        )

        assert extract_dependencies_cves([response], ["top"]) == (["CVE-1"], [])

    def test_issue_without_cves(self):
        response = ScanResponse(vulnerabilities=[Vulnerability("X-1", components={"top": Component()})])

        assert extract_dependencies_cves([response], ["top"]) == ([], [])


class TestResponseModel:
    def test_from_dict(self):
        data = {
            "scan_id": "s-1",
            "vulnerabilities": [
                {
                    "issue_id": "XRAY-9",
                    "severity": "Critical",
                    "cves": [{"cve": "CVE-2023-9", "cvss_v3_score": "9.8"}],
                    "components": {
                        "npm://qs:6.0.0": {
                            "fixed_versions": ["[6.2.0]"],
                            "impact_paths": [[{"component_id": "npm://app"}, {"component_id": "npm://qs:6.0.0"}]],
                        }
                    },
                }
            ],
            "violations": [{"issue_id": "XRAY-9", "watch_name": "prod", "fail_build": True}],
            "licenses": [{"license_key": "MIT", "components": {"npm://qs:6.0.0": {}}}],
        }

        response = ScanResponse.from_dict(data)

        vuln = response.vulnerabilities[0]
        assert vuln.cve_ids == ["CVE-2023-9"]
        assert vuln.components["npm://qs:6.0.0"].impact_paths == [["npm://app", "npm://qs:6.0.0"]]
        assert response.violations[0].watch_name == "prod"
        assert response.licenses[0].key == "MIT"
        assert should_fail_build([response])
        assert not response.is_empty

    def test_no_fail_build(self):
        response = ScanResponse(violations=[Violation("XRAY-1")])

        assert not should_fail_build([response, ScanResponse()])


class TestRunAudit:
    def test_missing_engine_keeps_sca_results(self, cfg, server_details):
        results = run_audit(
            [FakeProvider("npm", [NPM_GRAPH])],
            FakeScaClient(vulnerable_response()),
            server_details,
            cfg=cfg,
        )

        assert len(results.sca.responses) == 1
        assert results.sca_error is None
        assert isinstance(results.jas_error, FileNotFoundError)
        assert results.error is results.jas_error
        assert results.fail_build

    def test_sca_feeds_applicability(self, cfg, server_details, tmp_path):
        module_dir = tmp_path / "app"
        module_dir.mkdir()
        engine = FakeEngine([[make_result("applic_CVE-2024-2")], []])

        results = run_audit(
            [FakeProvider("npm", [NPM_GRAPH])],
            FakeScaClient(vulnerable_response()),
            server_details,
            working_dirs=[str(module_dir)],
            engine=engine,
            scan_types=(ScanType.APPLICABILITY, ScanType.SECRETS),
            cfg=cfg,
        )

        assert results.error is None
        assert results.jas.applicability == {"CVE-2024-2": ApplicabilityStatus.APPLICABLE}
        assert [call["command"] for call in engine.calls] == ["ca", "sec"]
        assert engine.configs[0]["scans"][0]["roots"] == [str(module_dir)]

    def test_third_party_adds_indirect_cves(self, cfg, server_details, tmp_path):
        engine = FakeEngine([[]])

        results = run_audit(
            [FakeProvider("npm", [NPM_GRAPH])],
            FakeScaClient(vulnerable_response()),
            server_details,
            working_dirs=[str(tmp_path)],
            engine=engine,
            scan_types=(ScanType.APPLICABILITY,),
            third_party=True,
            cfg=cfg,
        )

        assert engine.configs[0]["scans"][0]["indirect-cve-whitelist"] == ["CVE-2024-1"]
        assert results.jas.applicability == {
            "CVE-2024-2": ApplicabilityStatus.UNDETERMINED,
            "CVE-2024-1": ApplicabilityStatus.UNDETERMINED,
        }

    def test_sca_failure_still_runs_jas(self, cfg, server_details, tmp_path):
        engine = FakeEngine([[make_result("generic-token", uri=f"file://{tmp_path}/x.env", snippet="abcdefgh")]])

        results = run_audit(
            [FakeProvider("npm", [], fail=True)],
            FakeScaClient(),
            server_details,
            working_dirs=[str(tmp_path)],
            engine=engine,
            scan_types=(ScanType.SECRETS,),
            cfg=cfg,
        )

        assert results.sca_error is not None
        assert len(results.jas.secrets) == 1
        assert results.jas_error is None

    def test_no_scan_types(self, cfg, server_details):
        results = run_audit(
            [FakeProvider("npm", [NPM_GRAPH])],
            FakeScaClient(),
            server_details,
            scan_types=(),
            cfg=cfg,
        )

        assert results.jas.entitled is False
        assert results.error is None


@pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts")
class TestRunBinaryScan:
    def test_unsupported_files_and_temp_cleanup(self, cfg, tmp_path):
        indexer = tmp_path / "indexer"
        indexer.write_text("#!/bin/sh\nexit 3\n", encoding="utf-8")
        indexer.chmod(0o755)
        (tmp_path / "data").mkdir()
        (tmp_path / "data" / "notes.txt").write_text("x", encoding="utf-8")
        client = FakeScaClient()

        results = run_binary_scan(indexer, client, [FileSpec(str(tmp_path / "data" / "*"))], cfg=cfg)

        assert results.responses == []
        assert results.error is None
        assert client.requests == []
        assert list((tmp_path / "scratch").iterdir()) == []
