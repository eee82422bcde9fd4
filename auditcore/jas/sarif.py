"""SARIF ingestion helpers.

The engine writes standard SARIF 2.1.0. Results are kept as the plain dicts
json.load returns; these accessors read the handful of fields the scanners
consume and tolerate any of them being absent.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from auditcore.errors import SarifParseError

APPLICABILITY_RULE_PREFIX = "applic_"

SEVERITY_DEFAULT = "Medium"

LEVEL_TO_SEVERITY = {
    "error": "High",
    "note": "Low",
    "none": "Unknown",
}

# Kind reported by the applicability scanner when a CVE was checked and is
# not reachable
PASS_KIND = "pass"


@dataclass(frozen=True)
class CodeLocation:
    file: str
    start_line: int = 0
    start_column: int = 0
    snippet: str = ""

    @property
    def line_column(self) -> str:
        return f"{self.start_line}:{self.start_column}"


@dataclass
class SourceCodeFinding:
    """One secrets, IaC or SAST finding after post-processing."""

    severity: str
    location: CodeLocation
    message: str = ""
    rule_id: str = ""
    # Each flow is an ordered sequence of locations ending at ``location``
    code_flows: list[tuple[CodeLocation, ...]] = field(default_factory=list)

    @property
    def file(self) -> str:
        return self.location.file

    @property
    def line_column(self) -> str:
        return self.location.line_column

    @property
    def snippet(self) -> str:
        return self.location.snippet

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity,
            "file": self.file,
            "line_column": self.line_column,
            "snippet": self.snippet,
            "message": self.message,
            "rule_id": self.rule_id,
            "code_flows": [[loc.__dict__ for loc in flow] for flow in self.code_flows],
        }


def read_scan_runs(path: str | Path) -> list[dict[str, Any]]:
    """Load every run from a SARIF file.

    Raises:
        SarifParseError: If the file is missing, unreadable or not SARIF
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            report = json.load(f)
    except FileNotFoundError as e:
        raise SarifParseError(f"SARIF results file not found: {path}") from e
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SarifParseError(f"Could not parse SARIF results file {path}: {e}") from e

    if not isinstance(report, dict):
        raise SarifParseError(f"Malformed SARIF results file {path}: top level is not an object")
    runs = report.get("runs") or []
    if not isinstance(runs, list):
        raise SarifParseError(f"Malformed SARIF results file {path}: 'runs' is not a list")
    return runs


def read_first_run_results(path: str | Path) -> list[dict[str, Any]]:
    """Unsuppressed results of the first run; an absent run means no findings."""
    runs = read_scan_runs(path)
    if not runs:
        return []
    run = runs[0]
    if not isinstance(run, dict):
        raise SarifParseError(f"Malformed SARIF results file {path}: run is not an object")
    results = run.get("results") or []
    if not isinstance(results, list) or not all(isinstance(r, dict) for r in results):
        raise SarifParseError(f"Malformed SARIF results file {path}: 'results' is not a list of objects")
    return exclude_suppressed_results(results)


def exclude_suppressed_results(results: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Drop every result carrying a suppression entry."""
    return [result for result in results if not result.get("suppressions")]


def get_result_rule_id(result: dict[str, Any]) -> str:
    return result.get("ruleId") or ""


def get_result_message_text(result: dict[str, Any]) -> str:
    return (result.get("message") or {}).get("text") or ""


def get_result_severity(result: dict[str, Any]) -> str:
    level = (result.get("level") or "").lower()
    return LEVEL_TO_SEVERITY.get(level, SEVERITY_DEFAULT)


def is_applicable_result(result: dict[str, Any]) -> bool:
    return result.get("kind") != PASS_KIND


def cve_to_applicability_rule_id(cve_id: str) -> str:
    return APPLICABILITY_RULE_PREFIX + cve_id


def applicability_rule_id_to_cve(rule_id: str) -> str:
    return rule_id.removeprefix(APPLICABILITY_RULE_PREFIX)


def get_result_locations(result: dict[str, Any]) -> list[dict[str, Any]]:
    return result.get("locations") or []


def _get_region(location: dict[str, Any] | None) -> dict[str, Any]:
    if not location:
        return {}
    return (location.get("physicalLocation") or {}).get("region") or {}


def get_location_file_name(location: dict[str, Any] | None) -> str:
    if not location:
        return ""
    physical = location.get("physicalLocation") or {}
    return (physical.get("artifactLocation") or {}).get("uri") or ""


def get_location_snippet(location: dict[str, Any] | None) -> str:
    return (_get_region(location).get("snippet") or {}).get("text") or ""


def set_location_snippet(location: dict[str, Any], snippet: str) -> None:
    """Replace the snippet text in place; no-op when the location has none."""
    region_snippet = _get_region(location).get("snippet")
    if region_snippet is not None:
        region_snippet["text"] = snippet


def get_location_start_line(location: dict[str, Any] | None) -> int:
    return _get_region(location).get("startLine") or 0


def get_location_start_column(location: dict[str, Any] | None) -> int:
    return _get_region(location).get("startColumn") or 0


def extract_relative_path(result_path: str, project_root: str | Path) -> str:
    """Turn an engine file URI into a path relative to the scanned root."""
    # macOS temp dirs resolve through /private
    result_path = result_path.removeprefix("file:///private")
    result_path = result_path.removeprefix("file://")

    relative = result_path.replace(str(project_root), "") if str(project_root) else result_path
    return relative.lstrip("/\\")


def to_code_location(location: dict[str, Any], project_root: str | Path) -> CodeLocation:
    return CodeLocation(
        file=extract_relative_path(get_location_file_name(location), project_root),
        start_line=get_location_start_line(location),
        start_column=get_location_start_column(location),
        snippet=get_location_snippet(location),
    )


def get_result_code_flows(
    result: dict[str, Any], project_root: str | Path
) -> list[tuple[CodeLocation, ...]]:
    """Every thread flow of every code flow, as a tuple of locations."""
    flows = []
    for code_flow in result.get("codeFlows") or []:
        for thread_flow in code_flow.get("threadFlows") or []:
            flows.append(
                tuple(
                    to_code_location(step.get("location") or {}, project_root)
                    for step in thread_flow.get("locations") or []
                )
            )
    return flows


def to_source_code_findings(
    result: dict[str, Any], project_root: str | Path
) -> list[SourceCodeFinding]:
    """One finding per location of a result."""
    severity = get_result_severity(result)
    message = get_result_message_text(result)
    rule_id = get_result_rule_id(result)
    flows = get_result_code_flows(result, project_root)
    return [
        SourceCodeFinding(
            severity=severity,
            location=to_code_location(location, project_root),
            message=message,
            rule_id=rule_id,
            code_flows=list(flows),
        )
        for location in get_result_locations(result)
    ]
