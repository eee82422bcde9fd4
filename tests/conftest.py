"""Pytest configuration and fixtures."""

import json
from pathlib import Path

import pytest
import yaml

from auditcore.config import ServerDetails


def make_location(uri, line=1, column=1, snippet=None):
    region = {"startLine": line, "startColumn": column}
    if snippet is not None:
        region["snippet"] = {"text": snippet}
    return {"physicalLocation": {"artifactLocation": {"uri": uri}, "region": region}}


def make_result(
    rule_id,
    uri="file:///src/app.py",
    line=1,
    column=1,
    snippet=None,
    message="",
    level=None,
    kind=None,
    suppressions=None,
    code_flows=None,
):
    """Build one SARIF result dict."""
    result = {
        "ruleId": rule_id,
        "message": {"text": message},
        "locations": [make_location(uri, line, column, snippet)],
    }
    if level is not None:
        result["level"] = level
    if kind is not None:
        result["kind"] = kind
    if suppressions is not None:
        result["suppressions"] = suppressions
    if code_flows is not None:
        result["codeFlows"] = [
            {"threadFlows": [{"locations": [{"location": loc} for loc in flow]}]}
            for flow in code_flows
        ]
    return result


def make_sarif(results):
    return {"version": "2.1.0", "runs": [{"tool": {"driver": {"name": "fake"}}, "results": results}]}


class FakeEngine:
    """In-process stand-in for AnalyzerManager.

    Each exec() call consumes the next planned outcome: a list of SARIF
    results (written to the configured output path), a string written to
    that path verbatim, or an exception to raise. Calls and the parsed
    config documents are recorded.
    """

    def __init__(self, outcomes=None, working_dir="."):
        self.outcomes = list(outcomes or [])
        self.calls = []
        self.configs = []
        self.default_working_dir = Path(working_dir)

    def exec(self, config_file, scan_command, working_dir=None, server_details=None):
        with open(config_file, encoding="utf-8") as f:
            config = yaml.safe_load(f)
        self.calls.append(
            {"command": scan_command, "working_dir": working_dir, "server_details": server_details}
        )
        self.configs.append(config)

        outcome = self.outcomes.pop(0) if self.outcomes else []
        if isinstance(outcome, BaseException):
            raise outcome
        output = config["scans"][0]["output"]
        if isinstance(outcome, str):
            Path(output).write_text(outcome, encoding="utf-8")
            return
        Path(output).write_text(json.dumps(make_sarif(outcome)), encoding="utf-8")


@pytest.fixture
def server_details():
    return ServerDetails(url="https://platform.example.com", user="user", password="password")


@pytest.fixture
def fake_engine(tmp_path):
    return FakeEngine(working_dir=tmp_path)


@pytest.fixture
def project(tmp_path):
    """Two module directories under a project root."""
    root = tmp_path / "project"
    (root / "api").mkdir(parents=True)
    (root / "web").mkdir(parents=True)
    return root
