"""Software composition analysis: scanning-service shapes and the SCA runner.

Only the data model is re-exported here; import the runner explicitly from
``auditcore.sca.runner``.
"""

from .models import (
    Component,
    Cve,
    GraphScanParams,
    License,
    ScanGraphClient,
    ScanResponse,
    ScanType,
    Violation,
    Vulnerability,
    should_fail_build,
)

__all__ = [
    "Component",
    "Cve",
    "GraphScanParams",
    "License",
    "ScanGraphClient",
    "ScanResponse",
    "ScanType",
    "Violation",
    "Vulnerability",
    "should_fail_build",
]
