"""Run the local JAS scanners (secrets, IaC, SAST) against source directories."""

import json
import sys
from pathlib import Path

import click

from auditcore.audit import create_engine
from auditcore.config import load_runtime_config, load_server_details
from auditcore.errors import iter_errors
from auditcore.jas.manager import run_jas_scanners
from auditcore.jas.scanner import ScanType, load_modules
from auditcore.ui import console, findings_table, print_error, print_header, print_success, print_warning
from auditcore.utils.error_handler import handle_exceptions
from auditcore.utils.exit_codes import ExitCodes

SCANNER_CHOICES = {
    "secrets": ScanType.SECRETS,
    "iac": ScanType.IAC,
    "sast": ScanType.SAST,
}


@click.command()
@handle_exceptions
@click.option(
    "--working-dirs",
    default="",
    help="Comma-separated directories to scan (default: current directory)",
)
@click.option(
    "--scanners",
    "scanner_names",
    multiple=True,
    type=click.Choice(sorted(SCANNER_CHOICES)),
    help="Scanners to run (repeatable, default: all)",
)
@click.option("--out", default=None, help="Write findings as JSON to this file")
def jas(working_dirs, scanner_names, out):
    """Run secrets, IaC and SAST scanning through the analyzer manager.

    Modules come from .pf/apps-config.yml when it exists, otherwise from
    --working-dirs. Requires AUDITCORE_URL and credentials.

    EXAMPLES:
      auditcore jas
      auditcore jas --working-dirs services/api,services/web --scanners secrets
    """
    cfg = load_runtime_config()
    dirs = [d.strip() for d in working_dirs.split(",") if d.strip()]
    scan_types = [SCANNER_CHOICES[name] for name in (scanner_names or sorted(SCANNER_CHOICES))]

    engine = create_engine(cfg)
    modules = load_modules(dirs, cfg["paths"]["apps_config"])
    results = run_jas_scanners(
        engine,
        modules,
        load_server_details(),
        scan_types=scan_types,
        temp_base_dir=cfg["paths"]["temp_dir"] or None,
    )

    if not results.entitled:
        print_warning("Platform connection is not configured, no scanners were run")
        return

    counts = results.finding_counts()
    print_header("JAS RESULTS")
    console.print(
        findings_table("Findings", {str(t): counts[str(t)] for t in scan_types})
    )

    if out:
        document = {
            "secrets": [f.to_dict() for f in results.secrets],
            "iac": [f.to_dict() for f in results.iac],
            "sast": [f.to_dict() for f in results.sast],
        }
        Path(out).parent.mkdir(parents=True, exist_ok=True)
        Path(out).write_text(json.dumps(document, indent=2), encoding="utf-8")
        console.print(f"Findings written to [path]{out}[/path]", highlight=False)

    if results.error is not None:
        for err in iter_errors(results.error):
            print_error(str(err))
        sys.exit(ExitCodes.TASK_INCOMPLETE)
    print_success("All requested scanners completed")
