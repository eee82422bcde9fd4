"""Central UI handler for auditcore.

Single source of truth for Rich console styling. Import this instead of
instantiating Console() in every command file.

Usage:
    from auditcore.ui import console, print_header, print_error

    console.print("[success]No findings[/success]")
    print_header("JAS RESULTS")
"""

import sys

from rich.console import Console
from rich.table import Table
from rich.theme import Theme

AUDITCORE_THEME = Theme({
    "info": "bold cyan",
    "warning": "bold yellow",
    "error": "bold red",
    "success": "bold green",
    "high": "bold red",
    "medium": "bold yellow",
    "low": "cyan",
    "path": "bold cyan",
    "dim": "dim white",
})

console = Console(
    theme=AUDITCORE_THEME,
    force_terminal=sys.stdout.isatty()
)


def print_header(title: str) -> None:
    """Print a styled section header with horizontal rules."""
    console.rule(f"[bold]{title}[/bold]")


def print_error(msg: str) -> None:
    console.print(f"[error]ERROR:[/error] {msg}", highlight=False)


def print_warning(msg: str) -> None:
    console.print(f"[warning]WARNING:[/warning] {msg}", highlight=False)


def print_success(msg: str) -> None:
    console.print(f"[success]OK:[/success] {msg}", highlight=False)


def findings_table(title: str, counts: dict[str, int]) -> Table:
    """Two-column table of scanner name and finding count."""
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Scanner")
    table.add_column("Findings", justify="right")
    for name, count in counts.items():
        style = "success" if count == 0 else "warning"
        table.add_row(name, f"[{style}]{count}[/{style}]")
    return table
